"""Decoders for RFB framebuffer encodings, cursor shapes and VNC authentication helpers."""

__version__ = "0.1.0"