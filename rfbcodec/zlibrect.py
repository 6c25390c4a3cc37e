"""Decoder for the zlib rectangle encoding."""

from __future__ import annotations

import zlib

from rfbcodec.surface import Framebuffer, ProtocolError, StreamReader


class ZlibDecoder:
    """Holds the zlib stream shared by all zlib rectangles of a connection."""

    def __init__(self) -> None:
        self._stream = zlib.decompressobj()
        self._raw = bytearray()

    def decode(
        self,
        reader: StreamReader,
        framebuffer: Framebuffer,
        rx: int,
        ry: int,
        rw: int,
        rh: int,
    ) -> None:
        """Inflate one rectangle of raw pixels and draw it."""
        needed = rw * rh * framebuffer.pixel_format.bytes_per_pixel
        if len(self._raw) < needed:
            self._raw = bytearray(needed)

        remaining = reader.read_u32()
        if remaining:
            compressed = reader.read(remaining)
            if not self._raw:
                raise ProtocolError("zlib inflate ran out of space")
            try:
                out = self._stream.decompress(compressed, len(self._raw))
            except zlib.error as exc:
                raise ProtocolError(f"zlib inflate failed: {exc}") from exc
            if self._stream.unconsumed_tail:
                raise ProtocolError("zlib inflate ran out of space")
            if self._stream.eof:
                raise ProtocolError("zlib stream ended unexpectedly")
            self._raw[:len(out)] = out

        framebuffer.put_bitmap(bytes(self._raw[:needed]), rx, ry, rw, rh)