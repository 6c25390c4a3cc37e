"""Decoders for the RRE and CoRRE rectangle encodings."""

from __future__ import annotations

from rfbcodec.surface import Framebuffer, ProtocolError, StreamReader

RFB_BUFFER_SIZE = 640 * 480


def decode_rre(
    reader: StreamReader, framebuffer: Framebuffer, rx: int, ry: int, rw: int, rh: int
) -> None:
    """Decode an RRE rectangle: a background fill and 16-bit subrectangles."""
    fmt = framebuffer.pixel_format
    count = reader.read_u32()
    framebuffer.fill_rect(rx, ry, rw, rh, reader.read_pixel(fmt))
    for _ in range(count):
        pixel = reader.read_pixel(fmt)
        x, y, w, h = (reader.read_u16() for _ in range(4))
        framebuffer.fill_rect(rx + x, ry + y, w, h, pixel)


def decode_corre(
    reader: StreamReader, framebuffer: Framebuffer, rx: int, ry: int, rw: int, rh: int
) -> None:
    """Decode a CoRRE rectangle: like RRE with 8-bit subrectangle geometry."""
    fmt = framebuffer.pixel_format
    bpp = fmt.bytes_per_pixel
    count = reader.read_u32()
    framebuffer.fill_rect(rx, ry, rw, rh, reader.read_pixel(fmt))
    if count > RFB_BUFFER_SIZE // (4 + bpp):
        raise ProtocolError(f"too many CoRRE subrectangles: {count}")
    data = reader.read(count * (4 + bpp))
    for start in range(0, len(data), 4 + bpp):
        pixel = fmt.unpack_pixel(data[start:start + bpp])
        x, y, w, h = data[start + bpp:start + bpp + 4]
        framebuffer.fill_rect(rx + x, ry + y, w, h, pixel)