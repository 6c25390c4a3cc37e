"""Decoding of cursor shape pseudo-encodings (XCursor and RichCursor)."""

from __future__ import annotations

from dataclasses import dataclass

from rfbcodec.surface import PixelFormat, ProtocolError, StreamReader

ENCODING_XCURSOR = 0xFFFFFF10
ENCODING_RICH_CURSOR = 0xFFFFFF11
MAX_CURSOR_SIZE = 1024


@dataclass(frozen=True)
class CursorShape:
    """A decoded cursor: pixel data in the client format and a 0/1 mask."""

    xhot: int
    yhot: int
    width: int
    height: int
    bytes_per_pixel: int
    source: bytes
    mask: bytes


def _expand_bits(buf: bytes, width: int, height: int) -> bytes:
    """Turn a row-padded 1 bit-per-pixel bitmap into one byte per pixel."""
    row_bytes = (width + 7) // 8
    return bytes(
        buf[y * row_bytes + x // 8] >> (7 - x % 8) & 1
        for y in range(height)
        for x in range(width)
    )


def read_cursor_shape(
    reader: StreamReader,
    pixel_format: PixelFormat,
    xhot: int,
    yhot: int,
    width: int,
    height: int,
    encoding: int,
) -> CursorShape | None:
    """Read a cursor shape update; returns None for an empty cursor."""
    if width * height == 0:
        return None
    if width >= MAX_CURSOR_SIZE or height >= MAX_CURSOR_SIZE:
        raise ProtocolError(f"cursor size {width}x{height} too large")

    bpp = pixel_format.bytes_per_pixel
    mask_len = (width + 7) // 8 * height

    if encoding & 0xFFFFFFFF == ENCODING_XCURSOR:
        fore_r, fore_g, fore_b, back_r, back_g, back_b = reader.read(6)
        colours = (
            pixel_format.rgb24_to_pixel(back_r, back_g, back_b),
            pixel_format.rgb24_to_pixel(fore_r, fore_g, fore_b),
        )
        indices = _expand_bits(reader.read(mask_len), width, height)
        source = b"".join(pixel_format.pack_pixel(colours[i]) for i in indices)
    else:
        source = reader.read(width * height * bpp)

    mask = _expand_bits(reader.read(mask_len), width, height)
    return CursorShape(xhot, yhot, width, height, bpp, source, mask)