import pytest

from rfbcodec.cursor import (
    ENCODING_RICH_CURSOR,
    ENCODING_XCURSOR,
    CursorShape,
    read_cursor_shape,
)
from rfbcodec.surface import PixelFormat, ProtocolError, StreamReader


def test_empty_cursor_returns_none():
    reader = StreamReader(b"")
    assert read_cursor_shape(reader, PixelFormat(), 0, 0, 0, 5, ENCODING_RICH_CURSOR) is None


def test_oversized_cursor_rejected():
    reader = StreamReader(b"")
    with pytest.raises(ProtocolError):
        read_cursor_shape(reader, PixelFormat(), 0, 0, 1024, 1, ENCODING_RICH_CURSOR)


def test_rich_cursor_source_and_mask():
    pf = PixelFormat()
    source = bytes(range(16))
    mask_rows = bytes([0b10000000, 0b01000000])
    reader = StreamReader(source + mask_rows)
    shape = read_cursor_shape(reader, pf, 1, 0, 2, 2, ENCODING_RICH_CURSOR)
    assert isinstance(shape, CursorShape)
    assert shape.source == source
    assert shape.mask == bytes([1, 0, 0, 1])
    assert (shape.xhot, shape.yhot, shape.width, shape.height) == (1, 0, 2, 2)
    assert shape.bytes_per_pixel == 4
    assert reader.remaining == 0


def test_xcursor_maps_bits_to_colours():
    pf = PixelFormat()
    colours = bytes([255, 0, 0, 0, 0, 255])  # foreground red, background blue
    bitmap = bytes([0b10000000, 0b01000000])
    mask = bytes([0b11000000, 0b11000000])
    reader = StreamReader(colours + bitmap + mask)
    shape = read_cursor_shape(reader, pf, 0, 0, 2, 2, ENCODING_XCURSOR)
    fore = pf.pack_pixel(pf.rgb24_to_pixel(255, 0, 0))
    back = pf.pack_pixel(pf.rgb24_to_pixel(0, 0, 255))
    assert shape.source == fore + back + back + fore
    assert set(shape.mask) == {1}
    assert len(shape.mask) == 4


def test_xcursor_signed_encoding_accepted():
    pf = PixelFormat()
    data = bytes(6) + bytes([0x80]) + bytes([0x80])
    shape = read_cursor_shape(StreamReader(data), pf, 0, 0, 1, 1, ENCODING_XCURSOR - (1 << 32))
    assert len(shape.source) == pf.bytes_per_pixel
    assert shape.mask == bytes([1])


def test_xcursor_16bpp_source_length():
    pf = PixelFormat(bits_per_pixel=16, depth=16, red_max=31, green_max=63,
                     blue_max=31, red_shift=11, green_shift=5, blue_shift=0)
    width, height = 10, 3
    row = (width + 7) // 8
    data = bytes([255] * 6) + bytes([0xFF] * row * height) + bytes(row * height)
    shape = read_cursor_shape(StreamReader(data), pf, 0, 0, width, height, ENCODING_XCURSOR)
    assert len(shape.source) == width * height * 2
    white = pf.pack_pixel(pf.rgb24_to_pixel(255, 255, 255))
    assert shape.source == white * (width * height)
    assert shape.mask == bytes(width * height)


def test_truncated_mask_raises():
    pf = PixelFormat()
    reader = StreamReader(bytes(4))
    with pytest.raises(ProtocolError):
        read_cursor_shape(reader, pf, 0, 0, 1, 1, ENCODING_RICH_CURSOR)