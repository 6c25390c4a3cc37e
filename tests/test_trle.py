import pytest

from rfbcodec.surface import Framebuffer, PixelFormat, ProtocolError, StreamReader
from rfbcodec.trle import decode_trle

C0 = bytes([0x01, 0x02, 0x03])
C1 = bytes([0x11, 0x22, 0x33])
C2 = bytes([0x44, 0x55, 0x66])
C3 = bytes([0x77, 0x88, 0x99])


def px(raw):
    return int.from_bytes(raw, "little")


def decode(data, w, h, fmt=None):
    fb = Framebuffer(w, h, fmt or PixelFormat())
    reader = StreamReader(bytes(data))
    decode_trle(reader, fb, 0, 0, w, h)
    return fb, reader


def test_solid_tile():
    fb, reader = decode(b"\x01" + C1, 4, 4)
    assert fb.pixels == [px(C1)] * 16
    assert reader.remaining == 0


def test_raw_tile():
    fb, _ = decode(b"\x00" + C0 + C1, 2, 1)
    assert fb.pixels == [px(C0), px(C1)]


def test_packed_two_colours():
    fb, _ = decode(b"\x02" + C0 + C1 + bytes([0b01100000]), 4, 1)
    assert fb.pixels == [px(C0), px(C1), px(C1), px(C0)]


def test_packed_four_colours():
    fb, _ = decode(b"\x04" + C0 + C1 + C2 + C3 + bytes([0b00011011]), 4, 1)
    assert fb.pixels == [px(C0), px(C1), px(C2), px(C3)]


def test_plain_rle():
    fb, reader = decode(b"\x80" + C0 + b"\x02" + C1 + b"\x00", 4, 1)
    assert fb.pixels == [px(C0)] * 3 + [px(C1)]
    assert reader.remaining == 0


def test_plain_rle_long_run():
    fb, reader = decode(b"\x80" + C2 + b"\xff\x00", 16, 16)
    assert fb.pixels == [px(C2)] * 256
    assert reader.remaining == 0


def test_plain_rle_run_past_tile_is_clipped():
    fb, reader = decode(b"\x80" + C1 + b"\x05", 2, 1)
    assert fb.pixels == [px(C1)] * 2
    assert reader.remaining == 0


def test_palette_rle():
    fb, _ = decode(b"\x82" + C0 + C1 + b"\x81\x01\x00", 3, 1)
    assert fb.pixels == [px(C1), px(C1), px(C0)]


def test_palette_rle_reused_by_129():
    data = b"\x82" + C0 + C1 + b"\x81\x0e\x00" + b"\x81\x01"
    fb, reader = decode(data, 17, 1)
    assert fb.pixels == [px(C1)] * 15 + [px(C0)] + [px(C1)]
    assert reader.remaining == 0


def test_127_reuses_solid_colour():
    fb, _ = decode(b"\x01" + C2 + b"\x7f", 32, 16)
    assert fb.pixels == [px(C2)] * (32 * 16)


def test_127_reuses_packed_palette():
    data = b"\x02" + C0 + C1 + bytes([0xFF, 0xFF]) + b"\x7f" + b"\x00"
    fb, _ = decode(data, 17, 1)
    assert fb.pixels == [px(C1)] * 16 + [px(C0)]


def test_127_reuses_rle_palette_as_packed():
    data = b"\x82" + C0 + C1 + b"\x00\x0e" + b"\x81\x00" + b"\x7f" + b"\x80"
    data = b"\x82" + C0 + C1 + b"\x80\x0e" + b"\x81\x00" + b"\x7f\x80"
    fb, reader = decode(data, 17, 1)
    assert fb.pixels == [px(C0)] * 15 + [px(C1)] + [px(C1)]
    assert reader.remaining == 0


def test_raw_keeps_previous_type_for_127():
    fb, _ = decode(b"\x01" + C1 + b"\x00" + C0 + b"\x7f", 33, 1)
    assert fb.pixels == [px(C1)] * 16 + [px(C0)] + [px(C1)]


def test_127_first_tile_is_error():
    with pytest.raises(ProtocolError):
        decode(b"\x7f", 4, 4)


def test_127_after_plain_rle_is_error():
    with pytest.raises(ProtocolError):
        decode(b"\x80" + C0 + b"\x0f" + b"\x7f", 32, 1)


def test_unused_tile_type_is_error():
    with pytest.raises(ProtocolError):
        decode(b"\x32", 4, 4)


def test_truncated_data_is_error():
    with pytest.raises(ProtocolError):
        decode(b"\x00" + C0, 2, 1)


def test_rect_out_of_bounds():
    fb = Framebuffer(4, 4, PixelFormat())
    with pytest.raises(ProtocolError):
        decode_trle(StreamReader(b"\x01" + C0), fb, 2, 2, 4, 4)


def test_16bpp_uses_two_byte_pixels():
    fmt = PixelFormat(bits_per_pixel=16, depth=16, red_max=31, green_max=63,
                      blue_max=31, red_shift=11, green_shift=5, blue_shift=0)
    fb, reader = decode(b"\x01\x34\x12", 2, 2, fmt)
    assert fb.pixels == [0x1234] * 4
    assert reader.remaining == 0


def test_high_byte_colours_are_shifted():
    fmt = PixelFormat(red_shift=24, green_shift=16, blue_shift=8)
    fb, _ = decode(b"\x01" + C1, 1, 1, fmt)
    assert fb.pixels == [px(C1) << 8]