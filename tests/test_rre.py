import pytest

from rfbcodec.rre import decode_corre, decode_rre
from rfbcodec.surface import Framebuffer, PixelFormat, ProtocolError, StreamReader

FMT = PixelFormat()


def px(value):
    return FMT.pack_pixel(value)


def u16(value):
    return value.to_bytes(2, "big")


def u32(value):
    return value.to_bytes(4, "big")


def test_rre_background_and_subrect():
    fb = Framebuffer(8, 8, FMT)
    data = u32(1) + px(0x111111) + px(0x222222) + u16(1) + u16(2) + u16(3) + u16(1)
    decode_rre(StreamReader(data), fb, 2, 2, 6, 6)
    assert fb.get_pixel(2, 2) == 0x111111
    assert fb.get_pixel(3, 4) == 0x222222
    assert fb.get_pixel(5, 4) == 0x222222
    assert fb.get_pixel(6, 4) == 0x111111
    assert fb.get_pixel(0, 0) == 0


def test_rre_no_subrects_fills_whole_rect():
    fb = Framebuffer(4, 4, FMT)
    decode_rre(StreamReader(u32(0) + px(0xABCDEF)), fb, 0, 0, 4, 4)
    assert set(fb.pixels) == {0xABCDEF}


def test_rre_truncated():
    fb = Framebuffer(4, 4, FMT)
    data = u32(2) + px(1) + px(2) + u16(0) + u16(0) + u16(1) + u16(1)
    with pytest.raises(ProtocolError):
        decode_rre(StreamReader(data), fb, 0, 0, 4, 4)


def test_rre_subrect_outside_framebuffer():
    fb = Framebuffer(4, 4, FMT)
    data = u32(1) + px(1) + px(2) + u16(3) + u16(3) + u16(4) + u16(4)
    with pytest.raises(ProtocolError):
        decode_rre(StreamReader(data), fb, 0, 0, 4, 4)


def test_corre_subrects():
    fb = Framebuffer(10, 10, FMT)
    data = (
        u32(2)
        + px(0x10)
        + px(0x20) + bytes([0, 0, 2, 2])
        + px(0x30) + bytes([3, 1, 1, 3])
    )
    reader = StreamReader(data)
    decode_corre(reader, fb, 1, 1, 5, 5)
    assert reader.remaining == 0
    assert fb.get_pixel(1, 1) == 0x20
    assert fb.get_pixel(2, 2) == 0x20
    assert fb.get_pixel(4, 2) == 0x30
    assert fb.get_pixel(4, 4) == 0x30
    assert fb.get_pixel(5, 5) == 0x10
    assert fb.get_pixel(0, 0) == 0


def test_corre_small_pixels():
    fmt = PixelFormat(bits_per_pixel=8, depth=8, red_max=7, green_max=7, blue_max=3,
                      red_shift=0, green_shift=3, blue_shift=6)
    fb = Framebuffer(4, 4, fmt)
    data = u32(1) + bytes([5]) + bytes([9, 1, 1, 2, 2])
    decode_corre(StreamReader(data), fb, 0, 0, 4, 4)
    assert fb.get_pixel(0, 0) == 5
    assert fb.get_pixel(1, 1) == 9
    assert fb.get_pixel(2, 2) == 9


def test_corre_too_many_subrects():
    fb = Framebuffer(4, 4, FMT)
    with pytest.raises(ProtocolError):
        decode_corre(StreamReader(u32(0xFFFFFFFF) + px(1)), fb, 0, 0, 4, 4)