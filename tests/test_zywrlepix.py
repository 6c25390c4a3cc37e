import pytest

from rfbcodec.surface import Framebuffer, PixelFormat
from rfbcodec.zywrlepix import (
    UVMASK,
    YMASK,
    load_pixel,
    rgb_to_yuv,
    save_pixel,
    synthesize,
    yuv_to_rgb,
)


def test_load_save_round_trip_16():
    for value in range(0x10000):
        assert save_pixel(*load_pixel(value, 16), 16) == value


def test_load_save_round_trip_15():
    for value in range(0x8000):
        assert save_pixel(*load_pixel(value, 15), 15) == value


def test_load_save_round_trip_32_ignores_high_byte():
    for value in (0, 0x123456, 0xFF00FF, 0xAB123456, 0xFFFFFFFF):
        assert save_pixel(*load_pixel(value, 32), 32) == value & 0xFFFFFF


def test_load_pixel_16_red_channel():
    assert load_pixel(0xF800, 16) == (0xF8, 0, 0)


def test_load_pixel_rejects_8bpp():
    with pytest.raises(ValueError):
        load_pixel(0, 8)


def test_gray_round_trip_full_masks():
    for v in range(1, 256):
        yuv = rgb_to_yuv(v, v, v, YMASK[32], UVMASK[32])
        assert yuv_to_rgb(*yuv) == (v, v, v)


def test_black_luma_is_moved_off_minus_128():
    assert rgb_to_yuv(0, 0, 0, YMASK[32], UVMASK[32]) == (-127, 0, 0)


def test_masks_reduce_precision():
    for r in range(0, 256, 17):
        for g in range(0, 256, 23):
            for b in range(0, 256, 29):
                y, u, v = rgb_to_yuv(r, g, b, YMASK[16], UVMASK[16])
                assert y % 4 == 0
                assert u % 8 == 0 and v % 8 == 0
                assert -128 < y < 128 and -128 < u < 128 and -128 < v < 128


def test_yuv_to_rgb_is_clamped():
    for y in range(-128, 128, 15):
        for u in range(-128, 128, 15):
            for v in range(-128, 128, 15):
                assert all(0 <= c <= 255 for c in yuv_to_rgb(y, u, v))


def test_synthesize_too_small_leaves_region():
    fb = Framebuffer(3, 3, PixelFormat())
    fb.pixels = list(range(9))
    assert synthesize(fb, 0, 0, 3, 3, 2) is False
    assert fb.pixels == list(range(9))


def test_synthesize_zero_coefficients_and_unaligned_strip():
    fb = Framebuffer(5, 4, PixelFormat())
    fb.set_pixel(1, 3, 0x123456)
    assert synthesize(fb, 0, 0, 5, 4, 1) is True
    for j in range(4):
        for i in range(4):
            assert fb.get_pixel(i, j) == 0x808080
    assert fb.get_pixel(4, 0) == 0x123456
    assert [fb.get_pixel(4, j) for j in (1, 2, 3)] == [0, 0, 0]


def test_synthesize_dc_coefficient_spreads_evenly():
    fb = Framebuffer(2, 2, PixelFormat())
    fb.set_pixel(1, 1, 0x000005)
    assert synthesize(fb, 0, 0, 2, 2, 1) is True
    expected = save_pixel(*yuv_to_rgb(0, 5, 0), 32)
    assert fb.pixels == [expected] * 4


def test_synthesize_rejects_8bpp():
    fb = Framebuffer(4, 4, PixelFormat(bits_per_pixel=8, depth=8, red_max=7,
                                       green_max=7, blue_max=3, red_shift=0,
                                       green_shift=3, blue_shift=6))
    with pytest.raises(ValueError):
        synthesize(fb, 0, 0, 4, 4, 1)