"""Pixel packing, colour transform and synthesis for ZYWRLE-filtered tiles.

Pixels are handled as the bytes they occupy in memory, read as a
little-endian integer, which is the layout the codec is defined on.
"""

from __future__ import annotations

from rfbcodec.surface import Framebuffer, ProtocolError
from rfbcodec.zywrle import calc_size, inv_wavelet

YMASK = {15: 0xFFFFFFF8, 16: 0xFFFFFFFC, 32: 0xFFFFFFFF}
UVMASK = {15: 0xFFFFFFF8, 16: 0xFFFFFFF8, 32: 0xFFFFFFFF}


def _s8(value: int) -> int:
    return ((value + 128) & 0xFF) - 128


def _s32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def _clamp(value: int) -> int:
    return 0 if value < 0 else 255 if value > 255 else value


def _check_bpp(bpp: int) -> None:
    if bpp not in YMASK:
        raise ValueError(f"ZYWRLE does not support {bpp} bits per pixel")


def load_pixel(value: int, bpp: int) -> tuple[int, int, int]:
    """Split a pixel, given as little-endian memory bytes, into 8-bit R, G, B."""
    _check_bpp(bpp)
    b0 = value & 0xFF
    b1 = (value >> 8) & 0xFF
    if bpp == 15:
        return (b1 << 1) & 0xF8, ((b1 << 6) | (b0 >> 2)) & 0xF8, (b0 << 3) & 0xF8
    if bpp == 16:
        return b1 & 0xF8, ((b1 << 5) | (b0 >> 3)) & 0xFC, (b0 << 3) & 0xF8
    return (value >> 16) & 0xFF, b1, b0


def save_pixel(r: int, g: int, b: int, bpp: int) -> int:
    """Pack 8-bit R, G, B into little-endian memory bytes of a pixel."""
    _check_bpp(bpp)
    if bpp == 15:
        r &= 0xF8
        g &= 0xF8
        b &= 0xF8
        b1 = ((r >> 1) | (g >> 6)) & 0xFF
        b0 = ((b >> 3) | (g << 2)) & 0xFF
        return b1 << 8 | b0
    if bpp == 16:
        r &= 0xF8
        g &= 0xFC
        b &= 0xF8
        b1 = (r | (g >> 5)) & 0xFF
        b0 = ((b >> 3) | (g << 3)) & 0xFF
        return b1 << 8 | b0
    return (r & 0xFF) << 16 | (g & 0xFF) << 8 | (b & 0xFF)


def rgb_to_yuv(r: int, g: int, b: int, ymask: int, uvmask: int) -> tuple[int, int, int]:
    """Reversible colour transform to signed Y, U, V reduced by the masks."""
    y = ((r + (g << 1) + b) >> 2) - 128
    u = (b - g) >> 1
    v = (r - g) >> 1
    y = _s32(y & _s32(ymask))
    u = _s32(u & _s32(uvmask))
    v = _s32(v & _s32(uvmask))
    if y == -128:
        y = _s32(y + ((0xFFFFFFFF - ymask + 1) & 0xFFFFFFFF))
    if u == -128:
        u = _s32(u + ((0xFFFFFFFF - uvmask + 1) & 0xFFFFFFFF))
    if v == -128:
        v = _s32(v + ((0xFFFFFFFF - uvmask + 1) & 0xFFFFFFFF))
    return y, u, v


def yuv_to_rgb(y: int, u: int, v: int) -> tuple[int, int, int]:
    """Inverse of the colour transform, clamped to 0..255."""
    y += 128
    u <<= 1
    v <<= 1
    g = y - ((u + v) >> 2)
    b = u + g
    r = v + g
    return _clamp(r), _clamp(g), _clamp(b)


def synthesize(
    framebuffer: Framebuffer, x: int, y: int, w: int, h: int, level: int
) -> bool:
    """Turn wavelet coefficients stored in a framebuffer region back into pixels.

    Returns False, leaving the region untouched, when it is smaller than
    one block of 2**level pixels in either direction.
    """
    fmt = framebuffer.pixel_format
    bits = fmt.bits_per_pixel
    if bits not in (16, 32):
        raise ValueError(f"ZYWRLE does not support {bits} bits per pixel")
    if x < 0 or y < 0 or w < 0 or h < 0 or x + w > framebuffer.width or (
        y + h > framebuffer.height
    ):
        raise ProtocolError(f"rectangle {w}x{h} at ({x}, {y}) outside framebuffer")

    aw, ah = calc_size(w, h, level)
    if aw == 0 or ah == 0:
        return False
    uw, uh = w - aw, h - ah

    nbytes = fmt.bytes_per_pixel
    stride = framebuffer.width
    pixels = framebuffer.pixels

    def to_mem(value: int) -> int:
        return int.from_bytes(fmt.pack_pixel(value), "little")

    def from_mem(value: int) -> int:
        return fmt.unpack_pixel((value & fmt.pixel_mask).to_bytes(nbytes, "little"))

    region = [
        to_mem(pixels[(y + j) * stride + x + i]) for j in range(h) for i in range(w)
    ]
    cursor = iter(region)

    coeffs = [0] * (aw * ah * 3)
    for l in range(level):
        s = 2 << l
        bands = (3, 2, 1, 0) if l == level - 1 else (3, 2, 1)
        for band in bands:
            ox = s >> 1 if band & 1 else 0
            oy = s >> 1 if band & 2 else 0
            for j in range(oy, ah, s):
                for i in range(ox, aw, s):
                    r, g, b = load_pixel(next(cursor), bits)
                    k = (j * aw + i) * 3
                    coeffs[k] = _s8(b)
                    coeffs[k + 1] = _s8(g)
                    coeffs[k + 2] = _s8(r)
    unaligned = list(cursor)

    inv_wavelet(coeffs, aw, ah, level)

    for j in range(ah):
        for i in range(aw):
            k = (j * aw + i) * 3
            r, g, b = yuv_to_rgb(coeffs[k + 1], coeffs[k], coeffs[k + 2])
            value = save_pixel(r, g, b, bits)
            if bits == 32:
                value |= region[j * w + i] & 0xFF000000
            pixels[(y + j) * stride + x + i] = from_mem(value)

    positions = []
    if uw:
        positions += [(i, j) for j in range(ah) for i in range(aw, w)]
    if uh:
        positions += [(i, j) for j in range(ah, h) for i in range(aw)]
    if uw and uh:
        positions += [(i, j) for j in range(ah, h) for i in range(aw, w)]
    for (i, j), value in zip(positions, unaligned):
        pixels[(y + j) * stride + x + i] = from_mem(value)
    return True