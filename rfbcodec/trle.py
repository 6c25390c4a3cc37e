"""Decoder for the TRLE rectangle encoding."""

from __future__ import annotations

import logging
from typing import Callable

from rfbcodec.surface import Framebuffer, PixelFormat, ProtocolError, StreamReader

log = logging.getLogger(__name__)

TILE_SIZE = 16


def _cpixel_codec(fmt: PixelFormat) -> tuple[int, Callable[[bytes], int]]:
    """Size of a compressed pixel and a function turning its bytes into a pixel."""
    size = fmt.bytes_per_pixel
    shift = 0
    if fmt.bits_per_pixel == 32 and fmt.true_colour and fmt.depth <= 24:
        colours = (
            fmt.red_max << fmt.red_shift
            | fmt.green_max << fmt.green_shift
            | fmt.blue_max << fmt.blue_shift
        )
        if colours < 1 << 24:
            size = 3
        elif colours & 0xFF == 0:
            size = 3
            shift = 8
    order = fmt.byteorder
    mask = fmt.pixel_mask

    def decode(raw: bytes) -> int:
        return (int.from_bytes(raw, order) << shift) & mask

    return size, decode


def _palette_bits(colours: int) -> int:
    if colours > 16:
        return 8
    if colours > 4:
        return 4
    if colours > 2:
        return 2
    return 1


def _run_length(reader: StreamReader) -> int:
    length = 1
    b = reader.read_u8()
    while b == 0xFF:
        length += b
        b = reader.read_u8()
    return length + b


def _put(framebuffer: Framebuffer, x: int, y: int, w: int, values: list[int]) -> None:
    mask = framebuffer.pixel_format.pixel_mask
    for j in range(len(values) // w if w else 0):
        start = (y + j) * framebuffer.width + x
        framebuffer.pixels[start:start + w] = [v & mask for v in values[j * w:(j + 1) * w]]


def _decode_packed(
    reader: StreamReader, palette: list[int], bits: int, w: int, h: int
) -> list[int]:
    per_byte = 8 // bits
    row_bytes = (w + per_byte - 1) // per_byte
    data = reader.read(row_bytes * h)
    mask = (1 << bits) - 1
    return [
        palette[
            data[j * row_bytes + i // per_byte] >> (8 - bits * (i % per_byte + 1)) & mask
        ]
        for j in range(h)
        for i in range(w)
    ]


def _decode_runs(next_run: Callable[[], tuple[int, int]], w: int, h: int) -> list[int]:
    total = w * h
    values: list[int] = []
    while len(values) < total:
        colour, length = next_run()
        count = min(length, total - len(values))
        values += [colour] * count
        if length > count:
            log.warning("possible TRLE corruption")
    return values


def decode_trle(
    reader: StreamReader, framebuffer: Framebuffer, rx: int, ry: int, rw: int, rh: int
) -> None:
    """Decode a TRLE rectangle made of 16x16 tiles."""
    if rx < 0 or ry < 0 or rw < 0 or rh < 0 or rx + rw > framebuffer.width or (
        ry + rh > framebuffer.height
    ):
        raise ProtocolError(f"Rect out of bounds: {rw}x{rh} at ({rx}, {ry})")

    cpix, to_pixel = _cpixel_codec(framebuffer.pixel_format)

    def read_cpixels(count: int) -> list[int]:
        raw = reader.read(count * cpix)
        return [to_pixel(raw[i:i + cpix]) for i in range(0, len(raw), cpix)]

    def plain_run() -> tuple[int, int]:
        colour = to_pixel(reader.read(cpix))
        return colour, _run_length(reader)

    palette = [0] * 128

    def palette_run() -> tuple[int, int]:
        b = reader.read_u8()
        colour = palette[b & 0x7F]
        return colour, _run_length(reader) if b & 0x80 else 1

    last_type = 0
    colour = 0
    bits = 0
    log.debug("Update %d %d %d %d", rx, ry, rw, rh)

    for y in range(ry, ry + rh, TILE_SIZE):
        h = min(TILE_SIZE, ry + rh - y)
        for x in range(rx, rx + rw, TILE_SIZE):
            w = min(TILE_SIZE, rx + rw - x)
            tile_type = reader.read_u8()

            if tile_type == 0:
                _put(framebuffer, x, y, w, read_cpixels(w * h))
            elif tile_type == 1:
                colour = read_cpixels(1)[0]
                framebuffer.fill_rect(x, y, w, h, colour)
                last_type = 1
            elif 2 <= tile_type <= 16:
                palette[:tile_type] = read_cpixels(tile_type)
                bits = _palette_bits(tile_type)
                last_type = tile_type
                _put(framebuffer, x, y, w, _decode_packed(reader, palette, bits, w, h))
            elif tile_type == 127:
                if last_type in (0, 128):
                    raise ProtocolError(
                        f"TRLE tile type 127 cannot reuse tile type {last_type}"
                    )
                if last_type == 1:
                    framebuffer.fill_rect(x, y, w, h, colour)
                    continue
                if last_type >= 130:
                    last_type &= 0x7F
                    bits = _palette_bits(last_type)
                if last_type > 16:
                    raise ProtocolError("TRLE palette too large to reuse as packed")
                _put(framebuffer, x, y, w, _decode_packed(reader, palette, bits, w, h))
            elif tile_type == 128:
                _put(framebuffer, x, y, w, _decode_runs(plain_run, w, h))
            elif tile_type == 129:
                _put(framebuffer, x, y, w, _decode_runs(palette_run, w, h))
            elif tile_type >= 130:
                palette[:tile_type - 128] = read_cpixels(tile_type - 128)
                last_type = tile_type
                _put(framebuffer, x, y, w, _decode_runs(palette_run, w, h))
            else:
                raise ProtocolError(f"unsupported TRLE tile type {tile_type}")