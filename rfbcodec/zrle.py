"""Decoder for the ZRLE rectangle encoding, with ZYWRLE post-filtering."""

from __future__ import annotations

import logging
import zlib
from typing import Callable

from rfbcodec.surface import Framebuffer, ProtocolError, StreamReader
from rfbcodec.trle import _cpixel_codec
from rfbcodec.zywrlepix import synthesize

log = logging.getLogger(__name__)

TILE_WIDTH = 64
TILE_HEIGHT = 64

# Bit 7 of the quality level switches the ZYWRLE filter off.
ZYWRLE_DISABLED = 0x80


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


def _write(
    framebuffer: Framebuffer, x: int, y: int, w: int, h: int, values: list[int]
) -> None:
    if x < 0 or y < 0 or x + w > framebuffer.width or y + h > framebuffer.height:
        raise ProtocolError(
            f"tile {w}x{h} at ({x}, {y}) outside "
            f"{framebuffer.width}x{framebuffer.height}"
        )
    mask = framebuffer.pixel_format.pixel_mask
    for j in range(h):
        start = (y + j) * framebuffer.width + x
        framebuffer.pixels[start:start + w] = [
            v & mask for v in values[j * w:(j + 1) * w]
        ]


def _decode_runs(next_run: Callable[[], tuple[int, int]], total: int) -> list[int]:
    values: list[int] = []
    while len(values) < total:
        colour, length = next_run()
        count = min(length, total - len(values))
        values += [colour] * count
        if length > count:
            log.warning("possible ZRLE corruption")
    return values


class ZrleDecoder:
    """Holds the zlib stream shared by all ZRLE rectangles of a connection."""

    def __init__(self, quality_level: int = ZYWRLE_DISABLED) -> None:
        self.quality_level = quality_level
        self._stream = zlib.decompressobj()
        self._raw_size = 0

    def _zywrle_level(self, bits: int) -> int:
        if bits == 8 or self.quality_level & ZYWRLE_DISABLED:
            return 0
        return (3 - self.quality_level // 3) & 0xFF

    def decode(
        self,
        reader: StreamReader,
        framebuffer: Framebuffer,
        rx: int,
        ry: int,
        rw: int,
        rh: int,
    ) -> None:
        """Inflate one rectangle and decode its 64x64 tiles.

        A tile that cannot be decoded is logged and ends the rectangle
        without raising; only stream-level failures raise ProtocolError.
        """
        fmt = framebuffer.pixel_format
        if fmt.bits_per_pixel not in (8, 16, 32):
            raise ProtocolError(
                f"ZRLE encoding: unsupported {fmt.bits_per_pixel} bits per pixel"
            )
        cpix, _ = _cpixel_codec(fmt)
        self._raw_size = max(self._raw_size, rw * rh * cpix * 2)

        length = reader.read_u32()
        data = b""
        if length:
            compressed = reader.read(length)
            if self._raw_size == 0:
                raise ProtocolError("zlib inflate ran out of space")
            try:
                data = self._stream.decompress(compressed, self._raw_size)
            except zlib.error as exc:
                raise ProtocolError(f"zlib inflate failed: {exc}") from exc
            if self._stream.unconsumed_tail:
                raise ProtocolError("zlib inflate ran out of space")
            if self._stream.eof:
                raise ProtocolError("zlib stream ended unexpectedly")

        offset = 0
        for j in range(0, rh, TILE_HEIGHT):
            sub_h = min(TILE_HEIGHT, rh - j)
            for i in range(0, rw, TILE_WIDTH):
                sub_w = min(TILE_WIDTH, rw - i)
                try:
                    used = self.decode_tile(
                        framebuffer, data[offset:], rx + i, ry + j, sub_w, sub_h
                    )
                except ProtocolError as exc:
                    log.warning("ZRLE decoding failed (%s)", exc)
                    return
                offset += used

    def decode_tile(
        self, framebuffer: Framebuffer, data: bytes, x: int, y: int, w: int, h: int
    ) -> int:
        """Decode one tile from ``data``; returns the number of bytes used."""
        fmt = framebuffer.pixel_format
        bits = fmt.bits_per_pixel
        cpix, to_pixel = _cpixel_codec(fmt)
        if not data:
            raise ProtocolError("ZRLE tile data is empty")

        sub = StreamReader(data)

        def read_cpixels(count: int) -> list[int]:
            raw = sub.read(count * cpix)
            return [to_pixel(raw[k:k + cpix]) for k in range(0, len(raw), cpix)]

        tile_type = sub.read_u8()

        if tile_type == 0:
            level = self._zywrle_level(bits)
            if level > 0:
                self.quality_level |= ZYWRLE_DISABLED
                try:
                    used = self.decode_tile(framebuffer, data[1:], x, y, w, h)
                finally:
                    self.quality_level &= 0x7F
                synthesize(framebuffer, x, y, w, h, level)
                return 1 + used
            _write(framebuffer, x, y, w, h, read_cpixels(w * h))

        elif tile_type == 1:
            framebuffer.fill_rect(x, y, w, h, read_cpixels(1)[0])

        elif tile_type <= 127:
            palette = read_cpixels(tile_type)
            pbits = _palette_bits(tile_type)
            per_byte = 8 // pbits
            row_bytes = (w + per_byte - 1) // per_byte
            packed = sub.read(row_bytes * h)
            mask = (1 << pbits) - 1
            values = []
            for j in range(h):
                for i in range(w):
                    byte = packed[j * row_bytes + i // per_byte]
                    index = byte >> (8 - pbits * (i % per_byte + 1)) & mask
                    if index >= len(palette):
                        raise ProtocolError(f"ZRLE palette index {index} out of range")
                    values.append(palette[index])
            _write(framebuffer, x, y, w, h, values)

        elif tile_type == 128:
            def plain_run() -> tuple[int, int]:
                colour = read_cpixels(1)[0]
                return colour, _run_length(sub)

            _write(framebuffer, x, y, w, h, _decode_runs(plain_run, w * h))

        elif tile_type == 129:
            raise ProtocolError("unused ZRLE tile type 129")

        else:
            palette = read_cpixels(tile_type - 128)

            def palette_run() -> tuple[int, int]:
                b = sub.read_u8()
                index = b & 0x7F
                if index >= len(palette):
                    raise ProtocolError(f"ZRLE palette index {index} out of range")
                return palette[index], _run_length(sub) if b & 0x80 else 1

            _write(framebuffer, x, y, w, h, _decode_runs(palette_run, w * h))

        return len(data) - sub.remaining