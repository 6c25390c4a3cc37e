"""Decoders for the Ultra and UltraZip encodings, with an LZO1X decompressor."""

from __future__ import annotations

import logging

from rfbcodec.surface import Framebuffer, ProtocolError, StreamReader

log = logging.getLogger(__name__)

LZO_E_OK = 0
LZO_E_ERROR = -1
LZO_E_INPUT_OVERRUN = -4
LZO_E_OUTPUT_OVERRUN = -5
LZO_E_LOOKBEHIND_OVERRUN = -6
LZO_E_EOF_NOT_FOUND = -7
LZO_E_INPUT_NOT_CONSUMED = -8

ENCODING_RAW = 0

_M2_MAX_OFFSET = 0x0800
_M4_BASE = 0x4000

_TOP = 0
_AFTER_LITERALS = 1
_AFTER_MATCH = 2


class LzoError(ProtocolError):
    """LZO1X data that cannot be decompressed; ``code`` holds the LZO error code."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"{message} (error {code})")
        self.code = code


class _Lzo1xStream:
    def __init__(self, data: bytes, max_out: int) -> None:
        self.src = bytes(data)
        self.ip = 0
        self.out = bytearray()
        self.max_out = max_out

    def at_end(self) -> bool:
        return self.ip >= len(self.src)

    def byte(self) -> int:
        if self.ip >= len(self.src):
            raise LzoError(LZO_E_INPUT_OVERRUN, "input overrun")
        b = self.src[self.ip]
        self.ip += 1
        return b

    def extended_length(self, base: int) -> int:
        """Length continued in zero bytes (255 each) and a final non-zero byte."""
        extra = 0
        while True:
            b = self.byte()
            if b:
                return extra + base + b
            extra += 255

    def _reserve(self, n: int) -> None:
        if len(self.out) + n > self.max_out:
            raise LzoError(LZO_E_OUTPUT_OVERRUN, "output overrun")

    def literals(self, n: int) -> None:
        self._reserve(n)
        end = self.ip + n
        if end > len(self.src):
            raise LzoError(LZO_E_INPUT_OVERRUN, "input overrun")
        self.out += self.src[self.ip:end]
        self.ip = end

    def copy_match(self, distance: int, length: int) -> None:
        start = len(self.out) - distance
        if start < 0:
            raise LzoError(LZO_E_LOOKBEHIND_OVERRUN, "lookbehind overrun")
        self._reserve(length)
        if length <= distance:
            self.out += self.out[start:start + length]
        else:
            for i in range(length):
                self.out.append(self.out[start + i])

    def finish(self) -> bytes:
        if self.ip < len(self.src):
            raise LzoError(LZO_E_INPUT_NOT_CONSUMED, "input not consumed")
        return bytes(self.out)


def lzo1x_decompress(data: bytes, max_out: int) -> bytes:
    """Decompress an LZO1X stream, producing at most ``max_out`` bytes."""
    s = _Lzo1xStream(data, max_out)
    state = _TOP
    if s.src and s.src[0] > 17:
        t = s.byte() - 17
        s.literals(t)
        state = _AFTER_MATCH if t < 4 else _AFTER_LITERALS

    while True:
        if s.at_end():
            raise LzoError(LZO_E_EOF_NOT_FOUND, "end of stream marker not found")
        t = s.byte()
        if t >= 64:
            distance = 1 + ((t >> 2) & 7) + (s.byte() << 3)
            length = (t >> 5) + 1
        elif t >= 32:
            length = t & 31 or s.extended_length(31)
            length += 2
            b0, b1 = s.byte(), s.byte()
            distance = 1 + (b0 >> 2) + (b1 << 6)
        elif t >= 16:
            high = (t & 8) << 11
            length = t & 7 or s.extended_length(7)
            length += 2
            b0, b1 = s.byte(), s.byte()
            distance = high + (b0 >> 2) + (b1 << 6)
            if distance == 0:
                return s.finish()
            distance += _M4_BASE
        elif state == _TOP:
            run = t or s.extended_length(15)
            s.literals(run + 3)
            state = _AFTER_LITERALS
            continue
        elif state == _AFTER_LITERALS:
            distance = 1 + _M2_MAX_OFFSET + (t >> 2) + (s.byte() << 2)
            length = 3
        else:
            distance = 1 + (t >> 2) + (s.byte() << 2)
            length = 2

        s.copy_match(distance, length)
        trailing = s.src[s.ip - 2] & 3
        if trailing:
            s.literals(trailing)
            state = _AFTER_MATCH
        else:
            state = _TOP


def _align4(n: int) -> int:
    return (n + 3) & ~3


def _read_payload_size(reader: StreamReader, name: str) -> int:
    size = reader.read_u32()
    if size >= 0x80000000:
        raise ProtocolError(f"{name} error: remote sent negative payload size")
    return size


def decode_ultra(
    reader: StreamReader, framebuffer: Framebuffer, rx: int, ry: int, rw: int, rh: int
) -> None:
    """Decode an Ultra rectangle: LZO-compressed raw pixels."""
    to_read = _read_payload_size(reader, "ultra")
    if to_read == 0:
        return
    expected = rw * rh * framebuffer.pixel_format.bytes_per_pixel
    if expected == 0:
        raise ProtocolError(
            f"ultra error: rectangle has 0 uncompressed bytes ({rw}w * {rh}h)"
        )

    raw = lzo1x_decompress(reader.read(to_read), _align4(expected))
    if len(raw) != expected:
        log.warning(
            "Ultra decompressed unexpected amount of data (%d != %d)", expected, len(raw)
        )
        raw = raw[:expected].ljust(expected, b"\0")
    framebuffer.put_bitmap(raw, rx, ry, rw, rh)


def decode_ultrazip(
    reader: StreamReader, framebuffer: Framebuffer, rx: int, ry: int, rw: int, rh: int
) -> None:
    """Decode an UltraZip update: rx is the subrectangle count, ry and rw size it."""
    to_read = _read_payload_size(reader, "ultrazip")
    if to_read == 0:
        return
    uncompressed = ry + rw * 65535
    if uncompressed == 0:
        raise ProtocolError(
            f"ultrazip error: rectangle has 0 uncompressed bytes "
            f"({ry}y + ({rw}w * 65535)) ({rx} rectangles)"
        )

    data = lzo1x_decompress(reader.read(to_read), _align4(uncompressed + 500))
    bpp = framebuffer.pixel_format.bytes_per_pixel
    sub = StreamReader(data)
    for _ in range(max(rx, 0)):
        sx, sy, sw, sh = (sub.read_u16() for _ in range(4))
        encoding = sub.read_u32()
        if encoding == ENCODING_RAW:
            framebuffer.put_bitmap(sub.read(sw * sh * bpp), sx, sy, sw, sh)