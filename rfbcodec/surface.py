"""Pixel formats, a byte stream reader and an in-memory framebuffer."""

from __future__ import annotations

from dataclasses import dataclass, field


class ProtocolError(Exception):
    """Raised when data received from the server is malformed or truncated."""


@dataclass(frozen=True)
class PixelFormat:
    """Layout of a pixel value as negotiated with the server."""

    bits_per_pixel: int = 32
    depth: int = 24
    big_endian: bool = False
    true_colour: bool = True
    red_max: int = 255
    green_max: int = 255
    blue_max: int = 255
    red_shift: int = 16
    green_shift: int = 8
    blue_shift: int = 0

    def __post_init__(self) -> None:
        if self.bits_per_pixel <= 0 or self.bits_per_pixel % 8:
            raise ValueError(f"unsupported bits per pixel: {self.bits_per_pixel}")

    @property
    def bytes_per_pixel(self) -> int:
        return self.bits_per_pixel // 8

    @property
    def pixel_mask(self) -> int:
        return (1 << self.bits_per_pixel) - 1

    @property
    def byteorder(self) -> str:
        return "big" if self.big_endian else "little"

    def rgb_to_pixel(self, r: int, g: int, b: int) -> int:
        """Pack components already scaled to the channel maxima."""
        value = (
            (r & self.red_max) << self.red_shift
            | (g & self.green_max) << self.green_shift
            | (b & self.blue_max) << self.blue_shift
        )
        return value & self.pixel_mask

    def rgb24_to_pixel(self, r: int, g: int, b: int) -> int:
        """Pack 8-bit components, scaling each to its channel maximum."""
        value = (
            ((r & 0xFF) * self.red_max + 127) // 255 << self.red_shift
            | ((g & 0xFF) * self.green_max + 127) // 255 << self.green_shift
            | ((b & 0xFF) * self.blue_max + 127) // 255 << self.blue_shift
        )
        return value & self.pixel_mask

    def rgb24_to_pixel32(self, r: int, g: int, b: int) -> int:
        """Pack 8-bit components by shifting only, as for 24-bit depth."""
        return (
            (r & 0xFF) << self.red_shift
            | (g & 0xFF) << self.green_shift
            | (b & 0xFF) << self.blue_shift
        ) & 0xFFFFFFFF

    def is_rgb888(self) -> bool:
        """True for depth 24 with 8 bits in each channel."""
        return (
            self.depth == 24
            and self.red_max == 0xFF
            and self.green_max == 0xFF
            and self.blue_max == 0xFF
        )

    def unpack_pixel(self, data: bytes) -> int:
        if len(data) != self.bytes_per_pixel:
            raise ValueError(
                f"expected {self.bytes_per_pixel} bytes for a pixel, got {len(data)}"
            )
        return int.from_bytes(data, self.byteorder)

    def pack_pixel(self, value: int) -> bytes:
        return (value & self.pixel_mask).to_bytes(self.bytes_per_pixel, self.byteorder)


class StreamReader:
    """Sequential reader over received bytes; short reads raise ProtocolError."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def read(self, n: int) -> bytes:
        if n < 0:
            raise ValueError("cannot read a negative number of bytes")
        end = self._pos + n
        if end > len(self._data):
            raise ProtocolError(
                f"unexpected end of data: wanted {n} bytes, {self.remaining} left"
            )
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def read_u8(self) -> int:
        return self.read(1)[0]

    def read_u16(self) -> int:
        return int.from_bytes(self.read(2), "big")

    def read_u32(self) -> int:
        return int.from_bytes(self.read(4), "big")

    def read_pixel(self, pixel_format: PixelFormat) -> int:
        return pixel_format.unpack_pixel(self.read(pixel_format.bytes_per_pixel))


@dataclass
class Framebuffer:
    """A row-major grid of pixel values."""

    width: int
    height: int
    pixel_format: PixelFormat = field(default_factory=PixelFormat)
    pixels: list[int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError("framebuffer dimensions must not be negative")
        self.pixels = [0] * (self.width * self.height)

    def _check_rect(self, x: int, y: int, w: int, h: int) -> None:
        if x < 0 or y < 0 or w < 0 or h < 0 or x + w > self.width or y + h > self.height:
            raise ProtocolError(
                f"rectangle {w}x{h} at ({x}, {y}) outside {self.width}x{self.height}"
            )

    def fill_rect(self, x: int, y: int, w: int, h: int, pixel: int) -> None:
        self._check_rect(x, y, w, h)
        value = pixel & self.pixel_format.pixel_mask
        for row in range(y, y + h):
            start = row * self.width + x
            self.pixels[start:start + w] = [value] * w

    def put_bitmap(self, data: bytes, x: int, y: int, w: int, h: int) -> None:
        self._check_rect(x, y, w, h)
        bpp = self.pixel_format.bytes_per_pixel
        needed = w * h * bpp
        if len(data) < needed:
            raise ProtocolError(f"bitmap needs {needed} bytes, got {len(data)}")
        order = self.pixel_format.byteorder
        values = [
            int.from_bytes(data[i:i + bpp], order) for i in range(0, needed, bpp)
        ]
        for j in range(h):
            start = (y + j) * self.width + x
            self.pixels[start:start + w] = values[j * w:(j + 1) * w]

    def get_pixel(self, x: int, y: int) -> int:
        self._check_rect(x, y, 1, 1)
        return self.pixels[y * self.width + x]

    def set_pixel(self, x: int, y: int, value: int) -> None:
        self._check_rect(x, y, 1, 1)
        self.pixels[y * self.width + x] = value & self.pixel_format.pixel_mask