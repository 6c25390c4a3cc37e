"""Decoder for the Tight rectangle encoding."""

from __future__ import annotations

import io
import zlib
from typing import Callable, Optional

from PIL import Image

from rfbcodec.rre import RFB_BUFFER_SIZE
from rfbcodec.surface import Framebuffer, PixelFormat, ProtocolError, StreamReader

TIGHT_EXPLICIT_FILTER = 0x04
TIGHT_FILL = 0x08
TIGHT_JPEG = 0x09
TIGHT_NO_ZLIB = 0x0A
TIGHT_MAX_SUBENCODING = 0x0A

FILTER_COPY = 0
FILTER_PALETTE = 1
FILTER_GRADIENT = 2

TIGHT_MIN_TO_COMPRESS = 12

JpegHandler = Callable[[bytes, int, int, int, int], object]


def read_compact_len(reader: StreamReader) -> int:
    """Read a length stored in one to three bytes, seven bits at a time."""
    b = reader.read_u8()
    length = b & 0x7F
    if b & 0x80:
        b = reader.read_u8()
        length |= (b & 0x7F) << 7
        if b & 0x80:
            b = reader.read_u8()
            length |= (b & 0xFF) << 14
    return length


def _cuts_zeros(fmt: PixelFormat) -> bool:
    return fmt.bits_per_pixel == 32 and fmt.is_rgb888()


class _CopyFilter:
    """Pixels sent as they are, or as RGB triples for 24-bit depth."""

    def __init__(self, fmt: PixelFormat, width: int) -> None:
        self.fmt = fmt
        self.width = width
        self.cut_zeros = _cuts_zeros(fmt)
        self.bits_per_pixel = 24 if self.cut_zeros else fmt.bits_per_pixel

    def _row_components(self, raw: bytes) -> list[tuple[int, int, int]]:
        return [tuple(raw[i:i + 3]) for i in range(0, len(raw), 3)]

    def _native_row(self, raw: bytes) -> list[int]:
        bpp = self.fmt.bytes_per_pixel
        return [self.fmt.unpack_pixel(raw[i:i + bpp]) for i in range(0, len(raw), bpp)]

    def decode(self, data: bytes, count: int) -> list[list[int]]:
        row_size = (self.width * self.bits_per_pixel + 7) // 8
        rows = []
        for j in range(count):
            raw = data[j * row_size:(j + 1) * row_size]
            if self.cut_zeros:
                rows.append(
                    [self.fmt.rgb24_to_pixel32(*rgb) for rgb in self._row_components(raw)]
                )
            else:
                rows.append(self._native_row(raw))
        return rows


class _GradientFilter(_CopyFilter):
    """Each component predicted from its left, upper and upper-left neighbours."""

    def __init__(self, fmt: PixelFormat, width: int) -> None:
        super().__init__(fmt, width)
        self._prev = [0] * (width * 3)

    def decode(self, data: bytes, count: int) -> list[list[int]]:
        fmt = self.fmt
        row_size = (self.width * self.bits_per_pixel + 7) // 8
        if self.cut_zeros:
            maxes = (0xFF, 0xFF, 0xFF)
            pack = fmt.rgb24_to_pixel32
        else:
            maxes = (fmt.red_max, fmt.green_max, fmt.blue_max)
            shifts = (fmt.red_shift, fmt.green_shift, fmt.blue_shift)
            pack = fmt.rgb_to_pixel

        rows = []
        for j in range(count):
            raw = data[j * row_size:(j + 1) * row_size]
            if self.cut_zeros:
                deltas = self._row_components(raw)
            else:
                deltas = [
                    tuple(value >> shift for shift in shifts)
                    for value in self._native_row(raw)
                ]
            prev = self._prev
            this = [0] * (self.width * 3)
            pix = [0, 0, 0]
            out = []
            for x, delta in enumerate(deltas):
                for c in range(3):
                    if x == 0:
                        est = prev[c]
                    else:
                        est = prev[x * 3 + c] + pix[c] - prev[(x - 1) * 3 + c]
                        est = min(max(est, 0), maxes[c])
                    pix[c] = (delta[c] + est) & maxes[c]
                    this[x * 3 + c] = pix[c]
                out.append(pack(*pix))
            self._prev = this
            rows.append(out)
        return rows


class _PaletteFilter:
    """Pixels given as indices into a palette of 2 to 256 colours."""

    def __init__(self, reader: StreamReader, fmt: PixelFormat, width: int) -> None:
        self.width = width
        colours = reader.read_u8() + 1
        if colours < 2:
            raise ProtocolError("Tight encoding: error receiving palette")
        if _cuts_zeros(fmt):
            raw = reader.read(colours * 3)
            self.palette = [
                fmt.rgb24_to_pixel32(*raw[i:i + 3]) for i in range(0, len(raw), 3)
            ]
        else:
            bpp = fmt.bytes_per_pixel
            raw = reader.read(colours * bpp)
            self.palette = [
                fmt.unpack_pixel(raw[i:i + bpp]) for i in range(0, len(raw), bpp)
            ]
        self.bits_per_pixel = 1 if colours == 2 else 8

    def decode(self, data: bytes, count: int) -> list[list[int]]:
        w = self.width
        rows = []
        if self.bits_per_pixel == 1:
            row_size = (w + 7) // 8
            for j in range(count):
                raw = data[j * row_size:(j + 1) * row_size]
                rows.append(
                    [self.palette[raw[i // 8] >> (7 - i % 8) & 1] for i in range(w)]
                )
            return rows
        for j in range(count):
            raw = data[j * w:(j + 1) * w]
            try:
                rows.append([self.palette[index] for index in raw])
            except IndexError:
                raise ProtocolError("Tight encoding: palette index out of range") from None
        return rows


def _draw(framebuffer: Framebuffer, x: int, y: int, rows: list[list[int]]) -> None:
    for j, row in enumerate(rows):
        start = (y + j) * framebuffer.width + x
        framebuffer.pixels[start:start + len(row)] = row


class TightDecoder:
    """Holds the four zlib streams of a connection for Tight rectangles."""

    def __init__(self, jpeg_handler: Optional[JpegHandler] = None) -> None:
        self.jpeg_handler = jpeg_handler
        self._streams: list[Optional[zlib._Decompress]] = [None] * 4

    def decode(
        self,
        reader: StreamReader,
        framebuffer: Framebuffer,
        rx: int,
        ry: int,
        rw: int,
        rh: int,
    ) -> None:
        """Decode one Tight rectangle into the framebuffer."""
        fmt = framebuffer.pixel_format
        bits = fmt.bits_per_pixel
        if bits not in (8, 16, 32):
            raise ProtocolError(f"Tight encoding: unsupported {bits} bits per pixel")
        if rx + rw > framebuffer.width or ry + rh > framebuffer.height:
            raise ProtocolError(f"Rect out of bounds: {rw}x{rh} at ({rx}, {ry})")

        comp_ctl = reader.read_u8()
        for stream_id in range(4):
            if comp_ctl & 1:
                self._streams[stream_id] = None
            comp_ctl >>= 1

        read_uncompressed = False
        if comp_ctl & TIGHT_NO_ZLIB == TIGHT_NO_ZLIB:
            comp_ctl &= ~TIGHT_NO_ZLIB
            read_uncompressed = True

        if comp_ctl == TIGHT_FILL:
            if _cuts_zeros(fmt):
                colour = fmt.rgb24_to_pixel32(*reader.read(3))
            else:
                colour = reader.read_pixel(fmt)
            framebuffer.fill_rect(rx, ry, rw, rh, colour)
            return

        if comp_ctl == TIGHT_JPEG:
            if bits == 8:
                raise ProtocolError("Tight encoding: JPEG is not supported in 8 bpp mode")
            self._decode_jpeg(reader, framebuffer, rx, ry, rw, rh)
            return

        if comp_ctl > TIGHT_MAX_SUBENCODING:
            raise ProtocolError("Tight encoding: bad subencoding value received")

        if comp_ctl & TIGHT_EXPLICIT_FILTER:
            filter_id = reader.read_u8()
            if filter_id == FILTER_COPY:
                pixel_filter = _CopyFilter(fmt, rw)
            elif filter_id == FILTER_PALETTE:
                pixel_filter = _PaletteFilter(reader, fmt, rw)
            elif filter_id == FILTER_GRADIENT:
                pixel_filter = _GradientFilter(fmt, rw)
            else:
                raise ProtocolError("Tight encoding: unknown filter code received")
        else:
            pixel_filter = _CopyFilter(fmt, rw)

        row_size = (rw * pixel_filter.bits_per_pixel + 7) // 8
        needed = rh * row_size
        if needed < TIGHT_MIN_TO_COMPRESS:
            _draw(framebuffer, rx, ry, pixel_filter.decode(reader.read(needed), rh))
            return

        length = read_compact_len(reader)
        if length <= 0:
            raise ProtocolError("Incorrect data received from the server")

        if read_uncompressed:
            if length > RFB_BUFFER_SIZE:
                raise ProtocolError(
                    "Received uncompressed byte count exceeds our buffer size"
                )
            data = reader.read(length)
            if len(data) < needed:
                raise ProtocolError("Too little uncompressed data for the rectangle")
            _draw(framebuffer, rx, ry, pixel_filter.decode(data, rh))
            return

        stream_id = comp_ctl & 0x03
        stream = self._streams[stream_id]
        if stream is None:
            stream = self._streams[stream_id] = zlib.decompressobj()

        buffer_size = RFB_BUFFER_SIZE * pixel_filter.bits_per_pixel // (
            pixel_filter.bits_per_pixel + bits
        ) & 0xFFFFFFFC
        if row_size > buffer_size:
            raise ProtocolError("Internal error: incorrect buffer size")

        compressed = reader.read(length)
        try:
            out = stream.decompress(compressed)
        except zlib.error as exc:
            raise ProtocolError(f"Inflate error: {exc}") from exc

        if len(out) // row_size != rh:
            raise ProtocolError("Incorrect number of scan lines after decompression")
        _draw(framebuffer, rx, ry, pixel_filter.decode(out, rh))

    def _decode_jpeg(
        self,
        reader: StreamReader,
        framebuffer: Framebuffer,
        x: int,
        y: int,
        w: int,
        h: int,
    ) -> None:
        length = read_compact_len(reader)
        if length <= 0:
            raise ProtocolError("Incorrect data received from the server")
        data = reader.read(length)

        if self.jpeg_handler is not None:
            self.jpeg_handler(data, x, y, w, h)
            return

        try:
            with Image.open(io.BytesIO(data)) as image:
                rgb_image = image.convert("RGB")
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise ProtocolError(f"JPEG decoding failed: {exc}") from exc
        if rgb_image.size != (w, h):
            raise ProtocolError(
                f"JPEG image is {rgb_image.size[0]}x{rgb_image.size[1]}, expected {w}x{h}"
            )

        fmt = framebuffer.pixel_format
        rgb = rgb_image.tobytes()
        triples = [tuple(rgb[i:i + 3]) for i in range(0, len(rgb), 3)]
        if fmt.bits_per_pixel == 16:
            values = [fmt.rgb24_to_pixel(r, g, b) for r, g, b in triples]
        elif fmt.red_shift == 16 and fmt.blue_shift == 0:
            values = [r << 16 | g << 8 | b for r, g, b in triples]
        else:
            values = [b << 16 | g << 8 | r for r, g, b in triples]
        _draw(framebuffer, x, y, [values[j * w:(j + 1) * w] for j in range(h)])