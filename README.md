# rfbcodec

Pure-Python decoders for rectangle encodings of the RFB (VNC) protocol, plus
the small pieces of cryptography that VNC authentication needs.

All decoders work on bytes that have already been received: they read from a
`StreamReader` and draw into an in-memory `Framebuffer`. Malformed or
truncated input raises `ProtocolError`.

## What it covers

- **Pixel formats and framebuffers** (`rfbcodec.surface`): `PixelFormat`
  (defaults to 32 bits per pixel, depth 24, 8 bits per channel),
  `Framebuffer` (a row-major list of pixel values with `fill_rect`,
  `put_bitmap`, `get_pixel`, `set_pixel`) and `StreamReader` (`read`,
  `read_u8`, `read_u16`, `read_u32`, `read_pixel`; multi-byte integers are
  big-endian).
- **Cursor shapes** (`rfbcodec.cursor`): `read_cursor_shape` decodes XCursor
  and RichCursor pseudo-encodings into a `CursorShape` holding the pixel data
  and a one-byte-per-pixel 0/1 mask. It returns `None` for an empty cursor
  and raises `ProtocolError` for cursors of 1024 pixels or more in either
  direction.
- **Encodings**:
  - RRE and CoRRE: `decode_rre`, `decode_corre` (`rfbcodec.rre`)
  - Zlib: `ZlibDecoder` (`rfbcodec.zlibrect`)
  - Tight: `TightDecoder`, `read_compact_len` (`rfbcodec.tight`). JPEG
    rectangles are decoded with Pillow, or handed to a `jpeg_handler`
    callable `(data, x, y, w, h)` if one is given.
  - Ultra and UltraZip: `decode_ultra`, `decode_ultrazip`, with the LZO1X
    decompressor `lzo1x_decompress` and its `LzoError` (`rfbcodec.ultra`).
    For UltraZip, `rx` carries the number of subrectangles.
  - TRLE: `decode_trle` (`rfbcodec.trle`)
  - ZRLE: `ZrleDecoder` (`rfbcodec.zrle`). When the quality level does not
    have bit 7 set, raw tiles at 16 and 32 bits per pixel are reconstructed
    from ZYWRLE wavelet coefficients (`rfbcodec.zywrle`,
    `rfbcodec.zywrlepix`). A tile that cannot be decoded is logged and ends
    the rectangle without raising.
- **Crypto** (`rfbcodec.crypto`): `hash_md5`, `hash_sha1`, `random_bytes`,
  the bit-reversed-key DES used by VNC authentication (`encrypt_rfbdes`,
  `decrypt_rfbdes`, `reverse_byte`), `encrypt_aes128ecb`, and
  Diffie-Hellman helpers `dh_generate_keypair` and `dh_compute_shared_key`.
- **VNC passwords** (`rfbcodec.vncauth`): `encrypt_and_store_password` and
  `decrypt_password_from_file` for obfuscated password files (written with
  owner-only permissions), `random_challenge`, `encrypt_challenge` and
  `encrypt_bytes2`.

## Installation

```
pip install rfbcodec
```

## Example

```python
from rfbcodec.surface import PixelFormat, Framebuffer, StreamReader
from rfbcodec.rre import decode_rre

fmt = PixelFormat()                     # 32 bpp, depth 24, RGB888
fb = Framebuffer(64, 64, fmt)

payload = ...                           # bytes of one RRE rectangle from the server
decode_rre(StreamReader(payload), fb, 0, 0, 64, 64)
print(hex(fb.get_pixel(10, 10)))
```

Decoders that keep state between rectangles (zlib streams) are classes;
create one per connection and call `decode` for each rectangle:

```python
from rfbcodec.zrle import ZrleDecoder

zrle = ZrleDecoder(quality_level=9)
zrle.decode(StreamReader(payload), fb, 0, 0, 64, 64)
```

Answering a VNC authentication challenge:

```python
from rfbcodec.vncauth import random_challenge, encrypt_challenge

password = "password"
challenge = random_challenge()
response = encrypt_challenge(challenge, password)
```

## What it does not do

- It is not a VNC client: it opens no connections, performs no protocol
  handshake or security negotiation, and has no TLS or SASL support. You
  supply the received bytes and the rectangle geometry.
- It has no Hextile decoder.
- It does not display anything; the framebuffer is a plain list of pixel
  values for you to render.

## Running the tests

```
pip install -e ".[test]"
pytest
```