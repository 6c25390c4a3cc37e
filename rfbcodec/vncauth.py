"""VNC password storage and challenge-response authentication."""

from __future__ import annotations

import os
import stat
from pathlib import Path

from rfbcodec.crypto import decrypt_rfbdes, encrypt_rfbdes, random_bytes

CHALLENGE_SIZE = 16

# Passwords are stored obfuscated under a fixed key; the local file system
# is trusted, this only avoids keeping the password as plain text.
FIXED_KEY = bytes([23, 82, 107, 6, 35, 78, 88, 7])


def _password_key(password: str | bytes) -> bytes:
    """The first 8 bytes of the password, padded with NULs."""
    raw = password.encode("latin-1") if isinstance(password, str) else bytes(password)
    raw = raw.split(b"\0", 1)[0]
    return raw[:8].ljust(8, b"\0")


def encrypt_and_store_password(password: str | bytes, path: str | os.PathLike) -> None:
    """Encrypt a password and write it to a file readable by the owner only."""
    encrypted = encrypt_rfbdes(FIXED_KEY, _password_key(password))
    with open(path, "wb") as fp:
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)
        fp.write(encrypted)


def decrypt_password_from_file(path: str | os.PathLike) -> str:
    """Read and decrypt a password stored by encrypt_and_store_password."""
    data = Path(path).read_bytes()[:8]
    if len(data) < 8:
        raise ValueError(f"password file {os.fspath(path)!r} is too short")
    plain = decrypt_rfbdes(FIXED_KEY, data)
    return plain.split(b"\0", 1)[0].decode("latin-1")


def random_challenge() -> bytes:
    """Random bytes for a challenge-response exchange."""
    return random_bytes(CHALLENGE_SIZE)


def encrypt_challenge(challenge: bytes, password: str | bytes) -> bytes:
    """Encrypt a challenge with the password as DES key."""
    if len(challenge) != CHALLENGE_SIZE:
        raise ValueError(f"challenge must be {CHALLENGE_SIZE} bytes")
    return encrypt_rfbdes(_password_key(password), bytes(challenge))


def encrypt_bytes2(data: bytes, key: bytes) -> bytes:
    """Chain-encrypt data in 8-byte blocks, using the key also as the first mask."""
    if len(key) != 8:
        raise ValueError("key must be 8 bytes")
    if not data or len(data) % 8:
        raise ValueError("data length must be a positive multiple of 8")
    previous = bytes(key)
    out = bytearray()
    for start in range(0, len(data), 8):
        block = bytes(a ^ b for a, b in zip(data[start:start + 8], previous))
        previous = encrypt_rfbdes(key, block)
        out += previous
    return bytes(out)