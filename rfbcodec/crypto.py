"""Hashing, ciphers and Diffie-Hellman helpers used by the RFB security types."""

from __future__ import annotations

import hashlib
import secrets

from Crypto.Cipher import AES, DES


def hash_md5(data: bytes) -> bytes:
    return hashlib.md5(data).digest()


def hash_sha1(data: bytes) -> bytes:
    return hashlib.sha1(data).digest()


def random_bytes(length: int) -> bytes:
    """Cryptographically strong random bytes."""
    return secrets.token_bytes(length)


def reverse_byte(b: int) -> int:
    """Reverse the bit order of one byte."""
    b &= 0xFF
    b = (b & 0xF0) >> 4 | (b & 0x0F) << 4
    b = (b & 0xCC) >> 2 | (b & 0x33) << 2
    b = (b & 0xAA) >> 1 | (b & 0x55) << 1
    return b


def _rfbdes_cipher(key: bytes):
    if len(key) != 8:
        raise ValueError("DES key must be 8 bytes")
    return DES.new(bytes(reverse_byte(b) for b in key), DES.MODE_ECB)


def _check_blocks(data: bytes, size: int) -> None:
    if len(data) % size:
        raise ValueError(f"data length must be a multiple of {size}")


def encrypt_rfbdes(key: bytes, data: bytes) -> bytes:
    """DES-ECB encrypt with the bit-reversed key convention of VNC auth."""
    _check_blocks(data, 8)
    return _rfbdes_cipher(key).encrypt(bytes(data))


def decrypt_rfbdes(key: bytes, data: bytes) -> bytes:
    _check_blocks(data, 8)
    return _rfbdes_cipher(key).decrypt(bytes(data))


def encrypt_aes128ecb(key: bytes, data: bytes) -> bytes:
    """AES-128 in ECB mode without padding."""
    if len(key) != 16:
        raise ValueError("AES-128 key must be 16 bytes")
    _check_blocks(data, 16)
    return AES.new(bytes(key), AES.MODE_ECB).encrypt(bytes(data))


def _modulus(prime: bytes) -> int:
    p = int.from_bytes(prime, "big")
    if p < 3:
        raise ValueError("prime modulus is too small")
    return p


def dh_generate_keypair(generator: bytes, prime: bytes) -> tuple[bytes, bytes]:
    """Return (private, public) keys, each as long as the prime."""
    keylen = len(prime)
    p = _modulus(prime)
    g = int.from_bytes(generator, "big")
    private = secrets.randbelow(p - 2) + 1
    public = pow(g, private, p)
    return private.to_bytes(keylen, "big"), public.to_bytes(keylen, "big")


def dh_compute_shared_key(private: bytes, public: bytes, prime: bytes) -> bytes:
    """Return the shared secret, as long as the prime."""
    keylen = len(prime)
    p = _modulus(prime)
    shared = pow(int.from_bytes(public, "big"), int.from_bytes(private, "big"), p)
    return shared.to_bytes(keylen, "big")