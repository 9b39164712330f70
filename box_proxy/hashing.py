"""
box_proxy.hashing: deterministic hashing helpers.

Strictly bytes-in, bytes-out. Keccak-256 comes from PyCryptodome; SHA3-256
from hashlib.
"""

from __future__ import annotations

import hashlib

from Crypto.Hash import keccak as _keccak


def _ensure_bytes(buf: object, name: str) -> bytes:
    if isinstance(buf, (bytes, bytearray, memoryview)):
        return bytes(buf)
    raise TypeError(f"{name} must be bytes-like (got {type(buf).__name__})")


def keccak256(data: bytes | bytearray | memoryview) -> bytes:
    """Keccak-256 (pre-SHA3 padding), as used for EVM storage slots and UUIDs."""
    h = _keccak.new(digest_bits=256)
    h.update(_ensure_bytes(data, "data"))
    return h.digest()


def sha3_256(data: bytes | bytearray | memoryview) -> bytes:
    h = hashlib.sha3_256()
    h.update(_ensure_bytes(data, "data"))
    return h.digest()


__all__ = ["keccak256", "sha3_256"]
