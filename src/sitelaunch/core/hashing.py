"""Content hashing for sitelaunch.

This module provides:
- hash_bytes: BLAKE3 digest (32 bytes) of arbitrary content
- to_hex: Hex rendering of a digest, used as ContentTable key
"""

from __future__ import annotations

from blake3 import blake3

DIGEST_SIZE = 32  # bytes


def hash_bytes(data: bytes) -> bytes:
    """Compute the BLAKE3 digest of data.

    Args:
        data: Raw bytes to hash.

    Returns:
        32-byte digest.
    """
    return blake3(data).digest(length=DIGEST_SIZE)


def to_hex(digest: bytes) -> str:
    """Render a raw digest as lowercase hex."""
    return digest.hex()
