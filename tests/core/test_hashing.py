"""Tests for content hashing."""

from __future__ import annotations

from sitelaunch.core.hashing import DIGEST_SIZE, hash_bytes, to_hex

EMPTY_BLAKE3 = "af1349b9f5f9a1a6a0404dea36dcc9499bcb25c9adc112b7cc9a93cae41f3262"


class TestHashBytes:
    """Tests for hash_bytes and to_hex."""

    def test_digest_is_32_bytes(self) -> None:
        """Should produce a 32-byte digest."""
        assert DIGEST_SIZE == 32
        assert len(hash_bytes(b"hello")) == DIGEST_SIZE

    def test_known_vector(self) -> None:
        """Should match the BLAKE3 digest of empty input."""
        assert to_hex(hash_bytes(b"")) == EMPTY_BLAKE3

    def test_stable(self) -> None:
        """Same content should always hash the same."""
        assert hash_bytes(b"content") == hash_bytes(b"content")

    def test_different_content_differs(self) -> None:
        """Different content should produce different hashes."""
        assert hash_bytes(b"content-a") != hash_bytes(b"content-b")

    def test_hex_rendering(self) -> None:
        digest = hash_bytes(b"some file")
        assert to_hex(digest) == digest.hex()
        assert len(to_hex(digest)) == 64
