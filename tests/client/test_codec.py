"""Tests for the binary wire codec."""

from __future__ import annotations

import gzip

import cbor2
import pytest

from sitelaunch.client import codec


def _decode_request(body: bytes) -> dict:
    return cbor2.loads(gzip.decompress(body))


class TestEncodeRequest:
    """Tests for encode_request."""

    def test_credential_at_field_one(self) -> None:
        """Should place the credential at field 1."""
        payload = _decode_request(codec.encode_request({5: "example.com"}, "key-123"))
        assert payload == {1: "key-123", 5: "example.com"}

    def test_team_at_field_two(self) -> None:
        """Should place a non-empty team id at field 2."""
        payload = _decode_request(codec.encode_request({}, "key", team_id="team-1"))
        assert payload[2] == "team-1"

    def test_empty_team_omitted(self) -> None:
        """An empty or missing team id should not be sent."""
        assert 2 not in _decode_request(codec.encode_request({}, "key", team_id=""))
        assert 2 not in _decode_request(codec.encode_request({}, "key"))

    def test_bytes_fields_survive(self) -> None:
        """Binary fields should be sent as CBOR byte strings."""
        digest = bytes(range(32))
        payload = _decode_request(codec.encode_request({6: digest, 7: [b"a", b"b"]}, "key"))
        assert payload[6] == digest
        assert payload[7] == [b"a", b"b"]


class TestDecodeResponse:
    """Tests for decode_response."""

    def test_decodes_map(self) -> None:
        body = codec.encode_fields({1: True, 2: ["bad"], 5: b"\x01"})
        assert codec.decode_response(body) == {1: True, 2: ["bad"], 5: b"\x01"}

    def test_rejects_uncompressed(self) -> None:
        """A body that is not gzip should raise CodecError."""
        with pytest.raises(codec.CodecError):
            codec.decode_response(b"definitely not gzip")

    def test_rejects_non_map(self) -> None:
        """A CBOR value that is not a map should raise CodecError."""
        with pytest.raises(codec.CodecError, match="Expected a map"):
            codec.decode_response(gzip.compress(cbor2.dumps([1, 2, 3])))

    def test_codec_error_is_value_error(self) -> None:
        assert issubclass(codec.CodecError, ValueError)


class TestFieldHelpers:
    """Tests for the typed field readers."""

    def test_get_bool_defaults(self) -> None:
        assert codec.get_bool({1: True}, 1) is True
        assert codec.get_bool({1: "yes"}, 1) is False
        assert codec.get_bool({}, 1, default=True) is True

    def test_get_str(self) -> None:
        assert codec.get_str({5: "abc"}, 5) == "abc"
        assert codec.get_str({5: 12}, 5) == ""

    def test_get_bytes(self) -> None:
        assert codec.get_bytes({5: b"\x00\x01"}, 5) == b"\x00\x01"
        assert codec.get_bytes({}, 5) == b""

    def test_get_str_list_drops_empty_and_non_strings(self) -> None:
        """Only non-empty strings should be kept."""
        assert codec.get_str_list({2: ["a", "", 3, None, "b"]}, 2) == ["a", "b"]
        assert codec.get_str_list({2: "not a list"}, 2) == []

    def test_get_hash_list_renders_hex(self) -> None:
        """Byte hashes should come back as lowercase hex."""
        assert codec.get_hash_list({6: [b"\xab\xcd", "skip", b"\x01"]}, 6) == ["abcd", "01"]
