"""Binary wire codec for the publication API.

Requests and responses are CBOR maps keyed by small integers, gzip-compressed.

Standard request fields:
    1: credential (always)
    2: team id (only when non-empty)

Standard response fields:
    1: success flag
    2: errors
    3: warnings
    4: info messages
"""

from __future__ import annotations

import gzip
import zlib
from typing import Any

import cbor2

CONTENT_TYPE = "application/cbor+gzip"

FIELD_CREDENTIAL = 1
FIELD_TEAM = 2
FIELD_SUCCESS = 1
FIELD_ERRORS = 2
FIELD_WARNINGS = 3
FIELD_MESSAGES = 4


class CodecError(ValueError):
    """A response body could not be decoded."""


def encode_request(
    fields: dict[int, Any],
    credential: str,
    team_id: str | None = None,
) -> bytes:
    """Encode a request body.

    Args:
        fields: Endpoint-specific fields (keys 5 and up).
        credential: API key, stored at field 1.
        team_id: Optional team scope, stored at field 2 when non-empty.

    Returns:
        Gzip-compressed CBOR bytes.
    """
    payload: dict[int, Any] = dict(fields)
    payload[FIELD_CREDENTIAL] = credential
    if team_id:
        payload[FIELD_TEAM] = team_id
    return gzip.compress(cbor2.dumps(payload))


def encode_fields(fields: dict[int, Any]) -> bytes:
    """Encode a map without the standard credential fields."""
    return gzip.compress(cbor2.dumps(fields))


def decode_response(body: bytes) -> dict[int, Any]:
    """Decompress and decode a response body.

    Raises:
        CodecError: If the body is not gzip-compressed CBOR holding a map.
    """
    try:
        decoded = cbor2.loads(gzip.decompress(body))
    except (OSError, EOFError, zlib.error, ValueError) as e:
        raise CodecError(f"Invalid response body: {e}") from e
    if not isinstance(decoded, dict):
        raise CodecError(f"Expected a map, got {type(decoded).__name__}")
    return decoded


def get_bool(fields: dict[int, Any], key: int, default: bool = False) -> bool:
    """Read a boolean field, falling back to default."""
    value = fields.get(key)
    return value if isinstance(value, bool) else default


def get_str(fields: dict[int, Any], key: int, default: str = "") -> str:
    """Read a string field, falling back to default."""
    value = fields.get(key)
    return value if isinstance(value, str) else default


def get_bytes(fields: dict[int, Any], key: int) -> bytes:
    """Read a byte-string field (empty when absent)."""
    value = fields.get(key)
    return bytes(value) if isinstance(value, (bytes, bytearray)) else b""


def get_str_list(fields: dict[int, Any], key: int) -> list[str]:
    """Read a list of non-empty strings, dropping other entries."""
    value = fields.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item]


def get_hash_list(fields: dict[int, Any], key: int) -> list[str]:
    """Read a list of byte hashes and render them as hex."""
    value = fields.get(key)
    if not isinstance(value, list):
        return []
    return [bytes(item).hex() for item in value if isinstance(item, (bytes, bytearray))]
