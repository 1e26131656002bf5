"""Core module - Shared hashing, configuration and enums."""

from sitelaunch.core.config import (
    API_PREFIX,
    CHUNK_BUDGET,
    DEFAULT_SERVICE,
    PROTOCOL_VERSION,
    ServiceConfig,
    normalize_service_url,
)
from sitelaunch.core.hashing import DIGEST_SIZE, hash_bytes, to_hex
from sitelaunch.core.types import LaunchOutcome, LaunchStepStatus, SiteStatus

__all__ = [
    # Config
    "API_PREFIX",
    "CHUNK_BUDGET",
    "DEFAULT_SERVICE",
    "PROTOCOL_VERSION",
    "ServiceConfig",
    "normalize_service_url",
    # Hashing
    "DIGEST_SIZE",
    "hash_bytes",
    "to_hex",
    # Types
    "LaunchOutcome",
    "LaunchStepStatus",
    "SiteStatus",
]
