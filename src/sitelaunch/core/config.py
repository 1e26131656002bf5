"""Shared configuration classes for sitelaunch.

This module defines configuration used by the HTTP client and the launcher.
"""

from __future__ import annotations

from dataclasses import dataclass

PROTOCOL_VERSION = "xmit/0"
API_PREFIX = "/api/0"
WELL_KNOWN_PATH = "/.well-known/web-publication-protocol"
DEFAULT_SERVICE = "xmit.co"
DEFAULT_TEAM_MANAGE_URL = "https://xmit.co/admin"

CHUNK_BUDGET = 10 * 1024 * 1024  # 10 MiB


@dataclass
class ServiceConfig:
    """Configuration for talking to a hosting service.

    Attributes:
        timeout: Request timeout in seconds (discovery and API calls).
        chunk_budget: Maximum bytes per missing-parts request (a single
            oversized blob may still exceed it).
        protocol_version: Protocol version this client speaks.
        cancel_poll_interval: Seconds between cancellation checks while a
            request is in flight.
    """

    timeout: float = 30.0
    chunk_budget: int = CHUNK_BUDGET
    protocol_version: str = PROTOCOL_VERSION
    cancel_poll_interval: float = 0.1

    def __post_init__(self) -> None:
        """Validate numeric settings."""
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.chunk_budget <= 0:
            raise ValueError(f"chunk_budget must be positive, got {self.chunk_budget}")


def normalize_service_url(service: str) -> str:
    """Prefix a bare domain with https:// and drop a trailing slash.

    Args:
        service: Domain (``xmit.co``) or URL (``http://localhost:8080``).

    Returns:
        URL with an explicit scheme.
    """
    url = service.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url.rstrip("/")
