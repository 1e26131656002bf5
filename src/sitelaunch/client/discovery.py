"""Protocol discovery for hosting services.

A hosting service advertises the protocols it speaks and its API base URL
in a JSON document at ``/.well-known/web-publication-protocol``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from sitelaunch.core.cancel import CancellationToken, call_cancellable
from sitelaunch.core.config import (
    PROTOCOL_VERSION,
    WELL_KNOWN_PATH,
    normalize_service_url,
)

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """The well-known document is unreachable, malformed or incompatible."""


@dataclass
class ProtocolInfo:
    """Discovered protocol metadata for a hosting service."""

    protocols: list[str]
    url: str
    api_key_management_url: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProtocolInfo:
        """Create from the well-known JSON document."""
        raw = data.get("protocols")
        protocols = [str(p) for p in raw] if isinstance(raw, list) else []
        url = data.get("url")
        manage = data.get("apiKeyManagementUrl")
        return cls(
            protocols=protocols,
            url=url if isinstance(url, str) else "",
            api_key_management_url=manage if isinstance(manage, str) else "",
        )

    @property
    def base_url(self) -> str:
        """API base URL without trailing slash."""
        return self.url.rstrip("/")


@dataclass
class ProtocolDiscovery:
    """Fetches and validates the well-known protocol document.

    Every lookup fetches the document again; nothing is kept between calls.
    """

    timeout: float = 30.0
    protocol_version: str = PROTOCOL_VERSION
    cancel_poll_interval: float = 0.1
    transport: httpx.BaseTransport | None = None

    def discover(
        self,
        service: str,
        cancel_token: CancellationToken | None = None,
    ) -> ProtocolInfo:
        """Resolve a service domain to its protocol metadata.

        Args:
            service: Bare domain or URL of the hosting service.
            cancel_token: Optional token; when set mid-request the
                connection is closed and LaunchCancelled is raised.

        Returns:
            Validated ProtocolInfo.

        Raises:
            DiscoveryError: If the document is unreachable, unparsable,
                lacks a URL, or does not list the supported protocol.
            LaunchCancelled: If the token is set first.
        """
        well_known = normalize_service_url(service) + WELL_KNOWN_PATH
        logger.debug(f"Fetching {well_known}")
        client = httpx.Client(timeout=self.timeout, transport=self.transport)
        try:
            response = call_cancellable(
                lambda: client.get(well_known),
                cancel_token,
                poll_interval=self.cancel_poll_interval,
                on_cancel=client.close,
            )
        except httpx.HTTPError as e:
            raise DiscoveryError(f"Failed to reach {well_known}: {e}") from e
        finally:
            client.close()

        if response.status_code != 200:
            raise DiscoveryError(
                f"Failed to discover protocol: HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise DiscoveryError(f"Failed to parse protocol discovery response: {e}") from e
        if not isinstance(data, dict):
            raise DiscoveryError("Protocol discovery response is not a JSON object")

        info = ProtocolInfo.from_dict(data)
        if not info.protocols:
            raise DiscoveryError("Protocols field missing or empty in discovery response")
        if self.protocol_version not in info.protocols:
            raise DiscoveryError(
                f"Unknown protocols: {', '.join(info.protocols)}. "
                f"Expected {self.protocol_version}"
            )
        if not info.url:
            raise DiscoveryError("URL field missing or empty in discovery response")

        logger.info(f"Discovered {service}: {info.base_url} ({', '.join(info.protocols)})")
        return info
