"""HTTP client for the web publication API.

This module provides:
- PublishClient: Speaks the binary suggest/bundle/missing/finalize/teams API
- Typed response dataclasses for each endpoint
- APIError hierarchy for transport failures
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from sitelaunch.client import codec
from sitelaunch.core.cancel import CancellationToken, call_cancellable
from sitelaunch.core.config import API_PREFIX, DEFAULT_TEAM_MANAGE_URL, ServiceConfig

logger = logging.getLogger(__name__)

TEAM_REQUIRED_MARKER = "requires a team ID"


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(APIError):
    """Timeout, connection failure, or an undecodable body."""


class AuthenticationError(APIError):
    """The credential was rejected at the HTTP level."""


def is_team_required(error: str) -> bool:
    """Check if a server error means the destination needs a team scope."""
    return TEAM_REQUIRED_MARKER in error


@dataclass
class ApiResponse:
    """Fields common to every endpoint response."""

    success: bool = False
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    @staticmethod
    def _common(fields: dict[int, Any]) -> dict[str, Any]:
        return {
            "success": codec.get_bool(fields, codec.FIELD_SUCCESS),
            "errors": codec.get_str_list(fields, codec.FIELD_ERRORS),
            "warnings": codec.get_str_list(fields, codec.FIELD_WARNINGS),
            "messages": codec.get_str_list(fields, codec.FIELD_MESSAGES),
        }

    @classmethod
    def from_fields(cls, fields: dict[int, Any]) -> ApiResponse:
        """Create from a decoded response map."""
        return cls(**cls._common(fields))

    @property
    def team_required(self) -> bool:
        """Check if any error is the team-required marker."""
        return any(is_team_required(e) for e in self.errors)

    @property
    def other_errors(self) -> list[str]:
        """Errors other than the team-required marker."""
        return [e for e in self.errors if not is_team_required(e)]


@dataclass
class SuggestResponse(ApiResponse):
    """Response of /suggest: whether the bundle is known, and missing parts."""

    present: bool = False
    missing: list[str] = field(default_factory=list)

    @classmethod
    def from_fields(cls, fields: dict[int, Any]) -> SuggestResponse:
        """Create from a decoded response map."""
        return cls(
            **cls._common(fields),
            present=codec.get_bool(fields, 5),
            missing=codec.get_hash_list(fields, 6),
        )


@dataclass
class BundleResponse(ApiResponse):
    """Response of /bundle: the stored bundle id and parts still missing."""

    id: bytes = b""
    missing: list[str] = field(default_factory=list)

    @classmethod
    def from_fields(cls, fields: dict[int, Any]) -> BundleResponse:
        """Create from a decoded response map."""
        return cls(
            **cls._common(fields),
            id=codec.get_bytes(fields, 5),
            missing=codec.get_hash_list(fields, 6),
        )


@dataclass
class Team:
    """A team the credential may publish on behalf of."""

    id: str
    name: str | None = None

    @property
    def label(self) -> str:
        """Human-readable label."""
        return f"{self.name} ({self.id})" if self.name else self.id


@dataclass
class TeamList:
    """Teams available to a credential and where to manage them."""

    teams: list[Team]
    manage_url: str = DEFAULT_TEAM_MANAGE_URL

    @classmethod
    def from_fields(cls, fields: dict[int, Any]) -> TeamList:
        """Create from a decoded /teams response map."""
        teams: list[Team] = []
        raw = fields.get(5)
        if isinstance(raw, list):
            for item in raw:
                if not isinstance(item, dict):
                    continue
                team_id = codec.get_str(item, 1)
                if team_id:
                    name = item.get(2)
                    teams.append(Team(id=team_id, name=name if isinstance(name, str) else None))
        manage_url = codec.get_str(fields, 6) or DEFAULT_TEAM_MANAGE_URL
        return cls(teams=teams, manage_url=manage_url)


class PublishClient:
    """HTTP client for one hosting service's publication API.

    Every call is raced against the optional cancellation token; when the
    token wins, the underlying connections are closed and LaunchCancelled
    is raised.
    """

    def __init__(
        self,
        base_url: str,
        credential: str,
        config: ServiceConfig | None = None,
        cancel_token: CancellationToken | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API base URL from protocol discovery.
            credential: API key sent in every request body.
            config: Timeouts and polling settings.
            cancel_token: Optional token watched during every call.
            transport: Optional httpx transport (tests).
        """
        self._config = config or ServiceConfig()
        self._base_url = base_url.rstrip("/")
        self._credential = credential
        self._cancel_token = cancel_token
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=self._config.timeout,
            headers={
                "Content-Type": codec.CONTENT_TYPE,
                "Accept": codec.CONTENT_TYPE,
            },
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        """API base URL."""
        return self._base_url

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> PublishClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _post(
        self,
        endpoint: str,
        fields: dict[int, Any],
        team_id: str | None = None,
    ) -> dict[int, Any]:
        """POST an encoded request and decode the response map.

        Raises:
            AuthenticationError: On HTTP 401/403.
            TransportError: On timeout, connection failure, non-200 status
                or an undecodable body.
            LaunchCancelled: If the cancellation token is set first.
        """
        path = f"{API_PREFIX}/{endpoint}"
        body = codec.encode_request(fields, self._credential, team_id)

        def send() -> httpx.Response:
            return self._client.post(path, content=body)

        try:
            response = call_cancellable(
                send,
                self._cancel_token,
                poll_interval=self._config.cancel_poll_interval,
                on_cancel=self.close,
            )
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Request to {path} timed out after {self._config.timeout:.0f} seconds"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {path} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid or expired API key", response.status_code)
        if response.status_code != 200:
            raise TransportError(
                f"Request to {path} failed: {response.status_code}", response.status_code
            )

        try:
            return codec.decode_response(response.content)
        except codec.CodecError as e:
            raise TransportError(str(e), response.status_code) from e

    # === Publication endpoints ===

    def suggest(self, domain: str, bundle_hash: bytes, team_id: str | None = None) -> SuggestResponse:
        """Ask whether the server knows a bundle and which parts it lacks.

        Args:
            domain: Destination domain.
            bundle_hash: Digest of the serialized bundle.
            team_id: Optional team scope.
        """
        fields = self._post("suggest", {5: domain, 6: bundle_hash}, team_id)
        return SuggestResponse.from_fields(fields)

    def upload_bundle(self, domain: str, bundle: bytes, team_id: str | None = None) -> BundleResponse:
        """Upload the whole serialized bundle."""
        fields = self._post("bundle", {5: domain, 6: bundle}, team_id)
        return BundleResponse.from_fields(fields)

    def upload_missing(self, domain: str, blobs: list[bytes], team_id: str | None = None) -> ApiResponse:
        """Upload a batch of file contents the server reported missing."""
        fields = self._post("missing", {5: domain, 7: blobs}, team_id)
        return ApiResponse.from_fields(fields)

    def finalize(self, domain: str, bundle_id: bytes, team_id: str | None = None) -> ApiResponse:
        """Make a stored bundle the live snapshot of a destination."""
        fields = self._post("finalize", {5: domain, 6: bundle_id}, team_id)
        return ApiResponse.from_fields(fields)

    def list_teams(self, team_id: str | None = None) -> TeamList:
        """List the teams available to the credential."""
        fields = self._post("teams", {}, team_id)
        return TeamList.from_fields(fields)


# (base_url, credential, config, cancel_token) -> client
ClientFactory = Callable[[str, str, ServiceConfig, Optional[CancellationToken]], PublishClient]


def default_client_factory(
    base_url: str,
    credential: str,
    config: ServiceConfig,
    cancel_token: CancellationToken | None,
) -> PublishClient:
    """Create a PublishClient; the launcher's default factory."""
    return PublishClient(base_url, credential, config=config, cancel_token=cancel_token)
