"""Tests for the publication API client."""

from __future__ import annotations

import gzip
from collections.abc import Iterator

import cbor2
import httpx
import pytest
from pytest_httpx import HTTPXMock

from sitelaunch.client import codec
from sitelaunch.client.api import (
    ApiResponse,
    AuthenticationError,
    PublishClient,
    SuggestResponse,
    TeamList,
    TransportError,
    is_team_required,
)
from sitelaunch.core.cancel import CancellationToken, LaunchCancelled
from sitelaunch.core.config import DEFAULT_TEAM_MANAGE_URL, ServiceConfig

BASE_URL = "https://api.test"


def _reply(fields: dict) -> httpx.Response:
    return httpx.Response(200, content=codec.encode_fields(fields))


def _sent(request: httpx.Request) -> dict:
    return cbor2.loads(gzip.decompress(request.content))


@pytest.fixture
def client() -> Iterator[PublishClient]:
    """Publication client against a fake base URL."""
    with PublishClient(BASE_URL, "secret-key", config=ServiceConfig(timeout=5.0)) as c:
        yield c


class TestResponses:
    """Tests for the typed response dataclasses."""

    def test_team_required_detection(self) -> None:
        """Any error containing the marker should flag a team requirement."""
        assert is_team_required("This domain requires a team ID")
        assert not is_team_required("Invalid domain")
        response = ApiResponse(errors=["Domain requires a team ID to publish", "Other"])
        assert response.team_required
        assert response.other_errors == ["Other"]

    def test_suggest_from_fields(self) -> None:
        response = SuggestResponse.from_fields({1: True, 5: True, 6: [b"\x01\x02"]})
        assert response.success
        assert response.present
        assert response.missing == ["0102"]

    def test_teams_from_fields(self) -> None:
        """Teams without an id should be skipped."""
        teams = TeamList.from_fields(
            {1: True, 5: [{1: "t1", 2: "Marketing"}, {1: "t2"}, {2: "no id"}, "junk"]}
        )
        assert [t.id for t in teams.teams] == ["t1", "t2"]
        assert teams.teams[0].label == "Marketing (t1)"
        assert teams.teams[1].label == "t2"
        assert teams.manage_url == DEFAULT_TEAM_MANAGE_URL


class TestPublishClient:
    """Tests for PublishClient endpoints."""

    def test_suggest(self, httpx_mock: HTTPXMock, client: PublishClient) -> None:
        """Should send domain and hash and parse the reply."""
        seen: list[httpx.Request] = []

        def respond(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _reply({1: True, 5: False, 6: [b"\xaa"]})

        httpx_mock.add_callback(respond, url=f"{BASE_URL}/api/0/suggest", method="POST")

        response = client.suggest("example.com", b"\x00" * 32)

        assert response.success
        assert not response.present
        assert response.missing == ["aa"]
        assert seen[0].headers["Content-Type"] == "application/cbor+gzip"
        assert seen[0].headers["Accept"] == "application/cbor+gzip"
        assert _sent(seen[0]) == {1: "secret-key", 5: "example.com", 6: b"\x00" * 32}

    def test_team_id_sent(self, httpx_mock: HTTPXMock, client: PublishClient) -> None:
        """A team id should be carried at field 2."""
        seen: list[httpx.Request] = []

        def respond(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _reply({1: True})

        httpx_mock.add_callback(respond, url=f"{BASE_URL}/api/0/finalize", method="POST")

        assert client.finalize("example.com", b"\x01", team_id="team-9").success
        assert _sent(seen[0])[2] == "team-9"

    def test_upload_bundle(self, httpx_mock: HTTPXMock, client: PublishClient) -> None:
        httpx_mock.add_response(
            url=f"{BASE_URL}/api/0/bundle",
            method="POST",
            content=codec.encode_fields({1: True, 5: b"\x07" * 32, 6: []}),
        )
        response = client.upload_bundle("example.com", b"bundle-bytes")
        assert response.id == b"\x07" * 32
        assert response.missing == []

    def test_upload_missing_sends_blob_list(self, httpx_mock: HTTPXMock, client: PublishClient) -> None:
        """Blobs should be sent as a list at field 7."""
        seen: list[httpx.Request] = []

        def respond(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _reply({1: True, 3: ["slow down"]})

        httpx_mock.add_callback(respond, url=f"{BASE_URL}/api/0/missing", method="POST")

        response = client.upload_missing("example.com", [b"one", b"two"])
        assert response.warnings == ["slow down"]
        assert _sent(seen[0])[7] == [b"one", b"two"]

    def test_list_teams(self, httpx_mock: HTTPXMock, client: PublishClient) -> None:
        httpx_mock.add_response(
            url=f"{BASE_URL}/api/0/teams",
            method="POST",
            content=codec.encode_fields({1: True, 5: [{1: "t1", 2: "Ops"}], 6: "https://x/teams"}),
        )
        teams = client.list_teams()
        assert teams.teams[0].id == "t1"
        assert teams.manage_url == "https://x/teams"

    def test_server_error_status(self, httpx_mock: HTTPXMock, client: PublishClient) -> None:
        """Non-200 responses should raise TransportError with the status."""
        httpx_mock.add_response(url=f"{BASE_URL}/api/0/suggest", method="POST", status_code=500)
        with pytest.raises(TransportError) as exc_info:
            client.suggest("example.com", b"\x00")
        assert exc_info.value.status_code == 500

    def test_unauthorized(self, httpx_mock: HTTPXMock, client: PublishClient) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/api/0/suggest", method="POST", status_code=401)
        with pytest.raises(AuthenticationError):
            client.suggest("example.com", b"\x00")

    def test_timeout(self, httpx_mock: HTTPXMock, client: PublishClient) -> None:
        """Timeouts should surface as TransportError naming the limit."""
        httpx_mock.add_exception(httpx.ReadTimeout("too slow"), url=f"{BASE_URL}/api/0/suggest")
        with pytest.raises(TransportError, match="timed out after 5 seconds"):
            client.suggest("example.com", b"\x00")

    def test_undecodable_body(self, httpx_mock: HTTPXMock, client: PublishClient) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/api/0/suggest", method="POST", content=b"garbage")
        with pytest.raises(TransportError, match="Invalid response body"):
            client.suggest("example.com", b"\x00")

    def test_cancelled_token_sends_nothing(self, httpx_mock: HTTPXMock) -> None:
        """A cancelled token should stop the request before it is sent."""
        token = CancellationToken()
        token.cancel()
        with PublishClient(BASE_URL, "key", cancel_token=token) as client:
            with pytest.raises(LaunchCancelled):
                client.suggest("example.com", b"\x00")
        assert httpx_mock.get_requests() == []
