"""API key request flow.

The user approves a key request in the browser while the client long-polls
the service for the resulting key.

This module provides:
- KeyRequest: Browser/poll URLs and secret returned by the service
- KeyRequester: request_key, await_key and request_and_await_key
"""

from __future__ import annotations

import logging
import platform
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from sitelaunch.client import codec
from sitelaunch.core.cancel import CancellationToken, LaunchCancelled, call_cancellable
from sitelaunch.core.config import API_PREFIX, normalize_service_url

logger = logging.getLogger(__name__)

POLL_TIMEOUT = 90.0  # seconds, server holds the poll open
POLL_INTERVAL = 2.0  # seconds between polls after a timeout
MAX_POLL_ATTEMPTS = 30


class KeyRequestError(Exception):
    """Requesting or retrieving an API key failed."""


class KeyPollTimeout(KeyRequestError):
    """The long poll ended before the user approved the request."""


@dataclass
class KeyRequest:
    """A pending key request."""

    browser_url: str
    poll_url: str
    secret: str
    base_url: str
    request_id: str = ""


class KeyRequester:
    """Requests an API key from a hosting service."""

    def __init__(
        self,
        service: str,
        timeout: float = 30.0,
        poll_timeout: float = POLL_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = normalize_service_url(service)
        self._timeout = timeout
        self._poll_timeout = poll_timeout
        self._transport = transport

    def request_key(self, application_name: str | None = None) -> KeyRequest:
        """Open a key request.

        Args:
            application_name: Shown to the user as "<name> on <hostname>".

        Raises:
            KeyRequestError: On transport failure or an invalid response.
        """
        hostname = platform.node() or "unknown host"
        name = f"{application_name} on {hostname}" if application_name else hostname
        url = f"{self._base_url}{API_PREFIX}/request-key"

        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(
                    url,
                    content=codec.encode_fields({1: name}),
                    headers={"Content-Type": codec.CONTENT_TYPE, "Accept": codec.CONTENT_TYPE},
                )
        except httpx.HTTPError as e:
            raise KeyRequestError(f"Failed to request key: {e}") from e

        if response.status_code != 200:
            raise KeyRequestError(f"Failed to request key: {response.status_code}")

        try:
            fields = codec.decode_response(response.content)
        except codec.CodecError as e:
            raise KeyRequestError(f"Failed to request key: {e}") from e

        if not codec.get_bool(fields, codec.FIELD_SUCCESS):
            errors = codec.get_str_list(fields, codec.FIELD_ERRORS)
            raise KeyRequestError(f"Request failed: {', '.join(errors) or 'unknown error'}")

        request = KeyRequest(
            browser_url=codec.get_str(fields, 5),
            poll_url=codec.get_str(fields, 6),
            secret=codec.get_str(fields, 7),
            base_url=self._base_url,
            request_id=codec.get_str(fields, 8),
        )
        if not (request.browser_url and request.poll_url and request.secret):
            raise KeyRequestError("Invalid response: missing required fields")
        return request

    def await_key(self, request: KeyRequest, cancel_token: CancellationToken | None = None) -> str:
        """Long-poll once for the approved key.

        Raises:
            KeyPollTimeout: If the poll timed out (retryable).
            KeyRequestError: If the request expired, the secret was
                rejected, or the service failed.
            LaunchCancelled: If the token was set during the poll.
        """
        url = f"{request.base_url}{request.poll_url}"
        client = httpx.Client(timeout=self._poll_timeout, transport=self._transport)

        def poll() -> httpx.Response:
            return client.get(url, params={"secret": request.secret})

        try:
            response = call_cancellable(poll, cancel_token, on_cancel=client.close)
        except httpx.TimeoutException as e:
            raise KeyPollTimeout("Poll timeout - request not approved yet") from e
        except httpx.HTTPError as e:
            raise KeyRequestError(f"Failed to get key: {e}") from e
        finally:
            client.close()

        if response.status_code == 200:
            return response.text.strip()
        if response.status_code == 404:
            raise KeyRequestError("Key request not found or expired")
        if response.status_code == 401:
            raise KeyRequestError("Invalid secret")
        if response.status_code == 408:
            raise KeyPollTimeout("Request timeout - please try again")
        raise KeyRequestError(f"Failed to get key: {response.status_code}")

    def request_and_await_key(
        self,
        on_poll_start: Callable[[KeyRequest], None],
        application_name: str | None = None,
        cancel_token: CancellationToken | None = None,
        poll_interval: float = POLL_INTERVAL,
        max_attempts: int = MAX_POLL_ATTEMPTS,
    ) -> str:
        """Request a key and poll until the user approves it.

        Args:
            on_poll_start: Called with the request before polling, so the
                caller can open the browser URL.
            application_name: Name shown in the approval page.
            cancel_token: Optional token to abort polling.
            poll_interval: Pause between polls after a timeout.
            max_attempts: Maximum number of polls.

        Returns:
            The API key.
        """
        request = self.request_key(application_name)
        if cancel_token:
            cancel_token.raise_if_cancelled("Request cancelled")
        on_poll_start(request)

        for attempt in range(1, max_attempts + 1):
            if cancel_token:
                cancel_token.raise_if_cancelled("Request cancelled")
            try:
                return self.await_key(request, cancel_token)
            except KeyPollTimeout:
                if attempt == max_attempts:
                    break
                logger.debug(f"Key poll {attempt}/{max_attempts} timed out, retrying")
                if cancel_token is None:
                    time.sleep(poll_interval)
                elif cancel_token.wait(poll_interval):
                    raise LaunchCancelled("Request cancelled") from None

        raise KeyRequestError("Key request timeout - maximum poll attempts exceeded")

