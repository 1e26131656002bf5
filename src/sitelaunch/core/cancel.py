"""Cooperative cancellation for launches.

This module provides:
- LaunchCancelled: Raised when a launch observes its token set
- CancellationToken: Per-launch flag polled by every blocking step
- call_cancellable: Races a blocking call against a token
- CancellationRegistry: Tokens keyed by launch identity, for callers that
  run several destinations at once
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LaunchCancelled(Exception):
    """The launch was cancelled by the user."""

    def __init__(self, message: str = "Launch cancelled") -> None:
        super().__init__(message)


class CancellationToken:
    """A one-way cancellation flag.

    Safe to set from any thread. Once cancelled, it stays cancelled.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._event.is_set()

    def raise_if_cancelled(self, message: str = "Launch cancelled") -> None:
        """Raise LaunchCancelled if cancellation was requested."""
        if self._event.is_set():
            raise LaunchCancelled(message)

    def wait(self, timeout: float) -> bool:
        """Block up to timeout seconds; return True if cancelled meanwhile."""
        return self._event.wait(timeout)


def launch_id(project_path: str, site_name: str) -> str:
    """Build the identity of a launch from its project and site."""
    return f"{project_path}:{site_name}"


class CancellationRegistry:
    """Tracks one token per in-flight launch.

    Tokens are created when a launch starts and removed when it ends,
    whatever the outcome.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, CancellationToken] = {}
        self._lock = threading.Lock()

    @contextmanager
    def open(self, key: str) -> Iterator[CancellationToken]:
        """Register a fresh token for key for the duration of the block."""
        token = CancellationToken()
        with self._lock:
            self._tokens[key] = token
        try:
            yield token
        finally:
            with self._lock:
                if self._tokens.get(key) is token:
                    del self._tokens[key]

    def cancel(self, key: str) -> bool:
        """Cancel the launch registered under key.

        Returns:
            True if a launch was in flight for key.
        """
        with self._lock:
            token = self._tokens.get(key)
        if token is None:
            return False
        logger.info(f"Cancellation requested for {key}")
        token.cancel()
        return True

    def is_active(self, key: str) -> bool:
        """Check if a launch is registered under key."""
        with self._lock:
            return key in self._tokens


def call_cancellable(
    func: Callable[[], T],
    token: CancellationToken | None,
    poll_interval: float = 0.1,
    on_cancel: Callable[[], None] | None = None,
) -> T:
    """Run a blocking call while watching a cancellation token.

    The call runs on a daemon thread. If the token is set before the call
    returns, on_cancel is invoked (to tear down connections) and
    LaunchCancelled is raised instead of returning the call's result.

    Args:
        func: Blocking call to run.
        token: Token to watch; None runs func directly.
        poll_interval: Seconds between token checks.
        on_cancel: Optional hook run once when cancellation wins.

    Returns:
        Whatever func returns.

    Raises:
        LaunchCancelled: If the token was set first.
        Exception: Whatever func raised.
    """
    if token is None:
        return func()
    token.raise_if_cancelled()

    outcome: dict[str, Any] = {}
    done = threading.Event()

    def runner() -> None:
        try:
            outcome["value"] = func()
        except BaseException as e:  # re-raised on the caller's thread
            outcome["error"] = e
        finally:
            done.set()

    thread = threading.Thread(target=runner, name="sitelaunch-request", daemon=True)
    thread.start()

    while not done.wait(poll_interval):
        if token.is_cancelled:
            logger.debug("Cancellation observed while request in flight")
            if on_cancel:
                on_cancel()
            raise LaunchCancelled()

    if token.is_cancelled:
        raise LaunchCancelled()
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]  # type: ignore[no-any-return]
