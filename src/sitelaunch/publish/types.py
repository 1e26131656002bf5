"""Shared types for publishing.

This module provides:
- LaunchStep, Site, Task, Project: Launch data model
- TeamSelected, RefreshTeamList, CreateNewTeam, TeamSelectionCancelled:
  Closed set of answers from the team selection resolver
- LaunchEvent, TaskOutputEvent, EventStream: Ordered progress stream
- LaunchResult: Final outcome of a launch
- LaunchError and subclasses: Launch failures
"""

from __future__ import annotations

import queue
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Union

from sitelaunch.core.config import DEFAULT_SERVICE
from sitelaunch.core.types import LaunchOutcome, LaunchStepStatus, SiteStatus

if TYPE_CHECKING:
    from sitelaunch.client.api import TeamList


class LaunchError(Exception):
    """Base exception for launch failures."""


class BundleError(LaunchError):
    """The bundle could not be built (bad configuration or unreadable file)."""


class BuildError(LaunchError):
    """The build task failed."""


class TeamAuthError(LaunchError):
    """The destination requires a team scope that could not be resolved."""


class MissingContentError(LaunchError):
    """The server asked for content that was never bundled.

    This is an invariant violation in bundle construction, never a
    recoverable condition.
    """

    def __init__(self, content_hash: str) -> None:
        self.content_hash = content_hash
        super().__init__(
            f"Missing content for hash: {content_hash}. "
            "This indicates a bug in bundle creation."
        )


# =============================================================================
# Data model
# =============================================================================


@dataclass(frozen=True)
class LaunchStep:
    """One row of launch progress.

    Steps are immutable snapshots; every change produces a new value with
    the same title.
    """

    title: str
    status: LaunchStepStatus = LaunchStepStatus.PENDING
    message: str | None = None
    logs: tuple[str, ...] = ()
    start_time: float = field(default_factory=time.time)
    end_time: float | None = None

    def add_log(self, line: str) -> LaunchStep:
        """Return a copy with one more log line."""
        return replace(self, logs=(*self.logs, line))

    def with_status(
        self,
        status: LaunchStepStatus,
        message: str | None = None,
    ) -> LaunchStep:
        """Return a copy with a new status (and message, if given).

        Completed and failed steps get an end time.
        """
        end_time = self.end_time
        if status in (LaunchStepStatus.COMPLETED, LaunchStepStatus.FAILED):
            end_time = time.time()
        return replace(
            self,
            status=status,
            message=message if message is not None else self.message,
            end_time=end_time,
        )

    def clear_message(self) -> LaunchStep:
        """Return a copy without a message."""
        return replace(self, message=None)

    @property
    def duration(self) -> float | None:
        """Seconds between start and end, if finished."""
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    @property
    def title_with_duration(self) -> str:
        """Title with elapsed time for completed steps."""
        if self.status == LaunchStepStatus.COMPLETED and self.duration is not None:
            return f"{self.title} ({self.duration:.1f}s)"
        return self.title


@dataclass
class Site:
    """A named publication destination of a project."""

    name: str
    domain: str
    service: str = DEFAULT_SERVICE
    team_id: str | None = None
    status: SiteStatus = SiteStatus.IDLE
    steps: list[LaunchStep] = field(default_factory=list)

    def apply_step(self, step: LaunchStep) -> None:
        """Record a step update.

        Replaces the most recent step with the same title, or appends.
        """
        for index in range(len(self.steps) - 1, -1, -1):
            if self.steps[index].title == step.title:
                self.steps[index] = step
                return
        self.steps.append(step)

    def reset(self) -> None:
        """Clear steps before a new launch."""
        self.steps.clear()
        self.status = SiteStatus.IDLE


@dataclass
class Task:
    """A named project script."""

    name: str
    command: str


@dataclass
class Project:
    """A local project that can be launched to its sites.

    Attributes:
        name: Display name.
        path: Project root directory.
        tasks: Scripts declared by the project.
        sites: Publication destinations.
        launch_directory: Sub-directory to publish instead of the root.
    """

    name: str
    path: Path
    tasks: list[Task] = field(default_factory=list)
    sites: list[Site] = field(default_factory=list)
    launch_directory: str | None = None

    @property
    def build_task(self) -> Task | None:
        """The task named 'build', if declared."""
        for task in self.tasks:
            if task.name == "build":
                return task
        return None

    def get_site(self, name: str) -> Site | None:
        """Find a site by name."""
        for site in self.sites:
            if site.name == name:
                return site
        return None


# =============================================================================
# Team selection
# =============================================================================


@dataclass(frozen=True)
class TeamSelected:
    """The user picked a team."""

    team_id: str


@dataclass(frozen=True)
class RefreshTeamList:
    """The user wants the team list fetched again."""


@dataclass(frozen=True)
class CreateNewTeam:
    """The user will create a team, then refresh."""


@dataclass(frozen=True)
class TeamSelectionCancelled:
    """The user gave up on team selection."""


TeamSelectionResult = Union[TeamSelected, RefreshTeamList, CreateNewTeam, TeamSelectionCancelled]

# Called with the available teams; blocks until the user answers
TeamResolver = Callable[["TeamList"], TeamSelectionResult]


# =============================================================================
# Progress events
# =============================================================================


@dataclass(frozen=True)
class LaunchEvent:
    """A step changed.

    Attributes:
        step: Snapshot of the step after the change.
        index: Position of the step in the launch's step list.
    """

    step: LaunchStep
    index: int


@dataclass(frozen=True)
class TaskOutputEvent:
    """A line of build task output."""

    task: str
    line: str


StreamEvent = Union[LaunchEvent, TaskOutputEvent]


class EventStream:
    """Thread-safe FIFO of launch events.

    The launcher puts events and closes the stream when it returns; the
    caller iterates (blocking) or drains (non-blocking).
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: queue.Queue[object] = queue.Queue()
        self._closed = False

    def put(self, event: StreamEvent) -> None:
        """Publish an event."""
        if self._closed:
            raise RuntimeError("Event stream is closed")
        self._queue.put(event)

    def close(self) -> None:
        """Signal that no more events will be published."""
        if not self._closed:
            self._closed = True
            self._queue.put(self._CLOSED)

    @property
    def closed(self) -> bool:
        """Check if the stream was closed."""
        return self._closed

    def __iter__(self) -> Iterator[StreamEvent]:
        """Yield events until the stream is closed."""
        while True:
            item = self._queue.get()
            if item is self._CLOSED:
                return
            yield item  # type: ignore[misc]

    def drain(self) -> list[StreamEvent]:
        """Return all events queued so far without blocking."""
        events: list[StreamEvent] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return events
            if item is self._CLOSED:
                return events
            events.append(item)  # type: ignore[arg-type]

    def steps(self) -> list[LaunchStep]:
        """Drain and keep only step snapshots, in order."""
        return [e.step for e in self.drain() if isinstance(e, LaunchEvent)]


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class LaunchResult:
    """Final outcome of a launch."""

    outcome: LaunchOutcome
    message: str

    @classmethod
    def succeeded(cls, message: str) -> LaunchResult:
        return cls(LaunchOutcome.SUCCEEDED, message)

    @classmethod
    def failed(cls, message: str) -> LaunchResult:
        return cls(LaunchOutcome.FAILED, message)

    @classmethod
    def cancelled(cls, message: str = "Launch cancelled") -> LaunchResult:
        return cls(LaunchOutcome.CANCELLED, message)

    @property
    def success(self) -> bool:
        """Check if the launch succeeded."""
        return self.outcome == LaunchOutcome.SUCCEEDED

    @property
    def is_cancelled(self) -> bool:
        """Check if the launch was cancelled."""
        return self.outcome == LaunchOutcome.CANCELLED
