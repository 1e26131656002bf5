"""Tests for the launch data model and event stream."""

from __future__ import annotations

import threading

import pytest

from sitelaunch.core.types import LaunchOutcome, LaunchStepStatus
from sitelaunch.publish.types import (
    EventStream,
    LaunchEvent,
    LaunchResult,
    LaunchStep,
    Site,
    TaskOutputEvent,
)


class TestLaunchStep:
    """Tests for LaunchStep."""

    def test_add_log_returns_copy(self) -> None:
        step = LaunchStep("Creating bundle")
        updated = step.add_log("line one")
        assert step.logs == ()
        assert updated.logs == ("line one",)

    def test_completion_sets_end_time(self) -> None:
        step = LaunchStep("Creating bundle", status=LaunchStepStatus.RUNNING)
        assert step.end_time is None
        done = step.with_status(LaunchStepStatus.COMPLETED, "ok")
        assert done.end_time is not None
        assert done.message == "ok"
        assert done.duration is not None and done.duration >= 0

    def test_pause_keeps_running_clock(self) -> None:
        paused = LaunchStep("Suggesting bundle").with_status(LaunchStepStatus.PAUSED, "waiting")
        assert paused.end_time is None
        assert paused.clear_message().message is None

    def test_title_with_duration(self) -> None:
        step = LaunchStep("Finalizing launch", status=LaunchStepStatus.COMPLETED, start_time=10.0, end_time=11.5)
        assert step.title_with_duration == "Finalizing launch (1.5s)"
        assert LaunchStep("Finalizing launch").title_with_duration == "Finalizing launch"


class TestSite:
    """Tests for Site.apply_step."""

    def test_appends_new_titles(self) -> None:
        site = Site(name="production", domain="example.com")
        site.apply_step(LaunchStep("A"))
        site.apply_step(LaunchStep("B"))
        assert [s.title for s in site.steps] == ["A", "B"]

    def test_replaces_same_title(self) -> None:
        """An update to an existing title should replace it in place."""
        site = Site(name="production", domain="example.com")
        site.apply_step(LaunchStep("A"))
        site.apply_step(LaunchStep("B"))
        site.apply_step(LaunchStep("A", status=LaunchStepStatus.COMPLETED))
        assert [s.title for s in site.steps] == ["A", "B"]
        assert site.steps[0].status == LaunchStepStatus.COMPLETED

    def test_reset(self) -> None:
        site = Site(name="production", domain="example.com")
        site.apply_step(LaunchStep("A"))
        site.reset()
        assert site.steps == []


class TestEventStream:
    """Tests for EventStream."""

    def test_drain_in_order(self) -> None:
        stream = EventStream()
        first = LaunchEvent(LaunchStep("A"), 0)
        second = TaskOutputEvent("build", "done")
        stream.put(first)
        stream.put(second)
        assert stream.drain() == [first, second]
        assert stream.drain() == []

    def test_iteration_ends_on_close(self) -> None:
        """Iterating should block until the producer closes the stream."""
        stream = EventStream()

        def produce() -> None:
            for i in range(3):
                stream.put(LaunchEvent(LaunchStep(f"step {i}"), i))
            stream.close()

        producer = threading.Thread(target=produce)
        producer.start()
        received = [e.index for e in stream if isinstance(e, LaunchEvent)]
        producer.join()
        assert received == [0, 1, 2]

    def test_put_after_close(self) -> None:
        stream = EventStream()
        stream.close()
        assert stream.closed
        with pytest.raises(RuntimeError):
            stream.put(TaskOutputEvent("build", "late"))

    def test_steps_filters_task_output(self) -> None:
        stream = EventStream()
        stream.put(TaskOutputEvent("build", "line"))
        stream.put(LaunchEvent(LaunchStep("A"), 0))
        assert [s.title for s in stream.steps()] == ["A"]


class TestLaunchResult:
    """Tests for LaunchResult."""

    def test_outcomes(self) -> None:
        assert LaunchResult.succeeded("ok").success
        assert LaunchResult.failed("bad").outcome == LaunchOutcome.FAILED
        cancelled = LaunchResult.cancelled()
        assert cancelled.is_cancelled
        assert cancelled.message == "Launch cancelled"
        assert not cancelled.success
