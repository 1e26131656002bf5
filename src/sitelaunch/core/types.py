"""Shared types for sitelaunch.

This module defines enums used by the launcher, the data model and the CLI.
"""

from __future__ import annotations

from enum import Enum


class LaunchStepStatus(str, Enum):
    """Status of a single launch step."""

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


class SiteStatus(str, Enum):
    """Status of a destination site as a whole."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class LaunchOutcome(str, Enum):
    """Final outcome of a launch attempt."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
