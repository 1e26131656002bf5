"""Build pre-step.

Before bundling, the project's ``build`` task runs to completion. Any
non-zero exit aborts the launch before network activity.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from sitelaunch.core.cancel import CancellationToken
    from sitelaunch.publish.types import Project, Task

logger = logging.getLogger(__name__)

DEFAULT_RUNNER = "bun"
TERMINATE_GRACE = 5.0  # seconds before SIGKILL


class TaskRunner(Protocol):
    """Runs a project task and reports its exit code."""

    def run(
        self,
        project: Project,
        task: Task,
        on_output: Callable[[str], None],
        cancel_token: CancellationToken | None = None,
    ) -> int:
        """Run task to completion and return its exit code."""
        ...


class SubprocessTaskRunner:
    """Runs ``<runner> run <task>`` in the project directory."""

    def __init__(self, runner: str = DEFAULT_RUNNER) -> None:
        self._runner = runner

    def run(
        self,
        project: Project,
        task: Task,
        on_output: Callable[[str], None],
        cancel_token: CancellationToken | None = None,
    ) -> int:
        """Run the task, streaming merged stdout/stderr lines.

        Returns:
            The process exit code, or -1 if it could not be started.
        """
        args = [self._runner, "run", task.name]
        logger.info(f"Running {' '.join(args)} in {project.path}")
        try:
            process = subprocess.Popen(
                args,
                cwd=project.path,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except OSError as e:
            on_output(f"Error starting task: {e}")
            return -1

        if cancel_token is not None:
            watcher = threading.Thread(
                target=_terminate_on_cancel,
                args=(process, cancel_token),
                name="sitelaunch-build-watch",
                daemon=True,
            )
            watcher.start()

        assert process.stdout is not None
        with process.stdout:
            for line in process.stdout:
                on_output(line.rstrip("\n"))

        code = process.wait()
        logger.info(f"Task {task.name} exited with code {code}")
        return code


def _terminate_on_cancel(process: subprocess.Popen[str], cancel_token: CancellationToken) -> None:
    while process.poll() is None:
        if cancel_token.wait(0.1):
            logger.info("Stopping build task")
            process.terminate()
            try:
                process.wait(TERMINATE_GRACE)
            except subprocess.TimeoutExpired:
                process.kill()
            return
