"""Launch commands for the sitelaunch CLI.

Commands:
- launch: Publish a project to one of its sites
- sites: List the sites a project declares
"""

from __future__ import annotations

import queue
import sys
import threading
from collections.abc import Callable
from pathlib import Path

import click

from sitelaunch.cli.config import get_api_key
from sitelaunch.client.api import TeamList
from sitelaunch.core.cancel import CancellationToken
from sitelaunch.core.types import LaunchStepStatus
from sitelaunch.publish.launcher import Launcher
from sitelaunch.publish.project import ProjectError, load_project
from sitelaunch.publish.types import (
    CreateNewTeam,
    EventStream,
    LaunchEvent,
    LaunchResult,
    Project,
    RefreshTeamList,
    Site,
    TaskOutputEvent,
    TeamSelected,
    TeamSelectionCancelled,
    TeamSelectionResult,
)

EXIT_FAILED = 1
EXIT_CANCELLED = 130

STATUS_SYMBOLS = {
    LaunchStepStatus.PENDING: " ",
    LaunchStepStatus.RUNNING: ">",
    LaunchStepStatus.PAUSED: "?",
    LaunchStepStatus.COMPLETED: "+",
    LaunchStepStatus.FAILED: "x",
}

project_option = click.option(
    "--project",
    "-p",
    "project_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Project directory containing package.json.",
)


def _load_project_or_exit(project_dir: Path) -> Project:
    try:
        return load_project(project_dir)
    except ProjectError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)


def _pick_site(project: Project, site_name: str | None) -> Site:
    if not project.sites:
        click.echo(f"Error: {project.name} declares no sites (bob.sites in package.json).", err=True)
        sys.exit(EXIT_FAILED)
    if site_name is None:
        if len(project.sites) == 1:
            return project.sites[0]
        names = ", ".join(s.name for s in project.sites)
        click.echo(f"Error: several sites declared, pick one of: {names}", err=True)
        sys.exit(EXIT_FAILED)
    site = project.get_site(site_name)
    if site is None:
        click.echo(f"Error: unknown site {site_name!r}.", err=True)
        sys.exit(EXIT_FAILED)
    return site


def prompt_team_selection(team_list: TeamList) -> TeamSelectionResult:
    """Ask the user to pick a team on the terminal."""
    click.echo("\nThis domain requires a team.")
    for i, team in enumerate(team_list.teams, start=1):
        click.echo(f"  {i}. {team.label}")
    if not team_list.teams:
        click.echo("  (no teams yet)")
    click.echo("  r. Refresh list")
    click.echo(f"  c. Create a team ({team_list.manage_url})")
    click.echo("  q. Cancel")

    while True:
        answer = click.prompt("Team", default="q" if not team_list.teams else "1").strip().lower()
        if answer == "r":
            return RefreshTeamList()
        if answer == "c":
            click.launch(team_list.manage_url)
            return CreateNewTeam()
        if answer == "q":
            return TeamSelectionCancelled()
        if answer.isdigit() and 1 <= int(answer) <= len(team_list.teams):
            return TeamSelected(team_list.teams[int(answer) - 1].id)
        click.echo("Please enter a team number, r, c or q.")


class MainThreadResolver:
    """Team resolver that forwards prompts to the main thread.

    The launcher calls it from its worker thread; the main thread answers
    through serve_pending, so the prompt sees Ctrl-C like any other input.
    """

    def __init__(
        self,
        token: CancellationToken,
        prompt: Callable[[TeamList], TeamSelectionResult] = prompt_team_selection,
        poll_interval: float = 0.1,
    ) -> None:
        self._token = token
        self._prompt = prompt
        self._poll_interval = poll_interval
        self._requests: queue.Queue[tuple[TeamList, queue.Queue[TeamSelectionResult]]] = (
            queue.Queue()
        )

    def __call__(self, team_list: TeamList) -> TeamSelectionResult:
        reply: queue.Queue[TeamSelectionResult] = queue.Queue(maxsize=1)
        self._requests.put((team_list, reply))
        while True:
            try:
                return reply.get(timeout=self._poll_interval)
            except queue.Empty:
                if self._token.is_cancelled:
                    return TeamSelectionCancelled()

    def serve_pending(self) -> None:
        """Answer queued prompts. Call from the main thread."""
        while True:
            try:
                team_list, reply = self._requests.get_nowait()
            except queue.Empty:
                return
            reply.put(self._prompt(team_list))


class EventPrinter:
    """Renders launch events as lines on the terminal."""

    def __init__(self, show_output: bool = False) -> None:
        self._show_output = show_output
        self._seen: dict[int, tuple[LaunchStepStatus, int]] = {}

    def __call__(self, event: object) -> None:
        if isinstance(event, TaskOutputEvent):
            if self._show_output:
                click.echo(f"    | {event.line}")
            return
        if not isinstance(event, LaunchEvent):
            return

        step = event.step
        status, logged = self._seen.get(event.index, (None, 0))
        for line in step.logs[logged:]:
            click.echo(f"    {line}")
        if step.status != status:
            symbol = STATUS_SYMBOLS[step.status]
            suffix = f" - {step.message}" if step.message else ""
            click.echo(f"[{symbol}] {step.title_with_duration}{suffix}")
        self._seen[event.index] = (step.status, len(step.logs))


def _pump(
    events: EventStream,
    worker: threading.Thread,
    printer: EventPrinter,
    resolver: MainThreadResolver | None,
) -> None:
    """Print events and serve prompts until the worker finishes."""
    while worker.is_alive():
        if resolver is not None:
            resolver.serve_pending()
        for event in events.drain():
            printer(event)
        worker.join(0.05)
    for event in events.drain():
        printer(event)


@click.command()
@click.argument("site_name", required=False)
@project_option
@click.option("--key", help="API key (default: $SITELAUNCH_API_KEY or config file).")
@click.option("--team", help="Team ID to publish under.")
@click.option("--no-build", is_flag=True, help="Skip the build task.")
@click.option("--non-interactive", is_flag=True, help="Never prompt for a team.")
@click.option("--show-output", is_flag=True, help="Show build task output.")
def launch(
    site_name: str | None,
    project_dir: Path,
    key: str | None,
    team: str | None,
    no_build: bool,
    non_interactive: bool,
    show_output: bool,
) -> None:
    """Publish a project to one of its sites.

    SITE_NAME may be omitted when the project declares a single site.
    Press Ctrl-C to cancel.
    """
    project = _load_project_or_exit(project_dir)
    site = _pick_site(project, site_name)
    if team:
        site.team_id = team
    if no_build:
        project.tasks = [t for t in project.tasks if t.name != "build"]

    credential = get_api_key(site.service, key)
    if not credential:
        click.echo(f"Error: no API key for {site.service}.", err=True)
        click.echo(f"Run 'sitelaunch login --service {site.service}' or pass --key.", err=True)
        sys.exit(EXIT_FAILED)

    click.echo(f"Launching {project.name} to {site.name} ({site.domain} on {site.service})")

    launcher = Launcher()
    events = EventStream()
    token = CancellationToken()
    results: list[LaunchResult] = []
    resolver = None if non_interactive else MainThreadResolver(token)

    def run() -> None:
        results.append(
            launcher.launch(
                project,
                site,
                credential,
                events=events,
                cancel_token=token,
                resolver=resolver,
            )
        )

    worker = threading.Thread(target=run, name="sitelaunch-launch", daemon=True)
    worker.start()

    printer = EventPrinter(show_output=show_output)
    try:
        _pump(events, worker, printer, resolver)
    except (KeyboardInterrupt, click.Abort):
        click.echo("\nCancelling... (Ctrl-C again to quit)", err=True)
        token.cancel()
        try:
            _pump(events, worker, printer, None)
        except (KeyboardInterrupt, click.Abort):
            click.echo("Aborted.", err=True)
            sys.exit(EXIT_CANCELLED)
    worker.join()

    result = results[0] if results else LaunchResult.failed("Launch did not finish")
    if result.success:
        click.echo(result.message)
        return
    if result.is_cancelled:
        click.echo(result.message, err=True)
        sys.exit(EXIT_CANCELLED)
    click.echo(f"Error: {result.message}", err=True)
    sys.exit(EXIT_FAILED)


@click.command()
@project_option
def sites(project_dir: Path) -> None:
    """List the sites a project declares."""
    project = _load_project_or_exit(project_dir)
    if not project.sites:
        click.echo("No sites declared.")
        return
    for site in project.sites:
        team = f" team={site.team_id}" if site.team_id else ""
        click.echo(f"{site.name}: {site.domain} on {site.service}{team}")
    if project.launch_directory:
        click.echo(f"Launch directory: {project.launch_directory}")
    if project.build_task:
        click.echo(f"Build: {project.build_task.command}")
