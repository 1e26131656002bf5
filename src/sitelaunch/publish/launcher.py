"""Launch orchestration.

A launch publishes one project directory to one site:

    [build] -> discover -> bundle -> suggest [-> team selection -> suggest]
            -> [upload missing parts] -> [if not present: upload bundle -> upload missing parts]
            -> finalize

Each phase is one LaunchStep. Phases run strictly in order; the first
failure or cancellation stops the launch and nothing after it runs.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sitelaunch.client.api import APIError, ApiResponse, ClientFactory, default_client_factory
from sitelaunch.client.discovery import DiscoveryError, ProtocolDiscovery
from sitelaunch.core.cancel import (
    CancellationRegistry,
    CancellationToken,
    LaunchCancelled,
    launch_id,
)
from sitelaunch.core.config import ServiceConfig
from sitelaunch.core.types import LaunchStepStatus, SiteStatus
from sitelaunch.publish.build import SubprocessTaskRunner, TaskRunner
from sitelaunch.publish.bundle import Bundle, ContentTable, build_bundle, resolve_bundle_root
from sitelaunch.publish.chunker import upload_missing_parts
from sitelaunch.publish.teams import resolve_team
from sitelaunch.publish.types import (
    BuildError,
    EventStream,
    LaunchError,
    LaunchEvent,
    LaunchResult,
    LaunchStep,
    MissingContentError,
    Project,
    Site,
    TaskOutputEvent,
    TeamAuthError,
    TeamResolver,
)

if TYPE_CHECKING:
    from sitelaunch.client.api import BundleResponse, PublishClient, SuggestResponse

logger = logging.getLogger(__name__)

STEP_BUILD = "Running build task"
STEP_DISCOVER = "Discovering protocol"
STEP_BUNDLE = "Creating bundle"
STEP_SUGGEST = "Suggesting bundle"
STEP_UPLOAD_BUNDLE = "Uploading bundle"
STEP_UPLOAD_MISSING = "Uploading missing parts"
STEP_FINALIZE = "Finalizing launch"

CANCELLED_STEP_MESSAGE = "cancelled"


class LaunchState:
    """The steps of one launch and which one is active.

    Every change is applied to the site (replace-by-title) and published
    to the event stream, in order.
    """

    def __init__(self, site: Site | None = None, events: EventStream | None = None) -> None:
        self.steps: list[LaunchStep] = []
        self.active: int | None = None
        self._site = site
        self._events = events

    @property
    def current(self) -> LaunchStep | None:
        """The active step, if any."""
        return self.steps[self.active] if self.active is not None else None

    def _set(self, step: LaunchStep) -> None:
        assert self.active is not None
        self.steps[self.active] = step
        self._publish(step)

    def _publish(self, step: LaunchStep) -> None:
        if self._site is not None:
            self._site.apply_step(step)
        if self._events is not None:
            assert self.active is not None
            self._events.put(LaunchEvent(step=step, index=self.active))

    def begin(self, title: str, message: str | None = None) -> LaunchStep:
        """Start a new running step and make it active."""
        step = LaunchStep(title=title, status=LaunchStepStatus.RUNNING, message=message)
        self.steps.append(step)
        self.active = len(self.steps) - 1
        logger.info(title)
        self._publish(step)
        return step

    def log(self, line: str) -> None:
        """Append a log line to the active step."""
        logger.debug(line)
        if self.current is not None:
            self._set(self.current.add_log(line))

    def pause(self, message: str) -> None:
        """Mark the active step paused (waiting on the user)."""
        if self.current is not None:
            self._set(self.current.with_status(LaunchStepStatus.PAUSED, message))

    def resume(self) -> None:
        """Mark the paused step running again."""
        if self.current is not None:
            self._set(self.current.with_status(LaunchStepStatus.RUNNING).clear_message())

    def complete(self, message: str | None = None) -> None:
        """Mark the active step completed."""
        if self.current is not None:
            self._set(self.current.with_status(LaunchStepStatus.COMPLETED, message))

    def fail(self, message: str) -> None:
        """Mark the active step failed, unless it already finished."""
        step = self.current
        if step is None or step.status in (LaunchStepStatus.COMPLETED, LaunchStepStatus.FAILED):
            return
        self._set(step.with_status(LaunchStepStatus.FAILED, message))


@dataclass
class LaunchContext:
    """Everything one launch attempt carries between phases."""

    project: Project
    site: Site
    credential: str
    token: CancellationToken
    state: LaunchState
    resolver: TeamResolver | None = None
    events: EventStream | None = None
    content: ContentTable = field(default_factory=ContentTable)
    client: PublishClient | None = None
    team_id: str | None = None

    def require_client(self) -> PublishClient:
        assert self.client is not None, "discovery must run first"
        return self.client


class Launcher:
    """Publishes projects to their sites.

    Each call to launch() is independent: it gets its own content table,
    client and cancellation token.
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        discovery: ProtocolDiscovery | None = None,
        client_factory: ClientFactory = default_client_factory,
        task_runner: TaskRunner | None = None,
        registry: CancellationRegistry | None = None,
    ) -> None:
        """Initialize the launcher.

        Args:
            config: Timeouts, chunk budget and protocol version.
            discovery: Protocol discovery (created from config if omitted).
            client_factory: Builds the API client once the base URL is known.
            task_runner: Runs the build task (subprocess runner if omitted).
            registry: Where launches without an explicit token register theirs.
        """
        self._config = config or ServiceConfig()
        self._discovery = discovery or ProtocolDiscovery(
            timeout=self._config.timeout,
            protocol_version=self._config.protocol_version,
            cancel_poll_interval=self._config.cancel_poll_interval,
        )
        self._client_factory = client_factory
        self._task_runner = task_runner or SubprocessTaskRunner()
        self.registry = registry or CancellationRegistry()

    def cancel(self, project: Project, site: Site) -> bool:
        """Cancel an in-flight launch started without an explicit token."""
        return self.registry.cancel(launch_id(str(project.path), site.name))

    def launch(
        self,
        project: Project,
        site: Site,
        credential: str,
        events: EventStream | None = None,
        cancel_token: CancellationToken | None = None,
        resolver: TeamResolver | None = None,
    ) -> LaunchResult:
        """Publish project to site.

        Args:
            project: Project to publish.
            site: Destination; its status and steps are updated in place.
            credential: API key for the site's service.
            events: Optional stream receiving every step change; closed
                when this method returns.
            cancel_token: Token to abort the launch. When omitted, one is
                registered in the launcher's registry for the duration.
            resolver: Interactive team selection callback.

        Returns:
            The launch result. Expected failures never raise.
        """
        key = launch_id(str(project.path), site.name)
        if self.registry.is_active(key):
            # The running launch owns site; leave its steps alone.
            if events is not None:
                events.close()
            return LaunchResult.failed(
                f"{project.name} is already launching to {site.name}"
            )

        site.reset()
        site.status = SiteStatus.RUNNING
        state = LaunchState(site, events)

        with ExitStack() as stack:
            if cancel_token is None:
                cancel_token = stack.enter_context(self.registry.open(key))
            ctx = LaunchContext(
                project=project,
                site=site,
                credential=credential,
                token=cancel_token,
                state=state,
                resolver=resolver,
                events=events,
            )
            try:
                result = self._run(ctx)
            except LaunchCancelled:
                logger.info(f"Launch of {project.name} to {site.name} cancelled")
                state.fail(CANCELLED_STEP_MESSAGE)
                result = LaunchResult.cancelled()
            except MissingContentError as e:
                logger.error(f"Launch invariant violated for {site.domain}: {e}")
                state.fail(str(e))
                result = LaunchResult.failed(f"Launch failed: {e}")
            except (LaunchError, APIError, DiscoveryError) as e:
                logger.warning(f"Launch of {project.name} to {site.name} failed: {e}")
                state.fail(str(e))
                result = LaunchResult.failed(str(e))
            except Exception as e:
                logger.exception(f"Unexpected error launching {project.name} to {site.name}")
                state.fail(str(e))
                result = LaunchResult.failed(f"Launch failed: {e}")
            finally:
                if ctx.client is not None:
                    ctx.client.close()
                ctx.content.clear()
                if events is not None:
                    events.close()

        if result.success:
            site.status = SiteStatus.SUCCEEDED
        elif result.is_cancelled:
            site.status = SiteStatus.IDLE
        else:
            site.status = SiteStatus.FAILED
        return result

    # === Phases ===

    def _run(self, ctx: LaunchContext) -> LaunchResult:
        ctx.token.raise_if_cancelled()
        if not ctx.site.domain:
            raise LaunchError(f"Site {ctx.site.name} has no domain configured")
        if not ctx.credential:
            raise LaunchError(f"No API key configured for {ctx.site.service}")
        ctx.team_id = ctx.site.team_id or None

        if ctx.project.build_task is not None:
            self._build(ctx)

        self._discover(ctx)
        bundle = self._assemble(ctx)
        suggestion = self._suggest(ctx, bundle)

        if suggestion.missing:
            self._upload_missing(ctx, suggestion.missing)

        if suggestion.present:
            self._finalize(ctx, bundle.hash)
        else:
            uploaded = self._upload_bundle(ctx, bundle)
            if uploaded.missing:
                self._upload_missing(ctx, uploaded.missing)
            bundle_id = uploaded.id
            if not bundle_id:
                ctx.state.log("Server returned no bundle id, finalizing by bundle hash")
                bundle_id = bundle.hash
            self._finalize(ctx, bundle_id)

        return LaunchResult.succeeded(f"Successfully launched to {ctx.site.domain}")

    def _build(self, ctx: LaunchContext) -> None:
        task = ctx.project.build_task
        assert task is not None
        ctx.token.raise_if_cancelled()
        ctx.state.begin(STEP_BUILD)

        def on_output(line: str) -> None:
            logger.debug(f"[{task.name}] {line}")
            if ctx.events is not None:
                ctx.events.put(TaskOutputEvent(task=task.name, line=line))

        code = self._task_runner.run(ctx.project, task, on_output, ctx.token)
        ctx.token.raise_if_cancelled()
        if code != 0:
            raise BuildError(f"Build task failed (exit code {code})")
        ctx.state.complete()

    def _discover(self, ctx: LaunchContext) -> None:
        ctx.token.raise_if_cancelled()
        ctx.state.begin(STEP_DISCOVER)
        ctx.state.log(f"Discovering protocol from {ctx.site.service}")
        try:
            info = self._discovery.discover(ctx.site.service, ctx.token)
        except DiscoveryError as e:
            raise DiscoveryError(f"Protocol discovery failed: {e}") from e
        ctx.state.log(f"Protocols: {', '.join(info.protocols)}")
        ctx.state.log(f"Base URL: {info.base_url}")
        ctx.token.raise_if_cancelled()
        ctx.client = self._client_factory(info.base_url, ctx.credential, self._config, ctx.token)
        ctx.state.complete()

    def _assemble(self, ctx: LaunchContext) -> Bundle:
        ctx.token.raise_if_cancelled()
        ctx.state.begin(STEP_BUNDLE)
        ctx.content.clear()
        root = resolve_bundle_root(ctx.project.path, ctx.project.launch_directory)
        ctx.state.log(f"Bundling {root}")
        bundle = build_bundle(root, ctx.content, ctx.token)
        ctx.state.log(
            f"{bundle.file_count} files, {len(ctx.content)} unique, "
            f"{ctx.content.total_size} bytes"
        )
        ctx.state.log(f"Bundle {bundle.hash_hex}")
        ctx.token.raise_if_cancelled()
        ctx.state.complete()
        return bundle

    def _suggest(self, ctx: LaunchContext, bundle: Bundle) -> SuggestResponse:
        client = ctx.require_client()
        state = ctx.state
        ctx.token.raise_if_cancelled()
        state.begin(STEP_SUGGEST)

        response = client.suggest(ctx.site.domain, bundle.hash, ctx.team_id)
        self._log_response(state, response)

        if response.team_required:
            state.log("Domain requires team ID authentication")
            state.pause("Waiting for team selection")
            ctx.team_id = resolve_team(client, ctx.resolver, ctx.token, state.log)
            state.resume()
            state.log(f"Using team: {ctx.team_id}")
            state.log("Retrying bundle suggestion")

            response = client.suggest(ctx.site.domain, bundle.hash, ctx.team_id)
            self._log_response(state, response)
            if response.team_required:
                raise TeamAuthError(
                    "Team ID authentication failed. Please verify your team ID is correct."
                )
            state.log("Team authentication successful")

        ctx.token.raise_if_cancelled()
        state.complete(_suggest_summary(response))
        return response

    def _upload_bundle(self, ctx: LaunchContext, bundle: Bundle) -> BundleResponse:
        client = ctx.require_client()
        ctx.token.raise_if_cancelled()
        ctx.state.begin(STEP_UPLOAD_BUNDLE)
        ctx.state.log(f"Uploading {len(bundle.encoded) / 1024:.2f}KB bundle")

        response = client.upload_bundle(ctx.site.domain, bundle.encoded, ctx.team_id)
        ctx.state.log("Upload complete")
        self._log_response(ctx.state, response)
        if response.team_required:
            raise TeamAuthError(
                "Team ID required for upload. This should not happen if "
                "suggestion succeeded. Please report this issue."
            )
        ctx.token.raise_if_cancelled()
        if not response.success:
            raise LaunchError("Upload failed")
        ctx.state.complete()
        return response

    def _upload_missing(self, ctx: LaunchContext, missing: list[str]) -> None:
        client = ctx.require_client()
        ctx.token.raise_if_cancelled()
        ctx.state.begin(STEP_UPLOAD_MISSING, message=f"{len(missing)} parts")
        upload_missing_parts(
            client,
            ctx.site.domain,
            missing,
            ctx.content,
            team_id=ctx.team_id,
            budget=self._config.chunk_budget,
            cancel_token=ctx.token,
            log=ctx.state.log,
        )
        ctx.state.complete()

    def _finalize(self, ctx: LaunchContext, bundle_id: bytes) -> None:
        client = ctx.require_client()
        ctx.token.raise_if_cancelled()
        ctx.state.begin(STEP_FINALIZE)
        ctx.state.log("Requesting finalization")

        response = client.finalize(ctx.site.domain, bundle_id, ctx.team_id)
        self._log_response(ctx.state, response)
        if response.team_required:
            raise TeamAuthError(
                "Team ID required for finalization. This should not happen if "
                "suggestion succeeded. Please report this issue."
            )
        if not response.success:
            raise LaunchError("Finalization failed")
        ctx.state.log("Launch finalized")
        ctx.state.complete()

    @staticmethod
    def _log_response(state: LaunchState, response: ApiResponse) -> None:
        """Surface server errors, warnings and messages in the step log.

        The team-required marker is left to the caller.
        """
        for error in response.other_errors:
            state.log(f"Error: {error}")
        for warning in response.warnings:
            state.log(f"Warning: {warning}")
        for message in response.messages:
            state.log(f"Info: {message}")


def _suggest_summary(response: SuggestResponse) -> str | None:
    count = len(response.missing)
    if response.present:
        if count:
            return f"Bundle present, {count} missing parts"
        return "Bundle already present on server"
    if count:
        return f"{count} missing parts"
    return None
