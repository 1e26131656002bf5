"""Publishing: bundle, suggest, upload and finalize a site.

Architecture:
    Launcher -> [build] -> discovery -> bundle -> suggest -> uploads -> finalize

Components:
- **Launcher**: Runs the phases in order and reports progress as events
- **build_bundle / ContentTable**: Hash the directory into a bundle tree
- **upload_missing_parts**: Size-bounded, largest-first batch uploads
- **resolve_team**: Interactive team selection when the site needs one
- **SubprocessTaskRunner**: Runs the project's build task
"""

from sitelaunch.publish.build import SubprocessTaskRunner, TaskRunner
from sitelaunch.publish.bundle import (
    Bundle,
    ContentTable,
    build_bundle,
    encode_node,
    resolve_bundle_root,
)
from sitelaunch.publish.chunker import plan_chunks, upload_missing_parts
from sitelaunch.publish.launcher import Launcher, LaunchState
from sitelaunch.publish.project import ProjectError, load_project
from sitelaunch.publish.teams import resolve_team
from sitelaunch.publish.types import (
    BuildError,
    BundleError,
    CreateNewTeam,
    EventStream,
    LaunchError,
    LaunchEvent,
    LaunchResult,
    LaunchStep,
    MissingContentError,
    Project,
    RefreshTeamList,
    Site,
    Task,
    TaskOutputEvent,
    TeamAuthError,
    TeamResolver,
    TeamSelected,
    TeamSelectionCancelled,
    TeamSelectionResult,
)

__all__ = [
    "Bundle",
    "BuildError",
    "BundleError",
    "ContentTable",
    "CreateNewTeam",
    "EventStream",
    "LaunchError",
    "LaunchEvent",
    "LaunchResult",
    "LaunchState",
    "LaunchStep",
    "Launcher",
    "MissingContentError",
    "Project",
    "ProjectError",
    "RefreshTeamList",
    "Site",
    "SubprocessTaskRunner",
    "Task",
    "TaskOutputEvent",
    "TaskRunner",
    "TeamAuthError",
    "TeamResolver",
    "TeamSelected",
    "TeamSelectionCancelled",
    "TeamSelectionResult",
    "build_bundle",
    "encode_node",
    "load_project",
    "plan_chunks",
    "resolve_bundle_root",
    "resolve_team",
    "upload_missing_parts",
]
