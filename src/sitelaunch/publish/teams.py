"""Team selection when a destination requires a team scope.

The launcher pauses, shows the available teams through a resolver callback
and resumes with the chosen team id. Refresh and create answers loop back
to fetch the list again.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from sitelaunch.client.api import APIError
from sitelaunch.publish.types import (
    CreateNewTeam,
    RefreshTeamList,
    TeamAuthError,
    TeamResolver,
    TeamSelected,
    TeamSelectionCancelled,
)

if TYPE_CHECKING:
    from sitelaunch.client.api import PublishClient
    from sitelaunch.core.cancel import CancellationToken

logger = logging.getLogger(__name__)

NO_RESOLVER_MESSAGE = (
    "This destination requires a team ID; configure one for the site "
    "or provide an interactive resolver."
)
CANCELLED_MESSAGE = "Team selection was cancelled. Launch cannot proceed without a team ID."


def resolve_team(
    client: PublishClient,
    resolver: TeamResolver | None,
    cancel_token: CancellationToken | None = None,
    log: Callable[[str], None] | None = None,
) -> str:
    """Ask the resolver for a team until it picks one or gives up.

    Args:
        client: API client used to list teams.
        resolver: Interactive callback; None means no one can answer.
        cancel_token: Checked around every blocking call.
        log: Optional progress line callback.

    Returns:
        The selected team id.

    Raises:
        TeamAuthError: If no resolver is available, teams cannot be
            fetched, or the user cancels selection.
        LaunchCancelled: If the launch is cancelled meanwhile.
    """
    emit = log or (lambda line: None)

    if resolver is None:
        emit("Team ID required for this domain")
        emit("Configure a team for the site (e.g. \"team\": \"<team-id>\" in bob.sites)")
        raise TeamAuthError(NO_RESOLVER_MESSAGE)

    while True:
        if cancel_token:
            cancel_token.raise_if_cancelled()

        emit("Fetching available teams")
        try:
            team_list = client.list_teams()
        except APIError as e:
            raise TeamAuthError(f"Failed to fetch teams: {e}") from e

        if cancel_token:
            cancel_token.raise_if_cancelled()

        if team_list.teams:
            emit(f"Found {len(team_list.teams)} team(s)")
        else:
            emit("No teams found for this account")
            emit(f"Create a team at {team_list.manage_url}")

        result = resolver(team_list)

        if cancel_token:
            cancel_token.raise_if_cancelled()

        if isinstance(result, TeamSelected):
            if not result.team_id:
                raise TeamAuthError("No team was selected.")
            logger.info(f"Team selected: {result.team_id}")
            return result.team_id
        if isinstance(result, RefreshTeamList):
            emit("Refreshing team list")
            continue
        if isinstance(result, CreateNewTeam):
            emit(f"Please create a team at {team_list.manage_url}")
            emit('Then select "Refresh" to see the new team')
            continue
        if isinstance(result, TeamSelectionCancelled):
            if not team_list.teams:
                raise TeamAuthError(
                    f"No teams available for this account. Create one at {team_list.manage_url}"
                )
            raise TeamAuthError(CANCELLED_MESSAGE)
        raise TypeError(f"Unexpected team selection result: {result!r}")
