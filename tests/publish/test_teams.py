"""Tests for team selection."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from sitelaunch.client.api import Team, TeamList, TransportError
from sitelaunch.core.cancel import CancellationToken, LaunchCancelled
from sitelaunch.publish.teams import CANCELLED_MESSAGE, NO_RESOLVER_MESSAGE, resolve_team
from sitelaunch.publish.types import (
    CreateNewTeam,
    RefreshTeamList,
    TeamAuthError,
    TeamSelected,
    TeamSelectionCancelled,
)

TEAMS = TeamList(teams=[Team(id="t1", name="Ops")], manage_url="https://xmit.test/teams")
NO_TEAMS = TeamList(teams=[], manage_url="https://xmit.test/teams")


def _client(*team_lists: TeamList) -> MagicMock:
    client = MagicMock()
    client.list_teams.side_effect = list(team_lists)
    return client


class TestResolveTeam:
    """Tests for resolve_team."""

    def test_no_resolver(self) -> None:
        """Without a resolver, fail without asking the server."""
        client = _client(TEAMS)
        with pytest.raises(TeamAuthError, match="requires a team ID"):
            resolve_team(client, None)
        client.list_teams.assert_not_called()
        assert "configure one" in NO_RESOLVER_MESSAGE

    def test_selected(self) -> None:
        client = _client(TEAMS)
        shown: list[TeamList] = []

        def resolver(team_list: TeamList) -> TeamSelected:
            shown.append(team_list)
            return TeamSelected("t1")

        assert resolve_team(client, resolver) == "t1"
        assert shown == [TEAMS]

    def test_refresh_fetches_again(self) -> None:
        """Refresh should re-fetch the list and ask again."""
        client = _client(NO_TEAMS, TEAMS)
        answers = iter([RefreshTeamList(), TeamSelected("t1")])
        assert resolve_team(client, lambda _: next(answers)) == "t1"
        assert client.list_teams.call_count == 2

    def test_create_loops_back(self) -> None:
        client = _client(NO_TEAMS, TEAMS)
        answers = iter([CreateNewTeam(), TeamSelected("t1")])
        lines: list[str] = []
        assert resolve_team(client, lambda _: next(answers), log=lines.append) == "t1"
        assert "Please create a team at https://xmit.test/teams" in lines

    def test_cancelled(self) -> None:
        client = _client(TEAMS)
        with pytest.raises(TeamAuthError, match="cancelled") as exc_info:
            resolve_team(client, lambda _: TeamSelectionCancelled())
        assert str(exc_info.value) == CANCELLED_MESSAGE

    def test_cancelled_without_teams(self) -> None:
        """Giving up with no teams should point at the management page."""
        client = _client(NO_TEAMS)
        with pytest.raises(TeamAuthError, match="https://xmit.test/teams"):
            resolve_team(client, lambda _: TeamSelectionCancelled())

    def test_empty_selection(self) -> None:
        client = _client(TEAMS)
        with pytest.raises(TeamAuthError, match="No team was selected"):
            resolve_team(client, lambda _: TeamSelected(""))

    def test_fetch_failure(self) -> None:
        client = MagicMock()
        client.list_teams.side_effect = TransportError("down")
        with pytest.raises(TeamAuthError, match="Failed to fetch teams: down"):
            resolve_team(client, lambda _: TeamSelected("t1"))

    def test_launch_cancelled_while_choosing(self) -> None:
        """Cancelling the launch during selection wins over the answer."""
        client = _client(TEAMS)
        token = CancellationToken()

        def resolver(team_list: TeamList) -> TeamSelected:
            token.cancel()
            return TeamSelected("t1")

        with pytest.raises(LaunchCancelled):
            resolve_team(client, resolver, cancel_token=token)
