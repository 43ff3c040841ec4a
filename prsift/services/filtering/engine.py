"""Composes structured filters and fuzzy search into one deterministic pipeline."""

from collections.abc import Iterable
from logging import getLogger

from prsift.services.github.models import PullRequest, Team

from .fuzzy import FuzzyMatcher
from .metadata import TeamsIdle, TeamsFailed, TeamsLoaded, TeamsLoading
from .models import FilterConfiguration

logger = getLogger(__name__)

TeamsInput = Iterable[Team] | TeamsIdle | TeamsLoading | TeamsLoaded | TeamsFailed | None


def _resolve_teams(teams: TeamsInput) -> list[Team]:
    """Normalize the accepted team inputs to a list; anything but loaded data is empty."""
    if teams is None or isinstance(teams, (TeamsIdle, TeamsLoading, TeamsFailed)):
        return []
    if isinstance(teams, TeamsLoaded):
        return list(teams.teams)
    return list(teams)


def team_repositories(selected_teams: Iterable[str], teams: Iterable[Team]) -> frozenset[str]:
    """Union of repositories of the teams whose slug or full slug is selected."""
    selected = frozenset(selected_teams)
    repositories: set[str] = set()
    for team in teams:
        if team.slug in selected or team.full_slug in selected:
            repositories.update(team.repositories)
    return frozenset(repositories)


class FilterEngine:
    """Applies organization, repository and team filters, then fuzzy search.

    Set-membership filters run first so the more expensive similarity scoring
    only sees the already narrowed list. The result depends only on the inputs.
    """

    def __init__(self, matcher: FuzzyMatcher | None = None) -> None:
        self.matcher = matcher or FuzzyMatcher()

    def apply(
        self,
        configuration: FilterConfiguration,
        query: str,
        pull_requests: list[PullRequest],
        teams: TeamsInput = None,
    ) -> list[PullRequest]:
        """Return pull_requests narrowed by configuration and ranked by query.

        Args:
            configuration: Structured filters; empty selections do not constrain
            query: Free-text search; whitespace-only means no search
            pull_requests: Candidates, in display order
            teams: Team data used to resolve selected teams to repositories

        Returns:
            Filtered list. Without a query the input order is preserved, otherwise
            the order is the fuzzy ranking.
        """
        working = list(pull_requests)

        if configuration.selected_organizations:
            working = [pr for pr in working if pr.repository_owner in configuration.selected_organizations]
            logger.debug(f"Organization filter kept {len(working)} pull requests")

        if configuration.selected_repositories:
            working = [pr for pr in working if pr.repository_full_name in configuration.selected_repositories]
            logger.debug(f"Repository filter kept {len(working)} pull requests")

        if configuration.selected_teams:
            available_teams = _resolve_teams(teams)
            if not available_teams:
                logger.warning("Team filter selected but no team data is available; no pull requests match")
            allowed = team_repositories(configuration.selected_teams, available_teams)
            working = [pr for pr in working if pr.repository_full_name in allowed]
            logger.debug(f"Team filter kept {len(working)} pull requests")

        trimmed_query = query.strip()
        if trimmed_query:
            working = self.matcher.match(trimmed_query, working)

        return working


_default_engine = FilterEngine()


def apply_filters(
    configuration: FilterConfiguration,
    query: str,
    pull_requests: list[PullRequest],
    teams: TeamsInput = None,
) -> list[PullRequest]:
    """Run the default FilterEngine."""
    return _default_engine.apply(configuration, query, pull_requests, teams)
