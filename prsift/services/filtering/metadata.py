"""Filter options derived from the loaded pull requests and team data."""

from dataclasses import dataclass, field
from logging import getLogger

from prsift.services.github.errors import GitHubAPIError
from prsift.services.github.models import PullRequest, Team

logger = getLogger(__name__)


@dataclass(frozen=True)
class TeamsIdle:
    """Team data has not been requested."""


@dataclass(frozen=True)
class TeamsLoading:
    """A team fetch is in flight."""


@dataclass(frozen=True)
class TeamsLoaded:
    teams: tuple[Team, ...]


@dataclass(frozen=True)
class TeamsFailed:
    error: GitHubAPIError


TeamsState = TeamsIdle | TeamsLoading | TeamsLoaded | TeamsFailed


def repository_organization(repository_full_name: str) -> str | None:
    """Return the owner part of "owner/name", or None if there is no slash."""
    owner, separator, _ = repository_full_name.partition("/")
    if not separator:
        return None
    return owner


@dataclass(frozen=True)
class FilterMetadata:
    """Available filter options."""

    organizations: frozenset[str] = field(default_factory=frozenset)
    repositories: frozenset[str] = field(default_factory=frozenset)
    teams: TeamsState = field(default_factory=TeamsIdle)

    @property
    def are_teams_available(self) -> bool:
        """False only once a team fetch has failed."""
        return not isinstance(self.teams, TeamsFailed)

    @property
    def loaded_teams(self) -> tuple[Team, ...]:
        if isinstance(self.teams, TeamsLoaded):
            return self.teams.teams
        return ()

    @property
    def sorted_organizations(self) -> list[str]:
        return sorted(self.organizations)

    @property
    def sorted_repositories(self) -> list[str]:
        return sorted(self.repositories)

    def repositories_for(self, organization: str) -> frozenset[str]:
        """Known repositories belonging to organization."""
        return frozenset(repo for repo in self.repositories if repository_organization(repo) == organization)

    def with_teams(self, teams: TeamsState) -> "FilterMetadata":
        return FilterMetadata(organizations=self.organizations, repositories=self.repositories, teams=teams)


def derive_metadata(pull_requests: list[PullRequest]) -> FilterMetadata:
    """Extract distinct organizations and repositories from pull_requests.

    Team state starts as TeamsIdle; team data is fetched separately.
    """
    organizations = frozenset(pr.repository_owner for pr in pull_requests)
    repositories = frozenset(pr.repository_full_name for pr in pull_requests)
    logger.debug(
        f"Derived metadata from {len(pull_requests)} pull requests: "
        f"{len(organizations)} organizations, {len(repositories)} repositories"
    )
    return FilterMetadata(organizations=organizations, repositories=repositories, teams=TeamsIdle())
