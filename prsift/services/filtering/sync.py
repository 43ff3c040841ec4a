"""Keeps organization and repository selections consistent while editing filters."""

from collections.abc import Iterable
from logging import getLogger

from .metadata import FilterMetadata, repository_organization
from .models import FilterConfiguration

logger = getLogger(__name__)


class FilterSyncService:
    """Synchronizes organization and repository selections against known metadata.

    Selecting or deselecting an organization cascades to all of its known
    repositories. Repository changes flow back to organizations through
    ``sync_organizations``:

    - all of an organization's repositories selected: the organization is selected
    - some but not all selected: the organization is deselected
    - none selected: the organization's selection is left as it was

    The last rule keeps an organization the user selected directly from being
    cleared just because none of its repositories are individually selected.
    """

    def __init__(self, metadata: FilterMetadata) -> None:
        self.metadata = metadata

    def _repositories_by_organization(self) -> dict[str, frozenset[str]]:
        grouped: dict[str, set[str]] = {}
        for repo in self.metadata.repositories:
            org = repository_organization(repo)
            if org is None:
                continue
            grouped.setdefault(org, set()).add(repo)
        return {org: frozenset(repos) for org, repos in grouped.items()}

    def select_all_repositories(self, organization: str, current_repositories: Iterable[str]) -> frozenset[str]:
        """Add every known repository of organization to current_repositories."""
        return frozenset(current_repositories) | self.metadata.repositories_for(organization)

    def deselect_all_repositories(self, organization: str, current_repositories: Iterable[str]) -> frozenset[str]:
        """Remove every repository of organization from current_repositories."""
        prefix = f"{organization}/"
        return frozenset(repo for repo in current_repositories if not repo.startswith(prefix))

    def sync_organizations(
        self, current_repositories: Iterable[str], current_organizations: Iterable[str]
    ) -> frozenset[str]:
        """Recompute organization selections from repository selections."""
        selected_repositories = frozenset(current_repositories)
        updated = set(current_organizations)
        repos_by_org = self._repositories_by_organization()

        for org in self.metadata.organizations:
            org_repos = repos_by_org.get(org)
            if not org_repos:
                continue

            selected_count = len(selected_repositories & org_repos)
            if selected_count == len(org_repos):
                updated.add(org)
            elif selected_count > 0:
                updated.discard(org)

        return frozenset(updated)

    def toggle_organization(self, organization: str, configuration: FilterConfiguration) -> FilterConfiguration:
        """Select or deselect organization along with all of its repositories."""
        if organization in configuration.selected_organizations:
            organizations = configuration.selected_organizations - {organization}
            repositories = self.deselect_all_repositories(organization, configuration.selected_repositories)
        else:
            organizations = configuration.selected_organizations | {organization}
            repositories = self.select_all_repositories(organization, configuration.selected_repositories)

        logger.debug(f"Toggled organization {organization}: {len(repositories)} repositories selected")
        return configuration.model_copy(
            update={"selected_organizations": organizations, "selected_repositories": repositories}
        )

    def toggle_repository(self, repository: str, configuration: FilterConfiguration) -> FilterConfiguration:
        """Select or deselect a single repository and resync organizations."""
        if repository in configuration.selected_repositories:
            repositories = configuration.selected_repositories - {repository}
        else:
            repositories = configuration.selected_repositories | {repository}

        organizations = self.sync_organizations(repositories, configuration.selected_organizations)
        return configuration.model_copy(
            update={"selected_organizations": organizations, "selected_repositories": repositories}
        )
