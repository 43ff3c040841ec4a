"""Filter configuration model."""

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

CURRENT_VERSION = 1
SUPPORTED_VERSIONS = frozenset({CURRENT_VERSION})


class FilterConfiguration(BaseModel):
    """Active structured filters for the pull request list.

    An empty selection for a dimension means no constraint on that dimension.
    Instances are immutable; use the ``with_*`` helpers to derive new ones.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    version: int = CURRENT_VERSION
    selected_organizations: frozenset[str] = Field(default_factory=frozenset)
    selected_repositories: frozenset[str] = Field(default_factory=frozenset)
    selected_teams: frozenset[str] = Field(default_factory=frozenset)

    @field_serializer("selected_organizations", "selected_repositories", "selected_teams")
    def _serialize_sorted(self, value: frozenset[str]) -> list[str]:
        return sorted(value)

    @classmethod
    def empty(cls) -> "FilterConfiguration":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not (self.selected_organizations or self.selected_repositories or self.selected_teams)

    @property
    def active_filter_count(self) -> int:
        """Total number of selected organizations, repositories and teams."""
        return len(self.selected_organizations) + len(self.selected_repositories) + len(self.selected_teams)

    def with_organizations(self, organizations: frozenset[str] | set[str]) -> "FilterConfiguration":
        return self.model_copy(update={"selected_organizations": frozenset(organizations)})

    def with_repositories(self, repositories: frozenset[str] | set[str]) -> "FilterConfiguration":
        return self.model_copy(update={"selected_repositories": frozenset(repositories)})

    def with_teams(self, teams: frozenset[str] | set[str]) -> "FilterConfiguration":
        return self.model_copy(update={"selected_teams": frozenset(teams)})

    def to_json(self) -> str:
        """Serialize to the persisted JSON layout (camelCase keys, sorted lists)."""
        return self.model_dump_json(by_alias=True)
