from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class PullRequest:
    """Domain model for a pull request awaiting review.

    Identified by (repository_owner, repository_name, number). Instances are
    immutable and never modified by the filtering code.
    """

    repository_owner: str
    repository_name: str
    number: int
    title: str
    author_login: str
    url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_draft: bool = False

    @property
    def repository_full_name(self) -> str:
        """Repository in "owner/name" form."""
        return f"{self.repository_owner}/{self.repository_name}"

    @property
    def identifier(self) -> tuple[str, str, int]:
        return (self.repository_owner, self.repository_name, self.number)


@dataclass(frozen=True)
class Team:
    """A GitHub team the authenticated user belongs to."""

    slug: str
    name: str
    organization_login: str
    repositories: tuple[str, ...] = field(default_factory=tuple)

    @property
    def full_slug(self) -> str:
        """Team slug qualified by organization, e.g. "acme/backend"."""
        return f"{self.organization_login}/{self.slug}"


@dataclass(frozen=True)
class Reviewer:
    """A user who has submitted a review, with the state of their latest review."""

    login: str
    state: str


@dataclass(frozen=True)
class PullRequestDetails:
    """Change statistics and reviewers for one pull request.

    Fetched per pull request for display only. Zero counts are real values; a
    pull request without details is "unavailable", not zero.
    """

    additions: int
    deletions: int
    changed_files: int
    requested_reviewers: tuple[str, ...] = field(default_factory=tuple)
    completed_reviewers: tuple[Reviewer, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for name in ("additions", "deletions", "changed_files"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")

    @property
    def total_changes(self) -> int:
        return self.additions + self.deletions

    @property
    def all_reviewers(self) -> tuple[str, ...]:
        """Completed reviewers followed by the ones still pending."""
        return tuple(reviewer.login for reviewer in self.completed_reviewers) + self.requested_reviewers
