from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings


class GitHubSettings(BaseSettings):
    """GitHub API configuration and authentication settings."""

    github_token: SecretStr | None = Field(
        default=None,
        description="GitHub token used to fetch review requests and teams (needs read:org for teams)",
    )

    github_api_url: str = Field(
        default="https://api.github.com",
        description="Base URL for the GitHub REST API (change for GitHub Enterprise)",
    )

    github_max_review_requests: int = Field(
        default=500,
        description="Maximum number of review-requested pull requests to fetch",
    )

    github_details_concurrency: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum concurrent pull request detail requests when --show-details is used",
    )

    @field_validator("github_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the API URL so paths can be appended directly."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_api_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("github_max_review_requests")
    @classmethod
    def validate_max_review_requests(cls, v: int) -> int:
        # The search API serves at most 1000 results per query
        if v < 1 or v > 1000:
            raise ValueError("github_max_review_requests must be between 1 and 1000")
        return v
