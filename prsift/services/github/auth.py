"""GitHub authentication and client factory."""

from logging import getLogger

from pydantic import SecretStr

from prsift.conf.github import GitHubSettings

from .client import GitHubAPIClient

logger = getLogger(__name__)


class GitHubClient:
    """Factory for creating authenticated GitHub API clients."""

    def __init__(self, settings: GitHubSettings | None = None, token_override: str | None = None) -> None:
        """Initialize with settings.

        Args:
            settings: GitHub settings (defaults to global settings)
            token_override: Optional token to override settings
        """
        if settings is None:
            from prsift.settings import settings as global_settings

            settings = global_settings

        self.settings = settings
        self.token_override = token_override

    def get_authenticated_client(self) -> GitHubAPIClient:
        """Return an authenticated GitHub API client.

        Returns:
            Authenticated GitHub API client

        Raises:
            ValueError: If no token is configured
        """
        if self.token_override:
            logger.info("Using token override for authentication")
            return GitHubAPIClient(SecretStr(self.token_override), base_url=self.settings.github_api_url)

        if not self.settings.github_token:
            raise ValueError("GitHub token not configured. Set GITHUB_TOKEN or pass --token.")

        logger.info("Using configured token for authentication")
        return GitHubAPIClient(self.settings.github_token, base_url=self.settings.github_api_url)
