"""Service for collecting the user's GitHub teams and their repositories."""

import asyncio
import hashlib
from logging import getLogger
from typing import Any

from prsift.services.cache import get_cached, set_cached
from prsift.settings import settings

from .client import GitHubAPIClient
from .errors import APIErrorKind, GitHubAPIError, classify_http_error
from .models import Team

logger = getLogger(__name__)

TEAMS_CACHE_KEY_PREFIX = "teams"


def teams_cache_key(github_client: GitHubAPIClient) -> str:
    """Cache key scoped to the token and API host, so users never see each other's teams."""
    digest = hashlib.sha256(f"{github_client.base_url}\n{github_client.token}".encode()).hexdigest()[:16]
    return f"{TEAMS_CACHE_KEY_PREFIX}:{digest}"


def _team_to_cache(team: Team) -> dict[str, Any]:
    return {
        "slug": team.slug,
        "name": team.name,
        "organization_login": team.organization_login,
        "repositories": list(team.repositories),
    }


def _team_from_cache(data: dict[str, Any]) -> Team:
    return Team(
        slug=data["slug"],
        name=data["name"],
        organization_login=data["organization_login"],
        repositories=tuple(data.get("repositories", [])),
    )


class TeamCollector:
    """Collects the authenticated user's teams along with each team's repositories."""

    def __init__(self, github_client: GitHubAPIClient, max_concurrent_requests: int = 5) -> None:
        self.github_client = github_client
        self.max_concurrent_requests = max_concurrent_requests

    async def collect_teams(self, use_cache: bool = True) -> list[Team]:
        """Collect teams for the authenticated user.

        Args:
            use_cache: Whether to serve and store results through the persistent cache

        Returns:
            Teams sorted by full slug

        Raises:
            GitHubAPIError: FORBIDDEN when the token lacks the read:org scope,
                another kind for any other failure
        """
        cache_key = teams_cache_key(self.github_client)
        if use_cache:
            cached = await get_cached(cache_key, alias="persistent")
            if isinstance(cached, list):
                try:
                    teams = [_team_from_cache(entry) for entry in cached]
                    logger.debug(f"Cache hit for teams ({len(teams)} teams)")
                    return teams
                except (KeyError, TypeError) as e:
                    logger.warning(f"Invalid cached team data, fetching fresh: {e}")

        try:
            raw_teams = await self.github_client.get_user_teams()
        except Exception as e:
            error = classify_http_error(e)
            if error.kind == APIErrorKind.FORBIDDEN:
                logger.warning("Team data unavailable: token lacks permission to read teams")
            else:
                logger.warning(f"Failed to fetch teams ({error.kind.value}): {e}")
            raise error from e

        semaphore = asyncio.Semaphore(self.max_concurrent_requests)

        async def build_team(raw: dict[str, Any]) -> Team:
            org = raw["organization"]["login"]
            slug = raw["slug"]
            async with semaphore:
                try:
                    repos = await self.github_client.get_team_repositories(org, slug)
                except Exception as e:
                    raise classify_http_error(e) from e
            return Team(
                slug=slug,
                name=raw.get("name") or slug,
                organization_login=org,
                repositories=tuple(sorted(repo["full_name"] for repo in repos)),
            )

        try:
            teams = await asyncio.gather(*(build_team(raw) for raw in raw_teams))
        except GitHubAPIError as e:
            logger.warning(f"Failed to fetch team repositories ({e.kind.value}): {e}")
            raise
        except (KeyError, TypeError) as e:
            raise GitHubAPIError(APIErrorKind.INVALID_RESPONSE, f"Unexpected team data from GitHub: {e}") from e

        result = sorted(teams, key=lambda team: team.full_slug)
        logger.info(f"Collected {len(result)} teams")

        if use_cache:
            await set_cached(
                cache_key,
                [_team_to_cache(team) for team in result],
                ttl=settings.cache_persistent_ttl,
                alias="persistent",
            )
        return result
