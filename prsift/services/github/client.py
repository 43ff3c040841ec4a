"""Async GitHub API client using httpx."""

import asyncio
import time
from logging import getLogger
from typing import Any

import httpx
from pydantic import SecretStr

logger = getLogger(__name__)


class GitHubAPIClient:
    """Async GitHub API client for making API requests."""

    def __init__(self, token: SecretStr, base_url: str = "https://api.github.com") -> None:
        """Initialize GitHub API client.

        Args:
            token: GitHub token
            base_url: Base URL for GitHub API (default: https://api.github.com)
        """
        self.token = token.get_secret_value()
        self.base_url = base_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GitHubAPIClient":
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=httpx.Timeout(30.0, connect=10.0),
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        max_retries: int = 3,
        retry_count: int = 0,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make HTTP request with automatic retry on timeout and rate limiting.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: URL to request
            max_retries: Maximum number of retries
            retry_count: Current retry attempt (internal use)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            httpx.Response object

        Raises:
            httpx.HTTPStatusError: If the request fails after retries
            httpx.TimeoutException: If request times out after retries
        """
        if not self._client:
            raise RuntimeError("Client not initialized - use async with context manager")

        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response

        except httpx.TimeoutException:
            if retry_count < max_retries:
                wait_time = 2**retry_count  # 1, 2, 4 seconds
                logger.warning(
                    f"Timeout on {method} {url} (attempt {retry_count + 1}/{max_retries}). "
                    f"Waiting {wait_time} seconds before retry..."
                )
                await asyncio.sleep(wait_time)
                return await self._request_with_retry(method, url, max_retries, retry_count + 1, **kwargs)
            logger.error(f"{method} {url} failed after {max_retries} retries due to timeout")
            raise

        except httpx.HTTPStatusError as e:
            # Only rate limiting is retried; a plain 403 is a permission problem
            if e.response.status_code in (403, 429) and retry_count < max_retries:
                reset_time = e.response.headers.get("X-RateLimit-Reset")
                remaining = e.response.headers.get("X-RateLimit-Remaining", "")
                is_rate_limit = e.response.status_code == 429 or remaining == "0"

                if is_rate_limit:
                    if reset_time:
                        wait_time = min(int(reset_time) - int(time.time()), 60)
                        wait_time = max(wait_time, 1)
                    else:
                        wait_time = 2**retry_count

                    logger.warning(
                        f"Rate limit hit on {method} {url} (attempt {retry_count + 1}/{max_retries}). "
                        f"Waiting {wait_time} seconds before retry..."
                    )
                    await asyncio.sleep(wait_time)
                    return await self._request_with_retry(method, url, max_retries, retry_count + 1, **kwargs)
            raise

    async def _get_all_pages(self, url: str, per_page: int = 100) -> list[dict[str, Any]]:
        """Fetch every page of a list endpoint.

        Args:
            url: Full URL of a GitHub list endpoint
            per_page: Results per page (max 100)

        Returns:
            Concatenated items from all pages

        Raises:
            httpx.HTTPStatusError: If any page request fails
        """
        page = 1
        all_items: list[dict[str, Any]] = []

        while True:
            response = await self._request_with_retry("GET", url, params={"per_page": per_page, "page": page})
            items: list[dict[str, Any]] = response.json()

            if not items:
                break

            all_items.extend(items)

            if len(items) < per_page:
                break

            page += 1

        return all_items

    async def search_issues(
        self,
        query: str,
        sort: str = "updated",
        order: str = "desc",
        per_page: int = 100,
        page: int = 1,
    ) -> dict[str, Any]:
        """Search for issues/PRs using GitHub search API.

        Args:
            query: GitHub search query (e.g., "is:pr is:open review-requested:@me")
            sort: Sort field (created, updated, comments)
            order: Sort order (asc, desc)
            per_page: Results per page (max 100)
            page: Page number

        Returns:
            Search results dictionary with 'total_count' and 'items' keys

        Raises:
            httpx.HTTPStatusError: If the request fails after retries
        """
        params: dict[str, str | int] = {
            "q": query,
            "sort": sort,
            "order": order,
            "per_page": min(per_page, 100),
            "page": page,
        }

        response = await self._request_with_retry("GET", f"{self.base_url}/search/issues", params=params)
        result: dict[str, Any] = response.json()
        return result

    async def search_all_issues(
        self,
        query: str,
        sort: str = "updated",
        order: str = "desc",
        per_page: int = 100,
        max_results: int | None = None,
    ) -> list[dict[str, Any]]:
        """Search for all issues/PRs, handling pagination automatically.

        Pages are fetched sequentially; a failing page aborts the whole search so
        callers never act on a silently truncated result.

        Args:
            query: GitHub search query
            sort: Sort field (created, updated, comments)
            order: Sort order (asc, desc)
            per_page: Results per page (max 100)
            max_results: Maximum total results to fetch (None for all)

        Returns:
            List of all matching issues/PRs

        Raises:
            httpx.HTTPStatusError: If the request fails
        """
        logger.debug(f"Fetching first page of search results (query: {query})")
        first_result = await self.search_issues(query, sort, order, per_page, 1)
        total_count = first_result.get("total_count", 0)
        all_items: list[dict[str, Any]] = list(first_result.get("items", []))

        target_count = min(total_count, max_results) if max_results else total_count
        logger.debug(f"Total results available: {total_count}, fetching {target_count}")

        page = 2
        while len(all_items) < target_count:
            result = await self.search_issues(query, sort, order, per_page, page)
            items = result.get("items", [])
            if not items:
                break
            all_items.extend(items)
            page += 1

        return all_items[:target_count]

    async def get_user_teams(self) -> list[dict[str, Any]]:
        """Get the teams the authenticated user belongs to.

        Requires the read:org scope; GitHub answers 403 without it.

        Returns:
            List of team dictionaries with 'slug', 'name' and 'organization' keys

        Raises:
            httpx.HTTPStatusError: If the request fails
        """
        return await self._get_all_pages(f"{self.base_url}/user/teams")

    async def get_team_repositories(self, org: str, team_slug: str) -> list[dict[str, Any]]:
        """Get the repositories a team has access to.

        Args:
            org: Organization login
            team_slug: Team slug

        Returns:
            List of repository dictionaries including 'full_name'

        Raises:
            httpx.HTTPStatusError: If the request fails
        """
        return await self._get_all_pages(f"{self.base_url}/orgs/{org}/teams/{team_slug}/repos")

    async def get_pull_request(self, owner: str, repo: str, number: int) -> dict[str, Any]:
        """Get a single pull request, including its change statistics.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number

        Returns:
            Pull request dictionary with 'additions', 'deletions', 'changed_files'
            and 'requested_reviewers' keys

        Raises:
            httpx.HTTPStatusError: If the request fails
        """
        response = await self._request_with_retry("GET", f"{self.base_url}/repos/{owner}/{repo}/pulls/{number}")
        result: dict[str, Any] = response.json()
        return result

    async def get_reviews(self, owner: str, repo: str, number: int) -> list[dict[str, Any]]:
        """Get every review submitted on a pull request.

        Returns:
            List of review dictionaries with 'user', 'state' and 'submitted_at' keys

        Raises:
            httpx.HTTPStatusError: If the request fails
        """
        return await self._get_all_pages(f"{self.base_url}/repos/{owner}/{repo}/pulls/{number}/reviews")
