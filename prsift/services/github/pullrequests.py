"""Service for collecting pull requests awaiting the user's review."""

import time
from datetime import datetime
from logging import getLogger
from typing import Any

from .client import GitHubAPIClient
from .errors import classify_http_error
from .models import PullRequest

logger = getLogger(__name__)

REVIEW_REQUEST_QUERY = "is:pr is:open review-requested:@me archived:false"


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_search_item(item: dict[str, Any]) -> PullRequest | None:
    """Convert a search API item into a PullRequest.

    Args:
        item: A single entry from the search API 'items' list

    Returns:
        PullRequest, or None if the item is an issue rather than a pull request

    Raises:
        KeyError: If required fields are missing
        ValueError: If the repository cannot be determined
    """
    if "pull_request" not in item or item["pull_request"] is None:
        return None

    repo_url = item.get("repository_url", "")
    if repo_url:
        owner, name = repo_url.rstrip("/").split("/")[-2:]
    else:
        # Fallback: parse from html_url (https://github.com/owner/repo/pull/1)
        url_parts = item.get("html_url", "").split("/")
        if len(url_parts) < 5:
            raise ValueError(f"Cannot determine repository for item {item.get('number')}")
        owner, name = url_parts[3], url_parts[4]

    return PullRequest(
        repository_owner=owner,
        repository_name=name,
        number=item["number"],
        title=item["title"],
        author_login=item["user"]["login"],
        url=item.get("html_url", ""),
        created_at=_parse_timestamp(item.get("created_at")),
        updated_at=_parse_timestamp(item.get("updated_at")),
        is_draft=bool(item.get("draft", False)),
    )


class ReviewRequestCollector:
    """Service for collecting open pull requests where the user's review is requested."""

    def __init__(self, github_client: GitHubAPIClient, max_results: int | None = None) -> None:
        """Initialize the collector.

        Args:
            github_client: Authenticated GitHub API client
            max_results: Maximum number of pull requests to fetch (None for all)
        """
        self.github_client = github_client
        self.max_results = max_results

    async def collect_review_requests(self) -> list[PullRequest]:
        """Collect pull requests awaiting the authenticated user's review.

        Returns:
            List of PullRequest objects, most recently updated first

        Raises:
            GitHubAPIError: If the GitHub API request fails
        """
        logger.info("Collecting review requests")
        start_time = time.time()

        try:
            items = await self.github_client.search_all_issues(
                query=REVIEW_REQUEST_QUERY,
                sort="updated",
                order="desc",
                max_results=self.max_results,
            )
        except Exception as e:
            error = classify_http_error(e)
            logger.warning(f"Failed to collect review requests ({error.kind.value}): {e}")
            raise error from e

        logger.info(f"GitHub search completed in {time.time() - start_time:.2f}s: found {len(items)} items")

        pull_requests: list[PullRequest] = []
        for item in items:
            try:
                pr = parse_search_item(item)
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Failed to parse PR data: {e}", exc_info=True)
                continue
            if pr is not None:
                pull_requests.append(pr)

        logger.info(f"Collected {len(pull_requests)} pull requests awaiting review")
        return pull_requests
