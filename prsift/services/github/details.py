"""Service for collecting per pull request change statistics and reviewers."""

import asyncio
import time
from logging import getLogger
from typing import Any

from .client import GitHubAPIClient
from .errors import classify_http_error
from .models import PullRequest, PullRequestDetails, Reviewer
from .pullrequests import _parse_timestamp

logger = getLogger(__name__)

COMPLETED_REVIEW_STATES = frozenset({"approved", "changes_requested", "commented"})


def latest_reviews(reviews: list[dict[str, Any]]) -> tuple[Reviewer, ...]:
    """Reduce a review list to the latest completed review per user.

    When either of two reviews by the same user lacks a submission time the
    first one seen is kept. Pending and dismissed reviews are dropped.

    Returns:
        Reviewers sorted by login
    """
    latest: dict[str, dict[str, Any]] = {}
    for review in reviews:
        login = review["user"]["login"]
        existing = latest.get(login)
        if existing is None:
            latest[login] = review
            continue

        existing_at = _parse_timestamp(existing.get("submitted_at"))
        new_at = _parse_timestamp(review.get("submitted_at"))
        if existing_at is not None and new_at is not None and new_at > existing_at:
            latest[login] = review

    reviewers = []
    for login, review in latest.items():
        state = str(review.get("state", "")).lower()
        if state in COMPLETED_REVIEW_STATES:
            reviewers.append(Reviewer(login=login, state=state))
    return tuple(sorted(reviewers, key=lambda reviewer: reviewer.login))


def parse_details(pull_request: dict[str, Any], reviews: list[dict[str, Any]]) -> PullRequestDetails:
    """Build PullRequestDetails from the pull request and reviews API responses.

    Raises:
        KeyError: If required fields are missing
        TypeError: If a field has the wrong shape
        ValueError: If a count is negative
    """
    return PullRequestDetails(
        additions=int(pull_request["additions"]),
        deletions=int(pull_request["deletions"]),
        changed_files=int(pull_request["changed_files"]),
        requested_reviewers=tuple(user["login"] for user in pull_request.get("requested_reviewers") or []),
        completed_reviewers=latest_reviews(reviews),
    )


class PullRequestDetailsCollector:
    """Fetches details for many pull requests with bounded concurrency.

    A pull request whose details cannot be fetched maps to None so the rest of
    the listing still renders.
    """

    def __init__(self, github_client: GitHubAPIClient, max_concurrent_requests: int = 5) -> None:
        self.github_client = github_client
        self.max_concurrent_requests = max_concurrent_requests

    async def collect_details(
        self, pull_requests: list[PullRequest]
    ) -> dict[tuple[str, str, int], PullRequestDetails | None]:
        """Collect details for each pull request.

        Args:
            pull_requests: Pull requests to describe

        Returns:
            Details keyed by PR identifier, None where unavailable
        """
        if not pull_requests:
            return {}

        start_time = time.time()
        semaphore = asyncio.Semaphore(self.max_concurrent_requests)

        async def fetch(pr: PullRequest) -> PullRequestDetails | None:
            async with semaphore:
                try:
                    raw = await self.github_client.get_pull_request(pr.repository_owner, pr.repository_name, pr.number)
                    reviews = await self.github_client.get_reviews(pr.repository_owner, pr.repository_name, pr.number)
                    return parse_details(raw, reviews)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Unexpected details for {pr.repository_full_name}#{pr.number}: {e}")
                    return None
                except Exception as e:
                    error = classify_http_error(e)
                    logger.warning(
                        f"Details unavailable for {pr.repository_full_name}#{pr.number} ({error.kind.value}): {e}"
                    )
                    return None

        results = await asyncio.gather(*(fetch(pr) for pr in pull_requests))
        details = {pr.identifier: result for pr, result in zip(pull_requests, results)}

        failed = sum(1 for result in results if result is None)
        logger.info(
            f"Fetched details for {len(pull_requests) - failed} of {len(pull_requests)} pull requests "
            f"in {time.time() - start_time:.2f}s"
        )
        return details
