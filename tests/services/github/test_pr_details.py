"""Tests for collecting pull request change statistics and reviewers."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from factories import make_pr

from prsift.services.github.client import GitHubAPIClient
from prsift.services.github.details import PullRequestDetailsCollector, latest_reviews, parse_details
from prsift.services.github.models import PullRequestDetails, Reviewer


def _review(login: str, state: str, submitted_at: str | None) -> dict:
    return {"user": {"login": login}, "state": state, "submitted_at": submitted_at}


def _raw_pr(additions: int = 145, deletions: int = 23, changed_files: int = 7, reviewers: tuple = ()) -> dict:
    return {
        "additions": additions,
        "deletions": deletions,
        "changed_files": changed_files,
        "requested_reviewers": [{"login": login} for login in reviewers],
    }


def test_details_rejects_negative_counts() -> None:
    with pytest.raises(ValueError, match="deletions"):
        PullRequestDetails(additions=1, deletions=-1, changed_files=1)


def test_details_computed_properties() -> None:
    details = PullRequestDetails(
        additions=10,
        deletions=5,
        changed_files=2,
        requested_reviewers=("octocat",),
        completed_reviewers=(Reviewer(login="hubot", state="approved"),),
    )

    assert details.total_changes == 15
    assert details.all_reviewers == ("hubot", "octocat")


def test_latest_reviews_keeps_newest_per_user() -> None:
    reviews = [
        _review("alice", "CHANGES_REQUESTED", "2024-05-01T10:00:00Z"),
        _review("bob", "COMMENTED", "2024-05-02T10:00:00Z"),
        _review("alice", "APPROVED", "2024-05-03T10:00:00Z"),
    ]

    assert latest_reviews(reviews) == (
        Reviewer(login="alice", state="approved"),
        Reviewer(login="bob", state="commented"),
    )


def test_latest_reviews_keeps_first_when_time_missing() -> None:
    reviews = [
        _review("alice", "APPROVED", "2024-05-01T10:00:00Z"),
        _review("alice", "COMMENTED", None),
    ]

    assert latest_reviews(reviews) == (Reviewer(login="alice", state="approved"),)


def test_latest_reviews_drops_pending_and_dismissed() -> None:
    reviews = [
        _review("alice", "PENDING", None),
        _review("bob", "DISMISSED", "2024-05-02T10:00:00Z"),
    ]

    assert latest_reviews(reviews) == ()


def test_parse_details() -> None:
    details = parse_details(_raw_pr(reviewers=("octocat",)), [_review("hubot", "APPROVED", "2024-05-01T10:00:00Z")])

    assert details == PullRequestDetails(
        additions=145,
        deletions=23,
        changed_files=7,
        requested_reviewers=("octocat",),
        completed_reviewers=(Reviewer(login="hubot", state="approved"),),
    )


def test_parse_details_null_reviewers() -> None:
    raw = _raw_pr()
    raw["requested_reviewers"] = None

    assert parse_details(raw, []).requested_reviewers == ()


def test_parse_details_missing_counts() -> None:
    with pytest.raises(KeyError):
        parse_details({"requested_reviewers": []}, [])


@pytest.mark.asyncio
async def test_collect_details(mock_client: GitHubAPIClient) -> None:
    prs = [make_pr("acme/api", 12), make_pr("acme/web", 7)]

    with (
        patch.object(mock_client, "get_pull_request", new_callable=AsyncMock, return_value=_raw_pr()) as mock_pr,
        patch.object(mock_client, "get_reviews", new_callable=AsyncMock, return_value=[]),
    ):
        details = await PullRequestDetailsCollector(mock_client).collect_details(prs)

    assert set(details) == {("acme", "api", 12), ("acme", "web", 7)}
    assert details[("acme", "api", 12)].changed_files == 7
    mock_pr.assert_any_await("acme", "web", 7)


@pytest.mark.asyncio
async def test_collect_details_failure_is_unavailable(mock_client: GitHubAPIClient) -> None:
    """One failing pull request does not fail the others."""
    prs = [make_pr("acme/api", 12), make_pr("acme/secret", 1), make_pr("acme/web", 7)]
    response = MagicMock(status_code=404, headers={})
    not_found = httpx.HTTPStatusError("Not Found", request=MagicMock(), response=response)

    async def get_pull_request(owner: str, repo: str, number: int) -> dict:
        if repo == "secret":
            raise not_found
        return _raw_pr()

    with (
        patch.object(mock_client, "get_pull_request", side_effect=get_pull_request),
        patch.object(mock_client, "get_reviews", new_callable=AsyncMock, return_value=[]),
    ):
        details = await PullRequestDetailsCollector(mock_client).collect_details(prs)

    assert details[("acme", "secret", 1)] is None
    assert details[("acme", "api", 12)] is not None
    assert details[("acme", "web", 7)] is not None


@pytest.mark.asyncio
async def test_collect_details_network_error_and_bad_payload(mock_client: GitHubAPIClient) -> None:
    prs = [make_pr("acme/api", 12), make_pr("acme/web", 7)]

    with (
        patch.object(
            mock_client,
            "get_pull_request",
            new_callable=AsyncMock,
            side_effect=[httpx.ConnectError("offline"), {"additions": 1}],
        ),
        patch.object(mock_client, "get_reviews", new_callable=AsyncMock, return_value=[]),
    ):
        details = await PullRequestDetailsCollector(mock_client).collect_details(prs)

    assert details == {("acme", "api", 12): None, ("acme", "web", 7): None}


@pytest.mark.asyncio
async def test_collect_details_respects_concurrency_limit(mock_client: GitHubAPIClient) -> None:
    prs = [make_pr("acme/api", number) for number in range(1, 11)]
    in_flight = 0
    peak = 0

    async def get_pull_request(owner: str, repo: str, number: int) -> dict:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0)
        in_flight -= 1
        return _raw_pr()

    with (
        patch.object(mock_client, "get_pull_request", side_effect=get_pull_request),
        patch.object(mock_client, "get_reviews", new_callable=AsyncMock, return_value=[]),
    ):
        details = await PullRequestDetailsCollector(mock_client, max_concurrent_requests=2).collect_details(prs)

    assert len(details) == 10
    assert peak == 2


@pytest.mark.asyncio
async def test_collect_details_empty(mock_client: GitHubAPIClient) -> None:
    with patch.object(mock_client, "get_pull_request", new_callable=AsyncMock) as mock_pr:
        assert await PullRequestDetailsCollector(mock_client).collect_details([]) == {}

    mock_pr.assert_not_awaited()
