"""Tests for collecting teams and their repositories."""

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import pytest_asyncio
from pydantic import SecretStr

from prsift.services.cache import configure_caches, get_cache
from prsift.services.github.client import GitHubAPIClient
from prsift.services.github.errors import APIErrorKind, GitHubAPIError
from prsift.services.github.teams import TeamCollector, teams_cache_key
from prsift.settings import settings

RAW_TEAMS = [
    {"slug": "payments", "name": "Payments", "organization": {"login": "globex"}},
    {"slug": "backend", "name": "Backend", "organization": {"login": "acme"}},
]

TEAM_REPOS = {
    ("acme", "backend"): [{"full_name": "acme/web"}, {"full_name": "acme/api"}],
    ("globex", "payments"): [{"full_name": "globex/billing"}],
}


async def _team_repos(org: str, slug: str) -> list[dict[str, str]]:
    return TEAM_REPOS[(org, slug)]


@pytest_asyncio.fixture
async def persistent_cache() -> AsyncIterator[None]:
    configure_caches()
    await get_cache("persistent").clear()
    yield
    await get_cache("persistent").clear()


@pytest.mark.asyncio
async def test_collect_teams(mock_client: GitHubAPIClient) -> None:
    with (
        patch.object(mock_client, "get_user_teams", new_callable=AsyncMock, return_value=RAW_TEAMS),
        patch.object(mock_client, "get_team_repositories", side_effect=_team_repos),
    ):
        teams = await TeamCollector(mock_client).collect_teams(use_cache=False)

    assert [team.full_slug for team in teams] == ["acme/backend", "globex/payments"]
    assert teams[0].repositories == ("acme/api", "acme/web")
    assert teams[0].name == "Backend"
    assert teams[1].repositories == ("globex/billing",)


@pytest.mark.asyncio
async def test_collect_teams_uses_slug_when_name_missing(mock_client: GitHubAPIClient) -> None:
    raw = [{"slug": "backend", "name": None, "organization": {"login": "acme"}}]

    with (
        patch.object(mock_client, "get_user_teams", new_callable=AsyncMock, return_value=raw),
        patch.object(mock_client, "get_team_repositories", side_effect=_team_repos),
    ):
        teams = await TeamCollector(mock_client).collect_teams(use_cache=False)

    assert teams[0].name == "backend"


@pytest.mark.asyncio
async def test_collect_teams_without_teams(mock_client: GitHubAPIClient) -> None:
    with patch.object(mock_client, "get_user_teams", new_callable=AsyncMock, return_value=[]):
        assert await TeamCollector(mock_client).collect_teams(use_cache=False) == []


@pytest.mark.asyncio
async def test_collect_teams_forbidden(mock_client: GitHubAPIClient) -> None:
    """A token without read:org gets a FORBIDDEN error."""
    response = MagicMock(status_code=403, headers={"X-RateLimit-Remaining": "4999"})
    error = httpx.HTTPStatusError("Forbidden", request=MagicMock(), response=response)

    with patch.object(mock_client, "get_user_teams", new_callable=AsyncMock, side_effect=error):
        with pytest.raises(GitHubAPIError) as exc_info:
            await TeamCollector(mock_client).collect_teams(use_cache=False)

    assert exc_info.value.kind == APIErrorKind.FORBIDDEN
    assert exc_info.value.is_permission_error


@pytest.mark.asyncio
async def test_collect_teams_repository_failure(mock_client: GitHubAPIClient) -> None:
    with (
        patch.object(mock_client, "get_user_teams", new_callable=AsyncMock, return_value=RAW_TEAMS),
        patch.object(
            mock_client,
            "get_team_repositories",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("offline"),
        ),
    ):
        with pytest.raises(GitHubAPIError) as exc_info:
            await TeamCollector(mock_client).collect_teams(use_cache=False)

    assert exc_info.value.kind == APIErrorKind.NETWORK


@pytest.mark.asyncio
async def test_collect_teams_malformed_data(mock_client: GitHubAPIClient) -> None:
    with patch.object(mock_client, "get_user_teams", new_callable=AsyncMock, return_value=[{"slug": "x"}]):
        with pytest.raises(GitHubAPIError) as exc_info:
            await TeamCollector(mock_client).collect_teams(use_cache=False)

    assert exc_info.value.kind == APIErrorKind.INVALID_RESPONSE


@pytest.mark.asyncio
async def test_collect_teams_is_cached(mock_client: GitHubAPIClient, persistent_cache: None) -> None:
    with (
        patch.object(mock_client, "get_user_teams", new_callable=AsyncMock, return_value=RAW_TEAMS) as mock_teams,
        patch.object(mock_client, "get_team_repositories", side_effect=_team_repos),
    ):
        first = await TeamCollector(mock_client).collect_teams()
        second = await TeamCollector(mock_client).collect_teams()

    assert first == second
    mock_teams.assert_awaited_once()
    assert await get_cache("persistent").get(teams_cache_key(mock_client)) is not None


@pytest.mark.asyncio
async def test_collect_teams_ignores_invalid_cache_entry(mock_client: GitHubAPIClient, persistent_cache: None) -> None:
    await get_cache("persistent").set(teams_cache_key(mock_client), [{"unexpected": True}])

    with (
        patch.object(mock_client, "get_user_teams", new_callable=AsyncMock, return_value=RAW_TEAMS) as mock_teams,
        patch.object(mock_client, "get_team_repositories", side_effect=_team_repos),
    ):
        teams = await TeamCollector(mock_client).collect_teams()

    assert len(teams) == 2
    mock_teams.assert_awaited_once()


def test_cache_key_depends_on_token_and_host() -> None:
    alice = GitHubAPIClient(SecretStr("alice-token"))
    bob = GitHubAPIClient(SecretStr("bob-token"))
    enterprise = GitHubAPIClient(SecretStr("alice-token"), base_url="https://github.example.com/api/v3")

    keys = {teams_cache_key(alice), teams_cache_key(bob), teams_cache_key(enterprise)}

    assert len(keys) == 3
    assert teams_cache_key(alice) == teams_cache_key(GitHubAPIClient(SecretStr("alice-token")))
    assert all("alice-token" not in key for key in keys)


@pytest.mark.asyncio
async def test_cached_teams_are_not_shared_between_tokens(persistent_cache: None) -> None:
    """A second user must hit GitHub, and see its own permission error, not the first user's teams."""
    alice = GitHubAPIClient(SecretStr("alice-token"))
    bob = GitHubAPIClient(SecretStr("bob-token"))
    secret_team = [{"slug": "secret", "name": "Secret", "organization": {"login": "acme"}}]

    async def private_repos(org: str, slug: str) -> list[dict[str, str]]:
        return [{"full_name": "acme/private"}]

    with (
        patch.object(alice, "get_user_teams", new_callable=AsyncMock, return_value=secret_team),
        patch.object(alice, "get_team_repositories", side_effect=private_repos),
    ):
        alice_teams = await TeamCollector(alice).collect_teams()

    assert alice_teams[0].repositories == ("acme/private",)

    response = MagicMock(status_code=403, headers={})
    forbidden = httpx.HTTPStatusError("Forbidden", request=MagicMock(), response=response)
    with patch.object(bob, "get_user_teams", new_callable=AsyncMock, side_effect=forbidden):
        with pytest.raises(GitHubAPIError) as exc_info:
            await TeamCollector(bob).collect_teams()

    assert exc_info.value.kind == APIErrorKind.FORBIDDEN


@pytest.mark.asyncio
async def test_cached_teams_use_persistent_ttl(mock_client: GitHubAPIClient) -> None:
    with (
        patch.object(mock_client, "get_user_teams", new_callable=AsyncMock, return_value=RAW_TEAMS),
        patch.object(mock_client, "get_team_repositories", side_effect=_team_repos),
        patch("prsift.services.github.teams.get_cached", new_callable=AsyncMock, return_value=None),
        patch("prsift.services.github.teams.set_cached", new_callable=AsyncMock) as mock_set,
    ):
        await TeamCollector(mock_client).collect_teams()

    mock_set.assert_awaited_once()
    assert mock_set.call_args.args[0] == teams_cache_key(mock_client)
    assert mock_set.call_args.kwargs["ttl"] == settings.cache_persistent_ttl
    assert mock_set.call_args.kwargs["alias"] == "persistent"
