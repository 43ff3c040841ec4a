import os
import tempfile

# Set environment BEFORE any prsift imports so settings pick it up
if "FILTER_STORE_PATH" not in os.environ:
    os.environ["FILTER_STORE_PATH"] = os.path.join(tempfile.mkdtemp(prefix="prsift-tests-"), "filters.json")

if "CACHE_ENABLED" not in os.environ:
    os.environ["CACHE_ENABLED"] = "true"

import pytest
from factories import make_pr
from pydantic import SecretStr

from prsift.services.filtering.metadata import FilterMetadata, derive_metadata
from prsift.services.github.client import GitHubAPIClient
from prsift.services.github.models import PullRequest, Team


@pytest.fixture
def mock_client() -> GitHubAPIClient:
    """Create a test GitHub API client for mocking."""
    return GitHubAPIClient(token=SecretStr("test_token"))


@pytest.fixture
def sample_prs() -> list[PullRequest]:
    return [
        make_pr("acme/api", 12, "Fix login redirect", "alice"),
        make_pr("acme/web", 7, "Add dark mode toggle", "bob"),
        make_pr("acme/api", 3, "Bump httpx", "dependabot"),
        make_pr("globex/billing", 40, "Refactor invoice parser", "carol"),
        make_pr("initech/tps", 5, "Fix bug in report cover sheet", "peter"),
    ]


@pytest.fixture
def sample_teams() -> list[Team]:
    return [
        Team(slug="backend", name="Backend", organization_login="acme", repositories=("acme/api",)),
        Team(slug="payments", name="Payments", organization_login="globex", repositories=("globex/billing",)),
    ]


@pytest.fixture
def sample_metadata(sample_prs: list[PullRequest]) -> FilterMetadata:
    return derive_metadata(sample_prs)
