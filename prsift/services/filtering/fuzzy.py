"""Fuzzy matching and ranking of pull requests against a free-text query."""

from dataclasses import dataclass
from functools import cmp_to_key
from logging import getLogger

from prsift.services.github.models import PullRequest

from .similarity import similarity_score

logger = getLogger(__name__)

EXACT_MATCH_SCORE = 1.0
PREFIX_MATCH_SCORE = 0.9
SUBSTRING_MATCH_SCORE = 0.7
FUZZY_MATCH_FACTOR = 0.6
FUZZY_SIMILARITY_THRESHOLD = 0.3
SCORE_EPSILON = 1e-3


@dataclass(frozen=True)
class MatchWeights:
    """Per-field multipliers applied to the raw field scores."""

    title: float = 3.0
    repository: float = 2.0
    author: float = 1.5


DEFAULT_WEIGHTS = MatchWeights()


@dataclass(frozen=True)
class ScoredPullRequest:
    pull_request: PullRequest
    score: float


def field_score(text: str, query: str) -> float:
    """Score how well query matches text, case-insensitively.

    Returns:
        1.0 for an exact match, 0.9 for a prefix match, 0.7 for a substring
        match, similarity * 0.6 when similarity exceeds 0.3, otherwise 0.0.
    """
    lower_text = text.casefold()
    lower_query = query.casefold()

    if lower_text == lower_query:
        return EXACT_MATCH_SCORE
    if lower_text.startswith(lower_query):
        return PREFIX_MATCH_SCORE
    if lower_query in lower_text:
        return SUBSTRING_MATCH_SCORE

    similarity = similarity_score(lower_text, lower_query)
    if similarity > FUZZY_SIMILARITY_THRESHOLD:
        return similarity * FUZZY_MATCH_FACTOR
    return 0.0


def _compare(lhs: ScoredPullRequest, rhs: ScoredPullRequest) -> int:
    if abs(lhs.score - rhs.score) > SCORE_EPSILON:
        return -1 if lhs.score > rhs.score else 1
    if lhs.pull_request.number != rhs.pull_request.number:
        return -1 if lhs.pull_request.number < rhs.pull_request.number else 1
    lhs_repo = lhs.pull_request.repository_full_name
    rhs_repo = rhs.pull_request.repository_full_name
    if lhs_repo != rhs_repo:
        return -1 if lhs_repo < rhs_repo else 1
    return 0


class FuzzyMatcher:
    """Ranks pull requests by how well their title, repository or author match a query."""

    def __init__(self, weights: MatchWeights = DEFAULT_WEIGHTS) -> None:
        self.weights = weights

    def score(self, query: str, pull_request: PullRequest) -> float:
        """Return the best weighted field score of pull_request for query.

        The query is trimmed first; an empty query scores 0.0.
        """
        trimmed = query.strip()
        if not trimmed:
            return 0.0

        title_score = field_score(pull_request.title, trimmed) * self.weights.title
        repository_score = (
            max(
                field_score(pull_request.repository_full_name, trimmed),
                field_score(pull_request.repository_name, trimmed),
            )
            * self.weights.repository
        )
        author_score = field_score(pull_request.author_login, trimmed) * self.weights.author
        return max(title_score, repository_score, author_score)

    def rank(self, query: str, pull_requests: list[PullRequest]) -> list[ScoredPullRequest]:
        """Score and sort matching pull requests, dropping those that score zero."""
        if not query.strip():
            return []

        scored = [ScoredPullRequest(pr, self.score(query, pr)) for pr in pull_requests]
        matches = [entry for entry in scored if entry.score > 0]
        matches.sort(key=cmp_to_key(_compare))
        logger.debug(f"Fuzzy match for {query.strip()!r}: {len(matches)}/{len(pull_requests)} pull requests matched")
        return matches

    def match(self, query: str, pull_requests: list[PullRequest]) -> list[PullRequest]:
        """Return pull requests matching query, best match first.

        Ties (scores within 1e-3) are ordered by ascending PR number. An empty or
        whitespace-only query returns an empty list.
        """
        return [entry.pull_request for entry in self.rank(query, pull_requests)]
