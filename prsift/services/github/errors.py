"""Error classification for GitHub API failures."""

from enum import Enum

import httpx


class APIErrorKind(str, Enum):
    """Classification of GitHub API failures."""

    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    SERVER = "server"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"


TRANSIENT_KINDS = frozenset({APIErrorKind.NETWORK, APIErrorKind.RATE_LIMITED, APIErrorKind.SERVER})


class GitHubAPIError(Exception):
    """A classified failure talking to the GitHub API."""

    def __init__(self, kind: APIErrorKind, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        """Whether retrying later can reasonably succeed."""
        return self.kind in TRANSIENT_KINDS

    @property
    def is_permission_error(self) -> bool:
        return self.kind in (APIErrorKind.FORBIDDEN, APIErrorKind.UNAUTHORIZED)

    def __repr__(self) -> str:
        return f"GitHubAPIError(kind={self.kind.value!r}, status_code={self.status_code!r}, message={self.message!r})"


def classify_http_error(error: Exception) -> GitHubAPIError:
    """Convert an exception raised while talking to GitHub into a GitHubAPIError.

    Args:
        error: The exception to classify

    Returns:
        GitHubAPIError with the matching APIErrorKind

    Examples:
        >>> classify_http_error(httpx.ConnectError("boom")).kind
        <APIErrorKind.NETWORK: 'network'>
    """
    if isinstance(error, GitHubAPIError):
        return error

    # Timeout and connection errors are transient
    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError)):
        return GitHubAPIError(APIErrorKind.NETWORK, f"Network error: {error}")

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        status_code = response.status_code

        if status_code == 429 or (status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0"):
            return GitHubAPIError(APIErrorKind.RATE_LIMITED, "GitHub rate limit exceeded", status_code)
        if status_code == 401:
            return GitHubAPIError(APIErrorKind.UNAUTHORIZED, "GitHub rejected the token", status_code)
        if status_code == 403:
            return GitHubAPIError(APIErrorKind.FORBIDDEN, "Token lacks permission for this resource", status_code)
        if status_code == 404:
            return GitHubAPIError(APIErrorKind.NOT_FOUND, "Resource not found", status_code)
        if status_code >= 500:
            return GitHubAPIError(APIErrorKind.SERVER, f"GitHub server error ({status_code})", status_code)
        return GitHubAPIError(APIErrorKind.UNKNOWN, f"Unexpected HTTP status {status_code}", status_code)

    if isinstance(error, (ValueError, KeyError, TypeError)):
        return GitHubAPIError(APIErrorKind.INVALID_RESPONSE, f"Unexpected response from GitHub: {error}")

    return GitHubAPIError(APIErrorKind.UNKNOWN, str(error) or error.__class__.__name__)
