from unittest.mock import MagicMock

import httpx
import pytest

from prsift.services.github.errors import APIErrorKind, GitHubAPIError, classify_http_error


def _status_error(status_code: int, headers: dict[str, str] | None = None) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.github.com/user/teams")
    response = httpx.Response(status_code, headers=headers or {}, request=request)
    return httpx.HTTPStatusError(f"HTTP {status_code}", request=request, response=response)


@pytest.mark.parametrize(
    ("status_code", "headers", "kind"),
    [
        (401, None, APIErrorKind.UNAUTHORIZED),
        (403, None, APIErrorKind.FORBIDDEN),
        (403, {"X-RateLimit-Remaining": "12"}, APIErrorKind.FORBIDDEN),
        (403, {"X-RateLimit-Remaining": "0"}, APIErrorKind.RATE_LIMITED),
        (404, None, APIErrorKind.NOT_FOUND),
        (422, None, APIErrorKind.UNKNOWN),
        (429, None, APIErrorKind.RATE_LIMITED),
        (500, None, APIErrorKind.SERVER),
        (503, None, APIErrorKind.SERVER),
    ],
)
def test_classify_status_errors(status_code: int, headers: dict[str, str] | None, kind: APIErrorKind) -> None:
    error = classify_http_error(_status_error(status_code, headers))

    assert error.kind == kind
    assert error.status_code == status_code


@pytest.mark.parametrize(
    "exc",
    [
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
        httpx.ConnectTimeout("timed out"),
    ],
)
def test_classify_network_errors(exc: Exception) -> None:
    error = classify_http_error(exc)

    assert error.kind == APIErrorKind.NETWORK
    assert error.status_code is None
    assert error.is_transient


@pytest.mark.parametrize("exc", [ValueError("bad json"), KeyError("login"), TypeError("NoneType")])
def test_classify_malformed_responses(exc: Exception) -> None:
    assert classify_http_error(exc).kind == APIErrorKind.INVALID_RESPONSE


def test_classify_unknown_error() -> None:
    error = classify_http_error(RuntimeError())

    assert error.kind == APIErrorKind.UNKNOWN
    assert error.message == "RuntimeError"


def test_classify_passes_through_classified_errors() -> None:
    original = GitHubAPIError(APIErrorKind.FORBIDDEN, "no read:org", 403)
    assert classify_http_error(original) is original


def test_classify_with_mocked_response() -> None:
    """Responses built with mocks, as other tests do, classify the same way."""
    response = MagicMock(status_code=429, headers={})
    error = httpx.HTTPStatusError("Rate limit", request=MagicMock(), response=response)

    assert classify_http_error(error).kind == APIErrorKind.RATE_LIMITED


@pytest.mark.parametrize(
    ("kind", "transient", "permission"),
    [
        (APIErrorKind.NETWORK, True, False),
        (APIErrorKind.RATE_LIMITED, True, False),
        (APIErrorKind.SERVER, True, False),
        (APIErrorKind.UNAUTHORIZED, False, True),
        (APIErrorKind.FORBIDDEN, False, True),
        (APIErrorKind.NOT_FOUND, False, False),
        (APIErrorKind.INVALID_RESPONSE, False, False),
    ],
)
def test_error_properties(kind: APIErrorKind, transient: bool, permission: bool) -> None:
    error = GitHubAPIError(kind, "message")

    assert error.is_transient is transient
    assert error.is_permission_error is permission
    assert str(error) == "message"
