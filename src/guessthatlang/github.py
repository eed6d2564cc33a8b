"""Thin GitHub REST client with rate-limit detection."""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from . import user_agent
from .errors import NetworkError, RateLimited, TokenError
from .log import get_logger

GITHUB_BASE_URL = "https://api.github.com"
TOKEN_PATTERN = re.compile(r"[\da-f]{40}|ghp_\w{36,251}")
DEFAULT_TIMEOUT = 15.0

logger = get_logger(__name__)


def validate_token_format(token: str) -> str:
    """Return the token if it looks like a classic or fine-grained personal access token."""
    stripped = token.strip()
    if not TOKEN_PATTERN.fullmatch(stripped):
        raise TokenError("Invalid personal access token format.")
    return stripped


def rate_limit_wait(status_code: int, headers: Mapping[str, str], now: float) -> float | None:
    """Seconds to wait before GitHub accepts requests again, or None if not rate limited."""
    if status_code not in (403, 429):
        return None

    retry_after = headers.get("retry-after")
    if retry_after is not None:
        try:
            return max(0.0, float(retry_after))
        except ValueError:
            pass

    if headers.get("x-ratelimit-remaining") == "0":
        try:
            reset_at = float(headers.get("x-ratelimit-reset", ""))
        except ValueError:
            return None
        return max(0.0, reset_at - now)

    return None


class GithubClient:
    """Read-only access to the GitHub API, authenticated when a token is present."""

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = GITHUB_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.token = token
        self._clock = clock
        headers = {
            "User-Agent": user_agent(),
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self._client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GithubClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _auth_headers(self, token: str | None = None) -> dict[str, str]:
        value = token if token is not None else self.token
        return {"Authorization": f"Bearer {value}"} if value else {}

    def _get(self, url: str, params: Mapping[str, Any] | None = None, token: str | None = None) -> httpx.Response:
        try:
            response = self._client.get(url, params=params, headers=self._auth_headers(token))
        except httpx.HTTPError as exc:
            raise NetworkError(f"Request to {url} failed: {exc}") from exc

        wait = rate_limit_wait(response.status_code, response.headers, self._clock())
        if wait is not None:
            logger.debug("Rate limited on %s; reset in %.1fs", url, wait)
            raise RateLimited(wait)
        if response.is_error:
            raise NetworkError(f"GitHub returned {response.status_code} for {url}")
        return response

    def get_json(self, url: str, params: Mapping[str, Any] | None = None) -> Any:
        """GET an API path or absolute URL and decode the JSON body."""
        response = self._get(url, params)
        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError(f"Malformed JSON from {url}") from exc

    def get_text(self, url: str) -> str:
        """GET a raw file body."""
        return self._get(url).text

    def check_token(self, token: str | None = None) -> None:
        """Query /rate_limit with the token to make sure GitHub accepts it."""
        candidate = token if token is not None else self.token
        if not candidate:
            return
        try:
            self._get("/rate_limit", token=candidate)
        except NetworkError as exc:
            raise TokenError("Invalid personal access token.") from exc
