"""Candidate sources: random public gists or files from random repositories."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Protocol

from .errors import NetworkError, NoEligibleCandidate, RateLimited
from .github import GithubClient
from .log import get_logger
from .models import LanguageTag, RawFile
from .roster import Roster

PROVIDER_NAMES = ("repository", "gist")
GIST_PAGES = 100
REPOSITORY_PAGES = 34
DEFAULT_MAX_FILE_BYTES = 20_000

logger = get_logger(__name__)


class CodeProvider(Protocol):
    """Strategy that produces one candidate file per call."""

    def next_candidate(self, roster: Roster) -> RawFile: ...


@dataclass(frozen=True)
class _GistFile:
    path: str
    language: LanguageTag
    raw_url: str
    size: int


def _as_list(payload: Any, url: str) -> list[Any]:
    if not isinstance(payload, list):
        raise NetworkError(f"Expected a JSON list from {url}")
    return payload


def _size(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _search_items(payload: Any, url: str) -> list[dict[str, Any]]:
    if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
        raise NetworkError(f"Expected search results from {url}")
    return [item for item in payload["items"] if isinstance(item, dict)]


class GistProvider:
    """Pick files from a random page of public gists."""

    def __init__(
        self,
        client: GithubClient,
        *,
        rng: random.Random | None = None,
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    ) -> None:
        self.client = client
        self.rng = rng or random.Random()
        self.max_file_bytes = max_file_bytes
        self._cache: list[_GistFile] = []

    def _eligible_file(self, gist: dict[str, Any], roster: Roster) -> _GistFile | None:
        files = gist.get("files")
        if not isinstance(files, dict):
            return None
        for name, entry in sorted(files.items()):
            if not isinstance(entry, dict):
                continue
            language = roster.get(entry.get("language"))
            raw_url = entry.get("raw_url")
            if language is None or not raw_url:
                continue
            return _GistFile(
                path=str(entry.get("filename") or name),
                language=language,
                raw_url=str(raw_url),
                size=_size(entry.get("size")),
            )
        return None

    def refill(self, roster: Roster) -> None:
        """Fetch one random page of public gists and keep those with a roster file."""
        page = self.rng.randint(1, GIST_PAGES)
        url = "/gists/public"
        gists = _as_list(self.client.get_json(url, params={"page": page, "per_page": 30}), url)
        found = [item for item in (self._eligible_file(g, roster) for g in gists if isinstance(g, dict)) if item]
        self.rng.shuffle(found)
        logger.debug("Gist page %d: %d of %d gists usable", page, len(found), len(gists))
        self._cache = found

    def next_candidate(self, roster: Roster) -> RawFile:
        if not self._cache:
            self.refill(roster)
        if not self._cache:
            raise NoEligibleCandidate("No public gist on this page uses a supported language.")

        chosen = self._cache.pop()
        if chosen.size > self.max_file_bytes:
            raise NoEligibleCandidate(f"{chosen.path} is {chosen.size} bytes; limit is {self.max_file_bytes}.")

        try:
            content = self.client.get_text(chosen.raw_url)
        except RateLimited:
            self._cache.append(chosen)
            raise
        return RawFile(
            path=chosen.path,
            language=chosen.language,
            content=content,
            size_bytes=chosen.size or len(content.encode("utf-8")),
            source_url=chosen.raw_url,
        )


class RepositoryProvider:
    """Pick a random roster language, then a file of that language from a popular repository.

    Code search requires an authenticated client; anonymous calls fail with a
    NetworkError and are retried like any other failure.
    """

    def __init__(
        self,
        client: GithubClient,
        *,
        rng: random.Random | None = None,
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    ) -> None:
        self.client = client
        self.rng = rng or random.Random()
        self.max_file_bytes = max_file_bytes
        self._repos: dict[str, list[str]] = {}

    def _repositories(self, language: LanguageTag) -> list[str]:
        cached = self._repos.get(language.name)
        if cached:
            return cached
        url = "/search/repositories"
        params = {
            "q": f"language:{language.search_alias} stars:>20",
            "sort": "updated",
            "page": self.rng.randint(1, REPOSITORY_PAGES),
        }
        items = _search_items(self.client.get_json(url, params=params), url)
        names = [str(item["full_name"]) for item in items if item.get("full_name")]
        self.rng.shuffle(names)
        self._repos[language.name] = names
        return names

    def next_candidate(self, roster: Roster) -> RawFile:
        language = roster.choice(self.rng)
        repos = self._repositories(language)
        if not repos:
            raise NoEligibleCandidate(f"No {language.name} repositories found.")
        repo = repos.pop()
        try:
            return self._file_from(repo, language)
        except RateLimited:
            repos.append(repo)
            raise

    def _file_from(self, repo: str, language: LanguageTag) -> RawFile:
        url = "/search/code"
        params = {"q": f"language:{language.search_alias} repo:{repo}"}
        hits = [
            item
            for item in _search_items(self.client.get_json(url, params=params), url)
            if item.get("url") and language.matches_path(str(item.get("path", "")))
        ]
        if not hits:
            raise NoEligibleCandidate(f"{repo} has no {language.name} files.")
        hit = self.rng.choice(hits)

        meta = self.client.get_json(str(hit["url"]))
        if not isinstance(meta, dict) or not meta.get("download_url"):
            raise NetworkError(f"No download URL for {repo}/{hit.get('path')}")
        size = _size(meta.get("size"))
        if size > self.max_file_bytes:
            raise NoEligibleCandidate(f"{repo}/{hit.get('path')} is {size} bytes; limit is {self.max_file_bytes}.")

        download_url = str(meta["download_url"])
        content = self.client.get_text(download_url)
        return RawFile(
            path=f"{repo}/{meta.get('path') or hit.get('path')}",
            language=language,
            content=content,
            size_bytes=size or len(content.encode("utf-8")),
            source_url=download_url,
        )


def build_provider(
    name: str,
    client: GithubClient,
    *,
    rng: random.Random | None = None,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> CodeProvider:
    """Create the provider strategy named in the settings."""
    if name == "gist":
        return GistProvider(client, rng=rng, max_file_bytes=max_file_bytes)
    if name == "repository":
        return RepositoryProvider(client, rng=rng, max_file_bytes=max_file_bytes)
    raise ValueError(f"Unknown provider '{name}'. Expected one of: {', '.join(PROVIDER_NAMES)}.")
