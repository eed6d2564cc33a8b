import random

import httpx
import pytest

from guessthatlang.errors import NetworkError, NoEligibleCandidate, RateLimited
from guessthatlang.github import GithubClient
from guessthatlang.providers import GistProvider, RepositoryProvider, build_provider
from guessthatlang.roster import Roster

RAW_HOST = "gist.githubusercontent.com"


def _gist(filename: str, language: str | None, size: int = 64) -> dict:
    return {
        "id": filename,
        "files": {
            filename: {
                "filename": filename,
                "language": language,
                "size": size,
                "raw_url": f"https://{RAW_HOST}/someone/{filename}/raw/{filename}",
            }
        },
    }


class FakeGithub:
    """Routes MockTransport requests by path and records them."""

    def __init__(self, routes: dict, limited_once: set[str] | None = None) -> None:
        self.routes = routes
        self.limited_once = set(limited_once or ())
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path in self.limited_once:
            self.limited_once.discard(request.url.path)
            return httpx.Response(429, headers={"Retry-After": "1"})
        body = self.routes.get(request.url.path)
        if body is None:
            return httpx.Response(404)
        if isinstance(body, str):
            return httpx.Response(200, text=body)
        return httpx.Response(200, json=body)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def client(self) -> GithubClient:
        return GithubClient("token", transport=httpx.MockTransport(self))


def test_gist_provider_returns_a_roster_file(small_roster: Roster) -> None:
    fake = FakeGithub(
        {
            "/gists/public": [_gist("notes.md", "Markdown"), _gist("app.py", "Python")],
            "/someone/app.py/raw/app.py": "print('hello')\n",
        }
    )
    provider = GistProvider(fake.client(), rng=random.Random(1))

    raw = provider.next_candidate(small_roster)

    assert raw.language.name == "Python"
    assert raw.path == "app.py"
    assert raw.content == "print('hello')\n"
    assert raw.size_bytes == 64
    assert raw.source_url.endswith("/raw/app.py")
    page_request = fake.requests[0]
    assert 1 <= int(page_request.url.params["page"]) <= 100
    assert page_request.url.params["per_page"] == "30"


def test_gist_page_is_cached_between_candidates(small_roster: Roster) -> None:
    fake = FakeGithub(
        {
            "/gists/public": [_gist("a.go", "Go"), _gist("b.rs", "Rust")],
            "/someone/a.go/raw/a.go": "package main\n",
            "/someone/b.rs/raw/b.rs": "fn main() {}\n",
        }
    )
    provider = GistProvider(fake.client(), rng=random.Random(3))

    names = {provider.next_candidate(small_roster).language.name for _ in range(2)}

    assert names == {"Go", "Rust"}
    assert fake.paths().count("/gists/public") == 1


def test_rate_limited_gist_download_keeps_the_candidate(small_roster: Roster) -> None:
    fake = FakeGithub(
        {
            "/gists/public": [_gist("app.py", "Python")],
            "/someone/app.py/raw/app.py": "print('hello')\n",
        },
        limited_once={"/someone/app.py/raw/app.py"},
    )
    provider = GistProvider(fake.client())

    with pytest.raises(RateLimited):
        provider.next_candidate(small_roster)
    raw = provider.next_candidate(small_roster)

    assert raw.path == "app.py"
    assert fake.paths().count("/gists/public") == 1


def test_gist_without_roster_files_is_ineligible(small_roster: Roster) -> None:
    fake = FakeGithub({"/gists/public": [_gist("notes.md", "Markdown"), _gist("blob", None)]})
    provider = GistProvider(fake.client())

    with pytest.raises(NoEligibleCandidate):
        provider.next_candidate(small_roster)
    with pytest.raises(NoEligibleCandidate):
        provider.next_candidate(small_roster)
    assert fake.paths().count("/gists/public") == 2


def test_oversized_gist_is_skipped_without_download(small_roster: Roster) -> None:
    fake = FakeGithub({"/gists/public": [_gist("big.py", "Python", size=90_000)]})
    provider = GistProvider(fake.client(), max_file_bytes=20_000)

    with pytest.raises(NoEligibleCandidate, match="90000 bytes"):
        provider.next_candidate(small_roster)
    assert fake.paths() == ["/gists/public"]


def test_gist_page_must_be_a_list(small_roster: Roster) -> None:
    fake = FakeGithub({"/gists/public": {"message": "nope"}})
    with pytest.raises(NetworkError, match="Expected a JSON list"):
        GistProvider(fake.client()).next_candidate(small_roster)


def _repository_routes(code_items: list, size: int = 120) -> dict:
    return {
        "/search/repositories": {"items": [{"full_name": "acme/tool"}]},
        "/search/code": {"items": code_items},
        "/repos/acme/tool/contents/cmd/main.go": {
            "path": "cmd/main.go",
            "size": size,
            "download_url": "https://raw.githubusercontent.com/acme/tool/main/cmd/main.go",
        },
        "/acme/tool/main/cmd/main.go": "package main\n\nfunc main() {}\n",
    }


GO_HIT = {"path": "cmd/main.go", "url": "https://api.github.com/repos/acme/tool/contents/cmd/main.go"}


def test_repository_provider_downloads_a_matching_file(roster: Roster) -> None:
    go_only = roster.subset(["Go"])
    fake = FakeGithub(_repository_routes([{"path": "README.md", "url": "https://x/readme"}, GO_HIT]))
    provider = RepositoryProvider(fake.client(), rng=random.Random(4))

    raw = provider.next_candidate(go_only)

    assert raw.language.name == "Go"
    assert raw.path == "acme/tool/cmd/main.go"
    assert raw.size_bytes == 120
    assert raw.content.startswith("package main")
    repo_query = fake.requests[0].url.params["q"]
    assert repo_query == "language:go stars:>20"
    assert fake.requests[1].url.params["q"] == "language:go repo:acme/tool"


def test_rate_limited_repository_is_tried_again(roster: Roster) -> None:
    fake = FakeGithub(_repository_routes([GO_HIT]), limited_once={"/search/code"})
    provider = RepositoryProvider(fake.client())
    go_only = roster.subset(["Go"])

    with pytest.raises(RateLimited):
        provider.next_candidate(go_only)
    raw = provider.next_candidate(go_only)

    assert raw.path == "acme/tool/cmd/main.go"
    assert fake.paths().count("/search/repositories") == 1


def test_repository_without_matching_files_is_ineligible(roster: Roster) -> None:
    fake = FakeGithub(_repository_routes([{"path": "README.md", "url": "https://x/readme"}]))
    provider = RepositoryProvider(fake.client())
    with pytest.raises(NoEligibleCandidate, match="acme/tool has no Go files"):
        provider.next_candidate(roster.subset(["Go"]))


def test_oversized_repository_file_is_not_downloaded(roster: Roster) -> None:
    fake = FakeGithub(_repository_routes([GO_HIT], size=50_000))
    provider = RepositoryProvider(fake.client(), max_file_bytes=20_000)
    with pytest.raises(NoEligibleCandidate):
        provider.next_candidate(roster.subset(["Go"]))
    assert "/acme/tool/main/cmd/main.go" not in fake.paths()


def test_build_provider(roster: Roster) -> None:
    client = GithubClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    assert isinstance(build_provider("gist", client), GistProvider)
    assert isinstance(build_provider("repository", client), RepositoryProvider)
    with pytest.raises(ValueError, match="Unknown provider"):
        build_provider("gitlab", client)
