import random
from collections.abc import Callable

import pytest

from guessthatlang.errors import NetworkError, NoEligibleCandidate, RateLimited, SelectionExhausted
from guessthatlang.models import RawFile
from guessthatlang.roster import Roster
from guessthatlang.selector import AttemptKind, CandidateSelector, select_snippet


class ScriptedProvider:
    """Returns or raises the scripted results in order, counting calls."""

    def __init__(self, results: list[RawFile | Exception]) -> None:
        self.results = list(results)
        self.calls = 0

    def next_candidate(self, roster: Roster) -> RawFile:
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


def _python_file(make_raw: Callable[..., RawFile], lines: int = 40) -> RawFile:
    return make_raw("\n".join(f"total_{idx} = {idx} * 2" for idx in range(lines)))


def test_first_attempt_success(small_roster: Roster, make_raw) -> None:
    provider = ScriptedProvider([_python_file(make_raw)])
    snippet = select_snippet(small_roster, provider, 5, line_budget=20, shuffle=False)
    assert provider.calls == 1
    assert snippet.language.name == "Python"
    assert len(snippet.lines) == 20
    assert snippet.reveal_order == tuple(range(20))


def test_rate_limit_suspends_then_succeeds(small_roster: Roster, make_raw) -> None:
    sleeps: list[float] = []
    provider = ScriptedProvider([RateLimited(2), _python_file(make_raw)])
    selector = CandidateSelector(small_roster, provider, max_attempts=5, sleep_fn=sleeps.append)

    snippet = selector.select()

    assert snippet.language.name == "Python"
    assert provider.calls == 2
    assert sleeps == [2.0]
    assert [attempt.kind for attempt in selector.history] == [AttemptKind.RATE_LIMITED, AttemptKind.SUCCESS]


def test_retry_bound_is_respected(small_roster: Roster) -> None:
    provider = ScriptedProvider([NetworkError("connection reset")])
    with pytest.raises(SelectionExhausted) as excinfo:
        select_snippet(small_roster, provider, 4, sleep_fn=lambda _: None)
    assert provider.calls == 4
    assert excinfo.value.attempts == 4
    assert isinstance(excinfo.value.last_error, NetworkError)
    assert "connection reset" in str(excinfo.value)


def test_rate_limit_on_final_attempt_does_not_sleep(small_roster: Roster) -> None:
    sleeps: list[float] = []
    provider = ScriptedProvider([RateLimited(30)])
    with pytest.raises(SelectionExhausted) as excinfo:
        select_snippet(small_roster, provider, 3, sleep_fn=sleeps.append)
    assert provider.calls == 3
    assert sleeps == [30.0, 30.0]
    assert isinstance(excinfo.value.last_error, RateLimited)


def test_discards_oversized_short_and_foreign_files(roster: Roster, small_roster: Roster, make_raw) -> None:
    oversized = make_raw("x = 1\n" * 10, size=50_000)
    too_short = make_raw("x = 1\n\n\ny = 2\n")
    foreign = make_raw("fn main() {}\nlet a = 1;\nlet b = 2;\n", language="Java", path="Main.java")
    good = _python_file(make_raw, lines=5)
    provider = ScriptedProvider([oversized, too_short, foreign, good])
    selector = CandidateSelector(small_roster, provider, max_attempts=10, max_file_bytes=20_000, min_lines=3)

    snippet = selector.select()

    assert provider.calls == 4
    assert len(snippet.lines) == 5
    errors = [attempt.error for attempt in selector.history[:3]]
    assert all(isinstance(error, NoEligibleCandidate) for error in errors)


def test_sanitization_empty_counts_as_retry(small_roster: Roster, make_raw) -> None:
    only_comments = make_raw("# one\n# two\n# three\n# four\n")
    provider = ScriptedProvider([only_comments, _python_file(make_raw, lines=3)])
    selector = CandidateSelector(small_roster, provider, max_attempts=2)
    snippet = selector.select()
    assert provider.calls == 2
    assert len(snippet.lines) == 3
    assert selector.history[0].kind is AttemptKind.RETRY


def test_unexpected_errors_propagate(small_roster: Roster) -> None:
    provider = ScriptedProvider([RuntimeError("bug")])
    with pytest.raises(RuntimeError, match="bug"):
        select_snippet(small_roster, provider, 3)
    assert provider.calls == 1


def test_shuffled_selection_is_reproducible(small_roster: Roster, make_raw) -> None:
    raw = _python_file(make_raw, lines=8)
    first = select_snippet(small_roster, ScriptedProvider([raw]), 1, shuffle=True, rng=random.Random(5))
    second = select_snippet(small_roster, ScriptedProvider([raw]), 1, shuffle=True, rng=random.Random(5))
    assert first.reveal_order == second.reveal_order


def test_max_attempts_must_be_positive(small_roster: Roster) -> None:
    with pytest.raises(ValueError):
        CandidateSelector(small_roster, ScriptedProvider([NetworkError("x")]), max_attempts=0)
