"""Bounded retry loop that turns provider candidates into a displayable snippet."""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .errors import NoEligibleCandidate, RateLimited, SanitizationEmpty, SelectionError, SelectionExhausted
from .log import get_logger
from .models import RawFile, Snippet
from .providers import DEFAULT_MAX_FILE_BYTES, CodeProvider
from .roster import Roster
from .sanitizer import sanitize

DEFAULT_MAX_ATTEMPTS = 20
DEFAULT_MIN_LINES = 3

logger = get_logger(__name__)


class AttemptKind(Enum):
    SUCCESS = "success"
    RETRY = "retry"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class Attempt:
    """Typed result of one provider call."""

    number: int
    kind: AttemptKind
    snippet: Snippet | None = None
    error: SelectionError | None = None
    wait: float = 0.0


class CandidateSelector:
    """Ask a provider for candidates until one sanitizes into a snippet.

    Every provider call consumes one attempt. A rate-limited call also
    suspends the loop until the quota resets; the wait itself costs nothing.
    """

    def __init__(
        self,
        roster: Roster,
        provider: CodeProvider,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        line_budget: int = 20,
        width: int | None = None,
        shuffle: bool = False,
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
        min_lines: int = DEFAULT_MIN_LINES,
        rng: random.Random | None = None,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self.roster = roster
        self.provider = provider
        self.max_attempts = max_attempts
        self.line_budget = line_budget
        self.width = width
        self.shuffle = shuffle
        self.max_file_bytes = max_file_bytes
        self.min_lines = min_lines
        self.rng = rng or random.Random()
        self.sleep_fn = sleep_fn
        self.history: list[Attempt] = []

    def check_candidate(self, raw: RawFile) -> None:
        """Reject files the game cannot show."""
        if raw.language not in self.roster:
            raise NoEligibleCandidate(f"{raw.path} is not in a supported language.")
        if raw.size_bytes > self.max_file_bytes:
            raise NoEligibleCandidate(f"{raw.path} is {raw.size_bytes} bytes; limit is {self.max_file_bytes}.")
        non_blank = sum(1 for line in raw.content.splitlines() if line.strip())
        if non_blank < self.min_lines:
            raise NoEligibleCandidate(f"{raw.path} has only {non_blank} non-blank lines.")

    def attempt(self, number: int) -> Attempt:
        try:
            raw = self.provider.next_candidate(self.roster)
            self.check_candidate(raw)
            snippet = sanitize(raw, self.line_budget, shuffle=self.shuffle, rng=self.rng, width=self.width)
        except RateLimited as exc:
            return Attempt(number, AttemptKind.RATE_LIMITED, error=exc, wait=exc.reset_after)
        except SelectionError as exc:
            return Attempt(number, AttemptKind.RETRY, error=exc)
        logger.debug("Attempt %d: using %s (%s)", number, raw.path, raw.language.name)
        return Attempt(number, AttemptKind.SUCCESS, snippet=snippet)

    def select(self) -> Snippet:
        """Return a snippet, or raise SelectionExhausted with the last failure."""
        self.history = []
        last_error: SelectionError | None = None
        for number in range(1, self.max_attempts + 1):
            result = self.attempt(number)
            self.history.append(result)
            if result.kind is AttemptKind.SUCCESS and result.snippet is not None:
                return result.snippet

            last_error = result.error
            if result.kind is AttemptKind.RATE_LIMITED:
                if number == self.max_attempts:
                    break
                logger.warning("GitHub rate limit reached; waiting %.0fs for the quota to reset.", result.wait)
                self.sleep_fn(result.wait)
            elif isinstance(result.error, SanitizationEmpty):
                logger.debug("Attempt %d: %s", number, result.error)
            else:
                logger.info("Attempt %d/%d failed: %s", number, self.max_attempts, result.error)

        raise SelectionExhausted(self.max_attempts, last_error)


def select_snippet(
    roster: Roster,
    provider: CodeProvider,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    *,
    line_budget: int = 20,
    shuffle: bool = False,
    rng: random.Random | None = None,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> Snippet:
    """Pick one snippet using a throwaway CandidateSelector."""
    selector = CandidateSelector(
        roster,
        provider,
        max_attempts=max_attempts,
        line_budget=line_budget,
        shuffle=shuffle,
        rng=rng,
        sleep_fn=sleep_fn,
    )
    return selector.select()
