"""Exception hierarchy for selection, input and configuration failures."""

from __future__ import annotations


class GuessThatLangError(Exception):
    """Base class for all game errors."""


class SelectionError(GuessThatLangError):
    """A single selection attempt failed; the selector may retry."""


class NetworkError(SelectionError):
    """Transport failure, non-success status or malformed response from GitHub."""


class RateLimited(SelectionError):
    """GitHub refused the request until its quota resets."""

    def __init__(self, reset_after: float, message: str | None = None) -> None:
        self.reset_after = max(0.0, float(reset_after))
        super().__init__(message or f"Rate limited by GitHub; quota resets in {self.reset_after:.0f}s.")


class NoEligibleCandidate(SelectionError):
    """The fetched container held no file the game can show."""


class SanitizationEmpty(NoEligibleCandidate):
    """Sanitizing the chosen file left no lines."""


class SelectionExhausted(GuessThatLangError):
    """Every selection attempt failed."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"Could not find a code file after {attempts} attempts{detail}")


class InputAborted(GuessThatLangError):
    """The player quit in the middle of a round."""


class ConfigError(GuessThatLangError):
    """The settings file or a setting value is invalid."""


class TokenError(GuessThatLangError):
    """A GitHub personal access token is malformed or was rejected."""
