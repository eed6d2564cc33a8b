"""Core domain models for the language guessing game."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import uuid4


@dataclass(frozen=True)
class LanguageTag:
    """One roster language."""

    name: str
    search_alias: str
    extensions: tuple[str, ...]
    line_comments: tuple[str, ...] = ()
    block_comments: tuple[tuple[str, str], ...] = ()

    def matches_path(self, path: str) -> bool:
        """Return True when the file name ends with one of the extensions (case-sensitive)."""
        name = path.rsplit("/", 1)[-1]
        return any(name == ext or (ext.startswith(".") and name.endswith(ext)) for ext in self.extensions)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class RawFile:
    """A file fetched from GitHub, before sanitization."""

    path: str
    language: LanguageTag
    content: str
    size_bytes: int
    source_url: str = ""


@dataclass(frozen=True)
class Snippet:
    """Sanitized code shown during one round."""

    language: LanguageTag
    lines: tuple[str, ...]
    reveal_order: tuple[int, ...]

    def __post_init__(self) -> None:
        if not self.lines:
            raise ValueError("Snippet must have at least one line.")
        if sorted(self.reveal_order) != list(range(len(self.lines))):
            raise ValueError("reveal_order must be a permutation of the line indices.")


@dataclass(frozen=True)
class RoundOutcome:
    """Result of one resolved round."""

    language: LanguageTag
    guessed: LanguageTag | None
    correct: bool
    lines_revealed_at_guess: int
    points: int = 0
    round_id: str = field(default_factory=lambda: uuid4().hex)
