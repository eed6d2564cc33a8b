"""Turn a fetched file into a snippet that fits the screen and hides obvious giveaways.

Stripping is heuristic. Syntax alone will still give most languages away;
the goal is only to remove lines that name the language outright (shebangs,
``<?php``, modelines) and comments, which often do.
"""

from __future__ import annotations

import random
import re

from .errors import SanitizationEmpty
from .models import LanguageTag, RawFile, Snippet

ELLIPSIS = "..."
TAB_SIZE = 4

MARKER_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^#!",
        r"^#.*-\*-.*coding[:=].*-\*-",
        r"^(?://|#|--|%|;)\s*(?:vim?|ex):",
        r"^<\?(?:php|=)?\s*$",
        r"^\?>\s*$",
        r"^['\"]use strict['\"];?$",
        r"^#\s*pragma\s+once\b",
        r"^<!doctype\s",
        r"^//\s*(?:go:build|\+build)\b",
        r"^@echo\s+off\b",
        r"^#requires\s+-",
        r"^#\s*frozen_string_literal:",
    )
)


def is_marker_line(text: str) -> bool:
    """Return True when the line exists only to declare the language or interpreter."""
    stripped = text.strip()
    return any(pattern.match(stripped) for pattern in MARKER_PATTERNS)


def strip_comments(lines: list[str], language: LanguageTag) -> list[str]:
    """Drop comment-only lines and whole block comments. Code with trailing comments is kept."""
    kept: list[str] = []
    closing: str | None = None
    for line in lines:
        stripped = line.strip()
        if closing is not None:
            if closing in stripped:
                closing = None
            continue

        block = next((pair for pair in language.block_comments if stripped.startswith(pair[0])), None)
        if block is not None:
            start, end = block
            rest = stripped[len(start) :]
            if end not in rest:
                closing = end
                continue
            if not rest.split(end, 1)[1].strip():
                continue
            kept.append(line)
            continue

        if any(stripped.startswith(prefix) for prefix in language.line_comments):
            continue
        kept.append(line)
    return kept


def _normalize(content: str) -> list[str]:
    text = content.replace("\r\n", "\n").replace("\r", "\n").lstrip("\ufeff")
    return [line.expandtabs(TAB_SIZE).rstrip() for line in text.split("\n")]


def _collapse_blank_runs(lines: list[str]) -> list[str]:
    collapsed: list[str] = []
    for line in lines:
        if not line and collapsed and not collapsed[-1]:
            continue
        collapsed.append(line)
    while collapsed and not collapsed[0]:
        collapsed.pop(0)
    while collapsed and not collapsed[-1]:
        collapsed.pop()
    return collapsed


def _fit_width(line: str, width: int | None) -> str:
    if width is None or len(line) <= width:
        return line
    return line[: max(width - len(ELLIPSIS), 0)] + ELLIPSIS


def clean_lines(raw: RawFile, width: int | None = None) -> list[str]:
    """All sanitization steps except windowing."""
    lines = [line for line in _normalize(raw.content) if not is_marker_line(line)]
    lines = strip_comments(lines, raw.language)
    return [_fit_width(line, width) for line in _collapse_blank_runs(lines)]


def choose_window(lines: list[str], budget: int, rng: random.Random) -> int:
    """Start index of a ``budget``-line window beginning on a paragraph boundary.

    Windows that also end on a non-blank line are preferred. ``clean_lines``
    never yields a leading blank line, so start 0 is always a boundary.
    """
    last_start = len(lines) - budget
    if last_start <= 0:
        return 0
    boundaries = [
        start for start in range(last_start + 1) if lines[start] and (start == 0 or not lines[start - 1])
    ]
    preferred = [start for start in boundaries if lines[start + budget - 1]]
    return rng.choice(preferred or boundaries or [0])


def reveal_order(count: int, shuffle: bool, rng: random.Random) -> tuple[int, ...]:
    """Identity order, or one random permutation that stays fixed for the round."""
    order = list(range(count))
    if shuffle:
        rng.shuffle(order)
    return tuple(order)


def sanitize(
    raw: RawFile,
    budget: int,
    *,
    shuffle: bool = False,
    rng: random.Random | None = None,
    width: int | None = None,
) -> Snippet:
    """Build the snippet for one round from a fetched file."""
    if budget < 1:
        raise ValueError("Line budget must be at least 1.")
    rng = rng or random.Random()

    lines = clean_lines(raw, width)
    if not lines:
        raise SanitizationEmpty(f"Nothing left of {raw.path} after sanitizing.")

    if len(lines) > budget:
        start = choose_window(lines, budget, rng)
        lines = lines[start : start + budget]

    return Snippet(
        language=raw.language,
        lines=tuple(lines),
        reveal_order=reveal_order(len(lines), shuffle, rng),
    )
