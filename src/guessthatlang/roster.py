"""Load the supported-language roster from bundled JSON resources."""

from __future__ import annotations

import json
import random
from collections.abc import Iterable, Iterator
from importlib import resources
from pathlib import Path
from typing import Any

from .models import LanguageTag

CONTENT_PACKAGE = "guessthatlang.content"
ROSTER_RESOURCE = "languages.json"
ROSTER_SIZE = 24


class Roster:
    """Fixed, ordered set of languages the game knows about."""

    def __init__(self, languages: Iterable[LanguageTag]) -> None:
        self._languages = tuple(languages)
        self._by_name = {language.name: language for language in self._languages}
        self._by_folded = {language.name.casefold(): language for language in self._languages}

    def __iter__(self) -> Iterator[LanguageTag]:
        return iter(self._languages)

    def __len__(self) -> int:
        return len(self._languages)

    def __contains__(self, item: object) -> bool:
        return isinstance(item, LanguageTag) and self._by_name.get(item.name) == item

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(language.name for language in self._languages)

    def get(self, name: str | None) -> LanguageTag | None:
        """Look up a language by its GitHub linguist name (exact match)."""
        if name is None:
            return None
        return self._by_name.get(name)

    def lookup(self, text: str) -> LanguageTag | None:
        """Look up a language by name, ignoring case."""
        return self._by_folded.get(text.strip().casefold())

    def for_path(self, path: str) -> LanguageTag | None:
        """Return the first language whose extensions match the path."""
        for language in self._languages:
            if language.matches_path(path):
                return language
        return None

    def choice(self, rng: random.Random) -> LanguageTag:
        """Pick one language uniformly at random."""
        return rng.choice(self._languages)

    def subset(self, names: Iterable[str]) -> Roster:
        """Return a smaller roster restricted to the given names, keeping roster order."""
        wanted = set(names)
        unknown = wanted - set(self._by_name)
        if unknown:
            raise ValueError(f"Unknown languages: {', '.join(sorted(unknown))}")
        return Roster(language for language in self._languages if language.name in wanted)


def _language_from_dict(raw: dict[str, Any]) -> LanguageTag:
    """Build a language from raw JSON content."""
    name = str(raw.get("name", "")).strip()
    if not name:
        raise ValueError("Language entry has no name.")

    extensions = tuple(str(value) for value in raw.get("extensions", []) if str(value).strip())
    if not extensions:
        raise ValueError(f"Language '{name}' has no extensions.")

    blocks: list[tuple[str, str]] = []
    for pair in raw.get("block_comments", []):
        if len(pair) != 2 or not all(str(marker) for marker in pair):
            raise ValueError(f"Language '{name}' has an invalid block comment pair: {pair!r}")
        blocks.append((str(pair[0]), str(pair[1])))

    return LanguageTag(
        name=name,
        search_alias=str(raw.get("search_alias") or name.lower()),
        extensions=extensions,
        line_comments=tuple(str(value) for value in raw.get("line_comments", []) if str(value)),
        block_comments=tuple(blocks),
    )


def _roster_from_dict(raw: dict[str, Any]) -> Roster:
    languages: list[LanguageTag] = []
    seen: set[str] = set()
    for item in raw.get("languages", []):
        language = _language_from_dict(item)
        if language.name in seen:
            raise ValueError(f"Duplicate language: {language.name}")
        seen.add(language.name)
        languages.append(language)
    if not languages:
        raise ValueError("Roster defines no languages.")
    return Roster(languages)


def load_roster() -> Roster:
    """Load the bundled roster."""
    entry = resources.files(CONTENT_PACKAGE).joinpath(ROSTER_RESOURCE)
    roster = _roster_from_dict(json.loads(entry.read_text(encoding="utf-8-sig")))
    if len(roster) != ROSTER_SIZE:
        raise ValueError(f"Bundled roster must define {ROSTER_SIZE} languages, found {len(roster)}.")
    return roster


def load_roster_from_file(path: Path) -> Roster:
    """Load a roster from a JSON file for tests/tools."""
    return _roster_from_dict(json.loads(path.read_text(encoding="utf-8-sig")))
