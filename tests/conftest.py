from __future__ import annotations

import shutil
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from guessthatlang.models import RawFile  # noqa: E402
from guessthatlang.roster import Roster, load_roster  # noqa: E402


def _tmp_path_fixture() -> Iterator[Path]:
    """Provide per-test temporary directory path inside the workspace.

    Overrides pytest's builtin ``tmp_path`` so settings files written by the
    tests stay under ``.tmp_pytest/`` in the project directory.
    """
    base = ROOT / ".tmp_pytest"
    base.mkdir(parents=True, exist_ok=True)
    path = base / str(uuid4())
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        try:
            next(base.iterdir())
        except StopIteration:
            base.rmdir()
        except FileNotFoundError:
            pass


tmp_path = pytest.fixture(name="tmp_path")(_tmp_path_fixture)


@pytest.fixture
def roster() -> Roster:
    return load_roster()


@pytest.fixture
def small_roster(roster: Roster) -> Roster:
    return roster.subset(["Python", "Go", "Rust"])


@pytest.fixture
def make_raw(roster: Roster) -> Callable[..., RawFile]:
    def build(content: str, language: str = "Python", path: str = "main.py", size: int | None = None) -> RawFile:
        return RawFile(
            path=path,
            language=roster.get(language),  # type: ignore[arg-type]
            content=content,
            size_bytes=len(content.encode("utf-8")) if size is None else size,
        )

    return build
