"""guess-that-lang package."""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__", "user_agent"]

PROJECT_NAME = "guess-that-lang"
PROJECT_URL = "https://github.com/Lioness100/guess-that-lang"


def _version_from_pyproject() -> str | None:
    """Read [project].version from a source checkout, if there is one."""
    for base in Path(__file__).resolve().parents:
        pyproject = base / "pyproject.toml"
        if not pyproject.exists():
            continue
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError:
            return None
        project = data.get("project", {})
        if project.get("name") != PROJECT_NAME:
            continue
        found = project.get("version")
        return str(found) if found else None
    return None


def user_agent() -> str:
    """User-Agent sent with every GitHub request."""
    return f"{PROJECT_NAME}/{__version__} ({PROJECT_URL})"


_project_version = _version_from_pyproject()
if _project_version is not None:
    __version__ = _project_version
else:
    try:
        __version__ = version(PROJECT_NAME)
    except PackageNotFoundError:
        __version__ = "0+unknown"
