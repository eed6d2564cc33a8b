import tomllib
from pathlib import Path

import guessthatlang


def _project_version() -> str:
    pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
    data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
    return str(data["project"]["version"])


def test_package_version_matches_pyproject() -> None:
    assert guessthatlang.__version__ == _project_version()


def test_user_agent_names_project_and_version() -> None:
    agent = guessthatlang.user_agent()
    assert agent.startswith(f"guess-that-lang/{guessthatlang.__version__} ")
    assert "github.com" in agent
