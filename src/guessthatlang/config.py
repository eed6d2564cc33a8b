"""Settings file (.guess-that-lang/config.json) and its validation."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .providers import DEFAULT_MAX_FILE_BYTES, PROVIDER_NAMES
from .selector import DEFAULT_MAX_ATTEMPTS, DEFAULT_MIN_LINES

CONFIG_PATH = Path(".guess-that-lang") / "config.json"
TOKEN_ENV_VAR = "GITHUB_TOKEN"
THEMES = ("dark", "light")


@dataclass(frozen=True)
class Settings:
    """Immutable game settings."""

    access_token: str | None = None
    provider: str = "gist"
    initial_wait_ms: int = 1500
    reveal_interval_ms: int = 1500
    shuffle: bool = False
    theme: str = "dark"
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    min_lines: int = DEFAULT_MIN_LINES
    choices: int | None = None
    shuffle_options: bool = True

    def __post_init__(self) -> None:
        if self.provider not in PROVIDER_NAMES:
            raise ConfigError(f"provider must be one of: {', '.join(PROVIDER_NAMES)}.")
        if self.theme not in THEMES:
            raise ConfigError(f"theme must be one of: {', '.join(THEMES)}.")
        for name in ("initial_wait_ms", "reveal_interval_ms"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0.")
        for name in ("max_attempts", "max_file_bytes", "min_lines"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be >= 1.")
        if self.choices is not None and self.choices < 2:
            raise ConfigError("choices must be >= 2.")

    def with_overrides(self, **overrides: Any) -> Settings:
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})


def _coerce_int(value: object, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ConfigError(f"{name} must be an integer.")


def _coerce_bool(value: object, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false", "1", "0", "yes", "no"}:
        return value.strip().lower() in {"true", "1", "yes"}
    raise ConfigError(f"{name} must be true or false.")


def settings_from_dict(raw: Mapping[str, object]) -> Settings:
    """Build settings from parsed JSON. Unknown keys are ignored."""
    known = {item.name: item for item in fields(Settings)}
    values: dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known or value is None:
            continue
        default = known[key].default
        if key in {"shuffle", "shuffle_options"}:
            values[key] = _coerce_bool(value, key)
        elif key == "choices" or isinstance(default, int):
            values[key] = _coerce_int(value, key)
        elif key == "access_token":
            values[key] = str(value).strip() or None
        else:
            values[key] = str(value).strip()
    return Settings(**values)


def load_settings(path: Path | None = None, env: Mapping[str, str] | None = None) -> Settings:
    """Load settings from disk; a GITHUB_TOKEN variable fills in a missing token."""
    config_path = path or CONFIG_PATH
    env = os.environ if env is None else env
    raw: dict[str, object] = {}
    if config_path.exists():
        try:
            loaded: object = json.loads(config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"{config_path} is not valid JSON: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"{config_path} must contain a JSON object.")
        raw = loaded

    settings = settings_from_dict(raw)
    if settings.access_token is None and env.get(TOKEN_ENV_VAR):
        settings = replace(settings, access_token=env[TOKEN_ENV_VAR].strip())
    return settings


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Write settings as JSON, creating the directory if needed."""
    config_path = path or CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {key: value for key, value in asdict(settings).items() if value is not None}
    config_path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return config_path


def update_settings_file(path: Path | None = None, **changes: object) -> Settings:
    """Apply changes to the stored settings only (ignores the environment)."""
    config_path = path or CONFIG_PATH
    stored = load_settings(config_path, env={})
    updated = replace(stored, **changes)
    save_settings(updated, config_path)
    return updated
