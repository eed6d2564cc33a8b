"""Logging setup for the game."""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "guessthatlang"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the guessthatlang hierarchy."""
    if name and not name.startswith(_LOGGER_NAME):
        name = f"{_LOGGER_NAME}.{name}"
    return logging.getLogger(name or _LOGGER_NAME)


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> logging.Logger:
    """Send warnings (or everything with ``verbose``) to stderr, plus an optional file."""
    level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.propagate = False

    # Repeated CLI invocations in one process must not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[guess-that-lang] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger"]
