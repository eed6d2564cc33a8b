"""CLI entrypoint for the language guessing game."""

from __future__ import annotations

import argparse
import random
import shutil
import sys
from collections.abc import Callable
from pathlib import Path

from .config import THEMES, Settings, load_settings, update_settings_file
from .engine import PROMPT, InvalidInput, LineRevealed, OptionsShown, RenderEvent, RoundResolved
from .errors import ConfigError, SelectionExhausted, TokenError
from .github import GithubClient
from .log import configure_logging, get_logger
from .models import LanguageTag, RoundOutcome, Snippet
from .providers import PROVIDER_NAMES
from .roster import ROSTER_SIZE
from .service import DEFAULT_LINE_BUDGET, GameService, apply_token
from .session import SessionState

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
NEXT_QUIT_COMMANDS = {"q", ":q", ":quit", ":exit"}
OPTION_COLUMNS = 4
GUTTER = 9
RESERVED_ROWS = 10
DOT = "·"

logger = get_logger(__name__)


def _terminal_budget(option_count: int) -> tuple[int, int]:
    """Visible code lines and usable line width for the current terminal."""
    size = shutil.get_terminal_size((80, 24))
    option_rows = -(-option_count // OPTION_COLUMNS)
    budget = max(1, min(DEFAULT_LINE_BUDGET, size.lines - RESERVED_ROWS - option_rows))
    width = max(20, size.columns - GUTTER)
    return budget, width


def _service(settings: Settings, token: str | None = None, seed: int | None = None) -> GameService:
    """Create the game service, validating any token first."""
    client = GithubClient(settings.access_token)
    try:
        settings = apply_token(client, settings, token)
    except Exception:
        client.close()
        raise
    option_count = settings.choices or ROSTER_SIZE
    budget, width = _terminal_budget(option_count)
    return GameService(settings, client=client, rng=random.Random(seed), line_budget=budget, width=width)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="guess-that-lang",
        description="CLI game to see how fast you can guess the language of a code block.",
    )
    parser.add_argument("command", nargs="?", default="play", choices=["play"])
    parser.add_argument(
        "-t",
        "--token",
        help="GitHub personal access token (no scopes needed). Stored for later runs; raises the rate limit.",
    )
    parser.add_argument("--provider", choices=PROVIDER_NAMES, help="Where code comes from.")
    parser.add_argument("-w", "--wait", type=int, metavar="MS", help="Milliseconds before the first line is shown.")
    parser.add_argument("-s", "--shuffle", action="store_true", default=None, help="Reveal lines in random order.")
    parser.add_argument("--theme", choices=THEMES, help="Color theme to store in the settings.")
    parser.add_argument("-c", "--choices", type=int, metavar="N", help="Offer N options instead of every language.")
    parser.add_argument("--seed", type=int, help="Seed the random number generator.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr.")
    parser.add_argument("--log-file", type=Path, help="Also write the debug log to this file.")
    return parser


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    args = _build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose, log_file=args.log_file)
    try:
        settings = load_settings().with_overrides(
            provider=args.provider,
            initial_wait_ms=args.wait,
            shuffle=args.shuffle,
            theme=args.theme,
            choices=args.choices,
        )
        if args.theme:
            update_settings_file(theme=args.theme)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    return play_shell(settings, token=args.token, seed=args.seed)


def play_shell(
    settings: Settings,
    input_fn: InputFn = input,
    print_fn: PrintFn = print,
    *,
    token: str | None = None,
    seed: int | None = None,
) -> int:
    """Play rounds until the player quits or no code can be found."""
    try:
        service = _service(settings, token, seed)
    except (TokenError, ConfigError) as exc:
        print_fn(f"Error: {exc}")
        return 1

    def after_round(outcome: RoundOutcome) -> bool:
        _print_outcome(outcome, service.state, print_fn)
        choice = input_fn("Press Enter for the next round (q to quit): ").strip().lower()
        if choice in NEXT_QUIT_COMMANDS:
            return False
        print_fn("\nFetching code...")
        return True

    failure: SelectionExhausted | None = None
    try:
        print_fn("\n=== Guess That Lang ===")
        print_fn("Type the number (or name) of the language, s to skip, q to quit.")
        print_fn("\nFetching code...")
        failure = service.play_session(
            input_fn,
            lambda snippet: _renderer(snippet, service.state, print_fn),
            after_round=after_round,
        )
    except (EOFError, KeyboardInterrupt):
        # Ctrl-C or end of input while fetching or between rounds ends the session like q.
        logger.debug("Session ended outside a round.")
    finally:
        service.close()

    if failure is not None:
        print_fn(f"\nCould not fetch any code: {failure}")
    _print_summary(service.state, print_fn)
    return 1 if failure is not None else 0


def _format_options(options: tuple[LanguageTag, ...]) -> list[str]:
    """Lay out options in columns: [1] Assembly   [2] Shell ..."""
    cells = [f"[{idx}] {option.name}" for idx, option in enumerate(options, start=1)]
    cell_width = max(len(cell) for cell in cells) + 3
    rows: list[str] = []
    for start in range(0, len(cells), OPTION_COLUMNS):
        chunk = cells[start : start + OPTION_COLUMNS]
        rows.append("     " + "".join(f"{cell:<{cell_width}}" for cell in chunk).rstrip())
    rows.append("     [s] Skip   [q] Quit")
    return rows


def _dotted(text: str) -> str:
    return "".join(char if char.isspace() else DOT for char in text)


def _renderer(snippet: Snippet, state: SessionState, print_fn: PrintFn) -> Callable[[RenderEvent], None]:
    """Plain-text rendering of one round's events."""

    def render(event: RenderEvent) -> None:
        if isinstance(event, OptionsShown):
            print_fn(
                f"Round {state.rounds_played + 1} | Streak: {state.current_streak} | "
                f"Best: {state.best_streak} | Points: {state.total_points}"
            )
            print_fn("-" * 40)
            for idx, line in enumerate(snippet.lines, start=1):
                print_fn(f"{idx:^7}│ {_dotted(line)}")
            print_fn("-" * 40)
            print_fn(PROMPT)
            for row in _format_options(event.options):
                print_fn(row)
        elif isinstance(event, LineRevealed):
            print_fn(f"{event.index + 1:^7}│ {event.text}")
            if event.step + 1 == event.total:
                print_fn("All lines revealed. Make your guess.")
        elif isinstance(event, InvalidInput):
            print_fn("Invalid choice.")
        elif isinstance(event, RoundResolved):
            logger.debug("Round resolved: %s", event.outcome)

    return render


def _print_outcome(outcome: RoundOutcome, state: SessionState, print_fn: PrintFn) -> None:
    answer = outcome.language.name
    if outcome.correct:
        print_fn(f"Correct! It was {answer} (+{outcome.points} points).")
    elif outcome.guessed is None:
        print_fn(f"Skipped. It was {answer}.")
    else:
        print_fn(f"Incorrect: you said {outcome.guessed.name}, it was {answer}.")
    print_fn(f"Streak: {state.current_streak} | Best: {state.best_streak} | Points: {state.total_points}")


def _print_summary(state: SessionState, print_fn: PrintFn) -> None:
    print_fn("\n=== Session over ===")
    print_fn(f"Rounds played: {state.rounds_played}")
    print_fn(f"Correct: {state.correct_count}")
    print_fn(f"Best streak: {state.best_streak}")
    print_fn(f"You scored {state.total_points} points!")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
