"""Application service tying selection, rounds and score keeping together."""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from pathlib import Path

from .config import TOKEN_ENV_VAR, Settings, load_settings, update_settings_file
from .engine import EmitFn, InputFn, RevealEngine, WaitFn
from .errors import InputAborted, RateLimited, SelectionExhausted, TokenError
from .github import GithubClient, validate_token_format
from .log import get_logger
from .models import RoundOutcome, Snippet
from .providers import CodeProvider, build_provider
from .roster import Roster, load_roster
from .selector import CandidateSelector
from .session import SessionState

DEFAULT_LINE_BUDGET = 20

logger = get_logger(__name__)


def apply_token(
    client: GithubClient,
    settings: Settings,
    cli_token: str | None = None,
    config_path: Path | None = None,
) -> Settings:
    """Validate and store a token given on the command line, or re-check the stored one.

    A stored token that GitHub rejects is removed from the settings file; a
    rejected token from the environment is reported and left alone.
    """
    if cli_token:
        token = validate_token_format(cli_token)
        try:
            client.check_token(token)
        except RateLimited:
            logger.warning("Rate limited while checking the token; storing it unchecked.")
        update_settings_file(config_path, access_token=token)
        client.token = token
        return settings.with_overrides(access_token=token)

    if settings.access_token:
        try:
            client.check_token(settings.access_token)
        except RateLimited:
            logger.warning("Rate limited while checking the stored token; using it unchecked.")
        except TokenError:
            stored = load_settings(config_path, env={}).access_token
            if stored != settings.access_token:
                raise TokenError(
                    f"The token in {TOKEN_ENV_VAR} is invalid. Please fix or unset it and try again."
                ) from None
            update_settings_file(config_path, access_token=None)
            raise TokenError(
                "The token found in the config is invalid, so it has been removed. Please try again."
            ) from None
        client.token = settings.access_token
    return settings


class GameService:
    """Coordinates snippet selection, round play and the session score."""

    def __init__(
        self,
        settings: Settings,
        *,
        roster: Roster | None = None,
        client: GithubClient | None = None,
        provider: CodeProvider | None = None,
        rng: random.Random | None = None,
        line_budget: int = DEFAULT_LINE_BUDGET,
        width: int | None = None,
        sleep_fn: Callable[[float], None] = time.sleep,
        wait_fn: WaitFn | None = None,
    ) -> None:
        """Build the pipeline from settings; collaborators may be injected for tests."""
        self.settings = settings
        self.roster = roster or load_roster()
        self.rng = rng or random.Random()
        self.client = client or GithubClient(settings.access_token)
        self.provider = provider or build_provider(
            settings.provider, self.client, rng=self.rng, max_file_bytes=settings.max_file_bytes
        )
        self.selector = CandidateSelector(
            self.roster,
            self.provider,
            max_attempts=settings.max_attempts,
            line_budget=line_budget,
            width=width,
            shuffle=settings.shuffle,
            max_file_bytes=settings.max_file_bytes,
            min_lines=settings.min_lines,
            rng=self.rng,
            sleep_fn=sleep_fn,
        )
        engine_options: dict[str, WaitFn] = {"wait_fn": wait_fn} if wait_fn is not None else {}
        self.engine = RevealEngine(
            self.roster,
            initial_wait_ms=settings.initial_wait_ms,
            reveal_interval_ms=settings.reveal_interval_ms,
            choices=settings.choices,
            shuffle_options=settings.shuffle_options,
            rng=self.rng,
            **engine_options,
        )
        self.state = SessionState()

    def next_snippet(self) -> Snippet:
        """Select the next round's snippet. Raises SelectionExhausted."""
        return self.selector.select()

    def play_round(self, snippet: Snippet, input_fn: InputFn, emit: EmitFn) -> RoundOutcome:
        """Play one round and record it. Raises InputAborted without recording."""
        try:
            outcome = self.engine.play_round(snippet, input_fn, emit)
        except InputAborted:
            self.state.abandon_round()
            raise
        self.state.record_outcome(outcome)
        logger.debug(
            "Round %d: %s, guessed %s after %d lines",
            self.state.rounds_played,
            outcome.language.name,
            outcome.guessed.name if outcome.guessed else "nothing",
            outcome.lines_revealed_at_guess,
        )
        return outcome

    def play_session(
        self,
        input_fn: InputFn,
        make_emit: Callable[[Snippet], EmitFn],
        *,
        after_round: Callable[[RoundOutcome], bool] | None = None,
    ) -> SelectionExhausted | None:
        """Play rounds until the player quits or no snippet can be found.

        ``after_round`` runs after each recorded outcome; returning False ends
        the session. Returns the SelectionExhausted error that ended the
        session, or None when the player stopped.
        """
        while True:
            try:
                snippet = self.next_snippet()
            except SelectionExhausted as exc:
                logger.error("%s", exc)
                return exc
            try:
                outcome = self.play_round(snippet, input_fn, make_emit(snippet))
            except InputAborted as exc:
                logger.debug("Session ended mid-round: %s", exc)
                return None
            if after_round is not None and not after_round(outcome):
                return None

    def close(self) -> None:
        self.client.close()
