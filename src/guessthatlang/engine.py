"""Timed line reveal running alongside guess input."""

from __future__ import annotations

import queue
import random
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .errors import InputAborted
from .models import LanguageTag, RoundOutcome, Snippet
from .roster import Roster
from .session import available_points

PROMPT = "Which programming language is this? (Type the corresponding number)"
INPUT_PROMPT = "> "
QUIT_COMMANDS = {"q", ":q", ":quit", ":exit"}
SKIP_COMMANDS = {"s", ":s", ":skip"}
DEFAULT_WAIT_MS = 1500
DEFAULT_INTERVAL_MS = 1500

InputFn = Callable[[str], str]
WaitFn = Callable[[threading.Event, float], bool]


def _wait(cancel: threading.Event, seconds: float) -> bool:
    return cancel.wait(seconds)


class RoundPhase(Enum):
    AWAITING_START = "awaiting_start"
    REVEALING = "revealing"
    AWAITING_GUESS = "awaiting_guess"
    RESOLVED = "resolved"
    ABORTED = "aborted"


# Events consumed by the round loop.


@dataclass(frozen=True)
class RevealTick:
    step: int


@dataclass(frozen=True)
class GuessEvent:
    language: LanguageTag


@dataclass(frozen=True)
class SkipEvent:
    pass


@dataclass(frozen=True)
class QuitEvent:
    reason: str = "quit"


@dataclass(frozen=True)
class InvalidInput:
    text: str


# Events emitted to the renderer.


@dataclass(frozen=True)
class OptionsShown:
    options: tuple[LanguageTag, ...]
    line_count: int


@dataclass(frozen=True)
class LineRevealed:
    index: int
    text: str
    step: int
    total: int


@dataclass(frozen=True)
class RoundResolved:
    outcome: RoundOutcome


RoundEvent = RevealTick | GuessEvent | SkipEvent | QuitEvent | InvalidInput
RenderEvent = OptionsShown | LineRevealed | RoundResolved | InvalidInput
EmitFn = Callable[[RenderEvent], None]


def parse_choice(text: str, options: tuple[LanguageTag, ...]) -> RoundEvent:
    """Map one line of player input to an event."""
    lowered = text.strip().lower()
    if lowered in QUIT_COMMANDS:
        return QuitEvent()
    if lowered in SKIP_COMMANDS:
        return SkipEvent()
    if lowered.isdigit():
        index = int(lowered) - 1
        if 0 <= index < len(options):
            return GuessEvent(options[index])
        return InvalidInput(text)
    for option in options:
        if option.name.lower() == lowered:
            return GuessEvent(option)
    return InvalidInput(text)


class Round:
    """State machine for one round. Not thread-safe; only the round loop touches it."""

    def __init__(self, snippet: Snippet, options: tuple[LanguageTag, ...]) -> None:
        self.snippet = snippet
        self.options = options
        self.phase = RoundPhase.AWAITING_START
        self.outcome: RoundOutcome | None = None
        self._revealed = 0

    @property
    def revealed_count(self) -> int:
        return self._revealed

    @property
    def revealed_indices(self) -> tuple[int, ...]:
        return self.snippet.reveal_order[: self._revealed]

    def start(self) -> OptionsShown:
        if self.phase is not RoundPhase.AWAITING_START:
            raise RuntimeError(f"Cannot start a round in phase {self.phase.value}.")
        self.phase = RoundPhase.REVEALING
        return OptionsShown(self.options, len(self.snippet.lines))

    def reveal_next(self) -> LineRevealed | None:
        """Show the next line in reveal order; no-op once revealing has stopped."""
        if self.phase is not RoundPhase.REVEALING:
            return None
        step = self._revealed
        index = self.snippet.reveal_order[step]
        self._revealed += 1
        if self._revealed == len(self.snippet.reveal_order):
            self.phase = RoundPhase.AWAITING_GUESS
        return LineRevealed(index, self.snippet.lines[index], step, len(self.snippet.lines))

    def _resolve(self, guessed: LanguageTag | None) -> RoundOutcome:
        if self.phase not in (RoundPhase.REVEALING, RoundPhase.AWAITING_GUESS):
            raise RuntimeError(f"Cannot resolve a round in phase {self.phase.value}.")
        correct = guessed is not None and guessed == self.snippet.language
        self.outcome = RoundOutcome(
            language=self.snippet.language,
            guessed=guessed,
            correct=correct,
            lines_revealed_at_guess=self._revealed,
            points=available_points(self._revealed) if correct else 0,
        )
        self.phase = RoundPhase.RESOLVED
        return self.outcome

    def guess(self, language: LanguageTag) -> RoundOutcome:
        return self._resolve(language)

    def skip(self) -> RoundOutcome:
        return self._resolve(None)

    def abort(self) -> None:
        self.phase = RoundPhase.ABORTED

    def apply(self, batch: list[RoundEvent]) -> list[RenderEvent]:
        """Process events that arrived together. Player input beats pending ticks."""
        decisive = [event for event in batch if isinstance(event, (GuessEvent, SkipEvent, QuitEvent))]
        emitted: list[RenderEvent] = [event for event in batch if isinstance(event, InvalidInput)]
        if decisive:
            event = decisive[0]
            if isinstance(event, QuitEvent):
                self.abort()
                raise InputAborted(event.reason)
            outcome = self.guess(event.language) if isinstance(event, GuessEvent) else self.skip()
            emitted.append(RoundResolved(outcome))
            return emitted

        for event in batch:
            if isinstance(event, RevealTick):
                revealed = self.reveal_next()
                if revealed is not None:
                    emitted.append(revealed)
        return emitted


class RevealEngine:
    """Runs rounds: a timer thread posts reveal ticks, an input thread posts guesses."""

    def __init__(
        self,
        roster: Roster,
        *,
        initial_wait_ms: int = DEFAULT_WAIT_MS,
        reveal_interval_ms: int = DEFAULT_INTERVAL_MS,
        choices: int | None = None,
        shuffle_options: bool = True,
        rng: random.Random | None = None,
        wait_fn: WaitFn = _wait,
    ) -> None:
        if choices is not None and not 2 <= choices <= len(roster):
            raise ValueError(f"choices must be between 2 and {len(roster)}.")
        self.roster = roster
        self.initial_wait = max(initial_wait_ms, 0) / 1000
        self.reveal_interval = max(reveal_interval_ms, 0) / 1000
        self.choices = choices
        self.shuffle_options = shuffle_options
        self.rng = rng or random.Random()
        self.wait_fn = wait_fn

    def options_for(self, language: LanguageTag) -> tuple[LanguageTag, ...]:
        """Options shown before any code: the roster, or the answer plus random decoys."""
        if self.choices is None:
            options = list(self.roster)
        else:
            decoys = [candidate for candidate in self.roster if candidate != language]
            options = [language, *self.rng.sample(decoys, self.choices - 1)]
            if not self.shuffle_options:
                order = {name: position for position, name in enumerate(self.roster.names)}
                options.sort(key=lambda item: order[item.name])
        if self.shuffle_options:
            self.rng.shuffle(options)
        return tuple(options)

    def _run_timer(self, snippet: Snippet, events: queue.Queue[RoundEvent], cancel: threading.Event) -> None:
        first = True
        for step, index in enumerate(snippet.reveal_order):
            if snippet.lines[index].strip():
                delay = self.initial_wait if first else self.reveal_interval
                first = False
                if self.wait_fn(cancel, delay):
                    return
            if cancel.is_set():
                return
            events.put(RevealTick(step))

    @staticmethod
    def _read_input(
        options: tuple[LanguageTag, ...],
        input_fn: InputFn,
        events: queue.Queue[RoundEvent],
        cancel: threading.Event,
    ) -> None:
        while not cancel.is_set():
            try:
                text = input_fn(INPUT_PROMPT)
            except EOFError:
                events.put(QuitEvent("end of input"))
                return
            except Exception as exc:  # surfaced to the round loop as a quit
                events.put(QuitEvent(f"input failed: {exc}"))
                return
            event = parse_choice(text, options)
            events.put(event)
            if not isinstance(event, InvalidInput):
                return

    def play_round(self, snippet: Snippet, input_fn: InputFn, emit: EmitFn) -> RoundOutcome:
        """Run one round to completion. Raises InputAborted if the player quits."""
        options = self.options_for(snippet.language)
        current = Round(snippet, options)
        events: queue.Queue[RoundEvent] = queue.Queue()
        cancel = threading.Event()

        emit(current.start())
        timer = threading.Thread(
            target=self._run_timer, args=(snippet, events, cancel), name="reveal-timer", daemon=True
        )
        reader = threading.Thread(
            target=self._read_input, args=(options, input_fn, events, cancel), name="guess-input", daemon=True
        )
        timer.start()
        reader.start()
        try:
            while True:
                batch = [events.get()]
                while True:
                    try:
                        batch.append(events.get_nowait())
                    except queue.Empty:
                        break
                for rendered in current.apply(batch):
                    emit(rendered)
                if current.outcome is not None:
                    return current.outcome
        except KeyboardInterrupt:
            current.abort()
            raise InputAborted("interrupted") from None
        finally:
            cancel.set()
            timer.join()
