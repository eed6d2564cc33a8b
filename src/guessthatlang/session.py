"""In-session score keeping."""

from __future__ import annotations

from dataclasses import dataclass, field

from .models import RoundOutcome

MAX_POINTS = 100
POINTS_PER_LINE = 10
MIN_POINTS = 10


def available_points(lines_revealed: int) -> int:
    """Points for a correct guess; the first line is free, every later one costs 10."""
    return max(MAX_POINTS - POINTS_PER_LINE * max(lines_revealed - 1, 0), MIN_POINTS)


@dataclass
class SessionState:
    """Counters for one play session. Only record_outcome mutates them."""

    rounds_played: int = 0
    current_streak: int = 0
    best_streak: int = 0
    correct_count: int = 0
    total_points: int = 0
    _recorded: set[str] = field(default_factory=set, repr=False, compare=False)

    def record_outcome(self, outcome: RoundOutcome) -> None:
        """Apply one round's result."""
        if outcome.round_id in self._recorded:
            raise ValueError(f"Round {outcome.round_id} was already recorded.")
        self._recorded.add(outcome.round_id)

        self.rounds_played += 1
        if outcome.correct:
            self.current_streak += 1
            self.correct_count += 1
            self.total_points += outcome.points
            self.best_streak = max(self.best_streak, self.current_streak)
        else:
            self.current_streak = 0

    def abandon_round(self) -> None:
        """The player quit mid-round: nothing is recorded, but the streak is broken."""
        self.current_streak = 0
