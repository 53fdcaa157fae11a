"""Score calculation for completed rounds."""

import logging
from dataclasses import dataclass

from .config import (
    ACCURACY_BONUS_TIERS, GRAMMAR_BONUS_TIERS, HINT_LEVEL_PENALTIES,
    HINT_PENALTY_SCHEDULE, MAX_HINTS_PER_ROUND, TIME_BONUS_TIERS
)
from .errors import ValidationFailed
from .models import Difficulty

logger = logging.getLogger(__name__)


def time_bonus(elapsed_seconds: float) -> int:
    for limit, bonus in TIME_BONUS_TIERS:
        if elapsed_seconds < limit:
            return bonus
    return 0


def accuracy_bonus(accuracy: float) -> int:
    for threshold, bonus in ACCURACY_BONUS_TIERS:
        if accuracy >= threshold:
            return bonus
    return 0


def grammar_bonus(grammar_score: int | None) -> int:
    if grammar_score is None:
        return 0
    for threshold, bonus in GRAMMAR_BONUS_TIERS:
        if grammar_score >= threshold:
            return bonus
    return 0


def cumulative_hint_penalty(hints_used: int) -> int:
    """Total penalty for a number of hints: 0, 10, 30, 60."""
    hints_used = max(0, min(MAX_HINTS_PER_ROUND, hints_used))
    return HINT_PENALTY_SCHEDULE[hints_used]


def hint_penalty_for_level(level: int) -> int:
    """Penalty charged when a hint of the given level is shown."""
    if level not in HINT_LEVEL_PENALTIES:
        raise ValidationFailed(f"Hint level must be between 1 and {MAX_HINTS_PER_ROUND}, got {level}")
    return HINT_LEVEL_PENALTIES[level]


@dataclass(frozen=True)
class ScoreBreakdown:
    """Every component that went into a score, for result screens."""

    difficulty: Difficulty
    base_points: int
    time_bonus: int
    accuracy_bonus: int
    grammar_bonus: int
    hint_penalty: int
    multiplier: float
    final_score: int

    @property
    def raw_score(self) -> int:
        return (self.base_points + self.time_bonus + self.accuracy_bonus
                + self.grammar_bonus - self.hint_penalty)

    def to_dict(self) -> dict:
        return {
            'difficulty': self.difficulty.value,
            'base_points': self.base_points,
            'time_bonus': self.time_bonus,
            'accuracy_bonus': self.accuracy_bonus,
            'grammar_bonus': self.grammar_bonus,
            'hint_penalty': self.hint_penalty,
            'raw_score': self.raw_score,
            'multiplier': self.multiplier,
            'final_score': self.final_score
        }


def score_breakdown(difficulty: Difficulty, elapsed_seconds: float, accuracy: float,
                    hints_used: int, grammar_score: int | None = None) -> ScoreBreakdown:
    """Compute the score and keep its parts.

    Args:
        difficulty: Round difficulty, sets base points and multiplier.
        elapsed_seconds: Time taken to answer.
        accuracy: Answer accuracy in [0, 1].
        hints_used: Number of hints shown during the round.
        grammar_score: Grammar score for sentence rounds, None for idioms.
    """
    base = difficulty.base_points
    t_bonus = time_bonus(elapsed_seconds)
    a_bonus = accuracy_bonus(accuracy)
    g_bonus = grammar_bonus(grammar_score)
    penalty = cumulative_hint_penalty(hints_used)

    raw = base + t_bonus + a_bonus + g_bonus - penalty
    final = max(0, raw * difficulty.multiplier_percent // 100)

    logger.debug(f"Score: base={base}, time={t_bonus}, accuracy={a_bonus}, "
                 f"grammar={g_bonus}, penalty={penalty}, raw={raw}, "
                 f"multiplier={difficulty.multiplier}, final={final}")
    return ScoreBreakdown(difficulty, base, t_bonus, a_bonus, g_bonus, penalty,
                          difficulty.multiplier, final)


def calculate_score(difficulty: Difficulty, elapsed_seconds: float, accuracy: float,
                    hints_used: int, grammar_score: int | None = None) -> int:
    return score_breakdown(difficulty, elapsed_seconds, accuracy, hints_used, grammar_score).final_score


def max_score(difficulty: Difficulty, with_grammar: bool = False) -> int:
    """Best achievable score: fastest time, perfect accuracy, no hints."""
    return calculate_score(difficulty, 0, 1.0, 0, 100 if with_grammar else None)
