"""Round orchestration: start, hint, submit."""

import logging
import random
from dataclasses import dataclass, field

from .config import DEFAULT_TOP_N, MAX_HINTS_PER_ROUND, SESSION_TIMEOUT_MINUTES
from .errors import HintBudgetExceeded, InvalidState, NotFound, ValidationFailed
from .hints import generate_hint
from .interfaces import AchievementHook, Clock, ContentProvider, Storage, SystemClock
from .models import Difficulty, LeaderboardEntry, Mode, Round, ScoreRecord
from .ranking import LeaderboardStatistics, RankingEngine
from .scoring import ScoreBreakdown, hint_penalty_for_level, score_breakdown
from .scrambler import scramble
from .selector import ContentSelector, Exhausted
from .sessions import SessionStatistics, SessionStore
from .validation import AnswerValidator

logger = logging.getLogger(__name__)

# Question metadata shown when a round starts, per mode
_START_METADATA = {
    Mode.FIXED_TOKEN: ('definition', 'pinyin'),
    Mode.FREE_COMPOSITION: ('meaning', 'pinyin'),
}

# Question metadata shown with the result
_RESULT_METADATA = ('definition', 'meaning', 'usage', 'pinyin', 'translation',
                    'grammar_points', 'origin')


@dataclass(frozen=True)
class RoundStarted:
    round_id: str
    mode: Mode
    difficulty: Difficulty
    scrambled: list[str]
    token_count: int
    time_limit_seconds: int
    hints_available: int
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'round_id': self.round_id,
            'mode': self.mode.value,
            'difficulty': self.difficulty.value,
            'scrambled': list(self.scrambled),
            'token_count': self.token_count,
            'time_limit_seconds': self.time_limit_seconds,
            'hints_available': self.hints_available,
            'metadata': dict(self.metadata)
        }


@dataclass(frozen=True)
class HintResult:
    round_id: str
    level: int
    content: str
    penalty: int
    hints_used: int

    @property
    def hints_remaining(self) -> int:
        return MAX_HINTS_PER_ROUND - self.hints_used

    def to_dict(self) -> dict:
        return {
            'round_id': self.round_id,
            'level': self.level,
            'content': self.content,
            'penalty': self.penalty,
            'hints_used': self.hints_used,
            'hints_remaining': self.hints_remaining
        }


@dataclass(frozen=True)
class RoundResult:
    round_id: str
    correct: bool
    score: int
    accuracy: float
    similarity: float
    elapsed_seconds: float
    hints_used: int
    correct_answer: str
    answer: str
    breakdown: ScoreBreakdown
    grammar_score: int | None = None
    diagnostics: list[dict] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    rank: int | None = None

    def to_dict(self) -> dict:
        return {
            'round_id': self.round_id,
            'correct': self.correct,
            'score': self.score,
            'accuracy': self.accuracy,
            'similarity': self.similarity,
            'grammar_score': self.grammar_score,
            'elapsed_seconds': self.elapsed_seconds,
            'hints_used': self.hints_used,
            'correct_answer': self.correct_answer,
            'answer': self.answer,
            'breakdown': self.breakdown.to_dict(),
            'diagnostics': list(self.diagnostics),
            'metadata': dict(self.metadata),
            'rank': self.rank
        }


class RoundOrchestrator:
    """Coordinates content selection, round lifecycle, scoring and ranking.

    Args:
        content: Question catalog.
        storage: Persistence for rounds, score records and leaderboard entries.
        clock: Time source for start, elapsed and expiry.
        achievement_hook: Optional consumer notified after each completed round.
        no_repeat: Use the larger no-repeat question history bound.
        rng: Random source for selection and scrambling.
        timeout_minutes: Inactivity timeout for the stale-round sweep.
    """

    def __init__(self, content: ContentProvider, storage: Storage, clock: Clock = None,
                 achievement_hook: AchievementHook = None, no_repeat: bool = False,
                 rng: random.Random = None, timeout_minutes: int = SESSION_TIMEOUT_MINUTES):
        self.storage = storage
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self.selector = ContentSelector(content, no_repeat=no_repeat, rng=self.rng)
        self.sessions = SessionStore(storage, self.clock, timeout_minutes)
        self.ranking = RankingEngine(storage, self.clock)
        self.validator = AnswerValidator()
        self.achievement_hook = achievement_hook

    @staticmethod
    def _require_player(player_id: str) -> str:
        if not player_id or not str(player_id).strip():
            raise ValidationFailed("Player id is required")
        return str(player_id).strip()

    def _resolve_round(self, player_id: str, round_id: str | None) -> Round:
        if round_id is None:
            round = self.sessions.active_for(player_id)
            if round is None:
                raise InvalidState(f"No active round found for player: {player_id}")
            return round
        round = self.sessions.get(round_id)
        if round.player_id != player_id:
            raise NotFound(f"Round not found: {round_id}")
        return round

    # ==================== Rounds ====================

    def start_round(self, player_id: str, mode, difficulty) -> RoundStarted | Exhausted:
        """Select an unseen question, scramble it and open a round.

        Any round the player still has open is abandoned. Returns Exhausted
        when the player has seen every question of the board.
        """
        player_id = self._require_player(player_id)
        mode = Mode.parse(mode)
        difficulty = Difficulty.parse(difficulty)
        logger.info(f"Starting round: player={player_id}, mode={mode.value}, "
                    f"difficulty={difficulty.value}")

        selection = self.selector.select(player_id, mode, difficulty)
        if isinstance(selection, Exhausted):
            return selection

        question = selection.question
        scrambled = scramble(question.tokens, self.rng)
        payload = {
            'allowed_tokens': list(question.tokens),
            'metadata': dict(question.metadata),
            'time_limit_seconds': difficulty.time_limit_seconds
        }
        round = self.sessions.create(player_id, mode, difficulty, question, scrambled, payload)

        shown = {k: question.metadata[k] for k in _START_METADATA[mode] if k in question.metadata}
        return RoundStarted(
            round_id=round.id,
            mode=mode,
            difficulty=difficulty,
            scrambled=scrambled,
            token_count=len(question.tokens),
            time_limit_seconds=difficulty.time_limit_seconds,
            hints_available=MAX_HINTS_PER_ROUND,
            metadata=shown
        )

    def use_hint(self, player_id: str, level: int, round_id: str = None) -> HintResult:
        """Reveal a hint for the player's active round.

        Raises:
            InvalidState: No active round.
            HintBudgetExceeded: All hints of the round are used, whatever level is asked.
            ValidationFailed: Level outside 1-3 or not above the last level used.
        """
        player_id = self._require_player(player_id)
        round = self._resolve_round(player_id, round_id)
        if not round.is_active:
            raise InvalidState(f"Round is not active: {round.id}")
        if round.hint_count >= MAX_HINTS_PER_ROUND:
            raise HintBudgetExceeded(
                f"Maximum hints ({MAX_HINTS_PER_ROUND}) already used in round: {round.id}"
            )
        penalty = hint_penalty_for_level(level)
        if level <= round.last_hint_level:
            raise ValidationFailed(
                f"Hint level {level} must be higher than the last level used ({round.last_hint_level})"
            )

        content = generate_hint(round.mode, level, round.target, round.target_tokens,
                                round.payload.get('metadata'))
        hints_used = self.sessions.add_hint(round.id, level, penalty, content)
        logger.info(f"Hint provided: player={player_id}, level={level}, penalty={penalty}")
        return HintResult(round.id, level, content, penalty, hints_used)

    def submit_answer(self, player_id: str, answer, elapsed_seconds: float = None,
                      round_id: str = None) -> RoundResult:
        """Validate, score and close the player's active round.

        `answer` is the submitted text or its ordered tokens. When
        `elapsed_seconds` is omitted the time since the round started is used.
        Incorrect answers score 0 but still complete the round and count as a
        played game on the leaderboard.
        """
        player_id = self._require_player(player_id)
        if answer is None:
            raise ValidationFailed("Answer is required")
        if elapsed_seconds is not None and elapsed_seconds < 0:
            raise ValidationFailed(f"Elapsed time cannot be negative: {elapsed_seconds}")

        round = self._resolve_round(player_id, round_id)
        if not round.is_active:
            raise InvalidState(f"Round is not active: {round.id}")

        def score_round(current):
            elapsed = elapsed_seconds
            if elapsed is None:
                elapsed = current.duration_seconds(self.clock.now())
            validation = self.validator.validate(
                current.mode, answer, current.target, current.target_tokens,
                current.payload.get('allowed_tokens')
            )
            breakdown = score_breakdown(current.difficulty, elapsed, validation.accuracy,
                                        current.hint_count, validation.grammar_score)
            score = breakdown.final_score if validation.correct else 0
            return score, (validation, breakdown, elapsed)

        round, (validation, breakdown, elapsed_seconds) = self.sessions.complete_with(
            round.id, score_round
        )
        score = round.final_score
        hints_used = round.hint_count

        text = ''.join(answer) if isinstance(answer, (list, tuple)) else answer
        diagnostics = [d.to_dict() for d in validation.diagnostics]
        record = ScoreRecord(
            round_id=round.id,
            player_id=player_id,
            mode=round.mode,
            difficulty=round.difficulty,
            question_id=round.question_id,
            answer=text,
            score=score,
            elapsed_seconds=elapsed_seconds,
            accuracy=validation.accuracy,
            hints_used=hints_used,
            correct=validation.correct,
            recorded_at=self.clock.now(),
            grammar_score=validation.grammar_score,
            similarity=validation.similarity,
            diagnostics=tuple(diagnostics)
        )
        self.storage.append_score(record)

        entry = self.ranking.update(player_id, round.mode, round.difficulty, score,
                                    validation.accuracy)
        self._notify_achievements(record)

        logger.info(f"Answer submitted: player={player_id}, correct={validation.correct}, "
                    f"score={score}, hints={hints_used}")
        metadata = round.payload.get('metadata') or {}
        return RoundResult(
            round_id=round.id,
            correct=validation.correct,
            score=score,
            accuracy=validation.accuracy,
            similarity=validation.similarity,
            elapsed_seconds=elapsed_seconds,
            hints_used=hints_used,
            correct_answer=round.target,
            answer=text,
            breakdown=breakdown,
            grammar_score=validation.grammar_score,
            diagnostics=diagnostics,
            metadata={k: metadata[k] for k in _RESULT_METADATA if k in metadata},
            rank=entry.rank if entry else None
        )

    def _notify_achievements(self, record: ScoreRecord) -> None:
        if self.achievement_hook is None:
            return
        try:
            self.achievement_hook.round_completed(
                record.player_id, record.score, record.elapsed_seconds,
                record.accuracy, record.hints_used
            )
        except Exception as e:
            logger.warning(f"Achievement hook failed for round {record.round_id}: {e}")

    def abandon_round(self, player_id: str) -> bool:
        """Abandon the player's active round. False if there was none."""
        player_id = self._require_player(player_id)
        round = self.sessions.active_for(player_id)
        if round is None:
            return False
        return self.sessions.abandon(round.id)

    def active_round(self, player_id: str) -> Round | None:
        return self.sessions.active_for(self._require_player(player_id))

    def restart(self, player_id: str, mode=None, difficulty=None) -> None:
        """Clear the player's seen-question history so every question is selectable again."""
        player_id = self._require_player(player_id)
        mode = Mode.parse(mode) if mode is not None else None
        difficulty = Difficulty.parse(difficulty) if difficulty is not None else None
        self.selector.restart(player_id, mode, difficulty)

    # ==================== Maintenance ====================

    def sweep_stale(self) -> int:
        return self.sessions.sweep_stale()

    def recompute_all(self) -> int:
        return self.ranking.recompute_all()

    # ==================== Leaderboard ====================

    def top_n(self, mode, difficulty, n: int = DEFAULT_TOP_N) -> list[LeaderboardEntry]:
        return self.ranking.top_n(Mode.parse(mode), Difficulty.parse(difficulty), n)

    def position_of(self, player_id: str, mode, difficulty) -> LeaderboardEntry | None:
        return self.ranking.position_of(player_id, Mode.parse(mode), Difficulty.parse(difficulty))

    def player_rankings(self, player_id: str) -> list[LeaderboardEntry]:
        return self.ranking.player_rankings(player_id)

    def players_near_rank(self, mode, difficulty, rank: int, offset: int = 2) -> list[LeaderboardEntry]:
        return self.ranking.players_near_rank(Mode.parse(mode), Difficulty.parse(difficulty),
                                              rank, offset)

    def leaderboard_statistics(self, mode, difficulty) -> LeaderboardStatistics:
        return self.ranking.statistics(Mode.parse(mode), Difficulty.parse(difficulty))

    # ==================== Player history ====================

    def player_history(self, player_id: str, mode=None, difficulty=None,
                       limit: int = 20) -> list[ScoreRecord]:
        """Most recent score records, newest first."""
        mode = Mode.parse(mode) if mode is not None else None
        difficulty = Difficulty.parse(difficulty) if difficulty is not None else None
        return self.storage.list_scores(player_id, mode, difficulty)[:max(0, limit)]

    def personal_best(self, player_id: str, mode, difficulty) -> ScoreRecord | None:
        records = self.storage.list_scores(player_id, Mode.parse(mode), Difficulty.parse(difficulty))
        correct = [r for r in records if r.correct]
        if not correct:
            return None
        return max(correct, key=lambda r: (r.score, -r.elapsed_seconds))

    def session_statistics(self, player_id: str) -> SessionStatistics:
        return self.sessions.statistics(player_id)
