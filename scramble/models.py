"""Domain models for the scramble engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .config import MAX_HINTS_PER_ROUND, TOP_TEN
from .errors import ValidationFailed


def _parse_time(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class Mode(str, Enum):
    """Challenge mode.

    FIXED_TOKEN rounds (idioms) have exactly one correct character order.
    FREE_COMPOSITION rounds (sentences) are scored on word order and word set.
    """

    FIXED_TOKEN = 'fixed_token'
    FREE_COMPOSITION = 'free_composition'

    @classmethod
    def parse(cls, value) -> 'Mode':
        if isinstance(value, cls):
            return value
        key = str(value or '').strip().lower().replace('-', '_')
        key = {'idiom': 'fixed_token', 'sentence': 'free_composition'}.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValidationFailed(f"Unknown mode: {value!r}") from None


class Difficulty(str, Enum):
    EASY = 'EASY'
    MEDIUM = 'MEDIUM'
    HARD = 'HARD'
    EXPERT = 'EXPERT'

    @property
    def base_points(self) -> int:
        return {'EASY': 100, 'MEDIUM': 200, 'HARD': 300, 'EXPERT': 500}[self.value]

    @property
    def multiplier_percent(self) -> int:
        """Score multiplier as an integer percentage, keeps flooring exact."""
        return {'EASY': 100, 'MEDIUM': 120, 'HARD': 150, 'EXPERT': 200}[self.value]

    @property
    def multiplier(self) -> float:
        return self.multiplier_percent / 100

    @property
    def time_limit_seconds(self) -> int:
        return {'EASY': 180, 'MEDIUM': 120, 'HARD': 90, 'EXPERT': 60}[self.value]

    @classmethod
    def parse(cls, value) -> 'Difficulty':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or '').strip().upper())
        except ValueError:
            raise ValidationFailed(f"Unknown difficulty: {value!r}") from None


class RoundStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    COMPLETED = 'COMPLETED'
    ABANDONED = 'ABANDONED'
    EXPIRED = 'EXPIRED'

    @property
    def is_terminal(self) -> bool:
        return self is not RoundStatus.ACTIVE


class Question:
    """A catalog entry: an idiom or a sentence with its hint metadata."""

    def __init__(self, id: str, mode: Mode, difficulty: Difficulty, target: str,
                 tokens: list[str] = None, metadata: dict = None):
        self.id = id
        self.mode = mode
        self.difficulty = difficulty
        self.target = target
        if tokens is None:
            tokens = list(target) if mode is Mode.FIXED_TOKEN else [target]
        self.tokens = list(tokens)
        self.metadata = metadata or {}

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'mode': self.mode.value,
            'difficulty': self.difficulty.value,
            'target': self.target,
            'tokens': list(self.tokens),
            'metadata': dict(self.metadata)
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Question':
        return cls(
            data['id'],
            Mode.parse(data['mode']),
            Difficulty.parse(data['difficulty']),
            data['target'],
            data.get('tokens'),
            data.get('metadata')
        )


class HintRecord:
    """A hint shown during a round."""

    def __init__(self, level: int, penalty: int, content: str, used_at: datetime):
        self.level = level
        self.penalty = penalty
        self.content = content
        self.used_at = used_at

    def to_dict(self) -> dict:
        return {
            'level': self.level,
            'penalty': self.penalty,
            'content': self.content,
            'used_at': _format_time(self.used_at)
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'HintRecord':
        return cls(data['level'], data['penalty'], data['content'], _parse_time(data['used_at']))


class Round:
    """One attempt by a player at a single challenge."""

    def __init__(self, id: str, player_id: str, mode: Mode, difficulty: Difficulty,
                 question_id: str, target: str, target_tokens: list[str],
                 scrambled: list[str], started_at: datetime, payload: dict = None):
        self.id = id
        self.player_id = player_id
        self.mode = mode
        self.difficulty = difficulty
        self.question_id = question_id
        self.target = target
        self.target_tokens = list(target_tokens)
        self.scrambled = list(scrambled)
        self.status = RoundStatus.ACTIVE
        self.started_at = started_at
        self.completed_at = None
        self.final_score = None
        self.hints = []
        self.payload = payload or {}

    @property
    def is_active(self) -> bool:
        return self.status is RoundStatus.ACTIVE

    @property
    def hint_count(self) -> int:
        return len(self.hints)

    @property
    def hints_remaining(self) -> int:
        return max(0, MAX_HINTS_PER_ROUND - len(self.hints))

    @property
    def last_hint_level(self) -> int:
        return self.hints[-1].level if self.hints else 0

    def duration_seconds(self, now: datetime = None) -> float:
        """Seconds from start to completion (or to `now` while still open)."""
        end = self.completed_at or now
        if end is None:
            return 0.0
        return max(0.0, (end - self.started_at).total_seconds())

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'player_id': self.player_id,
            'mode': self.mode.value,
            'difficulty': self.difficulty.value,
            'question_id': self.question_id,
            'target': self.target,
            'target_tokens': list(self.target_tokens),
            'scrambled': list(self.scrambled),
            'status': self.status.value,
            'started_at': _format_time(self.started_at),
            'completed_at': _format_time(self.completed_at),
            'final_score': self.final_score,
            'hints': [h.to_dict() for h in self.hints],
            'payload': self.payload
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Round':
        round = cls(
            data['id'], data['player_id'],
            Mode.parse(data['mode']), Difficulty.parse(data['difficulty']),
            data.get('question_id'), data['target'],
            data.get('target_tokens', []), data.get('scrambled', []),
            _parse_time(data['started_at']), data.get('payload')
        )
        round.status = RoundStatus(data.get('status', 'ACTIVE'))
        round.completed_at = _parse_time(data.get('completed_at'))
        round.final_score = data.get('final_score')
        round.hints = [HintRecord.from_dict(h) for h in data.get('hints', [])]
        return round


@dataclass(frozen=True)
class ScoreRecord:
    """Immutable outcome of one completed round."""

    round_id: str
    player_id: str
    mode: Mode
    difficulty: Difficulty
    question_id: str
    answer: str
    score: int
    elapsed_seconds: float
    accuracy: float
    hints_used: int
    correct: bool
    recorded_at: datetime
    grammar_score: int | None = None
    similarity: float | None = None
    diagnostics: tuple = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            'round_id': self.round_id,
            'player_id': self.player_id,
            'mode': self.mode.value,
            'difficulty': self.difficulty.value,
            'question_id': self.question_id,
            'answer': self.answer,
            'score': self.score,
            'elapsed_seconds': self.elapsed_seconds,
            'accuracy': self.accuracy,
            'hints_used': self.hints_used,
            'correct': self.correct,
            'recorded_at': _format_time(self.recorded_at),
            'grammar_score': self.grammar_score,
            'similarity': self.similarity,
            'diagnostics': [dict(d) for d in self.diagnostics]
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ScoreRecord':
        return cls(
            round_id=data['round_id'],
            player_id=data['player_id'],
            mode=Mode.parse(data['mode']),
            difficulty=Difficulty.parse(data['difficulty']),
            question_id=data.get('question_id'),
            answer=data.get('answer', ''),
            score=data['score'],
            elapsed_seconds=data['elapsed_seconds'],
            accuracy=data['accuracy'],
            hints_used=data['hints_used'],
            correct=data['correct'],
            recorded_at=_parse_time(data['recorded_at']),
            grammar_score=data.get('grammar_score'),
            similarity=data.get('similarity'),
            diagnostics=tuple(data.get('diagnostics') or ())
        )


class LeaderboardEntry:
    """Aggregate standing of one player in one (mode, difficulty) board."""

    def __init__(self, player_id: str, mode: Mode, difficulty: Difficulty,
                 total_score: int = 0, games_played: int = 0,
                 average_score: float = 0.0, accuracy: float = 0.0,
                 rank: int | None = None, last_updated: datetime = None):
        self.player_id = player_id
        self.mode = mode
        self.difficulty = difficulty
        self.total_score = total_score
        self.games_played = games_played
        self.average_score = average_score
        self.accuracy = accuracy
        self.rank = rank
        self.last_updated = last_updated

    @property
    def key(self) -> tuple:
        return (self.player_id, self.mode, self.difficulty)

    def apply_game(self, score: int, accuracy: float, at: datetime) -> None:
        """Fold one more completed round into the running totals."""
        self.games_played += 1
        self.total_score += score
        self.average_score = self.total_score / self.games_played
        self.accuracy += (accuracy - self.accuracy) / self.games_played
        self.last_updated = at

    @property
    def is_top_ten(self) -> bool:
        return self.rank is not None and self.rank <= TOP_TEN

    @property
    def is_first_place(self) -> bool:
        return self.rank == 1

    def to_dict(self) -> dict:
        return {
            'player_id': self.player_id,
            'mode': self.mode.value,
            'difficulty': self.difficulty.value,
            'total_score': self.total_score,
            'games_played': self.games_played,
            'average_score': self.average_score,
            'accuracy': self.accuracy,
            'rank': self.rank,
            'last_updated': _format_time(self.last_updated)
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'LeaderboardEntry':
        return cls(
            data['player_id'],
            Mode.parse(data['mode']),
            Difficulty.parse(data['difficulty']),
            data.get('total_score', 0),
            data.get('games_played', 0),
            data.get('average_score', 0.0),
            data.get('accuracy', 0.0),
            data.get('rank'),
            _parse_time(data.get('last_updated'))
        )
