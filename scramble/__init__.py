from .models import (
    Mode, Difficulty, RoundStatus, Question, HintRecord, Round, ScoreRecord, LeaderboardEntry
)
from .errors import ScrambleError, InvalidState, HintBudgetExceeded, ValidationFailed, NotFound
from .interfaces import ContentProvider, Storage, Clock, SystemClock, AchievementHook
from .scrambler import scramble
from .selector import ContentSelector, Selected, Exhausted
from .validation import AnswerValidator, ValidationResult, validate_idiom, validate_sentence
from .scoring import calculate_score, score_breakdown, max_score
from .sessions import SessionStore
from .ranking import RankingEngine
from .orchestrator import RoundOrchestrator, RoundStarted, HintResult, RoundResult
from .scheduler import Scheduler

__all__ = [
    'Mode', 'Difficulty', 'RoundStatus', 'Question', 'HintRecord', 'Round',
    'ScoreRecord', 'LeaderboardEntry',
    'ScrambleError', 'InvalidState', 'HintBudgetExceeded', 'ValidationFailed', 'NotFound',
    'ContentProvider', 'Storage', 'Clock', 'SystemClock', 'AchievementHook',
    'scramble',
    'ContentSelector', 'Selected', 'Exhausted',
    'AnswerValidator', 'ValidationResult', 'validate_idiom', 'validate_sentence',
    'calculate_score', 'score_breakdown', 'max_score',
    'SessionStore', 'RankingEngine',
    'RoundOrchestrator', 'RoundStarted', 'HintResult', 'RoundResult',
    'Scheduler'
]
