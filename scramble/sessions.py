"""Round lifecycle: one active round per player."""

import logging
import threading
import uuid
import weakref
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from .config import MAX_HINTS_PER_ROUND, SESSION_TIMEOUT_MINUTES
from .errors import HintBudgetExceeded, InvalidState, NotFound, ValidationFailed
from .interfaces import Clock, Storage, SystemClock
from .models import Difficulty, HintRecord, Mode, Question, Round, RoundStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionStatistics:
    total: int
    completed: int
    abandoned: int
    expired: int
    active: int

    @property
    def completion_rate(self) -> float:
        """Completed rounds as a percentage of all rounds."""
        return self.completed * 100.0 / self.total if self.total else 0.0

    @property
    def abandonment_rate(self) -> float:
        return self.abandoned * 100.0 / self.total if self.total else 0.0

    def to_dict(self) -> dict:
        return {
            'total': self.total,
            'completed': self.completed,
            'abandoned': self.abandoned,
            'expired': self.expired,
            'active': self.active,
            'completion_rate': self.completion_rate,
            'abandonment_rate': self.abandonment_rate
        }


class SessionStore:
    """Owns the ACTIVE -> COMPLETED | ABANDONED | EXPIRED state machine.

    Changes to one player's rounds are serialized by a per-player lock.
    Terminal transitions additionally go through the storage compare-and-swap,
    so the stale sweep and a concurrent submit can never both win.
    """

    def __init__(self, storage: Storage, clock: Clock = None,
                 timeout_minutes: int = SESSION_TIMEOUT_MINUTES):
        self.storage = storage
        self.clock = clock or SystemClock()
        self.timeout = timedelta(minutes=timeout_minutes)
        # Locks live only while some caller holds them
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._closing: set[str] = set()
        self._locks_guard = threading.Lock()

    def _player_lock(self, player_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(player_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[player_id] = lock
            return lock

    def get(self, round_id: str) -> Round:
        round = self.storage.get_round(round_id)
        if round is None:
            raise NotFound(f"Round not found: {round_id}")
        return round

    def active_for(self, player_id: str) -> Round | None:
        return self.storage.find_active_round(player_id)

    def create(self, player_id: str, mode: Mode, difficulty: Difficulty, question: Question,
               scrambled: list[str], payload: dict = None) -> Round:
        """Start a new ACTIVE round, abandoning the player's previous one."""
        with self._player_lock(player_id):
            previous = self.storage.find_active_round(player_id)
            if previous is not None:
                logger.warning(f"Player {player_id} already has an active round, abandoning it")
                self.storage.transition_round(previous.id, RoundStatus.ABANDONED, self.clock.now())

            round = Round(
                id=str(uuid.uuid4()),
                player_id=player_id,
                mode=mode,
                difficulty=difficulty,
                question_id=question.id,
                target=question.target,
                target_tokens=question.tokens,
                scrambled=scrambled,
                started_at=self.clock.now(),
                payload=payload
            )
            self.storage.save_round(round)

        logger.info(f"Round created: id={round.id}, player={player_id}, "
                    f"mode={mode.value}, difficulty={difficulty.value}")
        return round

    def add_hint(self, round_id: str, level: int, penalty: int, content: str) -> int:
        """Record a hint. Returns the round's new hint count."""
        round = self.get(round_id)
        with self._player_lock(round.player_id):
            round = self.get(round_id)
            if not round.is_active or round_id in self._closing:
                raise InvalidState(f"Cannot add hint to inactive round: {round_id}")
            if round.hint_count >= MAX_HINTS_PER_ROUND:
                raise HintBudgetExceeded(
                    f"Maximum hints ({MAX_HINTS_PER_ROUND}) already used in round: {round_id}"
                )
            if level <= round.last_hint_level:
                raise ValidationFailed(
                    f"Hint level {level} must be higher than the last level used ({round.last_hint_level})"
                )
            hint = HintRecord(level, penalty, content, self.clock.now())
            if not self.storage.append_hint(round_id, hint):
                raise InvalidState(f"Cannot add hint to inactive round: {round_id}")

        logger.info(f"Hint added: round={round_id}, level={level}, penalty={penalty}")
        return round.hint_count + 1

    def complete(self, round_id: str, score: int) -> Round:
        """Close an ACTIVE round with its final score."""
        round = self.get(round_id)
        with self._player_lock(round.player_id):
            if not self.storage.transition_round(round_id, RoundStatus.COMPLETED,
                                                 self.clock.now(), final_score=score):
                raise InvalidState(f"Round is not active: {round_id}")
            round = self.get(round_id)

        logger.info(f"Round completed: id={round_id}, score={score}, "
                    f"duration={round.duration_seconds():.0f}s")
        return round

    def complete_with(self, round_id: str, score_fn: Callable[[Round], tuple[int, object]]
                      ) -> tuple[Round, object]:
        """Score and close an ACTIVE round as one step.

        `score_fn` receives the round as re-read under the player lock and
        returns `(score, outcome)`. No hint can be recorded on the round while
        it is being scored, so the score always reflects the stored hints.
        Returns the completed round and the outcome.
        """
        round = self.get(round_id)
        with self._player_lock(round.player_id):
            round = self.get(round_id)
            if not round.is_active:
                raise InvalidState(f"Round is not active: {round_id}")
            self._closing.add(round_id)
            try:
                score, outcome = score_fn(round)
                if not self.storage.transition_round(round_id, RoundStatus.COMPLETED,
                                                     self.clock.now(), final_score=score):
                    raise InvalidState(f"Round is not active: {round_id}")
            finally:
                self._closing.discard(round_id)
            round = self.get(round_id)

        logger.info(f"Round completed: id={round_id}, score={score}, "
                    f"duration={round.duration_seconds():.0f}s")
        return round, outcome

    def _close(self, round_id: str, status: RoundStatus) -> bool:
        round = self.get(round_id)
        if not round.is_active:
            logger.debug(f"Round {round_id} already {round.status.value}, nothing to do")
            return False
        with self._player_lock(round.player_id):
            return self.storage.transition_round(round_id, status, self.clock.now())

    def abandon(self, round_id: str) -> bool:
        """Abandon a round. A no-op returning False if it is already closed."""
        closed = self._close(round_id, RoundStatus.ABANDONED)
        if closed:
            logger.info(f"Round abandoned: id={round_id}")
        return closed

    def expire(self, round_id: str) -> bool:
        """Expire a round. A no-op returning False if it is already closed."""
        return self._close(round_id, RoundStatus.EXPIRED)

    def sweep_stale(self, cutoff: datetime = None) -> int:
        """Expire every ACTIVE round started before the cutoff.

        The cutoff defaults to now minus the session timeout. Returns the
        number of rounds expired.
        """
        now = self.clock.now()
        if cutoff is None:
            cutoff = now - self.timeout
        logger.debug(f"Checking for stale rounds started before {cutoff.isoformat()}")

        expired = 0
        for round in self.storage.list_stale_rounds(cutoff):
            try:
                if self.expire(round.id):
                    expired += 1
                    age = (now - round.started_at).total_seconds() / 60
                    logger.info(f"Expired round: id={round.id}, player={round.player_id}, "
                                f"age={age:.0f}min")
            except Exception as e:
                logger.error(f"Failed to expire round {round.id}: {e}")

        if expired:
            logger.info(f"Expired {expired} stale rounds")
        return expired

    def player_rounds(self, player_id: str) -> list[Round]:
        return self.storage.list_player_rounds(player_id)

    def statistics(self, player_id: str) -> SessionStatistics:
        counts = {status: 0 for status in RoundStatus}
        rounds = self.storage.list_player_rounds(player_id)
        for round in rounds:
            counts[round.status] += 1
        return SessionStatistics(
            total=len(rounds),
            completed=counts[RoundStatus.COMPLETED],
            abandoned=counts[RoundStatus.ABANDONED],
            expired=counts[RoundStatus.EXPIRED],
            active=counts[RoundStatus.ACTIVE]
        )
