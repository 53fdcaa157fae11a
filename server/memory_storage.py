"""In-memory storage implementation."""

import copy
import threading
from datetime import datetime

from scramble.interfaces import Storage
from scramble.models import (
    Difficulty, HintRecord, LeaderboardEntry, Mode, Round, RoundStatus, ScoreRecord
)


class MemoryStorage(Storage):
    """Process-local storage. Objects are copied in and out so callers never share state."""

    def __init__(self):
        self._lock = threading.RLock()
        self._rounds: dict[str, Round] = {}
        self._scores: list[ScoreRecord] = []
        self._leaderboard: dict[tuple, LeaderboardEntry] = {}

    def _changed(self) -> None:
        """Called after every write while the lock is held."""
        pass

    # Rounds

    def save_round(self, round: Round) -> None:
        with self._lock:
            self._rounds[round.id] = copy.deepcopy(round)
            self._changed()

    def get_round(self, round_id: str) -> Round | None:
        with self._lock:
            round = self._rounds.get(round_id)
            return copy.deepcopy(round) if round else None

    def find_active_round(self, player_id: str) -> Round | None:
        with self._lock:
            for round in self._rounds.values():
                if round.player_id == player_id and round.is_active:
                    return copy.deepcopy(round)
        return None

    def transition_round(self, round_id: str, status: RoundStatus, at: datetime,
                         final_score: int | None = None) -> bool:
        with self._lock:
            round = self._rounds.get(round_id)
            if round is None or not round.is_active:
                return False
            round.status = status
            round.completed_at = at
            if final_score is not None:
                round.final_score = final_score
            self._changed()
            return True

    def append_hint(self, round_id: str, hint: HintRecord) -> bool:
        with self._lock:
            round = self._rounds.get(round_id)
            if round is None or not round.is_active:
                return False
            round.hints.append(copy.deepcopy(hint))
            self._changed()
            return True

    def list_stale_rounds(self, cutoff: datetime) -> list[Round]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._rounds.values()
                    if r.is_active and r.started_at < cutoff]

    def list_player_rounds(self, player_id: str) -> list[Round]:
        with self._lock:
            rounds = [copy.deepcopy(r) for r in self._rounds.values() if r.player_id == player_id]
        return sorted(rounds, key=lambda r: r.started_at)

    # Score records

    def append_score(self, record: ScoreRecord) -> None:
        with self._lock:
            self._scores.append(record)
            self._changed()

    def list_scores(self, player_id: str, mode: Mode | None = None,
                    difficulty: Difficulty | None = None) -> list[ScoreRecord]:
        with self._lock:
            records = [
                r for r in self._scores
                if r.player_id == player_id
                and (mode is None or r.mode is mode)
                and (difficulty is None or r.difficulty is difficulty)
            ]
        return list(reversed(records))

    # Leaderboard

    def get_leaderboard_entry(self, player_id: str, mode: Mode,
                              difficulty: Difficulty) -> LeaderboardEntry | None:
        with self._lock:
            entry = self._leaderboard.get((player_id, mode, difficulty))
            return copy.deepcopy(entry) if entry else None

    def save_leaderboard_entries(self, entries: list[LeaderboardEntry]) -> None:
        with self._lock:
            for entry in entries:
                self._leaderboard[entry.key] = copy.deepcopy(entry)
            self._changed()

    def list_leaderboard_entries(self, mode: Mode, difficulty: Difficulty) -> list[LeaderboardEntry]:
        with self._lock:
            return [copy.deepcopy(e) for e in self._leaderboard.values()
                    if e.mode is mode and e.difficulty is difficulty]

    def list_player_entries(self, player_id: str) -> list[LeaderboardEntry]:
        with self._lock:
            return [copy.deepcopy(e) for e in self._leaderboard.values() if e.player_id == player_id]
