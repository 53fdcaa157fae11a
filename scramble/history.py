"""Per-player recently seen question tracking."""

import logging
import threading
from collections import OrderedDict

from .config import EXCLUSION_SIZE
from .models import Difficulty, Mode

logger = logging.getLogger(__name__)


class _SeenSet:
    """Bounded, insertion-ordered set of question ids with its own lock."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.lock = threading.Lock()
        self.ids = OrderedDict()

    def add(self, question_id: str) -> list[str]:
        with self.lock:
            self.ids.pop(question_id, None)
            self.ids[question_id] = None
            evicted = []
            while len(self.ids) > self.capacity:
                oldest, _ = self.ids.popitem(last=False)
                evicted.append(oldest)
            return evicted

    def snapshot(self) -> set[str]:
        with self.lock:
            return set(self.ids)

    def __len__(self) -> int:
        with self.lock:
            return len(self.ids)


class SeenQuestionStore:
    """Tracks the last K questions shown per (player, mode, difficulty).

    Each key owns its own lock, so writers on one key never block readers
    or writers of another. The store-wide lock is only taken to create or
    drop keys.
    """

    def __init__(self, capacity: int = EXCLUSION_SIZE):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._sets: dict[tuple, _SeenSet] = {}
        self._lock = threading.Lock()

    def _get(self, key: tuple, create: bool) -> _SeenSet | None:
        seen = self._sets.get(key)
        if seen is None and create:
            with self._lock:
                seen = self._sets.setdefault(key, _SeenSet(self.capacity))
        return seen

    def add(self, player_id: str, mode: Mode, difficulty: Difficulty, question_id: str) -> None:
        """Record a question as seen, evicting the oldest beyond capacity."""
        evicted = self._get((player_id, mode, difficulty), create=True).add(question_id)
        for old in evicted:
            logger.debug(f"Evicted question from history: player={player_id}, "
                         f"mode={mode.value}, difficulty={difficulty.value}, question={old}")

    def excluded(self, player_id: str, mode: Mode, difficulty: Difficulty) -> set[str]:
        """Question ids currently excluded for this player and board."""
        seen = self._get((player_id, mode, difficulty), create=False)
        return seen.snapshot() if seen else set()

    def was_seen(self, player_id: str, mode: Mode, difficulty: Difficulty, question_id: str) -> bool:
        return question_id in self.excluded(player_id, mode, difficulty)

    def size(self, player_id: str, mode: Mode, difficulty: Difficulty) -> int:
        seen = self._get((player_id, mode, difficulty), create=False)
        return len(seen) if seen else 0

    def clear(self, player_id: str, mode: Mode | None = None,
              difficulty: Difficulty | None = None) -> int:
        """Forget seen questions for a player, optionally narrowed to a mode/difficulty.

        Returns the number of keys removed.
        """
        with self._lock:
            keys = [
                key for key in self._sets
                if key[0] == player_id
                and (mode is None or key[1] is mode)
                and (difficulty is None or key[2] is difficulty)
            ]
            for key in keys:
                del self._sets[key]
        logger.info(f"Cleared question history: player={player_id}, "
                    f"mode={mode.value if mode else 'all'}, "
                    f"difficulty={difficulty.value if difficulty else 'all'}")
        return len(keys)

    def clear_all(self) -> None:
        with self._lock:
            count = len(self._sets)
            self._sets.clear()
        logger.info(f"Cleared all question history: {count} entries removed")

    def statistics(self) -> dict:
        with self._lock:
            sets = dict(self._sets)
        return {
            'total_players': len({key[0] for key in sets}),
            'total_entries': len(sets),
            'total_questions_tracked': sum(len(s) for s in sets.values()),
            'capacity': self.capacity
        }
