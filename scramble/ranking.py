"""Leaderboard aggregation and ranking."""

import logging
import threading
from dataclasses import dataclass

from .config import DEFAULT_TOP_N
from .interfaces import Clock, Storage, SystemClock
from .models import Difficulty, LeaderboardEntry, Mode

logger = logging.getLogger(__name__)


def assign_dense_ranks(entries: list[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """Sort by total score descending and assign competition ranks in place.

    Equal totals share a rank; the next distinct total takes its 1-based
    position, so [500, 500, 300, 100] ranks as [1, 1, 3, 4]. The sort is
    stable, ties keep their incoming order.
    """
    ordered = sorted(entries, key=lambda e: e.total_score, reverse=True)
    rank = 1
    previous = None
    for position, entry in enumerate(ordered):
        if previous is not None and entry.total_score != previous:
            rank = position + 1
        entry.rank = rank
        previous = entry.total_score
    return ordered


@dataclass(frozen=True)
class LeaderboardStatistics:
    total_players: int
    average_score: float
    average_accuracy: float

    @property
    def average_accuracy_percentage(self) -> float:
        return self.average_accuracy * 100.0

    def to_dict(self) -> dict:
        return {
            'total_players': self.total_players,
            'average_score': self.average_score,
            'average_accuracy': self.average_accuracy,
            'average_accuracy_percentage': self.average_accuracy_percentage
        }


class RankingEngine:
    """Maintains per-player totals and per-board ranks.

    Every (mode, difficulty) board has its own lock. Entry updates and rank
    recomputation for a board are serialized on it; other boards proceed
    independently.
    """

    def __init__(self, storage: Storage, clock: Clock = None):
        self.storage = storage
        self.clock = clock or SystemClock()
        self._locks: dict[tuple, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _board_lock(self, mode: Mode, difficulty: Difficulty) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault((mode, difficulty), threading.RLock())

    def update(self, player_id: str, mode: Mode, difficulty: Difficulty,
               score: int, accuracy: float) -> LeaderboardEntry:
        """Fold one completed round into the player's entry and re-rank the board."""
        logger.info(f"Updating leaderboard: player={player_id}, mode={mode.value}, "
                    f"difficulty={difficulty.value}, score={score}")
        with self._board_lock(mode, difficulty):
            entry = self.storage.get_leaderboard_entry(player_id, mode, difficulty)
            if entry is None:
                entry = LeaderboardEntry(player_id, mode, difficulty)
            entry.apply_game(score, accuracy, self.clock.now())
            self.storage.save_leaderboard_entries([entry])
            logger.debug(f"Leaderboard entry: total={entry.total_score}, "
                         f"games={entry.games_played}, accuracy={entry.accuracy:.3f}")
            self.recompute_ranks(mode, difficulty)
        return self.storage.get_leaderboard_entry(player_id, mode, difficulty)

    def recompute_ranks(self, mode: Mode, difficulty: Difficulty) -> int:
        """Re-rank one board. Returns the number of entries ranked."""
        with self._board_lock(mode, difficulty):
            entries = self.storage.list_leaderboard_entries(mode, difficulty)
            if not entries:
                logger.debug(f"No entries to rank: mode={mode.value}, difficulty={difficulty.value}")
                return 0
            now = self.clock.now()
            ordered = assign_dense_ranks(entries)
            for entry in ordered:
                entry.last_updated = now
            self.storage.save_leaderboard_entries(ordered)
        logger.info(f"Ranks recalculated: mode={mode.value}, difficulty={difficulty.value}, "
                    f"{len(ordered)} entries updated")
        return len(ordered)

    def recompute_all(self) -> int:
        """Re-rank every board. A failing board is logged and skipped.

        Returns the number of boards recomputed successfully.
        """
        logger.info("Starting leaderboard recalculation")
        updated = 0
        for mode in Mode:
            for difficulty in Difficulty:
                try:
                    self.recompute_ranks(mode, difficulty)
                    updated += 1
                except Exception as e:
                    logger.error(f"Failed to recalculate ranks: mode={mode.value}, "
                                 f"difficulty={difficulty.value}: {e}")
        logger.info(f"Leaderboard recalculation completed: {updated} leaderboards updated")
        return updated

    def _ranked(self, mode: Mode, difficulty: Difficulty) -> list[LeaderboardEntry]:
        entries = self.storage.list_leaderboard_entries(mode, difficulty)
        return sorted(entries, key=lambda e: e.total_score, reverse=True)

    def top_n(self, mode: Mode, difficulty: Difficulty, n: int = DEFAULT_TOP_N) -> list[LeaderboardEntry]:
        return self._ranked(mode, difficulty)[:max(0, n)]

    def position_of(self, player_id: str, mode: Mode, difficulty: Difficulty) -> LeaderboardEntry | None:
        return self.storage.get_leaderboard_entry(player_id, mode, difficulty)

    def player_rankings(self, player_id: str) -> list[LeaderboardEntry]:
        """All of a player's ranked entries, best rank first."""
        entries = [e for e in self.storage.list_player_entries(player_id) if e.rank is not None]
        return sorted(entries, key=lambda e: e.rank)

    def players_near_rank(self, mode: Mode, difficulty: Difficulty, rank: int,
                          offset: int = 2) -> list[LeaderboardEntry]:
        """Entries ranked within `offset` places of `rank`."""
        return [
            e for e in self._ranked(mode, difficulty)
            if e.rank is not None and rank - offset <= e.rank <= rank + offset
        ]

    def is_top_ten(self, player_id: str, mode: Mode, difficulty: Difficulty) -> bool:
        entry = self.position_of(player_id, mode, difficulty)
        return entry is not None and entry.is_top_ten

    def is_first_place(self, player_id: str, mode: Mode, difficulty: Difficulty) -> bool:
        entry = self.position_of(player_id, mode, difficulty)
        return entry is not None and entry.is_first_place

    def total_ranked(self, mode: Mode, difficulty: Difficulty) -> int:
        return len(self.storage.list_leaderboard_entries(mode, difficulty))

    def statistics(self, mode: Mode, difficulty: Difficulty) -> LeaderboardStatistics:
        entries = self.storage.list_leaderboard_entries(mode, difficulty)
        if not entries:
            return LeaderboardStatistics(0, 0.0, 0.0)
        return LeaderboardStatistics(
            total_players=len(entries),
            average_score=sum(e.total_score for e in entries) / len(entries),
            average_accuracy=sum(e.accuracy for e in entries) / len(entries)
        )
