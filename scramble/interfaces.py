"""Abstract base classes for dependency injection."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

from .models import (
    Difficulty, HintRecord, LeaderboardEntry, Mode, Question, Round, RoundStatus, ScoreRecord
)


class ContentProvider(ABC):
    """Abstract base class for the question catalog."""

    @abstractmethod
    def list_questions(self, mode: Mode, difficulty: Difficulty) -> list[Question]:
        """List every eligible question for a mode and difficulty."""
        pass


class Storage(ABC):
    """Abstract base class for rounds, score records and leaderboard entries."""

    # Rounds

    @abstractmethod
    def save_round(self, round: Round) -> None:
        """Insert or overwrite a round, including its hint records."""
        pass

    @abstractmethod
    def get_round(self, round_id: str) -> Round | None:
        """Load a round by id. Returns None if not found."""
        pass

    @abstractmethod
    def find_active_round(self, player_id: str) -> Round | None:
        """Load the player's ACTIVE round, if any."""
        pass

    @abstractmethod
    def transition_round(self, round_id: str, status: RoundStatus, at: datetime,
                         final_score: int | None = None) -> bool:
        """Move an ACTIVE round to a terminal status.

        Compare-and-swap on status: returns False without writing anything
        when the round is missing or no longer ACTIVE.
        """
        pass

    @abstractmethod
    def append_hint(self, round_id: str, hint: HintRecord) -> bool:
        """Append a hint record to an ACTIVE round.

        Returns False without writing anything when the round is missing or
        no longer ACTIVE.
        """
        pass

    @abstractmethod
    def list_stale_rounds(self, cutoff: datetime) -> list[Round]:
        """List ACTIVE rounds started before the cutoff."""
        pass

    @abstractmethod
    def list_player_rounds(self, player_id: str) -> list[Round]:
        """List all rounds of a player, oldest first."""
        pass

    # Score records

    @abstractmethod
    def append_score(self, record: ScoreRecord) -> None:
        """Append an immutable score record."""
        pass

    @abstractmethod
    def list_scores(self, player_id: str, mode: Mode | None = None,
                    difficulty: Difficulty | None = None) -> list[ScoreRecord]:
        """List a player's score records, newest first."""
        pass

    # Leaderboard

    @abstractmethod
    def get_leaderboard_entry(self, player_id: str, mode: Mode,
                              difficulty: Difficulty) -> LeaderboardEntry | None:
        """Load one leaderboard entry. Returns None if the player has none."""
        pass

    @abstractmethod
    def save_leaderboard_entries(self, entries: list[LeaderboardEntry]) -> None:
        """Upsert leaderboard entries."""
        pass

    @abstractmethod
    def list_leaderboard_entries(self, mode: Mode, difficulty: Difficulty) -> list[LeaderboardEntry]:
        """List all entries of one board in a stable order (insertion order)."""
        pass

    @abstractmethod
    def list_player_entries(self, player_id: str) -> list[LeaderboardEntry]:
        """List all leaderboard entries of a player."""
        pass


class Clock(ABC):
    """Abstract time source."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as an aware datetime."""
        pass


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class AchievementHook(ABC):
    """Downstream consumer notified after each completed round."""

    @abstractmethod
    def round_completed(self, player_id: str, score: int, elapsed_seconds: float,
                        accuracy: float, hints_used: int) -> None:
        """Called after a round completes. Errors are logged by the caller."""
        pass
