"""Question selection with recently-seen exclusion."""

import logging
import random
from dataclasses import dataclass

from .config import EXCLUSION_SIZE, NO_REPEAT_SIZE
from .history import SeenQuestionStore
from .interfaces import ContentProvider
from .models import Difficulty, Mode, Question

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selected:
    question: Question


@dataclass(frozen=True)
class Exhausted:
    """Every eligible question for this board has been seen recently."""

    mode: Mode
    difficulty: Difficulty
    pool_size: int

    @property
    def message(self) -> str:
        return (f"All {self.pool_size} {self.difficulty.value} "
                f"{self.mode.value} questions completed")


class ContentSelector:
    """Picks an unseen question for a player.

    Args:
        content: Catalog source.
        seen: Seen-question store. Defaults to one bounded by EXCLUSION_SIZE,
            or by NO_REPEAT_SIZE when no_repeat is set.
        no_repeat: Use the larger no-repeat history bound.
        rng: Random source, injectable for tests.
    """

    def __init__(self, content: ContentProvider, seen: SeenQuestionStore = None,
                 no_repeat: bool = False, rng: random.Random = None):
        self.content = content
        self.no_repeat = no_repeat
        if seen is None:
            seen = SeenQuestionStore(NO_REPEAT_SIZE if no_repeat else EXCLUSION_SIZE)
        self.seen = seen
        self.rng = rng or random.Random()

    def select(self, player_id: str, mode: Mode, difficulty: Difficulty) -> Selected | Exhausted:
        pool = [q for q in self.content.list_questions(mode, difficulty)
                if q.mode is mode and q.difficulty is difficulty]
        excluded = self.seen.excluded(player_id, mode, difficulty)
        available = [q for q in pool if q.id not in excluded]

        if not available:
            logger.info(f"All questions completed for player {player_id}: "
                        f"mode={mode.value}, difficulty={difficulty.value}, total={len(pool)}")
            return Exhausted(mode, difficulty, len(pool))

        question = self.rng.choice(available)
        self.seen.add(player_id, mode, difficulty, question.id)
        logger.debug(f"Selected question {question.id} for {player_id} "
                     f"({len(available)}/{len(pool)} available)")
        return Selected(question)

    def restart(self, player_id: str, mode: Mode | None = None,
                difficulty: Difficulty | None = None) -> None:
        """Make every question selectable again for the player."""
        self.seen.clear(player_id, mode, difficulty)
