"""File-based storage implementation."""

import json
import logging
import os

from scramble.models import LeaderboardEntry, Round, ScoreRecord
from .memory_storage import MemoryStorage

logger = logging.getLogger(__name__)


class FileStorage(MemoryStorage):
    """In-memory storage persisted to a single JSON snapshot after every write."""

    def __init__(self, state_file: str = None):
        super().__init__()
        # Project root is one level up from server/
        project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        self.state_file = state_file or os.path.join(project_root, 'scramble_state.json')
        self._load()

    def _load(self) -> None:
        if not os.path.exists(self.state_file):
            return
        try:
            with open(self.state_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read state file {self.state_file}: {e}")
            return

        for item in data.get('rounds', []):
            round = Round.from_dict(item)
            self._rounds[round.id] = round
        self._scores = [ScoreRecord.from_dict(item) for item in data.get('scores', [])]
        for item in data.get('leaderboard', []):
            entry = LeaderboardEntry.from_dict(item)
            self._leaderboard[entry.key] = entry
        logger.info(f"Loaded state from {self.state_file}: {len(self._rounds)} rounds, "
                    f"{len(self._scores)} scores, {len(self._leaderboard)} leaderboard entries")

    def _changed(self) -> None:
        state = {
            'rounds': [r.to_dict() for r in self._rounds.values()],
            'scores': [s.to_dict() for s in self._scores],
            'leaderboard': [e.to_dict() for e in self._leaderboard.values()]
        }
        tmp_file = self.state_file + '.tmp'
        with open(tmp_file, 'w', encoding='utf-8') as f:
            json.dump(state, f, indent=2, ensure_ascii=False)
        os.replace(tmp_file, self.state_file)
