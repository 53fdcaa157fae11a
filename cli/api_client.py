"""REST API client for the scramble server."""

import requests
from typing import Optional


class ScrambleAPIClient:
    """Client for communicating with the scramble REST API."""

    def __init__(self, base_url: str = "http://localhost:8000", player_id: str = "default"):
        self.base_url = base_url.rstrip('/')
        self.player_id = player_id
        self.session = requests.Session()

    def _get(self, endpoint: str, params: dict = None) -> dict:
        """Make a GET request."""
        response = self.session.get(f"{self.base_url}{endpoint}", params=params or {})
        response.raise_for_status()
        return response.json()

    def _post(self, endpoint: str, data: dict) -> dict:
        """Make a POST request."""
        response = self.session.post(f"{self.base_url}{endpoint}", json=data)
        response.raise_for_status()
        return response.json()

    def health_check(self) -> dict:
        """Check if the server is running."""
        return self._get("/")

    def start_round(self, mode: str, difficulty: str) -> dict:
        """Start a round. `all_completed` is set when every question was played."""
        return self._post("/api/rounds/start", {
            'player_id': self.player_id,
            'mode': mode,
            'difficulty': difficulty
        })

    def get_hint(self, level: int, round_id: Optional[str] = None) -> dict:
        return self._post("/api/rounds/hint", {
            'player_id': self.player_id,
            'level': level,
            'round_id': round_id
        })

    def submit_answer(self, answer, elapsed_seconds: Optional[float] = None,
                      round_id: Optional[str] = None) -> dict:
        """Submit an answer as text or as a list of tokens."""
        return self._post("/api/rounds/submit", {
            'player_id': self.player_id,
            'answer': answer,
            'elapsed_seconds': elapsed_seconds,
            'round_id': round_id
        })

    def abandon_round(self) -> dict:
        return self._post("/api/rounds/abandon", {'player_id': self.player_id})

    def restart(self, mode: Optional[str] = None, difficulty: Optional[str] = None) -> dict:
        """Clear question history so all questions can be played again."""
        return self._post(f"/api/players/{self.player_id}/restart", {
            'mode': mode,
            'difficulty': difficulty
        })

    def get_stats(self) -> dict:
        return self._get(f"/api/players/{self.player_id}/stats")

    def get_history(self, limit: int = 10) -> dict:
        return self._get(f"/api/players/{self.player_id}/history", {'limit': limit})

    def get_leaderboard(self, mode: str, difficulty: str, limit: int = 10) -> dict:
        return self._get(f"/api/leaderboard/{mode}/{difficulty}", {'limit': limit})
