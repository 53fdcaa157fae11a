"""PostgreSQL storage implementation."""

import json
import logging
import os
from datetime import datetime

import psycopg2
from psycopg2.extras import RealDictCursor

from scramble.interfaces import Storage
from scramble.models import (
    Difficulty, HintRecord, LeaderboardEntry, Mode, Round, RoundStatus, ScoreRecord
)

logger = logging.getLogger(__name__)


def _round_from_row(row: dict, hints: list[dict]) -> Round:
    round = Round(
        id=row['id'],
        player_id=row['player_id'],
        mode=Mode(row['mode']),
        difficulty=Difficulty(row['difficulty']),
        question_id=row['question_id'],
        target=row['target'],
        target_tokens=row['target_tokens'] or [],
        scrambled=row['scrambled'] or [],
        started_at=row['started_at'],
        payload=row['payload']
    )
    round.status = RoundStatus(row['status'])
    round.completed_at = row['completed_at']
    round.final_score = row['final_score']
    round.hints = [HintRecord(h['level'], h['penalty'], h['content'], h['used_at']) for h in hints]
    return round


def _score_from_row(row: dict) -> ScoreRecord:
    return ScoreRecord(
        round_id=row['round_id'],
        player_id=row['player_id'],
        mode=Mode(row['mode']),
        difficulty=Difficulty(row['difficulty']),
        question_id=row['question_id'],
        answer=row['answer'],
        score=row['score'],
        elapsed_seconds=row['elapsed_seconds'],
        accuracy=row['accuracy'],
        hints_used=row['hints_used'],
        correct=row['correct'],
        recorded_at=row['recorded_at'],
        grammar_score=row['grammar_score'],
        similarity=row['similarity'],
        diagnostics=tuple(row['diagnostics'] or ())
    )


def _entry_from_row(row: dict) -> LeaderboardEntry:
    return LeaderboardEntry(
        row['player_id'], Mode(row['mode']), Difficulty(row['difficulty']),
        row['total_score'], row['games_played'], row['average_score'],
        row['accuracy'], row['rank'], row['last_updated']
    )


class PostgresStorage(Storage):
    """PostgreSQL-based storage implementation.

    Round transitions are conditional updates on `status = 'ACTIVE'`, so
    concurrent workers sharing the database cannot close a round twice. A
    partial unique index keeps one ACTIVE round per player.
    """

    def __init__(self, db_url: str = None):
        self.db_url = db_url or os.environ.get(
            'DATABASE_URL',
            'postgresql://localhost:5432/scramble'
        )
        self._conn = None
        self._initialized = False

    @property
    def conn(self):
        """Lazy connection initialization."""
        if self._conn is None or self._conn.closed:
            self._conn = psycopg2.connect(self.db_url)
            if not self._initialized:
                self._init_db()
                self._initialized = True
        return self._conn

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._conn.cursor() as cur:
            cur.execute("""
                CREATE TABLE IF NOT EXISTS rounds (
                    id VARCHAR(64) PRIMARY KEY,
                    player_id VARCHAR(255) NOT NULL,
                    mode VARCHAR(32) NOT NULL,
                    difficulty VARCHAR(16) NOT NULL,
                    question_id VARCHAR(255),
                    target TEXT NOT NULL,
                    target_tokens JSONB NOT NULL,
                    scrambled JSONB NOT NULL,
                    status VARCHAR(16) NOT NULL,
                    started_at TIMESTAMPTZ NOT NULL,
                    completed_at TIMESTAMPTZ,
                    final_score INTEGER,
                    payload JSONB
                )
            """)
            cur.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_rounds_one_active
                ON rounds(player_id) WHERE status = 'ACTIVE'
            """)
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_rounds_status_started ON rounds(status, started_at)
            """)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS hints (
                    id SERIAL PRIMARY KEY,
                    round_id VARCHAR(64) NOT NULL REFERENCES rounds(id) ON DELETE CASCADE,
                    level INTEGER NOT NULL,
                    penalty INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    used_at TIMESTAMPTZ NOT NULL
                )
            """)
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_hints_round ON hints(round_id)
            """)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS scores (
                    id SERIAL PRIMARY KEY,
                    round_id VARCHAR(64) NOT NULL,
                    player_id VARCHAR(255) NOT NULL,
                    mode VARCHAR(32) NOT NULL,
                    difficulty VARCHAR(16) NOT NULL,
                    question_id VARCHAR(255),
                    answer TEXT NOT NULL,
                    score INTEGER NOT NULL,
                    elapsed_seconds DOUBLE PRECISION NOT NULL,
                    accuracy DOUBLE PRECISION NOT NULL,
                    hints_used INTEGER NOT NULL,
                    correct BOOLEAN NOT NULL,
                    recorded_at TIMESTAMPTZ NOT NULL,
                    grammar_score INTEGER,
                    similarity DOUBLE PRECISION,
                    diagnostics JSONB
                )
            """)
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_scores_player ON scores(player_id)
            """)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS leaderboard (
                    seq SERIAL,
                    player_id VARCHAR(255) NOT NULL,
                    mode VARCHAR(32) NOT NULL,
                    difficulty VARCHAR(16) NOT NULL,
                    total_score INTEGER NOT NULL DEFAULT 0,
                    games_played INTEGER NOT NULL DEFAULT 0,
                    average_score DOUBLE PRECISION NOT NULL DEFAULT 0,
                    accuracy DOUBLE PRECISION NOT NULL DEFAULT 0,
                    rank INTEGER,
                    last_updated TIMESTAMPTZ,
                    PRIMARY KEY (player_id, mode, difficulty)
                )
            """)
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_leaderboard_board ON leaderboard(mode, difficulty)
            """)
        self._conn.commit()

    def close(self):
        """Close the database connection."""
        if self._conn and not self._conn.closed:
            self._conn.close()

    def _write(self, sql: str, params: tuple) -> int:
        """Run one write statement and commit. Returns the affected row count."""
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql, params)
                count = cur.rowcount
            self.conn.commit()
            return count
        except Exception as e:
            logger.error(f"Database write failed: {e}")
            self.conn.rollback()
            raise

    def _query(self, sql: str, params: tuple) -> list[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(sql, params)
            return cur.fetchall()

    def _load_rounds(self, rows: list[dict]) -> list[Round]:
        if not rows:
            return []
        ids = [row['id'] for row in rows]
        hint_rows = self._query(
            "SELECT * FROM hints WHERE round_id = ANY(%s) ORDER BY id", (ids,)
        )
        by_round = {}
        for h in hint_rows:
            by_round.setdefault(h['round_id'], []).append(h)
        return [_round_from_row(row, by_round.get(row['id'], [])) for row in rows]

    # Rounds

    def save_round(self, round: Round) -> None:
        try:
            with self.conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO rounds (id, player_id, mode, difficulty, question_id, target,
                                        target_tokens, scrambled, status, started_at,
                                        completed_at, final_score, payload)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (id) DO UPDATE SET
                        status = EXCLUDED.status,
                        completed_at = EXCLUDED.completed_at,
                        final_score = EXCLUDED.final_score,
                        payload = EXCLUDED.payload
                """, (
                    round.id, round.player_id, round.mode.value, round.difficulty.value,
                    round.question_id, round.target,
                    json.dumps(round.target_tokens, ensure_ascii=False),
                    json.dumps(round.scrambled, ensure_ascii=False),
                    round.status.value, round.started_at, round.completed_at,
                    round.final_score, json.dumps(round.payload, ensure_ascii=False)
                ))
                cur.execute("DELETE FROM hints WHERE round_id = %s", (round.id,))
                for hint in round.hints:
                    cur.execute("""
                        INSERT INTO hints (round_id, level, penalty, content, used_at)
                        VALUES (%s, %s, %s, %s, %s)
                    """, (round.id, hint.level, hint.penalty, hint.content, hint.used_at))
            self.conn.commit()
        except Exception as e:
            logger.error(f"Error saving round {round.id}: {e}")
            self.conn.rollback()
            raise

    def get_round(self, round_id: str) -> Round | None:
        rounds = self._load_rounds(self._query("SELECT * FROM rounds WHERE id = %s", (round_id,)))
        return rounds[0] if rounds else None

    def find_active_round(self, player_id: str) -> Round | None:
        rounds = self._load_rounds(self._query(
            "SELECT * FROM rounds WHERE player_id = %s AND status = 'ACTIVE'", (player_id,)
        ))
        return rounds[0] if rounds else None

    def transition_round(self, round_id: str, status: RoundStatus, at: datetime,
                         final_score: int | None = None) -> bool:
        updated = self._write("""
            UPDATE rounds
            SET status = %s, completed_at = %s, final_score = COALESCE(%s, final_score)
            WHERE id = %s AND status = 'ACTIVE'
        """, (status.value, at, final_score, round_id))
        return updated > 0

    def append_hint(self, round_id: str, hint: HintRecord) -> bool:
        inserted = self._write("""
            INSERT INTO hints (round_id, level, penalty, content, used_at)
            SELECT id, %s, %s, %s, %s FROM rounds WHERE id = %s AND status = 'ACTIVE'
        """, (hint.level, hint.penalty, hint.content, hint.used_at, round_id))
        return inserted > 0

    def list_stale_rounds(self, cutoff: datetime) -> list[Round]:
        return self._load_rounds(self._query(
            "SELECT * FROM rounds WHERE status = 'ACTIVE' AND started_at < %s", (cutoff,)
        ))

    def list_player_rounds(self, player_id: str) -> list[Round]:
        return self._load_rounds(self._query(
            "SELECT * FROM rounds WHERE player_id = %s ORDER BY started_at", (player_id,)
        ))

    # Score records

    def append_score(self, record: ScoreRecord) -> None:
        self._write("""
            INSERT INTO scores (round_id, player_id, mode, difficulty, question_id, answer,
                                score, elapsed_seconds, accuracy, hints_used, correct,
                                recorded_at, grammar_score, similarity, diagnostics)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """, (
            record.round_id, record.player_id, record.mode.value, record.difficulty.value,
            record.question_id, record.answer, record.score, record.elapsed_seconds,
            record.accuracy, record.hints_used, record.correct, record.recorded_at,
            record.grammar_score, record.similarity,
            json.dumps([dict(d) for d in record.diagnostics], ensure_ascii=False)
        ))

    def list_scores(self, player_id: str, mode: Mode | None = None,
                    difficulty: Difficulty | None = None) -> list[ScoreRecord]:
        sql = "SELECT * FROM scores WHERE player_id = %s"
        params = [player_id]
        if mode is not None:
            sql += " AND mode = %s"
            params.append(mode.value)
        if difficulty is not None:
            sql += " AND difficulty = %s"
            params.append(difficulty.value)
        sql += " ORDER BY id DESC"
        return [_score_from_row(row) for row in self._query(sql, tuple(params))]

    # Leaderboard

    def get_leaderboard_entry(self, player_id: str, mode: Mode,
                              difficulty: Difficulty) -> LeaderboardEntry | None:
        rows = self._query("""
            SELECT * FROM leaderboard WHERE player_id = %s AND mode = %s AND difficulty = %s
        """, (player_id, mode.value, difficulty.value))
        return _entry_from_row(rows[0]) if rows else None

    def save_leaderboard_entries(self, entries: list[LeaderboardEntry]) -> None:
        try:
            with self.conn.cursor() as cur:
                for entry in entries:
                    cur.execute("""
                        INSERT INTO leaderboard (player_id, mode, difficulty, total_score,
                                                 games_played, average_score, accuracy,
                                                 rank, last_updated)
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                        ON CONFLICT (player_id, mode, difficulty) DO UPDATE SET
                            total_score = EXCLUDED.total_score,
                            games_played = EXCLUDED.games_played,
                            average_score = EXCLUDED.average_score,
                            accuracy = EXCLUDED.accuracy,
                            rank = EXCLUDED.rank,
                            last_updated = EXCLUDED.last_updated
                    """, (
                        entry.player_id, entry.mode.value, entry.difficulty.value,
                        entry.total_score, entry.games_played, entry.average_score,
                        entry.accuracy, entry.rank, entry.last_updated
                    ))
            self.conn.commit()
        except Exception as e:
            logger.error(f"Error saving leaderboard entries: {e}")
            self.conn.rollback()
            raise

    def list_leaderboard_entries(self, mode: Mode, difficulty: Difficulty) -> list[LeaderboardEntry]:
        rows = self._query("""
            SELECT * FROM leaderboard WHERE mode = %s AND difficulty = %s ORDER BY seq
        """, (mode.value, difficulty.value))
        return [_entry_from_row(row) for row in rows]

    def list_player_entries(self, player_id: str) -> list[LeaderboardEntry]:
        rows = self._query("SELECT * FROM leaderboard WHERE player_id = %s ORDER BY seq", (player_id,))
        return [_entry_from_row(row) for row in rows]
