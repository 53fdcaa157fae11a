"""FastAPI server for the scramble game engine."""

import logging
import os
from typing import Optional, Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from scramble.config import (
    DEFAULT_TOP_N, MAX_HINTS_PER_ROUND, RANK_RECOMPUTE_INTERVAL_SECONDS,
    SESSION_TIMEOUT_MINUTES, SWEEP_INTERVAL_SECONDS
)
from scramble.errors import (
    HintBudgetExceeded, InvalidState, NotFound, ScrambleError, ValidationFailed
)
from scramble.models import Difficulty, Mode
from scramble.orchestrator import RoundOrchestrator
from scramble.scheduler import Scheduler
from scramble.scoring import max_score
from scramble.selector import Exhausted

from server.file_storage import FileStorage
from server.json_content import JsonContentProvider
from server.memory_storage import MemoryStorage
from server.postgres_storage import PostgresStorage

logger = logging.getLogger(__name__)


# Pydantic models for API
class StartRequest(BaseModel):
    player_id: str
    mode: str
    difficulty: str


class HintRequest(BaseModel):
    player_id: str
    level: int
    round_id: Optional[str] = None


class SubmitRequest(BaseModel):
    player_id: str
    answer: Union[str, list[str]]
    elapsed_seconds: Optional[float] = None
    round_id: Optional[str] = None


class PlayerRequest(BaseModel):
    player_id: str


class RestartRequest(BaseModel):
    mode: Optional[str] = None
    difficulty: Optional[str] = None


class StartResponse(BaseModel):
    all_completed: bool
    message: Optional[str] = None
    round_id: Optional[str] = None
    mode: str
    difficulty: str
    scrambled: list[str] = []
    token_count: int = 0
    time_limit_seconds: int = 0
    hints_available: int = 0
    max_score: int = 0
    metadata: dict = {}


class HintResponse(BaseModel):
    round_id: str
    level: int
    content: str
    penalty: int
    hints_used: int
    hints_remaining: int


class SubmitResponse(BaseModel):
    round_id: str
    correct: bool
    score: int
    accuracy: float
    similarity: float
    grammar_score: Optional[int]
    elapsed_seconds: float
    hints_used: int
    correct_answer: str
    answer: str
    breakdown: dict
    diagnostics: list[dict]
    metadata: dict
    rank: Optional[int]


ERROR_STATUS = {
    ValidationFailed: 400,
    NotFound: 404,
    InvalidState: 409,
    HintBudgetExceeded: 409,
}


# Global state (in production, use proper DI)
storage = None
content = None
orchestrator: RoundOrchestrator = None
scheduler: Scheduler = None


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def create_storage(storage_type: str):
    """Build the storage backend named by SCRAMBLE_STORAGE."""
    if storage_type == 'memory':
        logger.info("Using in-memory storage")
        return MemoryStorage()
    if storage_type == 'file':
        logger.info("Using file storage")
        return FileStorage(os.environ.get('SCRAMBLE_STATE_FILE'))
    logger.info("Using PostgreSQL storage")
    return PostgresStorage(os.environ.get('DATABASE_URL'))


app = FastAPI(title="Scramble API", description="Chinese idiom and sentence scramble game API")


@app.exception_handler(ScrambleError)
async def scramble_error_handler(request: Request, exc: ScrambleError):
    status = ERROR_STATUS.get(type(exc), 400)
    return JSONResponse(status_code=status, content={'detail': str(exc), 'code': exc.code})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500,
                        content={'detail': 'Internal server error', 'code': 'INTERNAL_ERROR'})


@app.on_event("startup")
async def startup():
    """Initialize storage, content, the orchestrator and background tasks."""
    global storage, content, orchestrator, scheduler

    # Use PostgreSQL by default, set SCRAMBLE_STORAGE=file or memory otherwise
    storage = create_storage(os.environ.get('SCRAMBLE_STORAGE', 'postgres'))
    content = JsonContentProvider(
        os.environ.get('SCRAMBLE_CONTENT_DIR'),
        float(os.environ.get('SCRAMBLE_CONTENT_TTL_SEC', 300))
    )
    orchestrator = RoundOrchestrator(
        content, storage,
        no_repeat=_env_flag('SCRAMBLE_NO_REPEAT', False),
        timeout_minutes=int(os.environ.get('SCRAMBLE_SESSION_TIMEOUT_MIN', SESSION_TIMEOUT_MINUTES))
    )

    scheduler = Scheduler()
    scheduler.add('sweep-stale-rounds', orchestrator.sweep_stale,
                  float(os.environ.get('SCRAMBLE_SWEEP_INTERVAL_SEC', SWEEP_INTERVAL_SECONDS)))
    scheduler.add('recompute-ranks', orchestrator.recompute_all,
                  float(os.environ.get('SCRAMBLE_RANK_INTERVAL_SEC', RANK_RECOMPUTE_INTERVAL_SECONDS)))
    if _env_flag('SCRAMBLE_ENABLE_SCHEDULER', True):
        scheduler.start()


@app.on_event("shutdown")
async def shutdown():
    if scheduler:
        scheduler.stop()
    if storage is not None and hasattr(storage, 'close'):
        storage.close()


@app.get("/")
async def root():
    return {
        'name': 'Scramble API',
        'modes': [m.value for m in Mode],
        'difficulties': [d.value for d in Difficulty],
        'max_hints': MAX_HINTS_PER_ROUND
    }


# ==================== Rounds ====================

@app.post("/api/rounds/start", response_model=StartResponse)
async def start_round(request: StartRequest):
    """Start a round with a scrambled idiom or sentence."""
    result = orchestrator.start_round(request.player_id, request.mode, request.difficulty)
    if isinstance(result, Exhausted):
        return StartResponse(
            all_completed=True,
            message=result.message,
            mode=result.mode.value,
            difficulty=result.difficulty.value
        )
    return StartResponse(
        all_completed=False,
        round_id=result.round_id,
        mode=result.mode.value,
        difficulty=result.difficulty.value,
        scrambled=result.scrambled,
        token_count=result.token_count,
        time_limit_seconds=result.time_limit_seconds,
        hints_available=result.hints_available,
        max_score=max_score(result.difficulty, result.mode is Mode.FREE_COMPOSITION),
        metadata=result.metadata
    )


@app.post("/api/rounds/hint", response_model=HintResponse)
async def use_hint(request: HintRequest):
    result = orchestrator.use_hint(request.player_id, request.level, request.round_id)
    return HintResponse(**result.to_dict())


@app.post("/api/rounds/submit", response_model=SubmitResponse)
async def submit_answer(request: SubmitRequest):
    """Validate and score an answer, closing the round."""
    result = orchestrator.submit_answer(request.player_id, request.answer,
                                        request.elapsed_seconds, request.round_id)
    return SubmitResponse(**result.to_dict())


@app.post("/api/rounds/abandon")
async def abandon_round(request: PlayerRequest):
    return {'abandoned': orchestrator.abandon_round(request.player_id)}


# ==================== Players ====================

@app.get("/api/players/{player_id}/active")
async def active_round(player_id: str):
    round = orchestrator.active_round(player_id)
    if round is None:
        raise HTTPException(status_code=404, detail="No active round")
    return {
        'round_id': round.id,
        'mode': round.mode.value,
        'difficulty': round.difficulty.value,
        'scrambled': round.scrambled,
        'started_at': round.started_at.isoformat(),
        'hints_used': round.hint_count,
        'hints_remaining': round.hints_remaining,
        'time_limit_seconds': round.difficulty.time_limit_seconds
    }


@app.post("/api/players/{player_id}/restart")
async def restart(player_id: str, request: RestartRequest):
    """Clear question history so every question can be played again."""
    orchestrator.restart(player_id, request.mode, request.difficulty)
    return {'restarted': True}


@app.get("/api/players/{player_id}/history")
async def player_history(player_id: str, mode: Optional[str] = None,
                         difficulty: Optional[str] = None, limit: int = 20):
    records = orchestrator.player_history(player_id, mode, difficulty, limit)
    return {'history': [r.to_dict() for r in records]}


@app.get("/api/players/{player_id}/best")
async def personal_best(player_id: str, mode: str, difficulty: str):
    record = orchestrator.personal_best(player_id, mode, difficulty)
    if record is None:
        raise HTTPException(status_code=404, detail="No completed rounds")
    return record.to_dict()


@app.get("/api/players/{player_id}/stats")
async def session_statistics(player_id: str):
    return orchestrator.session_statistics(player_id).to_dict()


@app.get("/api/players/{player_id}/rankings")
async def player_rankings(player_id: str):
    return {'rankings': [e.to_dict() for e in orchestrator.player_rankings(player_id)]}


# ==================== Leaderboard ====================

@app.get("/api/leaderboard/{mode}/{difficulty}")
async def top_players(mode: str, difficulty: str, limit: int = DEFAULT_TOP_N):
    entries = orchestrator.top_n(mode, difficulty, limit)
    return {'entries': [e.to_dict() for e in entries]}


@app.get("/api/leaderboard/{mode}/{difficulty}/players/{player_id}")
async def player_position(mode: str, difficulty: str, player_id: str):
    entry = orchestrator.position_of(player_id, mode, difficulty)
    if entry is None:
        raise HTTPException(status_code=404, detail="Player not ranked")
    return {**entry.to_dict(), 'is_top_ten': entry.is_top_ten, 'is_first_place': entry.is_first_place}


@app.get("/api/leaderboard/{mode}/{difficulty}/near/{rank}")
async def players_near_rank(mode: str, difficulty: str, rank: int, offset: int = 2):
    entries = orchestrator.players_near_rank(mode, difficulty, rank, offset)
    return {'entries': [e.to_dict() for e in entries]}


@app.get("/api/leaderboard/{mode}/{difficulty}/stats")
async def leaderboard_statistics(mode: str, difficulty: str):
    return orchestrator.leaderboard_statistics(mode, difficulty).to_dict()


# ==================== Maintenance ====================

@app.post("/api/admin/recompute")
async def recompute_ranks():
    return {'boards_updated': orchestrator.recompute_all()}


@app.post("/api/admin/sweep")
async def sweep_stale():
    return {'expired': orchestrator.sweep_stale()}


@app.post("/api/admin/reload-content")
async def reload_content():
    content.reload()
    return {'reloaded': True}
