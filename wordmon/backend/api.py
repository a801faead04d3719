"""FastAPI endpoints for players, the active spawn and capture attempts."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Callable

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from . import __version__
from .config import load_settings
from .errors import DuplicateNameError, InvalidStateError, PlayerNotFoundError
from .models import Player, SpawnEvent
from .service import GameService
from .store import InMemoryPlayerStore, PlayerStore

logger = logging.getLogger(__name__)


class SpawnInfo(BaseModel):
    id: str
    text: str
    rarity: str
    points: int
    round: int


class StatusResponse(BaseModel):
    game: str
    version: str
    uptime_seconds: int
    active_players: int
    current_spawn: SpawnInfo | None


class CreatePlayerRequest(BaseModel):
    name: str = Field(min_length=1, max_length=64)


class PlayerResponse(BaseModel):
    id: str
    name: str
    xp: int
    level: int
    inventory: dict[str, int]


class AttemptRequest(BaseModel):
    player_id: str = Field(min_length=1)
    attempt: str = Field(min_length=1, max_length=200)


class AttemptQueuedResponse(BaseModel):
    status: str
    round: int


def _spawn_info(event: SpawnEvent) -> SpawnInfo:
    return SpawnInfo(
        id=event.word.id,
        text=event.word.text,
        rarity=event.word.rarity.value,
        points=event.word.points,
        round=event.round,
    )


def _player_response(player: Player) -> PlayerResponse:
    return PlayerResponse(
        id=player.id,
        name=player.name,
        xp=player.xp,
        level=player.level,
        inventory=dict(player.inventory),
    )


def _default_service() -> GameService:
    return GameService.create(settings=load_settings(), store=InMemoryPlayerStore(), player_name="Guest")


def create_app(service: GameService | None = None, on_crash: Callable[[], None] | None = None) -> FastAPI:
    game = service if service is not None else _default_service()

    def watch(runner: asyncio.Task[None]) -> None:
        if runner.cancelled() or runner.exception() is None:
            return
        logger.error("game loop crashed, the API no longer has a running game", exc_info=runner.exception())
        if on_crash is not None:
            on_crash()

    @contextlib.asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        runner = asyncio.create_task(game.run())
        runner.add_done_callback(watch)
        try:
            yield
        finally:
            game.stop()
            if not runner.done():
                await runner

    app = FastAPI(title="WordMon API", version=__version__, lifespan=lifespan)
    app.state.game = game

    def get_store() -> PlayerStore:
        return game.store

    @app.get("/api/status", response_model=StatusResponse)
    def get_status(local_store: PlayerStore = Depends(get_store)) -> StatusResponse:
        uptime = datetime.now(timezone.utc) - local_store.started_at
        spawn = local_store.current_spawn()
        return StatusResponse(
            game="WordMon",
            version=__version__,
            uptime_seconds=int(uptime.total_seconds()),
            active_players=local_store.player_count(),
            current_spawn=_spawn_info(spawn) if spawn is not None else None,
        )

    @app.post("/api/players", response_model=PlayerResponse)
    def create_player(
        payload: CreatePlayerRequest,
        local_store: PlayerStore = Depends(get_store),
    ) -> PlayerResponse:
        try:
            player = local_store.create_player(payload.name)
        except DuplicateNameError:
            raise HTTPException(status_code=400, detail="name_taken")
        return _player_response(player)

    @app.get("/api/players/{player_id}", response_model=PlayerResponse)
    def get_player(player_id: str, local_store: PlayerStore = Depends(get_store)) -> PlayerResponse:
        try:
            player = local_store.get_player(player_id)
        except PlayerNotFoundError:
            raise HTTPException(status_code=404, detail="player_not_found")
        return _player_response(player)

    @app.get("/api/spawns/current", response_model=SpawnInfo)
    def get_current_spawn(local_store: PlayerStore = Depends(get_store)) -> SpawnInfo:
        spawn = local_store.current_spawn()
        if spawn is None:
            raise HTTPException(status_code=404, detail="no_spawn")
        return _spawn_info(spawn)

    def checked_attempt(payload: AttemptRequest, local_store: PlayerStore = Depends(get_store)) -> AttemptRequest:
        try:
            local_store.get_player(payload.player_id)
        except PlayerNotFoundError:
            raise HTTPException(status_code=404, detail="player_not_found")
        if payload.player_id != game.player.id:
            raise HTTPException(status_code=403, detail="not_session_player")
        if local_store.current_spawn() is None:
            raise HTTPException(status_code=404, detail="no_spawn")
        return payload

    # Store lookups run in the threadpool via the dependency; the queue hand-off stays on the event loop.
    @app.post("/api/attempts", response_model=AttemptQueuedResponse, status_code=202)
    async def post_attempt(payload: AttemptRequest = Depends(checked_attempt)) -> AttemptQueuedResponse:
        try:
            round_number = game.submit_attempt(payload.attempt)
        except InvalidStateError:
            raise HTTPException(status_code=409, detail="no_battle")
        except asyncio.QueueFull:
            raise HTTPException(status_code=409, detail="attempt_pending")
        return AttemptQueuedResponse(status="queued", round=round_number)

    return app


app = create_app()
