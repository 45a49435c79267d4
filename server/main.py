"""FastAPI server exposing the game session API and per-game WebSocket pushes."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from framework.errors import CodenamesError, InvalidInput, NotFound
from framework.serialize import json_dumps
from server.config import ServerConfig
from server.registry import SessionRegistry
from server.schemas import ClueRequest, CreateGameRequest, JoinRequest, PlayerRequest, RevealRequest

logger = logging.getLogger(__name__)

config = ServerConfig.from_env()
logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

registry = SessionRegistry(config=config)


async def _sweep_forever(interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            registry.sweep()
        except Exception:
            logger.exception("idle session sweep failed")


@asynccontextmanager
async def lifespan(_: FastAPI):
    sweeper = asyncio.create_task(_sweep_forever(config.sweep_interval_sec))
    try:
        yield
    finally:
        sweeper.cancel()
        for game_id in registry.game_ids():
            registry.remove(game_id)


app = FastAPI(title="Codenames Session API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(config.allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def _validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed bodies as 400 InvalidInput instead of FastAPI's 422."""
    error = InvalidInput("; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in exc.errors()))
    return JSONResponse(status_code=error.status_code, content={"detail": error.to_dict()})


def _http_error(exc: CodenamesError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())


@app.get("/api/health")
def health() -> dict[str, Any]:
    """Healthcheck endpoint."""
    return {"status": "ok", "games": len(registry), "subscribers": registry.broadcaster.stats()}


@app.post("/api/game")
def create_game(request: CreateGameRequest | None = None) -> dict[str, str]:
    """Create a game (or return the existing one when `gameId` is given)."""
    request = request or CreateGameRequest()
    options = {"starting_team": request.starting_team, "words": request.words}
    try:
        if request.game_id:
            session = registry.get_or_create(request.game_id, **options)
        else:
            session = registry.create(**options)
    except CodenamesError as exc:
        raise _http_error(exc) from exc
    return {"gameId": session.id}


@app.get("/api/game/{game_id}")
def get_game(game_id: str, player_id: str = Query(..., alias="playerId")) -> dict[str, Any]:
    """Current state as the given player may see it."""
    try:
        session = registry.get(game_id)
        session.player(player_id)
        return session.state_message(player_id)
    except CodenamesError as exc:
        raise _http_error(exc) from exc


@app.get("/api/game/{game_id}/key")
def get_key(game_id: str, player_id: str = Query(..., alias="playerId")) -> dict[str, Any]:
    """Full key card; spymasters only."""
    try:
        session = registry.get(game_id)
        session.player(player_id)
        return {"gameId": session.id, "key": session.key_for(player_id)}
    except CodenamesError as exc:
        raise _http_error(exc) from exc


@app.get("/api/game/{game_id}/events", response_model=None)
def get_events(game_id: str, format: str = Query(default="array")) -> Any:
    """Return committed session events as array (default) or JSONL text."""
    try:
        events = [event.to_dict() for event in registry.get(game_id).events()]
    except CodenamesError as exc:
        raise _http_error(exc) from exc

    if format == "jsonl":
        text = "\n".join(json_dumps(event) for event in events)
        return PlainTextResponse(content=text, media_type="application/jsonl")
    return events


@app.post("/api/game/{game_id}/join")
def join_game(game_id: str, request: JoinRequest) -> dict[str, Any]:
    try:
        player = registry.join(game_id, request.player_id, request.display_name, request.team, request.role)
        session = registry.get(game_id)
    except CodenamesError as exc:
        raise _http_error(exc) from exc
    return {"player": player.to_dict(), "session": session.session_fields()}


@app.post("/api/game/{game_id}/start")
def start_game(game_id: str) -> dict[str, Any]:
    try:
        session = registry.start_game(game_id)
    except CodenamesError as exc:
        raise _http_error(exc) from exc
    return {"session": session.session_fields()}


@app.post("/api/game/{game_id}/clue")
def give_clue(game_id: str, request: ClueRequest) -> dict[str, Any]:
    """Record the active spymaster's clue; every subscriber sees it."""
    try:
        clue = registry.give_clue(game_id, request.player_id, request.word, request.count)
        session = registry.get(game_id)
    except CodenamesError as exc:
        raise _http_error(exc) from exc
    return {"clue": clue.to_dict(), "session": session.session_fields()}


@app.post("/api/game/{game_id}/reveal")
def reveal_tile(game_id: str, request: RevealRequest) -> dict[str, Any]:
    """Reveal a tile; the response carries the reveal event and the new status."""
    try:
        result = registry.reveal(game_id, request.player_id, request.tile_index)
    except CodenamesError as exc:
        raise _http_error(exc) from exc
    return result.to_dict()


@app.post("/api/game/{game_id}/end-turn")
def end_turn(game_id: str, request: PlayerRequest) -> dict[str, Any]:
    try:
        active_team = registry.end_turn(game_id, request.player_id)
        session = registry.get(game_id)
    except CodenamesError as exc:
        raise _http_error(exc) from exc
    return {"activeTeam": active_team.value, "turnCount": session.turn_count}


@app.delete("/api/game/{game_id}")
def close_game(game_id: str) -> dict[str, Any]:
    """Close a game and disconnect its subscribers."""
    if not registry.remove(game_id):
        raise _http_error(NotFound(f"Unknown gameId: {game_id}"))
    return {"gameId": game_id, "closed": True}


async def _read_until_disconnect(websocket: WebSocket) -> None:
    # Client frames carry no commands; reading keeps disconnect detection alive.
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@app.websocket("/api/game/{game_id}/ws")
async def game_socket(websocket: WebSocket, game_id: str, player_id: str = Query(..., alias="playerId")) -> None:
    """Push the viewer's projected state now and after every committed command."""
    await websocket.accept()
    broadcaster = registry.broadcaster
    loop = asyncio.get_running_loop()
    try:
        session = registry.get(game_id)
        session.player(player_id)
        # Subscribing waits on the session lock, which a command may hold on a worker thread.
        subscriber = await asyncio.to_thread(broadcaster.subscribe, session, player_id, websocket, loop=loop)
    except CodenamesError as exc:
        await websocket.send_text(json_dumps(exc.to_dict()))
        await websocket.close(code=4000 + exc.status_code)
        return

    writer = asyncio.create_task(subscriber.run())
    reader = asyncio.create_task(_read_until_disconnect(websocket))
    try:
        await asyncio.wait({writer, reader}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (writer, reader):
            task.cancel()
        await asyncio.gather(writer, reader, return_exceptions=True)
        broadcaster.unsubscribe(subscriber)
        registry.handle_disconnect(game_id, player_id)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.main:app", host="0.0.0.0", port=8000, reload=True)
