from __future__ import annotations

import contextlib
import json
from typing import TYPE_CHECKING, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from game.logic.enums import ErrorKind, GameErrorCode
from game.logic.types import Rejection
from game.server.settings import GameServerSettings
from game.server.types import CreateRoomRequest, GuessRequest, JoinRoomRequest, StartGameRequest
from game.session.directory import PlayerDirectory, RoomDirectory
from game.session.manager import RoomManager
from shared.logging import setup_logging
from shared.storage import create_store

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request

    from shared.storage import KeyValueStore

T = TypeVar("T", bound=BaseModel)

_MAX_REQUEST_BODY_SIZE = 4096

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
}


def _error(message: str, code: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message, "code": code}, status_code=status_code)


def _rejection_response(rejection: Rejection) -> JSONResponse:
    return _error(rejection.message, rejection.code, _STATUS_BY_KIND[rejection.kind])


def _invalid_body() -> JSONResponse:
    return _error("Invalid request body", GameErrorCode.INVALID_REQUEST, 400)


async def _read_body(request: Request, model: type[T]) -> T | JSONResponse:
    """Parse and validate a JSON body, or return the 4xx response to send instead."""
    try:
        raw_body = await request.body()
        if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
            return _error("Request body too large", GameErrorCode.INVALID_REQUEST, 413)
        body = json.loads(raw_body)
        if not isinstance(body, dict):
            return _invalid_body()
        return model(**body)
    except (ValueError, TypeError, UnicodeDecodeError, ValidationError):  # fmt: skip
        return _invalid_body()


def _manager(request: Request) -> RoomManager:
    return request.app.state.room_manager


async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "rooms": await _manager(request).room_count()})


async def list_rooms(request: Request) -> JSONResponse:
    rooms = await _manager(request).list_rooms()
    return JSONResponse({"rooms": [room.model_dump(mode="json") for room in rooms]})


async def create_room(request: Request) -> JSONResponse:
    manager = _manager(request)
    settings: GameServerSettings = request.app.state.settings

    body = await _read_body(request, CreateRoomRequest)
    if isinstance(body, JSONResponse):
        return body

    if await manager.room_count() >= settings.max_rooms:
        return _error("Server at capacity", "server_at_capacity", 503)

    result = await manager.create_room(body.player_name)
    if isinstance(result, Rejection):
        return _rejection_response(result)
    return JSONResponse(result.model_dump(mode="json"), status_code=201)


async def join_room(request: Request) -> JSONResponse:
    body = await _read_body(request, JoinRoomRequest)
    if isinstance(body, JSONResponse):
        return body

    result = await _manager(request).join_room(request.path_params["room_id"], body.player_name)
    if isinstance(result, Rejection):
        return _rejection_response(result)
    return JSONResponse(result.model_dump(mode="json"))


async def leave_room(request: Request) -> JSONResponse:
    room_id = request.path_params["room_id"]
    result = await _manager(request).leave_room(room_id, request.path_params["player_id"])
    if isinstance(result, Rejection):
        return _rejection_response(result)
    if result is None:
        return JSONResponse({"room_id": room_id, "deleted": True})
    return JSONResponse(result.model_dump(mode="json"))


async def start_game(request: Request) -> JSONResponse:
    body = await _read_body(request, StartGameRequest)
    if isinstance(body, JSONResponse):
        return body

    result = await _manager(request).start_game(request.path_params["room_id"], body.player_id)
    if isinstance(result, Rejection):
        return _rejection_response(result)
    return JSONResponse(result.model_dump(mode="json"))


async def make_guess(request: Request) -> JSONResponse:
    body = await _read_body(request, GuessRequest)
    if isinstance(body, JSONResponse):
        return body

    result = await _manager(request).make_guess(request.path_params["room_id"], body.player_id, body.guess)
    if isinstance(result, Rejection):
        return _rejection_response(result)
    return JSONResponse(result.model_dump(mode="json"))


async def get_room(request: Request) -> JSONResponse:
    result = await _manager(request).get_state(request.path_params["room_id"])
    if isinstance(result, Rejection):
        return _rejection_response(result)
    return JSONResponse(result.model_dump(mode="json"))


def create_app(
    settings: GameServerSettings | None = None,
    room_manager: RoomManager | None = None,
    store: KeyValueStore | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = GameServerSettings()

    # When the app builds its own store, it owns closing it.
    owned_store: KeyValueStore | None = None

    if room_manager is None:
        if store is None:
            store = create_store(settings.store_backend, settings.redis_url)
            owned_store = store
        room_manager = RoomManager(
            RoomDirectory(
                store,
                ttl_seconds=settings.room_ttl_seconds,
                max_idle_seconds=settings.max_idle_seconds,
            ),
            PlayerDirectory(store, ttl_seconds=settings.room_ttl_seconds),
            settings.game_settings(),
            reaper_interval_seconds=settings.reaper_interval_seconds,
        )

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        room_manager.start_reaper()
        try:
            yield
        finally:
            await room_manager.stop_reaper()
            if owned_store is not None:
                await owned_store.close()

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/rooms", list_rooms, methods=["GET"]),
        Route("/rooms", create_room, methods=["POST"]),
        Route("/rooms/{room_id}", get_room, methods=["GET"]),
        Route("/rooms/{room_id}/players", join_room, methods=["POST"]),
        Route("/rooms/{room_id}/players/{player_id}", leave_room, methods=["DELETE"]),
        Route("/rooms/{room_id}/start", start_game, methods=["POST"]),
        Route("/rooms/{room_id}/guesses", make_guess, methods=["POST"]),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.room_manager = room_manager

    logger.info("game server ready", store_backend=settings.store_backend)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = GameServerSettings()
    setup_logging(log_dir=_settings.log_dir)
    return create_app(settings=_settings)
