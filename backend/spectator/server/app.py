"""Starlette app serving live spectator views."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from shared.logging import setup_logging
from spectator.hub import SpectatorHub, is_valid_join_code
from spectator.server.settings import SpectatorServerSettings
from spectator.server.websocket import spectator_endpoint

logger = structlog.get_logger()

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.websockets import WebSocket

    from scoring.session.keeper import ScoreKeeper


async def health(request: Request) -> JSONResponse:
    hub: SpectatorHub = request.app.state.hub
    return JSONResponse({"status": "ok", "sessions": hub.session_count})


async def session_snapshot(request: Request) -> JSONResponse:
    """Latest snapshot of a session, for viewers that poll instead of streaming."""
    hub: SpectatorHub = request.app.state.hub
    code = request.path_params["code"].upper()
    if not is_valid_join_code(code):
        return JSONResponse({"error": "Invalid join code"}, status_code=400)
    session = hub.get(code)
    if session is None or session.latest is None:
        return JSONResponse({"error": "No snapshot for this session"}, status_code=404)
    return JSONResponse(session.latest)


def create_app(
    settings: SpectatorServerSettings | None = None,
    hub: SpectatorHub | None = None,
    keeper: ScoreKeeper | None = None,
) -> Starlette:
    """Build the spectator server.

    With a ``keeper`` the server hosts one session following that keeper's
    active game; its join code is exposed as ``app.state.join_code``.
    """
    if settings is None:  # pragma: no cover
        settings = SpectatorServerSettings()
    if hub is None:
        hub = SpectatorHub(queue_size=settings.queue_size)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await spectator_endpoint(websocket, hub)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/sessions/{code}", session_snapshot, methods=["GET"]),
        WebSocketRoute("/ws/{code}", ws_endpoint),
    ]

    app = Starlette(routes=routes)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.hub = hub
    app.state.join_code = None

    if keeper is not None:
        session = hub.host(keeper)
        app.state.join_code = session.code
        logger.info("hosting spectator session", session_id=session.session_id)

    logger.info("spectator server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    from scoring.session.factory import create_keeper  # noqa: PLC0415

    _settings = SpectatorServerSettings()
    setup_logging(_settings.log_dir, name="spectator")
    return create_app(settings=_settings, keeper=create_keeper())
