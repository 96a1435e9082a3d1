import asyncio
import contextlib

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from spectator.encoder import encode
from spectator.hub import SpectatorHub, Viewer, is_valid_join_code

logger = structlog.get_logger()

CLOSE_INVALID_CODE = 4000
CLOSE_UNKNOWN_SESSION = 4004
CLOSE_SESSION_ENDED = 1000


async def _send_snapshots(websocket: WebSocket, viewer: Viewer) -> None:
    while True:
        message = await viewer.next_message()
        if message is None:
            with contextlib.suppress(WebSocketDisconnect, RuntimeError):
                await websocket.close(code=CLOSE_SESSION_ENDED, reason="session_ended")
            return
        await websocket.send_bytes(encode(message))


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """Consume and ignore viewer frames until the viewer goes away."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


async def spectator_endpoint(websocket: WebSocket, hub: SpectatorHub) -> None:
    """Stream snapshots of one session to a read-only viewer.

    The connection ends when the viewer leaves or the host closes the
    session. Anything the viewer sends is ignored.
    """
    code = websocket.path_params["code"].upper()
    if not is_valid_join_code(code):
        await websocket.close(code=CLOSE_INVALID_CODE, reason="invalid_join_code")
        return

    viewer = hub.join(code)
    if viewer is None:
        await websocket.close(code=CLOSE_UNKNOWN_SESSION, reason="unknown_session")
        return

    await websocket.accept()
    structlog.contextvars.bind_contextvars(viewer_id=viewer.viewer_id, join_code=code)
    sender = asyncio.create_task(_send_snapshots(websocket, viewer))
    receiver = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
                await task
        for task in done:
            with contextlib.suppress(WebSocketDisconnect, RuntimeError, ConnectionError):
                task.result()
    finally:
        hub.leave(code, viewer)
        if viewer.dropped:
            logger.info("viewer fell behind", dropped=viewer.dropped)
        structlog.contextvars.clear_contextvars()
