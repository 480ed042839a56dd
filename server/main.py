"""FastAPI web server exposing a running GNSS session.

Start through the CLI::

    python main.py --tcp 192.168.4.1:2948 --serve --port 8000

``GET /status`` returns the current session snapshot as JSON. WebSocket
clients connect to ``ws://<host>:8000/ws`` and receive one ``type="session"``
message per snapshot change; when nothing changes for a while the current
snapshot is re-sent so clients can tell a quiet session from a dead socket.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from rtkclient.session import GNSSSession, SessionSnapshot
from server.formatters import format_snapshot_message, snapshot_to_dict

__all__ = ["create_app"]

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 5.0

Startup = Callable[[GNSSSession], Awaitable[None]]


async def _send_messages_until_disconnect(
    queue: asyncio.Queue[SessionSnapshot],
    websocket: WebSocket,
    session: GNSSSession,
) -> None:
    try:
        while True:
            try:
                snapshot = await asyncio.wait_for(queue.get(), timeout=_TIMEOUT_SECONDS)
            except TimeoutError:
                snapshot = session.snapshot
            await websocket.send_text(format_snapshot_message(snapshot))
    except WebSocketDisconnect:
        pass


def create_app(session: GNSSSession, startup: Startup | None = None) -> FastAPI:
    """Build the application around *session*.

    The application's lifespan owns the session: it is started before the
    first request and closed, disconnecting both clients, on shutdown.

    Args:
        session: Session to expose.
        startup: Optional coroutine run once the session has started,
            typically connecting the receiver and the caster.
    """

    @asynccontextmanager
    async def _lifespan(_application: FastAPI) -> AsyncIterator[None]:
        await session.start()
        if startup is not None:
            await startup(session)
        try:
            yield
        finally:
            await session.close()

    app = FastAPI(lifespan=_lifespan)

    @app.get("/status")
    async def get_status() -> dict[str, Any]:
        """Return the current session snapshot."""
        return snapshot_to_dict(session.snapshot)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """Stream session snapshots to a connected WebSocket client.

        Each client gets its own bounded queue; the oldest snapshot is
        dropped when it is full so slow clients never stall the session.
        The current snapshot is sent first.

        Args:
            websocket: The incoming WebSocket connection.
        """
        await websocket.accept()
        queue = session.subscribe()
        try:
            await websocket.send_text(format_snapshot_message(session.snapshot))
            await _send_messages_until_disconnect(queue, websocket, session)
        except WebSocketDisconnect:
            logger.debug("WebSocket client went away")
        finally:
            session.unsubscribe(queue)

    return app
