"""FastAPI application serving UltimateXO sessions over WebSockets."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .config import Settings
from .coordinator import Mailbox, SessionCoordinator
from .errors import InvalidRequest, RoomNotFound
from .events import parse_intent

logger = logging.getLogger(__name__)


async def _pump(websocket: WebSocket, mailbox: Mailbox) -> None:
    """Forward queued events to the socket in order until it goes away."""

    while True:
        event = await mailbox.get()
        if event is None:
            # Client stopped reading and its mailbox overflowed
            with contextlib.suppress(RuntimeError, WebSocketDisconnect):
                await websocket.close(code=1008)
            return
        try:
            await websocket.send_json(event.to_wire())
        except (RuntimeError, WebSocketDisconnect):
            return


def create_app(coordinator: Optional[SessionCoordinator] = None) -> FastAPI:
    if coordinator is None:
        settings = Settings.from_env()
        coordinator = SessionCoordinator(mailbox_size=settings.mailbox_size)
    application = FastAPI(
        title="UltimateXO",
        description="Authoritative two-player ultimate tic-tac-toe sessions",
    )
    application.state.coordinator = coordinator

    @application.get("/api/health")
    async def health() -> Dict[str, object]:
        return {"status": "ok", "rooms": coordinator.room_count}

    @application.get("/api/room/{room_id}")
    async def inspect_room(room_id: str) -> Dict[str, object]:
        try:
            return coordinator.describe_room(room_id)
        except RoomNotFound as exc:
            raise HTTPException(status_code=404, detail=exc.message) from exc

    @application.websocket("/ws")
    async def play(websocket: WebSocket) -> None:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        mailbox = coordinator.connect(connection_id)
        pump = asyncio.create_task(_pump(websocket, mailbox))
        logger.info("Connection %s opened", connection_id)

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text") or message.get("bytes") or b""
                try:
                    intent = parse_intent(raw)
                except ValidationError as exc:
                    logger.debug("Undecodable message from %s: %s", connection_id, exc)
                    coordinator.reject(connection_id, InvalidRequest())
                    continue
                await coordinator.dispatch(connection_id, intent)
        except WebSocketDisconnect:
            pass
        finally:
            await coordinator.disconnect(connection_id)
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump
            logger.info("Connection %s closed", connection_id)

    return application


app = create_app()
