"""WebSocket implementation of the EventSink interface."""

import asyncio

from fastapi import WebSocket, WebSocketDisconnect
from legal_common.logging import setup_logging

from domain.models import ServerEvent
from infrastructure.interfaces import EventSink

logger = setup_logging()


class WebSocketEventSink(EventSink):
    """Serializes server events onto one client WebSocket."""

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket
        self._lock = asyncio.Lock()
        self._connected = True

    def mark_closed(self) -> None:
        self._connected = False

    async def send(self, event: ServerEvent) -> None:
        async with self._lock:
            if not self._connected:
                logger.debug("Dropping event for closed client", extra={"type": event.type})
                return
            try:
                await self._websocket.send_text(event.model_dump_json(by_alias=True))
            except (WebSocketDisconnect, RuntimeError, OSError):
                self._connected = False
                logger.info("Client went away while sending", extra={"type": event.type})
