"""Handler for one recording WebSocket connection."""

from collections.abc import Callable
from typing import assert_never

from fastapi import WebSocket
from legal_common.logging import setup_logging
from pydantic import ValidationError

from domain.models import (
    AudioChunkMessage,
    ErrorEvent,
    StartRecording,
    StopRecording,
    parse_client_message,
)
from domain.relay_session import RelaySession
from infrastructure.websocket_sink import WebSocketEventSink

logger = setup_logging()


def describe_validation_error(error: ValidationError) -> str:
    """Turns a pydantic error into a short client-facing message."""
    first = error.errors()[0]
    if first["type"] == "json_invalid":
        return "Invalid JSON message"
    if first["type"] == "union_tag_invalid":
        return "Unknown message type"
    if first["type"] == "union_tag_not_found":
        return "Message type is required"
    location = ".".join(str(part) for part in first["loc"][1:]) or "message"
    return f"Invalid message: {location}: {first['msg']}"


class RecordingConnectionHandler:
    """
    Processes the inbound messages of one connection strictly in order.

    Client mistakes are answered with an error event and never close the
    connection. When the client goes away the session is stopped.
    """

    def __init__(
        self,
        websocket: WebSocket,
        create_session: Callable[[WebSocketEventSink], RelaySession],
    ):
        self._websocket = websocket
        self._sink = WebSocketEventSink(websocket)
        self.session = create_session(self._sink)

    async def run(self) -> None:
        await self._websocket.accept()
        logger.info("Recording connection opened")
        try:
            while True:
                data = await self._websocket.receive()
                if data["type"] == "websocket.disconnect":
                    break
                if data.get("text") is not None:
                    await self.handle_text(data["text"])
                elif data.get("bytes") is not None:
                    await self._sink.send(
                        ErrorEvent(message="Binary frames are not supported")
                    )
        except Exception:
            logger.exception(
                "Recording connection failed",
                extra={"deposition_id": str(self.session.deposition_id)},
            )
        finally:
            self._sink.mark_closed()
            await self.session.transport_closed()
            logger.info(
                "Recording connection closed",
                extra={
                    "deposition_id": str(self.session.deposition_id),
                    "state": self.session.state.value,
                },
            )

    async def handle_text(self, raw: str) -> None:
        try:
            message = parse_client_message(raw)
        except ValidationError as e:
            logger.info(
                "Rejected client message",
                extra={"error_count": e.error_count(), "error": str(e.errors()[0]["type"])},
            )
            await self._sink.send(ErrorEvent(message=describe_validation_error(e)))
            return

        match message:
            case StartRecording():
                await self.session.start(message)
            case AudioChunkMessage():
                await self.session.handle_audio(message)
            case StopRecording():
                await self.session.stop()
            case _:
                assert_never(message)
