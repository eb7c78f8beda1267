"""Live recording WebSocket endpoint."""

from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, WebSocket

from dependencies import get_session_builder
from domain.relay_session import RelaySession
from handlers import RecordingConnectionHandler
from infrastructure.interfaces import EventSink

router = APIRouter(tags=["recordings"])

SessionBuilderDep = Annotated[
    Callable[[EventSink], RelaySession], Depends(get_session_builder)
]


@router.websocket("/ws/recordings")
async def record_deposition(websocket: WebSocket, build_session: SessionBuilderDep):
    """Streams one live deposition: audio in, transcripts and analysis out."""
    handler = RecordingConnectionHandler(websocket, build_session)
    await handler.run()
