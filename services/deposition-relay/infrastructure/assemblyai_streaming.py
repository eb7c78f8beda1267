"""AssemblyAI implementation of the TranscriptionService interface."""

import asyncio
from collections.abc import AsyncIterator

from assemblyai.streaming.v3 import (
    StreamingClient,
    StreamingClientOptions,
    StreamingEvents,
    StreamingParameters,
)
from legal_common.logging import setup_logging

from domain.models import StreamingConfig, TranscriptEvent, TranscriptKind
from exceptions import TranscriptionConnectionError, TranscriptionSendError

from infrastructure.interfaces import TranscriptionConnection, TranscriptionService

logger = setup_logging()

_STREAM_END = object()


class AssemblyAIStreamingConnection(TranscriptionConnection):
    """
    Bridges one AssemblyAI streaming client to asyncio.

    The SDK invokes handlers on its own reader thread; every handler hands
    its payload to the event loop with call_soon_threadsafe, so the queue
    and the start future are only touched from the loop.
    """

    def __init__(
        self,
        client: StreamingClient,
        loop: asyncio.AbstractEventLoop,
        format_turns: bool = True,
    ):
        self._client = client
        self._loop = loop
        self._format_turns = format_turns
        self._queue: asyncio.Queue = asyncio.Queue()
        self._started: asyncio.Future = loop.create_future()
        self._consumed = False
        self._closed = False
        self.session_id: str | None = None

        client.on(StreamingEvents.Begin, self._on_begin)
        client.on(StreamingEvents.Turn, self._on_turn)
        client.on(StreamingEvents.Termination, self._on_termination)
        client.on(StreamingEvents.Error, self._on_error)

    def _on_begin(self, _client, event) -> None:
        self._loop.call_soon_threadsafe(self._mark_started, event.id)

    def _on_turn(self, _client, event) -> None:
        text = (event.transcript or "").strip()
        if not text:
            return
        is_final = event.end_of_turn and (
            event.turn_is_formatted or not self._format_turns
        )
        kind = TranscriptKind.FINAL if is_final else TranscriptKind.PARTIAL
        self._loop.call_soon_threadsafe(
            self._queue.put_nowait, TranscriptEvent(kind=kind, text=text)
        )

    def _on_termination(self, _client, event) -> None:
        logger.info(
            "AssemblyAI session terminated",
            extra={
                "session_id": self.session_id,
                "audio_duration_seconds": getattr(event, "audio_duration_seconds", None),
            },
        )
        self._loop.call_soon_threadsafe(self._queue.put_nowait, _STREAM_END)

    def _on_error(self, _client, error) -> None:
        self._loop.call_soon_threadsafe(self._fail, str(error))

    def _mark_started(self, session_id: str) -> None:
        self.session_id = session_id
        if not self._started.done():
            self._started.set_result(session_id)
        logger.info("AssemblyAI session started", extra={"session_id": session_id})

    def _fail(self, message: str) -> None:
        logger.error(
            "AssemblyAI streaming error",
            extra={"session_id": self.session_id, "error": message},
        )
        failure = TranscriptionConnectionError(f"Transcription service error: {message}")
        if not self._started.done():
            self._started.set_exception(failure)
        self._queue.put_nowait(failure)

    async def open(self, parameters: StreamingParameters, timeout: float) -> None:
        """Connects the client and waits for the provider's session-begin message."""
        await asyncio.to_thread(self._client.connect, parameters)
        await asyncio.wait_for(asyncio.shield(self._started), timeout)

    async def send(self, frame: bytes) -> None:
        try:
            await asyncio.to_thread(self._client.stream, frame)
        except Exception as e:
            logger.exception(
                "AssemblyAI stream failed", extra={"session_id": self.session_id}
            )
            raise TranscriptionSendError(self.session_id, e) from e

    async def events(self) -> AsyncIterator[TranscriptEvent]:
        if self._consumed:
            raise RuntimeError("Transcript events can only be consumed once")
        self._consumed = True
        while True:
            item = await self._queue.get()
            if item is _STREAM_END:
                return
            if isinstance(item, TranscriptionConnectionError):
                raise item
            yield item

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await asyncio.to_thread(self._client.disconnect, terminate=True)
        finally:
            self._queue.put_nowait(_STREAM_END)
            if not self._started.done():
                self._started.cancel()


class AssemblyAIStreamingService(TranscriptionService):
    """Opens AssemblyAI real-time transcription sessions."""

    def __init__(self, api_key: str, api_host: str, connect_timeout_seconds: float):
        self._api_key = api_key
        self._api_host = api_host
        self._connect_timeout_seconds = connect_timeout_seconds

    def _create_client(self) -> StreamingClient:
        return StreamingClient(
            StreamingClientOptions(api_key=self._api_key, api_host=self._api_host)
        )

    async def connect(self, config: StreamingConfig) -> AssemblyAIStreamingConnection:
        """
        Opens a streaming session and waits until AssemblyAI confirms it.

        Raises:
            TranscriptionConnectionError: If the handshake fails or times out.
        """
        connection = AssemblyAIStreamingConnection(
            self._create_client(), asyncio.get_running_loop()
        )
        parameters = StreamingParameters(
            sample_rate=config.sample_rate,
            format_turns=True,
            max_turn_silence=config.silence_threshold_ms,
        )
        try:
            await connection.open(parameters, self._connect_timeout_seconds)
        except TranscriptionConnectionError:
            await self._discard(connection)
            raise
        except Exception as e:
            logger.exception("AssemblyAI connection failed")
            await self._discard(connection)
            raise TranscriptionConnectionError(
                "Could not connect to the transcription service", cause=e
            ) from e

        logger.info(
            "AssemblyAI streaming connected",
            extra={
                "session_id": connection.session_id,
                "sample_rate": config.sample_rate,
            },
        )
        return connection

    async def _discard(self, connection: AssemblyAIStreamingConnection) -> None:
        try:
            await connection.close()
        except Exception:
            logger.warning("Failed to close AssemblyAI client after connect error")
