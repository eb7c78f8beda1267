"""Per-connection recording session: relays audio and transcripts."""

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any
from uuid import UUID

from legal_common.db_models import RecordingStatus, utc_now
from legal_common.logging import setup_logging

from config import RelayConfig
from domain.models import (
    AnalysisEvent,
    AudioChunkMessage,
    DepositionRecord,
    ErrorEvent,
    FinalTranscriptEvent,
    NewAudioDeposition,
    PartialTranscriptEvent,
    RecordingCompletedEvent,
    RecordingFailedEvent,
    RecordingStartedEvent,
    SessionState,
    StartRecording,
    StreamingConfig,
    TranscriptKind,
)
from domain.session_registry import SessionRegistry
from domain.transcript_accumulator import AnalysisTrigger, TranscriptAccumulator
from exceptions import (
    AudioDepositionNotFoundError,
    CaseNotFoundError,
    DepositionPersistenceError,
    InvalidAudioFrameError,
    SessionAlreadyActiveError,
    TranscriptionConnectionError,
    TranscriptionSendError,
)
from infrastructure.interfaces import (
    EventSink,
    TranscriptionConnection,
    TranscriptionService,
)

logger = setup_logging()

_STORE_ERRORS = (DepositionPersistenceError, AudioDepositionNotFoundError)
_WRITER_DONE = None


class RelaySession:
    """
    State machine of one recording session.

    idle -> starting -> active -> closing -> completed, with errored as the
    failure terminal. Inbound messages are handled one at a time by the
    connection handler; transcript events arrive on a separate relay task and
    frames are persisted, in arrival order, by a chunk-writer task.
    """

    def __init__(
        self,
        sink: EventSink,
        repository,
        transcription_service: TranscriptionService,
        registry: SessionRegistry,
        relay_config: RelayConfig,
        streaming_config: StreamingConfig,
        analyzer=None,
        archiver=None,
    ):
        self._sink = sink
        self._repository = repository
        self._transcription = transcription_service
        self._registry = registry
        self._config = relay_config
        self._streaming_config = streaming_config
        self._analyzer = analyzer
        self._archiver = archiver

        self._state = SessionState.IDLE
        self._deposition: DepositionRecord | None = None
        self._connection: TranscriptionConnection | None = None
        self._accumulator = TranscriptAccumulator()
        self._chunks: asyncio.Queue[tuple[bytes, datetime] | None] = asyncio.Queue()
        self._writer_task: asyncio.Task | None = None
        self._relay_task: asyncio.Task | None = None
        self._failure: str | None = None
        self._forward_failing = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def deposition_id(self) -> UUID | None:
        return self._deposition.id if self._deposition else None

    @property
    def transcript(self) -> str:
        return self._accumulator.transcript

    async def start(self, message: StartRecording) -> None:
        """Creates the deposition, opens transcription and goes active."""
        if self._state is not SessionState.IDLE:
            logger.warning("Start rejected", extra={"state": self._state.value})
            await self._sink.send(
                ErrorEvent(message="Recording already started on this connection")
            )
            return

        self._state = SessionState.STARTING

        try:
            deposition = await asyncio.to_thread(
                self._repository.create_audio_deposition,
                NewAudioDeposition.from_start(message),
            )
        except CaseNotFoundError as e:
            self._state = SessionState.IDLE
            logger.warning("Start rejected", extra={"case_id": str(message.case_id)})
            await self._sink.send(ErrorEvent(message=str(e)))
            return
        except DepositionPersistenceError:
            self._state = SessionState.ERRORED
            await self._sink.send(ErrorEvent(message="Failed to create audio deposition"))
            return
        self._deposition = deposition
        log_extra = {"deposition_id": str(deposition.id)}

        try:
            connection = await self._transcription.connect(self._streaming_config)
        except TranscriptionConnectionError as e:
            logger.error(
                "Transcription connection failed",
                extra={**log_extra, "error": str(e)},
            )
            self._state = SessionState.ERRORED
            await self._persist_status(RecordingStatus.ERROR, str(e))
            await self._sink.send(ErrorEvent(message=str(e)))
            return

        try:
            self._registry.register(deposition.id, self)
        except SessionAlreadyActiveError as e:
            self._state = SessionState.ERRORED
            await self._close_connection(connection)
            await self._persist_status(RecordingStatus.ERROR, str(e))
            await self._sink.send(ErrorEvent(message=str(e)))
            return

        self._connection = connection
        if connection.session_id:
            try:
                await asyncio.to_thread(
                    self._repository.update_audio_deposition,
                    deposition.id,
                    transcription_session_id=connection.session_id,
                )
            except _STORE_ERRORS:
                logger.warning("Could not record transcription session id", extra=log_extra)

        self._accumulator = TranscriptAccumulator(
            initial=deposition.transcript,
            trigger=self._build_trigger(),
        )
        self._state = SessionState.ACTIVE
        self._writer_task = asyncio.create_task(self._write_chunks())
        self._relay_task = asyncio.create_task(self._relay_transcripts(connection))

        logger.info(
            "Recording started",
            extra={
                **log_extra,
                "case_id": str(deposition.case_id),
                "transcription_session_id": connection.session_id,
            },
        )
        await self._sink.send(RecordingStartedEvent(deposition_id=str(deposition.id)))

    async def handle_audio(self, message: AudioChunkMessage) -> None:
        """Persists and forwards one frame. Dropped outside the active state."""
        if self._state is not SessionState.ACTIVE:
            logger.debug("Audio chunk dropped", extra={"state": self._state.value})
            return

        try:
            frame = message.decode(self._config.frame_bytes)
        except InvalidAudioFrameError as e:
            logger.warning(
                "Invalid audio frame",
                extra={"deposition_id": str(self.deposition_id), "reason": e.reason},
            )
            await self._sink.send(ErrorEvent(message=str(e)))
            return

        self._chunks.put_nowait((frame, utc_now()))

        try:
            await self._connection.send(frame)
        except TranscriptionSendError:
            # Reported once per outage.
            if self._state is SessionState.ACTIVE and not self._forward_failing:
                self._forward_failing = True
                await self._sink.send(
                    ErrorEvent(message="Failed to forward audio for transcription")
                )
        else:
            self._forward_failing = False

    async def stop(self) -> None:
        """Closes the session gracefully. A no-op unless active."""
        if self._state is not SessionState.ACTIVE:
            logger.debug("Stop ignored", extra={"state": self._state.value})
            return

        self._state = SessionState.CLOSING
        deposition = self._deposition
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.close_timeout_seconds

        def remaining() -> float:
            return max(0.0, deadline - loop.time())

        logger.info("Recording stopping", extra={"deposition_id": str(deposition.id)})

        await self._close_connection(self._connection, remaining())
        await self._settle(self._relay_task, remaining(), "transcript relay")
        await self._drain_writer(remaining())
        await self._accumulator.aclose(remaining())

        if self._failure:
            await self._persist_status(RecordingStatus.ERROR, self._failure)
        else:
            await self._persist_status(RecordingStatus.COMPLETED)

        self._registry.release(deposition.id, self)
        self._state = SessionState.COMPLETED

        logger.info(
            "Recording completed",
            extra={
                "deposition_id": str(deposition.id),
                "transcript_length": len(self.transcript),
                "failure": self._failure,
            },
        )
        await self._sink.send(
            RecordingCompletedEvent(
                deposition_id=str(deposition.id), transcript=self.transcript
            )
        )

        if self._archiver is not None:
            self._archiver.schedule(deposition.id)

    async def transport_closed(self) -> None:
        """A dropped connection ends the session like stop_recording."""
        if self._state is SessionState.ERRORED:
            await self._settle(
                self._relay_task, self._config.close_timeout_seconds, "transcript relay"
            )
            return
        if self._state is SessionState.ACTIVE:
            logger.info(
                "Client disconnected during recording",
                extra={"deposition_id": str(self.deposition_id)},
            )
        await self.stop()

    async def _relay_transcripts(self, connection: TranscriptionConnection) -> None:
        try:
            async for event in connection.events():
                if event.kind is TranscriptKind.PARTIAL:
                    await self._sink.send(PartialTranscriptEvent(transcript=event.text))
                else:
                    await self._handle_final(event.text)
        except TranscriptionConnectionError as e:
            await self._on_transcription_failure(str(e))
            return
        except Exception as e:
            logger.exception(
                "Transcript relay crashed",
                extra={"deposition_id": str(self.deposition_id)},
            )
            await self._on_transcription_failure(f"Transcript relay failed: {e}")
            return

        if self._state is SessionState.ACTIVE:
            await self._on_transcription_failure("Transcription session ended unexpectedly")

    async def _handle_final(self, text: str) -> None:
        await self._sink.send(FinalTranscriptEvent(transcript=text))
        self._accumulator.add_final(text)
        try:
            await self._with_retry(
                self._repository.append_transcript, self.deposition_id, text
            )
        except _STORE_ERRORS:
            await self._sink.send(ErrorEvent(message="Failed to store transcript segment"))

    async def _write_chunks(self) -> None:
        while True:
            item = await self._chunks.get()
            if item is _WRITER_DONE:
                return
            frame, captured_at = item
            try:
                await self._with_retry(
                    self._repository.append_audio_chunk,
                    self.deposition_id,
                    frame,
                    captured_at,
                )
            except _STORE_ERRORS:
                await self._sink.send(ErrorEvent(message="Failed to store audio chunk"))

    async def _with_retry(self, operation: Callable[..., Any], *args) -> Any:
        attempts = self._config.store_retry_attempts + 1
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.to_thread(operation, *args)
            except _STORE_ERRORS:
                if attempt == attempts:
                    raise
                logger.warning(
                    "Store operation failed, retrying",
                    extra={
                        "deposition_id": str(self.deposition_id),
                        "operation": getattr(operation, "__name__", str(operation)),
                        "attempt": attempt,
                    },
                )

    async def _on_transcription_failure(self, message: str) -> None:
        if self._state is SessionState.CLOSING:
            logger.warning(
                "Transcription failed while closing",
                extra={"deposition_id": str(self.deposition_id), "error": message},
            )
            self._failure = message
            return
        if self._state is not SessionState.ACTIVE:
            return
        await self._fail(message)

    async def _fail(self, message: str) -> None:
        """Ends an active session on an unrecoverable transcription error."""
        self._state = SessionState.ERRORED
        deposition_id = self.deposition_id
        logger.error(
            "Recording session failed",
            extra={"deposition_id": str(deposition_id), "error": message},
        )

        self._registry.release(deposition_id, self)
        await self._persist_status(RecordingStatus.ERROR, message)
        await self._close_connection(self._connection)
        await self._drain_writer(self._config.close_timeout_seconds)
        await self._accumulator.aclose(0)
        await self._sink.send(ErrorEvent(message=message))
        await self._sink.send(
            RecordingFailedEvent(deposition_id=str(deposition_id), message=message)
        )

    async def _persist_status(
        self, status: RecordingStatus, error_message: str | None = None
    ) -> None:
        try:
            await self._with_retry(
                self._repository.update_audio_deposition,
                self.deposition_id,
                status,
                error_message,
            )
        except _STORE_ERRORS:
            logger.exception(
                "Could not persist recording status",
                extra={"deposition_id": str(self.deposition_id), "status": status.value},
            )

    async def _close_connection(
        self, connection: TranscriptionConnection | None, timeout: float | None = None
    ) -> None:
        if connection is None:
            return
        try:
            await asyncio.wait_for(
                connection.close(), self._config.close_timeout_seconds if timeout is None else timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Transcription close timed out",
                extra={"deposition_id": str(self.deposition_id)},
            )
        except Exception:
            logger.exception(
                "Transcription close failed",
                extra={"deposition_id": str(self.deposition_id)},
            )

    async def _drain_writer(self, timeout: float) -> None:
        if self._writer_task is None:
            return
        self._chunks.put_nowait(_WRITER_DONE)
        await self._settle(self._writer_task, timeout, "chunk writer")

    async def _settle(self, task: asyncio.Task | None, timeout: float, name: str) -> None:
        """Waits for a session task up to `timeout`, then cancels it."""
        if task is None or task.done() or task is asyncio.current_task():
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            task.cancel()
            logger.warning(
                "Session task cancelled at close",
                extra={
                    "deposition_id": str(self.deposition_id),
                    "task": name,
                    "pending_chunks": self._chunks.qsize(),
                },
            )

    def _build_trigger(self) -> AnalysisTrigger | None:
        if self._analyzer is None or not self._config.analyze_on_final:
            return None
        return AnalysisTrigger(self._run_analysis)

    async def _run_analysis(self, transcript: str) -> None:
        analysis = await asyncio.to_thread(
            self._analyzer.analyze, self._deposition, transcript
        )
        await self._sink.send(AnalysisEvent(analysis=analysis.model_dump(mode="json")))

