"""
Tests for the relay session state machine, with in-memory collaborators.
"""
import asyncio
import base64
import unittest
from unittest.mock import MagicMock
from uuid import uuid4

from legal_common.db_models import RecordingStatus

from config import RelayConfig
from domain.models import (
    AudioChunkMessage,
    DepositionAnalysis,
    SessionState,
    StartRecording,
    StreamingConfig,
    TranscriptKind,
)
from domain.relay_session import RelaySession
from domain.session_registry import SessionRegistry
from exceptions import TranscriptionConnectionError
from fakes import (
    FakeRepository,
    FakeSink,
    FakeTranscriptionService,
    HangingConnection,
)

FRAME = bytes(range(256)) * 31 + bytes(64)  # 8000 bytes


async def _wait_for(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


def _chunk(frame: bytes = FRAME) -> AudioChunkMessage:
    return AudioChunkMessage(type="audio_chunk", chunk=base64.b64encode(frame).decode())


def _start(case_id=None) -> StartRecording:
    return StartRecording(
        type="start_recording",
        case_id=case_id or uuid4(),
        witness_name="Jane Doe",
        deposition_goals="Timeline of events",
    )


class RelaySessionTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.sink = FakeSink()
        self.repository = FakeRepository()
        self.transcription = FakeTranscriptionService()
        self.connection = self.transcription.connection
        self.registry = SessionRegistry()
        self.analyzer = None
        self.archiver = MagicMock()
        self.relay_config = RelayConfig(close_timeout_seconds=1.0)

    def make_session(self):
        return RelaySession(
            sink=self.sink,
            repository=self.repository,
            transcription_service=self.transcription,
            registry=self.registry,
            relay_config=self.relay_config,
            streaming_config=StreamingConfig(sample_rate=16000, silence_threshold_ms=20000),
            analyzer=self.analyzer,
            archiver=self.archiver,
        )


class TestStart(RelaySessionTestCase):
    async def test_start_activates_session(self):
        session = self.make_session()
        await session.start(_start())

        self.assertIs(session.state, SessionState.ACTIVE)
        self.assertEqual(self.sink.types(), ["recording_started"])
        self.assertEqual(
            self.sink.events[0].deposition_id, str(self.repository.deposition.id)
        )
        self.assertIs(self.registry.get(session.deposition_id), session)
        self.assertEqual(self.transcription.configs[0].sample_rate, 16000)
        self.assertIn((None, None, "provider-session-1"), self.repository.updates)
        await session.stop()

    async def test_store_failure_at_start(self):
        self.repository.fail_create = True
        session = self.make_session()
        await session.start(_start())

        self.assertIs(session.state, SessionState.ERRORED)
        self.assertEqual(self.sink.types(), ["error"])
        self.assertEqual(len(self.registry), 0)
        self.assertEqual(self.transcription.configs, [])

    async def test_unknown_case_keeps_session_idle(self):
        message = _start()
        self.repository.missing_cases.add(message.case_id)
        session = self.make_session()
        await session.start(message)

        self.assertIs(session.state, SessionState.IDLE)
        self.assertEqual(self.sink.types(), ["error"])
        self.assertIn(str(message.case_id), self.sink.events[0].message)
        self.assertEqual(self.transcription.configs, [])

        await session.start(_start())
        self.assertIs(session.state, SessionState.ACTIVE)
        self.assertEqual(self.sink.types(), ["error", "recording_started"])
        await session.stop()

    async def test_transcription_failure_at_start(self):
        self.transcription.error = TranscriptionConnectionError("invalid API key")
        session = self.make_session()
        await session.start(_start())

        self.assertIs(session.state, SessionState.ERRORED)
        self.assertEqual(self.sink.types(), ["error"])
        self.assertEqual(self.sink.events[0].message, "invalid API key")
        self.assertEqual(
            self.repository.last_status, (RecordingStatus.ERROR, "invalid API key")
        )
        self.assertEqual(len(self.registry), 0)

    async def test_second_start_is_rejected(self):
        session = self.make_session()
        await session.start(_start())
        deposition = self.repository.deposition
        await session.start(_start())

        self.assertEqual(self.sink.types(), ["recording_started", "error"])
        self.assertIs(self.repository.deposition, deposition)
        self.assertIs(session.state, SessionState.ACTIVE)
        await session.stop()

    async def test_start_after_completion_is_rejected(self):
        session = self.make_session()
        await session.start(_start())
        await session.stop()
        await session.start(_start())

        self.assertEqual(self.sink.types()[-1], "error")
        self.assertIs(session.state, SessionState.COMPLETED)


class TestAudio(RelaySessionTestCase):
    async def test_frames_are_persisted_and_forwarded_in_order(self):
        session = self.make_session()
        await session.start(_start())
        frames = [bytes([i]) * 8000 for i in range(5)]
        for frame in frames:
            await session.handle_audio(_chunk(frame))
        await session.stop()

        self.assertEqual(self.connection.sent, frames)
        self.assertEqual(self.repository.chunks, frames)

    async def test_invalid_frame_is_rejected(self):
        session = self.make_session()
        await session.start(_start())
        await session.handle_audio(_chunk(bytes(100)))
        await session.handle_audio(AudioChunkMessage(type="audio_chunk", chunk="%%%"))
        await session.stop()

        self.assertEqual(len(self.sink.of_type("error")), 2)
        self.assertEqual(self.connection.sent, [])
        self.assertEqual(self.repository.chunks, [])

    async def test_chunk_before_start_is_dropped(self):
        session = self.make_session()
        await session.handle_audio(_chunk())

        self.assertEqual(self.sink.events, [])
        self.assertEqual(self.repository.chunks, [])

    async def test_chunk_after_stop_is_dropped(self):
        session = self.make_session()
        await session.start(_start())
        await session.stop()
        events = len(self.sink.events)
        await session.handle_audio(_chunk())

        self.assertEqual(len(self.sink.events), events)
        self.assertEqual(self.connection.sent, [])

    async def test_chunk_append_is_retried_once(self):
        self.repository.chunk_failures = 1
        session = self.make_session()
        await session.start(_start())
        await session.handle_audio(_chunk())
        await session.stop()

        self.assertEqual(self.repository.chunks, [FRAME])
        self.assertEqual(self.sink.of_type("error"), [])

    async def test_chunk_append_failing_twice_is_reported(self):
        self.repository.chunk_failures = 2
        session = self.make_session()
        await session.start(_start())
        await session.handle_audio(_chunk())
        await session.handle_audio(_chunk())
        await session.stop()

        self.assertEqual(len(self.sink.of_type("error")), 1)
        self.assertEqual(self.repository.chunks, [FRAME])
        self.assertIs(session.state, SessionState.COMPLETED)

    async def test_forward_failure_is_not_fatal(self):
        self.connection.fail_send = True
        session = self.make_session()
        await session.start(_start())
        await session.handle_audio(_chunk())

        self.assertEqual(len(self.sink.of_type("error")), 1)
        self.assertIs(session.state, SessionState.ACTIVE)
        await session.stop()
        self.assertEqual(self.repository.chunks, [FRAME])

    async def test_repeated_forward_failures_are_reported_once(self):
        self.connection.fail_send = True
        session = self.make_session()
        await session.start(_start())
        for _ in range(4):
            await session.handle_audio(_chunk())
        self.assertEqual(len(self.sink.of_type("error")), 1)

        self.connection.fail_send = False
        await session.handle_audio(_chunk())
        self.connection.fail_send = True
        await session.handle_audio(_chunk())

        self.assertEqual(len(self.sink.of_type("error")), 2)
        await session.stop()
        self.assertEqual(len(self.repository.chunks), 6)


class TestTranscripts(RelaySessionTestCase):
    async def test_partial_is_relayed_not_persisted(self):
        session = self.make_session()
        await session.start(_start())
        self.connection.emit(TranscriptKind.PARTIAL, "the wit")
        await _wait_for(lambda: self.sink.of_type("PartialTranscript"))

        self.assertEqual(self.sink.of_type("PartialTranscript")[0].transcript, "the wit")
        self.assertEqual(self.repository.transcript, "")
        await session.stop()

    async def test_finals_are_relayed_and_appended(self):
        session = self.make_session()
        await session.start(_start())
        self.connection.emit(TranscriptKind.FINAL, "I was at home.")
        self.connection.emit(TranscriptKind.FINAL, "It was raining.")
        await _wait_for(lambda: len(self.sink.of_type("FinalTranscript")) == 2)
        await _wait_for(lambda: self.repository.transcript == "I was at home. It was raining.")

        self.assertEqual(session.transcript, "I was at home. It was raining.")
        await session.stop()

    async def test_transcript_append_failure_is_reported(self):
        self.repository.transcript_failures = 2
        session = self.make_session()
        await session.start(_start())
        self.connection.emit(TranscriptKind.FINAL, "Hello.")
        await _wait_for(lambda: self.sink.of_type("error"))

        self.assertIs(session.state, SessionState.ACTIVE)
        await session.stop()

    async def test_analysis_result_is_relayed(self):
        self.analyzer = MagicMock()
        self.analyzer.analyze.return_value = DepositionAnalysis(
            discrepancies=[], suggested_questions=["Where were you at 9pm?"]
        )
        session = self.make_session()
        await session.start(_start())
        self.connection.emit(TranscriptKind.FINAL, "I was at home.")
        await _wait_for(lambda: self.sink.of_type("analysis"))

        analysis = self.sink.of_type("analysis")[0].analysis
        self.assertEqual(analysis["suggested_questions"], ["Where were you at 9pm?"])
        _, transcript = self.analyzer.analyze.call_args.args
        self.assertEqual(transcript, "I was at home.")
        await session.stop()

    async def test_analysis_failure_is_swallowed(self):
        self.analyzer = MagicMock()
        self.analyzer.analyze.side_effect = RuntimeError("quota exceeded")
        session = self.make_session()
        await session.start(_start())
        self.connection.emit(TranscriptKind.FINAL, "Hello.")
        await _wait_for(lambda: self.analyzer.analyze.called)
        await session.stop()

        self.assertEqual(self.sink.of_type("error"), [])
        self.assertEqual(self.sink.of_type("analysis"), [])

    async def test_analysis_disabled(self):
        self.analyzer = MagicMock()
        self.relay_config = RelayConfig(close_timeout_seconds=1.0, analyze_on_final=False)
        session = self.make_session()
        await session.start(_start())
        self.connection.emit(TranscriptKind.FINAL, "Hello.")
        await _wait_for(lambda: self.sink.of_type("FinalTranscript"))
        await session.stop()

        self.analyzer.analyze.assert_not_called()


class TestStop(RelaySessionTestCase):
    async def test_stop_completes_session(self):
        session = self.make_session()
        await session.start(_start())
        deposition_id = session.deposition_id
        await session.stop()

        self.assertIs(session.state, SessionState.COMPLETED)
        self.assertTrue(self.connection.closed)
        self.assertEqual(self.repository.last_status, (RecordingStatus.COMPLETED, None))
        self.assertNotIn(deposition_id, self.registry)
        self.assertEqual(self.sink.types()[-1], "recording_completed")
        self.archiver.schedule.assert_called_once_with(deposition_id)

    async def test_finals_arriving_during_close_are_kept(self):
        self.connection.finals_on_close = ["Last words."]
        session = self.make_session()
        await session.start(_start())
        await session.stop()

        self.assertEqual(self.sink.of_type("FinalTranscript")[0].transcript, "Last words.")
        self.assertEqual(self.repository.transcript, "Last words.")
        self.assertEqual(self.sink.types()[-1], "recording_completed")
        self.assertEqual(self.sink.events[-1].transcript, "Last words.")

    async def test_stop_is_idempotent(self):
        session = self.make_session()
        await session.stop()
        self.assertIs(session.state, SessionState.IDLE)

        await session.start(_start())
        await session.stop()
        await session.stop()
        await session.transport_closed()

        self.assertEqual(len(self.sink.of_type("recording_completed")), 1)
        self.archiver.schedule.assert_called_once()

    async def test_transport_close_acts_as_stop(self):
        session = self.make_session()
        await session.start(_start())
        await session.handle_audio(_chunk())
        await session.transport_closed()

        self.assertIs(session.state, SessionState.COMPLETED)
        self.assertEqual(self.repository.chunks, [FRAME])
        self.assertEqual(self.repository.last_status, (RecordingStatus.COMPLETED, None))
        self.assertEqual(len(self.registry), 0)

    async def test_failure_while_closing_marks_error(self):
        self.connection.error_on_close = "connection reset"
        session = self.make_session()
        await session.start(_start())
        await session.stop()

        self.assertIs(session.state, SessionState.COMPLETED)
        self.assertEqual(self.repository.last_status[0], RecordingStatus.ERROR)
        self.assertIn("connection reset", self.repository.last_status[1])
        self.assertEqual(self.sink.types()[-1], "recording_completed")

    async def test_hanging_provider_close_is_bounded(self):
        self.transcription = FakeTranscriptionService(HangingConnection())
        self.relay_config = RelayConfig(close_timeout_seconds=0.3)
        session = self.make_session()
        await session.start(_start())
        await session.handle_audio(_chunk())
        await _wait_for(lambda: self.repository.chunks)

        loop = asyncio.get_running_loop()
        began = loop.time()
        await session.transport_closed()
        elapsed = loop.time() - began

        self.assertLess(elapsed, 1.0)
        self.assertIs(session.state, SessionState.COMPLETED)
        self.assertEqual(self.repository.last_status, (RecordingStatus.COMPLETED, None))
        self.assertEqual(len(self.registry), 0)
        self.assertEqual(self.sink.types()[-1], "recording_completed")


class TestProviderFailure(RelaySessionTestCase):
    async def test_error_while_active_fails_session(self):
        session = self.make_session()
        await session.start(_start())
        deposition_id = session.deposition_id
        self.connection.fail("upstream closed: 3005")
        await _wait_for(lambda: session.state is SessionState.ERRORED)
        await _wait_for(lambda: self.sink.of_type("recording_failed"))

        self.assertEqual(self.sink.of_type("error")[0].message, "upstream closed: 3005")
        failed = self.sink.of_type("recording_failed")
        self.assertEqual(len(failed), 1)
        self.assertEqual(failed[0].deposition_id, str(deposition_id))
        self.assertEqual(self.sink.types()[-2:], ["error", "recording_failed"])
        self.assertEqual(
            self.repository.last_status, (RecordingStatus.ERROR, "upstream closed: 3005")
        )
        self.assertNotIn(deposition_id, self.registry)
        self.assertTrue(self.connection.closed)
        self.archiver.schedule.assert_not_called()

        await session.stop()
        await session.handle_audio(_chunk())
        self.assertEqual(self.sink.of_type("recording_completed"), [])

    async def test_unexpected_end_of_stream_fails_session(self):
        session = self.make_session()
        await session.start(_start())
        self.connection.end()
        await _wait_for(lambda: session.state is SessionState.ERRORED)

        self.assertEqual(self.repository.last_status[0], RecordingStatus.ERROR)


if __name__ == "__main__":
    unittest.main()
