"""Domain layer exports."""

from domain.deposition_analyzer import DepositionAnalyzer
from domain.models import (
    ClientMessage,
    DepositionAnalysis,
    DepositionRecord,
    ServerEvent,
    SessionState,
    TranscriptEvent,
    TranscriptKind,
    parse_client_message,
)
from domain.recording_archiver import RecordingArchiver, build_wav
from domain.relay_session import RelaySession
from domain.session_registry import SessionRegistry
from domain.transcript_accumulator import (
    AnalysisTrigger,
    TranscriptAccumulator,
    merge_transcript,
)

__all__ = [
    "AnalysisTrigger",
    "ClientMessage",
    "DepositionAnalysis",
    "DepositionAnalyzer",
    "DepositionRecord",
    "RecordingArchiver",
    "RelaySession",
    "ServerEvent",
    "SessionRegistry",
    "SessionState",
    "TranscriptAccumulator",
    "TranscriptEvent",
    "TranscriptKind",
    "build_wav",
    "merge_transcript",
    "parse_client_message",
]
