"""Domain models for the live deposition relay."""

import base64
import binascii
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal
from uuid import UUID

from legal_common import RecordingStatus
from pydantic import BaseModel, Field, TypeAdapter

from exceptions import InvalidAudioFrameError


class StartRecording(BaseModel, frozen=True, populate_by_name=True):
    """Client request to open a recording session."""

    type: Literal["start_recording"]
    case_id: UUID = Field(alias="caseId")
    witness_name: str = Field(alias="witnessName", min_length=1)
    deposition_conductor: str | None = Field(default=None, alias="depositionConductor")
    opposing_counsel: str | None = Field(default=None, alias="opposingCounsel")
    deposition_goals: str | None = Field(default=None, alias="depositionGoals")


class AudioChunkMessage(BaseModel, frozen=True):
    """One base64-encoded PCM frame from the client."""

    type: Literal["audio_chunk"]
    chunk: str

    def decode(self, expected_bytes: int) -> bytes:
        """
        Decodes the frame and checks its size.

        Raises:
            InvalidAudioFrameError: If the payload is not base64 or has the wrong size.
        """
        try:
            frame = base64.b64decode(self.chunk, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidAudioFrameError("chunk is not valid base64") from e
        if len(frame) != expected_bytes:
            raise InvalidAudioFrameError(
                f"expected {expected_bytes} bytes, got {len(frame)}"
            )
        return frame


class StopRecording(BaseModel, frozen=True):
    """Client request to end the recording session."""

    type: Literal["stop_recording"]


ClientMessage = Annotated[
    StartRecording | AudioChunkMessage | StopRecording,
    Field(discriminator="type"),
]

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(raw: str | bytes) -> ClientMessage:
    """
    Parses one transport frame into a client message.

    Raises:
        pydantic.ValidationError: On invalid JSON, unknown type or missing fields.
    """
    return _client_message_adapter.validate_json(raw)


class PartialTranscriptEvent(BaseModel, frozen=True):
    type: Literal["PartialTranscript"] = "PartialTranscript"
    transcript: str


class FinalTranscriptEvent(BaseModel, frozen=True):
    type: Literal["FinalTranscript"] = "FinalTranscript"
    transcript: str


class AnalysisEvent(BaseModel, frozen=True):
    type: Literal["analysis"] = "analysis"
    analysis: dict[str, Any]


class ErrorEvent(BaseModel, frozen=True):
    type: Literal["error"] = "error"
    message: str


class RecordingStartedEvent(BaseModel, frozen=True):
    type: Literal["recording_started"] = "recording_started"
    deposition_id: str = Field(serialization_alias="depositionId")


class RecordingCompletedEvent(BaseModel, frozen=True):
    type: Literal["recording_completed"] = "recording_completed"
    deposition_id: str = Field(serialization_alias="depositionId")
    transcript: str


class RecordingFailedEvent(BaseModel, frozen=True):
    """Terminal event of a recording that ended on an unrecoverable error."""

    type: Literal["recording_failed"] = "recording_failed"
    deposition_id: str = Field(serialization_alias="depositionId")
    message: str


ServerEvent = (
    PartialTranscriptEvent
    | FinalTranscriptEvent
    | AnalysisEvent
    | ErrorEvent
    | RecordingStartedEvent
    | RecordingCompletedEvent
    | RecordingFailedEvent
)


class TranscriptKind(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"


class TranscriptEvent(BaseModel, frozen=True):
    """A unit of output from the streaming transcription service."""

    kind: TranscriptKind
    text: str


class StreamingConfig(BaseModel, frozen=True):
    """Parameters for opening a streaming transcription connection."""

    sample_rate: int
    silence_threshold_ms: int


class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    CLOSING = "closing"
    COMPLETED = "completed"
    ERRORED = "errored"


class NewAudioDeposition(BaseModel, frozen=True):
    """Fields required to open a durable audio deposition."""

    case_id: UUID
    witness_name: str
    deposition_conductor: str | None = None
    opposing_counsel: str | None = None
    deposition_goals: str | None = None

    @classmethod
    def from_start(cls, message: StartRecording) -> "NewAudioDeposition":
        return cls(
            case_id=message.case_id,
            witness_name=message.witness_name,
            deposition_conductor=message.deposition_conductor,
            opposing_counsel=message.opposing_counsel,
            deposition_goals=message.deposition_goals,
        )


class DepositionRecord(BaseModel, frozen=True):
    """Read model of an audio deposition, without the raw audio."""

    id: UUID
    case_id: UUID
    witness_name: str
    deposition_conductor: str | None = None
    opposing_counsel: str | None = None
    deposition_goals: str | None = None
    date: datetime
    transcript: str = ""
    status: RecordingStatus
    error_message: str | None = None
    transcription_session_id: str | None = None
    chunk_count: int = 0
    created_at: datetime


class CaseRecord(BaseModel, frozen=True):
    id: UUID
    title: str
    description: str
    user_id: str
    created_at: datetime


class DocumentRecord(BaseModel, frozen=True):
    id: UUID
    case_id: UUID
    name: str
    content: str
    created_at: datetime


class DocumentReference(BaseModel):
    document_id: str
    excerpt: str


class Discrepancy(BaseModel):
    """A point where the testimony conflicts with the record or itself."""

    testimony_excerpt: str
    document_reference: DocumentReference | None
    explanation: str


class DepositionAnalysis(BaseModel):
    """Best-effort LLM analysis of a deposition transcript."""

    discrepancies: list[Discrepancy]
    suggested_questions: list[str]
