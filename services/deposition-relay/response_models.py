"""API response and request models."""

from datetime import datetime
from uuid import UUID

from legal_common import RecordingStatus
from pydantic import BaseModel, Field


class CreateCaseRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    user_id: str = Field(..., min_length=1, max_length=255)


class CaseResponse(BaseModel):
    id: UUID
    title: str
    description: str
    user_id: str
    created_at: datetime


class CreateDocumentRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)


class DocumentResponse(BaseModel):
    """A case document without its content."""

    id: UUID
    case_id: UUID
    name: str
    created_at: datetime


class AudioDepositionResponse(BaseModel):
    """An audio deposition without its raw audio."""

    id: UUID
    case_id: UUID
    witness_name: str
    deposition_conductor: str | None = None
    opposing_counsel: str | None = None
    deposition_goals: str | None = None
    date: datetime
    transcript: str
    status: RecordingStatus
    error_message: str | None = None
    transcription_session_id: str | None = None
    chunk_count: int
    created_at: datetime


class HealthResponse(BaseModel):
    status: str
    active_sessions: int
