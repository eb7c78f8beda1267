from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import Column
from sqlalchemy.types import JSON, LargeBinary, Text
from sqlmodel import Field, Relationship, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordingStatus(str, Enum):
    RECORDING = "recording"
    COMPLETED = "completed"
    ERROR = "error"


class Case(SQLModel, table=True):
    __tablename__ = "cases"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str = Field(max_length=255)
    description: str = Field(default="", sa_column=Column(Text, nullable=False))
    user_id: str = Field(max_length=255, index=True)
    created_at: datetime = Field(default_factory=utc_now)

    audio_depositions: List["AudioDeposition"] = Relationship(back_populates="case")
    documents: List["Document"] = Relationship(back_populates="case")


class Document(SQLModel, table=True):
    """A discovery document of a case, stored as plain text."""

    __tablename__ = "documents"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    case_id: UUID = Field(foreign_key="cases.id", index=True)
    name: str = Field(max_length=255)
    content: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=utc_now)

    case: Case = Relationship(back_populates="documents")


class AudioDeposition(SQLModel, table=True):
    __tablename__ = "audio_depositions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    case_id: UUID = Field(foreign_key="cases.id", index=True)
    witness_name: str = Field(max_length=255)
    deposition_conductor: Optional[str] = Field(default=None, max_length=255)
    opposing_counsel: Optional[str] = Field(default=None, max_length=255)
    deposition_goals: Optional[str] = Field(default=None, sa_column=Column(Text))
    date: datetime = Field(default_factory=utc_now)
    transcript: str = Field(default="", sa_column=Column(Text, nullable=False))
    transcription_session_id: Optional[str] = Field(default=None, max_length=255)
    status: RecordingStatus = Field(default=RecordingStatus.RECORDING)
    error_message: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=utc_now)

    case: Case = Relationship(back_populates="audio_depositions")
    chunks: List["AudioChunk"] = Relationship(back_populates="deposition")
    analysis: Optional["DepositionAnalysisRecord"] = Relationship(
        back_populates="deposition"
    )


class AudioChunk(SQLModel, table=True):
    __tablename__ = "audio_chunks"

    id: Optional[int] = Field(default=None, primary_key=True)
    deposition_id: UUID = Field(foreign_key="audio_depositions.id", index=True)
    sequence: int
    data: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    captured_at: datetime

    deposition: AudioDeposition = Relationship(back_populates="chunks")


class DepositionAnalysisRecord(SQLModel, table=True):
    __tablename__ = "deposition_analyses"

    deposition_id: UUID = Field(foreign_key="audio_depositions.id", primary_key=True)
    discrepancies: List[dict[str, Any]] = Field(
        sa_column=Column(JSON, nullable=False)
    )
    suggested_questions: List[str] = Field(sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utc_now)

    deposition: AudioDeposition = Relationship(back_populates="analysis")
