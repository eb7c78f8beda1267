"""Repository for audio deposition persistence."""

from datetime import datetime
from uuid import UUID

from legal_common.db_models import (
    AudioChunk,
    AudioDeposition,
    Case,
    DepositionAnalysisRecord,
    RecordingStatus,
    utc_now,
)
from legal_common.logging import setup_logging
from sqlalchemy import func
from sqlmodel import Session, select

from domain.models import DepositionAnalysis, DepositionRecord, NewAudioDeposition
from domain.transcript_accumulator import merge_transcript
from exceptions import (
    AnalysisNotFoundError,
    AudioDepositionNotFoundError,
    CaseNotFoundError,
    DepositionPersistenceError,
)

logger = setup_logging()


class AudioDepositionRepository:
    """
    Handles database operations for audio depositions, their chunks and analysis.

    Every method opens its own session from the factory and is blocking;
    async callers run it in a worker thread.
    """

    def __init__(self, session_factory):
        """
        Initializes the repository.

        Args:
            session_factory: Callable that returns a SQLModel Session context manager.
        """
        self._session_factory = session_factory

    def create_audio_deposition(self, new: NewAudioDeposition) -> DepositionRecord:
        """
        Creates a deposition in `recording` status.

        Raises:
            CaseNotFoundError: If the case does not exist.
            DepositionPersistenceError: If the insert fails.
        """
        try:
            with self._session_factory() as db_session:
                if db_session.get(Case, new.case_id) is None:
                    raise CaseNotFoundError(new.case_id)
                entity = AudioDeposition(
                    case_id=new.case_id,
                    witness_name=new.witness_name,
                    deposition_conductor=new.deposition_conductor,
                    opposing_counsel=new.opposing_counsel,
                    deposition_goals=new.deposition_goals,
                    status=RecordingStatus.RECORDING,
                )
                db_session.add(entity)
                db_session.commit()
                db_session.refresh(entity)
                record = self._to_record(entity, chunk_count=0)
        except CaseNotFoundError:
            raise
        except Exception as e:
            logger.exception(
                "Failed to create audio deposition",
                extra={"case_id": str(new.case_id)},
            )
            raise DepositionPersistenceError("create", cause=e) from e

        logger.info(
            "Audio deposition created",
            extra={"deposition_id": str(record.id), "case_id": str(record.case_id)},
        )
        return record

    def append_audio_chunk(
        self, deposition_id: UUID, data: bytes, captured_at: datetime
    ) -> int:
        """
        Stores one PCM frame after the deposition's existing chunks.

        Returns:
            The 1-based sequence number assigned to the chunk.

        Raises:
            DepositionPersistenceError: If the insert fails.
        """
        try:
            with self._session_factory() as db_session:
                last = db_session.exec(
                    select(func.max(AudioChunk.sequence)).where(
                        AudioChunk.deposition_id == deposition_id
                    )
                ).one()
                sequence = (last or 0) + 1
                db_session.add(
                    AudioChunk(
                        deposition_id=deposition_id,
                        sequence=sequence,
                        data=data,
                        captured_at=captured_at,
                    )
                )
                db_session.commit()
                return sequence
        except Exception as e:
            logger.exception(
                "Failed to append audio chunk",
                extra={"deposition_id": str(deposition_id)},
            )
            raise DepositionPersistenceError("chunk append", cause=e) from e

    def append_transcript(self, deposition_id: UUID, segment: str) -> str:
        """
        Appends a final transcript segment inside one transaction.

        Returns:
            The stored transcript after the append.

        Raises:
            AudioDepositionNotFoundError: If the deposition does not exist.
            DepositionPersistenceError: If the update fails.
        """
        try:
            with self._session_factory() as db_session:
                entity = self._load(db_session, deposition_id)
                entity.transcript = merge_transcript(entity.transcript, segment)
                db_session.add(entity)
                db_session.commit()
                return entity.transcript
        except AudioDepositionNotFoundError:
            raise
        except Exception as e:
            logger.exception(
                "Failed to append transcript",
                extra={"deposition_id": str(deposition_id)},
            )
            raise DepositionPersistenceError("transcript append", cause=e) from e

    def update_audio_deposition(
        self,
        deposition_id: UUID,
        status: RecordingStatus | None = None,
        error_message: str | None = None,
        transcription_session_id: str | None = None,
    ) -> None:
        """
        Updates the given fields; fields left as None are not touched.

        Raises:
            AudioDepositionNotFoundError: If the deposition does not exist.
            DepositionPersistenceError: If the update fails.
        """
        try:
            with self._session_factory() as db_session:
                entity = self._load(db_session, deposition_id)
                if status is not None:
                    entity.status = status
                if error_message is not None:
                    entity.error_message = error_message
                if transcription_session_id is not None:
                    entity.transcription_session_id = transcription_session_id
                db_session.add(entity)
                db_session.commit()
        except AudioDepositionNotFoundError:
            raise
        except Exception as e:
            logger.exception(
                "Failed to update audio deposition",
                extra={"deposition_id": str(deposition_id)},
            )
            raise DepositionPersistenceError("update", cause=e) from e

        logger.info(
            "Audio deposition updated",
            extra={
                "deposition_id": str(deposition_id),
                "status": status.value if status else None,
            },
        )

    def get_audio_deposition(self, deposition_id: UUID) -> DepositionRecord:
        """
        Raises:
            AudioDepositionNotFoundError: If the deposition does not exist.
        """
        with self._session_factory() as db_session:
            entity = self._load(db_session, deposition_id)
            return self._to_record(entity, self._count_chunks(db_session, deposition_id))

    def list_audio_depositions(self, case_id: UUID) -> list[DepositionRecord]:
        """Returns the depositions of a case, newest first."""
        with self._session_factory() as db_session:
            statement = (
                select(AudioDeposition, func.count(AudioChunk.id))
                .outerjoin(AudioChunk, AudioChunk.deposition_id == AudioDeposition.id)
                .where(AudioDeposition.case_id == case_id)
                .group_by(AudioDeposition.id)
                .order_by(AudioDeposition.created_at.desc())
            )
            return [
                self._to_record(entity, chunk_count)
                for entity, chunk_count in db_session.exec(statement).all()
            ]

    def get_audio_chunks(self, deposition_id: UUID) -> list[bytes]:
        """
        Returns the raw frames of a deposition in sequence order.

        Raises:
            AudioDepositionNotFoundError: If the deposition does not exist.
        """
        with self._session_factory() as db_session:
            self._load(db_session, deposition_id)
            statement = (
                select(AudioChunk.data)
                .where(AudioChunk.deposition_id == deposition_id)
                .order_by(AudioChunk.sequence)
            )
            return list(db_session.exec(statement).all())

    def save_analysis(
        self, deposition_id: UUID, analysis: DepositionAnalysis
    ) -> None:
        """
        Stores the deposition's analysis, replacing any previous one.

        Raises:
            AudioDepositionNotFoundError: If the deposition does not exist.
            DepositionPersistenceError: If the write fails.
        """
        payload = analysis.model_dump(mode="json")
        try:
            with self._session_factory() as db_session:
                self._load(db_session, deposition_id)
                db_session.merge(
                    DepositionAnalysisRecord(
                        deposition_id=deposition_id,
                        discrepancies=payload["discrepancies"],
                        suggested_questions=payload["suggested_questions"],
                        created_at=utc_now(),
                    )
                )
                db_session.commit()
        except AudioDepositionNotFoundError:
            raise
        except Exception as e:
            logger.exception(
                "Failed to save analysis",
                extra={"deposition_id": str(deposition_id)},
            )
            raise DepositionPersistenceError("analysis save", cause=e) from e

        logger.info(
            "Deposition analysis saved",
            extra={
                "deposition_id": str(deposition_id),
                "discrepancies": len(analysis.discrepancies),
            },
        )

    def get_analysis(self, deposition_id: UUID) -> DepositionAnalysis:
        """
        Raises:
            AnalysisNotFoundError: If the deposition has no stored analysis.
        """
        with self._session_factory() as db_session:
            record = db_session.get(DepositionAnalysisRecord, deposition_id)
            if record is None:
                raise AnalysisNotFoundError(deposition_id)
            return DepositionAnalysis.model_validate(
                {
                    "discrepancies": record.discrepancies,
                    "suggested_questions": record.suggested_questions,
                }
            )

    def _load(self, db_session: Session, deposition_id: UUID) -> AudioDeposition:
        entity = db_session.get(AudioDeposition, deposition_id)
        if entity is None:
            raise AudioDepositionNotFoundError(deposition_id)
        return entity

    def _count_chunks(self, db_session: Session, deposition_id: UUID) -> int:
        return db_session.exec(
            select(func.count(AudioChunk.id)).where(
                AudioChunk.deposition_id == deposition_id
            )
        ).one()

    def _to_record(self, entity: AudioDeposition, chunk_count: int) -> DepositionRecord:
        return DepositionRecord(
            id=entity.id,
            case_id=entity.case_id,
            witness_name=entity.witness_name,
            deposition_conductor=entity.deposition_conductor,
            opposing_counsel=entity.opposing_counsel,
            deposition_goals=entity.deposition_goals,
            date=entity.date,
            transcript=entity.transcript,
            status=entity.status,
            error_message=entity.error_message,
            transcription_session_id=entity.transcription_session_id,
            chunk_count=chunk_count,
            created_at=entity.created_at,
        )
