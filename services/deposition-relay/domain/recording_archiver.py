"""Archiving of completed recordings to object storage."""

import asyncio
import io
import re
import wave
from uuid import UUID

from legal_common import EventPublishError, StorageUploadError
from legal_common.audio import BYTES_PER_SAMPLE, SAMPLE_RATE
from legal_common.infrastructure import MessagePublisher, StorageClient
from legal_common.logging import setup_logging

from domain.models import DepositionRecord
from exceptions import DepositionPersistenceError

logger = setup_logging()

WAV_CONTENT_TYPE = "audio/wav"


def build_wav(chunks: list[bytes], sample_rate: int = SAMPLE_RATE) -> bytes:
    """Wraps 16-bit mono PCM frames, in order, into a WAV file."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(BYTES_PER_SAMPLE)
        wav.setframerate(sample_rate)
        for chunk in chunks:
            wav.writeframes(chunk)
    return buffer.getvalue()


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "witness"


def object_name_for(deposition: DepositionRecord) -> str:
    """
    Storage path of a deposition's audio.

    Format: {year}/{month}/{day}/{deposition_id}/audio/{witness-slug}.wav
    Example: 2025/01/15/abc123-uuid/audio/jane-doe.wav
    """
    day = deposition.date
    return (
        f"{day.year:04d}/{day.month:02d}/{day.day:02d}/{deposition.id}/audio/"
        f"{slugify(deposition.witness_name)}.wav"
    )


class RecordingArchiver:
    """Uploads a completed recording as WAV and announces it on the broker."""

    def __init__(
        self,
        repository,
        storage: StorageClient,
        publisher: MessagePublisher,
        bucket_name: str,
        routing_key: str,
    ):
        self._repository = repository
        self._storage = storage
        self._publisher = publisher
        self._bucket_name = bucket_name
        self._routing_key = routing_key
        self._tasks: set[asyncio.Task] = set()

    def archive(self, deposition_id: UUID) -> str:
        """
        Archives one deposition. Blocking.

        Returns:
            The object name the WAV was stored under.

        Raises:
            AudioDepositionNotFoundError: If the deposition does not exist.
            DepositionPersistenceError: If the chunks cannot be read.
            StorageUploadError: If the upload fails.
            EventPublishError: If the completion event cannot be published.
        """
        deposition = self._repository.get_audio_deposition(deposition_id)
        data = build_wav(self._repository.get_audio_chunks(deposition_id))
        object_name = object_name_for(deposition)

        self._storage.upload(
            bucket_name=self._bucket_name,
            object_name=object_name,
            data=io.BytesIO(data),
            size=len(data),
            content_type=WAV_CONTENT_TYPE,
        )
        self._publisher.publish(
            routing_key=self._routing_key,
            payload={
                "file_name": object_name,
                "bucket_name": self._bucket_name,
                "content_type": WAV_CONTENT_TYPE,
                "deposition_id": str(deposition.id),
                "case_id": str(deposition.case_id),
            },
        )
        logger.info(
            "Recording archived",
            extra={
                "deposition_id": str(deposition_id),
                "object_name": object_name,
                "size": len(data),
            },
        )
        return object_name

    def schedule(self, deposition_id: UUID) -> asyncio.Task:
        """Archives in the background; failures are only logged."""
        task = asyncio.create_task(self._archive_quietly(deposition_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _archive_quietly(self, deposition_id: UUID) -> None:
        try:
            await asyncio.to_thread(self.archive, deposition_id)
        except (DepositionPersistenceError, StorageUploadError, EventPublishError):
            logger.exception(
                "Recording archive failed",
                extra={"deposition_id": str(deposition_id)},
            )
        except Exception:
            logger.exception(
                "Unexpected error archiving recording",
                extra={"deposition_id": str(deposition_id)},
            )
