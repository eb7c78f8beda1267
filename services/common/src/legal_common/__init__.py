from legal_common.config import MinioConfig, PostgresConfig, RabbitMQConfig
from legal_common.db_models import (
    AudioChunk,
    AudioDeposition,
    Case,
    DepositionAnalysisRecord,
    Document,
    RecordingStatus,
)
from legal_common.exceptions import EventPublishError, StorageUploadError
from legal_common.logging import setup_logging

__all__ = [
    "setup_logging",
    "StorageUploadError",
    "EventPublishError",
    "MinioConfig",
    "PostgresConfig",
    "RabbitMQConfig",
    "AudioChunk",
    "AudioDeposition",
    "Case",
    "DepositionAnalysisRecord",
    "Document",
    "RecordingStatus",
]
