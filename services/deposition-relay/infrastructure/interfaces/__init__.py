"""Infrastructure interface exports."""

from infrastructure.interfaces.cache_service import CacheService
from infrastructure.interfaces.event_sink import EventSink
from infrastructure.interfaces.llm_service import LLMService
from infrastructure.interfaces.transcription_service import (
    TranscriptionConnection,
    TranscriptionService,
)

__all__ = [
    "CacheService",
    "EventSink",
    "LLMService",
    "TranscriptionConnection",
    "TranscriptionService",
]
