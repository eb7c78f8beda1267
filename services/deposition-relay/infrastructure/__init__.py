"""Infrastructure layer exports."""

from infrastructure.assemblyai_streaming import (
    AssemblyAIStreamingConnection,
    AssemblyAIStreamingService,
)
from infrastructure.gemini_llm import GeminiLLMService
from infrastructure.minio_storage import MinioStorageClient
from infrastructure.rabbitmq_publisher import RabbitMQPublisher
from infrastructure.redis_cache import RedisCacheService
from infrastructure.websocket_sink import WebSocketEventSink

__all__ = [
    "AssemblyAIStreamingConnection",
    "AssemblyAIStreamingService",
    "GeminiLLMService",
    "MinioStorageClient",
    "RabbitMQPublisher",
    "RedisCacheService",
    "WebSocketEventSink",
]
