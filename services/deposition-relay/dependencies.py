"""Dependency injection configuration for the deposition-relay service."""

from collections.abc import Callable
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path

import pika
import redis
from google import genai
from legal_common.logging import setup_logging
from minio import Minio
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from config import AppConfig, load_config
from domain.deposition_analyzer import DepositionAnalyzer
from domain.models import StreamingConfig
from domain.recording_archiver import RecordingArchiver
from domain.relay_session import RelaySession
from domain.session_registry import SessionRegistry
from infrastructure import (
    AssemblyAIStreamingService,
    GeminiLLMService,
    MinioStorageClient,
    RabbitMQPublisher,
    RedisCacheService,
)
from infrastructure.interfaces import EventSink, TranscriptionService
from repositories import AudioDepositionRepository, CaseRepository

logger = setup_logging()

# Singletons are built on first use so that importing the routes does not
# connect to any backend. A failed build is not cached and is retried on the
# next call.


@lru_cache
def get_config() -> AppConfig:
    return load_config()


@lru_cache
def get_engine() -> Engine:
    config = get_config()
    engine = create_engine(config.postgres.url)
    SQLModel.metadata.create_all(engine)
    logger.info("Database initialized", extra={"host": config.postgres.host})
    return engine


@contextmanager
def _session_factory():
    """Creates a database session context manager."""
    with Session(get_engine()) as session:
        yield session


@lru_cache
def get_audio_deposition_repository() -> AudioDepositionRepository:
    return AudioDepositionRepository(_session_factory)


@lru_cache
def get_case_repository() -> CaseRepository:
    return CaseRepository(_session_factory)


@lru_cache
def get_registry() -> SessionRegistry:
    """Returns the process-wide registry of live sessions."""
    return SessionRegistry()


@lru_cache
def get_transcription_service() -> TranscriptionService:
    config = get_config().assemblyai
    return AssemblyAIStreamingService(
        api_key=config.api_key,
        api_host=config.api_host,
        connect_timeout_seconds=config.connect_timeout_seconds,
    )


@lru_cache
def get_analyzer() -> DepositionAnalyzer:
    config = get_config()

    redis_client = redis.Redis(
        host=config.redis.host,
        port=config.redis.port,
        decode_responses=True,
        socket_connect_timeout=config.redis.connect_timeout_seconds,
    )
    if not redis_client.ping():
        logger.error("Redis connection failed", extra={"host": config.redis.host})
        raise ConnectionError("Redis connection failed")
    cache = RedisCacheService(redis_client, config.redis.cache_ttl_seconds)

    gemini_client = genai.Client(api_key=config.gemini.api_key)
    system_prompt_path = Path(__file__).parent / config.gemini.system_prompt_path
    system_prompt = system_prompt_path.read_text(encoding="utf-8")
    llm = GeminiLLMService(gemini_client, config.gemini.model_name, system_prompt)

    return DepositionAnalyzer(
        llm, cache, get_audio_deposition_repository(), get_case_repository()
    )


@lru_cache
def get_archiver() -> RecordingArchiver:
    config = get_config()

    minio_client = Minio(
        endpoint=config.minio.endpoint,
        access_key=config.minio.user,
        secret_key=config.minio.password,
        secure=config.minio.secure,
    )
    storage = MinioStorageClient(minio_client)
    storage.ensure_bucket_exists(config.minio.bucket_name)

    credentials = pika.PlainCredentials(config.rabbitmq.user, config.rabbitmq.password)
    parameters = pika.ConnectionParameters(
        host=config.rabbitmq.host,
        credentials=credentials,
        heartbeat=0,
        socket_timeout=config.rabbitmq.connect_timeout_seconds,
    )
    rabbit_connection = pika.BlockingConnection(parameters)
    rabbit_channel = rabbit_connection.channel()
    rabbit_channel.exchange_declare(
        exchange=config.rabbitmq.exchange_name,
        exchange_type="topic",
        durable=True,
    )
    publisher = RabbitMQPublisher(rabbit_channel, config.rabbitmq.exchange_name)

    return RecordingArchiver(
        repository=get_audio_deposition_repository(),
        storage=storage,
        publisher=publisher,
        bucket_name=config.minio.bucket_name,
        routing_key=config.rabbitmq.completed_routing_key,
    )


def get_optional_analyzer() -> DepositionAnalyzer | None:
    """Returns the analyzer, or None while Redis or Gemini cannot be set up."""
    try:
        return get_analyzer()
    except Exception:
        logger.exception("Deposition analyzer unavailable")
        return None


def get_optional_archiver() -> RecordingArchiver | None:
    """Returns the archiver, or None while MinIO or RabbitMQ cannot be reached."""
    try:
        return get_archiver()
    except Exception:
        logger.exception("Recording archiver unavailable")
        return None


def get_session_builder() -> Callable[[EventSink], RelaySession]:
    """Returns a factory of relay sessions bound to the shared collaborators."""
    config = get_config()
    streaming_config = StreamingConfig(
        sample_rate=config.assemblyai.sample_rate,
        silence_threshold_ms=config.assemblyai.silence_threshold_ms,
    )
    repository = get_audio_deposition_repository()
    transcription = get_transcription_service()
    registry = get_registry()
    analyzer = get_optional_analyzer() if config.relay.analyze_on_final else None
    archiver = get_optional_archiver()

    def build(sink: EventSink) -> RelaySession:
        return RelaySession(
            sink=sink,
            repository=repository,
            transcription_service=transcription,
            registry=registry,
            relay_config=config.relay,
            streaming_config=streaming_config,
            analyzer=analyzer,
            archiver=archiver,
        )

    return build
