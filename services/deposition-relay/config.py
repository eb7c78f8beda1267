"""Application configuration loaded from environment variables."""

import os
from pathlib import Path

from legal_common import MinioConfig, PostgresConfig, RabbitMQConfig
from legal_common.audio import FRAME_BYTES, SAMPLE_RATE
from pydantic import BaseModel


class RedisConfig(BaseModel, frozen=True):
    """Redis connection configuration."""

    host: str
    port: int = 6379
    cache_ttl_seconds: int = 86400  # 24 hours default
    connect_timeout_seconds: float = 2.0


class AssemblyAIConfig(BaseModel, frozen=True):
    """AssemblyAI streaming configuration."""

    api_key: str
    api_host: str = "streaming.assemblyai.com"
    sample_rate: int = SAMPLE_RATE
    silence_threshold_ms: int = 20000
    connect_timeout_seconds: float = 10.0


class GeminiConfig(BaseModel, frozen=True):
    """Gemini LLM configuration."""

    api_key: str
    model_name: str = "gemini-2.5-flash-lite"
    system_prompt_path: Path = Path("system.txt")


class RelayConfig(BaseModel, frozen=True):
    """Behaviour of a live recording session."""

    frame_bytes: int = FRAME_BYTES
    close_timeout_seconds: float = 5.0
    store_retry_attempts: int = 1
    analyze_on_final: bool = True


class AppConfig(BaseModel, frozen=True):
    """Root application configuration."""

    postgres: PostgresConfig
    minio: MinioConfig
    rabbitmq: RabbitMQConfig
    redis: RedisConfig
    assemblyai: AssemblyAIConfig
    gemini: GeminiConfig
    relay: RelayConfig


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def load_config() -> AppConfig:
    """Loads configuration from environment variables."""
    return AppConfig(
        postgres=PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "postgres"),
            port=int(os.getenv("POSTGRES_PORT", "5432")),
            user=os.getenv("POSTGRES_USER", ""),
            password=os.getenv("POSTGRES_PASSWORD", ""),
            database=os.getenv("POSTGRES_DB", "depositions"),
        ),
        minio=MinioConfig(
            endpoint=os.getenv("MINIO_ENDPOINT", "minio:9000"),
            user=os.getenv("MINIO_USER", ""),
            password=os.getenv("MINIO_PASSWORD", ""),
        ),
        rabbitmq=RabbitMQConfig(
            host=os.getenv("RABBITMQ_HOST", "rabbitmq"),
            user=os.getenv("RABBITMQ_USER", ""),
            password=os.getenv("RABBITMQ_PASSWORD", ""),
        ),
        redis=RedisConfig(
            host=os.getenv("REDIS_HOST", "redis"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            cache_ttl_seconds=int(os.getenv("REDIS_CACHE_TTL_SECONDS", "86400")),
        ),
        assemblyai=AssemblyAIConfig(
            api_key=os.getenv("ASSEMBLYAI_API_KEY", ""),
            silence_threshold_ms=int(
                os.getenv("ASSEMBLYAI_SILENCE_THRESHOLD_MS", "20000")
            ),
        ),
        gemini=GeminiConfig(
            api_key=os.getenv("GEMINI_API_KEY", ""),
        ),
        relay=RelayConfig(
            close_timeout_seconds=float(os.getenv("RELAY_CLOSE_TIMEOUT_SECONDS", "5")),
            analyze_on_final=_env_flag("RELAY_ANALYZE_ON_FINAL", "true"),
        ),
    )
