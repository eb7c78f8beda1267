"""Shared configuration models for infrastructure components."""

from pydantic import BaseModel, computed_field


class MinioConfig(BaseModel, frozen=True):
    """MinIO connection configuration."""

    endpoint: str
    user: str
    password: str
    bucket_name: str = "depositions"
    secure: bool = False


class RabbitMQConfig(BaseModel, frozen=True):
    """RabbitMQ publisher configuration."""

    host: str
    user: str
    password: str
    exchange_name: str = "events"
    completed_routing_key: str = "audio.deposition.completed"
    connect_timeout_seconds: float = 2.0


class PostgresConfig(BaseModel, frozen=True):
    """PostgreSQL connection configuration."""

    host: str
    port: int
    user: str
    password: str
    database: str

    @computed_field
    @property
    def url(self) -> str:
        """Returns the full PostgreSQL connection URL."""
        return (
            f"postgresql+psycopg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )
