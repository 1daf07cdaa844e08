"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./notifications.db",
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )

    kafka_brokers: str = Field(
        default="localhost:9092",
        description="Comma separated list of event bus bootstrap servers",
        min_length=1,
    )
    kafka_client_id: str = Field(default="notification-service", min_length=1)
    kafka_group_id: str = Field(
        default="notification-service-group",
        description="Consumer group used to track committed offsets",
        min_length=1,
    )
    kafka_username: str | None = Field(
        default=None, description="SASL username; enables SASL_SSL when set"
    )
    kafka_password: str | None = Field(default=None, description="SASL password")
    kafka_sasl_mechanism: str = Field(default="PLAIN")
    kafka_ca_cert: str | None = Field(
        default=None, description="PEM encoded CA certificate content"
    )
    kafka_ca_cert_path: str | None = Field(
        default=None, description="Path to a PEM encoded CA certificate"
    )
    kafka_ssl_verify: bool = Field(
        default=True, description="Verify the broker certificate and hostname"
    )

    websocket_server_url: str = Field(
        default="http://localhost:3002",
        description="Realtime transport endpoint used to reach connected clients",
        min_length=1,
    )
    socket_reconnect_interval: float = Field(default=2.0, gt=0)
    delivery_max_attempts: int = Field(
        default=5, description="Emit retries while the transport is down", ge=0
    )
    delivery_retry_interval: float = Field(default=1.0, gt=0)

    audit_max_attempts: int = Field(
        default=5, description="Retries for the notification.created audit event", ge=0
    )
    producer_reconnect_interval: float = Field(default=5.0, gt=0)
    producer_health_interval: float = Field(default=10.0, gt=0)

    consumer_backoff_initial: float = Field(default=0.3, gt=0)
    consumer_backoff_max: float = Field(default=30.0, gt=0)
    partition_queue_size: int = Field(
        default=100, description="Buffered messages per partition before pausing", gt=0
    )

    poll_interval: float = Field(
        default=10.0, description="Client polling interval when realtime is down", gt=0
    )

    run_background_workers: bool = Field(
        default=True,
        description="Start the event consumer and delivery channel with the app",
    )
    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def validate_kafka_settings(self) -> "Settings":
        if bool(self.kafka_username) ^ bool(self.kafka_password):
            raise ValueError(
                "KAFKA_USERNAME and KAFKA_PASSWORD must both be provided to enable SASL"
            )
        if self.consumer_backoff_initial > self.consumer_backoff_max:
            raise ValueError(
                "CONSUMER_BACKOFF_INITIAL cannot exceed CONSUMER_BACKOFF_MAX"
            )
        return self

    @property
    def bootstrap_servers(self) -> list[str]:
        """Return the configured brokers as a list."""

        return [broker.strip() for broker in self.kafka_brokers.split(",") if broker.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
