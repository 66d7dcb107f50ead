"""
Configuration management for the Communication Lifecycle service.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Communication Lifecycle")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_workers: int = Field(default=1)

    # Database
    database_url: str = Field(default="sqlite:///./communication_lifecycle.db")
    seed_catalog_on_startup: bool = Field(
        default=True,
        description="Insert the default communication types when they are missing.",
    )

    # RabbitMQ
    rabbitmq_host: str = Field(default="localhost")
    rabbitmq_port: int = Field(default=5672)
    rabbitmq_username: str = Field(default="guest")
    rabbitmq_password: str = Field(default="guest")
    rabbitmq_virtual_host: str = Field(default="/")
    rabbitmq_exchange: str = Field(default="communication-events")
    rabbitmq_queue: str = Field(default="communication-status-updates")
    rabbitmq_routing_key: str = Field(default="status.changed")

    # Event publishing
    event_publisher: Literal["rabbitmq", "memory"] = Field(
        default="rabbitmq",
        description="'memory' keeps events in-process (local development and tests).",
    )
    publish_max_attempts: int = Field(default=2, ge=1)
    broker_socket_timeout: float = Field(default=10.0, gt=0)
    broker_blocked_connection_timeout: float = Field(default=30.0, gt=0)

    # Event consuming
    consumer_prefetch_count: int = Field(default=10, ge=1)
    consumer_reconnect_delay: float = Field(default=5.0, gt=0)

    # Outbox dispatcher
    outbox_poll_interval: float = Field(default=5.0, gt=0)
    outbox_batch_size: int = Field(default=100, ge=1)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")


@lru_cache
def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
