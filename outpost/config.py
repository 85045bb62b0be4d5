"""Process configuration — env-driven, one section per destination.

Centralized config using pydantic-settings for environment variable
support.  Reads from a ``.env`` file and ``OUTPOST_*`` environment
variables; nested destination settings use ``__`` as the delimiter.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from outpost.models.destinations import (
    ElasticsearchConfig,
    MQTTConfig,
    WebhookConfig,
)


class OutpostSettings(BaseSettings):
    """Outpost settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export OUTPOST_LOG_LEVEL=DEBUG
        export OUTPOST_ELASTICSEARCH__HOST_PORT=http://es:9200
        export OUTPOST_ELASTICSEARCH__SUFFIX=monthly
        export OUTPOST_MQTT__BROKER=tcp://mosquitto:1883
        export OUTPOST_MQTT__QOS=1

    Or via .env file::

        OUTPOST_DEBUG=true
        OUTPOST_WEBHOOK__URL=https://hooks.example.com/outpost
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="OUTPOST_",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    # Logging
    log_level: str = "INFO"
    debug: bool = False  # forces DEBUG unless --log-level is given

    # Destinations
    elasticsearch: ElasticsearchConfig = ElasticsearchConfig()
    mqtt: MQTTConfig = MQTTConfig()
    webhook: WebhookConfig = WebhookConfig()

    # Dispatch
    dispatch_workers: int | None = Field(default=None, gt=0)

    # Observability
    metrics_queue_size: int = Field(default=1024, gt=0)
    enable_metrics: bool = False
    metrics_port: int = 9090

    @property
    def effective_log_level(self) -> str:
        """Root log level: ``DEBUG`` when ``debug`` is set, else ``log_level``."""
        return "DEBUG" if self.debug else self.log_level.upper()


# Module-level singleton — import as `from outpost.config import settings`
settings = OutpostSettings()
