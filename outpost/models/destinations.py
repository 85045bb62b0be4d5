"""Per-destination configuration models.

One frozen model per output type.  Instances are built once at process
start (see ``outpost.config``) and shared read-only by the adapters.

An output is *enabled* only when its ``enabled`` flag is set and its
address (host, broker URI, webhook URL) is non-empty, so an unconfigured
destination never produces an adapter.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from outpost.models.event import Priority


class SuffixPolicy(str, Enum):
    """How the index name is suffixed with the current date."""

    NONE = "none"
    MONTHLY = "monthly"
    ANNUALLY = "annually"
    DAILY = "daily"

    @classmethod
    def parse(cls, value: str | SuffixPolicy) -> SuffixPolicy:
        """Map a raw policy string; unrecognized values fall back to daily."""
        if isinstance(value, SuffixPolicy):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.DAILY


class DestinationConfig(BaseModel):
    """Fields shared by every destination."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    minimum_priority: Priority = Priority.DEBUG
    timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("minimum_priority", mode="before")
    @classmethod
    def _parse_priority(cls, value: object) -> object:
        if isinstance(value, str):
            if not value.strip():
                return Priority.DEBUG
            return Priority.parse(value)
        return value

    @property
    def address(self) -> str:
        """The destination address; empty means not configured."""
        return ""

    @property
    def is_enabled(self) -> bool:
        return self.enabled and bool(self.address)


class ElasticsearchConfig(DestinationConfig):
    """Elasticsearch index output.

    Documents are posted to ``{host_port}/{index}[-{suffix}]/{type}``.
    """

    host_port: str = ""
    index: str = "outpost"
    type: str = "_doc"
    suffix: SuffixPolicy = SuffixPolicy.DAILY
    username: str = ""
    password: str = ""
    custom_headers: dict[str, str] = {}
    check_cert: bool = True

    @field_validator("suffix", mode="before")
    @classmethod
    def _parse_suffix(cls, value: object) -> object:
        if isinstance(value, str):
            return SuffixPolicy.parse(value)
        return value

    @property
    def address(self) -> str:
        return self.host_port


class MQTTConfig(DestinationConfig):
    """MQTT broker output."""

    broker: str = ""  # e.g. "tcp://broker:1883", "ssl://broker:8883"
    topic: str = "outpost/events"
    qos: int = Field(default=0, ge=0, le=2)
    retained: bool = False
    user: str = ""
    password: str = ""
    check_cert: bool = True
    keepalive_seconds: int = Field(default=60, gt=0)

    @property
    def address(self) -> str:
        return self.broker


class WebhookConfig(DestinationConfig):
    """Generic HTTP webhook output."""

    url: str = ""
    method: str = "POST"
    custom_headers: dict[str, str] = {}
    check_cert: bool = True

    @field_validator("method")
    @classmethod
    def _check_method(cls, value: str) -> str:
        method = value.upper()
        if method not in ("POST", "PUT"):
            raise ValueError(f"webhook method must be POST or PUT, got {value!r}")
        return method

    @property
    def address(self) -> str:
        return self.url
