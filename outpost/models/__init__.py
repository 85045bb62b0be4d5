"""Outpost data models — all Pydantic v2, all frozen (immutable)."""

from outpost.models.destinations import (
    DestinationConfig,
    ElasticsearchConfig,
    MQTTConfig,
    SuffixPolicy,
    WebhookConfig,
)
from outpost.models.event import Priority, SecurityEvent
from outpost.models.outcomes import DeliveryOutcome, DeliveryStatus

__all__ = [
    # event
    "Priority",
    "SecurityEvent",
    # destinations
    "DestinationConfig",
    "ElasticsearchConfig",
    "MQTTConfig",
    "SuffixPolicy",
    "WebhookConfig",
    # outcomes
    "DeliveryOutcome",
    "DeliveryStatus",
]
