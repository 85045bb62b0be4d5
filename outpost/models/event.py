"""Normalized security event — the single record every output receives.

Events are produced upstream (decoded and validated before they reach the
dispatcher).  Each event is a frozen Pydantic model; outputs read it and
serialize it, they never mutate it.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Priority(str, Enum):
    """Event priority, from most to least severe."""

    EMERGENCY = "emergency"
    ALERT = "alert"
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"
    INFORMATIONAL = "informational"
    DEBUG = "debug"

    @property
    def rank(self) -> int:
        """Numeric severity; higher is more severe."""
        return _PRIORITY_RANKS[self]

    @classmethod
    def parse(cls, value: str | Priority) -> Priority:
        """Parse a priority name case-insensitively (``info`` is accepted)."""
        if isinstance(value, Priority):
            return value
        normalized = value.strip().lower()
        if normalized == "info":
            normalized = "informational"
        return cls(normalized)

    def admits(self, other: Priority) -> bool:
        """Whether *other* is at least as severe as this threshold."""
        return other.rank >= self.rank


_PRIORITY_RANKS: dict[Priority, int] = {
    Priority.DEBUG: 0,
    Priority.INFORMATIONAL: 1,
    Priority.NOTICE: 2,
    Priority.WARNING: 3,
    Priority.ERROR: 4,
    Priority.CRITICAL: 5,
    Priority.ALERT: 6,
    Priority.EMERGENCY: 7,
}


def canonical_json(obj: Any) -> str:
    """Deterministic compact JSON: sorted keys, no whitespace separators."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class SecurityEvent(BaseModel):
    """A single security event as forwarded to every output."""

    model_config = ConfigDict(frozen=True)

    uuid: str = Field(default_factory=lambda: str(uuid.uuid4()))
    output: str
    priority: Priority
    rule: str
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    output_fields: dict[str, Any] = {}
    source: str = "syscalls"
    tags: list[str] = []
    hostname: str = ""

    @field_validator("priority", mode="before")
    @classmethod
    def _parse_priority(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Priority.parse(value)
        return value

    def to_json(self) -> str:
        """Serialized form used as the body of every delivery."""
        return canonical_json(self.model_dump(mode="json"))

    def __str__(self) -> str:
        return self.to_json()
