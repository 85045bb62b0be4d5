"""Outpost: forwards security events to heterogeneous downstream outputs.

  - Elasticsearch output with time-suffixed indices
  - MQTT output with per-delivery broker sessions
  - Generic HTTP webhook output
  - Concurrent fan-out with per-output failure isolation
  - Thread-safe per-destination counters and Prometheus metrics
  - Env-driven configuration (OUTPOST_*)
"""

__version__ = "0.1.0"
__description__ = "Forwards security events to search indices, brokers and webhooks"

from outpost.core.stats import Statistics
from outpost.models.event import Priority, SecurityEvent
from outpost.outputs.dispatcher import OutputDispatcher

__all__ = ["OutputDispatcher", "Priority", "SecurityEvent", "Statistics", "__version__"]
