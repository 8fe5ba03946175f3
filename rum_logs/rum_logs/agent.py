"""
Telemetry agent collaborators.

The RUM agent itself is external; the collector only needs something it can
hand named custom events to. Components receive an agent explicitly instead
of reaching for a global handle, and tests use NullAgent or InMemoryAgent.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple, Union

logger = logging.getLogger(__name__)

AttributeValue = Union[str, int, float, bool]
Attributes = Dict[str, AttributeValue]


class TelemetryAgent(ABC):
    """
    Abstract base class for telemetry agents.

    Implementations own delivery of the event (batching, retry, export);
    callers treat track_custom_event() as fire-and-forget.
    """

    @abstractmethod
    def track_custom_event(self, name: str, attributes: Attributes) -> None:
        """
        Record a named custom event.

        Args:
            name: Event name (e.g. "Log")
            attributes: Flat mapping of str, int, float or bool values
        """
        pass


class NullAgent(TelemetryAgent):
    """Agent that discards every event."""

    def track_custom_event(self, name: str, attributes: Attributes) -> None:
        pass


class InMemoryAgent(TelemetryAgent):
    """Agent that keeps every event in memory, in arrival order."""

    def __init__(self):
        self._lock = threading.Lock()
        self._events: List[Tuple[str, Attributes]] = []

    def track_custom_event(self, name: str, attributes: Attributes) -> None:
        with self._lock:
            self._events.append((name, dict(attributes)))

    @property
    def events(self) -> List[Tuple[str, Attributes]]:
        with self._lock:
            return list(self._events)

    def events_named(self, name: str) -> List[Attributes]:
        return [attrs for event_name, attrs in self.events if event_name == name]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class LoggingAgent(TelemetryAgent):
    """Agent that writes events to the diagnostic logger."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def track_custom_event(self, name: str, attributes: Attributes) -> None:
        logger.log(self.level, f"custom event {name!r}: {attributes}")
