"""
Captured log entries.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


LOG_EVENT_NAME = "Log"
LOG_SOURCE = "stderr"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BufferedLogEntry:
    """
    One non-empty line captured from the error stream.

    Attributes:
        message: Text of the captured line
        is_error: Level classification; every line read from the error
            stream is error-level
        timestamp: Capture time (assigned when the entry is created, not
            when it is flushed)
    """
    message: str
    is_error: bool = True
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def level(self) -> str:
        return "error" if self.is_error else "info"

    @property
    def iso_timestamp(self) -> str:
        """ISO-8601 capture time in UTC with millisecond precision."""
        ts = self.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        ts = ts.astimezone(timezone.utc)
        return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def to_attributes(self) -> Dict[str, Any]:
        """Custom-event attributes for the telemetry agent."""
        return {
            "log.message": self.message,
            "log.level": self.level,
            "log.source": LOG_SOURCE,
            "log.timestamp": self.iso_timestamp,
        }
