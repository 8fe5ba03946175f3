"""
Local feature flags.

Flags are plain booleans kept in memory and optionally persisted to a JSON
file. Changes and evaluations are reported to the telemetry agent as custom
events. The "logs_to_hec" flag selects where captured logs go.
"""

import json
import logging
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional

from rum_logs.agent import NullAgent, TelemetryAgent

logger = logging.getLogger(__name__)

LOGS_TO_HEC = "logs_to_hec"

DEFAULT_FLAGS = [
    ("dark_mode", "Enable Dark Mode", False),
    ("new_checkout", "New Checkout Flow", False),
    ("premium_features", "Premium Features", True),
    ("beta_ui", "Beta UI Elements", False),
    ("analytics_v2", "Analytics V2", True),
    (LOGS_TO_HEC, "Send logs directly to HEC", False),
]

FLAG_SOURCE = "local"


@dataclass
class FeatureFlag:
    key: str
    description: str
    enabled: bool = False


class FeatureFlagManager:
    """
    Thread-safe set of named boolean flags.

    Usage:
        flags = FeatureFlagManager(agent=agent, path=Path("flags.json"))
        flags.set_flag("logs_to_hec", True)
        if flags.evaluate_flag("new_checkout"):
            ...
    """

    def __init__(self, agent: Optional[TelemetryAgent] = None, path: Optional[Path] = None):
        """
        Args:
            agent: Receives flag change/evaluation events
            path: JSON file to load from and save to (None keeps flags in memory)
        """
        self.agent = agent or NullAgent()
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._flags: Dict[str, FeatureFlag] = {}

        self._load()
        with self._lock:
            for key, description, default in DEFAULT_FLAGS:
                if key not in self._flags:
                    self._flags[key] = FeatureFlag(key, description, default)
            self._save()

    # -- queries --------------------------------------------------------------

    def is_enabled(self, key: str) -> bool:
        """Unknown flags are off."""
        with self._lock:
            flag = self._flags.get(key)
            return flag.enabled if flag else False

    def get(self, key: str) -> Optional[FeatureFlag]:
        with self._lock:
            flag = self._flags.get(key)
            return FeatureFlag(flag.key, flag.description, flag.enabled) if flag else None

    def all_flags(self) -> List[FeatureFlag]:
        """All flags sorted by key."""
        with self._lock:
            return [
                FeatureFlag(f.key, f.description, f.enabled)
                for _, f in sorted(self._flags.items())
            ]

    def evaluate_flag(self, key: str, track: bool = True) -> bool:
        """Read a flag and report the evaluation to the agent."""
        result = self.is_enabled(key)
        if track:
            self._track("Feature Flag Evaluated", {
                "feature_flag.key": key,
                "feature_flag.value": result,
                "feature_flag.source": FLAG_SOURCE,
            })
        return result

    # -- mutations ------------------------------------------------------------

    def set_flag(self, key: str, enabled: bool) -> bool:
        """
        Set an existing flag.

        Returns:
            False if the flag does not exist (nothing is changed)
        """
        with self._lock:
            flag = self._flags.get(key)
            if flag is None:
                return False
            flag.enabled = bool(enabled)
            self._save()
        self._track_change(key, bool(enabled))
        return True

    def toggle_flag(self, key: str) -> Optional[bool]:
        """
        Flip an existing flag.

        Returns:
            The new value, or None if the flag does not exist
        """
        with self._lock:
            flag = self._flags.get(key)
            if flag is None:
                return None
            new_value = not flag.enabled
            flag.enabled = new_value
            self._save()
        self._track_change(key, new_value)
        return new_value

    def add_flag(self, key: str, description: str, enabled: bool = False) -> None:
        with self._lock:
            self._flags[key] = FeatureFlag(key, description, bool(enabled))
            self._save()
        self._track_change(key, bool(enabled))

    def remove_flag(self, key: str) -> bool:
        with self._lock:
            removed = self._flags.pop(key, None) is not None
            if removed:
                self._save()
        return removed

    def send_summary(self) -> None:
        """Report every flag's state as one summary event."""
        flags = self.all_flags()
        summary = ", ".join(f"{f.key}={str(f.enabled).lower()}" for f in flags)
        self._track("Feature Flag Summary", {
            "feature_flags.count": len(flags),
            "feature_flags.summary": summary,
        })

    # -- persistence ----------------------------------------------------------

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            flags = {
                key: FeatureFlag(key, value["description"], bool(value["enabled"]))
                for key, value in raw.items()
            }
        except (OSError, json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable flag file {self.path}: {e}")
            return
        with self._lock:
            self._flags = flags

    def _save(self) -> None:
        # Caller holds self._lock
        if self.path is None:
            return
        data = {key: asdict(flag) for key, flag in self._flags.items()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
        except OSError as e:
            logger.error(f"Failed to save flags to {self.path}: {e}")

    # -- telemetry ------------------------------------------------------------

    def _track_change(self, key: str, enabled: bool) -> None:
        self._track("Feature Flag Changed", {
            "feature_flag.key": key,
            "feature_flag.enabled": enabled,
            "feature_flag.source": FLAG_SOURCE,
        })

    def _track(self, name: str, attributes: dict) -> None:
        try:
            self.agent.track_custom_event(name, attributes)
        except Exception as e:
            logger.error(f"Failed to track {name!r}: {e}")
