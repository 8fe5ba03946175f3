"""Tests for rum_logs.flags module."""

import json
import threading

import pytest

from rum_logs.agent import InMemoryAgent
from rum_logs.flags import DEFAULT_FLAGS, LOGS_TO_HEC, FeatureFlagManager


class TestDefaults:
    """Built-in flags."""

    def test_default_flags_present(self, flags):
        keys = {f.key for f in flags.all_flags()}
        assert keys == {key for key, _, _ in DEFAULT_FLAGS}

    def test_default_values(self, flags):
        assert flags.is_enabled("premium_features")
        assert flags.is_enabled("analytics_v2")
        assert not flags.is_enabled("dark_mode")
        assert not flags.is_enabled(LOGS_TO_HEC)

    def test_unknown_flag_is_off(self, flags):
        assert not flags.is_enabled("does_not_exist")
        assert flags.get("does_not_exist") is None

    def test_all_flags_sorted(self, flags):
        keys = [f.key for f in flags.all_flags()]
        assert keys == sorted(keys)


class TestMutations:
    """Changing flags."""

    def test_set_flag_tracks_change(self, flags, agent):
        assert flags.set_flag("dark_mode", True)

        assert flags.is_enabled("dark_mode")
        assert agent.events_named("Feature Flag Changed") == [{
            "feature_flag.key": "dark_mode",
            "feature_flag.enabled": True,
            "feature_flag.source": "local",
        }]

    def test_set_unknown_flag_ignored(self, flags, agent):
        assert flags.set_flag("nope", True) is False
        assert not flags.is_enabled("nope")
        assert agent.events == []

    def test_toggle(self, flags):
        assert flags.toggle_flag("beta_ui") is True
        assert flags.toggle_flag("beta_ui") is False
        assert flags.toggle_flag("nope") is None

    def test_add_and_remove(self, flags, agent):
        flags.add_flag("experiment", "An experiment", enabled=True)

        assert flags.is_enabled("experiment")
        assert agent.events_named("Feature Flag Changed")[-1]["feature_flag.key"] == "experiment"

        assert flags.remove_flag("experiment")
        assert not flags.remove_flag("experiment")
        assert flags.get("experiment") is None

    def test_get_returns_copy(self, flags):
        flag = flags.get("dark_mode")
        flag.enabled = True

        assert not flags.is_enabled("dark_mode")


class TestTracking:
    """Evaluation and summary events."""

    def test_evaluate_tracks(self, flags, agent):
        assert flags.evaluate_flag("premium_features") is True
        assert agent.events_named("Feature Flag Evaluated") == [{
            "feature_flag.key": "premium_features",
            "feature_flag.value": True,
            "feature_flag.source": "local",
        }]

    def test_evaluate_without_tracking(self, flags, agent):
        flags.evaluate_flag("premium_features", track=False)
        assert agent.events == []

    def test_summary(self, flags, agent):
        flags.send_summary()

        summary = agent.events_named("Feature Flag Summary")[0]
        assert summary["feature_flags.count"] == len(DEFAULT_FLAGS)
        assert summary["feature_flags.summary"].startswith("analytics_v2=true, beta_ui=false")

    def test_toggle_tracks_without_holding_lock(self):
        seen = []

        class ReadingAgent(InMemoryAgent):
            def track_custom_event(self, name, attributes):
                reader = threading.Thread(target=lambda: seen.append(flags.is_enabled(LOGS_TO_HEC)))
                reader.start()
                reader.join(timeout=2)
                super().track_custom_event(name, attributes)

        flags = FeatureFlagManager(agent=ReadingAgent())

        assert flags.toggle_flag(LOGS_TO_HEC) is True
        assert seen == [True]

    def test_agent_failure_does_not_break_flags(self):
        class BrokenAgent(InMemoryAgent):
            def track_custom_event(self, name, attributes):
                raise RuntimeError("agent offline")

        flags = FeatureFlagManager(agent=BrokenAgent())

        assert flags.set_flag("dark_mode", True)
        assert flags.is_enabled("dark_mode")


class TestPersistence:
    """JSON file storage."""

    def test_round_trip_through_file(self, temp_dir, agent):
        path = temp_dir / "flags.json"
        flags = FeatureFlagManager(agent=agent, path=path)
        flags.set_flag(LOGS_TO_HEC, True)
        flags.add_flag("custom", "Custom flag")

        reloaded = FeatureFlagManager(agent=agent, path=path)

        assert reloaded.is_enabled(LOGS_TO_HEC)
        assert reloaded.get("custom").description == "Custom flag"

    def test_missing_defaults_added_to_existing_file(self, temp_dir):
        path = temp_dir / "flags.json"
        path.write_text(json.dumps({
            "dark_mode": {"key": "dark_mode", "description": "Dark", "enabled": True},
        }))

        flags = FeatureFlagManager(path=path)

        assert flags.is_enabled("dark_mode")
        assert flags.get(LOGS_TO_HEC) is not None
        assert LOGS_TO_HEC in json.loads(path.read_text())

    @pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"x": {"enabled": true}}'])
    def test_corrupt_file_uses_defaults(self, temp_dir, content):
        path = temp_dir / "flags.json"
        path.write_text(content)

        flags = FeatureFlagManager(path=path)

        assert not flags.is_enabled("dark_mode")
        assert flags.is_enabled("premium_features")

    def test_creates_parent_directory(self, temp_dir):
        path = temp_dir / "nested" / "dir" / "flags.json"
        FeatureFlagManager(path=path)
        assert path.exists()
