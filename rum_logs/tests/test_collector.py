"""Tests for rum_logs.collector module."""

import io
import json
import logging

import pytest
import requests
import responses

from rum_logs.collector import LogCollector
from rum_logs.config import HecConfig, RumConfig
from rum_logs.diagnostics import PACKAGE_LOGGER
from rum_logs.errors import HecInvalidURL, HecTransportError
from rum_logs.flags import LOGS_TO_HEC

from conftest import HEC_URL, FakeInterceptor


def _messages(agent):
    return [attrs["log.message"] for attrs in agent.events_named("Log")]


class TestProcessChunk:
    """Turning captured bytes into entries."""

    def test_blank_lines_discarded(self, collector):
        created = collector.process_chunk(b"a\n\nb\n")

        assert created == 2
        assert collector.buffered_count == 2
        assert [e.message for e in collector.buffer._entries] == ["a", "b"]

    def test_all_entries_error_level(self, collector):
        collector.process_chunk(b"INFO: looks harmless\n")
        assert collector.buffer._entries[0].is_error is True

    def test_crlf_and_missing_trailing_newline(self, collector):
        assert collector.process_chunk(b"one\r\ntwo") == 2

    def test_invalid_utf8_dropped(self, collector, agent):
        assert collector.process_chunk(b"\xff\xfe bad bytes\n") == 0
        assert collector.buffered_count == 0
        assert collector.dropped_chunks == 1

    def test_utf8_text(self, collector):
        collector.process_chunk("température élevée\n".encode("utf-8"))
        assert collector.buffer._entries[0].message == "température élevée"

    def test_timestamps_assigned_at_capture(self, collector):
        collector.process_chunk(b"first\n")
        collector.process_chunk(b"second\n")

        first, second = collector.buffer._entries
        assert first.timestamp <= second.timestamp

    def test_append_line_ignores_empty(self, collector):
        collector.append_line("")
        collector.append_line("kept", is_error=False)

        assert collector.buffered_count == 1
        assert collector.buffer._entries[0].level == "info"


class TestEndToEnd:
    """Scenarios through the fake interceptor."""

    def test_threshold_scenario(self, collector, interceptor, agent):
        collector.start()

        for i in range(49):
            interceptor.feed(f"line {i}\n".encode())

        assert collector.buffered_count == 49
        assert _messages(agent) == []

        interceptor.feed(b"line 49\n")

        assert collector.buffered_count == 0
        assert _messages(agent) == [f"line {i}" for i in range(50)]

    def test_stop_drains(self, collector, interceptor, agent):
        collector.start()
        interceptor.feed(b"pending 1\npending 2\n")

        collector.stop()

        assert collector.buffered_count == 0
        assert _messages(agent) == ["pending 1", "pending 2"]

    def test_no_capture_after_stop(self, collector, interceptor):
        collector.start()
        collector.stop()

        interceptor.feed(b"too late\n")

        assert collector.buffered_count == 0

    def test_manual_flush(self, collector, interceptor, agent):
        collector.start()
        interceptor.feed(b"x\ny\n")

        assert collector.flush() == 2
        assert _messages(agent) == ["x", "y"]

    def test_immediate_mode(self, collector, interceptor, agent, buffer_config):
        buffer_config.enabled = False
        collector.start()

        interceptor.feed(b"now\n")

        assert _messages(agent) == ["now"]
        assert collector.buffered_count == 0

    def test_disable_buffering_mid_run(self, collector, interceptor, agent, buffer_config):
        collector.start()
        interceptor.feed(b"held\n")

        buffer_config.enabled = False
        interceptor.feed(b"direct\n")

        assert _messages(agent) == ["direct"]
        assert collector.buffered_count == 1

        collector.flush()
        assert _messages(agent) == ["direct", "held"]

    @responses.activate
    def test_hec_destination(self, collector, interceptor, agent, flags):
        responses.add(responses.POST, HEC_URL, status=200)
        flags.set_flag(LOGS_TO_HEC, True)
        collector.start()

        interceptor.feed(b"to hec\n")
        collector.stop()

        assert [json.loads(c.request.body)["event"] for c in responses.calls] == ["to hec"]
        assert _messages(agent) == []

    @responses.activate
    def test_hec_unconfigured_uses_agent(self, agent, interceptor, buffer_config, flags):
        collector = LogCollector(
            agent=agent,
            interceptor=interceptor,
            config=buffer_config,
            hec=HecConfig(url="", token=""),
            flags=flags,
        )
        flags.set_flag(LOGS_TO_HEC, True)
        collector.start()

        interceptor.feed(b"fallback\n")
        collector.stop()

        assert len(responses.calls) == 0
        assert _messages(agent) == ["fallback"]
        assert collector.destination == "agent"


class TestLifecycle:
    """start()/stop() behavior."""

    def test_start_idempotent(self, collector, interceptor):
        collector.start()
        collector.start()

        assert interceptor.start_calls == 1
        assert collector.is_running

    def test_stop_idempotent(self, collector, interceptor):
        collector.start()
        collector.stop()
        collector.stop()

        assert interceptor.stop_calls == 1
        assert not collector.is_running

    def test_stop_before_start_drains(self, collector, agent):
        collector.append_line("queued")
        collector.stop()

        assert collector.buffered_count == 0
        assert _messages(agent) == ["queued"]

    def test_restart(self, collector, interceptor, agent):
        collector.start()
        collector.stop()
        collector.start()
        interceptor.feed(b"second run\n")
        collector.stop()

        assert _messages(agent) == ["second run"]

    def test_context_manager(self, agent, interceptor, buffer_config, hec_config, flags):
        with LogCollector(agent=agent, interceptor=interceptor, config=buffer_config,
                          hec=hec_config, flags=flags) as c:
            assert c.is_running
            interceptor.feed(b"inside\n")

        assert not c.is_running
        assert _messages(agent) == ["inside"]

    def test_timer_started_and_stopped(self, collector):
        collector.start()
        assert collector.timer.is_running

        collector.stop()
        assert not collector.timer.is_running

    def test_stop_drain_logs_reach_console(self, agent, buffer_config, hec_config, caplog):
        console = io.StringIO()

        class DrainingInterceptor(FakeInterceptor):
            @property
            def console(self):
                return console

            def stop(self):
                logging.getLogger("rum_logs.interceptor").warning("drained at stop")
                super().stop()

        package_logger = logging.getLogger(PACKAGE_LOGGER)
        propagate = package_logger.propagate
        collector = LogCollector(agent=agent, interceptor=DrainingInterceptor(),
                                 config=buffer_config, hec=hec_config)

        with caplog.at_level(logging.WARNING):
            collector.start()
            collector.stop()

        assert "drained at stop" in console.getvalue()
        assert "drained at stop" not in caplog.text
        assert package_logger.propagate == propagate

    def test_independent_instances(self, agent, buffer_config, hec_config):
        a = LogCollector(agent=agent, interceptor=FakeInterceptor(), config=buffer_config, hec=hec_config)
        b = LogCollector(agent=agent, interceptor=FakeInterceptor(), config=buffer_config, hec=hec_config)

        a.append_line("only in a")

        assert a.buffered_count == 1
        assert b.buffered_count == 0
        a.stop()
        b.stop()


class TestSendTestLog:
    """Connectivity check through the collector."""

    def test_malformed_url_fails_via_callback(self, agent, interceptor, flags):
        collector = LogCollector(agent=agent, interceptor=interceptor,
                                 hec=HecConfig(url="htp:/broken", token="t"), flags=flags)
        flags.set_flag(LOGS_TO_HEC, True)
        results = []

        collector.send_test_log(callback=results.append)

        assert len(results) == 1
        assert not results[0].ok
        assert isinstance(results[0].error, HecInvalidURL)

    @responses.activate
    def test_unreachable_url_fails_via_callback(self, collector, flags):
        responses.add(
            responses.POST, HEC_URL,
            body=requests.exceptions.ConnectionError("Name or service not known"),
        )
        flags.set_flag(LOGS_TO_HEC, True)
        results = []

        collector.send_test_log(callback=results.append)

        assert isinstance(results[0].error, HecTransportError)

    @responses.activate
    def test_bypasses_buffer(self, collector):
        responses.add(responses.POST, HEC_URL, status=200)
        collector.append_line("buffered")

        assert collector.send_test_log(message="direct").ok
        assert collector.buffered_count == 1


class TestFromConfig:
    """Building a collector from rum.yaml settings."""

    def test_from_config(self, agent, interceptor, temp_dir):
        config = RumConfig({
            "app_name": "Configured",
            "hec": {"url": HEC_URL, "token": "tok"},
            "buffer": {"max_buffer_size": 5, "flush_interval": 9},
            "flags": {"path": str(temp_dir / "flags.json")},
        })

        collector = LogCollector.from_config(config, agent=agent, interceptor=interceptor)

        assert collector.config.max_buffer_size == 5
        assert collector.hec.config.source == "Configured"
        assert collector.flags.path == temp_dir / "flags.json"
        assert (temp_dir / "flags.json").exists()
        collector.stop()

    def test_status(self, collector):
        collector.append_line("x")

        status = collector.status()

        assert status["buffered_count"] == 1
        assert status["destination"] == "agent"
        assert status["hec_configured"] is True
        assert status["running"] is False
        assert status["max_buffer_size"] == 50
