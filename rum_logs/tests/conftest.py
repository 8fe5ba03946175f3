"""Pytest fixtures for rum_logs tests."""

import os
import tempfile
import threading
from pathlib import Path

import pytest

from rum_logs.agent import InMemoryAgent
from rum_logs.collector import LogCollector
from rum_logs.config import HecConfig, LogBufferConfiguration
from rum_logs.flags import FeatureFlagManager
from rum_logs.interceptor import StreamInterceptor


HEC_URL = "https://hec.example.com:8088/services/collector/event"
HEC_TOKEN = "test-token-123"


class FakeInterceptor(StreamInterceptor):
    """Byte source driven by the test instead of a real descriptor."""

    def __init__(self):
        self._on_chunk = None
        self._lock = threading.Lock()
        self.start_calls = 0
        self.stop_calls = 0

    @property
    def is_running(self) -> bool:
        return self._on_chunk is not None

    def start(self, on_chunk) -> None:
        self.start_calls += 1
        if self._on_chunk is None:
            self._on_chunk = on_chunk

    def stop(self) -> None:
        self.stop_calls += 1
        with self._lock:
            self._on_chunk = None

    def feed(self, data: bytes) -> None:
        with self._lock:
            if self._on_chunk is not None:
                self._on_chunk(data)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def agent():
    return InMemoryAgent()


@pytest.fixture
def interceptor():
    return FakeInterceptor()


@pytest.fixture
def buffer_config():
    """Buffered mode with a long interval so only explicit triggers flush."""
    return LogBufferConfiguration(enabled=True, max_buffer_size=50, flush_interval=3600)


@pytest.fixture
def hec_config():
    return HecConfig(url=HEC_URL, token=HEC_TOKEN, source="TestApp", timeout=2)


@pytest.fixture
def flags(agent):
    return FeatureFlagManager(agent=agent)


@pytest.fixture
def collector(agent, interceptor, buffer_config, hec_config, flags):
    """LogCollector wired to fakes; stopped after the test."""
    c = LogCollector(
        agent=agent,
        interceptor=interceptor,
        config=buffer_config,
        hec=hec_config,
        flags=flags,
    )
    yield c
    c.stop()


@pytest.fixture(autouse=True)
def reset_env():
    """Reset environment variables after each test."""
    original_env = os.environ.copy()
    for name in list(os.environ):
        if name.startswith("RUM_"):
            del os.environ[name]
    yield
    os.environ.clear()
    os.environ.update(original_env)
