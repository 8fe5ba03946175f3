"""
LogCollector - capture stderr and forward it as telemetry.

Architecture:
    fd 2 → StreamInterceptor → process_chunk() → LogBuffer → SinkForwarder
                                                     ↑             ├→ agent "Log" events
                                                FlushTimer         └→ HEC POSTs

The collector is the composition root for these pieces. It is an ordinary
object: build one per process (or per test) and pass it to whatever needs it.
"""

import logging
import threading
from typing import Callable, Optional

from rum_logs.agent import NullAgent, TelemetryAgent
from rum_logs.buffer import FlushTimer, LogBuffer
from rum_logs.config import HecConfig, LogBufferConfiguration, RumConfig
from rum_logs.diagnostics import ConsoleRoute, route_to_console
from rum_logs.flags import LOGS_TO_HEC, FeatureFlagManager
from rum_logs.forwarder import SinkForwarder
from rum_logs.hec import TEST_LOG_MESSAGE, HecClient, SendResult
from rum_logs.interceptor import PipeInterceptor, StreamInterceptor
from rum_logs.models import BufferedLogEntry

logger = logging.getLogger(__name__)


class LogCollector:
    """
    Collects error-stream output and forwards it to the active sink.

    Features:
        - Idempotent start()/stop(); stop() drains the buffer
        - Buffered or immediate forwarding, switchable at runtime
        - Agent or HEC destination, read from the logs_to_hec flag per flush
    """

    def __init__(
        self,
        agent: Optional[TelemetryAgent] = None,
        interceptor: Optional[StreamInterceptor] = None,
        config: Optional[LogBufferConfiguration] = None,
        hec: Optional[HecConfig] = None,
        flags: Optional[FeatureFlagManager] = None,
        hec_client: Optional[HecClient] = None,
    ):
        """
        Args:
            agent: Telemetry agent for the agent sink and flag events
            interceptor: Byte source; defaults to a PipeInterceptor on fd 2
            config: Buffering policy; defaults to LogBufferConfiguration()
            hec: HEC endpoint settings; defaults to HecConfig.from_env()
            flags: Flag manager holding the logs_to_hec destination flag
            hec_client: Prebuilt client (overrides hec)
        """
        self.agent = agent or NullAgent()
        self.interceptor = interceptor or PipeInterceptor()
        self.config = config or LogBufferConfiguration()
        self.flags = flags or FeatureFlagManager(agent=self.agent)
        self.hec = hec_client or HecClient(hec or HecConfig.from_env())

        self.forwarder = SinkForwarder(
            agent=self.agent,
            hec=self.hec,
            use_hec=lambda: self.flags.is_enabled(LOGS_TO_HEC),
        )
        self.buffer = LogBuffer(self.config, self.forwarder.forward)
        self.timer = FlushTimer(self.buffer, self.config)

        self._lock = threading.Lock()
        self._running = False
        self._route: Optional[ConsoleRoute] = None
        self._dropped_chunks = 0

    @classmethod
    def from_config(
        cls,
        rum_config: RumConfig,
        agent: Optional[TelemetryAgent] = None,
        interceptor: Optional[StreamInterceptor] = None,
    ) -> "LogCollector":
        """Build a collector from a loaded rum.yaml."""
        agent = agent or NullAgent()
        return cls(
            agent=agent,
            interceptor=interceptor,
            config=rum_config.buffer_config(),
            hec=rum_config.hec_config(),
            flags=FeatureFlagManager(agent=agent, path=rum_config.flags_path),
        )

    # -- lifecycle ------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def start(self) -> None:
        """
        Start intercepting and the flush timer.

        Raises:
            InterceptionError: If the error stream cannot be redirected
        """
        with self._lock:
            if self._running:
                return
            logger.info("LogCollector starting (stderr only)")
            self.forwarder.open()
            self.interceptor.start(self.process_chunk)
            self._route = route_to_console(self.interceptor.console)
            self.timer.start()
            self._running = True

    def stop(self) -> None:
        """
        Stop intercepting, then flush what is buffered.

        Returns once the buffer is empty and submitted HEC batches are done.
        Calling it again (or before start()) only drains the buffer.
        """
        with self._lock:
            was_running = self._running
            if was_running:
                self._running = False
                self.timer.stop()
                # The route stays active until the reader has drained.
                self.interceptor.stop()
                if self._route is not None:
                    self._route.restore()
                    self._route = None

        flushed = self.buffer.flush()
        self.forwarder.close()
        if was_running:
            logger.info(f"LogCollector stopped ({flushed} entries drained)")

    def __enter__(self) -> "LogCollector":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()

    # -- capture --------------------------------------------------------------

    def process_chunk(self, data: bytes) -> int:
        """
        Turn raw captured bytes into buffered entries.

        The chunk is decoded as UTF-8; an undecodable chunk is dropped. Each
        non-empty line becomes one error-level entry.

        Returns:
            Number of entries created
        """
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            self._dropped_chunks += 1
            logger.debug(f"Dropped undecodable chunk ({len(data)} bytes)")
            return 0

        count = 0
        for line in text.splitlines():
            if not line:
                continue
            self.buffer.append(BufferedLogEntry(message=line, is_error=True))
            count += 1
        return count

    def append_line(self, message: str, is_error: bool = True) -> None:
        """Buffer one line as if it had been captured."""
        if message:
            self.buffer.append(BufferedLogEntry(message=message, is_error=is_error))

    # -- control --------------------------------------------------------------

    def flush(self) -> int:
        """Drain the buffer now. Returns the number of entries flushed."""
        return self.buffer.flush()

    @property
    def buffered_count(self) -> int:
        return self.buffer.buffered_count

    @property
    def dropped_chunks(self) -> int:
        """Chunks discarded because they were not valid UTF-8."""
        return self._dropped_chunks

    @property
    def destination(self) -> str:
        return self.forwarder.destination

    def send_test_log(
        self,
        message: str = TEST_LOG_MESSAGE,
        callback: Optional[Callable[[SendResult], None]] = None,
    ) -> SendResult:
        """Post one event to HEC synchronously, bypassing the buffer."""
        return self.hec.send_test_log(message=message, callback=callback)

    def status(self) -> dict:
        status = self.config.snapshot()
        status.update({
            "running": self.is_running,
            "destination": self.destination,
            "hec_configured": self.hec.is_configured,
            "buffered_count": self.buffered_count,
            "dropped_chunks": self.dropped_chunks,
        })
        return status
