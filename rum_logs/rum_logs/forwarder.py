"""
Sink forwarding for flushed log batches.

Two destinations:
    agent sink: one "Log" custom event per entry on the telemetry agent
    HTTP sink:  one POST per entry to the log endpoint, sent off-thread

The destination is read from use_hec() on every forward, so switching the
flag only affects batches forwarded afterwards. An unconfigured HTTP sink
falls back to the agent sink.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence

from rum_logs.agent import TelemetryAgent
from rum_logs.hec import HecClient
from rum_logs.models import LOG_EVENT_NAME, BufferedLogEntry

logger = logging.getLogger(__name__)


def _never() -> bool:
    return False


class SinkForwarder:
    """
    Delivers batches to the agent or the HTTP endpoint.

    HTTP batches are submitted to a single-worker executor, so callers never
    wait on the network and batches go out one after another.
    """

    def __init__(
        self,
        agent: TelemetryAgent,
        hec: Optional[HecClient] = None,
        use_hec: Callable[[], bool] = _never,
        max_workers: int = 1,
    ):
        """
        Args:
            agent: Receives custom events for the agent sink
            hec: HTTP endpoint client (None disables the HTTP sink)
            use_hec: Returns True when batches should go to the HTTP sink
            max_workers: Concurrent HTTP batches
        """
        self.agent = agent
        self.hec = hec
        self._use_hec = use_hec
        self._max_workers = max_workers
        self._executor = self._new_executor()
        self._lock = threading.Lock()
        self._closed = False
        self._fallback_logged = False

    @property
    def destination(self) -> str:
        """Destination the next forward() would use: "hec" or "agent"."""
        if self._use_hec() and self.hec is not None and self.hec.is_configured:
            return "hec"
        return "agent"

    def forward(self, batch: Sequence[BufferedLogEntry]) -> None:
        if not batch:
            return

        if not self._use_hec():
            self._send_to_agent(batch)
            return

        if self.hec is None or not self.hec.is_configured:
            if not self._fallback_logged:
                logger.info("HEC not configured, sending logs to the agent instead")
                self._fallback_logged = True
            self._send_to_agent(batch)
            return

        entries = list(batch)
        with self._lock:
            if not self._closed:
                self._executor.submit(self._send_to_hec, entries)
                return
        # Forwarding after close(): send in the caller's thread.
        self._send_to_hec(entries)

    def open(self) -> None:
        """Accept asynchronous HTTP batches again after close()."""
        with self._lock:
            if self._closed:
                self._executor = self._new_executor()
                self._closed = False

    def close(self) -> None:
        """Wait for submitted HTTP batches to finish."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=True)

    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="rum-logs-hec",
        )

    def _send_to_agent(self, batch: Sequence[BufferedLogEntry]) -> None:
        for entry in batch:
            try:
                self.agent.track_custom_event(LOG_EVENT_NAME, entry.to_attributes())
            except Exception as e:
                logger.error(f"Agent rejected log entry: {e}")

    def _send_to_hec(self, entries: Sequence[BufferedLogEntry]) -> None:
        sent = 0
        for entry in entries:
            try:
                if self.hec.send(entry):
                    sent += 1
            except Exception as e:
                logger.error(f"Unexpected HEC send failure: {e}")
        logger.debug(f"Sent {sent}/{len(entries)} log entries to HEC")
