"""
In-memory log buffer with size- and time-triggered flushing.

Architecture:
    append(entry) ─┬─ buffering off → forward([entry])
                   └─ buffering on  → list ── len == max_buffer_size ─┐
    FlushTimer (every flush_interval) ────────────────────────────────┼→ flush()
    flush() called explicitly ────────────────────────────────────────┘

flush() swaps the whole list out under the lock and forwards the swapped
batch after releasing it, so appends arriving during a forward start a fresh
list and the forward never blocks them.
"""

import logging
import threading
from typing import Callable, List, Optional, Sequence

from rum_logs.config import LogBufferConfiguration
from rum_logs.models import BufferedLogEntry

logger = logging.getLogger(__name__)

ForwardFn = Callable[[Sequence[BufferedLogEntry]], None]


class LogBuffer:
    """
    Ordered buffer of captured entries.

    Append and swap are serialized by one lock shared by the reader thread,
    the flush timer and any caller of flush(). The buffer length never
    exceeds max_buffer_size: reaching it flushes before append() returns.
    """

    def __init__(self, config: LogBufferConfiguration, forward: ForwardFn):
        """
        Args:
            config: Buffering policy, re-read on every append
            forward: Called with each flushed batch, in capture order
        """
        self.config = config
        self._forward = forward
        self._entries: List[BufferedLogEntry] = []
        self._lock = threading.Lock()
        self._flush_count = 0

    def append(self, entry: BufferedLogEntry) -> None:
        """
        Add an entry, or forward it right away when buffering is off.
        """
        if not self.config.enabled:
            self._send([entry])
            return

        batch = None
        with self._lock:
            self._entries.append(entry)
            if len(self._entries) >= self.config.max_buffer_size:
                batch = self._swap()

        if batch:
            logger.debug(f"Buffer reached {len(batch)} entries, flushing")
            self._send(batch)

    def flush(self) -> int:
        """
        Drain every buffered entry to the forwarder.

        Returns:
            Number of entries flushed
        """
        with self._lock:
            batch = self._swap()

        if batch:
            self._send(batch)
        return len(batch)

    @property
    def buffered_count(self) -> int:
        """Number of entries waiting to be flushed."""
        with self._lock:
            return len(self._entries)

    @property
    def flush_count(self) -> int:
        """Number of non-empty batches handed to the forwarder."""
        with self._lock:
            return self._flush_count

    def _swap(self) -> List[BufferedLogEntry]:
        # Caller holds self._lock
        batch = self._entries
        self._entries = []
        if batch:
            self._flush_count += 1
        return batch

    def _send(self, batch: Sequence[BufferedLogEntry]) -> None:
        try:
            self._forward(batch)
        except Exception as e:
            logger.error(f"Failed to forward {len(batch)} log entries: {e}")


class FlushTimer:
    """
    Background thread that flushes a LogBuffer periodically.

    The interval is read from the configuration before every wait, so a
    change takes effect from the next tick.
    """

    def __init__(self, buffer: LogBuffer, config: LogBufferConfiguration):
        self.buffer = buffer
        self.config = config
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._flush_loop,
                daemon=True,
                name="rum-logs-flush",
            )
            self._thread.start()

    def stop(self) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is None:
            return
        self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join()

    def _flush_loop(self) -> None:
        while not self._stop_event.wait(timeout=self.config.flush_interval):
            flushed = self.buffer.flush()
            if flushed:
                logger.debug(f"Timer flushed {flushed} log entries")
