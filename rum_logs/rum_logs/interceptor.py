"""
Error-stream interception.

PipeInterceptor redirects a process-wide file descriptor (stderr by default)
into a pipe and reads it on a background thread:

    write(2, ...) → pipe → reader thread → original console
                                         → on_chunk(bytes)

Everything written to the descriptor is captured, including output from C
extensions and the logging module, and is copied back to the original
console so the terminal still shows it.

The buffering logic only depends on the StreamInterceptor interface, so tests
can feed bytes directly without touching real descriptors.
"""

import logging
import os
import select
import sys
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional, TextIO

from rum_logs.errors import InterceptionError

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[bytes], None]

DEFAULT_CHUNK_SIZE = 2048


class StreamInterceptor(ABC):
    """
    Abstract base class for byte sources.

    start() must be idempotent while running, and stop() must guarantee that
    on_chunk is not called after it returns.
    """

    @abstractmethod
    def start(self, on_chunk: ChunkCallback) -> None:
        """Begin delivering captured bytes to on_chunk."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop capturing and release every resource start() acquired."""
        pass

    @property
    @abstractmethod
    def is_running(self) -> bool:
        pass

    @property
    def console(self) -> Optional[TextIO]:
        """Stream that reaches the original console while capturing, if any."""
        return None


class PipeInterceptor(StreamInterceptor):
    """
    Redirects a file descriptor into a pipe read by a daemon thread.

    Features:
        - Pass-through of every chunk to the original descriptor
        - Fails fast if dup/pipe/dup2 fail, closing what it opened
        - stop() restores the descriptor and joins the reader
    """

    def __init__(self, fd: int = 2, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize the PipeInterceptor.

        Args:
            fd: Descriptor to capture (2 for stderr)
            chunk_size: Max bytes per read
        """
        self.fd = fd
        self.chunk_size = chunk_size
        self._lock = threading.Lock()
        self._running = False
        self._saved_fd: Optional[int] = None
        self._read_fd: Optional[int] = None
        self._write_fd: Optional[int] = None
        self._wake_r: Optional[int] = None
        self._wake_w: Optional[int] = None
        self._reader: Optional[threading.Thread] = None
        self._console: Optional[TextIO] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def console(self) -> Optional[TextIO]:
        return self._console

    def start(self, on_chunk: ChunkCallback) -> None:
        """
        Redirect the descriptor and start the reader thread.

        Raises:
            InterceptionError: If the descriptor cannot be duplicated or the
                pipe cannot be created
        """
        with self._lock:
            if self._running:
                return

            _flush_python_stream(self.fd)

            opened = []
            try:
                saved_fd = os.dup(self.fd)
                opened.append(saved_fd)
                read_fd, write_fd = os.pipe()
                opened.extend([read_fd, write_fd])
                wake_r, wake_w = os.pipe()
                opened.extend([wake_r, wake_w])
                os.dup2(write_fd, self.fd)
            except OSError as e:
                for fd in opened:
                    os.close(fd)
                raise InterceptionError(f"Cannot redirect descriptor: {e}", self.fd) from e

            self._saved_fd = saved_fd
            self._read_fd = read_fd
            self._write_fd = write_fd
            self._wake_r = wake_r
            self._wake_w = wake_w
            self._console = open(
                saved_fd, "w", buffering=1, encoding="utf-8",
                errors="replace", closefd=False,
            )

            self._reader = threading.Thread(
                target=self._read_loop,
                args=(read_fd, wake_r, saved_fd, on_chunk),
                daemon=True,
                name=f"rum-logs-reader-fd{self.fd}",
            )
            self._running = True
            self._reader.start()

        logger.debug(f"Intercepting fd {self.fd} (original saved as fd {saved_fd})")

    def stop(self) -> None:
        """
        Restore the descriptor, end the reader loop and close the pipe.

        Bytes already written to the pipe are still delivered before this
        returns; none are delivered afterwards.
        """
        with self._lock:
            if not self._running:
                return
            self._running = False

            _flush_python_stream(self.fd)
            os.dup2(self._saved_fd, self.fd)
            os.close(self._write_fd)
            # Child processes may still hold the write end; wake the reader
            # instead of waiting for EOF.
            os.write(self._wake_w, b"x")

            # The reader thread never takes self._lock.
            self._reader.join()
            self._reader = None

            self._console.close()
            self._console = None
            for fd in (self._read_fd, self._wake_r, self._wake_w, self._saved_fd):
                os.close(fd)
            self._saved_fd = self._read_fd = self._write_fd = None
            self._wake_r = self._wake_w = None

        logger.debug(f"Restored fd {self.fd}")

    def _read_loop(self, read_fd: int, wake_fd: int, saved_fd: int, on_chunk: ChunkCallback) -> None:
        while True:
            ready, _, _ = select.select([read_fd, wake_fd], [], [])
            if read_fd in ready:
                data = os.read(read_fd, self.chunk_size)
                if not data:
                    return
                self._dispatch(data, saved_fd, on_chunk)
                continue

            # Woken by stop(): deliver what is already in the pipe, then exit.
            while True:
                ready, _, _ = select.select([read_fd], [], [], 0)
                if not ready:
                    return
                data = os.read(read_fd, self.chunk_size)
                if not data:
                    return
                self._dispatch(data, saved_fd, on_chunk)

    def _dispatch(self, data: bytes, saved_fd: int, on_chunk: ChunkCallback) -> None:
        try:
            _write_all(saved_fd, data)
        except OSError as e:
            logger.debug(f"Console pass-through failed: {e}")
        try:
            on_chunk(data)
        except Exception as e:
            logger.error(f"Chunk handler failed: {e}")

    def __enter__(self) -> "PipeInterceptor":
        return self

    def __exit__(self, *args) -> None:
        self.stop()


def _flush_python_stream(fd: int) -> None:
    """Push Python-level buffered output to the descriptor before remapping it."""
    stream = {1: sys.stdout, 2: sys.stderr}.get(fd)
    if stream is not None:
        stream.flush()


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]
