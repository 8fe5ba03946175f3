"""
Diagnostic logger routing.

While the error stream is being intercepted, anything the package logs to
stderr would be captured and forwarded again, and a failing forward would log
another line. route_to_console() points the "rum_logs" logger at the original
console stream and stops propagation until the returned handle is undone.
"""

import logging
import sys
import threading
from typing import Optional, TextIO

PACKAGE_LOGGER = "rum_logs"

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class _ConsoleHandler(logging.StreamHandler):
    """StreamHandler that switches to sys.stderr once its console is closed."""

    def emit(self, record: logging.LogRecord) -> None:
        if self.stream.closed:
            self.acquire()
            try:
                self.stream = sys.stderr
            finally:
                self.release()
        super().emit(record)


class ConsoleRoute:
    """Handle returned by route_to_console(); call restore() to undo."""

    def __init__(self, logger: logging.Logger, handler: logging.Handler, propagate: bool):
        self._logger = logger
        self._handler = handler
        self._propagate = propagate
        self._lock = threading.Lock()
        self._restored = False

    def restore(self) -> None:
        with self._lock:
            if self._restored:
                return
            self._restored = True
        self._logger.removeHandler(self._handler)
        self._logger.propagate = self._propagate
        self._handler.close()


def route_to_console(stream: Optional[TextIO]) -> Optional[ConsoleRoute]:
    """
    Send "rum_logs" records to `stream` only.

    Args:
        stream: Text stream that reaches the original console. If None,
            nothing is changed and None is returned.

    Returns:
        A ConsoleRoute to restore the previous logger setup, or None
    """
    if stream is None:
        return None

    logger = logging.getLogger(PACKAGE_LOGGER)
    handler = _ConsoleHandler(stream)
    handler.setFormatter(logging.Formatter(_FORMAT))
    route = ConsoleRoute(logger, handler, logger.propagate)

    logger.addHandler(handler)
    logger.propagate = False
    return route
