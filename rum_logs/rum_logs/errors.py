"""
Error types raised or reported by rum_logs.

Background paths (buffer flushes, sink forwarding) never raise these to the
host application; they are logged and the affected entry is dropped. They
surface to callers only from start(), settings validation and the explicit
test-log send.
"""

from typing import Optional


class RumLogsError(Exception):
    """Base class for all rum_logs errors."""


class ConfigurationError(RumLogsError):
    """Raised when a buffer setting or config file value is invalid."""


class InterceptionError(RumLogsError):
    """Raised when the error stream cannot be redirected."""

    def __init__(self, message: str, fd: int):
        self.fd = fd
        super().__init__(f"{message} (fd {fd})")


class HecError(RumLogsError):
    """Base class for HTTP log endpoint failures."""

    kind = "hec_error"


class HecConfigurationMissing(HecError):
    """The endpoint URL or token is empty."""

    kind = "configuration_missing"

    def __init__(self, missing: Optional[list] = None):
        self.missing = missing or []
        detail = ", ".join(self.missing) if self.missing else "url/token"
        super().__init__(f"HEC not configured: missing {detail}")


class HecInvalidURL(HecError):
    """The configured endpoint URL cannot be used."""

    kind = "invalid_url"

    def __init__(self, url: str, reason: str = ""):
        self.url = url
        message = f"Invalid HEC URL: {url!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class HecStatusError(HecError):
    """The endpoint answered with a status other than 200."""

    kind = "http_status"

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HEC returned HTTP {status_code}")


class HecTransportError(HecError):
    """DNS, connection or timeout failure talking to the endpoint."""

    kind = "transport"

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"HEC request failed: {cause}")


class PayloadError(HecError):
    """A log entry could not be serialized to JSON."""

    kind = "serialization"
