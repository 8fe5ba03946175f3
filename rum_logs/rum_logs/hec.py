"""
Client for the HTTP log-ingestion endpoint (Splunk HEC).

Each log entry is one POST:

    POST {url}
    Authorization: Splunk {token}
    Content-Type: application/json

    {"event": "<message>", "sourcetype": "ios_app", "source": "<app name>"}

Only HTTP 200 counts as success. send() is used on the background path and
never raises; send_test_log() is the one-off connectivity check and reports a
typed failure instead.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse

import requests

from rum_logs.config import HecConfig
from rum_logs.errors import (
    HecConfigurationMissing,
    HecError,
    HecInvalidURL,
    HecStatusError,
    HecTransportError,
    PayloadError,
)
from rum_logs.models import BufferedLogEntry

logger = logging.getLogger(__name__)

SOURCETYPE = "ios_app"
TEST_LOG_MESSAGE = "Test log from rum_logs"


@dataclass
class SendResult:
    """Outcome of send_test_log()."""
    ok: bool
    error: Optional[HecError] = None
    status_code: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"ok": self.ok}
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.error is not None:
            data["error"] = self.error.kind
            data["detail"] = str(self.error)
        return data


class HecClient:
    """
    Posts log entries to the HTTP log endpoint.

    Uses a single requests.Session so connections are reused across entries.
    """

    def __init__(self, config: HecConfig, session: Optional[requests.Session] = None):
        self.config = config
        self._session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    def build_payload(self, message: str) -> Dict[str, str]:
        return {
            "event": message,
            "sourcetype": SOURCETYPE,
            "source": self.config.source,
        }

    def build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Splunk {self.config.token}",
            "Content-Type": "application/json",
        }

    def encode(self, message: Any) -> bytes:
        """
        Serialize the request body.

        Raises:
            PayloadError: If the message cannot be encoded as JSON
        """
        try:
            return json.dumps(self.build_payload(message), allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise PayloadError(f"Cannot encode log payload: {e}") from e

    def send(self, entry: BufferedLogEntry) -> bool:
        """
        Post one entry; failures are logged and the entry is dropped.

        Returns:
            True if the endpoint answered 200
        """
        try:
            status = self._post(entry.message)
        except HecError as e:
            logger.warning(f"Dropped log entry: {e}")
            return False

        if status != 200:
            logger.warning(f"Dropped log entry: HEC returned HTTP {status}")
            return False
        return True

    def send_test_log(
        self,
        message: str = TEST_LOG_MESSAGE,
        callback: Optional[Callable[[SendResult], None]] = None,
    ) -> SendResult:
        """
        Post a single test event synchronously.

        Args:
            message: Event text
            callback: Called once with the result

        Returns:
            The same SendResult passed to callback
        """
        try:
            status = self._post(message)
        except HecError as e:
            result = SendResult(ok=False, error=e)
        else:
            if status == 200:
                result = SendResult(ok=True, status_code=status)
            else:
                result = SendResult(ok=False, error=HecStatusError(status), status_code=status)

        if result.ok:
            logger.info("Test log sent to HEC")
        else:
            logger.warning(f"Test log failed: {result.error}")

        if callback is not None:
            callback(result)
        return result

    def close(self) -> None:
        self._session.close()

    def _post(self, message: Any) -> int:
        """
        POST one event and return the status code.

        Raises:
            HecConfigurationMissing: URL or token empty
            HecInvalidURL: URL is not an absolute http(s) URL
            HecTransportError: Connection, DNS or timeout failure
            PayloadError: Body cannot be serialized
        """
        if not self.config.is_configured:
            raise HecConfigurationMissing(self.config.missing)

        url = self.config.url.strip()
        _check_url(url)
        body = self.encode(message)

        try:
            response = self._session.post(
                url,
                data=body,
                headers=self.build_headers(),
                timeout=self.config.timeout,
            )
        except (requests.exceptions.InvalidURL,
                requests.exceptions.MissingSchema,
                requests.exceptions.InvalidSchema) as e:
            raise HecInvalidURL(url, str(e)) from e
        except requests.RequestException as e:
            raise HecTransportError(e) from e

        if response.status_code != 200:
            logger.debug(f"HEC response {response.status_code}: {response.text[:200]}")
        return response.status_code


def _check_url(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise HecInvalidURL(url, "scheme must be http or https")
    if not parsed.netloc:
        raise HecInvalidURL(url, "missing host")
