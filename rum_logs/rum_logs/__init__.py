"""
rum_logs - stderr log collection for Real User Monitoring

This package captures everything the process writes to its error stream and
forwards it as telemetry:
- Intercept the stderr file descriptor without hiding console output
- Buffer captured lines under a size/time flush policy
- Forward batches to a telemetry agent as custom events, or straight to an
  HTTP Event Collector endpoint
"""

from rum_logs.agent import TelemetryAgent, NullAgent, InMemoryAgent, LoggingAgent
from rum_logs.buffer import LogBuffer, FlushTimer
from rum_logs.collector import LogCollector
from rum_logs.config import (
    LogBufferConfiguration,
    HecConfig,
    RumConfig,
    load_config,
)
from rum_logs.errors import (
    RumLogsError,
    ConfigurationError,
    InterceptionError,
    HecError,
    HecConfigurationMissing,
    HecInvalidURL,
    HecStatusError,
    HecTransportError,
    PayloadError,
)
from rum_logs.flags import FeatureFlag, FeatureFlagManager, LOGS_TO_HEC
from rum_logs.forwarder import SinkForwarder
from rum_logs.hec import HecClient, SendResult
from rum_logs.interceptor import StreamInterceptor, PipeInterceptor
from rum_logs.models import BufferedLogEntry

__version__ = "0.1.0"

__all__ = [
    # Collector
    "LogCollector",
    # Models
    "BufferedLogEntry",
    # Config
    "LogBufferConfiguration",
    "HecConfig",
    "RumConfig",
    "load_config",
    # Interception
    "StreamInterceptor",
    "PipeInterceptor",
    # Buffering
    "LogBuffer",
    "FlushTimer",
    # Sinks
    "SinkForwarder",
    "HecClient",
    "SendResult",
    # Agent
    "TelemetryAgent",
    "NullAgent",
    "InMemoryAgent",
    "LoggingAgent",
    # Flags
    "FeatureFlag",
    "FeatureFlagManager",
    "LOGS_TO_HEC",
    # Errors
    "RumLogsError",
    "ConfigurationError",
    "InterceptionError",
    "HecError",
    "HecConfigurationMissing",
    "HecInvalidURL",
    "HecStatusError",
    "HecTransportError",
    "PayloadError",
]
