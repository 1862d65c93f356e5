from .app import (
    AcknowledgementSettings,
    AppSettings,
    CalibrationTimings,
    ConnectionSettings,
    TelemetrySettings,
    ZmqSinkConfig,
)
from .utils import LoggingConfig

__all__ = [
    "AcknowledgementSettings",
    "AppSettings",
    "CalibrationTimings",
    "ConnectionSettings",
    "LoggingConfig",
    "TelemetrySettings",
    "ZmqSinkConfig",
]
