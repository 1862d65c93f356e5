from .acks import AcknowledgementTracker, PendingAcknowledgement
from .calibration import (
    DeviceCalibration,
    ScreenCalibration,
    ScreenCalibrationResult,
    device_transition,
    screen_transition,
)
from .client import GazepointClient
from .connection import GazepointConnection
from .manager import SessionManager
from .protocols import HostUI
from .runner import TelemetryRunner
from .state import (
    CalibrationPhase,
    ConnectionState,
    ScreenCalibrationPhase,
    SendOutcome,
    SessionOutcome,
)

__all__ = [
    "AcknowledgementTracker",
    "CalibrationPhase",
    "ConnectionState",
    "DeviceCalibration",
    "GazepointClient",
    "GazepointConnection",
    "HostUI",
    "PendingAcknowledgement",
    "ScreenCalibration",
    "ScreenCalibrationPhase",
    "ScreenCalibrationResult",
    "SendOutcome",
    "SessionManager",
    "SessionOutcome",
    "TelemetryRunner",
    "device_transition",
    "screen_transition",
]
