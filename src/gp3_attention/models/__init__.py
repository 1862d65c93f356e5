from .commands import Command, CommandId, CommandMode
from .records import (
    AcknowledgementRecord,
    CalibrationRecord,
    CommandEchoRecord,
    MalformedFrame,
    Record,
    TelemetryRecord,
)

__all__ = [
    "AcknowledgementRecord",
    "CalibrationRecord",
    "CommandEchoRecord",
    "Command",
    "CommandId",
    "CommandMode",
    "MalformedFrame",
    "Record",
    "TelemetryRecord",
]
