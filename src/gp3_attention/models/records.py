from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Union

from .commands import CommandId, CommandMode


def _frozen(mapping: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping))


@dataclass(slots=True, frozen=True)
class AcknowledgementRecord:
    """`<ACK ID="..." .../>` sent by the server after a SET or GET."""
    id: CommandId
    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _frozen(self.attributes))


@dataclass(slots=True, frozen=True)
class CalibrationRecord:
    """`<CAL .../>` calibration progress. Nothing in the core acts on it."""
    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _frozen(self.attributes))


@dataclass(slots=True, frozen=True)
class CommandEchoRecord:
    """A `<SET .../>` or `<GET .../>` line on the stream, i.e. a command read back."""
    mode: CommandMode
    id: CommandId
    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _frozen(self.attributes))


# Fields reported by `TelemetryRecord.summary()`, in the server's order.
SUMMARY_FIELDS = (
    "CNT",
    "FPOGX", "FPOGY", "FPOGS", "FPOGD", "FPOGID", "FPOGV",
    "BPOGX", "BPOGY", "BPOGV",
    "CX", "CY", "CS",
)


@dataclass(slots=True, frozen=True)
class TelemetryRecord:
    """
    One `<REC .../>` gaze frame.

    The raw attribute strings are kept as-is; the accessors below convert
    on demand so a frame with missing or garbled fields still dispatches.
    """
    fields: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", _frozen(self.fields))

    def _float(self, key: str) -> Optional[float]:
        raw = self.fields.get(key)
        if raw is None:
            return None
        try:
            return float(raw)
        except ValueError:
            return None

    def _flag(self, key: str) -> bool:
        value = self._float(key)
        return value is not None and value != 0

    @property
    def counter(self) -> Optional[int]:
        value = self._float("CNT")
        return int(value) if value is not None else None

    @property
    def fpog(self) -> Optional[tuple[float, float]]:
        """Fixation point of gaze, normalised screen coordinates."""
        x, y = self._float("FPOGX"), self._float("FPOGY")
        return (x, y) if x is not None and y is not None else None

    @property
    def fpog_valid(self) -> bool:
        return self._flag("FPOGV")

    @property
    def bpog(self) -> Optional[tuple[float, float]]:
        """Best point of gaze, normalised screen coordinates."""
        x, y = self._float("BPOGX"), self._float("BPOGY")
        return (x, y) if x is not None and y is not None else None

    @property
    def bpog_valid(self) -> bool:
        return self._flag("BPOGV")

    @property
    def cursor(self) -> Optional[tuple[float, float]]:
        x, y = self._float("CX"), self._float("CY")
        return (x, y) if x is not None and y is not None else None

    @property
    def cursor_state(self) -> Optional[int]:
        value = self._float("CS")
        return int(value) if value is not None else None

    def summary(self) -> dict[str, Optional[str]]:
        return {key.lower(): self.fields.get(key) for key in SUMMARY_FIELDS}


@dataclass(slots=True, frozen=True)
class MalformedFrame:
    """A received line that could not be parsed. Logged and dropped."""
    line: str
    reason: str


Record = Union[AcknowledgementRecord, TelemetryRecord, CalibrationRecord, CommandEchoRecord]
