from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CommandMode(Enum):
    SET = "SET"
    GET = "GET"


class CommandId(str, Enum):
    """Identifiers understood by the Gazepoint Control API."""
    CALIBRATE_DELAY = "CALIBRATE_DELAY"
    CALIBRATE_RESET = "CALIBRATE_RESET"
    CALIBRATE_SHOW = "CALIBRATE_SHOW"
    CALIBRATE_START = "CALIBRATE_START"
    CALIBRATE_TIMEOUT = "CALIBRATE_TIMEOUT"
    ENABLE_SEND_COUNTER = "ENABLE_SEND_COUNTER"
    ENABLE_SEND_CURSOR = "ENABLE_SEND_CURSOR"
    ENABLE_SEND_DATA = "ENABLE_SEND_DATA"
    ENABLE_SEND_POG_BEST = "ENABLE_SEND_POG_BEST"
    ENABLE_SEND_POG_FIX = "ENABLE_SEND_POG_FIX"
    TRACKER_DISPLAY = "TRACKER_DISPLAY"

    @classmethod
    def lookup(cls, raw: str) -> Optional["CommandId"]:
        """Returns the member for `raw`, or None if the device sent an id we don't know."""
        try:
            return cls(raw)
        except ValueError:
            return None


@dataclass(slots=True, frozen=True)
class Command:
    """
    A single outgoing instruction.

    Parameters are kept as a tuple of (key, value) pairs so the wire order
    is exactly the order they were given in.
    """
    mode: CommandMode
    id: CommandId
    parameters: tuple[tuple[str, str], ...] = ()

    @classmethod
    def set(cls, command_id: CommandId, **parameters: object) -> "Command":
        return cls(
            CommandMode.SET,
            command_id,
            tuple((key, str(value)) for key, value in parameters.items()),
        )

    @classmethod
    def get(cls, command_id: CommandId) -> "Command":
        return cls(CommandMode.GET, command_id)

    @property
    def parameter_map(self) -> dict[str, str]:
        return dict(self.parameters)
