from enum import Enum, auto


class ConnectionState(Enum):
    """
    Lifecycle of the TCP link to Gazepoint Control.

    Transitions only on socket events; CLOSED is terminal for an instance.
    """
    DISCONNECTED = auto() # Created, connect() not called yet.
    CONNECTING = auto() # TCP handshake in progress.
    CONNECTED = auto() # Sends are written to the socket.
    CLOSED = auto() # Closed by us, by the peer, or after an error.


class CalibrationPhase(Enum):
    """Device-level calibration choreography, driven purely by timers."""
    IDLE = auto()
    RESET = auto()
    SHOW_OVERLAY = auto()
    COUNTDOWN_TO_START = auto()
    STARTED = auto()
    COUNTDOWN_TO_HIDE = auto()
    HIDE_OVERLAY = auto()
    COMPLETE = auto()


class ScreenCalibrationPhase(Enum):
    """User-gated two-point screen calibration wrapping the device run."""
    AWAIT_USER_START = auto()
    AWAIT_FIRST_POINT_STARE = auto()
    AWAIT_SECOND_POINT_STARE = auto()
    DONE = auto()
    CANCELLED = auto()
    FAILED = auto() # No connection, or the active context disappeared.

    @property
    def is_terminal(self) -> bool:
        return self in (ScreenCalibrationPhase.DONE, ScreenCalibrationPhase.CANCELLED, ScreenCalibrationPhase.FAILED)


class SendOutcome(Enum):
    SENT = auto()
    ACKNOWLEDGED = auto()
    TIMED_OUT = auto()
    NOT_CONNECTED = auto()


class SessionOutcome(Enum):
    COMPLETED = auto()
    CANCELLED = auto()
    FAILED = auto()
    PRECONDITION_FAILED = auto()
