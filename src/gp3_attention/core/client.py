import asyncio
import logging
import statistics
import time
from functools import wraps
from typing import Any, Awaitable, Callable, Iterable, Optional

from .acks import AcknowledgementTracker
from .calibration import DeviceCalibration
from .connection import GazepointConnection
from .runner import TelemetryRunner
from .state import CalibrationPhase, ConnectionState, SendOutcome
from ..configs import CalibrationTimings
from ..models import Command, CommandId, Record, TelemetryRecord

logger = logging.getLogger(__name__)

# Switched on right after connecting. DATA goes last so the first frames
# already carry every field.
DEFAULT_STREAMS = (
    CommandId.ENABLE_SEND_COUNTER,
    CommandId.ENABLE_SEND_POG_FIX,
    CommandId.ENABLE_SEND_POG_BEST,
    CommandId.ENABLE_SEND_CURSOR,
    CommandId.ENABLE_SEND_DATA,
)

def require_connection(fallback: Any):
    """
    Decorator for client coroutines that need a live socket.
    Returns `fallback` instead of running the body when disconnected.
    """
    def decorator(func):
        @wraps(func)
        async def async_wrapper(self, *args, **kwargs):
            if not self.is_connected:
                logger.warning(f"'{func.__name__}' aborted: not connected to {self.host}:{self.port}.")
                return fallback
            return await func(self, *args, **kwargs)
        return async_wrapper
    return decorator


class GazepointClient:
    """
    Client for one Gazepoint Control server.

    Composes the connection, the wire codec, the acknowledgement tracker
    and (optionally) the telemetry runner. Received records reach the
    tracker first, then telemetry.
    """
    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 4242,
        debug: bool = False,
        *,
        connect_timeout_s: float = 5.0,
        ack_timeout_s: float = 9.0,
        poll_checks: int = 5,
        enabled_streams: Iterable[CommandId] = DEFAULT_STREAMS,
        timings: Optional[CalibrationTimings] = None,
        telemetry: Optional[TelemetryRunner] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.debug = debug
        self.ack_timeout_s = ack_timeout_s
        self.enabled_streams = tuple(enabled_streams)
        self.timings = timings or CalibrationTimings()
        self.telemetry = telemetry
        self._sleep = sleep
        self._clock = clock
        self._traffic_level = logging.INFO if debug else logging.DEBUG

        self.connection = GazepointConnection(host, port, connect_timeout_s)
        self.acks = AcknowledgementTracker(self.connection.send, poll_checks, sleep, clock)

        self.connection.add_record_handler(self.acks.on_record)
        if telemetry is not None:
            self.connection.add_record_handler(telemetry.on_record)
        self.connection.add_record_handler(self._trace)
        self.connection.add_error_handler(self._on_error)
        self.connection.add_close_handler(self._on_close)

    @property
    def host(self) -> str:
        return self.connection.host

    @property
    def port(self) -> int:
        return self.connection.port

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    # --- Lifecycle ---

    async def connect(self) -> bool:
        """Connects and switches on the configured data streams."""
        if self.is_connected:
            return True
        if not await self.connection.connect():
            return False
        self.enable_streams()
        return True

    async def close(self) -> None:
        await self.connection.close()

    # --- Commands ---

    def send(self, command: Command) -> SendOutcome:
        """Fire-and-forget."""
        outcome = self.acks.send_without_ack(command)
        if outcome is SendOutcome.NOT_CONNECTED:
            logger.warning("Cannot send %s, not connected.", command.id.value)
        return outcome

    async def send_with_ack(self, command: Command, timeout_s: Optional[float] = None) -> SendOutcome:
        """Sends and waits for the server's ACK (ACKNOWLEDGED / TIMED_OUT / NOT_CONNECTED)."""
        return await self.acks.send_with_ack(
            command, self.ack_timeout_s if timeout_s is None else timeout_s
        )

    def enable_streams(self, streams: Optional[Iterable[CommandId]] = None) -> list[SendOutcome]:
        return [
            self.send(Command.set(stream, STATE=1))
            for stream in (self.enabled_streams if streams is None else streams)
        ]

    async def set_tracker_display(self, visible: bool) -> SendOutcome:
        return await self.send_with_ack(Command.set(CommandId.TRACKER_DISPLAY, STATE=int(visible)))

    # --- Calibration ---

    @require_connection(CalibrationPhase.IDLE)
    async def calibrate(self) -> CalibrationPhase:
        """Runs the device-level calibration choreography once."""
        run = DeviceCalibration(self.send, self.timings, self._sleep, self._clock)
        return await run.run()

    async def begin(self) -> bool:
        """Connects if needed, enables the streams and calibrates the device."""
        if self.state is ConnectionState.DISCONNECTED:
            if not await self.connect():
                return False
        return await self.calibrate() is CalibrationPhase.COMPLETE

    @require_connection(None)
    async def stare(self, duration_s: float) -> Optional[tuple[float, float]]:
        """
        Collects valid fixation points for `duration_s` and returns their
        mean, or None if no valid fixation arrived.
        """
        points: list[tuple[float, float]] = []

        def collect(record: Record) -> None:
            if isinstance(record, TelemetryRecord) and record.fpog_valid:
                point = record.fpog
                if point is not None:
                    points.append(point)

        self.connection.add_record_handler(collect)
        try:
            await self._sleep(duration_s)
        finally:
            self.connection.remove_record_handler(collect)

        if not points:
            return None
        return (
            statistics.fmean(x for x, _ in points),
            statistics.fmean(y for _, y in points),
        )

    # --- Connection events ---

    def _trace(self, record: Record) -> None:
        if logger.isEnabledFor(self._traffic_level):
            logger.log(self._traffic_level, "Received %r", record)

    def _on_error(self, error: Exception) -> None:
        logger.error(f"Socket error on {self.host}:{self.port}: {error}")

    def _on_close(self) -> None:
        logger.info("Connection closed")
