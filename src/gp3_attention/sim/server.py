import asyncio
import logging
import math
import time
from typing import Optional

from ..errors import ProtocolError
from ..models import Command, CommandId, CommandMode
from ..protocol import escape_attribute, parse_command

logger = logging.getLogger(__name__)

# Fields each ENABLE_SEND_* switch adds to a REC frame.
_STREAM_FIELDS = {
    CommandId.ENABLE_SEND_COUNTER: ("CNT",),
    CommandId.ENABLE_SEND_POG_FIX: ("FPOGX", "FPOGY", "FPOGS", "FPOGD", "FPOGID", "FPOGV"),
    CommandId.ENABLE_SEND_POG_BEST: ("BPOGX", "BPOGY", "BPOGV"),
    CommandId.ENABLE_SEND_CURSOR: ("CX", "CY", "CS"),
}

# What GET answers with before anything was SET.
_DEFAULT_VALUES = {
    CommandId.CALIBRATE_DELAY: {"VALUE": "0.5"},
    CommandId.CALIBRATE_TIMEOUT: {"VALUE": "1.0"},
    CommandId.CALIBRATE_SHOW: {"STATE": "0"},
    CommandId.CALIBRATE_START: {"STATE": "0"},
    CommandId.TRACKER_DISPLAY: {"STATE": "0"},
}


def _tag(name: str, attributes: dict[str, str]) -> bytes:
    body = " ".join(f'{key}="{escape_attribute(value)}"' for key, value in attributes.items())
    return (f"<{name} {body} />\r\n" if body else f"<{name} />\r\n").encode("utf-8")


class _ClientSession:
    """Per-connection device state."""
    def __init__(self, server: "SimulatedGazepointServer", writer: asyncio.StreamWriter):
        self.server = server
        self.writer = writer
        self.values: dict[CommandId, dict[str, str]] = {k: dict(v) for k, v in _DEFAULT_VALUES.items()}
        self.enabled: set[CommandId] = set()
        self.stream_task: Optional[asyncio.Task] = None

    def handle(self, command: Command) -> None:
        params = command.parameter_map

        if command.mode is CommandMode.SET:
            self.apply(command.id, params)
            attributes = {"ID": command.id.value, **self.values.get(command.id, params)}
        else:
            attributes = {"ID": command.id.value, **self.values.get(command.id, {"STATE": "1" if command.id in self.enabled else "0"})}

        if command.id is CommandId.CALIBRATE_RESET:
            attributes["PTS"] = "0"

        if self.server.acknowledge:
            self.writer.write(_tag("ACK", attributes))

    def apply(self, command_id: CommandId, params: dict[str, str]) -> None:
        if command_id.name.startswith("ENABLE_SEND_"):
            if params.get("STATE") == "1":
                self.enabled.add(command_id)
            else:
                self.enabled.discard(command_id)
            self.values[command_id] = {"STATE": params.get("STATE", "0")}
            if command_id is CommandId.ENABLE_SEND_DATA:
                self.toggle_stream()
            return

        if command_id is CommandId.CALIBRATE_START and params.get("STATE") == "1":
            self.writer.write(_tag("CAL", {"ID": "CALIB_START_PT", "PT": "1", "CALX": "0.50000", "CALY": "0.50000"}))

        if params:
            self.values[command_id] = dict(params)

    def toggle_stream(self) -> None:
        streaming = CommandId.ENABLE_SEND_DATA in self.enabled
        if streaming and self.stream_task is None:
            self.stream_task = asyncio.create_task(self.server._stream(self))
        elif not streaming and self.stream_task is not None:
            self.stream_task.cancel()
            self.stream_task = None


class SimulatedGazepointServer:
    """
    An in-process stand-in for Gazepoint Control, for development and
    tests.

    Acknowledges every command, streams REC frames at `frequency` while
    ENABLE_SEND_DATA is on, following a predictable pattern (a circular
    gaze path), and sends the empty `<REC />` marker when no field stream
    is enabled, like the real server.
    """
    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 0,
        frequency: int = 60,
        radius: float = 0.2,
        center: tuple[float, float] = (0.5, 0.5),
        speed: float = 0.5,
        acknowledge: bool = True,
    ):
        """
        Args:
            host: Interface to listen on.
            port: Port to listen on; 0 picks a free one (see `port` after start()).
            frequency: REC frames per second while streaming.
            radius: The radius of the circular path for the gaze point.
            center: The (x, y) center of the circular path.
            speed: Revolutions per second along the circle.
            acknowledge: Reply to commands with ACKs (off to exercise timeouts).
        """
        if frequency <= 0:
            raise ValueError("Frequency must be positive.")

        self.host = host
        self._requested_port = port
        self._interval_s = 1.0 / frequency
        self._radius = radius
        self._center_x, self._center_y = center
        self._speed = speed
        self.acknowledge = acknowledge

        self.received: list[Command] = []
        self._server: Optional[asyncio.base_events.Server] = None
        self._sessions: set[_ClientSession] = set()

    @property
    def port(self) -> int:
        if self._server is None:
            return self._requested_port
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle_client, self.host, self._requested_port)
        logger.info(f"Simulated Gazepoint server listening on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for session in list(self._sessions):
            if session.stream_task:
                session.stream_task.cancel()
            session.writer.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Simulated Gazepoint server stopped.")

    async def __aenter__(self) -> "SimulatedGazepointServer":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        session = _ClientSession(self, writer)
        self._sessions.add(session)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                try:
                    command = parse_command(line.decode("utf-8"))
                except (ProtocolError, UnicodeDecodeError) as e:
                    logger.warning(f"Simulated server ignoring {line!r}: {e}")
                    continue
                self.received.append(command)
                session.handle(command)
        except ConnectionError as e:
            logger.debug(f"Simulated server lost a client: {e}")
        finally:
            if session.stream_task:
                session.stream_task.cancel()
            self._sessions.discard(session)
            writer.close()

    def _frame(self, session: _ClientSession, frame_counter: int, elapsed: float) -> bytes:
        fields = [f for stream, names in _STREAM_FIELDS.items() if stream in session.enabled for f in names]
        if not fields:
            return _tag("REC", {})

        angle = elapsed * self._speed * 2 * math.pi
        x = self._center_x + self._radius * math.cos(angle)
        y = self._center_y + self._radius * math.sin(angle)
        values = {
            "CNT": str(frame_counter),
            "FPOGX": f"{x:.5f}", "FPOGY": f"{y:.5f}", "FPOGS": f"{elapsed:.5f}",
            "FPOGD": f"{self._interval_s:.5f}", "FPOGID": str(frame_counter // 30), "FPOGV": "1",
            "BPOGX": f"{x:.5f}", "BPOGY": f"{y:.5f}", "BPOGV": "1",
            "CX": f"{x:.5f}", "CY": f"{y:.5f}", "CS": "0",
        }
        return _tag("REC", {name: values[name] for name in fields})

    async def _stream(self, session: _ClientSession) -> None:
        start_time = time.monotonic()
        frame_counter = 0

        try:
            while not session.writer.is_closing():
                # --- Calculate precise timing for this frame ---
                target_time = start_time + (frame_counter * self._interval_s)

                session.writer.write(self._frame(session, frame_counter, time.monotonic() - start_time))

                sleep_duration = target_time + self._interval_s - time.monotonic()
                if sleep_duration > 0:
                    await asyncio.sleep(sleep_duration)
                else:
                    await asyncio.sleep(0)

                frame_counter += 1
        except asyncio.CancelledError:
            logger.debug("Simulated stream cancelled.")
