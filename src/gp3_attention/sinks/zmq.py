import logging
import struct
from typing import Final

import zmq
import zmq.asyncio

from .base import TelemetrySink
from ..models import TelemetryRecord

logger = logging.getLogger(__name__)


class ZMQSink(TelemetrySink):
    """
    Publishes every forwarded gaze frame on a ZMQ PUB socket so other
    processes (a logger, a live plot) can subscribe to the "gaze" topic.

    Message layout, network byte order, 25 bytes:

        b"gaze" | int64 counter (-1 without CNT) | float32 FPOGX | float32 FPOGY | bool FPOGV
    """

    _FRAME: Final[struct.Struct] = struct.Struct("!qff?")
    _TOPIC: Final[bytes] = b"gaze"
    _NO_POINT: Final[tuple[float, float]] = (-1.0, -1.0)

    def __init__(self, host: str = "tcp://*:5555", high_water_mark: int = 100):
        """
        Args:
            host: Endpoint to bind, e.g. "tcp://*:5555" or "ipc:///tmp/gaze".
            high_water_mark: Messages buffered per slow subscriber before dropping.
        """
        self.host = host

        self._ctx = zmq.asyncio.Context()
        self._sock = self._ctx.socket(zmq.PUB)
        self._sock.setsockopt(zmq.SNDHWM, high_water_mark)

    async def start(self) -> None:
        try:
            self._sock.bind(self.host)
        except zmq.ZMQError as e:
            logger.error(f"ZMQSink could not bind {self.host}: {e}")
            raise
        logger.info(f"ZMQSink publishing on {self.host}")

    @classmethod
    def pack(cls, record: TelemetryRecord) -> bytes:
        point = record.fpog
        counter = record.counter
        x, y = point if point is not None else cls._NO_POINT
        payload = cls._FRAME.pack(
            -1 if counter is None else counter,
            x,
            y,
            point is not None and record.fpog_valid,
        )
        return cls._TOPIC + payload

    async def send(self, record: TelemetryRecord) -> None:
        try:
            await self._sock.send(self.pack(record))
        except zmq.ZMQError as e:
            logger.error(f"ZMQSink dropped frame {record.counter}: {e}")

    async def close(self) -> None:
        self._sock.close(linger=0)
        self._ctx.term()
        logger.info("ZMQSink closed.")
