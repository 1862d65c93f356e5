import asyncio
import logging
from typing import Sequence

from ..models import Record, TelemetryRecord
from ..sinks import TelemetrySink
from ..utils.logging import ThrottledLogger

logger = logging.getLogger(__name__)


class EndToken:
    """Sentinel type to signal the end of the frame stream."""
    __slots__ = ()

    def __repr__(self) -> str:
        return "<EndToken>"

_END = EndToken()


class TelemetryRunner:
    """
    Decimates the REC stream and feeds the survivors to the sinks.

    Every frame is parsed upstream; only frames whose counter is a multiple
    of `decimation` are queued. Frames without a CNT field are decimated on
    a running count instead. Created fresh for every session.
    """
    def __init__(self, sinks: Sequence[TelemetrySink], decimation: int = 180, queue_size: int = 1000):
        if decimation <= 0:
            raise ValueError("decimation must be positive.")
        self.sinks = sinks
        self.decimation = decimation
        self._queue: asyncio.Queue[TelemetryRecord | EndToken] = asyncio.Queue(maxsize=queue_size)
        self._running = False
        self._loop_task: asyncio.Task | None = None
        self._drop_logger = ThrottledLogger(logger, interval_sec=1.0)

        self.frames_seen = 0
        self.frames_forwarded = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def should_forward(self, record: TelemetryRecord) -> bool:
        counter = record.counter
        if counter is None:
            counter = self.frames_seen
        return counter % self.decimation == 0

    def on_record(self, record: Record) -> None:
        """Record handler, called on the event loop for every decoded record."""
        if not isinstance(record, TelemetryRecord):
            return

        forward = self.should_forward(record)
        self.frames_seen += 1
        if not forward or not self._running:
            return

        try:
            self._queue.put_nowait(record)
            self.frames_forwarded += 1
        except asyncio.QueueFull:
            self._drop_logger.warning("Telemetry queue full, dropping frame %s", record.counter)

    async def start(self) -> None:
        if self._running:
            return

        logger.info("Starting TelemetryRunner (1 frame in %d)...", self.decimation)
        await asyncio.gather(*(s.start() for s in self.sinks))
        self._running = True
        self._loop_task = asyncio.create_task(self._process_loop(), name="gp3-telemetry")

    async def stop(self) -> None:
        if not self._running:
            return

        logger.info("Stopping TelemetryRunner...")
        self._running = False
        await self._queue.put(_END)
        if self._loop_task:
            await self._loop_task
            self._loop_task = None

        await asyncio.gather(*(s.close() for s in self.sinks))
        logger.info(
            "TelemetryRunner stopped (%d frames seen, %d forwarded).",
            self.frames_seen, self.frames_forwarded,
        )

    async def _process_loop(self) -> None:
        """Hot loop."""
        while True:
            item = await self._queue.get()
            if item is _END:
                break

            results = await asyncio.gather(
                *(s.send(item) for s in self.sinks), return_exceptions=True
            )
            for sink, result in zip(self.sinks, results):
                if isinstance(result, Exception):
                    logger.error("Sink %s failed: %s", type(sink).__name__, result)
