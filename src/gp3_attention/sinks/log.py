import logging

from .base import TelemetrySink
from ..models import TelemetryRecord

logger = logging.getLogger(__name__)


class LogSink(TelemetrySink):
    """Writes each forwarded frame's summary to the log."""

    def __init__(self, level: int = logging.INFO):
        self._level = level
        self.frames_logged = 0

    async def send(self, record: TelemetryRecord) -> None:
        self.frames_logged += 1
        logger.log(self._level, "Gaze frame %s", record.summary())
