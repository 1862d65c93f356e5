import time
import logging
from datetime import datetime, timezone
from typing import Callable


class ThrottledLogger:
    """
    Rate-limits a noisy warning on a hot path (e.g. one per received line).
    Occurrences inside the interval are counted and reported with the next
    emitted message, so nothing disappears from the totals.
    """
    def __init__(
        self,
        logger: logging.Logger,
        interval_sec: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._logger = logger
        self._interval = interval_sec
        self._clock = clock
        self._last_log_time: float | None = None
        self._suppressed = 0

    def warning(self, message: str, *args) -> None:
        now = self._clock()

        if self._last_log_time is None or now - self._last_log_time >= self._interval:
            if self._suppressed:
                self._logger.warning("(+%d suppressed) " + message, self._suppressed, *args)
            else:
                self._logger.warning(message, *args)
            self._last_log_time = now
            self._suppressed = 0
        else:
            self._suppressed += 1


class HostLogHandler(logging.Handler):
    """
    Mirrors log records into the host's diagnostic sink (an output pane,
    a console), each line prefixed with an ISO-8601 UTC timestamp.
    """
    def __init__(self, sink: Callable[[str], None], level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self._sink = sink
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            stamp = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
            self._sink(f"[{stamp}] {self.format(record)}")
        except Exception:
            self.handleError(record)
