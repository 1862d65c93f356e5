from abc import ABC, abstractmethod

from ..models import TelemetryRecord


class TelemetrySink(ABC):
    """
    Destination for the decimated gaze telemetry.

    Sinks are started before the first frame, receive frames one at a time
    on the event loop, and are closed when the session ends. `send` must
    not block the loop.
    """

    async def start(self) -> None:
        """Acquire resources (sockets, files). Default: nothing to do."""

    @abstractmethod
    async def send(self, record: TelemetryRecord) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        """Release resources. Default: nothing to do."""
