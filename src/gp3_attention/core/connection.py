import asyncio
import logging
from typing import Callable, Optional

from .state import ConnectionState, SendOutcome
from ..models import Record
from ..protocol import StreamDecoder

logger = logging.getLogger(__name__)

RecordHandler = Callable[[Record], None]
ErrorHandler = Callable[[Exception], None]
CloseHandler = Callable[[], None]


class GazepointConnection:
    """
    Owns the TCP stream to Gazepoint Control.

    Raw bytes from the socket go through a StreamDecoder and every decoded
    record is handed to the registered record handlers, in line order and
    in registration order. Handlers run on the event loop and must return
    quickly.
    """
    def __init__(self, host: str = "127.0.0.1", port: int = 4242, connect_timeout_s: float = 5.0):
        self.host = host
        self.port = port
        self._connect_timeout_s = connect_timeout_s

        self._state = ConnectionState.DISCONNECTED
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._decoder = StreamDecoder()

        self._record_handlers: list[RecordHandler] = []
        self._error_handlers: list[ErrorHandler] = []
        self._close_handlers: list[CloseHandler] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def decoder(self) -> StreamDecoder:
        return self._decoder

    # --- Observer hooks ---

    def add_record_handler(self, handler: RecordHandler) -> None:
        self._record_handlers.append(handler)

    def remove_record_handler(self, handler: RecordHandler) -> None:
        if handler in self._record_handlers:
            self._record_handlers.remove(handler)

    def add_error_handler(self, handler: ErrorHandler) -> None:
        self._error_handlers.append(handler)

    def add_close_handler(self, handler: CloseHandler) -> None:
        self._close_handlers.append(handler)

    # --- Lifecycle ---

    async def connect(self) -> bool:
        """
        Opens the stream. Never raises: a failure is reported to the error
        handlers, leaves the connection CLOSED and returns False.
        """
        if self._state is not ConnectionState.DISCONNECTED:
            logger.warning("connect() ignored, connection is %s.", self._state.name)
            return self.is_connected

        self._state = ConnectionState.CONNECTING
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self._connect_timeout_s,
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.error("Could not connect to %s:%d: %s", self.host, self.port, str(e) or "timed out")
            self._state = ConnectionState.CLOSED
            self._emit_error(e)
            return False

        if self._state is not ConnectionState.CONNECTING:
            # close() ran while the socket was opening; CLOSED is terminal.
            logger.info("Connection to %s:%d closed while connecting.", self.host, self.port)
            writer, self._reader, self._writer = self._writer, None, None
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug("Error while closing socket: %s", e)
            return False

        self._state = ConnectionState.CONNECTED
        logger.info("Connected to %s:%d", self.host, self.port)
        self._reader_task = asyncio.create_task(self._read_loop(), name="gp3-reader")
        return True

    def send(self, data: bytes) -> SendOutcome:
        """Writes immediately; nothing is queued while disconnected."""
        if not self.is_connected or self._writer is None:
            logger.debug("Cannot send, not connected (%s).", self._state.name)
            return SendOutcome.NOT_CONNECTED

        self._writer.write(data)
        logger.debug("Sent: %s", data.decode("utf-8", "replace").strip())
        return SendOutcome.SENT

    async def close(self) -> None:
        """Idempotent. Only a CONNECTED stream gets a socket shutdown."""
        was_connected = self.is_connected
        self._state = ConnectionState.CLOSED

        if self._reader_task and self._reader_task is not asyncio.current_task():
            self._reader_task.cancel()
            await asyncio.gather(self._reader_task, return_exceptions=True)
        self._reader_task = None

        if was_connected and self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except OSError as e:
                logger.debug("Error while closing socket: %s", e)
            logger.info("Connection to %s:%d closed", self.host, self.port)
            self._notify_closed()
        self._writer = None
        self._reader = None

    # --- Receive path ---

    async def _read_loop(self) -> None:
        assert self._reader is not None
        try:
            while True:
                data = await self._reader.read(4096)
                if not data:
                    logger.info("Server closed the connection.")
                    break
                self._on_data(data)
        except OSError as e:
            logger.error("Socket error: %s", e)
            self._emit_error(e)

        # Peer went away (EOF or error); we did not call close().
        if self._state is ConnectionState.CONNECTED:
            self._state = ConnectionState.CLOSED
            if self._writer is not None:
                self._writer.close()
            self._notify_closed()

    def _on_data(self, data: bytes) -> None:
        for record in self._decoder.feed(data):
            for handler in tuple(self._record_handlers):
                try:
                    handler(record)
                except Exception:
                    logger.exception("Record handler %r failed", handler)

    def _emit_error(self, error: Exception) -> None:
        for handler in self._error_handlers:
            try:
                handler(error)
            except Exception:
                logger.exception("Error handler %r failed", handler)

    def _notify_closed(self) -> None:
        for handler in self._close_handlers:
            try:
                handler()
            except Exception:
                logger.exception("Close handler %r failed", handler)
