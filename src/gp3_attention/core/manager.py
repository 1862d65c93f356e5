import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .calibration import CALIBRATION_CANCELLED, CANCEL, NO_ACTIVE_EDITOR, ScreenCalibration, ScreenCalibrationResult
from .client import GazepointClient
from .protocols import HostUI
from .runner import TelemetryRunner
from .state import ConnectionState, ScreenCalibrationPhase, SessionOutcome
from ..configs import AppSettings
from ..errors import PreconditionFailed, UserCancelled
from ..resources import CALIBRATION_TEXT
from ..sinks import LogSink, TelemetrySink, ZMQSink


logger = logging.getLogger(__name__)

OPEN = "Open"
SESSION_IN_PROGRESS = "A tracking session is already running."


def create_session_sinks(settings: AppSettings) -> list[TelemetrySink]:
    """Fresh sink instances for a new session."""
    sinks: list[TelemetrySink] = [LogSink()]
    if settings.zmq.enabled:
        sinks.append(ZMQSink(host=settings.zmq.host))
    return sinks


def create_client(settings: AppSettings, telemetry: Optional[TelemetryRunner] = None) -> GazepointClient:
    conn = settings.connection
    return GazepointClient(
        conn.host,
        conn.port,
        conn.debug,
        connect_timeout_s=conn.connect_timeout_s,
        ack_timeout_s=settings.acknowledgement.timeout_s,
        poll_checks=settings.acknowledgement.poll_checks,
        enabled_streams=conn.enabled_streams,
        timings=settings.calibration,
        telemetry=telemetry,
    )


class SessionManager:
    """
    The headless core of a tracking session.

    Owns the client and the telemetry runner for one session and drives
    the "launch tracking session" workflow against whatever host UI it is
    given. Nothing here is process-global: create one per session and
    call shutdown() when done.
    """
    def __init__(
        self,
        host: HostUI,
        settings: AppSettings,
        client: Optional[GazepointClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.host = host
        self.settings = settings
        self._sleep = sleep

        self._owns_client = client is None
        if client is None:
            self.telemetry: Optional[TelemetryRunner] = TelemetryRunner(
                create_session_sinks(settings),
                decimation=settings.telemetry.decimation,
                queue_size=settings.telemetry.queue_size,
            )
            client = create_client(settings, self.telemetry)
        else:
            self.telemetry = client.telemetry
        self.client: GazepointClient = client

        self.last_result: Optional[ScreenCalibrationResult] = None
        self._busy = False

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def is_connected(self) -> bool:
        return self.client.is_connected

    # --- Lifecycle ---

    async def start(self) -> None:
        if self.telemetry is not None:
            await self.telemetry.start()

    async def shutdown(self) -> None:
        await self.client.close()
        if self.telemetry is not None:
            await self.telemetry.stop()

    # --- Actions ---

    async def launch_tracking_session(self) -> SessionOutcome:
        """
        Swap in the calibration text, run the screen calibration, swap the
        user's context back. The prior context is restored whichever way
        the calibration ends.
        """
        if self._busy:
            logger.warning("A tracking session is already being launched.")
            await self.host.notify(SESSION_IN_PROGRESS)
            return SessionOutcome.FAILED

        self._busy = True
        try:
            self._require_context()
            self._renew_client()
            await self._confirm("Ready to open calibration text.", OPEN)
            result = await self._calibrate_on_material()
        except PreconditionFailed:
            logger.warning("Launch aborted: no active context.")
            await self.host.notify(NO_ACTIVE_EDITOR)
            return SessionOutcome.PRECONDITION_FAILED
        except UserCancelled:
            await self.host.notify(CALIBRATION_CANCELLED)
            return SessionOutcome.CANCELLED
        finally:
            self._busy = False

        self.last_result = result
        if result.completed:
            await self.host.notify("Calibration done!")
            return SessionOutcome.COMPLETED

        # Leave nothing half-open behind a cancelled or failed run.
        await self.client.close()
        if result.phase is ScreenCalibrationPhase.CANCELLED:
            return SessionOutcome.CANCELLED
        return SessionOutcome.FAILED

    async def _calibrate_on_material(self) -> ScreenCalibrationResult:
        handle = await self.host.open_material(CALIBRATION_TEXT)
        logger.info("Calibration text opened.")
        try:
            if self.settings.calibration.material_settle_s > 0:
                await self._sleep(self.settings.calibration.material_settle_s)
            calibration = ScreenCalibration(
                self.client, self.host, self.settings.calibration, self._sleep
            )
            return await calibration.run()
        finally:
            await self.host.restore_material(handle)
            logger.info("Prior context restored.")

    def _renew_client(self) -> None:
        """A CLOSED client is spent; reconnecting needs a new one."""
        if self._owns_client and self.client.state is ConnectionState.CLOSED:
            logger.info("Previous connection is closed, creating a new client.")
            self.client = create_client(self.settings, self.telemetry)

    def _require_context(self) -> None:
        if not self.host.has_active_context():
            raise PreconditionFailed("no active context")

    async def _confirm(self, message: str, choice: str) -> None:
        if await self.host.notify(message, (choice, CANCEL)) != choice:
            raise UserCancelled(message)
