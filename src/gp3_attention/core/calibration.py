"""
Calibration state machines.

Two machines live here. The device-level one is pure timed choreography
against the Gazepoint overlay (reset, show, start, hide) and never waits
for the server. The screen-level one wraps it in user prompts and two
stare windows that locate the visible text's corners.

Both are expressed as transition functions from the current phase to the
next one, so every step can be tested without a socket or a clock; the
runner classes only execute the side effects those functions describe.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from .protocols import HostUI
from .state import CalibrationPhase, ScreenCalibrationPhase, SendOutcome
from ..configs import CalibrationTimings
from ..errors import PreconditionFailed
from ..models import Command, CommandId

if TYPE_CHECKING:
    from .client import GazepointClient

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

CANCEL = "Cancel"
NO_ACTIVE_EDITOR = "No active editor!"
CALIBRATION_CANCELLED = "Calibration cancelled."


# --- Device-level calibration ---

@dataclass(frozen=True)
class Transition:
    next: CalibrationPhase
    commands: tuple[Command, ...] = ()
    delay_s: float = 0.0 # Waited before the commands are sent.


def device_transition(
    phase: CalibrationPhase,
    timings: CalibrationTimings,
    since_show_s: float = 0.0,
) -> Transition:
    """
    Next step of the device calibration from `phase`.

    `since_show_s` is the time already spent since the overlay was shown;
    both countdowns are measured from that moment.
    """
    P = CalibrationPhase

    if phase is P.IDLE:
        commands = [Command.set(CommandId.CALIBRATE_RESET)]
        if timings.point_timeout_s is not None:
            commands.append(Command.set(CommandId.CALIBRATE_TIMEOUT, VALUE=timings.point_timeout_s))
        if timings.point_delay_s is not None:
            commands.append(Command.set(CommandId.CALIBRATE_DELAY, VALUE=timings.point_delay_s))
        return Transition(P.RESET, tuple(commands))
    if phase is P.RESET:
        return Transition(P.SHOW_OVERLAY, (Command.set(CommandId.CALIBRATE_SHOW, STATE=1),))
    if phase is P.SHOW_OVERLAY:
        return Transition(P.COUNTDOWN_TO_START)
    if phase is P.COUNTDOWN_TO_START:
        return Transition(
            P.STARTED,
            (Command.set(CommandId.CALIBRATE_START, STATE=1),),
            max(0.0, timings.start_delay_s - since_show_s),
        )
    if phase is P.STARTED:
        return Transition(P.COUNTDOWN_TO_HIDE)
    if phase is P.COUNTDOWN_TO_HIDE:
        return Transition(
            P.HIDE_OVERLAY,
            (Command.set(CommandId.CALIBRATE_SHOW, STATE=0),),
            max(0.0, timings.hide_delay_s - since_show_s),
        )
    if phase is P.HIDE_OVERLAY:
        return Transition(P.COMPLETE)

    raise ValueError(f"No transition out of {phase.name}")


class DeviceCalibration:
    """
    Runs the device choreography once. Commands are fire-and-forget; the
    run resolves when the overlay has been told to hide.
    """
    def __init__(
        self,
        send: Callable[[Command], SendOutcome],
        timings: CalibrationTimings,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._send = send
        self._timings = timings
        self._sleep = sleep
        self._clock = clock
        self.phase = CalibrationPhase.IDLE

    async def run(self) -> CalibrationPhase:
        """Returns COMPLETE, or the phase reached when the link dropped."""
        logger.info("Calibrating...")
        shown_at: Optional[float] = None

        while self.phase is not CalibrationPhase.COMPLETE:
            since_show = 0.0 if shown_at is None else self._clock() - shown_at
            step = device_transition(self.phase, self._timings, since_show)

            if step.delay_s > 0:
                await self._sleep(step.delay_s)

            for command in step.commands:
                if self._send(command) is SendOutcome.NOT_CONNECTED:
                    logger.error("Calibration aborted in %s: not connected.", self.phase.name)
                    return self.phase

            logger.debug("Calibration %s -> %s", self.phase.name, step.next.name)
            self.phase = step.next
            if self.phase is CalibrationPhase.SHOW_OVERLAY:
                shown_at = self._clock()

        logger.info("Device calibration complete.")
        return self.phase


# --- Screen-level calibration ---

@dataclass(frozen=True)
class Prompt:
    message: str
    confirm: str
    done_notice: str


SCREEN_PROMPTS: dict[ScreenCalibrationPhase, Prompt] = {
    ScreenCalibrationPhase.AWAIT_USER_START: Prompt(
        "Ready to calibrate the eye tracker.",
        "Start Calibration",
        "Eye tracker calibrated successfully.",
    ),
    ScreenCalibrationPhase.AWAIT_FIRST_POINT_STARE: Prompt(
        "Step 1: Stare at the very first letter you can see for 5 seconds.",
        "Start 5 seconds",
        "Upper left calibrated.",
    ),
    ScreenCalibrationPhase.AWAIT_SECOND_POINT_STARE: Prompt(
        "Step 2: Stare at the very last letter you can see for 5 seconds.",
        "Start 5 seconds",
        "Lower right calibrated.",
    ),
}


def screen_transition(phase: ScreenCalibrationPhase, confirmed: bool) -> ScreenCalibrationPhase:
    """Where the user's answer at `phase` leads. Declining always cancels."""
    S = ScreenCalibrationPhase
    if phase.is_terminal:
        raise ValueError(f"{phase.name} is terminal")
    if not confirmed:
        return S.CANCELLED
    return {
        S.AWAIT_USER_START: S.AWAIT_FIRST_POINT_STARE,
        S.AWAIT_FIRST_POINT_STARE: S.AWAIT_SECOND_POINT_STARE,
        S.AWAIT_SECOND_POINT_STARE: S.DONE,
    }[phase]


@dataclass(frozen=True)
class ScreenCalibrationResult:
    phase: ScreenCalibrationPhase
    upper_left: Optional[tuple[float, float]] = None
    lower_right: Optional[tuple[float, float]] = None

    @property
    def completed(self) -> bool:
        return self.phase is ScreenCalibrationPhase.DONE


class ScreenCalibration:
    """
    The user-gated two-point screen calibration.

    AWAIT_USER_START --confirm--> device calibration --> AWAIT_FIRST_POINT_STARE
    --confirm--> stare --> AWAIT_SECOND_POINT_STARE --confirm--> stare --> DONE.
    Declining any prompt ends in CANCELLED without running anything further.
    """
    def __init__(
        self,
        client: "GazepointClient",
        host: HostUI,
        timings: CalibrationTimings,
        sleep: Sleep = asyncio.sleep,
    ):
        self._client = client
        self._host = host
        self._timings = timings
        self._sleep = sleep
        self.phase = ScreenCalibrationPhase.AWAIT_USER_START
        self._corners: dict[ScreenCalibrationPhase, Optional[tuple[float, float]]] = {}

    async def run(self) -> ScreenCalibrationResult:
        try:
            while not self.phase.is_terminal:
                prompt = SCREEN_PROMPTS[self.phase]
                confirmed = await self._ask(prompt)
                next_phase = screen_transition(self.phase, confirmed)

                if next_phase is ScreenCalibrationPhase.CANCELLED:
                    logger.info("Screen calibration cancelled at %s.", self.phase.name)
                    await self._host.notify(CALIBRATION_CANCELLED)
                    self.phase = next_phase
                    break

                if not await self._perform(self.phase):
                    self.phase = ScreenCalibrationPhase.FAILED
                    break

                await self._host.notify(prompt.done_notice)
                self.phase = next_phase
                if not self.phase.is_terminal and self._timings.step_pause_s > 0:
                    await self._sleep(self._timings.step_pause_s)

        except PreconditionFailed:
            logger.warning("Screen calibration aborted in %s: no active context.", self.phase.name)
            await self._host.notify(NO_ACTIVE_EDITOR)
            self.phase = ScreenCalibrationPhase.FAILED

        return ScreenCalibrationResult(
            self.phase,
            upper_left=self._corners.get(ScreenCalibrationPhase.AWAIT_FIRST_POINT_STARE),
            lower_right=self._corners.get(ScreenCalibrationPhase.AWAIT_SECOND_POINT_STARE),
        )

    async def _ask(self, prompt: Prompt) -> bool:
        if not self._host.has_active_context():
            raise PreconditionFailed(prompt.message)
        selection = await self._host.notify(prompt.message, (prompt.confirm, CANCEL))
        return selection == prompt.confirm

    async def _perform(self, phase: ScreenCalibrationPhase) -> bool:
        if phase is ScreenCalibrationPhase.AWAIT_USER_START:
            if await self._client.begin():
                return True
            await self._host.notify(
                f"Could not calibrate: no eye tracker at {self._client.host}:{self._client.port}."
            )
            return False

        point = await self._client.stare(self._timings.stare_window_s)
        if point is None:
            logger.warning("No valid fixation during the %s stare window.", phase.name)
        else:
            logger.info("Stare at %s settled on (%.3f, %.3f).", phase.name, *point)
        self._corners[phase] = point
        return True
