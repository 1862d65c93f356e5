import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from .state import SendOutcome
from ..models import AcknowledgementRecord, Command, CommandId, Record
from ..protocol import encode

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
SendLine = Callable[[bytes], SendOutcome]


@dataclass(eq=False)
class PendingAcknowledgement:
    """
    A sent command still waiting for its ACK.

    Compared by identity: two sends of the same line are two entries.
    The outcome comes from counting polls; `deadline` is what a timeout is
    reported against.
    """
    raw_message: str
    command_id: CommandId
    deadline: float


class AcknowledgementTracker:
    """
    Correlates commands that asked for confirmation with incoming ACKs.

    The server's ACK only echoes the command ID, so that is all we match
    on. KNOWN RACE: with two pending commands sharing an ID, the first ACK
    for that ID releases the oldest one, whichever request it was really
    answering. Callers that need individual outcomes must not overlap
    same-ID commands.
    """
    def __init__(
        self,
        send: SendLine,
        poll_checks: int = 5,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if poll_checks <= 0:
            raise ValueError("poll_checks must be positive.")
        self._send = send
        self._poll_checks = poll_checks
        self._sleep = sleep
        self._clock = clock
        self._pending: list[PendingAcknowledgement] = []

    @property
    def pending(self) -> tuple[PendingAcknowledgement, ...]:
        return tuple(self._pending)

    def send_without_ack(self, command: Command) -> SendOutcome:
        return self._send(encode(command).encode("utf-8"))

    async def send_with_ack(self, command: Command, timeout_s: float) -> SendOutcome:
        """
        Sends `command` and polls for its ACK `poll_checks` times, evenly
        spaced across `timeout_s`. The entry is removed on the last poll
        if nothing matched it.
        """
        message = encode(command)
        entry = PendingAcknowledgement(message, command.id, self._clock() + timeout_s)
        # Registered before the write so an immediate ACK cannot be missed.
        self._pending.append(entry)

        if self._send(message.encode("utf-8")) is SendOutcome.NOT_CONNECTED:
            self._discard(entry)
            return SendOutcome.NOT_CONNECTED

        interval = timeout_s / self._poll_checks
        for _ in range(self._poll_checks):
            await self._sleep(interval)
            if entry not in self._pending:
                logger.debug("Acknowledged: %s", message.strip())
                return SendOutcome.ACKNOWLEDGED

        self._discard(entry)
        logger.warning(
            "No acknowledgement for %s within %.1fs (deadline %.2f, now %.2f)",
            command.id.value, timeout_s, entry.deadline, self._clock(),
        )
        return SendOutcome.TIMED_OUT

    def on_record(self, record: Record) -> None:
        """Record handler: releases the oldest pending entry for an ACK's ID."""
        if not isinstance(record, AcknowledgementRecord):
            return

        logger.debug("ACK %s %s", record.id.value, dict(record.attributes))
        for entry in self._pending:
            if entry.command_id is record.id:
                self._pending.remove(entry)
                return

    def _discard(self, entry: PendingAcknowledgement) -> None:
        if entry in self._pending:
            self._pending.remove(entry)
