"""
Gazepoint Control wire codec.

Outgoing commands are single XML-like lines::

    <SET ID="ENABLE_SEND_DATA" STATE="1" />\\r\\n
    <GET ID="CALIBRATE_DELAY" />\\r\\n

Incoming traffic is a stream of self-closing tags, one per line:
``<ACK .../>`` acknowledgements, ``<REC .../>`` gaze frames and
``<CAL .../>`` calibration progress. The server pads idle periods with an
empty ``<REC />`` marker, which carries nothing and is discarded.

Nothing in this module performs I/O.
"""
import logging
import xml.etree.ElementTree as ET
from typing import Iterable, Union
from xml.sax.saxutils import escape

from ..errors import ProtocolError
from ..models import (
    AcknowledgementRecord,
    CalibrationRecord,
    Command,
    CommandEchoRecord,
    CommandId,
    CommandMode,
    MalformedFrame,
    Record,
    TelemetryRecord,
)
from ..utils.logging import ThrottledLogger

logger = logging.getLogger(__name__)

LINE_TERMINATOR = "\r\n"
EMPTY_RECORD_MARKERS = frozenset({"<REC />", "<REC/>"})

_ATTR_ENTITIES = {'"': "&quot;", "\r": "&#13;", "\n": "&#10;"}
_COMMAND_TAGS = frozenset(mode.value for mode in CommandMode)


def escape_attribute(value: str) -> str:
    """Escapes a value for use inside a double-quoted attribute."""
    return escape(value, _ATTR_ENTITIES)


def encode(command: Command) -> str:
    """Serializes a command, keeping parameters in insertion order."""
    parts = [f'<{command.mode.value} ID="{escape_attribute(command.id.value)}"']
    for key, value in command.parameters:
        parts.append(f'{key}="{escape_attribute(value)}"')
    return " ".join(parts) + " />" + LINE_TERMINATOR


def _parse_tag(line: str) -> tuple[str, dict[str, str]]:
    try:
        element = ET.fromstring(line)
    except ET.ParseError as e:
        raise ProtocolError(f"not a well-formed tag: {e}") from e
    if len(element) or (element.text and element.text.strip()):
        raise ProtocolError("expected a self-closing tag")
    return element.tag, dict(element.attrib)


def parse_line(line: str) -> Union[Record, None]:
    """
    Parses one complete, stripped line from the server.

    Returns None for lines that are valid but carry nothing for us
    (acknowledgements for ids we don't know). SET/GET lines come back as
    a CommandEchoRecord. Raises ProtocolError for anything that isn't a
    recognised record.
    """
    tag, attributes = _parse_tag(line)

    if tag in _COMMAND_TAGS:
        command = parse_command(line)
        return CommandEchoRecord(command.mode, command.id, command.parameter_map)

    if tag == "ACK":
        raw_id = attributes.pop("ID", None)
        if raw_id is None:
            raise ProtocolError("ACK without an ID attribute")
        command_id = CommandId.lookup(raw_id)
        if command_id is None:
            _unknown_id_logger.warning("Ignoring ACK with unrecognised ID %r", raw_id)
            return None
        return AcknowledgementRecord(command_id, attributes)

    if tag == "REC":
        return TelemetryRecord(attributes)

    if tag.upper() == "CAL":
        return CalibrationRecord(attributes)

    raise ProtocolError(f"unknown record type <{tag}>")


def parse_command(line: str) -> Command:
    """Inverse of `encode`: reads a SET/GET line back into a Command."""
    tag, attributes = _parse_tag(line.strip())
    try:
        mode = CommandMode(tag)
    except ValueError:
        raise ProtocolError(f"<{tag}> is not a command") from None

    raw_id = attributes.pop("ID", None)
    command_id = CommandId.lookup(raw_id) if raw_id is not None else None
    if command_id is None:
        raise ProtocolError(f"unknown command ID {raw_id!r}")

    # ElementTree keeps attributes in document order.
    return Command(mode, command_id, tuple(attributes.items()))


def decode(
    partial: bytes, data: bytes
) -> tuple[list[Union[Record, MalformedFrame]], bytes]:
    """
    Splits `partial + data` into complete lines and parses each of them.

    Returns the parsed items, in line order, and the trailing bytes that
    were not yet terminated by a newline. Feeding the returned remainder
    back in with the next chunk yields the same records as decoding the
    whole stream at once.
    """
    buffer = partial + data
    *lines, remainder = buffer.split(b"\n")

    items: list[Union[Record, MalformedFrame]] = []
    for raw in lines:
        try:
            line = raw.decode("utf-8").strip()
        except UnicodeDecodeError as e:
            items.append(MalformedFrame(raw.decode("utf-8", "replace"), str(e)))
            continue

        if not line or line in EMPTY_RECORD_MARKERS:
            continue

        try:
            record = parse_line(line)
        except ProtocolError as e:
            items.append(MalformedFrame(line, str(e)))
            continue

        if record is not None:
            items.append(record)

    return items, remainder


_unknown_id_logger = ThrottledLogger(logger, interval_sec=5.0)


class StreamDecoder:
    """
    Keeps the partial-line buffer between reads of a single connection.
    Malformed lines are logged and counted, then dropped.
    """
    def __init__(self) -> None:
        self._partial = b""
        self._malformed_log = ThrottledLogger(logger, interval_sec=1.0)
        self.malformed_count = 0

    @property
    def pending_bytes(self) -> int:
        return len(self._partial)

    def feed(self, data: bytes) -> list[Record]:
        items, self._partial = decode(self._partial, data)
        return list(self._only_records(items))

    def reset(self) -> None:
        self._partial = b""

    def _only_records(self, items: Iterable[Union[Record, MalformedFrame]]) -> Iterable[Record]:
        for item in items:
            if isinstance(item, MalformedFrame):
                self.malformed_count += 1
                self._malformed_log.warning("Dropping malformed frame %r: %s", item.line, item.reason)
            else:
                yield item
