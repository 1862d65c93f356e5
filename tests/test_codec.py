"""Tests for the Gazepoint wire codec.

Tests cover:
1. Command encoding (format, parameter order, escaping)
2. Reading commands back (used by the simulator)
3. Line parsing for ACK / REC / CAL records
4. Stream decoding across arbitrary chunk boundaries
5. Empty-marker suppression and malformed-line handling
"""

import pytest

from gp3_attention.errors import ProtocolError
from gp3_attention.models import (
    AcknowledgementRecord,
    CalibrationRecord,
    CommandEchoRecord,
    Command,
    CommandId,
    CommandMode,
    MalformedFrame,
    TelemetryRecord,
)
from gp3_attention.protocol import StreamDecoder, decode, encode, parse_command, parse_line


# =============================================================================
# Encoding
# =============================================================================

class TestEncode:
    """Tests for outgoing command lines."""

    def test_set_with_state(self):
        command = Command.set(CommandId.ENABLE_SEND_DATA, STATE=1)
        assert encode(command) == '<SET ID="ENABLE_SEND_DATA" STATE="1" />\r\n'

    def test_set_without_parameters(self):
        assert encode(Command.set(CommandId.CALIBRATE_RESET)) == '<SET ID="CALIBRATE_RESET" />\r\n'

    def test_get(self):
        assert encode(Command.get(CommandId.CALIBRATE_DELAY)) == '<GET ID="CALIBRATE_DELAY" />\r\n'

    def test_parameter_order_is_insertion_order(self):
        command = Command.set(CommandId.CALIBRATE_TIMEOUT, VALUE=1.5, STATE=0)
        assert encode(command) == '<SET ID="CALIBRATE_TIMEOUT" VALUE="1.5" STATE="0" />\r\n'

    def test_quotes_are_escaped(self):
        command = Command.set(CommandId.TRACKER_DISPLAY, STATE='a"b')
        assert 'STATE="a&quot;b"' in encode(command)


class TestParseCommand:
    """Tests for reading command lines (the server side of the codec)."""

    def test_reads_back_encoded_command(self):
        command = Command.set(CommandId.CALIBRATE_DELAY, VALUE="0.75", STATE="1")
        assert parse_command(encode(command)) == command

    def test_reads_back_escaped_value(self):
        command = Command.set(CommandId.TRACKER_DISPLAY, STATE='x"y')
        assert parse_command(encode(command)).parameter_map == {"STATE": 'x"y'}

    def test_get_mode(self):
        command = parse_command('<GET ID="CALIBRATE_SHOW" />')
        assert command.mode is CommandMode.GET
        assert command.parameters == ()

    def test_rejects_unknown_id(self):
        with pytest.raises(ProtocolError):
            parse_command('<SET ID="LAUNCH_ROCKETS" />')

    def test_rejects_non_command_tag(self):
        with pytest.raises(ProtocolError):
            parse_command('<REC CNT="1" />')


# =============================================================================
# Line parsing
# =============================================================================

class TestParseLine:
    """Tests for single incoming lines."""

    def test_ack(self):
        record = parse_line('<ACK ID="ENABLE_SEND_DATA" STATE="1" />')
        assert isinstance(record, AcknowledgementRecord)
        assert record.id is CommandId.ENABLE_SEND_DATA
        assert dict(record.attributes) == {"STATE": "1"}

    def test_ack_with_unknown_id_is_ignored(self):
        assert parse_line('<ACK ID="SOMETHING_NEW" STATE="1" />') is None

    def test_ack_without_id_is_an_error(self):
        with pytest.raises(ProtocolError):
            parse_line('<ACK STATE="1" />')

    def test_rec(self):
        record = parse_line('<REC CNT="42" FPOGX="0.25" FPOGY="0.5" FPOGV="1" />')
        assert isinstance(record, TelemetryRecord)
        assert record.counter == 42
        assert record.fpog == (0.25, 0.5)
        assert record.fpog_valid

    @pytest.mark.parametrize("tag", ["CAL", "cal", "Cal"])
    def test_cal_in_any_case(self, tag):
        record = parse_line(f'<{tag} ID="CALIB_START_PT" PT="1" />')
        assert isinstance(record, CalibrationRecord)
        assert record.attributes["PT"] == "1"

    def test_command_line_is_echoed(self):
        record = parse_line('<GET ID="CALIBRATE_DELAY" />')
        assert isinstance(record, CommandEchoRecord)
        assert record.mode is CommandMode.GET
        assert record.id is CommandId.CALIBRATE_DELAY
        assert dict(record.attributes) == {}

    def test_command_line_with_unknown_id_is_an_error(self):
        with pytest.raises(ProtocolError):
            parse_line('<SET ID="LAUNCH_ROCKETS" />')

    def test_unknown_tag(self):
        with pytest.raises(ProtocolError):
            parse_line('<FOO BAR="1" />')

    def test_not_xml(self):
        with pytest.raises(ProtocolError):
            parse_line("hello there")


class TestTelemetryRecord:
    """Tests for field accessors on gaze frames."""

    def test_missing_fields_are_none(self):
        record = TelemetryRecord({})
        assert record.counter is None
        assert record.fpog is None
        assert record.cursor is None
        assert not record.fpog_valid

    def test_garbled_number_is_none(self):
        assert TelemetryRecord({"CNT": "abc"}).counter is None

    def test_summary_uses_lowercase_keys(self):
        summary = TelemetryRecord({"CNT": "5", "CX": "0.1"}).summary()
        assert summary["cnt"] == "5"
        assert summary["cx"] == "0.1"
        assert summary["fpogx"] is None

    def test_fields_are_read_only(self):
        record = TelemetryRecord({"CNT": "1"})
        with pytest.raises(TypeError):
            record.fields["CNT"] = "2"


# =============================================================================
# Stream decoding
# =============================================================================

STREAM = (
    b'<ACK ID="ENABLE_SEND_DATA" STATE="1" />\r\n'
    b'<REC />\r\n'
    b'<REC CNT="1" FPOGX="0.5" FPOGY="0.5" FPOGV="1" />\r\n'
    b'<CAL ID="CALIB_START_PT" PT="1" />\r\n'
    b'<REC CNT="2" FPOGX="0.6" FPOGY="0.4" FPOGV="1" />\r\n'
)


class TestDecode:
    """Tests for splitting a byte stream into records."""

    def test_keeps_unterminated_tail(self):
        items, remainder = decode(b"", b'<REC CNT="1" />\r\n<REC CNT="2"')
        assert [item.counter for item in items] == [1]
        assert remainder == b'<REC CNT="2"'

    def test_tail_completes_with_next_chunk(self):
        _, remainder = decode(b"", b'<REC CNT="1" />\r\n<REC CNT="2"')
        items, remainder = decode(remainder, b' />\r\n')
        assert [item.counter for item in items] == [2]
        assert remainder == b""

    def test_empty_markers_are_dropped(self):
        items, _ = decode(b"", b"<REC />\r\n<REC/>\r\n\r\n")
        assert items == []

    def test_malformed_line_is_reported_in_place(self):
        items, _ = decode(b"", b'garbage\r\n<REC CNT="3" />\r\n')
        assert isinstance(items[0], MalformedFrame)
        assert items[0].line == "garbage"
        assert items[1].counter == 3

    def test_invalid_utf8_is_malformed(self):
        items, _ = decode(b"", b"\xff\xfe\r\n")
        assert len(items) == 1
        assert isinstance(items[0], MalformedFrame)

    @pytest.mark.parametrize(
        "parameters",
        [
            {},
            {"STATE": "1"},
            {"VALUE": "0.75", "STATE": "0"},
            {"STATE": "1", "VALUE": "2.5", "X": "a\"b"},
        ],
        ids=["none", "one", "two", "three"],
    )
    def test_encoded_command_decodes_to_one_record(self, parameters):
        command = Command.set(CommandId.CALIBRATE_TIMEOUT, **parameters)

        items, remainder = decode(b"", encode(command).encode())

        assert remainder == b""
        assert len(items) == 1
        assert isinstance(items[0], CommandEchoRecord)
        assert items[0].id is CommandId.CALIBRATE_TIMEOUT
        assert dict(items[0].attributes) == parameters

    def test_every_split_point_yields_the_same_records(self):
        expected = StreamDecoder().feed(STREAM)
        assert len(expected) == 4

        for split in range(len(STREAM) + 1):
            decoder = StreamDecoder()
            records = decoder.feed(STREAM[:split]) + decoder.feed(STREAM[split:])
            assert records == expected, f"split at byte {split}"
            assert decoder.pending_bytes == 0


class TestStreamDecoder:
    """Tests for the per-connection decoder."""

    def test_counts_malformed_lines(self):
        decoder = StreamDecoder()
        records = decoder.feed(b'<BOGUS />\r\nnot xml\r\n<REC CNT="9" />\r\n')
        assert [r.counter for r in records] == [9]
        assert decoder.malformed_count == 2

    def test_byte_at_a_time(self):
        decoder = StreamDecoder()
        records = []
        for i in range(len(STREAM)):
            records.extend(decoder.feed(STREAM[i:i + 1]))
        assert [type(r) for r in records] == [
            AcknowledgementRecord, TelemetryRecord, CalibrationRecord, TelemetryRecord,
        ]

    def test_reset_drops_partial_line(self):
        decoder = StreamDecoder()
        decoder.feed(b'<REC CNT="1"')
        assert decoder.pending_bytes > 0
        decoder.reset()
        assert decoder.pending_bytes == 0
        assert decoder.feed(b'<REC CNT="2" />\r\n')[0].counter == 2
