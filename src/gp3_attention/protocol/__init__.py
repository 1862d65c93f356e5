from .codec import (
    EMPTY_RECORD_MARKERS,
    StreamDecoder,
    decode,
    encode,
    escape_attribute,
    parse_command,
    parse_line,
)

__all__ = [
    "EMPTY_RECORD_MARKERS",
    "StreamDecoder",
    "decode",
    "encode",
    "escape_attribute",
    "parse_command",
    "parse_line",
]
