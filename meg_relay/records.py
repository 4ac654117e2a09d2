"""Parsing of ``CHANNEL:VALUE`` telemetry records."""

from __future__ import annotations

import re

from .core.models import SampleRecord

DELIMITER = ":"

_INTEGER = re.compile(r"[+-]?[0-9]+")


class RecordParseError(ValueError):
    """Raised when a telemetry line cannot be decoded into a record."""

    code = "invalid"

    def __init__(self, message: str, *, line: str) -> None:
        super().__init__(message)
        self.line = line


class MalformedRecordError(RecordParseError):
    """The line does not split into exactly one channel and one value."""

    code = "malformed"


class NotANumberError(RecordParseError):
    """The value segment is not a base-10 integer."""

    code = "not_a_number"


def parse_record(line: str) -> SampleRecord:
    """Decode one telemetry line.

    Args:
        line: A single line without terminator, e.g. ``"MEG_C3:512"``.

    Returns:
        The decoded :class:`SampleRecord`.

    Raises:
        MalformedRecordError: Missing or repeated delimiter, or empty channel.
        NotANumberError: The value is not an optionally signed decimal integer.
    """

    text = line.strip()
    delimiters = text.count(DELIMITER)
    if delimiters != 1:
        raise MalformedRecordError(
            f"Expected exactly one {DELIMITER!r} delimiter, found {delimiters}",
            line=line,
        )

    channel, raw_value = (part.strip() for part in text.split(DELIMITER))
    if not channel:
        raise MalformedRecordError("Channel identifier is empty", line=line)

    if not _INTEGER.fullmatch(raw_value):
        raise NotANumberError(
            f"Value {raw_value!r} is not a decimal integer", line=line
        )

    return SampleRecord(channel_id=channel, value=int(raw_value))
