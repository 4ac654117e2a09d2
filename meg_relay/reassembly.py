"""Reassembly of fragmented byte reads into complete text lines."""

from __future__ import annotations

import codecs
import logging
import re
from typing import List

from .constants import MAX_LINE_LENGTH

LOGGER = logging.getLogger(__name__)

# "\r\n" splits into two terminators around an empty line, which is dropped.
_TERMINATOR = re.compile(r"[\r\n]")


class StreamReassembler:
    """Turn arbitrary byte chunks into complete, trimmed, non-empty lines.

    Everything before the last terminator seen is emitted by :meth:`feed`; the
    remainder waits in :attr:`pending` for the next call. The emitted lines do
    not depend on how the bytes were split across calls.

    Lines longer than ``max_line_length`` characters (before trimming) are
    discarded with a warning. When such a line overflows the pending buffer,
    input is dropped up to the next terminator.
    """

    def __init__(
        self, *, encoding: str = "utf-8", max_line_length: int = MAX_LINE_LENGTH
    ) -> None:
        self._encoding = encoding
        self._max_line_length = max_line_length
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""
        self._discarding = False

    @property
    def pending(self) -> str:
        return self._pending

    @property
    def discarding(self) -> bool:
        return self._discarding

    def reset(self) -> None:
        self._decoder.reset()
        self._pending = ""
        self._discarding = False

    def feed(self, data: bytes) -> List[str]:
        text = self._decoder.decode(data)
        if not text:
            return []

        buffer = self._pending + text
        lines: List[str] = []
        position = 0

        for match in _TERMINATOR.finditer(buffer):
            segment = buffer[position : match.start()]
            position = match.end()
            if self._discarding:
                self._discarding = False
                continue
            self._emit(segment, lines)

        remainder = buffer[position:]
        if self._discarding:
            self._pending = ""
        elif len(remainder) > self._max_line_length:
            LOGGER.warning(
                "Discarding line exceeding %d characters (starts %r)",
                self._max_line_length,
                remainder[:32],
            )
            self._pending = ""
            self._discarding = True
        else:
            self._pending = remainder

        return lines

    def _emit(self, segment: str, lines: List[str]) -> None:
        if len(segment) > self._max_line_length:
            LOGGER.warning(
                "Discarding line exceeding %d characters (starts %r)",
                self._max_line_length,
                segment[:32],
            )
            return
        line = segment.strip()
        if line:
            lines.append(line)
