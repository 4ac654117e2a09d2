"""Polling loop turning inbound telemetry into outbound command blocks.

The loop owns the reassembler and the dispatcher; the inbound stream and
the sink belong to the caller, who also releases them after the loop stops.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from . import constants
from .core.models import CommandLine
from .core.protocols import CommandSink, InboundStream
from .dispatcher import Dispatcher, format_commands
from .reassembly import StreamReassembler
from .records import RecordParseError, parse_record

LOGGER = logging.getLogger(__name__)


class DriveState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(slots=True)
class DriveStats:
    lines: int = 0
    parse_errors: int = 0
    line_errors: int = 0
    read_errors: int = 0
    sink_errors: int = 0
    blocks_forwarded: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "lines": self.lines,
            "parseErrors": self.parse_errors,
            "lineErrors": self.line_errors,
            "readErrors": self.read_errors,
            "sinkErrors": self.sink_errors,
            "blocksForwarded": self.blocks_forwarded,
        }


class DriveLoop:
    """Poll the inbound stream and forward formatted commands to ``sink``.

    The loop starts in ``RUNNING`` and only reaches ``STOPPED`` through the
    stop event passed to :meth:`run` (or task cancellation). Bad records,
    read errors and sink errors are logged and the loop carries on.
    """

    def __init__(
        self,
        inbound: InboundStream,
        sink: CommandSink,
        *,
        dispatcher: Dispatcher,
        reassembler: Optional[StreamReassembler] = None,
        poll_interval: float = constants.DRIVE_POLL_INTERVAL_SECONDS,
        read_size: int = constants.DRIVE_READ_SIZE,
    ) -> None:
        if inbound is None:
            raise ValueError("inbound stream must not be None")
        if sink is None:
            raise ValueError("sink must not be None")
        self._inbound = inbound
        self._sink = sink
        self._dispatcher = dispatcher
        self._reassembler = reassembler or StreamReassembler()
        self._poll_interval = poll_interval
        self._read_size = max(1, read_size)
        self._state = DriveState.RUNNING
        self.stats = DriveStats()

    @property
    def state(self) -> DriveState:
        return self._state

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    async def run(self, stop_event: asyncio.Event) -> None:
        LOGGER.info("Drive loop started; listening for telemetry")
        try:
            while not stop_event.is_set():
                chunk = self._poll()
                if not chunk:
                    await self._idle(stop_event)
                    continue
                for line in self._reassembler.feed(chunk):
                    await self._handle_line(line)
                # Let the stop signal through under steady input.
                await asyncio.sleep(0)
        except asyncio.CancelledError:
            LOGGER.info("Drive loop cancelled")
            raise
        finally:
            self._state = DriveState.STOPPED
            LOGGER.info("Drive loop stopped")

    def process_line(self, line: str) -> List[CommandLine]:
        """Parse and dispatch one complete line.

        Raises:
            RecordParseError: When the line is not a valid record.
        """

        record = parse_record(line)
        return self._dispatcher.dispatch_record(record)

    def _poll(self) -> bytes:
        try:
            available = self._inbound.bytes_available()
            if available <= 0:
                return b""
            return self._inbound.read(min(available, self._read_size))
        except Exception as exc:
            self.stats.read_errors += 1
            LOGGER.warning("Error reading inbound stream: %s", exc)
            return b""

    async def _idle(self, stop_event: asyncio.Event) -> None:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self._poll_interval)
        except asyncio.TimeoutError:
            pass

    async def _handle_line(self, line: str) -> None:
        self.stats.lines += 1
        try:
            commands = self.process_line(line)
        except RecordParseError as exc:
            self.stats.parse_errors += 1
            LOGGER.warning("Discarding %s record %r: %s", exc.code, exc.line, exc)
            return
        except Exception:
            self.stats.line_errors += 1
            LOGGER.exception("Unexpected error processing line %r", line)
            return

        if not commands:
            return

        try:
            result = self._sink(format_commands(commands))
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            self.stats.sink_errors += 1
            LOGGER.exception("Command sink failed for line %r", line)
            return
        self.stats.blocks_forwarded += 1
