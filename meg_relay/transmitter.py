"""Fire-and-forget writer for command lines toward the downstream controller."""

from __future__ import annotations

import logging

from .core.protocols import OutboundStream

LOGGER = logging.getLogger(__name__)


class Transmitter:
    """Write each command line with a trailing newline and flush immediately.

    A failed line is logged and the remaining lines are still attempted;
    :meth:`send` never raises a transport error to its caller.

    Writes are synchronous and run on the caller's thread. With a serial
    outbound stream each line may block for up to the port's write timeout
    (``[serial] write_timeout_seconds``) plus the drain in ``flush``.
    """

    def __init__(self, outbound: OutboundStream, *, encoding: str = "utf-8") -> None:
        if outbound is None:
            raise ValueError("outbound stream must not be None")
        self._outbound = outbound
        self._encoding = encoding
        self.lines_sent = 0
        self.lines_failed = 0

    def send(self, block: str) -> int:
        """Transmit every non-blank line of ``block``.

        Returns:
            Number of lines written and flushed successfully.
        """

        if not block:
            return 0

        delivered = 0
        for line in block.splitlines():
            if not line.strip():
                continue
            try:
                self._outbound.write(f"{line}\n".encode(self._encoding))
                self._outbound.flush()
            except Exception:
                self.lines_failed += 1
                LOGGER.error("Failed to transmit command %r", line, exc_info=True)
                continue
            delivered += 1

        self.lines_sent += delivered
        return delivered

    def __call__(self, block: str) -> None:
        self.send(block)
