"""Startup liveness exchange with the downstream controller."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from . import constants
from .core.protocols import InboundStream, OutboundStream
from .reassembly import StreamReassembler

LOGGER = logging.getLogger(__name__)


async def perform_handshake(
    inbound: InboundStream,
    outbound: OutboundStream,
    *,
    probe: str = constants.HANDSHAKE_PROBE,
    response: str = constants.HANDSHAKE_RESPONSE,
    timeout: float = constants.HANDSHAKE_TIMEOUT_SECONDS,
    poll_interval: float = constants.HANDSHAKE_POLL_INTERVAL_SECONDS,
    stop_event: Optional[asyncio.Event] = None,
    encoding: str = "utf-8",
    max_line_length: int = constants.MAX_LINE_LENGTH,
) -> bool:
    """Send ``probe`` once and wait for ``response`` within ``timeout`` seconds.

    The response is matched case-insensitively against whole trimmed lines.
    Setting ``stop_event`` while waiting aborts the exchange, which counts as
    a failure. No retry is attempted. ``encoding`` applies to the probe and
    to the response; longer lines than ``max_line_length`` are discarded.

    Returns:
        True when the response arrived in time, False otherwise.
    """

    try:
        outbound.write(f"{probe}\n".encode(encoding))
        outbound.flush()
    except Exception as exc:
        LOGGER.warning("Failed to send handshake probe: %s", exc)
        return False

    LOGGER.debug("Sent handshake probe %r; awaiting %r", probe, response)

    expected = response.strip().lower()
    reassembler = StreamReassembler(
        encoding=encoding, max_line_length=max_line_length
    )
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while True:
        try:
            available = inbound.bytes_available()
            if available > 0:
                for line in reassembler.feed(inbound.read(available)):
                    if line.lower() == expected:
                        return True
                    LOGGER.debug("Ignoring pre-handshake line %r", line)
        except Exception as exc:
            LOGGER.warning("Error reading handshake response: %s", exc)

        remaining = deadline - loop.time()
        if remaining <= 0:
            LOGGER.warning("No %r received within %.1fs", response, timeout)
            return False

        if stop_event is None:
            await asyncio.sleep(min(poll_interval, remaining))
            continue

        try:
            await asyncio.wait_for(
                stop_event.wait(), timeout=min(poll_interval, remaining)
            )
        except asyncio.TimeoutError:
            continue
        LOGGER.info("Handshake interrupted before a response arrived")
        return False
