"""Protocol definitions for the byte-stream endpoints."""

from __future__ import annotations

from typing import Awaitable, Callable, Optional, Protocol, runtime_checkable

# Receives one newline-joined block of formatted command lines.
CommandSink = Callable[[str], Optional[Awaitable[None]]]


@runtime_checkable
class InboundStream(Protocol):
    """Readable endpoint delivering telemetry bytes."""

    def bytes_available(self) -> int:
        """Return how many bytes can be read without waiting."""
        ...

    def read(self, size: int) -> bytes:
        """Read up to ``size`` available bytes without blocking indefinitely."""
        ...


@runtime_checkable
class OutboundStream(Protocol):
    """Writable endpoint toward the downstream controller.

    Both methods may raise; callers decide whether a failure is fatal.
    """

    def write(self, data: bytes) -> Optional[int]:
        """Write ``data`` to the endpoint."""
        ...

    def flush(self) -> None:
        """Push buffered bytes to the device."""
        ...


@runtime_checkable
class RelayTransport(InboundStream, OutboundStream, Protocol):
    """Bidirectional endpoint the relay opens once and closes on shutdown."""

    def open(self) -> None:
        ...

    def close(self) -> None:
        ...
