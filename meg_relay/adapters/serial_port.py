"""Serial transport adapter encapsulating pyserial usage."""

from __future__ import annotations

import logging
from typing import List, Optional

import serial
from serial.tools import list_ports

from ..config import SerialConfig
from ..constants import DEFAULT_SERIAL_PORT

LOGGER = logging.getLogger(__name__)


class SerialTransportError(RuntimeError):
    """Raised when the serial port cannot be opened."""


def list_serial_ports() -> List[str]:
    """Return the device names of the serial ports present on this host."""

    return sorted(port.device for port in list_ports.comports())


def resolve_port(configured: Optional[str] = None) -> str:
    """Pick the port to open: the configured one, else the first present one."""

    if configured:
        return configured

    names = list_serial_ports()
    LOGGER.info("Available serial ports: %s", ", ".join(names) or "none")
    if names:
        return names[0]
    LOGGER.warning("No serial ports detected; falling back to %s", DEFAULT_SERIAL_PORT)
    return DEFAULT_SERIAL_PORT


class SerialTransport:
    """Non-blocking byte endpoint over a single serial port.

    One instance serves as both the inbound and the outbound stream. It is
    owned by whoever opened it; the handshake and the drive loop only use it.
    """

    def __init__(self, config: SerialConfig, *, port: Optional[str] = None) -> None:
        self.config = config
        self.port = port or config.port
        self._serial: Optional[serial.Serial] = None

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self) -> None:
        if self.is_open:
            return

        port = resolve_port(self.port)
        stopbits = self.config.stopbits
        if float(stopbits).is_integer():
            stopbits = int(stopbits)

        try:
            self._serial = serial.Serial(
                port=port,
                baudrate=self.config.baudrate,
                bytesize=self.config.bytesize,
                parity=self.config.parity,
                stopbits=stopbits,
                timeout=0,
                write_timeout=self.config.write_timeout_seconds,
            )
        except (serial.SerialException, ValueError) as exc:
            raise SerialTransportError(
                f"Failed to open serial port {port!r}: {exc}"
            ) from exc

        self.port = port
        LOGGER.info("Opened serial port %s at %d baud", port, self.config.baudrate)

    def close(self) -> None:
        handle = self._serial
        self._serial = None
        if handle is None:
            return
        try:
            handle.close()
        except (serial.SerialException, OSError):
            LOGGER.debug("Error closing serial port %s", self.port, exc_info=True)
        else:
            LOGGER.info("Closed serial port %s", self.port)

    def bytes_available(self) -> int:
        return self._require_open().in_waiting

    def read(self, size: int) -> bytes:
        return self._require_open().read(size)

    def write(self, data: bytes) -> Optional[int]:
        return self._require_open().write(data)

    def flush(self) -> None:
        self._require_open().flush()

    def _require_open(self) -> serial.Serial:
        if self._serial is None:
            raise serial.PortNotOpenError()
        return self._serial

    def __enter__(self) -> "SerialTransport":
        self.open()
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()
