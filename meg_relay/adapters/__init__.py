"""Adapter modules for external integrations."""

from .serial_port import (
    SerialTransport,
    SerialTransportError,
    list_serial_ports,
    resolve_port,
)

__all__ = [
    "SerialTransport",
    "SerialTransportError",
    "list_serial_ports",
    "resolve_port",
]
