"""Constants used across the meg-relay package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "meg-relay"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

DEFAULT_SERIAL_PORT = "COM3"
DEFAULT_BAUDRATE = 9600

HANDSHAKE_PROBE = "PING"
HANDSHAKE_RESPONSE = "PONG"
HANDSHAKE_TIMEOUT_SECONDS = 2.0
HANDSHAKE_POLL_INTERVAL_SECONDS = 0.05

DRIVE_POLL_INTERVAL_SECONDS = 0.01
DRIVE_READ_SIZE = 4096
MAX_LINE_LENGTH = 4096

CONSOLE_EXIT_COMMAND = "exit"
