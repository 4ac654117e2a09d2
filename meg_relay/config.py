"""Configuration loader for meg-relay."""

from __future__ import annotations

import codecs
import logging
from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from . import constants
from .core.models import RangePolicy

LOGGER = logging.getLogger(__name__)

_PARITY_VALUES = ("N", "E", "O", "M", "S")


@dataclass(slots=True)
class SerialConfig:
    port: Optional[str] = None
    baudrate: int = constants.DEFAULT_BAUDRATE
    bytesize: int = 8
    parity: str = "N"
    stopbits: float = 1
    write_timeout_seconds: float = 1.0


@dataclass(slots=True)
class HandshakeConfig:
    probe: str = constants.HANDSHAKE_PROBE
    response: str = constants.HANDSHAKE_RESPONSE
    timeout_seconds: float = constants.HANDSHAKE_TIMEOUT_SECONDS
    poll_interval_seconds: float = constants.HANDSHAKE_POLL_INTERVAL_SECONDS


@dataclass(slots=True)
class DriveConfig:
    poll_interval_seconds: float = constants.DRIVE_POLL_INTERVAL_SECONDS
    read_size: int = constants.DRIVE_READ_SIZE
    max_line_length: int = constants.MAX_LINE_LENGTH
    encoding: str = "utf-8"
    range_policy: RangePolicy = RangePolicy.PASS


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    verbose_transport: bool = False


@dataclass(slots=True)
class HealthConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 0


@dataclass(slots=True)
class RelayConfig:
    serial: SerialConfig
    handshake: HandshakeConfig
    drive: DriveConfig
    logging: LoggingConfig
    health: HealthConfig
    raw: ConfigParser
    path: Path
    bindings: Dict[str, List[str]] = field(default_factory=dict)


def _parse_list(value: str, *, default: Iterable[str]) -> List[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def _get_float(parser: ConfigParser, section: str, option: str, default: float) -> float:
    try:
        return parser.getfloat(section, option, fallback=default)
    except ValueError:
        LOGGER.warning(
            "Invalid value for [%s] %s; using default %s", section, option, default
        )
        return default


def _get_int(parser: ConfigParser, section: str, option: str, default: int) -> int:
    try:
        return parser.getint(section, option, fallback=default)
    except ValueError:
        LOGGER.warning(
            "Invalid value for [%s] %s; using default %s", section, option, default
        )
        return default


def _parse_range_policy(value: str) -> RangePolicy:
    try:
        return RangePolicy(value.strip().lower())
    except ValueError:
        LOGGER.warning("Unknown range_policy %r; falling back to 'pass'", value)
        return RangePolicy.PASS


def _parse_encoding(value: str, default: str) -> str:
    name = value.strip() or default
    try:
        codecs.lookup(name)
    except LookupError:
        LOGGER.warning("Unknown encoding %r; falling back to %r", name, default)
        return default
    return name


def _normalise_option_names(parser: ConfigParser) -> None:
    # Only actuator ids in [bindings] are case-sensitive.
    for section in parser.sections():
        if section == "bindings":
            continue
        for option in parser.options(section):
            lowered = option.lower()
            if option == lowered or option in parser.defaults():
                continue
            value = parser.get(section, option, raw=True)
            parser.remove_option(section, option)
            parser.set(section, lowered, value)


def load_config(path: Optional[Path] = None) -> RelayConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    parser.read_dict(
        {
            "serial": {
                "port": "",
                "baudrate": str(constants.DEFAULT_BAUDRATE),
                "bytesize": "8",
                "parity": "N",
                "stopbits": "1",
                "write_timeout_seconds": "1.0",
            },
            "handshake": {
                "probe": constants.HANDSHAKE_PROBE,
                "response": constants.HANDSHAKE_RESPONSE,
                "timeout_seconds": str(constants.HANDSHAKE_TIMEOUT_SECONDS),
                "poll_interval_seconds": str(constants.HANDSHAKE_POLL_INTERVAL_SECONDS),
            },
            "drive": {
                "poll_interval_seconds": str(constants.DRIVE_POLL_INTERVAL_SECONDS),
                "read_size": str(constants.DRIVE_READ_SIZE),
                "max_line_length": str(constants.MAX_LINE_LENGTH),
                "encoding": "utf-8",
                "range_policy": RangePolicy.PASS.value,
            },
            "logging": {
                "level": "INFO",
                "path": "",
                "verbose_transport": "false",
            },
            "health": {
                "enabled": "false",
                "host": "127.0.0.1",
                "port": "0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)
    _normalise_option_names(parser)

    serial_defaults = SerialConfig()
    parity = parser.get("serial", "parity", fallback="N").strip().upper()
    if parity not in _PARITY_VALUES:
        LOGGER.warning("Unknown serial parity %r; using 'N'", parity)
        parity = "N"

    serial = SerialConfig(
        port=parser.get("serial", "port", fallback="").strip() or None,
        baudrate=max(1, _get_int(parser, "serial", "baudrate", serial_defaults.baudrate)),
        bytesize=_get_int(parser, "serial", "bytesize", serial_defaults.bytesize),
        parity=parity,
        stopbits=_get_float(parser, "serial", "stopbits", serial_defaults.stopbits),
        write_timeout_seconds=max(
            0.0,
            _get_float(
                parser,
                "serial",
                "write_timeout_seconds",
                serial_defaults.write_timeout_seconds,
            ),
        ),
    )

    handshake_defaults = HandshakeConfig()
    handshake = HandshakeConfig(
        probe=parser.get("handshake", "probe").strip() or handshake_defaults.probe,
        response=parser.get("handshake", "response").strip()
        or handshake_defaults.response,
        timeout_seconds=max(
            0.0,
            _get_float(
                parser, "handshake", "timeout_seconds", handshake_defaults.timeout_seconds
            ),
        ),
        poll_interval_seconds=max(
            0.001,
            _get_float(
                parser,
                "handshake",
                "poll_interval_seconds",
                handshake_defaults.poll_interval_seconds,
            ),
        ),
    )

    drive_defaults = DriveConfig()
    drive = DriveConfig(
        poll_interval_seconds=max(
            0.001,
            _get_float(
                parser,
                "drive",
                "poll_interval_seconds",
                drive_defaults.poll_interval_seconds,
            ),
        ),
        read_size=max(1, _get_int(parser, "drive", "read_size", drive_defaults.read_size)),
        max_line_length=max(
            16,
            _get_int(parser, "drive", "max_line_length", drive_defaults.max_line_length),
        ),
        encoding=_parse_encoding(
            parser.get("drive", "encoding"), drive_defaults.encoding
        ),
        range_policy=_parse_range_policy(parser.get("drive", "range_policy")),
    )

    bindings: Dict[str, List[str]] = {}
    if parser.has_section("bindings"):
        # DEFAULT-section keys leak into every section; only read our own.
        for actuator_id in parser.options("bindings"):
            if actuator_id in parser.defaults():
                continue
            bindings[actuator_id] = _parse_list(
                parser.get("bindings", actuator_id), default=()
            )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        verbose_transport=parser.getboolean(
            "logging", "verbose_transport", fallback=False
        ),
    )

    health = HealthConfig(
        enabled=parser.getboolean("health", "enabled", fallback=False),
        host=parser.get("health", "host", fallback="127.0.0.1"),
        port=max(0, _get_int(parser, "health", "port", 0)),
    )

    return RelayConfig(
        serial=serial,
        handshake=handshake,
        drive=drive,
        logging=logging_config,
        health=health,
        raw=parser,
        path=config_path,
        bindings=bindings,
    )


def save_config(config: RelayConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
