"""Command-line interface for meg-relay."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .adapters import list_serial_ports
from .app import RelayApp
from .catalog import build_catalog
from .config import load_config, save_config
from .index import ChannelMotorIndex

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meg-relay", description="Relay MEG telemetry to actuator commands"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    start_parser = subparsers.add_parser("start", help="Start relaying telemetry")
    start_parser.add_argument(
        "--port", help="Serial port to open (overrides the configuration)"
    )
    start_parser.add_argument(
        "--baudrate", type=int, help="Serial bit rate (overrides the configuration)"
    )
    start_parser.add_argument(
        "--no-console",
        action="store_true",
        help="Do not watch stdin for the 'exit' command",
    )

    subparsers.add_parser("list-ports", help="List the serial ports on this host")

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and bindings, then exit"
    )

    init_parser = subparsers.add_parser(
        "init-config", help="Write a configuration file populated with defaults"
    )
    init_parser.add_argument(
        "--force", action="store_true", help="Overwrite an existing file"
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        if args.port:
            config.serial.port = args.port
            config.raw.set("serial", "port", args.port)
        if args.baudrate:
            config.serial.baudrate = args.baudrate
            config.raw.set("serial", "baudrate", str(args.baudrate))
        return RelayApp.start(config, console=not args.no_console)

    if args.command == "list-ports":
        ports = list_serial_ports()
        if not ports:
            print("No serial ports found")
        for name in ports:
            print(name)
        return 0

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        catalog = build_catalog(config.bindings)
        index = ChannelMotorIndex.build(catalog.regions, catalog.actuators)
        print("[index]")
        for region_id, actuator_ids in index.as_dict().items():
            print(f"{region_id} = {', '.join(actuator_ids)}")
        return 0

    if args.command == "init-config":
        if config.path.exists() and not args.force:
            LOGGER.error(
                "Configuration already exists at %s. Use --force to overwrite.",
                config.path,
            )
            return 1
        save_config(config)
        print(f"Wrote {config.path!s}")
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
