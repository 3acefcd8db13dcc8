"""Command-line interface for voice-relay."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .app import VoiceRelayApp
from .config import load_config
from .core.vocabulary import describe_commands, parse_command
from .logging import configure_logging
from .relay import SendOutcome, TransportNegotiationError

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voice-relay",
        description="Relay spoken commands to a BLE UART peripheral",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("start", help="Start the relay service")

    send_parser = subparsers.add_parser(
        "send", help="Connect, send a single command and disconnect"
    )
    send_parser.add_argument(
        "value", help=f"Command label, digit or name. {describe_commands()}"
    )

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        VoiceRelayApp.start(config)
        return 0

    if args.command == "send":
        configure_logging(
            config.logging.level,
            log_path=config.logging.path,
            log_network=config.logging.log_network,
        )
        code = parse_command(args.value)
        if code is None:
            LOGGER.error("Unknown command: %s (%s)", args.value, describe_commands())
            return 1
        app = VoiceRelayApp(config)
        try:
            outcome = asyncio.run(app.send_once(code))
        except TransportNegotiationError as exc:
            LOGGER.error("Connection failed: %s", exc)
            return 1
        return 0 if outcome == SendOutcome.SENT else 1

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
