"""Command line entry point: ``clawbridge [run|keygen]``."""

from __future__ import annotations

import argparse
import asyncio
import sys

from loguru import logger

from clawbridge import __version__
from clawbridge.agent.bridge import Bridge
from clawbridge.config import load_settings
from clawbridge.errors import ConfigError
from clawbridge.gun.sea import SeaPair

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clawbridge",
        description="Bridge a GunDB chat inbox to an OpenClaw agent.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Listen on the inbox and reply via OpenClaw (default)")
    sub.add_parser("keygen", help="Print a new SEA keypair for OPENCLAW_AGENT_SEA")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "keygen":
        print(SeaPair.generate().to_json())
        return 0

    try:
        settings = load_settings()
    except ConfigError as e:
        configure_logging()
        logger.error(str(e))
        return 1

    configure_logging(settings.log_level)
    try:
        asyncio.run(Bridge(settings).run())
    except KeyboardInterrupt:
        logger.info("[bridge] Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
