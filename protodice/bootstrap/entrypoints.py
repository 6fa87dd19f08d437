"""
bootstrap/entrypoints.py - Logging setup and the protodice-sync CLI
"""

from __future__ import annotations
from typing import Optional
import argparse
import asyncio
import json
import logging
import sys

from ..errors.taxonomy import ChannelError
from ..sync.channel import SocketIOChannel
from ..sync.correlator import RANKING_SORT_KEYS, RefreshResult, RefreshTargets
from .config import ProtoDiceConfig, load_config
from .context import create_context

logger = logging.getLogger("bootstrap.entrypoints")


class JSONFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: str = None,
    json_format: bool = False,
    fmt: str = DEFAULT_LOG_FORMAT,
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path
        json_format: Use JSON format for logs
        fmt: Line format for plain-text logs
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(fmt or DEFAULT_LOG_FORMAT)

    # stderr keeps stdout clean for the JSON result
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("socketio").setLevel(logging.WARNING)
    logging.getLogger("engineio").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ProtoDice state refresh",
        prog="protodice-sync",
    )
    parser.add_argument("-s", "--server", help="Server base URL (overrides config)", default=None)
    parser.add_argument("-g", "--game", help="Game room code to refresh", default=None)
    parser.add_argument("-l", "--lobby", help="Lobby code to refresh", default=None)
    parser.add_argument(
        "-b", "--leaderboard",
        choices=list(RANKING_SORT_KEYS),
        help="Refresh the leaderboard with this sort key",
        default=None,
    )
    parser.add_argument("-c", "--config", help="Path to configuration file", default=None)
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON")
    return parser


async def run_refresh(config: ProtoDiceConfig, targets: RefreshTargets) -> RefreshResult:
    """Connect, run one full refresh and tear everything down."""
    channel = SocketIOChannel(
        reconnection_attempts=config.channel.reconnection_attempts,
        reconnection_delay_ms=config.channel.reconnection_delay_ms,
        reconnection_delay_max_ms=config.channel.reconnection_delay_max_ms,
        randomization_factor=config.channel.randomization_factor,
    )
    context = create_context(config, channel=channel)
    context.install()
    context.monitor.on_maintenance(lambda: logger.error("Server unreachable, entering maintenance mode"))
    context.monitor.attach()

    try:
        for url in config.server.candidates:
            try:
                await channel.connect(url, wait_timeout_ms=config.channel.connect_timeout_ms)
                context.correlator.base_url = url
                context.monitor.base_url = url
                break
            except ChannelError as e:
                logger.warning(f"{e}")
        else:
            logger.error("No server reachable, channel requests will fail")

        return await context.correlator.full_refresh(targets)
    finally:
        await channel.disconnect()
        await context.close()


def cli_main(args: list = None) -> int:
    """
    CLI entry point.

    Args:
        args: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 when every requested target refreshed)
    """
    parser = build_parser()
    parsed = parser.parse_args(args)

    targets = RefreshTargets(
        game_code=parsed.game,
        lobby_code=parsed.lobby,
        ranking_sort=parsed.leaderboard,
    )
    if targets.is_empty():
        parser.error("nothing to refresh: pass --game, --lobby or --leaderboard")

    config = load_config(parsed.config)
    if parsed.server:
        config.server.base_url = parsed.server.rstrip("/")
        config.server.fallback_urls = []

    log_level = "DEBUG" if parsed.verbose else config.logging.level
    setup_logging(
        level=log_level,
        log_file=config.logging.log_file,
        json_format=parsed.json_logs or config.logging.json_logs,
        fmt=config.logging.format,
    )

    try:
        result = asyncio.run(run_refresh(config, targets))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0 if result.ok else 1


def main(argv: Optional[list] = None) -> None:
    sys.exit(cli_main(argv))


if __name__ == "__main__":
    main()
