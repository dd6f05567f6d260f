from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from .app import run_bot
from .commands import validate_descriptor
from .config import BotConfig
from .errors import ConfigurationError
from .structured_logging import configure_bot_logging, log_event

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Chat assistant bot with commands and periodic summary configuration",
    )
    parser.add_argument(
        "--config",
        required=True,
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level",
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate the configuration and command table, then exit without connecting",
    )
    return parser.parse_args(argv)


def check_config(config: BotConfig) -> list[str]:
    """Return one problem per line; an empty list means the bot can start."""

    problems: list[str] = []
    if not config.openai_api_key:
        problems.append("openai_api_key is missing (set it or OPENAI_API_KEY)")
    for descriptor in config.commands:
        try:
            validate_descriptor(descriptor)
        except ConfigurationError as exc:
            problems.append(str(exc))
    return problems


def main() -> None:
    args = parse_args()
    configure_bot_logging(getattr(logging, args.log_level))
    logger = logging.getLogger(__name__)

    config_path = Path(args.config)
    try:
        config = BotConfig.from_file(config_path)
        if args.check_config:
            problems = check_config(config)
            if config.admin.user_id is None and config.admin.username is None:
                logger.warning("No admin configured; error reports will be dropped")
            for problem in problems:
                logger.error("Configuration problem: %s", problem)
            log_event(
                "config_checked",
                level=logging.ERROR if problems else logging.INFO,
                chat_id=None,
                user_id=None,
                command=None,
                outcome="invalid" if problems else "ok",
                latency_ms=None,
                extra={
                    "config": str(config_path),
                    "commands": len(config.commands),
                    "problems": len(problems),
                },
            )
            sys.exit(1 if problems else 0)
        asyncio.run(run_bot(config))
    except (FileNotFoundError, ValueError, OSError) as exc:
        logger.error("Failed to start bot: %s", exc)
        log_event(
            "startup_failed",
            level=logging.ERROR,
            chat_id=None,
            user_id=None,
            command=None,
            outcome="failure",
            latency_ms=None,
            extra={"reason": str(exc)},
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
