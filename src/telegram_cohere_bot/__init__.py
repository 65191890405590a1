"""
Telegram Cohere bot

A Telegram bot that turns user prompts into text with the Cohere generate API.
"""

from __future__ import annotations

import argparse
import logging
import os
from functools import partial
from importlib import metadata

from dotenv import load_dotenv

from telegram_cohere_bot.core.session_registry import SessionRegistry
from telegram_cohere_bot.generation.cohere_service import CohereGenerationClient
from telegram_cohere_bot.generation.models import DEFAULT_MODEL
from telegram_cohere_bot.telegram.bot import TelegramBridge, build_bot, make_config, run_polling

LOG_FORMAT = "[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s"
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def get_version() -> str:
    try:
        return metadata.version("telegram-cohere-bot")
    except metadata.PackageNotFoundError:
        return "unknown"


def get_parser() -> argparse.ArgumentParser:
    """Return the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="cohere-bot")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {get_version()}")
    parser.add_argument("--telegram-token", default=os.getenv("TELEGRAM_BOT_TOKEN", ""), help="Telegram bot token")
    parser.add_argument("--cohere-api-key", default=os.getenv("COHERE_API_KEY", ""), help="Cohere API key")
    parser.add_argument(
        "--model",
        default=os.getenv("COHERE_MODEL", DEFAULT_MODEL),
        help="Cohere generation model.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO").upper(),
        choices=LOG_LEVELS,
        help="Logging verbosity.",
    )
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S", level=level)
    # python-telegram-bot logs every long-poll request through httpx.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main(args: list[str] | None = None) -> int:
    """Run the main program."""
    load_dotenv(override=False)
    parser = get_parser()
    opts = parser.parse_args(args=args)

    # argparse does not apply `choices` to defaults taken from LOG_LEVEL.
    if opts.log_level not in LOG_LEVELS:
        parser.error(f"--log-level (or LOG_LEVEL) must be one of {', '.join(LOG_LEVELS)}, got {opts.log_level!r}")
    if not opts.telegram_token.strip():
        parser.error("--telegram-token (or TELEGRAM_BOT_TOKEN) is required")
    if not opts.cohere_api_key.strip():
        parser.error("--cohere-api-key (or COHERE_API_KEY) is required")

    configure_logging(opts.log_level)
    config = make_config(token=opts.telegram_token, cohere_api_key=opts.cohere_api_key, model=opts.model)
    bridge = TelegramBridge(
        config=config,
        bot=build_bot(config),
        registry=SessionRegistry(),
        generator_factory=partial(CohereGenerationClient, config.cohere_api_key, model=config.model),
    )
    return run_polling(bridge)


__all__: list[str] = ["get_parser", "main"]
