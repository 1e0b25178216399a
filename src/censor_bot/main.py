"""Main entry point for censor-bot."""

import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from censor_bot.config import Config, load_config

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(debug: bool = False, log_file: Path | str | None = "censor_bot.log") -> None:
    """Configure logging for the application.

    The console follows the --debug flag; the log file always gets DEBUG.
    """
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG if debug else logging.INFO)
    handlers: list[logging.Handler] = [console]

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=handlers,
    )

    # Reduce noise from libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("socketio").setLevel(logging.WARNING)
    logging.getLogger("engineio").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)


def load_api_keys_from_env(config: Config) -> Config:
    """Load Baidu credentials from environment if not in config."""
    # pydantic-settings doesn't auto-load nested secrets from unprefixed names
    if not config.baidu.api_key:
        key = os.getenv("BAIDU_API_KEY")
        if key:
            from pydantic import SecretStr

            config.baidu.api_key = SecretStr(key)

    if not config.baidu.secret_key:
        key = os.getenv("BAIDU_SECRET_KEY")
        if key:
            from pydantic import SecretStr

            config.baidu.secret_key = SecretStr(key)

    return config


async def async_main(
    config_path: str | None = None,
    debug: bool = False,
    debug_classifier: bool = False,
    debug_server: bool = True,
) -> None:
    """Async main entry point."""
    setup_logging(debug)
    logger = logging.getLogger(__name__)

    # Load .env file if present
    load_dotenv()

    # Load configuration
    config = load_config(config_path)
    config = load_api_keys_from_env(config)

    if debug_classifier:
        from censor_bot.core.logging import set_classifier_debug
        set_classifier_debug(True)
        logger.info("Classifier debug logging enabled - full censor requests and responses will be logged")

    logger.info("Starting Censor-Bot...")
    logger.info(f"Bot QQ: {config.iotqq.login_qq}")
    logger.info(f"Operator QQ: {config.iotqq.report_qq}")
    logger.info(f"Bridge: {config.iotqq.ws_api}")

    from censor_bot.orchestrator import Orchestrator

    try:
        orchestrator = Orchestrator(config, debug_server=debug_server)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    try:
        await orchestrator.start()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


def main() -> None:
    """Main entry point (sync wrapper)."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Censor-Bot: QQ group moderation via Baidu text censor",
    )
    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        help="Enable debug logging on the console",
    )
    parser.add_argument(
        "--debug-classifier",
        action="store_true",
        help="Log full requests and responses of every classifier call",
    )
    parser.add_argument(
        "--no-debug-server",
        action="store_true",
        help="Do not start the debug HTTP server",
    )

    args = parser.parse_args()

    asyncio.run(async_main(
        config_path=args.config,
        debug=args.debug,
        debug_classifier=args.debug_classifier,
        debug_server=not args.no_debug_server,
    ))


if __name__ == "__main__":
    main()
