"""CLI entry point for wordwanderer-economy."""
import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from .config import EconomyConfig, load_config
from .main import EconomyApp

CONFIG_CANDIDATES = [
    "/etc/wordwanderer/economy/config.yaml",
    "./config.yaml",
]


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="WordWanderer Economy — hearts, gems, streaks and quests")
    parser.add_argument("--config", type=str, help="Path to config.yaml (defaults apply when none is found)")
    parser.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--memory", action="store_true", help="Use the in-memory store instead of SQLite")
    parser.add_argument("--port", type=int, help="Override metrics.port")
    parser.add_argument("--validate-config", action="store_true", help="Validate config and exit without starting")
    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace) -> EconomyConfig:
    """Load the config named on the command line, a default location, or built-in defaults."""
    config_path = args.config
    if not config_path:
        config_path = next((c for c in CONFIG_CANDIDATES if Path(c).exists()), None)

    config = load_config(config_path) if config_path else EconomyConfig()
    if args.memory:
        config.database.backend = "memory"
    if args.port:
        config.metrics.port = args.port
    return config


async def main_async(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.log_level)
    logger = logging.getLogger("economy")

    try:
        config = resolve_config(args)
    except Exception as e:
        logger.error("Config validation failed: %s", e)
        sys.exit(1)

    if args.validate_config:
        logger.info("Config is valid.")
        return

    app = EconomyApp(config=config)

    # Signal handling (Unix only; Windows uses KeyboardInterrupt)
    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(app.stop()))

    try:
        await app.start()
    except KeyboardInterrupt:
        pass
    finally:
        await app.stop()


def main() -> None:
    """Sync entry point for pyproject.toml [project.scripts]."""
    asyncio.run(main_async())


if __name__ == "__main__":
    main()
