"""Service orchestrator — EconomyApp.

config → store init → service → command handler → HTTP server → run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from . import __version__
from .command_handler import CommandHandler
from .config import EconomyConfig, load_config
from .metrics_server import EconomyMetricsServer
from .service import EconomyService
from .store import EconomyStore, create_store
from .utils import Clock


class EconomyApp:
    """Top-level application orchestrator."""

    def __init__(
        self,
        config_path: str | None = None,
        config: EconomyConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config_path = Path(config_path) if config_path else None
        self.logger = logging.getLogger("economy")
        self._clock = clock

        # Components (initialized in start())
        self.config: EconomyConfig | None = config
        self.store: EconomyStore | None = None
        self.service: EconomyService | None = None
        self.command_handler: CommandHandler | None = None
        self.metrics_server: EconomyMetricsServer | None = None

        # State
        self._running = False
        self._start_time: float | None = None
        self._stop_event = asyncio.Event()

        # Counters (for metrics)
        self.commands_processed: int = 0

    @property
    def uptime_seconds(self) -> float:
        if self._start_time is None:
            return 0.0
        return time.time() - self._start_time

    async def setup(self) -> None:
        """Build every component without starting the HTTP server."""
        self._start_time = time.time()

        # 1. Load and validate config
        if self.config is None:
            if self.config_path is None:
                raise ValueError("EconomyApp needs a config or a config_path")
            self.config = load_config(str(self.config_path))
        self.logger.info(
            "Config loaded: %d daily quest(s), backend=%s",
            len(self.config.daily_quests), self.config.database.backend,
        )

        # 2. Initialize store
        self.store = create_store(
            self.config.database.backend,
            self.config.database.path,
            self.logger.getChild("store"),
        )
        await self.store.initialize()
        self.logger.info("Store initialized: %s", type(self.store).__name__)

        # 3. Domain service and request-reply handler
        self.service = EconomyService(
            self.config, self.store, self.logger, clock=self._clock,
        )
        self.command_handler = CommandHandler(self, self.logger.getChild("command"))

    async def start(self) -> None:
        """Start the economy service and block until stop() is called."""
        self.logger.info("Starting wordwanderer-economy v%s...", __version__)
        await self.setup()

        if self.config.metrics.enabled:
            self.metrics_server = EconomyMetricsServer(
                self,
                host=self.config.metrics.host,
                port=self.config.metrics.port,
                logger=self.logger.getChild("metrics"),
            )
            await self.metrics_server.start()

        self._running = True
        self.logger.info("wordwanderer-economy started.")
        await self._stop_event.wait()

    async def stop(self) -> None:
        """Gracefully shut down all components in reverse order."""
        if not self._running:
            return
        self.logger.info("Shutting down wordwanderer-economy...")
        self._running = False

        if self.metrics_server:
            await self.metrics_server.stop()
        if self.store:
            await self.store.close()

        self._stop_event.set()
        self.logger.info("wordwanderer-economy stopped.")
