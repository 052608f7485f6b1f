"""HTTP surface for wordwanderer-economy.

An aiohttp application exposing Prometheus metrics, a health check and a
JSON transport for the command handler.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from aiohttp import web

if TYPE_CHECKING:
    from .main import EconomyApp

_STATUS_BY_CODE = {
    "validation_error": 400,
    "unknown_command": 400,
    "not_found": 404,
    "insufficient_funds": 409,
    "already_full": 409,
    "unlimited_active": 409,
    "already_active": 409,
    "already_used": 409,
    "no_hearts_remaining": 409,
    "internal_error": 500,
}


class EconomyMetricsServer:
    """Economy-specific Prometheus endpoint plus command transport."""

    def __init__(
        self,
        app: EconomyApp,
        host: str = "0.0.0.0",
        port: int = 28290,
        logger: logging.Logger | None = None,
    ) -> None:
        self._app = app
        self._host = host
        self._port = port
        self._logger = logger or logging.getLogger("economy.metrics")
        self._runner: web.AppRunner | None = None

    def build_app(self) -> web.Application:
        web_app = web.Application()
        web_app.router.add_get("/health", self._handle_health)
        web_app.router.add_get("/metrics", self._handle_metrics)
        web_app.router.add_post("/command", self._handle_command)
        return web_app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        self._logger.info("HTTP server listening on %s:%d", self._host, self._port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    # ══════════════════════════════════════════════════════════
    #  Handlers
    # ══════════════════════════════════════════════════════════

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "healthy", **await self._get_health_details()})

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        lines = await self._collect_custom_metrics()
        return web.Response(text="\n".join(lines) + "\n", content_type="text/plain")

    async def _handle_command(self, request: web.Request) -> web.Response:
        try:
            body = await request.json()
        except json.JSONDecodeError:
            return web.json_response(
                {"success": False, "error": "Body must be JSON", "error_code": "validation_error"},
                status=400,
            )
        reply = await self._app.command_handler.handle_command(body)
        status = 200 if reply.get("success") else _STATUS_BY_CODE.get(reply.get("error_code"), 500)
        return web.json_response(reply, status=status)

    # ══════════════════════════════════════════════════════════
    #  Metrics
    # ══════════════════════════════════════════════════════════

    async def _collect_custom_metrics(self) -> list[str]:
        """Collect economy-specific Prometheus metrics."""
        service = self._app.service
        lines: list[str] = []

        # ── Counters ─────────────────────────────────────────
        lines.append(f"economy_commands_processed_total {self._app.commands_processed}")
        lines.append(f"economy_hearts_spent_total {service.hearts_spent_total}")
        lines.append(f"economy_gems_spent_total {service.gems_spent_total}")
        lines.append(f"economy_quest_gems_awarded_total {service.quest_gems_awarded_total}")
        lines.append(f"economy_lessons_recorded_total {service.lessons_recorded_total}")
        lines.append(f"economy_write_conflicts_total {service.write_conflicts_total}")
        for power_up, count in sorted(service.purchases_total.items()):
            lines.append(f'economy_power_up_purchases_total{{type="{power_up}"}} {count}')

        # ── Gauges ───────────────────────────────────────────
        accounts = await service.store.count_accounts()
        lines.append(f"economy_total_accounts {accounts}")
        lines.append(f"economy_uptime_seconds {self._app.uptime_seconds:.0f}")
        return lines

    async def _get_health_details(self) -> dict:
        """Return health details for the /health endpoint."""
        return {
            "store": type(self._app.service.store).__name__,
            "uptime_seconds": self._app.uptime_seconds,
        }
