"""Request-reply command handler.

Provides a dict-in/dict-out API over the economy service for the request
layer and admin tooling. Transport is supplied by the caller (the HTTP
server posts decoded JSON bodies here).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from . import __version__
from .errors import EconomyError, ValidationError

if TYPE_CHECKING:
    from .main import EconomyApp


class CommandHandler:
    """Routes command requests to the economy service."""

    def __init__(self, app: EconomyApp, logger: logging.Logger | None = None) -> None:
        self._app = app
        self._logger = logger or logging.getLogger("economy.command")

    async def handle_command(self, request: dict[str, Any]) -> dict[str, Any]:
        """Route a command request to the appropriate handler."""
        if not isinstance(request, dict):
            return self._error("", ValidationError("Request must be a JSON object"))

        command = request.get("command", "")
        handler = self._HANDLER_MAP.get(command)

        if not handler:
            return {
                "service": "economy",
                "command": command,
                "success": False,
                "error": f"Unknown command: {command}",
                "error_code": "unknown_command",
            }

        try:
            result = await handler(self, request)
            self._app.commands_processed += 1
            return {
                "service": "economy",
                "command": command,
                "success": True,
                "data": result,
            }
        except EconomyError as e:
            self._logger.info("Command %s rejected: %s", command, e.code)
            return self._error(command, e)
        except Exception as e:
            self._logger.exception("Command handler error for %s", command)
            return {
                "service": "economy",
                "command": command,
                "success": False,
                "error": str(e),
                "error_code": "internal_error",
            }

    @staticmethod
    def _error(command: str, error: EconomyError) -> dict[str, Any]:
        return {
            "service": "economy",
            "command": command,
            "success": False,
            "error": str(error),
            "error_code": error.code,
        }

    @staticmethod
    def _require(request: dict[str, Any], *names: str) -> None:
        missing = [n for n in names if request.get(n) in (None, "")]
        if missing:
            raise ValidationError(f"{', '.join(missing)} required")

    # ══════════════════════════════════════════════════════════
    #  System
    # ══════════════════════════════════════════════════════════

    async def _handle_ping(self, request: dict[str, Any]) -> dict[str, Any]:
        return {"pong": True, "version": __version__}

    async def _handle_health(self, request: dict[str, Any]) -> dict[str, Any]:
        return {
            "status": "healthy",
            "store": type(self._app.service.store).__name__,
            "uptime_seconds": self._app.uptime_seconds,
        }

    # ══════════════════════════════════════════════════════════
    #  Economy
    # ══════════════════════════════════════════════════════════

    async def _handle_account_open(self, request: dict[str, Any]) -> dict[str, Any]:
        self._require(request, "user_id")
        return await self._app.service.open_account(request["user_id"])

    async def _handle_snapshot(self, request: dict[str, Any]) -> dict[str, Any]:
        self._require(request, "user_id")
        return await self._app.service.get_economy_snapshot(request["user_id"])

    async def _handle_hearts_spend(self, request: dict[str, Any]) -> dict[str, Any]:
        self._require(request, "user_id")
        return await self._app.service.spend_hearts(request["user_id"], request.get("amount", 1))

    async def _handle_hearts_refill(self, request: dict[str, Any]) -> dict[str, Any]:
        self._require(request, "user_id")
        return await self._app.service.refill_hearts(request["user_id"])

    async def _handle_powerup_purchase(self, request: dict[str, Any]) -> dict[str, Any]:
        self._require(request, "user_id", "type")
        return await self._app.service.purchase_power_up(request["user_id"], request["type"])

    async def _handle_lesson_complete(self, request: dict[str, Any]) -> dict[str, Any]:
        self._require(request, "user_id")
        return await self._app.service.record_lesson_completion(
            request["user_id"],
            request.get("xp_earned", 0),
            request.get("time_spent_seconds", 0),
        )

    async def _handle_quests_daily(self, request: dict[str, Any]) -> dict[str, Any]:
        self._require(request, "user_id")
        return await self._app.service.get_daily_quest_state(request["user_id"])

    _HANDLER_MAP: dict[str, Any] = {
        "system.ping": _handle_ping,
        "system.health": _handle_health,
        "account.open": _handle_account_open,
        "economy.snapshot": _handle_snapshot,
        "hearts.spend": _handle_hearts_spend,
        "hearts.refill": _handle_hearts_refill,
        "powerup.purchase": _handle_powerup_purchase,
        "lesson.complete": _handle_lesson_complete,
        "quests.daily": _handle_quests_daily,
    }
