"""Economy service — the operations exposed to the request layer.

Every call follows the same unit of work:
load → normalize → regenerate hearts → operate → persist.
Calls for one user are serialized in-process, and the store's revision
check catches writers in other processes; a conflicting write retries the
whole unit from a fresh load. A failing operation writes nothing.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, TypeVar

from .config import EconomyConfig
from .daily_quest_engine import DailyQuestEngine
from .economy_state import EconomyState
from .errors import InternalError, NotFound, ValidationError
from .heart_regenerator import HeartRegenerator
from .power_up_ledger import PowerUpLedger, PowerUpType
from .store import EconomyStore
from .streak_tracker import StreakTracker
from .utils import Clock, format_timestamp, local_date, resolve_timezone, system_clock

T = TypeVar("T")


@dataclass
class _Transaction:
    state: EconomyState
    now: datetime
    today: date
    dirty: bool = False
    on_commit: list[Callable[[], None]] = field(default_factory=list)

    def commit(self) -> None:
        for callback in self.on_commit:
            callback()


class EconomyService:
    """Coordinates the economy components around the store."""

    def __init__(
        self,
        config: EconomyConfig,
        store: EconomyStore,
        logger: logging.Logger,
        clock: Clock | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._logger = logger
        self._tz = resolve_timezone(config.service.timezone)
        self._clock = clock or system_clock(self._tz)
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

        self.hearts = HeartRegenerator(config.hearts, logger.getChild("hearts"))
        self.streaks = StreakTracker(config.streaks, logger.getChild("streaks"))
        self.quests = DailyQuestEngine(config.daily_quests, logger.getChild("quests"), self._tz)
        self.ledger = PowerUpLedger(config.power_ups, logger.getChild("power_ups"))

        # Counters (for metrics)
        self.hearts_spent_total: int = 0
        self.gems_spent_total: int = 0
        self.quest_gems_awarded_total: int = 0
        self.lessons_recorded_total: int = 0
        self.write_conflicts_total: int = 0
        self.purchases_total: dict[str, int] = {t.value: 0 for t in PowerUpType}

    @property
    def store(self) -> EconomyStore:
        return self._store

    # ══════════════════════════════════════════════════════════
    #  Unit of Work
    # ══════════════════════════════════════════════════════════

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def _transact(self, user_id: str, operation: Callable[[_Transaction], T]) -> T:
        _validate_user_id(user_id)
        lock = self._lock_for(user_id)
        async with lock:
            retries = self._config.service.max_write_retries
            for attempt in range(1, retries + 1):
                loaded = await self._store.load(user_id)
                if loaded is None:
                    raise NotFound(f"No economy record for user {user_id}")
                record, revision = loaded

                now = self._clock()
                state, backfilled = EconomyState.from_record(record, now, self._config)
                regenerated = self.hearts.apply(state, now)
                txn = _Transaction(state=state, now=now, today=local_date(now, self._tz))

                result = operation(txn)

                if not (txn.dirty or backfilled or regenerated):
                    txn.commit()
                    return result
                if await self._store.save(user_id, state.to_record(), revision):
                    txn.commit()
                    return result

                self.write_conflicts_total += 1
                self._logger.warning(
                    "Revision conflict saving %s (attempt %d/%d)", user_id, attempt, retries,
                )
        raise InternalError(f"Could not save economy record for {user_id} after {retries} attempts")

    def _count(self, counter: str, amount: int) -> None:
        setattr(self, counter, getattr(self, counter) + amount)

    def _count_purchase(self, power_up: PowerUpType, cost: int) -> None:
        self.gems_spent_total += cost
        self.purchases_total[power_up.value] += 1

    def _snapshot(self, state: EconomyState, now: datetime) -> dict[str, Any]:
        return {
            "gems": state.gems,
            "hearts": state.hearts,
            "max_hearts": state.max_hearts,
            "heart_regen": self.hearts.regen_info(state, now).to_dict(),
            "streak_freezes": state.streak_freezes,
            "xp_boosts": state.xp_boosts,
            "streak_shield_until": format_timestamp(state.streak_shield_until),
            "unlimited_hearts_until": format_timestamp(state.unlimited_hearts_until),
            "super_trial_used": state.super_trial_used,
            "double_or_nothing": state.double_or_nothing.to_dict(),
            "current_streak": state.current_streak,
            "longest_streak": state.longest_streak,
            "total_xp": state.total_xp,
        }

    # ══════════════════════════════════════════════════════════
    #  Operations
    # ══════════════════════════════════════════════════════════

    async def open_account(self, user_id: str) -> dict[str, Any]:
        """Create the default record for a new user. Idempotent."""
        _validate_user_id(user_id)
        state = EconomyState.new(self._clock(), self._config)
        if await self._store.create(user_id, state.to_record()):
            self._logger.info("Opened economy record for %s", user_id)
        return await self.get_economy_snapshot(user_id)

    async def get_economy_snapshot(self, user_id: str) -> dict[str, Any]:
        return await self._transact(user_id, lambda txn: self._snapshot(txn.state, txn.now))

    async def spend_hearts(self, user_id: str, amount: int) -> dict[str, Any]:
        def _op(txn: _Transaction) -> dict[str, Any]:
            removed = self.hearts.spend(txn.state, amount, txn.now)
            txn.dirty = True
            txn.on_commit.append(lambda: self._count("hearts_spent_total", removed))
            return self._snapshot(txn.state, txn.now)

        return await self._transact(user_id, _op)

    async def refill_hearts(self, user_id: str) -> dict[str, Any]:
        return await self.purchase_power_up(user_id, PowerUpType.REFILL_HEARTS)

    async def purchase_power_up(self, user_id: str, power_up: PowerUpType | str) -> dict[str, Any]:
        power_up = PowerUpType.parse(power_up)

        def _op(txn: _Transaction) -> dict[str, Any]:
            outcome = self.ledger.purchase(txn.state, power_up, txn.now)
            txn.dirty = True
            txn.on_commit.append(lambda: self._count_purchase(power_up, outcome.cost))
            return outcome.to_dict()

        return await self._transact(user_id, _op)

    async def record_lesson_completion(
        self, user_id: str, xp_earned: int, time_spent_seconds: int,
    ) -> dict[str, Any]:
        """Feed one finished lesson into quests, streak and any active wager."""
        _validate_non_negative("xp_earned", xp_earned)
        _validate_non_negative("time_spent_seconds", time_spent_seconds)

        def _op(txn: _Transaction) -> dict[str, Any]:
            state = txn.state
            self.quests.record_activity(state, txn.now, xp_earned, time_spent_seconds)
            streak = self.streaks.update(state, txn.today, txn.now)
            settlement = self.ledger.settle_double_or_nothing(state, streak)
            rewards = self.quests.apply_rewards(state, txn.now)
            state.gems += rewards.reward_gems
            txn.dirty = True
            txn.on_commit.append(lambda: self._count("lessons_recorded_total", 1))
            txn.on_commit.append(lambda: self._count("quest_gems_awarded_total", rewards.reward_gems))

            return {
                "quest_rewards": rewards.to_dict(),
                "streak": streak.to_dict(),
                "double_or_nothing": {
                    **state.double_or_nothing.to_dict(),
                    "payout": settlement.payout if settlement else 0,
                },
                "gems": state.gems,
                "total_xp": state.total_xp,
            }

        return await self._transact(user_id, _op)

    async def get_daily_quest_state(self, user_id: str) -> dict[str, Any]:
        def _op(txn: _Transaction) -> dict[str, Any]:
            txn.dirty = self.quests.ensure_daily_stats(txn.state, txn.now)
            return {
                "reset_in_seconds": self.quests.reset_in_seconds(txn.now),
                "quests": self.quests.build_state(txn.state),
            }

        return await self._transact(user_id, _op)


def _validate_user_id(user_id: Any) -> None:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("user_id is required")


def _validate_non_negative(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer")
