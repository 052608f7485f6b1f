"""Power-up ledger — gem-priced purchases and their effects.

Every purchase validates fully before touching the record: a failed
purchase raises and leaves the state exactly as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from .economy_state import DoubleOrNothing
from .errors import (
    AlreadyActive,
    AlreadyFull,
    AlreadyUsed,
    InsufficientFunds,
    UnlimitedActive,
    ValidationError,
)
from .utils import format_timestamp

if TYPE_CHECKING:
    from .config import PowerUpsConfig
    from .economy_state import EconomyState
    from .streak_tracker import StreakUpdate


class PowerUpType(Enum):
    REFILL_HEARTS = "refill_hearts"
    STREAK_FREEZE = "streak_freeze"
    XP_BOOST = "xp_boost"
    STREAK_SHIELD = "streak_shield"
    DOUBLE_OR_NOTHING = "double_or_nothing"
    SUPER_TRIAL = "super_trial"

    @classmethod
    def parse(cls, value: str | PowerUpType) -> PowerUpType:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Unknown power-up type: {value}") from None


@dataclass(frozen=True)
class PurchaseOutcome:
    power_up: PowerUpType
    cost: int
    gems: int
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.power_up.value, "cost": self.cost, "gems": self.gems, **self.details}


@dataclass(frozen=True)
class WagerSettlement:
    result: str
    payout: int
    streak: int


class PowerUpLedger:
    """Validates and applies power-up purchases."""

    def __init__(self, config: PowerUpsConfig, logger: logging.Logger) -> None:
        self._config = config
        self._logger = logger

    def price_of(self, power_up: PowerUpType) -> int:
        prices = {
            PowerUpType.REFILL_HEARTS: self._config.refill_hearts_cost,
            PowerUpType.STREAK_FREEZE: self._config.streak_freeze_cost,
            PowerUpType.XP_BOOST: self._config.xp_boost_cost,
            PowerUpType.STREAK_SHIELD: self._config.streak_shield_cost,
            PowerUpType.DOUBLE_OR_NOTHING: self._config.double_or_nothing.cost,
            PowerUpType.SUPER_TRIAL: 0,
        }
        return prices[power_up]

    def _check_funds(self, state: EconomyState, cost: int) -> None:
        if state.gems < cost:
            raise InsufficientFunds(state.gems, cost)

    # ══════════════════════════════════════════════════════════
    #  Purchases
    # ══════════════════════════════════════════════════════════

    def purchase(
        self, state: EconomyState, power_up: PowerUpType | str, now: datetime,
    ) -> PurchaseOutcome:
        power_up = PowerUpType.parse(power_up)
        handler = self._HANDLER_MAP[power_up]
        outcome = handler(self, state, now)
        self._logger.info(
            "Purchased %s for %d gems (balance %d)", power_up.value, outcome.cost, state.gems,
        )
        return outcome

    def refill_hearts(self, state: EconomyState, now: datetime) -> PurchaseOutcome:
        cost = self.price_of(PowerUpType.REFILL_HEARTS)
        if state.unlimited_active(now):
            raise UnlimitedActive()
        if state.hearts >= state.max_hearts:
            raise AlreadyFull()
        self._check_funds(state, cost)

        state.gems -= cost
        state.hearts = state.max_hearts
        state.hearts_updated_at = now
        return PurchaseOutcome(
            PowerUpType.REFILL_HEARTS, cost, state.gems,
            {"hearts": state.hearts, "max_hearts": state.max_hearts},
        )

    def _buy_streak_freeze(self, state: EconomyState, now: datetime) -> PurchaseOutcome:
        cost = self.price_of(PowerUpType.STREAK_FREEZE)
        self._check_funds(state, cost)
        state.gems -= cost
        state.streak_freezes += 1
        return PurchaseOutcome(
            PowerUpType.STREAK_FREEZE, cost, state.gems, {"streak_freezes": state.streak_freezes},
        )

    def _buy_xp_boost(self, state: EconomyState, now: datetime) -> PurchaseOutcome:
        cost = self.price_of(PowerUpType.XP_BOOST)
        self._check_funds(state, cost)
        state.gems -= cost
        state.xp_boosts += 1
        return PurchaseOutcome(PowerUpType.XP_BOOST, cost, state.gems, {"xp_boosts": state.xp_boosts})

    def _buy_streak_shield(self, state: EconomyState, now: datetime) -> PurchaseOutcome:
        cost = self.price_of(PowerUpType.STREAK_SHIELD)
        self._check_funds(state, cost)
        # Extends from the later of now and the current expiry
        base = max(now, state.streak_shield_until) if state.streak_shield_until else now
        state.gems -= cost
        state.streak_shield_until = base + timedelta(hours=self._config.streak_shield_hours)
        return PurchaseOutcome(
            PowerUpType.STREAK_SHIELD, cost, state.gems,
            {"streak_shield_until": format_timestamp(state.streak_shield_until)},
        )

    def _buy_double_or_nothing(self, state: EconomyState, now: datetime) -> PurchaseOutcome:
        cfg = self._config.double_or_nothing
        if state.double_or_nothing.active:
            raise AlreadyActive("A double-or-nothing wager is already active.")
        self._check_funds(state, cfg.cost)
        state.gems -= cfg.cost
        state.double_or_nothing = DoubleOrNothing(
            active=True,
            started_at=now,
            start_streak=state.current_streak,
            target_streak=state.current_streak + cfg.target_days,
            start_gems=state.gems,
            last_result=None,
        )
        return PurchaseOutcome(
            PowerUpType.DOUBLE_OR_NOTHING, cfg.cost, state.gems,
            {"double_or_nothing": state.double_or_nothing.to_dict()},
        )

    def _buy_super_trial(self, state: EconomyState, now: datetime) -> PurchaseOutcome:
        if state.super_trial_used:
            raise AlreadyUsed("The unlimited hearts trial has already been used.")
        state.super_trial_used = True
        state.unlimited_hearts_until = now + timedelta(hours=self._config.super_trial_hours)
        state.hearts = state.max_hearts
        state.hearts_updated_at = now
        return PurchaseOutcome(
            PowerUpType.SUPER_TRIAL, 0, state.gems,
            {
                "unlimited_hearts_until": format_timestamp(state.unlimited_hearts_until),
                "hearts": state.hearts,
            },
        )

    _HANDLER_MAP: dict[PowerUpType, Any] = {
        PowerUpType.REFILL_HEARTS: refill_hearts,
        PowerUpType.STREAK_FREEZE: _buy_streak_freeze,
        PowerUpType.XP_BOOST: _buy_xp_boost,
        PowerUpType.STREAK_SHIELD: _buy_streak_shield,
        PowerUpType.DOUBLE_OR_NOTHING: _buy_double_or_nothing,
        PowerUpType.SUPER_TRIAL: _buy_super_trial,
    }

    # ══════════════════════════════════════════════════════════
    #  Double-or-Nothing Settlement
    # ══════════════════════════════════════════════════════════

    def settle_double_or_nothing(
        self, state: EconomyState, streak: StreakUpdate,
    ) -> WagerSettlement | None:
        """Resolve an active wager after a streak update, if it is decided."""
        wager = state.double_or_nothing
        if not wager.active:
            return None

        cfg = self._config.double_or_nothing
        if state.current_streak >= wager.target_streak:
            payout = cfg.cost * cfg.payout_multiplier
            state.gems += payout
            wager.active = False
            wager.last_result = "won"
            self._logger.info("Double-or-nothing won at streak %d (+%d gems)", state.current_streak, payout)
            return WagerSettlement(result="won", payout=payout, streak=state.current_streak)

        if streak.reset:
            wager.active = False
            wager.last_result = "lost"
            self._logger.info("Double-or-nothing lost; streak broke at %d", streak.previous_streak)
            return WagerSettlement(result="lost", payout=0, streak=state.current_streak)

        return None
