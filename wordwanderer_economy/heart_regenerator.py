"""Heart regenerator — lazy, time-based heart replenishment.

No timer ever fires. Hearts are recomputed from the elapsed time whenever a
record is read, so every operation that looks at hearts runs ``apply`` first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from .errors import NoHeartsRemaining, ValidationError
from .utils import ceil_seconds

if TYPE_CHECKING:
    from .config import HeartsConfig
    from .economy_state import EconomyState


@dataclass(frozen=True)
class HeartRegenInfo:
    next_in_seconds: int
    full_in_seconds: int

    def to_dict(self) -> dict[str, int]:
        return {"next_in_seconds": self.next_in_seconds, "full_in_seconds": self.full_in_seconds}


class HeartRegenerator:
    """Applies regeneration and heart spending to an EconomyState."""

    def __init__(self, config: HeartsConfig, logger: logging.Logger) -> None:
        self._config = config
        self._logger = logger
        self._interval = timedelta(minutes=config.regen_interval_minutes)

    def apply(self, state: EconomyState, now: datetime) -> bool:
        """Bring hearts up to date. Returns True if hearts changed."""
        if state.unlimited_active(now):
            changed = state.hearts != state.max_hearts
            state.hearts = state.max_hearts
            state.hearts_updated_at = now
            return changed

        if state.hearts >= state.max_hearts:
            # Full hearts must not bank elapsed time toward future regen
            state.hearts = state.max_hearts
            state.hearts_updated_at = now
            return False

        elapsed = now - state.hearts_updated_at
        if elapsed < self._interval:
            return False

        hearts_to_add = elapsed // self._interval
        before = state.hearts
        state.hearts = min(state.max_hearts, state.hearts + hearts_to_add)
        # Advance by whole intervals only; the remainder counts toward the next heart
        state.hearts_updated_at += hearts_to_add * self._interval
        self._logger.debug(
            "Regenerated %d heart(s): %d -> %d", hearts_to_add, before, state.hearts,
        )
        return state.hearts != before

    def regen_info(self, state: EconomyState, now: datetime) -> HeartRegenInfo:
        """Countdown to the next heart and to full hearts."""
        if state.hearts >= state.max_hearts or state.unlimited_active(now):
            return HeartRegenInfo(next_in_seconds=0, full_in_seconds=0)

        elapsed = now - state.hearts_updated_at
        next_in = max(self._interval - elapsed, timedelta(0))
        missing = state.max_hearts - state.hearts
        full_in = next_in + (missing - 1) * self._interval
        return HeartRegenInfo(
            next_in_seconds=ceil_seconds(next_in),
            full_in_seconds=ceil_seconds(full_in),
        )

    def spend(self, state: EconomyState, amount: int, now: datetime) -> int:
        """Consume *amount* hearts. Returns hearts actually removed.

        Unlimited hearts make spending free. Raises NoHeartsRemaining when
        the user is out of hearts.
        """
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("amount must be an integer")
        if not 1 <= amount <= self._config.max_spend_per_request:
            raise ValidationError(
                f"amount must be between 1 and {self._config.max_spend_per_request}"
            )
        if state.unlimited_active(now):
            return 0
        if state.hearts <= 0:
            raise NoHeartsRemaining()

        if state.hearts >= state.max_hearts:
            state.hearts_updated_at = now
        removed = min(amount, state.hearts)
        state.hearts -= removed
        return removed
