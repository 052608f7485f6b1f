"""Streak tracker — consecutive-day continuation and reset.

Days are compared as calendar dates, never as raw elapsed time, so a lesson
at 23:59 followed by one at 00:01 counts as two consecutive days.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING

from .utils import calendar_days_between

if TYPE_CHECKING:
    from .config import StreaksConfig
    from .economy_state import EconomyState


@dataclass(frozen=True)
class StreakUpdate:
    current_streak: int
    longest_streak: int
    previous_streak: int
    counted_today: bool = False
    continued: bool = False
    reset: bool = False
    freeze_used: bool = False
    shield_used: bool = False

    def to_dict(self) -> dict:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "previous_streak": self.previous_streak,
            "continued": self.continued,
            "reset": self.reset,
            "freeze_used": self.freeze_used,
            "shield_used": self.shield_used,
        }


class StreakTracker:
    """Evaluates one recorded learning activity against the streak."""

    def __init__(self, config: StreaksConfig, logger: logging.Logger) -> None:
        self._config = config
        self._logger = logger

    def update(self, state: EconomyState, today: date, now: datetime) -> StreakUpdate:
        previous = state.current_streak
        last = state.last_streak_date
        continued = reset = freeze_used = shield_used = False

        if last is None:
            state.current_streak = 1
        else:
            days_diff = calendar_days_between(last, today)
            if days_diff <= 0:
                # Already counted today (or the clock went backwards)
                state.longest_streak = max(state.longest_streak, state.current_streak)
                return StreakUpdate(
                    current_streak=state.current_streak,
                    longest_streak=state.longest_streak,
                    previous_streak=previous,
                    counted_today=True,
                )
            if days_diff == 1:
                state.current_streak += 1
                continued = True
            elif state.shield_active(now):
                state.current_streak += 1
                continued = shield_used = True
            elif state.streak_freezes > 0 and days_diff - 1 <= self._config.freeze_max_missed_days:
                state.streak_freezes -= 1
                state.current_streak += 1
                continued = freeze_used = True
            else:
                state.current_streak = 1
                reset = previous > 0

        state.last_streak_date = today
        state.longest_streak = max(state.longest_streak, state.current_streak)

        if freeze_used or shield_used:
            self._logger.info(
                "Streak protected by %s: %d -> %d",
                "shield" if shield_used else "freeze", previous, state.current_streak,
            )
        elif reset:
            self._logger.info("Streak reset after gap: %d -> 1", previous)

        return StreakUpdate(
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            previous_streak=previous,
            continued=continued,
            reset=reset,
            freeze_used=freeze_used,
            shield_used=shield_used,
        )
