"""Tests for StreakTracker — consecutive days, resets, freezes and shields."""

from __future__ import annotations

import logging
from datetime import date, timedelta

import pytest

from wordwanderer_economy.config import EconomyConfig, StreaksConfig
from wordwanderer_economy.economy_state import EconomyState
from wordwanderer_economy.streak_tracker import StreakTracker

from conftest import T0

DAY = date(2026, 3, 10)


@pytest.fixture
def tracker(sample_config: EconomyConfig) -> StreakTracker:
    return StreakTracker(sample_config.streaks, logging.getLogger("test.streaks"))


def _with_streak(state: EconomyState, current: int, longest: int, last: date | None) -> EconomyState:
    state.current_streak = current
    state.longest_streak = longest
    state.last_streak_date = last
    return state


class TestStreakContinuation:
    """Plain consecutive-day behaviour."""

    def test_first_lesson_starts_streak(self, tracker: StreakTracker, fresh_state: EconomyState):
        result = tracker.update(fresh_state, DAY, T0)
        assert result.current_streak == 1
        assert fresh_state.longest_streak == 1
        assert fresh_state.last_streak_date == DAY
        assert result.reset is False

    def test_consecutive_day_increments(self, tracker: StreakTracker, fresh_state: EconomyState):
        """Streak 5 yesterday, longest 12 → 6 today, longest stays 12."""
        state = _with_streak(fresh_state, 5, 12, DAY - timedelta(days=1))
        result = tracker.update(state, DAY, T0)
        assert result.current_streak == 6
        assert result.longest_streak == 12
        assert result.continued is True
        assert state.last_streak_date == DAY

    def test_new_record_raises_longest(self, tracker: StreakTracker, fresh_state: EconomyState):
        state = _with_streak(fresh_state, 12, 12, DAY - timedelta(days=1))
        tracker.update(state, DAY, T0)
        assert state.longest_streak == 13

    def test_same_day_is_noop(self, tracker: StreakTracker, fresh_state: EconomyState):
        state = _with_streak(fresh_state, 4, 9, DAY)
        result = tracker.update(state, DAY, T0)
        assert result.counted_today is True
        assert state.current_streak == 4
        assert state.longest_streak == 9

    def test_clock_going_backwards_is_same_day(self, tracker: StreakTracker, fresh_state: EconomyState):
        state = _with_streak(fresh_state, 4, 4, DAY + timedelta(days=1))
        result = tracker.update(state, DAY, T0)
        assert result.counted_today is True
        assert state.current_streak == 4
        assert state.last_streak_date == DAY + timedelta(days=1)

    def test_longest_never_below_current(self, tracker: StreakTracker, fresh_state: EconomyState):
        state = _with_streak(fresh_state, 3, 0, DAY - timedelta(days=1))
        tracker.update(state, DAY, T0)
        assert state.longest_streak >= state.current_streak


class TestStreakReset:
    def test_gap_resets_to_one(self, tracker: StreakTracker, fresh_state: EconomyState):
        """Three days since last lesson with no protection → streak 1."""
        state = _with_streak(fresh_state, 8, 8, DAY - timedelta(days=3))
        result = tracker.update(state, DAY, T0)
        assert result.current_streak == 1
        assert result.reset is True
        assert result.previous_streak == 8
        assert state.longest_streak == 8

    def test_zero_streak_gap_is_not_reset(self, tracker: StreakTracker, fresh_state: EconomyState):
        state = _with_streak(fresh_state, 0, 0, DAY - timedelta(days=4))
        result = tracker.update(state, DAY, T0)
        assert result.current_streak == 1
        assert result.reset is False


class TestStreakProtection:
    def test_freeze_bridges_one_missed_day(self, tracker: StreakTracker, fresh_state: EconomyState):
        state = _with_streak(fresh_state, 5, 5, DAY - timedelta(days=2))
        state.streak_freezes = 2
        result = tracker.update(state, DAY, T0)
        assert result.freeze_used is True
        assert result.current_streak == 6
        assert state.streak_freezes == 1

    def test_freeze_does_not_bridge_long_gap(self, tracker: StreakTracker, fresh_state: EconomyState):
        state = _with_streak(fresh_state, 5, 5, DAY - timedelta(days=3))
        state.streak_freezes = 1
        result = tracker.update(state, DAY, T0)
        assert result.reset is True
        assert state.streak_freezes == 1

    def test_freeze_window_is_configurable(self, fresh_state: EconomyState):
        tracker = StreakTracker(StreaksConfig(freeze_max_missed_days=2), logging.getLogger("test"))
        state = _with_streak(fresh_state, 5, 5, DAY - timedelta(days=3))
        state.streak_freezes = 1
        result = tracker.update(state, DAY, T0)
        assert result.freeze_used is True
        assert state.streak_freezes == 0

    def test_active_shield_covers_gap(self, tracker: StreakTracker, fresh_state: EconomyState):
        state = _with_streak(fresh_state, 5, 5, DAY - timedelta(days=3))
        state.streak_shield_until = T0 + timedelta(hours=2)
        state.streak_freezes = 1
        result = tracker.update(state, DAY, T0)
        assert result.shield_used is True
        assert result.current_streak == 6
        # Shield takes precedence and is not consumed; freezes stay banked
        assert state.streak_freezes == 1
        assert state.streak_shield_until == T0 + timedelta(hours=2)

    def test_expired_shield_does_not_cover(self, tracker: StreakTracker, fresh_state: EconomyState):
        state = _with_streak(fresh_state, 5, 5, DAY - timedelta(days=3))
        state.streak_shield_until = T0 - timedelta(seconds=1)
        assert tracker.update(state, DAY, T0).reset is True

    def test_consecutive_day_keeps_freeze(self, tracker: StreakTracker, fresh_state: EconomyState):
        state = _with_streak(fresh_state, 5, 5, DAY - timedelta(days=1))
        state.streak_freezes = 1
        result = tracker.update(state, DAY, T0)
        assert result.freeze_used is False
        assert state.streak_freezes == 1

    def test_to_dict_fields(self, tracker: StreakTracker, fresh_state: EconomyState):
        payload = tracker.update(fresh_state, DAY, T0).to_dict()
        assert set(payload) == {
            "current_streak", "longest_streak", "previous_streak",
            "continued", "reset", "freeze_used", "shield_used",
        }
