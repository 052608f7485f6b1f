"""Tests for EconomyState normalization and serialization."""

from __future__ import annotations

import json
from datetime import date, timedelta

from wordwanderer_economy.config import EconomyConfig
from wordwanderer_economy.economy_state import EconomyState, QuestCompletion

from conftest import T0


class TestDefaults:
    def test_new_record(self, sample_config: EconomyConfig):
        state = EconomyState.new(T0, sample_config)
        assert state.gems == 1000
        assert state.hearts == 5
        assert state.max_hearts == 5
        assert state.hearts_updated_at == T0
        assert state.streak_freezes == 0
        assert state.super_trial_used is False
        assert state.double_or_nothing.active is False
        assert state.last_streak_date is None
        assert state.daily_quest_completions == []

    def test_empty_record_is_backfilled(self, sample_config: EconomyConfig):
        _, backfilled = EconomyState.from_record({}, T0, sample_config)
        assert backfilled is True

    def test_complete_record_is_untouched(self, sample_config: EconomyConfig):
        record = EconomyState.new(T0, sample_config).to_record()
        state, backfilled = EconomyState.from_record(record, T0 + timedelta(hours=1), sample_config)
        assert backfilled is False
        assert state.to_record() == record

    def test_starting_gems_from_config(self):
        config = EconomyConfig(wallet={"starting_gems": 250})
        assert EconomyState.new(T0, config).gems == 250


class TestNormalization:
    def test_partial_record_keeps_present_fields(self, sample_config: EconomyConfig):
        state, backfilled = EconomyState.from_record(
            {"gems": 42, "current_streak": 3}, T0, sample_config,
        )
        assert backfilled is True
        assert state.gems == 42
        assert state.current_streak == 3
        assert state.longest_streak == 3
        assert state.hearts == 5

    def test_clamps_out_of_range(self, sample_config: EconomyConfig):
        record = EconomyState.new(T0, sample_config).to_record()
        record.update({"hearts": 9, "gems": -10, "current_streak": 6, "longest_streak": 2})
        state, backfilled = EconomyState.from_record(record, T0, sample_config)
        assert backfilled is True
        assert state.hearts == 5
        assert state.gems == 0
        assert state.longest_streak == 6

    def test_malformed_values_fall_back(self, sample_config: EconomyConfig):
        record = EconomyState.new(T0, sample_config).to_record()
        record.update({
            "gems": "lots",
            "hearts_updated_at": "not-a-time",
            "last_streak_date": "yesterday",
            "double_or_nothing": "on",
        })
        state, backfilled = EconomyState.from_record(record, T0, sample_config)
        assert backfilled is True
        assert state.gems == 1000
        assert state.hearts_updated_at == T0
        assert state.last_streak_date is None
        assert state.double_or_nothing.active is False

    def test_legacy_camel_case_keys(self, sample_config: EconomyConfig):
        record = {
            "gems": 300,
            "hearts": 2,
            "maxHearts": 5,
            "heartsUpdatedAt": "2026-03-10T08:00:00+00:00",
            "currentStreak": 4,
            "longestStreak": 10,
            "lastStreakDate": "2026-03-09T00:00:00.000Z",
            "dailyXP": 35,
            "dailyQuestCompletions": [{"questId": "daily_xp_50", "completedAt": "2026-03-10T08:30:00Z"}],
        }
        state, backfilled = EconomyState.from_record(record, T0, sample_config)
        assert backfilled is True
        assert state.current_streak == 4
        assert state.longest_streak == 10
        assert state.last_streak_date == date(2026, 3, 9)
        assert state.daily_xp == 35
        assert state.hearts_updated_at == T0 - timedelta(hours=1)
        assert state.daily_quest_completions[0].quest_id == "daily_xp_50"

    def test_bad_completion_entries_dropped(self, sample_config: EconomyConfig):
        record = EconomyState.new(T0, sample_config).to_record()
        record["daily_quest_completions"] = [
            {"quest_id": "daily_xp_50", "completed_at": T0.isoformat()},
            {"quest_id": "daily_lessons_3"},
            "garbage",
        ]
        state, backfilled = EconomyState.from_record(record, T0, sample_config)
        assert backfilled is True
        assert [c.quest_id for c in state.daily_quest_completions] == ["daily_xp_50"]

    def test_non_bool_flag_falls_back(self, sample_config: EconomyConfig):
        """A stored "false" string must not burn the one-time trial."""
        record = EconomyState.new(T0, sample_config).to_record()
        record["super_trial_used"] = "false"
        state, backfilled = EconomyState.from_record(record, T0, sample_config)
        assert backfilled is True
        assert state.super_trial_used is False

    def test_non_finite_numbers_fall_back(self, sample_config: EconomyConfig):
        text = json.dumps(EconomyState.new(T0, sample_config).to_record())
        text = text.replace('"gems": 1000', '"gems": NaN').replace('"daily_xp": 0', '"daily_xp": Infinity')
        state, backfilled = EconomyState.from_record(json.loads(text), T0, sample_config)
        assert backfilled is True
        assert state.gems == 1000
        assert state.daily_xp == 0

    def test_legacy_total_xp(self, sample_config: EconomyConfig):
        state, _ = EconomyState.from_record({"totalXP": 4200}, T0, sample_config)
        assert state.total_xp == 4200
        assert state.to_record()["total_xp"] == 4200


class TestSerialization:
    def test_record_is_json_safe(self, sample_config: EconomyConfig):
        state = EconomyState.new(T0, sample_config)
        state.last_streak_date = date(2026, 3, 10)
        state.streak_shield_until = T0 + timedelta(hours=24)
        state.daily_quest_completions.append(QuestCompletion("daily_xp_50", T0))
        record = json.loads(json.dumps(state.to_record()))
        assert record["last_streak_date"] == "2026-03-10"
        assert record["streak_shield_until"] == "2026-03-11T09:00:00+00:00"
        assert record["daily_quest_completions"] == [
            {"quest_id": "daily_xp_50", "completed_at": "2026-03-10T09:00:00+00:00"},
        ]

    def test_time_checks(self, sample_config: EconomyConfig):
        state = EconomyState.new(T0, sample_config)
        assert state.unlimited_active(T0) is False
        state.unlimited_hearts_until = T0
        assert state.unlimited_active(T0) is False
        assert state.unlimited_active(T0 - timedelta(seconds=1)) is True
        state.streak_shield_until = T0 + timedelta(minutes=1)
        assert state.shield_active(T0) is True
