"""Daily quest engine — per-day objectives with one-time gem rewards.

Each quest moves ``incomplete -> completed-today`` at most once per calendar
day. The completion ledger on the record is what prevents double grants,
so ``apply_rewards`` may run after every lesson.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import TYPE_CHECKING, Any

from .economy_state import QuestCompletion
from .utils import is_same_day, local_date, seconds_until_midnight

if TYPE_CHECKING:
    from .config import DailyQuestConfig
    from .economy_state import EconomyState


@dataclass(frozen=True)
class DailyQuest:
    id: str
    title: str
    type: str
    target: int
    reward_gems: int

    @classmethod
    def from_config(cls, cfg: DailyQuestConfig) -> DailyQuest:
        return cls(
            id=cfg.id, title=cfg.title, type=cfg.type,
            target=cfg.target, reward_gems=cfg.reward_gems,
        )


@dataclass
class QuestRewards:
    reward_gems: int = 0
    completed: list[DailyQuest] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "reward_gems": self.reward_gems,
            "completed": [
                {"id": q.id, "title": q.title, "reward_gems": q.reward_gems}
                for q in self.completed
            ],
        }


class DailyQuestEngine:
    """Tracks daily accumulators against the quest catalog."""

    def __init__(
        self,
        quests: list[DailyQuestConfig],
        logger: logging.Logger,
        tz: tzinfo | None = None,
    ) -> None:
        self._quests = [DailyQuest.from_config(q) for q in quests]
        self._logger = logger
        self._tz = tz

    # ══════════════════════════════════════════════════════════
    #  Daily Reset
    # ══════════════════════════════════════════════════════════

    def ensure_daily_stats(self, state: EconomyState, now: datetime) -> bool:
        """Zero the accumulators when the day rolled over. Returns True on reset."""
        today = local_date(now, self._tz)
        if state.daily_lesson_date == today:
            return False
        state.daily_lesson_date = today
        state.daily_xp = 0
        state.daily_lesson_count = 0
        state.daily_study_seconds = 0
        state.daily_quest_completions = []
        return True

    def record_activity(
        self, state: EconomyState, now: datetime, xp_earned: int, time_spent_seconds: int,
    ) -> None:
        """Add one completed lesson to today's accumulators and lifetime XP."""
        self.ensure_daily_stats(state, now)
        state.total_xp += xp_earned
        state.daily_xp += xp_earned
        state.daily_lesson_count += 1
        state.daily_study_seconds += time_spent_seconds

    # ══════════════════════════════════════════════════════════
    #  Progress & Rewards
    # ══════════════════════════════════════════════════════════

    @staticmethod
    def progress(state: EconomyState, quest: DailyQuest) -> int:
        if quest.type == "xp":
            return state.daily_xp
        if quest.type == "lessons":
            return state.daily_lesson_count
        if quest.type == "time":
            return state.daily_study_seconds
        return 0

    def completed_today(self, state: EconomyState, quest_id: str, now: datetime) -> bool:
        return any(
            entry.quest_id == quest_id and is_same_day(entry.completed_at, now, self._tz)
            for entry in state.daily_quest_completions
        )

    def apply_rewards(self, state: EconomyState, now: datetime) -> QuestRewards:
        """Mark newly met quests complete and total their rewards.

        The caller credits ``reward_gems``; this method only writes the
        completion ledger.
        """
        rewards = QuestRewards()
        for quest in self._quests:
            if self.progress(state, quest) < quest.target:
                continue
            if self.completed_today(state, quest.id, now):
                continue
            state.daily_quest_completions.append(
                QuestCompletion(quest_id=quest.id, completed_at=now)
            )
            rewards.reward_gems += quest.reward_gems
            rewards.completed.append(quest)
            self._logger.info("Daily quest %s completed (+%d gems)", quest.id, quest.reward_gems)
        return rewards

    def build_state(self, state: EconomyState) -> list[dict[str, Any]]:
        result = []
        for quest in self._quests:
            progress = self.progress(state, quest)
            result.append({
                "id": quest.id,
                "title": quest.title,
                "type": quest.type,
                "target": quest.target,
                "reward_gems": quest.reward_gems,
                "progress": progress,
                "completed": progress >= quest.target,
            })
        return result

    def reset_in_seconds(self, now: datetime) -> int:
        return seconds_until_midnight(now, self._tz)
