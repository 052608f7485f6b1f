"""Economy record — the normalized per-user state.

``EconomyState.from_record`` is the only place raw stored data is turned
into a state object. It backfills every missing or malformed field with its
default, clamps numeric fields into their invariants, and reports whether
anything had to change so callers persist only when needed.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from .utils import format_timestamp, parse_date, parse_timestamp

if TYPE_CHECKING:
    from .config import EconomyConfig


# Records written by the earlier document store used camelCase keys.
_LEGACY_KEYS = {
    "maxHearts": "max_hearts",
    "heartsUpdatedAt": "hearts_updated_at",
    "unlimitedHeartsUntil": "unlimited_hearts_until",
    "streakFreezes": "streak_freezes",
    "streakShieldUntil": "streak_shield_until",
    "xpBoosts": "xp_boosts",
    "superTrialUsed": "super_trial_used",
    "doubleOrNothing": "double_or_nothing",
    "currentStreak": "current_streak",
    "longestStreak": "longest_streak",
    "lastStreakDate": "last_streak_date",
    "dailyLessonDate": "daily_lesson_date",
    "totalXP": "total_xp",
    "dailyXP": "daily_xp",
    "dailyLessonCount": "daily_lesson_count",
    "dailyStudySeconds": "daily_study_seconds",
    "dailyQuestCompletions": "daily_quest_completions",
}


@dataclass
class QuestCompletion:
    quest_id: str
    completed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"quest_id": self.quest_id, "completed_at": format_timestamp(self.completed_at)}


@dataclass
class DoubleOrNothing:
    """A streak wager. At most one is active per user."""

    active: bool = False
    started_at: datetime | None = None
    start_streak: int = 0
    target_streak: int = 0
    start_gems: int = 0
    last_result: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["started_at"] = format_timestamp(self.started_at)
        return data


@dataclass
class EconomyState:
    gems: int
    hearts: int
    max_hearts: int
    hearts_updated_at: datetime
    unlimited_hearts_until: datetime | None = None
    streak_freezes: int = 0
    streak_shield_until: datetime | None = None
    xp_boosts: int = 0
    super_trial_used: bool = False
    double_or_nothing: DoubleOrNothing = field(default_factory=DoubleOrNothing)
    current_streak: int = 0
    longest_streak: int = 0
    last_streak_date: date | None = None
    total_xp: int = 0
    daily_lesson_date: date | None = None
    daily_xp: int = 0
    daily_lesson_count: int = 0
    daily_study_seconds: int = 0
    daily_quest_completions: list[QuestCompletion] = field(default_factory=list)

    # ══════════════════════════════════════════════════════════
    #  Construction
    # ══════════════════════════════════════════════════════════

    @classmethod
    def new(cls, now: datetime, config: EconomyConfig) -> EconomyState:
        """A fresh record with every field at its default."""
        state, _ = cls.from_record({}, now, config)
        return state

    @classmethod
    def from_record(
        cls, record: dict[str, Any] | None, now: datetime, config: EconomyConfig,
    ) -> tuple[EconomyState, bool]:
        """Build a state from a stored record.

        Returns ``(state, backfilled)`` where *backfilled* is True when any
        field was missing, malformed or out of range.
        """
        raw = dict(record or {})
        migrated = False
        for legacy, key in _LEGACY_KEYS.items():
            if legacy in raw and key not in raw:
                raw[key] = raw.pop(legacy)
                migrated = True
        reader = _FieldReader(raw)
        reader.changed = migrated

        max_hearts = reader.read_int("max_hearts", config.hearts.max_hearts, minimum=1)
        hearts = reader.read_int("hearts", max_hearts, minimum=0, maximum=max_hearts)
        current_streak = reader.read_int("current_streak", 0, minimum=0)

        state = cls(
            gems=reader.read_int("gems", config.wallet.starting_gems, minimum=0),
            hearts=hearts,
            max_hearts=max_hearts,
            hearts_updated_at=reader.read_timestamp("hearts_updated_at", now),
            unlimited_hearts_until=reader.read_timestamp("unlimited_hearts_until", None),
            streak_freezes=reader.read_int("streak_freezes", 0, minimum=0),
            streak_shield_until=reader.read_timestamp("streak_shield_until", None),
            xp_boosts=reader.read_int("xp_boosts", 0, minimum=0),
            super_trial_used=reader.read_bool("super_trial_used", False),
            double_or_nothing=reader.double_or_nothing("double_or_nothing"),
            current_streak=current_streak,
            longest_streak=reader.read_int("longest_streak", 0, minimum=current_streak),
            last_streak_date=reader.read_date("last_streak_date"),
            total_xp=reader.read_int("total_xp", 0, minimum=0),
            daily_lesson_date=reader.read_date("daily_lesson_date"),
            daily_xp=reader.read_int("daily_xp", 0, minimum=0),
            daily_lesson_count=reader.read_int("daily_lesson_count", 0, minimum=0),
            daily_study_seconds=reader.read_int("daily_study_seconds", 0, minimum=0),
            daily_quest_completions=reader.completions("daily_quest_completions"),
        )
        return state, reader.changed

    # ══════════════════════════════════════════════════════════
    #  Serialization
    # ══════════════════════════════════════════════════════════

    def to_record(self) -> dict[str, Any]:
        """JSON-serializable representation for the store."""
        return {
            "gems": self.gems,
            "hearts": self.hearts,
            "max_hearts": self.max_hearts,
            "hearts_updated_at": format_timestamp(self.hearts_updated_at),
            "unlimited_hearts_until": format_timestamp(self.unlimited_hearts_until),
            "streak_freezes": self.streak_freezes,
            "streak_shield_until": format_timestamp(self.streak_shield_until),
            "xp_boosts": self.xp_boosts,
            "super_trial_used": self.super_trial_used,
            "double_or_nothing": self.double_or_nothing.to_dict(),
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_streak_date": self.last_streak_date.isoformat() if self.last_streak_date else None,
            "total_xp": self.total_xp,
            "daily_lesson_date": self.daily_lesson_date.isoformat() if self.daily_lesson_date else None,
            "daily_xp": self.daily_xp,
            "daily_lesson_count": self.daily_lesson_count,
            "daily_study_seconds": self.daily_study_seconds,
            "daily_quest_completions": [c.to_dict() for c in self.daily_quest_completions],
        }

    def unlimited_active(self, now: datetime) -> bool:
        return self.unlimited_hearts_until is not None and self.unlimited_hearts_until > now

    def shield_active(self, now: datetime) -> bool:
        return self.streak_shield_until is not None and self.streak_shield_until > now


class _FieldReader:
    """Reads typed fields from a raw record, tracking any repair made."""

    def __init__(self, raw: dict[str, Any]) -> None:
        self._raw = raw
        self.changed = False

    def _missing(self, key: str) -> bool:
        if key not in self._raw:
            self.changed = True
            return True
        return False

    def read_int(
        self, key: str, default: int, minimum: int | None = None, maximum: int | None = None,
    ) -> int:
        if self._missing(key):
            value = default
        else:
            value = self._raw[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            self.changed = True
            value = default
        result = int(value)
        if minimum is not None and result < minimum:
            result = minimum
        if maximum is not None and result > maximum:
            result = maximum
        if result != value:
            self.changed = True
        return result

    def read_bool(self, key: str, default: bool) -> bool:
        if self._missing(key):
            return default
        value = self._raw[key]
        if not isinstance(value, bool):
            self.changed = True
            return default
        return value

    def read_timestamp(self, key: str, default: datetime | None) -> datetime | None:
        if self._missing(key):
            return default
        value = self._raw[key]
        if value is None:
            if default is not None:
                self.changed = True
            return default
        if isinstance(value, datetime):
            return value
        parsed = parse_timestamp(value) if isinstance(value, str) else None
        if parsed is None:
            self.changed = True
            return default
        return parsed

    def read_date(self, key: str) -> date | None:
        if self._missing(key):
            return None
        value = self._raw[key]
        if value is None:
            return None
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        parsed = parse_date(value) if isinstance(value, str) else None
        if parsed is None:
            self.changed = True
        return parsed

    def double_or_nothing(self, key: str) -> DoubleOrNothing:
        if self._missing(key):
            return DoubleOrNothing()
        value = self._raw[key]
        if not isinstance(value, dict):
            self.changed = True
            return DoubleOrNothing()
        nested = _FieldReader(value)
        wager = DoubleOrNothing(
            active=nested.read_bool("active", False),
            started_at=nested.read_timestamp("started_at", None),
            start_streak=nested.read_int("start_streak", 0, minimum=0),
            target_streak=nested.read_int("target_streak", 0, minimum=0),
            start_gems=nested.read_int("start_gems", 0, minimum=0),
            last_result=value.get("last_result"),
        )
        if "last_result" not in value:
            nested.changed = True
        self.changed = self.changed or nested.changed
        return wager

    def completions(self, key: str) -> list[QuestCompletion]:
        if self._missing(key):
            return []
        value = self._raw[key]
        if not isinstance(value, list):
            self.changed = True
            return []
        entries: list[QuestCompletion] = []
        for item in value:
            quest_id = item.get("quest_id", item.get("questId")) if isinstance(item, dict) else None
            raw_ts = item.get("completed_at", item.get("completedAt")) if isinstance(item, dict) else None
            completed_at = raw_ts if isinstance(raw_ts, datetime) else parse_timestamp(raw_ts)
            if not quest_id or completed_at is None:
                # Unusable ledger entries are dropped
                self.changed = True
                continue
            entries.append(QuestCompletion(quest_id=quest_id, completed_at=completed_at))
        return entries
