"""Configuration system for wordwanderer-economy.

All tunables of the progression economy live in Pydantic models with
defaults matching the production catalog, so an empty config file yields
a working service.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator


# ═══════════════════════════════════════════════════════════════
#  Service & Storage
# ═══════════════════════════════════════════════════════════════

class ServiceConfig(BaseModel):
    name: str = "economy"
    timezone: str | None = Field(
        default=None,
        description="IANA zone used for day boundaries; None means server-local time",
    )
    max_write_retries: int = Field(default=3, ge=1)


class DatabaseConfig(BaseModel):
    backend: Literal["sqlite", "memory"] = "sqlite"
    path: str = "economy.db"


class MetricsConfig(BaseModel):
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 28290


# ═══════════════════════════════════════════════════════════════
#  Economy Rules
# ═══════════════════════════════════════════════════════════════

class WalletConfig(BaseModel):
    starting_gems: int = Field(default=1000, ge=0)


class HeartsConfig(BaseModel):
    max_hearts: int = Field(default=5, ge=1)
    regen_interval_minutes: int = Field(default=10, ge=1)
    max_spend_per_request: int = Field(default=5, ge=1)


class StreaksConfig(BaseModel):
    freeze_max_missed_days: int = Field(
        default=1, ge=1,
        description="Missed days a single banked freeze can bridge",
    )


class DoubleOrNothingConfig(BaseModel):
    cost: int = 50
    target_days: int = 7
    payout_multiplier: int = 2


class PowerUpsConfig(BaseModel):
    refill_hearts_cost: int = 100
    streak_freeze_cost: int = 200
    xp_boost_cost: int = 25
    streak_shield_cost: int = 10
    streak_shield_hours: int = 24
    super_trial_hours: int = 24
    double_or_nothing: DoubleOrNothingConfig = Field(default_factory=DoubleOrNothingConfig)


class DailyQuestConfig(BaseModel):
    id: str
    title: str
    type: Literal["xp", "lessons", "time"]
    target: int = Field(gt=0)
    reward_gems: int = Field(ge=0)


def _default_quests() -> list[DailyQuestConfig]:
    return [
        DailyQuestConfig(id="daily_xp_50", title="Earn 50 XP", type="xp", target=50, reward_gems=20),
        DailyQuestConfig(
            id="daily_lessons_3", title="Complete 3 lessons", type="lessons", target=3, reward_gems=30,
        ),
        DailyQuestConfig(
            id="daily_minutes_10", title="Study for 10 minutes", type="time", target=600, reward_gems=25,
        ),
    ]


# ═══════════════════════════════════════════════════════════════
#  Top-Level Economy Config
# ═══════════════════════════════════════════════════════════════

class EconomyConfig(BaseModel):
    """Full economy config."""

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    wallet: WalletConfig = Field(default_factory=WalletConfig)
    hearts: HeartsConfig = Field(default_factory=HeartsConfig)
    streaks: StreaksConfig = Field(default_factory=StreaksConfig)
    power_ups: PowerUpsConfig = Field(default_factory=PowerUpsConfig)
    daily_quests: list[DailyQuestConfig] = Field(default_factory=_default_quests)

    @field_validator("daily_quests")
    @classmethod
    def _unique_quest_ids(cls, quests: list[DailyQuestConfig]) -> list[DailyQuestConfig]:
        ids = [q.id for q in quests]
        if len(ids) != len(set(ids)):
            raise ValueError("daily_quests ids must be unique")
        return quests


# ═══════════════════════════════════════════════════════════════
#  Config Loading
# ═══════════════════════════════════════════════════════════════

def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} in string values."""
    if isinstance(obj, str):
        return re.sub(
            r"\$\{([^}:]+)(?::-(.*?))?\}",
            lambda m: os.environ.get(m.group(1), m.group(2) or ""),
            obj,
        )
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


def load_config(config_path: str) -> EconomyConfig:
    """Load and validate YAML config file into EconomyConfig."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("Config file must contain a YAML mapping at the top level.")

    raw = _expand_env_vars(raw)
    return EconomyConfig(**raw)
