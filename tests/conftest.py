"""Shared test fixtures for wordwanderer-economy."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from wordwanderer_economy.config import EconomyConfig
from wordwanderer_economy.economy_state import EconomyState
from wordwanderer_economy.service import EconomyService
from wordwanderer_economy.store import MemoryEconomyStore, SqliteEconomyStore

# 2026-03-10 09:00 UTC, a Tuesday
T0 = datetime(2026, 3, 10, 9, 0, 0, tzinfo=timezone.utc)


class ManualClock:
    """Deterministic clock; tests move time with advance()."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# ── Minimal config dict matching EconomyConfig schema ────────

def make_config_dict(**overrides) -> dict:
    """Build a valid config dict with sensible test defaults."""
    base = {
        "service": {"name": "economy", "timezone": "UTC", "max_write_retries": 3},
        "database": {"backend": "memory", "path": ":memory:"},
        "metrics": {"enabled": False, "port": 28290},
        "wallet": {"starting_gems": 1000},
        "hearts": {"max_hearts": 5, "regen_interval_minutes": 10, "max_spend_per_request": 5},
        "streaks": {"freeze_max_missed_days": 1},
        "power_ups": {
            "refill_hearts_cost": 100,
            "streak_freeze_cost": 200,
            "xp_boost_cost": 25,
            "streak_shield_cost": 10,
            "streak_shield_hours": 24,
            "super_trial_hours": 24,
            "double_or_nothing": {"cost": 50, "target_days": 7, "payout_multiplier": 2},
        },
    }
    base.update(overrides)
    return base


@pytest.fixture
def sample_config_dict() -> dict:
    """Return a config dict suitable for tests."""
    return make_config_dict()


@pytest.fixture
def sample_config(sample_config_dict: dict) -> EconomyConfig:
    """Return a parsed EconomyConfig."""
    return EconomyConfig(**sample_config_dict)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fresh_state(sample_config: EconomyConfig) -> EconomyState:
    """A default record created at T0."""
    return EconomyState.new(T0, sample_config)


@pytest.fixture
def tmp_db_path(tmp_path: Path) -> str:
    """Return a temporary SQLite database path."""
    return str(tmp_path / "test_economy.db")


@pytest_asyncio.fixture
async def sqlite_store(tmp_db_path: str) -> AsyncGenerator[SqliteEconomyStore, None]:
    """Provide an initialized SQLite store with temp file."""
    store = SqliteEconomyStore(tmp_db_path, logging.getLogger("test"))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def memory_store() -> MemoryEconomyStore:
    return MemoryEconomyStore(logging.getLogger("test"))


@pytest.fixture
def service(
    sample_config: EconomyConfig, memory_store: MemoryEconomyStore, clock: ManualClock,
) -> EconomyService:
    """EconomyService over the in-memory store with a manual clock."""
    return EconomyService(sample_config, memory_store, logging.getLogger("test.service"), clock=clock)


@pytest_asyncio.fixture
async def alice(service: EconomyService) -> str:
    """An opened account."""
    await service.open_account("alice")
    return "alice"
