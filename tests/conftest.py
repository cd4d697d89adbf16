"""Shared test fixtures."""

from pathlib import Path

import pytest

from autosync.db import SettingsStore
from autosync.scheduler.config_manager import ConfigManager
from autosync.scheduler.engine import AutomationEngine
from autosync.scheduler.registry import HandlerRegistry
from autosync.scheduler.store import TaskStore

TEST_DEFAULTS = {
    "enabled": True,
    "interval_ms": 60_000,
    "max_concurrent_tasks": 1,
    "retry_attempts": 2,
    "timeout_ms": 5_000,
}


@pytest.fixture
def registry() -> HandlerRegistry:
    """Fresh, empty handler registry for each test."""
    return HandlerRegistry()


@pytest.fixture
def store() -> TaskStore:
    return TaskStore()


@pytest.fixture
def config_manager() -> ConfigManager:
    """In-memory config with a long interval so only explicit ticks admit."""
    return ConfigManager(defaults=dict(TEST_DEFAULTS))


@pytest.fixture
def settings_store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(db_path=tmp_path / "test.db")


@pytest.fixture
async def engine(registry: HandlerRegistry, store: TaskStore, config_manager: ConfigManager):
    eng = AutomationEngine(registry, store=store, config=config_manager)
    yield eng
    await eng.shutdown(wait=False)
    for task_id in eng.in_flight:
        eng._inflight[task_id].cancel()
    await eng.join()


@pytest.fixture
def config_defaults() -> dict:
    """The config values every in-memory test ConfigManager starts from."""
    return dict(TEST_DEFAULTS)
