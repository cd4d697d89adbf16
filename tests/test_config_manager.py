"""Tests for ConfigManager: validation, persistence, and change notification."""

from unittest.mock import AsyncMock

import pytest

from autosync.db import SettingsStore
from autosync.scheduler.config_manager import AutomationConfig, ConfigManager
from autosync.scheduler.errors import ConfigError

KEY = "automation_config"


@pytest.fixture
def persisted(settings_store: SettingsStore, config_defaults: dict) -> ConfigManager:
    return ConfigManager(settings_store, key=KEY, defaults=dict(config_defaults))


# -- Defaults ------------------------------------------------------------------


def test_defaults_from_settings() -> None:
    cfg = ConfigManager().get_config()
    assert cfg.enabled is True
    assert cfg.interval_ms == 5 * 60 * 1000
    assert cfg.max_concurrent_tasks == 3
    assert cfg.retry_attempts == 3
    assert cfg.timeout_ms == 30 * 60 * 1000


def test_seconds_helpers() -> None:
    cfg = AutomationConfig(interval_ms=1500, timeout_ms=250)
    assert cfg.interval_seconds == 1.5
    assert cfg.timeout_seconds == 0.25


def test_invalid_defaults_rejected() -> None:
    with pytest.raises(ConfigError):
        ConfigManager(defaults={"interval_ms": 0})


# -- update_config -------------------------------------------------------------


async def test_update_merges_partial(config_manager: ConfigManager, config_defaults: dict) -> None:
    cfg = await config_manager.update_config(max_concurrent_tasks=5)
    assert cfg.max_concurrent_tasks == 5
    assert cfg.interval_ms == config_defaults["interval_ms"]
    assert config_manager.get_config().max_concurrent_tasks == 5


@pytest.mark.parametrize(
    "changes",
    [
        {"interval_ms": 0},
        {"interval_ms": -100},
        {"max_concurrent_tasks": 0},
        {"timeout_ms": 0},
        {"retry_attempts": -1},
        {"interval_minutes": 5},
    ],
)
async def test_invalid_update_leaves_config_unchanged(
    config_manager: ConfigManager, changes: dict
) -> None:
    before = config_manager.get_config()
    with pytest.raises(ConfigError):
        await config_manager.update_config(**changes)
    assert config_manager.get_config() == before


async def test_invalid_update_rejects_whole_batch(
    config_manager: ConfigManager, config_defaults: dict
) -> None:
    with pytest.raises(ConfigError, match="max_concurrent_tasks"):
        await config_manager.update_config(timeout_ms=100, max_concurrent_tasks=0)
    assert config_manager.get_config().timeout_ms == config_defaults["timeout_ms"]


async def test_get_config_is_a_copy(config_manager: ConfigManager, config_defaults: dict) -> None:
    cfg = config_manager.get_config()
    cfg.retry_attempts = 9
    assert config_manager.get_config().retry_attempts == config_defaults["retry_attempts"]


# -- Listeners -----------------------------------------------------------------


async def test_listener_receives_old_and_new(
    config_manager: ConfigManager, config_defaults: dict
) -> None:
    listener = AsyncMock()
    config_manager.subscribe(listener)

    await config_manager.update_config(interval_ms=1000)

    listener.assert_awaited_once()
    old, new = listener.await_args.args
    assert old.interval_ms == config_defaults["interval_ms"]
    assert new.interval_ms == 1000


async def test_listener_not_called_on_invalid_update(config_manager: ConfigManager) -> None:
    listener = AsyncMock()
    config_manager.subscribe(listener)
    with pytest.raises(ConfigError):
        await config_manager.update_config(interval_ms=0)
    listener.assert_not_awaited()


# -- Persistence ---------------------------------------------------------------


async def test_update_persists(
    persisted: ConfigManager, settings_store: SettingsStore, config_defaults: dict
) -> None:
    await persisted.update_config(max_concurrent_tasks=4, enabled=False)

    saved = await settings_store.get(KEY)
    assert saved["max_concurrent_tasks"] == 4
    assert saved["enabled"] is False
    assert saved["interval_ms"] == config_defaults["interval_ms"]


async def test_load_merges_saved_over_defaults(
    settings_store: SettingsStore, config_defaults: dict
) -> None:
    await settings_store.set(KEY, {"timeout_ms": 1234})
    manager = ConfigManager(settings_store, key=KEY, defaults=dict(config_defaults))

    cfg = await manager.load()

    assert cfg.timeout_ms == 1234
    assert cfg.max_concurrent_tasks == config_defaults["max_concurrent_tasks"]


async def test_load_roundtrip(
    persisted: ConfigManager, settings_store: SettingsStore, config_defaults: dict
) -> None:
    await persisted.update_config(retry_attempts=7)

    fresh = ConfigManager(settings_store, key=KEY, defaults=dict(config_defaults))
    assert (await fresh.load()).retry_attempts == 7


async def test_load_without_saved_config(persisted: ConfigManager, config_defaults: dict) -> None:
    cfg = await persisted.load()
    assert cfg.model_dump() == config_defaults


async def test_load_ignores_invalid_saved_config(
    settings_store: SettingsStore, config_defaults: dict
) -> None:
    await settings_store.set(KEY, {"max_concurrent_tasks": 0})
    manager = ConfigManager(settings_store, key=KEY, defaults=dict(config_defaults))

    cfg = await manager.load()
    assert cfg.max_concurrent_tasks == config_defaults["max_concurrent_tasks"]


async def test_load_survives_store_failure(config_defaults: dict) -> None:
    store = AsyncMock()
    store.get.side_effect = RuntimeError("disk gone")
    manager = ConfigManager(store, key=KEY, defaults=dict(config_defaults))

    cfg = await manager.load()
    assert cfg.model_dump() == config_defaults


async def test_persist_failure_keeps_new_config(config_defaults: dict) -> None:
    store = AsyncMock()
    store.set.side_effect = RuntimeError("disk gone")
    manager = ConfigManager(store, key=KEY, defaults=dict(config_defaults))

    cfg = await manager.update_config(max_concurrent_tasks=6)

    assert cfg.max_concurrent_tasks == 6
    store.set.assert_awaited_once()


async def test_in_memory_load_is_noop(config_manager: ConfigManager, config_defaults: dict) -> None:
    cfg = await config_manager.load()
    assert cfg.model_dump() == config_defaults
