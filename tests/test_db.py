"""Tests for SettingsStore: aiosqlite key-value persistence."""

from pathlib import Path

from autosync.db import SettingsStore


async def test_get_missing_key(settings_store: SettingsStore) -> None:
    assert await settings_store.get("nope") is None


async def test_set_and_get(settings_store: SettingsStore) -> None:
    await settings_store.set("automation_config", {"enabled": False, "interval_ms": 1000})
    assert await settings_store.get("automation_config") == {"enabled": False, "interval_ms": 1000}


async def test_set_overwrites(settings_store: SettingsStore) -> None:
    await settings_store.set("k", {"a": 1})
    await settings_store.set("k", {"b": 2})
    assert await settings_store.get("k") == {"b": 2}


async def test_delete(settings_store: SettingsStore) -> None:
    await settings_store.set("k", {"a": 1})
    assert await settings_store.delete("k") is True
    assert await settings_store.get("k") is None
    assert await settings_store.delete("k") is False


async def test_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.db"
    await SettingsStore(db_path=path).set("k", {"v": [1, 2]})

    assert path.exists()
    assert await SettingsStore(db_path=path).get("k") == {"v": [1, 2]}


async def test_non_object_value_ignored(settings_store: SettingsStore) -> None:
    db = await settings_store._connect()
    try:
        await db.execute(
            "INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)",
            ("k", "[1, 2]", "2025-01-01T00:00:00"),
        )
        await db.commit()
    finally:
        await db.close()

    assert await settings_store.get("k") is None
