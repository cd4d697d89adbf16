"""Tests for Settings configuration model."""

from pathlib import Path

import pytest

from autosync.config import Settings


class TestDefaults:
    def test_default_database_path(self):
        s = Settings()
        assert s.database_path == Path("data/autosync.db")

    def test_default_log_level(self):
        s = Settings()
        assert s.log_level == "INFO"

    def test_default_config_key(self):
        s = Settings()
        assert s.automation_config_key == "automation_config"


class TestAutomationDefaults:
    def test_original_engine_defaults(self):
        s = Settings()
        assert s.automation_defaults() == {
            "enabled": True,
            "interval_ms": 300_000,
            "max_concurrent_tasks": 3,
            "retry_attempts": 3,
            "timeout_ms": 1_800_000,
        }

    def test_overrides(self):
        s = Settings(automation_enabled=False, automation_max_concurrent_tasks=8)
        defaults = s.automation_defaults()
        assert defaults["enabled"] is False
        assert defaults["max_concurrent_tasks"] == 8


class TestExtraForbidden:
    def test_unknown_env_var_raises(self):
        with pytest.raises(ValueError, match="extra_forbidden"):
            Settings(**{"nonexistent_field": "value"})
