"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Engine configuration. All values come from environment variables."""

    # Database (settings store only; task records are never persisted)
    database_path: Path = Field(default=Path("data/autosync.db"))

    # Automation engine defaults, overridden by the persisted config
    automation_enabled: bool = Field(default=True)
    automation_interval_ms: int = Field(default=5 * 60 * 1000)
    automation_max_concurrent_tasks: int = Field(default=3)
    automation_retry_attempts: int = Field(default=3)
    automation_timeout_ms: int = Field(default=30 * 60 * 1000)
    automation_config_key: str = Field(default="automation_config")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def automation_defaults(self) -> dict[str, int | bool]:
        """Return the engine config defaults as a flat dict."""
        return {
            "enabled": self.automation_enabled,
            "interval_ms": self.automation_interval_ms,
            "max_concurrent_tasks": self.automation_max_concurrent_tasks,
            "retry_attempts": self.automation_retry_attempts,
            "timeout_ms": self.automation_timeout_ms,
        }


settings = Settings()
