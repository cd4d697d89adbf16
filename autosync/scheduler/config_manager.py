"""ConfigManager: validated, persisted engine configuration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from autosync.config import settings
from autosync.scheduler.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    ConfigListener = Callable[["AutomationConfig", "AutomationConfig"], Awaitable[None]]

logger = logging.getLogger(__name__)

# Fields whose change requires the ticker to be torn down and re-armed.
TIMER_FIELDS = frozenset({"enabled", "interval_ms"})


class AutomationConfig(BaseModel):
    """Tunable engine parameters.

    Attributes:
        enabled: The scheduler loop only ticks while this is true.
        interval_ms: Tick period.
        max_concurrent_tasks: Cap on simultaneously running tasks.
        retry_attempts: How many manual re-queues a failed task may get.
        timeout_ms: Wall-clock limit for a single handler invocation.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    enabled: bool = True
    interval_ms: int = Field(default=5 * 60 * 1000, gt=0)
    max_concurrent_tasks: int = Field(default=3, ge=1)
    retry_attempts: int = Field(default=3, ge=0)
    timeout_ms: int = Field(default=30 * 60 * 1000, gt=0)

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


class KeyValueStore(Protocol):
    """Durable settings collaborator (see :class:`autosync.db.SettingsStore`)."""

    async def get(self, key: str) -> dict[str, Any] | None: ...

    async def set(self, key: str, value: dict[str, Any]) -> None: ...


def _validate(data: dict[str, Any]) -> AutomationConfig:
    try:
        return AutomationConfig.model_validate(data)
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in exc.errors()
        )
        msg = f"Invalid automation config: {problems}"
        raise ConfigError(msg) from exc


class ConfigManager:
    """Holds the current config, validates updates, persists and notifies.

    Args:
        store: Durable key-value store. ``None`` keeps config in memory only.
        key: Settings key the config is stored under.
        defaults: Initial values (default from process settings).
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        *,
        key: str | None = None,
        defaults: dict[str, Any] | None = None,
    ) -> None:
        self._store = store
        self._key = key or settings.automation_config_key
        if defaults is None:
            defaults = settings.automation_defaults()
        self._config = _validate(defaults)
        self._listeners: list[ConfigListener] = []

    async def load(self) -> AutomationConfig:
        """Merge the persisted config (if any) over the defaults.

        A missing, unreadable, or invalid record leaves the defaults in place.
        """
        if self._store is None:
            return self.get_config()
        try:
            saved = await self._store.get(self._key)
        except Exception:
            logger.exception("Failed to read automation config; using defaults")
            return self.get_config()
        if not saved:
            return self.get_config()
        try:
            self._config = _validate({**self._config.model_dump(), **saved})
        except ConfigError as exc:
            logger.warning("Ignoring saved automation config: %s", exc)
        else:
            logger.info("Loaded automation config: %s", self._config.model_dump())
        return self.get_config()

    def get_config(self) -> AutomationConfig:
        """Return a copy of the current config."""
        return self._config.model_copy()

    def subscribe(self, listener: ConfigListener) -> None:
        """Call ``await listener(old, new)`` after every successful update."""
        self._listeners.append(listener)

    async def update_config(self, **changes: Any) -> AutomationConfig:
        """Validate and apply a partial update.

        Raises:
            ConfigError: Any supplied value is invalid or unknown. The current
                config is left unchanged.
        """
        old = self._config
        new = _validate({**old.model_dump(), **changes})
        self._config = new
        changed = sorted(k for k in changes if getattr(old, k) != getattr(new, k))
        logger.info("Automation config updated (changed=%s)", changed or "none")

        if self._store is not None:
            try:
                await self._store.set(self._key, new.model_dump())
            except Exception:
                logger.exception("Failed to persist automation config")

        for listener in list(self._listeners):
            await listener(old.model_copy(), new.model_copy())
        return self.get_config()
