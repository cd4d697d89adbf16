"""Process wiring: logging setup and engine construction."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from autosync.config import settings
from autosync.db import SettingsStore
from autosync.scheduler.config_manager import ConfigManager
from autosync.scheduler.engine import AutomationEngine

if TYPE_CHECKING:
    from autosync.scheduler.registry import HandlerRegistry

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    """Configure root logging from settings. Call once at process start."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, (level or settings.log_level).upper()),
    )
    # APScheduler logs every job run at INFO.
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


async def build_engine(
    registry: HandlerRegistry,
    *,
    settings_store: SettingsStore | None = None,
    start: bool = True,
) -> AutomationEngine:
    """Create the process-wide engine with its persisted config loaded.

    The returned engine should be passed by reference to every consumer.
    """
    store = settings_store or SettingsStore()
    config = ConfigManager(store)
    await config.load()
    engine = AutomationEngine(registry, config=config)
    if start:
        await engine.start()
    logger.info(
        "Automation engine ready (handlers=%s, running=%s)",
        [k.value for k in registry.kinds],
        engine.running,
    )
    return engine
