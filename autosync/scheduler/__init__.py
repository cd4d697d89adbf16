"""Automation task system: models, store, config, execution, and scheduling."""

from autosync.scheduler.config_manager import AutomationConfig, ConfigManager
from autosync.scheduler.engine import AutomationEngine
from autosync.scheduler.errors import (
    AutomationError,
    ConfigError,
    HandlerError,
    TaskNotFoundError,
    TaskStateError,
    TimeoutError,  # noqa: A004
    ValidationError,
)
from autosync.scheduler.executor import TaskExecutor
from autosync.scheduler.handlers import MarketplaceGateway, build_default_registry
from autosync.scheduler.models import AutomationTask, TaskKind, TaskPriority, TaskStatus
from autosync.scheduler.registry import HandlerRegistry
from autosync.scheduler.stats import TaskStats
from autosync.scheduler.store import TaskStore

__all__ = [
    "AutomationConfig",
    "AutomationEngine",
    "AutomationError",
    "AutomationTask",
    "ConfigError",
    "ConfigManager",
    "HandlerError",
    "HandlerRegistry",
    "MarketplaceGateway",
    "TaskExecutor",
    "TaskKind",
    "TaskNotFoundError",
    "TaskPriority",
    "TaskStateError",
    "TaskStats",
    "TaskStatus",
    "TaskStore",
    "TimeoutError",
    "ValidationError",
    "build_default_registry",
]
