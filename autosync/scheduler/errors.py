"""Error taxonomy for the automation engine."""

from __future__ import annotations

import builtins


class AutomationError(Exception):
    """Base class for all engine errors."""


class ValidationError(AutomationError):
    """Unknown kind or priority, bad payload, or no handler for a kind."""


class ConfigError(AutomationError):
    """Rejected configuration value. The current config is left unchanged."""


class HandlerError(AutomationError):
    """A registered handler raised while processing a task."""


class TimeoutError(AutomationError, builtins.TimeoutError):  # noqa: A001
    """A handler ran longer than the configured timeout."""


class TaskNotFoundError(AutomationError, KeyError):
    """No task with the given ID exists in the store."""

    def __init__(self, task_id: str) -> None:
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"Task not found: {self.task_id}"


class TaskStateError(AutomationError):
    """Illegal status transition."""
