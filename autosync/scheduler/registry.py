"""Handler registry: maps each task kind to the coroutine that runs it."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any

from autosync.scheduler.models import TaskKind

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from autosync.scheduler.models import TaskPayload

    Handler = Callable[[TaskPayload], Awaitable[Any]]

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Kind -> handler mapping supplied by the host application.

    Supports two registration styles::

        registry.register(TaskKind.ANALYTICS, collect_analytics)

        @registry.handler(TaskKind.ORDERS)
        async def process_orders(payload: OrdersPayload) -> dict:
            ...
    """

    def __init__(self) -> None:
        self._handlers: dict[TaskKind, Handler] = {}

    def register(self, kind: TaskKind | str, fn: Handler) -> None:
        """Register *fn* for *kind*, replacing any previous handler."""
        kind = TaskKind(kind)
        if not inspect.iscoroutinefunction(fn):
            msg = f"Handler for '{kind}' must be an async function"
            raise TypeError(msg)
        if kind in self._handlers:
            logger.info("Replacing handler for kind '%s'", kind)
        self._handlers[kind] = fn

    def handler(self, kind: TaskKind | str) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register`."""

        def decorator(fn: Handler) -> Handler:
            self.register(kind, fn)
            return fn

        return decorator

    def unregister(self, kind: TaskKind | str) -> bool:
        return self._handlers.pop(TaskKind(kind), None) is not None

    def get(self, kind: TaskKind | str) -> Handler | None:
        """Look up the handler for a kind."""
        try:
            return self._handlers.get(TaskKind(kind))
        except ValueError:
            return None

    @property
    def kinds(self) -> list[TaskKind]:
        """All kinds that currently have a handler."""
        return list(self._handlers.keys())

    def __contains__(self, kind: object) -> bool:
        return self.get(kind) is not None  # type: ignore[arg-type]
