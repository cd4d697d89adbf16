"""TaskExecutor: runs a single admitted task against its handler."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from autosync.scheduler.errors import HandlerError, TimeoutError, ValidationError

if TYPE_CHECKING:
    from autosync.scheduler.config_manager import ConfigManager
    from autosync.scheduler.models import AutomationTask
    from autosync.scheduler.registry import Handler, HandlerRegistry
    from autosync.scheduler.store import TaskStore

logger = logging.getLogger(__name__)

TIMEOUT_ERROR = "timeout"
CANCELLED_ERROR = "cancelled"


class TaskExecutor:
    """Dispatches a running task to its handler and records the outcome.

    Every failure (missing handler, handler exception, timeout) is written
    to the task record. Nothing propagates back to the scheduler loop.

    Args:
        store: TaskStore holding the record.
        registry: Kind -> handler mapping.
        config: ConfigManager providing the current timeout.
    """

    def __init__(
        self,
        store: TaskStore,
        registry: HandlerRegistry,
        config: ConfigManager,
    ) -> None:
        self._store = store
        self._registry = registry
        self._config = config

    async def execute(self, task: AutomationTask) -> AutomationTask:
        """Run *task* (already ``running``) to a terminal state.

        If the execution is cancelled at any point, including while the
        outcome is being written, the task is left ``failed`` rather than
        ``running``.
        """
        try:
            return await self._execute(task)
        except asyncio.CancelledError:
            # Shielded so a second cancellation cannot strand the record.
            await asyncio.shield(self._store.fail_if_running(task.id, CANCELLED_ERROR))
            raise

    async def _execute(self, task: AutomationTask) -> AutomationTask:
        t0 = time.monotonic()
        try:
            result = await self._run(task)
        except TimeoutError:
            logger.warning(
                "Task %s (%s) timed out after %.2fs", task.id, task.kind, time.monotonic() - t0
            )
            return await self._store.mark_failed(task.id, TIMEOUT_ERROR)
        except ValidationError as exc:
            logger.warning("Task %s (%s) rejected: %s", task.id, task.kind, exc)
            return await self._store.mark_failed(task.id, str(exc))
        except HandlerError as exc:
            logger.exception("Task %s (%s) failed", task.id, task.kind)
            return await self._store.mark_failed(task.id, str(exc))

        logger.info(
            "Task %s (%s) completed in %.2fs", task.id, task.kind, time.monotonic() - t0
        )
        return await self._store.mark_completed(task.id, result)

    async def _run(self, task: AutomationTask) -> Any:
        """Invoke the handler, racing it against the configured timeout."""
        handler = self._registry.get(task.kind)
        if handler is None:
            msg = f"No handler registered for kind '{task.kind}'"
            raise ValidationError(msg)

        timeout = self._config.get_config().timeout_seconds
        logger.info("Executing task %s (%s, timeout=%.1fs)", task.id, task.kind, timeout)

        # A bare task so a handler that ignores cancellation cannot hold us past the deadline.
        call = asyncio.ensure_future(_invoke(handler, task))
        try:
            done, _ = await asyncio.wait({call}, timeout=timeout)
        except asyncio.CancelledError:
            call.cancel()
            raise
        if not done:
            call.cancel()
            call.add_done_callback(_consume_result)
            raise TimeoutError(TIMEOUT_ERROR)
        return call.result()


async def _invoke(handler: Handler, task: AutomationTask) -> Any:
    try:
        return await handler(task.payload)
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        reason = str(exc) or type(exc).__name__
        raise HandlerError(reason) from exc


def _consume_result(fut: asyncio.Future) -> None:
    """Retrieve the outcome of an abandoned handler so asyncio does not warn."""
    if fut.cancelled():
        return
    exc = fut.exception()
    if exc is not None:
        logger.debug("Abandoned handler finished with %r", exc)
