"""AutomationEngine: periodic admission loop and the public engine API."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from functools import partial
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from autosync.scheduler.config_manager import TIMER_FIELDS, ConfigManager
from autosync.scheduler.errors import TaskNotFoundError, ValidationError
from autosync.scheduler.executor import TaskExecutor
from autosync.scheduler.models import TaskPriority, TaskStatus
from autosync.scheduler.stats import TaskStats, compute_stats
from autosync.scheduler.store import TaskStore

if TYPE_CHECKING:
    from autosync.scheduler.config_manager import AutomationConfig
    from autosync.scheduler.models import AutomationTask, TaskKind, TaskPayload
    from autosync.scheduler.registry import HandlerRegistry

logger = logging.getLogger(__name__)

TICK_JOB_ID = "automation-tick"


class AutomationEngine:
    """Owns the task store, config, executor, and the periodic ticker.

    Construct one per process and pass it to whatever needs it.

    Args:
        registry: Kind -> handler mapping supplied by the host application.
        store: TaskStore (a fresh in-memory store by default).
        config: ConfigManager (in-memory, settings defaults by default).
        executor: TaskExecutor (built from the above by default).
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        *,
        store: TaskStore | None = None,
        config: ConfigManager | None = None,
        executor: TaskExecutor | None = None,
    ) -> None:
        self.registry = registry
        self.store = store if store is not None else TaskStore()
        self.config = config if config is not None else ConfigManager()
        if executor is None:
            executor = TaskExecutor(self.store, registry, self.config)
        self._executor = executor
        self._scheduler = AsyncIOScheduler(timezone=UTC)
        self._tick_lock = asyncio.Lock()
        self._inflight: dict[str, asyncio.Task] = {}
        self._running = False
        self.config.subscribe(self._on_config_change)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> list[str]:
        """IDs of tasks whose execution handle has not finished yet."""
        return list(self._inflight)

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> bool:
        """Arm the ticker and run the first tick right away.

        Returns False (and stays stopped) when the config is disabled.
        """
        cfg = self.config.get_config()
        if not cfg.enabled:
            logger.info("Automation disabled; scheduler not started")
            return False
        async with self._tick_lock:
            self._arm(cfg)
            self._running = True
        logger.info(
            "Automation scheduler started (interval=%dms, max_concurrent=%d)",
            cfg.interval_ms,
            cfg.max_concurrent_tasks,
        )
        return True

    async def stop(self) -> None:
        """Cancel the ticker. In-flight tasks keep running to completion.

        Once this returns no further admissions happen until :meth:`start`.
        """
        async with self._tick_lock:
            if not self._running:
                return
            self._running = False
            if self._scheduler.get_job(TICK_JOB_ID) is not None:
                self._scheduler.remove_job(TICK_JOB_ID)
        logger.info(
            "Automation scheduler stopped (%d task(s) still in flight)", len(self._inflight)
        )

    async def shutdown(self, *, wait: bool = True) -> None:
        """Stop ticking, release APScheduler, and optionally drain in-flight tasks."""
        await self.stop()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        if wait:
            await self.join()

    def _arm(self, cfg: AutomationConfig) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
        self._scheduler.add_job(
            self._scheduled_tick,
            trigger=IntervalTrigger(seconds=cfg.interval_seconds, timezone=UTC),
            id=TICK_JOB_ID,
            name="automation tick",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
            next_run_time=datetime.now(UTC),
        )

    async def _on_config_change(self, old: AutomationConfig, new: AutomationConfig) -> None:
        changed = {f for f in TIMER_FIELDS if getattr(old, f) != getattr(new, f)}
        if not changed:
            return
        if not new.enabled:
            await self.stop()
        elif self._running or "enabled" in changed:
            logger.info("Re-arming automation scheduler (changed=%s)", sorted(changed))
            async with self._tick_lock:
                self._arm(new)
                self._running = True

    # -- Admission -------------------------------------------------------------

    async def _scheduled_tick(self) -> None:
        """Callback invoked by APScheduler."""
        await self._tick(scheduled=True)

    async def tick(self) -> list[AutomationTask]:
        """Run one admission pass. Returns the tasks that were admitted.

        Admitted tasks start executing in the background; this does not wait
        for them. Does nothing while the config is disabled.
        """
        return await self._tick(scheduled=False)

    async def _tick(self, *, scheduled: bool) -> list[AutomationTask]:
        async with self._tick_lock:
            # A scheduled run that raced with stop() must not admit.
            if scheduled and not self._running:
                return []
            cfg = self.config.get_config()
            if not cfg.enabled:
                return []
            async with self.store.lock:
                admitted = self.store.admit_locked(cfg.max_concurrent_tasks)
            for task in admitted:
                logger.info(
                    "Admitted task %s (kind=%s priority=%s)", task.id, task.kind, task.priority
                )
                self._spawn(task)
        return admitted

    def _spawn(self, task: AutomationTask) -> None:
        handle = asyncio.create_task(self._executor.execute(task), name=f"automation-{task.id}")
        self._inflight[task.id] = handle
        handle.add_done_callback(partial(self._on_done, task.id))

    def _on_done(self, task_id: str, handle: asyncio.Task) -> None:
        self._inflight.pop(task_id, None)
        if handle.cancelled():
            logger.info("Execution of task %s was cancelled", task_id)
            return
        exc = handle.exception()
        if exc is not None:
            logger.error("Execution of task %s raised unexpectedly", task_id, exc_info=exc)

    async def join(self, task_id: str | None = None) -> None:
        """Wait for one in-flight task, or for every in-flight task."""
        if task_id is not None:
            handle = self._inflight.get(task_id)
            if handle is not None:
                await asyncio.wait({handle})
            return
        while self._inflight:
            await asyncio.wait(set(self._inflight.values()))

    # -- Tasks -----------------------------------------------------------------

    async def add_task(
        self,
        kind: TaskKind | str,
        priority: TaskPriority | str = TaskPriority.MEDIUM,
        payload: TaskPayload | dict[str, Any] | None = None,
    ) -> str:
        """Enqueue a task. Raises ValidationError for an unknown kind or bad payload."""
        return await self.store.add_task(kind, priority, payload)

    async def get_task(self, task_id: str) -> AutomationTask | None:
        return await self.store.get_task(task_id)

    async def require_task(self, task_id: str) -> AutomationTask:
        """Like :meth:`get_task` but raises TaskNotFoundError when missing."""
        task = await self.store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def list_tasks(
        self,
        *,
        status: TaskStatus | str | None = None,
        kind: TaskKind | str | None = None,
    ) -> list[AutomationTask]:
        return await self.store.list_tasks(status=status, kind=kind)

    async def get_tasks_by_status(self, status: TaskStatus | str) -> list[AutomationTask]:
        return await self.store.list_tasks(status=status)

    async def get_tasks_by_kind(self, kind: TaskKind | str) -> list[AutomationTask]:
        return await self.store.list_tasks(kind=kind)

    async def clear_completed_tasks(self) -> int:
        return await self.store.clear_completed_tasks()

    async def retry_task(self, task_id: str) -> str:
        """Re-queue a failed task as a new record with ``attempt + 1``.

        The failed record is left untouched.

        Raises:
            TaskNotFoundError: Unknown ID.
            ValidationError: The task has not failed, or has no attempts left.
        """
        task = await self.require_task(task_id)
        if task.status != TaskStatus.FAILED:
            msg = f"Only failed tasks can be retried ({task_id} is {task.status})"
            raise ValidationError(msg)

        attempt = task.payload.attempt + 1
        limit = self.config.get_config().retry_attempts
        if attempt > limit:
            msg = f"Task {task_id} has used all {limit} retry attempt(s)"
            raise ValidationError(msg)

        payload = task.payload.model_copy(update={"attempt": attempt, "retry_of": task.id})
        new_id = await self.store.add_task(task.kind, task.priority, payload)
        logger.info(
            "Re-queued failed task %s as %s (attempt %d/%d)", task_id, new_id, attempt, limit
        )
        return new_id

    # -- Config & stats --------------------------------------------------------

    def get_config(self) -> AutomationConfig:
        return self.config.get_config()

    async def update_config(self, **changes: Any) -> AutomationConfig:
        """Apply a partial config update. Raises ConfigError on invalid values."""
        return await self.config.update_config(**changes)

    async def get_stats(self) -> TaskStats:
        return await compute_stats(self.store)
