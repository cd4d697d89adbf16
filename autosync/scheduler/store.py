"""TaskStore: in-memory task records guarded by a single asyncio lock.

Task records are transient: nothing here is written to disk, and every
record is lost when the process exits.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from autosync.scheduler.errors import TaskNotFoundError, TaskStateError, ValidationError
from autosync.scheduler.models import (
    PAYLOAD_MODELS,
    AutomationTask,
    TaskKind,
    TaskPayload,
    TaskPriority,
    TaskStatus,
    make_task_id,
)

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


class TaskClock:
    """UTC clock that never returns the same instant twice."""

    def __init__(self, now: Callable[[], datetime] | None = None) -> None:
        self._now = now or (lambda: datetime.now(UTC))
        self._last: datetime | None = None

    def __call__(self) -> datetime:
        now = self._now()
        if self._last is not None and now <= self._last:
            now = self._last + _TICK
        self._last = now
        return now


def coerce_kind(kind: TaskKind | str) -> TaskKind:
    try:
        return TaskKind(kind)
    except ValueError:
        msg = f"Unknown task kind: {kind!r}"
        raise ValidationError(msg) from None


def coerce_priority(priority: TaskPriority | str) -> TaskPriority:
    try:
        return TaskPriority(priority)
    except ValueError:
        msg = f"Unknown task priority: {priority!r}"
        raise ValidationError(msg) from None


def coerce_status(status: TaskStatus | str) -> TaskStatus:
    try:
        return TaskStatus(status)
    except ValueError:
        msg = f"Unknown task status: {status!r}"
        raise ValidationError(msg) from None


def coerce_payload(
    kind: TaskKind, payload: TaskPayload | dict[str, Any] | None
) -> TaskPayload:
    """Validate *payload* against the model registered for *kind*."""
    model = PAYLOAD_MODELS[kind]
    if isinstance(payload, model):
        return payload
    if isinstance(payload, TaskPayload):
        msg = f"Payload {type(payload).__name__} does not match kind '{kind}'"
        raise ValidationError(msg)
    try:
        return model.model_validate(payload or {})
    except PydanticValidationError as exc:
        msg = f"Invalid payload for kind '{kind}': {exc}"
        raise ValidationError(msg) from exc


class TaskStore:
    """Holds every task record for the lifetime of the engine.

    All mutations run under :attr:`lock`. The scheduler takes the same lock
    for its admission step, so counting running tasks and flipping them to
    ``running`` happen atomically with respect to completions.

    Read operations return snapshots; callers never see live records.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._tasks: dict[str, AutomationTask] = {}
        self._clock = clock or TaskClock()
        self.lock = asyncio.Lock()

    # -- Insert / query --------------------------------------------------------

    async def add_task(
        self,
        kind: TaskKind | str,
        priority: TaskPriority | str = TaskPriority.MEDIUM,
        payload: TaskPayload | dict[str, Any] | None = None,
    ) -> str:
        """Validate and insert a new pending task. Returns its ID."""
        task_kind = coerce_kind(kind)
        task_priority = coerce_priority(priority)
        task_payload = coerce_payload(task_kind, payload)

        async with self.lock:
            task_id = make_task_id()
            while task_id in self._tasks:
                task_id = make_task_id()
            self._tasks[task_id] = AutomationTask(
                id=task_id,
                kind=task_kind,
                priority=task_priority,
                payload=task_payload,
                created_at=self._clock(),
            )
        logger.info("Enqueued task %s (kind=%s priority=%s)", task_id, task_kind, task_priority)
        return task_id

    async def get_task(self, task_id: str) -> AutomationTask | None:
        """Fetch a snapshot of a task by ID, or None if not found."""
        async with self.lock:
            task = self._tasks.get(task_id)
            return task.snapshot() if task else None

    async def list_tasks(
        self,
        *,
        status: TaskStatus | str | None = None,
        kind: TaskKind | str | None = None,
    ) -> list[AutomationTask]:
        """Return snapshots ordered newest-first, optionally filtered."""
        status_filter = coerce_status(status) if status is not None else None
        kind_filter = coerce_kind(kind) if kind is not None else None
        async with self.lock:
            tasks = [
                t.snapshot()
                for t in self._tasks.values()
                if (status_filter is None or t.status == status_filter)
                and (kind_filter is None or t.kind == kind_filter)
            ]
        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return tasks

    async def count_by_status(self) -> dict[TaskStatus, int]:
        """Return a count for every status (zero-filled)."""
        counts = dict.fromkeys(TaskStatus, 0)
        async with self.lock:
            for task in self._tasks.values():
                counts[task.status] += 1
        return counts

    async def clear_completed_tasks(self) -> int:
        """Remove every completed or failed task. Returns how many were removed."""
        async with self.lock:
            terminal = [tid for tid, t in self._tasks.items() if t.status.is_terminal]
            for tid in terminal:
                del self._tasks[tid]
        if terminal:
            logger.info("Cleared %d finished task(s)", len(terminal))
        return len(terminal)

    # -- Status transitions ----------------------------------------------------

    def admit_locked(self, max_concurrent: int) -> list[AutomationTask]:
        """Promote pending tasks to running, up to the free capacity.

        The caller must hold :attr:`lock`. Returns snapshots of the admitted
        tasks in admission order.
        """
        running = sum(1 for t in self._tasks.values() if t.status == TaskStatus.RUNNING)
        capacity = max_concurrent - running
        if capacity <= 0:
            return []

        pending = sorted(
            (t for t in self._tasks.values() if t.status == TaskStatus.PENDING),
            key=lambda t: t.admission_key,
        )
        admitted = []
        for task in pending[:capacity]:
            task.status = TaskStatus.RUNNING
            task.started_at = self._clock()
            admitted.append(task.snapshot())
        return admitted

    async def mark_completed(self, task_id: str, result: Any) -> AutomationTask:
        """Move a running task to ``completed`` and store its result."""
        async with self.lock:
            task = self._require_running(task_id)
            task.status = TaskStatus.COMPLETED
            task.completed_at = self._clock()
            task.result = result
            return task.snapshot()

    async def mark_failed(self, task_id: str, error: str) -> AutomationTask:
        """Move a running task to ``failed`` and store the reason."""
        async with self.lock:
            task = self._require_running(task_id)
            task.status = TaskStatus.FAILED
            task.completed_at = self._clock()
            task.error = error
            return task.snapshot()

    async def fail_if_running(self, task_id: str, error: str) -> bool:
        """Fail a task that is still running. Returns False if it already finished."""
        async with self.lock:
            task = self._tasks.get(task_id)
            if task is None or task.status != TaskStatus.RUNNING:
                return False
            task.status = TaskStatus.FAILED
            task.completed_at = self._clock()
            task.error = error
            return True

    def _require_running(self, task_id: str) -> AutomationTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.status != TaskStatus.RUNNING:
            msg = f"Task {task_id} is {task.status}, expected running"
            raise TaskStateError(msg)
        return task

    def __len__(self) -> int:
        return len(self._tasks)
