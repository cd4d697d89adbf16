"""Point-in-time task statistics."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from autosync.scheduler.models import TaskStatus

if TYPE_CHECKING:
    from autosync.scheduler.store import TaskStore


@dataclass(frozen=True)
class TaskStats:
    total: int = 0
    pending: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    success_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def success_rate(completed: int, failed: int) -> float:
    """``completed / (completed + failed)``, or 0 when nothing has finished."""
    finished = completed + failed
    return completed / finished if finished else 0.0


async def compute_stats(store: TaskStore) -> TaskStats:
    """Scan the store and return fresh counts. Nothing is cached."""
    counts = await store.count_by_status()
    completed = counts[TaskStatus.COMPLETED]
    failed = counts[TaskStatus.FAILED]
    return TaskStats(
        total=sum(counts.values()),
        pending=counts[TaskStatus.PENDING],
        running=counts[TaskStatus.RUNNING],
        completed=completed,
        failed=failed,
        success_rate=success_rate(completed, failed),
    )
