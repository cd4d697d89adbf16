"""Task record, enums, and typed payloads."""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TaskKind(StrEnum):
    """Kinds of work the host application knows how to run."""

    PRODUCT_SYNC = "product_sync"
    PRICE_OPTIMIZATION = "price_optimization"
    ANALYTICS = "analytics"
    ADVERTISING = "advertising"
    REVIEWS = "reviews"
    ORDERS = "orders"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Numeric ordering: higher runs first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TaskPriority.LOW: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.HIGH: 3,
    TaskPriority.CRITICAL: 4,
}


class TaskStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


# -- Payloads ------------------------------------------------------------------


class TaskPayload(BaseModel):
    """Base payload. Carries retry metadata shared by every kind.

    Attributes:
        attempt: 0 for the first run, incremented on each manual re-queue.
        retry_of: ID of the failed task this record re-queues, if any.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    attempt: int = Field(default=0, ge=0)
    retry_of: str | None = None


class ProductSyncPayload(TaskPayload):
    marketplaces: list[str] = Field(default_factory=list)


class PriceOptimizationPayload(TaskPayload):
    marketplaces: list[str] = Field(default_factory=list)
    max_change_percent: float = Field(default=10.0, gt=0, le=100)


class AnalyticsPayload(TaskPayload):
    period_days: int = Field(default=30, ge=1)


class AdvertisingPayload(TaskPayload):
    campaign_ids: list[str] = Field(default_factory=list)


class ReviewsPayload(TaskPayload):
    only_unanswered: bool = True


class OrdersPayload(TaskPayload):
    statuses: list[str] = Field(default_factory=list)


PAYLOAD_MODELS: dict[TaskKind, type[TaskPayload]] = {
    TaskKind.PRODUCT_SYNC: ProductSyncPayload,
    TaskKind.PRICE_OPTIMIZATION: PriceOptimizationPayload,
    TaskKind.ANALYTICS: AnalyticsPayload,
    TaskKind.ADVERTISING: AdvertisingPayload,
    TaskKind.REVIEWS: ReviewsPayload,
    TaskKind.ORDERS: OrdersPayload,
}


# -- Task record ---------------------------------------------------------------


@dataclass
class AutomationTask:
    """One unit of background work and its lifecycle state.

    Attributes:
        id: Unique identifier (``task_`` + UUID hex).
        kind: Which handler processes the task.
        priority: Admission priority, fixed at creation.
        payload: Kind-specific payload passed to the handler.
        status: ``pending`` -> ``running`` -> ``completed`` | ``failed``.
        created_at: Set on insertion.
        started_at: Set once, on admission.
        completed_at: Set once, when the task reaches a terminal state.
        result: Handler return value (completed tasks only).
        error: Failure reason (failed tasks only).
    """

    id: str
    kind: TaskKind
    priority: TaskPriority
    payload: TaskPayload
    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: Any = None
    error: str | None = None

    @property
    def admission_key(self) -> tuple[int, datetime]:
        """Sort key: highest priority first, then oldest first."""
        return (-self.priority.rank, self.created_at)

    def snapshot(self) -> AutomationTask:
        """Return a detached copy safe to hand to callers."""
        return replace(
            self,
            payload=self.payload.model_copy(deep=True),
            result=copy.deepcopy(self.result),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for display and JSON export."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "priority": self.priority.value,
            "status": self.status.value,
            "payload": self.payload.model_dump(),
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "result": self.result,
            "error": self.error,
        }


def make_task_id() -> str:
    """Generate a new task ID."""
    return f"task_{uuid.uuid4().hex}"
