"""Built-in handlers for the six task kinds.

They only orchestrate calls into a :class:`MarketplaceGateway`; the
marketplace adapters themselves (Ozon, Wildberries, Yandex Market) live in
the host application.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from autosync.scheduler.models import TaskKind
from autosync.scheduler.registry import HandlerRegistry

if TYPE_CHECKING:
    from autosync.scheduler.models import (
        AdvertisingPayload,
        AnalyticsPayload,
        OrdersPayload,
        PriceOptimizationPayload,
        ProductSyncPayload,
        ReviewsPayload,
    )

logger = logging.getLogger(__name__)


class MarketplaceGateway(Protocol):
    """What the built-in handlers need from the marketplace layer."""

    async def list_integrations(self) -> list[dict[str, Any]]: ...

    async def get_products(self, integrations: list[dict[str, Any]]) -> list[dict[str, Any]]: ...

    async def get_kpi(self, integrations: list[dict[str, Any]]) -> dict[str, Any]: ...


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def _select(integrations: list[dict[str, Any]], marketplaces: list[str]) -> list[dict[str, Any]]:
    """Keep integrations for the requested marketplaces (all when none requested)."""
    if not marketplaces:
        return integrations
    wanted = {m.lower() for m in marketplaces}
    return [i for i in integrations if str(i.get("marketplace", "")).lower() in wanted]


def build_default_registry(gateway: MarketplaceGateway) -> HandlerRegistry:
    """Return a registry with a handler for every :class:`TaskKind`."""
    registry = HandlerRegistry()

    @registry.handler(TaskKind.PRODUCT_SYNC)
    async def product_sync(payload: ProductSyncPayload) -> dict[str, Any]:
        integrations = _select(await gateway.list_integrations(), payload.marketplaces)
        products = await gateway.get_products(integrations)
        logger.info(
            "Product sync: %d product(s) across %d integration(s)",
            len(products),
            len(integrations),
        )
        return {"synced_products": len(products), "timestamp": _timestamp()}

    @registry.handler(TaskKind.PRICE_OPTIMIZATION)
    async def price_optimization(payload: PriceOptimizationPayload) -> dict[str, Any]:
        integrations = _select(await gateway.list_integrations(), payload.marketplaces)
        logger.info(
            "Price optimization over %d integration(s) (max change %.1f%%)",
            len(integrations),
            payload.max_change_percent,
        )
        return {"optimized_prices": 0, "timestamp": _timestamp()}

    @registry.handler(TaskKind.ANALYTICS)
    async def analytics(payload: AnalyticsPayload) -> dict[str, Any]:
        integrations = await gateway.list_integrations()
        kpi = await gateway.get_kpi(integrations)
        return {
            "analytics_data": kpi,
            "period_days": payload.period_days,
            "timestamp": _timestamp(),
        }

    @registry.handler(TaskKind.ADVERTISING)
    async def advertising(payload: AdvertisingPayload) -> dict[str, Any]:
        return {"optimized_campaigns": len(payload.campaign_ids), "timestamp": _timestamp()}

    @registry.handler(TaskKind.REVIEWS)
    async def reviews(payload: ReviewsPayload) -> dict[str, Any]:
        return {"processed_reviews": 0, "timestamp": _timestamp()}

    @registry.handler(TaskKind.ORDERS)
    async def orders(payload: OrdersPayload) -> dict[str, Any]:
        return {"processed_orders": 0, "timestamp": _timestamp()}

    return registry
