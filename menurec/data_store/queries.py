from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Protocol


class QueryLayerUnavailable(RuntimeError):
    """The aggregate store could not answer a query."""


class AggregateQueryLayer(Protocol):
    """
    Read-only aggregate views over menu items, orders and customer preferences.

    Item rows are dicts with ``item_id``, ``name``, ``category``, ``price`` and
    ``image`` plus the per-query aggregate fields documented below.  Every query
    is scoped to one tenant and only returns items that are currently available.
    Implementations raise ``QueryLayerUnavailable`` when the store cannot be read.
    """

    def co_occurrence_candidates(
        self, tenant_id: str, anchor_item_ids: Iterable[str], limit: int = 10,
    ) -> list[dict[str, Any]]:
        """Rows with ``co_occurrence_count`` and ``total_anchor_orders``."""
        ...

    def customer_frequent_items(
        self, customer_id: str, tenant_id: str, limit: int = 10,
    ) -> list[dict[str, Any]]:
        """``{item_id, category, frequency}`` ordered by frequency descending."""
        ...

    def customer_dietary_preferences(self, customer_id: str, tenant_id: str) -> list[str]:
        ...

    def customer_last_order_items(self, customer_id: str, tenant_id: str) -> list[str]:
        ...

    def dietary_compatible_items(
        self, tenant_id: str, tags: Iterable[str],
    ) -> list[dict[str, Any]]:
        ...

    def preferred_category_items(
        self, tenant_id: str, categories: Iterable[str], exclude_ids: Iterable[str],
    ) -> list[dict[str, Any]]:
        ...

    def trending_items(
        self,
        tenant_id: str,
        window_days: int = 30,
        min_order_count: int = 5,
        now: datetime | None = None,
        limit: int = 8,
    ) -> list[dict[str, Any]]:
        """Rows with ``order_count`` and ``avg_rating`` (``None`` when unrated)."""
        ...

    def item_names(self, tenant_id: str, item_ids: Iterable[str]) -> dict[str, str]:
        ...


class UnavailableQueryLayer:
    """Stand-in used when the tables could not be loaded; every query raises."""

    def __init__(self, reason: str) -> None:
        self.reason = reason

    def _fail(self, *args: Any, **kwargs: Any) -> Any:
        raise QueryLayerUnavailable(self.reason)

    co_occurrence_candidates = _fail
    customer_frequent_items = _fail
    customer_dietary_preferences = _fail
    customer_last_order_items = _fail
    dietary_compatible_items = _fail
    preferred_category_items = _fail
    trending_items = _fail
    item_names = _fail
