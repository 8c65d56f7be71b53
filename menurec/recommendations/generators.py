"""
Candidate generators.

Each generator turns aggregate query results into ``CandidateItem`` objects
with a fixed or heuristic confidence.  Generators never know about each other;
the retrieval layer merges their output.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

import numpy as np

from ..data_store.queries import AggregateQueryLayer
from .cache import trending_cache
from .config import DEFAULT_RECOMMENDATION_CONFIG, RecommendationConfig
from .models import CandidateItem, CustomerOrderPattern, MenuItemRef


def _item_ref(row: dict[str, Any]) -> MenuItemRef:
    return MenuItemRef(
        id=str(row["item_id"]),
        name=row["name"],
        category=row["category"],
        price=float(row["price"]),
        image=row.get("image"),
    )


def _sample(
    rows: Sequence[dict[str, Any]], k: int, rng: np.random.Generator,
) -> list[dict[str, Any]]:
    """Pick up to ``k`` rows uniformly at random, without replacement."""
    if not rows or k <= 0:
        return []
    picks = rng.choice(len(rows), size=min(k, len(rows)), replace=False)
    return [rows[int(i)] for i in picks]


def _anchor_label(names: dict[str, str], anchor_ids: Sequence[str]) -> str:
    return ", ".join(names.get(a) or f"Item {a[-4:]}" for a in anchor_ids)


def complementary_items(
    queries: AggregateQueryLayer,
    tenant_id: str,
    anchor_ids: Sequence[str],
    config: RecommendationConfig = DEFAULT_RECOMMENDATION_CONFIG,
) -> list[CandidateItem]:
    """Items often ordered together with at least one of the anchor items."""
    anchors = list(dict.fromkeys(str(a) for a in anchor_ids))
    if not anchors:
        return []

    rows = queries.co_occurrence_candidates(
        tenant_id, anchors, limit=config.co_occurrence_limit,
    )
    if not rows:
        return []

    anchor_set = set(anchors)
    reason = f"Frequently ordered with {_anchor_label(queries.item_names(tenant_id, anchors), anchors)}"

    candidates: list[CandidateItem] = []
    for row in rows:
        count = int(row["co_occurrence_count"])
        total = int(row["total_anchor_orders"])
        if str(row["item_id"]) in anchor_set or total <= 0:
            continue
        if count < config.co_occurrence_floor:
            continue
        ratio = count / total
        confidence = min(ratio * config.co_occurrence_damping, config.co_occurrence_ceiling)
        candidates.append(CandidateItem(
            item=_item_ref(row),
            confidence=max(0.0, confidence),
            reason=reason,
        ))
    return candidates


def personalized_from_history(
    queries: AggregateQueryLayer,
    tenant_id: str,
    pattern: CustomerOrderPattern,
    rng: np.random.Generator,
    config: RecommendationConfig = DEFAULT_RECOMMENDATION_CONFIG,
) -> list[CandidateItem]:
    """Random items from the customer's preferred categories they do not already order often."""
    if not pattern.frequent_item_ids:
        return []

    eligible = queries.preferred_category_items(
        tenant_id, pattern.preferred_categories, pattern.frequent_item_ids,
    )
    frequent = set(pattern.frequent_item_ids)
    categories = set(pattern.preferred_categories)
    eligible = [
        row for row in eligible
        if str(row["item_id"]) not in frequent and row["category"] in categories
    ]

    return [
        CandidateItem(
            item=_item_ref(row),
            confidence=config.history_confidence,
            reason=f"Based on your preference for {row['category'].lower()}",
        )
        for row in _sample(eligible, config.history_sample_size, rng)
    ]


def dietary_compatible(
    queries: AggregateQueryLayer,
    tenant_id: str,
    dietary_preferences: Sequence[str],
    rng: np.random.Generator,
    config: RecommendationConfig = DEFAULT_RECOMMENDATION_CONFIG,
) -> list[CandidateItem]:
    """Random items whose dietary tags overlap the customer's stated preferences."""
    if not dietary_preferences:
        return []

    eligible = queries.dietary_compatible_items(tenant_id, dietary_preferences)
    return [
        CandidateItem(
            item=_item_ref(row),
            confidence=config.dietary_confidence,
            reason="Matches your dietary preferences",
        )
        for row in _sample(eligible, config.dietary_sample_size, rng)
    ]


def trending(
    queries: AggregateQueryLayer,
    tenant_id: str,
    config: RecommendationConfig = DEFAULT_RECOMMENDATION_CONFIG,
    now: datetime | None = None,
) -> list[CandidateItem]:
    """Most ordered items of the tenant over the trailing window."""
    cache_key = {
        "generator": "trending",
        "layer": id(queries),
        "tenant_id": tenant_id,
        "window_days": config.trending_window_days,
        "min_order_count": config.trending_min_order_count,
        "limit": config.trending_limit,
    }
    rows = trending_cache.get(cache_key, ttl=config.trending_cache_ttl) if now is None else None
    if rows is None:
        rows = queries.trending_items(
            tenant_id,
            window_days=config.trending_window_days,
            min_order_count=config.trending_min_order_count,
            now=now,
            limit=config.trending_limit,
        )
        if now is None:
            trending_cache.set(cache_key, rows)

    popular = [r for r in rows if int(r["order_count"]) >= config.trending_min_order_count]
    return [
        CandidateItem(
            item=_item_ref(row),
            confidence=config.trending_confidence,
            reason=(
                f"Popular choice - ordered {int(row['order_count'])} times "
                f"in the last {config.trending_window_days} days"
            ),
        )
        for row in popular[: config.trending_limit]
    ]
