from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

import numpy as np

from ..data_store.queries import AggregateQueryLayer
from .config import DEFAULT_RECOMMENDATION_CONFIG, RecommendationConfig
from .generators import (
    complementary_items,
    dietary_compatible,
    personalized_from_history,
    trending,
)
from .models import CandidateItem, CustomerOrderPattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratorOutcome:
    """Result of one generator run: its candidates, or the error that replaced them."""

    name: str
    candidates: list[CandidateItem]
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def resolve_customer_pattern(
    queries: AggregateQueryLayer, customer_id: str | None, tenant_id: str,
) -> CustomerOrderPattern:
    """Summarise a customer's order history. Unknown customers get an empty pattern."""
    if not customer_id:
        return CustomerOrderPattern()

    frequent = queries.customer_frequent_items(customer_id, tenant_id)
    return CustomerOrderPattern(
        customer_id=customer_id,
        frequent_item_ids=list(dict.fromkeys(str(r["item_id"]) for r in frequent)),
        preferred_categories=list(dict.fromkeys(r["category"] for r in frequent if r["category"])),
        dietary_preferences=queries.customer_dietary_preferences(customer_id, tenant_id),
        last_order_item_ids=queries.customer_last_order_items(customer_id, tenant_id),
    )


async def _load_pattern(
    queries: AggregateQueryLayer, customer_id: str | None, tenant_id: str, timeout: float,
) -> CustomerOrderPattern:
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(resolve_customer_pattern, queries, customer_id, tenant_id),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Customer pattern lookup timed out after %.1fs", timeout)
    except Exception:
        logger.warning("Customer pattern lookup failed, using an empty pattern", exc_info=True)
    return CustomerOrderPattern(customer_id=customer_id)


async def _run_generator(
    name: str, func: Callable[..., list[CandidateItem]], *args: Any, timeout: float,
) -> GeneratorOutcome:
    try:
        candidates = await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.warning("Generator %s timed out after %.1fs, skipping it", name, timeout)
        return GeneratorOutcome(name, [], exc)
    except Exception as exc:
        logger.warning("Generator %s failed, skipping it", name, exc_info=True)
        return GeneratorOutcome(name, [], exc)
    return GeneratorOutcome(name, list(candidates))


def merge_candidates(
    batches: Iterable[Sequence[CandidateItem]],
    exclude_ids: Iterable[str],
    max_count: int,
) -> list[CandidateItem]:
    """
    Flatten generator batches, keep the first occurrence of each item id,
    drop excluded ids, then rank by confidence.

    Python's sort is stable, so equal confidences keep batch order.
    """
    excluded = set(exclude_ids)
    seen: set[str] = set()
    unique: list[CandidateItem] = []
    for batch in batches:
        for candidate in batch:
            item_id = candidate.item.id
            if item_id in seen or item_id in excluded:
                continue
            seen.add(item_id)
            unique.append(candidate)

    unique.sort(key=lambda c: c.confidence, reverse=True)
    return unique[:max(0, max_count)]


async def get_recommendations(
    queries: AggregateQueryLayer,
    customer_id: str | None,
    tenant_id: str,
    current_selection_ids: Sequence[str] = (),
    max_count: int | None = None,
    rng: np.random.Generator | None = None,
    config: RecommendationConfig = DEFAULT_RECOMMENDATION_CONFIG,
) -> list[CandidateItem]:
    """
    Build the ranked recommendation list for one customer.

    Generators run concurrently; a generator that fails or times out
    contributes nothing and the others still count.  Never raises for
    upstream query failures.
    """
    start_time = time.time()
    selection = list(dict.fromkeys(str(i) for i in current_selection_ids))
    limit = config.default_max_count if max_count is None else max_count
    rng = rng if rng is not None else np.random.default_rng()
    # numpy generators are not thread-safe; give each sampling generator its own stream
    history_rng, dietary_rng = rng.spawn(2)

    pattern = await _load_pattern(
        queries, customer_id, tenant_id, timeout=config.generator_timeout,
    )

    outcomes = await asyncio.gather(
        _run_generator(
            "personalized_history",
            personalized_from_history, queries, tenant_id, pattern, history_rng, config,
            timeout=config.generator_timeout,
        ),
        _run_generator(
            "complementary",
            complementary_items, queries, tenant_id, selection, config,
            timeout=config.generator_timeout,
        ),
        _run_generator(
            "dietary",
            dietary_compatible, queries, tenant_id, pattern.dietary_preferences,
            dietary_rng, config,
            timeout=config.generator_timeout,
        ),
        _run_generator(
            "trending",
            trending, queries, tenant_id, config,
            timeout=config.generator_timeout,
        ),
    )

    results = merge_candidates((o.candidates for o in outcomes), selection, limit)

    elapsed_ms = round((time.time() - start_time) * 1000, 1)
    logger.info(
        "Recommendations tenant=%s customer=%s returned=%d failed=%s in %sms",
        tenant_id,
        customer_id,
        len(results),
        [o.name for o in outcomes if not o.ok] or None,
        elapsed_ms,
    )
    return results
