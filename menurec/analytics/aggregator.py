from __future__ import annotations

import time
from collections import Counter
from typing import Iterable

from ..recommendations.models import (
    InteractionAction,
    RecommendationAnalytics,
    RecommendationInteraction,
)
from .store import InteractionLog

_SECONDS_PER_DAY = 86_400


def _rate(count: int, total: int) -> float:
    return count * 100 / total if total else 0.0


def compute_analytics(
    interactions: Iterable[RecommendationInteraction],
    tenant_id: str,
    window_days: int = 30,
    now: float | None = None,
) -> RecommendationAnalytics:
    """Summarise one tenant's interactions over the trailing ``window_days``."""
    now = time.time() if now is None else now
    cutoff = now - window_days * _SECONDS_PER_DAY

    actions: Counter[InteractionAction] = Counter(
        i.action for i in interactions
        if i.tenant_id == tenant_id and i.timestamp >= cutoff
    )
    total = actions[InteractionAction.viewed]
    clicks = actions[InteractionAction.clicked]
    conversions = actions[InteractionAction.added]
    dismissals = actions[InteractionAction.dismissed]

    return RecommendationAnalytics(
        tenant_id=tenant_id,
        window_days=window_days,
        total_recommendations=total,
        clicks=clicks,
        conversions=conversions,
        dismissals=dismissals,
        click_rate=_rate(clicks, total),
        conversion_rate=_rate(conversions, total),
        dismiss_rate=_rate(dismissals, total),
    )


def get_analytics(
    log: InteractionLog, tenant_id: str, window_days: int = 30,
) -> RecommendationAnalytics:
    return compute_analytics(log.get_interactions(tenant_id), tenant_id, window_days)
