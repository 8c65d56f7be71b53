from __future__ import annotations

from fastapi import Depends, FastAPI, HTTPException, Query

from .analytics.aggregator import get_analytics
from .analytics.store import InteractionLog, InteractionWriteError, get_interaction_log
from .data_store import AggregateQueryLayer, get_query_layer
from .recommendations.cache import get_cache_stats
from .recommendations.models import (
    AnalyticsResponse,
    InteractionRequest,
    InteractionResponse,
    RecommendationRequest,
    RecommendationResponse,
)
from .recommendations.retrieval import get_recommendations

app = FastAPI(title="Menu Recommendation API", version="1.0.0")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# ── Storefront endpoints ─────────────────────────────────────────────────


@app.post("/recommendations", response_model=RecommendationResponse)
async def recommendations(
    body: RecommendationRequest,
    queries: AggregateQueryLayer = Depends(get_query_layer),
) -> RecommendationResponse:
    items = await get_recommendations(
        queries,
        body.customer_id,
        body.tenant_id,
        body.current_selection_ids,
        body.max_count,
    )
    return RecommendationResponse(recommendations=items)


@app.post("/recommendations/track", response_model=InteractionResponse)
def track_interaction(
    body: InteractionRequest,
    log: InteractionLog = Depends(get_interaction_log),
) -> InteractionResponse:
    try:
        log.record_interaction(
            body.customer_id,
            body.tenant_id,
            body.recommended_item_id,
            body.action,
        )
    except InteractionWriteError:
        raise HTTPException(
            status_code=503, detail="Interaction could not be recorded, please retry",
        )
    return InteractionResponse()


# ── Reporting endpoints ──────────────────────────────────────────────────


@app.get("/recommendations/analytics", response_model=AnalyticsResponse)
def recommendation_analytics(
    tenant_id: str = Query(..., min_length=1),
    window_days: int = Query(default=30, ge=1, le=365),
    log: InteractionLog = Depends(get_interaction_log),
) -> AnalyticsResponse:
    return AnalyticsResponse(analytics=get_analytics(log, tenant_id, window_days))


@app.get("/cache/stats")
def cache_stats() -> dict:
    return get_cache_stats()
