from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from menurec.analytics.aggregator import compute_analytics, get_analytics
from menurec.analytics.store import InteractionLog, get_interaction_log
from menurec.app import app
from menurec.recommendations.models import InteractionAction, RecommendationInteraction

NOW = 1_750_000_000.0
DAY = 86_400


def _interaction(action: str, days_ago: float = 1, tenant_id: str = "t1"):
    return RecommendationInteraction(
        customer_id="c1",
        tenant_id=tenant_id,
        recommended_item_id="fries",
        action=InteractionAction(action),
        timestamp=NOW - days_ago * DAY,
    )


def test_no_interactions_gives_zero_rates():
    result = compute_analytics([], "t1", 30, now=NOW)
    assert result.total_recommendations == 0
    assert result.clicks == 0
    assert result.conversions == 0
    assert result.click_rate == 0.0
    assert result.conversion_rate == 0.0


def test_rates_from_counts():
    interactions = (
        [_interaction("viewed")] * 100
        + [_interaction("clicked")] * 20
        + [_interaction("added")] * 5
        + [_interaction("dismissed")] * 10
    )
    result = compute_analytics(interactions, "t1", 30, now=NOW)
    assert (
        result.total_recommendations,
        result.clicks,
        result.conversions,
        result.click_rate,
        result.conversion_rate,
    ) == (100, 20, 5, 20.0, 5.0)
    assert result.dismissals == 10
    assert result.dismiss_rate == 10.0


def test_clicks_without_views_do_not_divide_by_zero():
    result = compute_analytics([_interaction("clicked")], "t1", 30, now=NOW)
    assert result.clicks == 1
    assert result.click_rate == 0.0


def test_window_and_tenant_filtering():
    interactions = [
        _interaction("viewed", days_ago=1),
        _interaction("viewed", days_ago=45),
        _interaction("viewed", days_ago=2, tenant_id="t2"),
        _interaction("clicked", days_ago=3),
    ]
    result = compute_analytics(interactions, "t1", 30, now=NOW)
    assert result.total_recommendations == 1
    assert result.click_rate == 100.0

    wider = compute_analytics(interactions, "t1", 60, now=NOW)
    assert wider.total_recommendations == 2
    assert wider.click_rate == 50.0


def test_rates_exact_until_serialized():
    interactions = [_interaction("viewed")] * 3 + [_interaction("clicked")]
    result = compute_analytics(interactions, "t1", now=NOW)

    assert result.click_rate == pytest.approx(100 / 3)
    assert result.model_dump()["click_rate"] == 33.3


def test_get_analytics_is_idempotent():
    log = InteractionLog()
    for action in ("viewed", "viewed", "clicked", "added"):
        log.record_interaction("c1", "t1", "fries", action)

    first = get_analytics(log, "t1", 30)
    second = get_analytics(log, "t1", 30)

    assert first == second
    assert first.total_recommendations == 2
    assert first.conversion_rate == 50.0


def test_get_analytics_uses_log_timestamps():
    log = InteractionLog()
    with patch("menurec.analytics.store.time.time", return_value=NOW - 40 * DAY):
        log.record_interaction("c1", "t1", "fries", "viewed")
    log.record_interaction("c1", "t1", "fries", "viewed")

    assert get_analytics(log, "t1", 30).total_recommendations == 1


# ── HTTP ─────────────────────────────────────────────────────────────────


@pytest.fixture
def log():
    return InteractionLog()


@pytest.fixture
def client(log):
    app.dependency_overrides[get_interaction_log] = lambda: log
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_analytics_endpoint_empty(client):
    resp = client.get("/recommendations/analytics", params={"tenant_id": "t1"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["analytics"]["total_recommendations"] == 0
    assert body["analytics"]["click_rate"] == 0.0
    assert body["analytics"]["window_days"] == 30


def test_analytics_endpoint_after_tracking(client):
    for action in ("viewed", "viewed", "viewed", "viewed", "clicked", "added"):
        client.post("/recommendations/track", json={
            "customer_id": "c1",
            "tenant_id": "t1",
            "recommended_item_id": "fries",
            "action": action,
        })
    resp = client.get(
        "/recommendations/analytics", params={"tenant_id": "t1", "window_days": 7},
    )
    analytics = resp.json()["analytics"]
    assert analytics["total_recommendations"] == 4
    assert analytics["clicks"] == 1
    assert analytics["conversions"] == 1
    assert analytics["click_rate"] == 25.0
    assert analytics["conversion_rate"] == 25.0


def test_analytics_endpoint_requires_tenant(client):
    assert client.get("/recommendations/analytics").status_code == 422


def test_analytics_endpoint_rejects_bad_window(client):
    resp = client.get(
        "/recommendations/analytics", params={"tenant_id": "t1", "window_days": 0},
    )
    assert resp.status_code == 422


def test_analytics_endpoint_rounds_rates(client):
    for action in ("viewed", "viewed", "viewed", "clicked"):
        client.post("/recommendations/track", json={
            "tenant_id": "t1",
            "recommended_item_id": "fries",
            "action": action,
        })
    resp = client.get("/recommendations/analytics", params={"tenant_id": "t1"})
    assert resp.json()["analytics"]["click_rate"] == 33.3
