from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class MenuItemRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str
    price: float
    image: str | None = None


class CandidateItem(BaseModel):
    item: MenuItemRef
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str


class CustomerOrderPattern(BaseModel):
    """Order-history summary of one customer; all fields empty for unknown customers."""

    customer_id: str | None = None
    frequent_item_ids: list[str] = Field(default_factory=list)
    preferred_categories: list[str] = Field(default_factory=list)
    dietary_preferences: list[str] = Field(default_factory=list)
    last_order_item_ids: list[str] = Field(default_factory=list)


class InteractionAction(str, Enum):
    viewed = "viewed"
    clicked = "clicked"
    added = "added"
    dismissed = "dismissed"


class RecommendationInteraction(BaseModel):
    model_config = ConfigDict(frozen=True)

    customer_id: str | None = None
    tenant_id: str
    recommended_item_id: str
    action: InteractionAction
    timestamp: float


class RecommendationAnalytics(BaseModel):
    tenant_id: str
    window_days: int
    total_recommendations: int = 0
    clicks: int = 0
    conversions: int = 0
    dismissals: int = 0
    click_rate: float = 0.0
    conversion_rate: float = 0.0
    dismiss_rate: float = 0.0

    @field_serializer("click_rate", "conversion_rate", "dismiss_rate")
    def round_rate(self, value: float) -> float:
        return round(value, 1)


# ── HTTP payloads ────────────────────────────────────────────────────────


class RecommendationRequest(BaseModel):
    customer_id: str | None = None
    tenant_id: str = Field(..., min_length=1)
    current_selection_ids: list[str] = Field(default_factory=list)
    max_count: int = Field(default=5, ge=1, le=50)


class RecommendationResponse(BaseModel):
    success: bool = True
    recommendations: list[CandidateItem]


class InteractionRequest(BaseModel):
    customer_id: str | None = None
    tenant_id: str = Field(..., min_length=1)
    recommended_item_id: str = Field(..., min_length=1)
    action: InteractionAction


class InteractionResponse(BaseModel):
    success: bool = True


class AnalyticsResponse(BaseModel):
    success: bool = True
    analytics: RecommendationAnalytics
