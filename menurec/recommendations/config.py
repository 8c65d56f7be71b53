from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class RecommendationConfig:
    # Complementary items: co-occurrence ratio, damped and capped
    co_occurrence_floor: int = 3
    co_occurrence_damping: float = 0.8
    co_occurrence_ceiling: float = 0.9
    co_occurrence_limit: int = 10

    history_confidence: float = 0.7
    history_sample_size: int = 5

    dietary_confidence: float = 0.8
    dietary_sample_size: int = 3

    trending_confidence: float = 0.6
    trending_window_days: int = 30
    trending_min_order_count: int = 5
    trending_limit: int = 8
    trending_cache_ttl: float = float(os.getenv("MENUREC_TRENDING_CACHE_TTL", "300"))

    default_max_count: int = 5
    generator_timeout: float = float(os.getenv("MENUREC_GENERATOR_TIMEOUT", "5.0"))


DEFAULT_RECOMMENDATION_CONFIG = RecommendationConfig()
