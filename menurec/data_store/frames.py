from __future__ import annotations

import functools
import json
import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, TypeVar

import numpy as np
import pandas as pd

from .config import DEFAULT_DATA_CONFIG
from .queries import AggregateQueryLayer, QueryLayerUnavailable, UnavailableQueryLayer

logger = logging.getLogger(__name__)

TABLE_COLUMNS: dict[str, list[str]] = {
    "menu_items": [
        "id", "tenant_id", "name", "category", "price", "image",
        "is_available", "dietary_info",
    ],
    "orders": ["id", "tenant_id", "customer_id", "created_at"],
    "order_items": ["order_id", "menu_item_id"],
    "order_ratings": ["order_id", "rating"],
    "customer_preferences": ["customer_id", "tenant_id", "dietary_preferences"],
}

_F = TypeVar("_F", bound=Callable[..., Any])


def _split_tags(value: Any) -> list[str]:
    """Parse a tag cell (list, JSON array or comma-separated string) into lowercase tags."""
    if isinstance(value, (list, tuple, set, frozenset, np.ndarray)):
        raw = list(value)
    elif value is None or pd.isna(value):
        return []
    else:
        text = str(value).strip()
        raw = None
        if text.startswith("["):
            try:
                raw = json.loads(text)
            except ValueError:
                logger.warning("Malformed tag list %r, reading it as comma-separated", text)
        if not isinstance(raw, list):
            raw = text.strip("[]").replace("\"", "").split(",")
    tags = [str(t).strip().lower() for t in raw if str(t).strip()]
    return list(dict.fromkeys(tags))


def _to_bool(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if value is None or pd.isna(value):
        return False
    if isinstance(value, (int, float, np.integer, np.floating)):
        return value != 0
    return str(value).strip().lower() in {"1", "true", "yes", "y"}


def _with_columns(df: pd.DataFrame | None, table: str) -> pd.DataFrame:
    columns = TABLE_COLUMNS[table]
    if df is None:
        return pd.DataFrame(columns=columns)
    df = df.copy()
    if table == "menu_items" and "is_available" not in df.columns:
        df["is_available"] = True
    for col in columns:
        if col not in df.columns:
            df[col] = pd.NA
    return df


def _as_str(series: pd.Series) -> pd.Series:
    return series.fillna("").astype(str)


def _query(func: _F) -> _F:
    """Surface any failure inside a query as ``QueryLayerUnavailable``."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except QueryLayerUnavailable:
            raise
        except Exception as exc:
            raise QueryLayerUnavailable(f"{func.__name__} failed: {exc}") from exc

    return wrapper  # type: ignore[return-value]


class FrameQueryLayer:
    """Aggregate queries computed on the fly from in-memory pandas tables."""

    def __init__(
        self,
        menu_items: pd.DataFrame | None = None,
        orders: pd.DataFrame | None = None,
        order_items: pd.DataFrame | None = None,
        order_ratings: pd.DataFrame | None = None,
        customer_preferences: pd.DataFrame | None = None,
    ) -> None:
        menu = _with_columns(menu_items, "menu_items")
        menu["id"] = _as_str(menu["id"])
        menu["tenant_id"] = _as_str(menu["tenant_id"])
        menu["name"] = _as_str(menu["name"])
        menu["category"] = _as_str(menu["category"])
        menu["price"] = pd.to_numeric(menu["price"], errors="coerce").astype(float)
        menu["available"] = menu["is_available"].apply(_to_bool).astype(bool)
        menu["tags"] = menu["dietary_info"].apply(_split_tags)
        self._menu = menu

        orders = _with_columns(orders, "orders")
        orders["id"] = _as_str(orders["id"])
        orders["tenant_id"] = _as_str(orders["tenant_id"])
        orders["customer_id"] = _as_str(orders["customer_id"])
        orders["created_at"] = pd.to_datetime(orders["created_at"], utc=True, errors="coerce")
        self._orders = orders

        lines = _with_columns(order_items, "order_items")
        lines["order_id"] = _as_str(lines["order_id"])
        lines["menu_item_id"] = _as_str(lines["menu_item_id"])
        self._order_items = lines

        ratings = _with_columns(order_ratings, "order_ratings")
        ratings["order_id"] = _as_str(ratings["order_id"])
        ratings["rating"] = pd.to_numeric(ratings["rating"], errors="coerce").astype(float)
        self._ratings = ratings

        prefs = _with_columns(customer_preferences, "customer_preferences")
        prefs["customer_id"] = _as_str(prefs["customer_id"])
        prefs["tenant_id"] = _as_str(prefs["tenant_id"])
        prefs["tags"] = prefs["dietary_preferences"].apply(_split_tags)
        self._prefs = prefs

    @classmethod
    def from_csv_dir(cls, data_dir: Path) -> FrameQueryLayer:
        """Load every table from ``<data_dir>/<table>.csv``; missing files load empty."""
        frames: dict[str, pd.DataFrame] = {}
        for table in TABLE_COLUMNS:
            path = Path(data_dir) / f"{table}.csv"
            if path.exists():
                frames[table] = pd.read_csv(path, dtype=str)
            else:
                logger.warning("Data file %s not found, %s will be empty", path, table)
        return cls(**frames)

    # ── helpers ──────────────────────────────────────────────────────────

    def _items(self, tenant_id: str, available_only: bool = True) -> pd.DataFrame:
        menu = self._menu[self._menu["tenant_id"] == str(tenant_id)]
        if available_only:
            menu = menu[menu["available"]]
        return menu

    def _lines(self, tenant_id: str) -> pd.DataFrame:
        """Order lines of the tenant joined with their order's customer and date."""
        orders = self._orders[self._orders["tenant_id"] == str(tenant_id)]
        orders = orders.rename(columns={"id": "order_id"})[
            ["order_id", "customer_id", "created_at"]
        ]
        return self._order_items[["order_id", "menu_item_id"]].merge(
            orders, on="order_id", how="inner",
        )

    @staticmethod
    def _item_record(row: pd.Series) -> dict[str, Any]:
        price = row["price"]
        image = row["image"]
        return {
            "item_id": str(row["id"]),
            "name": row["name"],
            "category": row["category"],
            "price": float(price) if pd.notna(price) else 0.0,
            "image": str(image) if pd.notna(image) and str(image) else None,
        }

    # ── queries ──────────────────────────────────────────────────────────

    @_query
    def co_occurrence_candidates(
        self, tenant_id: str, anchor_item_ids: Iterable[str], limit: int = 10,
    ) -> list[dict[str, Any]]:
        anchors = {str(i) for i in anchor_item_ids}
        if not anchors:
            return []

        lines = self._lines(tenant_id)[["order_id", "menu_item_id"]].drop_duplicates()
        anchor_orders = lines.loc[lines["menu_item_id"].isin(anchors), "order_id"].unique()
        total_anchor_orders = len(anchor_orders)
        if total_anchor_orders == 0:
            return []

        together = lines[
            lines["order_id"].isin(anchor_orders) & ~lines["menu_item_id"].isin(anchors)
        ]
        counts = together.groupby("menu_item_id")["order_id"].nunique()

        items = self._items(tenant_id)
        items = items[items["id"].isin(counts.index)].copy()
        if items.empty:
            return []
        items["co_occurrence_count"] = items["id"].map(counts).astype(int)
        items = items.sort_values(
            ["co_occurrence_count", "id"], ascending=[False, True],
        ).head(limit)

        return [
            {
                **self._item_record(row),
                "co_occurrence_count": int(row["co_occurrence_count"]),
                "total_anchor_orders": total_anchor_orders,
            }
            for _, row in items.iterrows()
        ]

    @_query
    def customer_frequent_items(
        self, customer_id: str, tenant_id: str, limit: int = 10,
    ) -> list[dict[str, Any]]:
        lines = self._lines(tenant_id)
        mine = lines[lines["customer_id"] == str(customer_id)]
        if mine.empty:
            return []

        counts = mine.groupby("menu_item_id").size().rename("frequency").reset_index()
        menu = self._items(tenant_id, available_only=False)[["id", "category"]]
        ranked = counts.merge(menu, left_on="menu_item_id", right_on="id", how="inner")
        ranked = ranked.sort_values(
            ["frequency", "menu_item_id"], ascending=[False, True],
        ).head(limit)

        return [
            {
                "item_id": row["menu_item_id"],
                "category": row["category"],
                "frequency": int(row["frequency"]),
            }
            for _, row in ranked.iterrows()
        ]

    @_query
    def customer_dietary_preferences(self, customer_id: str, tenant_id: str) -> list[str]:
        prefs = self._prefs[
            (self._prefs["customer_id"] == str(customer_id))
            & (self._prefs["tenant_id"] == str(tenant_id))
        ]
        tags: list[str] = []
        for row_tags in prefs["tags"]:
            tags.extend(row_tags)
        return list(dict.fromkeys(tags))

    @_query
    def customer_last_order_items(self, customer_id: str, tenant_id: str) -> list[str]:
        orders = self._orders[
            (self._orders["tenant_id"] == str(tenant_id))
            & (self._orders["customer_id"] == str(customer_id))
        ]
        if orders.empty:
            return []
        latest = orders.sort_values("created_at", ascending=False, kind="stable").iloc[0]["id"]
        item_ids = self._order_items.loc[
            self._order_items["order_id"] == latest, "menu_item_id"
        ]
        return list(dict.fromkeys(item_ids))

    @_query
    def dietary_compatible_items(
        self, tenant_id: str, tags: Iterable[str],
    ) -> list[dict[str, Any]]:
        wanted = set(_split_tags(list(tags)))
        items = self._items(tenant_id)
        if not wanted or items.empty:
            return []
        mask = items["tags"].apply(lambda item_tags: bool(wanted & set(item_tags))).astype(bool)
        matches = items[mask].sort_values("id")
        return [self._item_record(row) for _, row in matches.iterrows()]

    @_query
    def preferred_category_items(
        self, tenant_id: str, categories: Iterable[str], exclude_ids: Iterable[str],
    ) -> list[dict[str, Any]]:
        wanted = {str(c) for c in categories}
        if not wanted:
            return []
        excluded = {str(i) for i in exclude_ids}
        items = self._items(tenant_id)
        eligible = items[items["category"].isin(wanted) & ~items["id"].isin(excluded)]
        return [self._item_record(row) for _, row in eligible.sort_values("id").iterrows()]

    @_query
    def trending_items(
        self,
        tenant_id: str,
        window_days: int = 30,
        min_order_count: int = 5,
        now: datetime | None = None,
        limit: int = 8,
    ) -> list[dict[str, Any]]:
        now_ts = pd.Timestamp.now(tz="UTC") if now is None else pd.Timestamp(now)
        if now_ts.tzinfo is None:
            now_ts = now_ts.tz_localize("UTC")
        cutoff = now_ts - pd.Timedelta(days=window_days)

        orders = self._orders[
            (self._orders["tenant_id"] == str(tenant_id))
            & (self._orders["created_at"] >= cutoff)
        ]
        lines = self._order_items.merge(
            orders[["id"]].rename(columns={"id": "order_id"}), on="order_id", how="inner",
        )
        if lines.empty:
            return []

        order_rating = self._ratings.groupby("order_id")["rating"].mean()
        lines = lines.assign(rating=lines["order_id"].map(order_rating).astype(float))
        stats = lines.groupby("menu_item_id").agg(
            order_count=("order_id", "size"),
            avg_rating=("rating", "mean"),
        )
        stats = stats[stats["order_count"] >= min_order_count]

        items = self._items(tenant_id).set_index("id")
        ranked = stats.join(items, how="inner").rename_axis("id").reset_index()
        ranked = ranked.sort_values(
            ["order_count", "avg_rating", "id"],
            ascending=[False, False, True],
            na_position="last",
        ).head(limit)

        return [
            {
                **self._item_record(row),
                "order_count": int(row["order_count"]),
                "avg_rating": round(float(row["avg_rating"]), 2)
                if pd.notna(row["avg_rating"]) else None,
            }
            for _, row in ranked.iterrows()
        ]

    @_query
    def item_names(self, tenant_id: str, item_ids: Iterable[str]) -> dict[str, str]:
        ids = {str(i) for i in item_ids}
        items = self._items(tenant_id, available_only=False)
        items = items[items["id"].isin(ids)]
        return dict(zip(items["id"], items["name"]))


_layer: FrameQueryLayer | None = None
_load_failed_at: float | None = None
_layer_lock = threading.Lock()
_RELOAD_AFTER_FAILURE = 30.0  # seconds


def get_query_layer() -> AggregateQueryLayer:
    """
    Return the process-wide query layer, loading the CSV tables on first call.

    If the tables cannot be loaded, an ``UnavailableQueryLayer`` is returned so
    recommendation requests degrade to empty results; the load is retried at
    most every ``_RELOAD_AFTER_FAILURE`` seconds.
    """
    global _layer, _load_failed_at
    if _layer is not None:
        return _layer
    with _layer_lock:
        if _layer is not None:
            return _layer
        if _load_failed_at is not None and time.monotonic() - _load_failed_at < _RELOAD_AFTER_FAILURE:
            return UnavailableQueryLayer("menu data failed to load")
        try:
            _layer = FrameQueryLayer.from_csv_dir(DEFAULT_DATA_CONFIG.data_dir)
        except Exception:
            _load_failed_at = time.monotonic()
            logger.exception("Failed to load menu data from %s", DEFAULT_DATA_CONFIG.data_dir)
            return UnavailableQueryLayer("menu data failed to load")
        _load_failed_at = None
        return _layer
