from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from menurec.data_store import FrameQueryLayer
from menurec.recommendations.cache import clear_cache

NOW = pd.Timestamp.now(tz="UTC")


def _days_ago(days: int) -> str:
    return (NOW - pd.Timedelta(days=days)).isoformat()


def build_tables() -> dict[str, pd.DataFrame]:
    """
    Small restaurant: ten recent burger orders (five with fries, two with cola),
    two pizza+salad orders and one old order outside the trending window.
    """
    menu_items = pd.DataFrame([
        {"id": "burger", "tenant_id": "t1", "name": "Burger", "category": "Mains",
         "price": 9.5, "image": "burger.png", "is_available": 1, "dietary_info": "halal"},
        {"id": "fries", "tenant_id": "t1", "name": "Fries", "category": "Sides",
         "price": 3.0, "image": None, "is_available": 1, "dietary_info": "vegan,gluten-free"},
        {"id": "cola", "tenant_id": "t1", "name": "Cola", "category": "Drinks",
         "price": 2.0, "image": None, "is_available": 1, "dietary_info": "vegan"},
        {"id": "salad", "tenant_id": "t1", "name": "Salad", "category": "Sides",
         "price": 5.0, "image": None, "is_available": 1, "dietary_info": "Vegan, Vegetarian"},
        {"id": "pizza", "tenant_id": "t1", "name": "Pizza", "category": "Mains",
         "price": 11.0, "image": None, "is_available": 1, "dietary_info": "vegetarian"},
        {"id": "wings", "tenant_id": "t1", "name": "Wings", "category": "Mains",
         "price": 8.0, "image": None, "is_available": 1, "dietary_info": ""},
        {"id": "shake", "tenant_id": "t1", "name": "Shake", "category": "Drinks",
         "price": 4.5, "image": None, "is_available": 0, "dietary_info": "vegan"},
        {"id": "sushi", "tenant_id": "t2", "name": "Sushi", "category": "Mains",
         "price": 14.0, "image": None, "is_available": 1, "dietary_info": "vegan"},
    ])

    orders = []
    order_items = []
    for i in range(1, 11):
        order_id = f"o{i}"
        customer = "c1" if i <= 3 else "c2"
        orders.append({"id": order_id, "tenant_id": "t1", "customer_id": customer,
                       "created_at": _days_ago(i)})
        order_items.append({"order_id": order_id, "menu_item_id": "burger"})
        if i <= 5:
            order_items.append({"order_id": order_id, "menu_item_id": "fries"})
        if i in (6, 7):
            order_items.append({"order_id": order_id, "menu_item_id": "cola"})
    for order_id in ("o11", "o12"):
        orders.append({"id": order_id, "tenant_id": "t1", "customer_id": "c3",
                       "created_at": _days_ago(2)})
        order_items.append({"order_id": order_id, "menu_item_id": "pizza"})
        order_items.append({"order_id": order_id, "menu_item_id": "salad"})
    orders.append({"id": "o13", "tenant_id": "t1", "customer_id": "c1",
                   "created_at": _days_ago(60)})
    order_items.append({"order_id": "o13", "menu_item_id": "wings"})
    order_items.append({"order_id": "o13", "menu_item_id": "fries"})

    order_ratings = pd.DataFrame([
        {"order_id": "o1", "rating": 5},
        {"order_id": "o2", "rating": 4},
        {"order_id": "o6", "rating": 3},
    ])
    customer_preferences = pd.DataFrame([
        {"customer_id": "c1", "tenant_id": "t1", "dietary_preferences": '["vegan"]'},
    ])

    return {
        "menu_items": menu_items,
        "orders": pd.DataFrame(orders),
        "order_items": pd.DataFrame(order_items),
        "order_ratings": order_ratings,
        "customer_preferences": customer_preferences,
    }


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def tables() -> dict[str, pd.DataFrame]:
    return build_tables()


@pytest.fixture
def query_layer(tables) -> FrameQueryLayer:
    return FrameQueryLayer(**tables)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(7)
