"""Pytest configuration and fixtures"""
import os
from typing import Dict, List, Optional, Tuple

import pytest

# Set test environment variables before qrsay modules read them
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_token")
os.environ.setdefault("QRSAY_API_URL", "https://api.test")

from qrsay.cart import CartEngine, RestaurantConflictPolicy  # noqa: E402
from qrsay.services.models import MenuCategory, RestaurantFeeConfig  # noqa: E402


class FakeStore:
    """In-memory persistent store; ``fail=True`` makes every call raise."""

    def __init__(self, data: Optional[Dict[str, str]] = None, fail: bool = False):
        self.data: Dict[str, str] = dict(data or {})
        self.fail = fail
        self.writes: List[Tuple[str, str]] = []

    async def get(self, key: str) -> Optional[str]:
        if self.fail:
            raise ConnectionError("store unavailable")
        return self.data.get(key)

    async def set(self, key: str, value: str) -> bool:
        if self.fail:
            raise ConnectionError("store unavailable")
        self.writes.append((key, value))
        self.data[key] = value
        return True


@pytest.fixture
def make_store():
    """In-memory store class, for tests that seed data or subclass it"""
    return FakeStore


@pytest.fixture
def store():
    """Working in-memory store"""
    return FakeStore()


@pytest.fixture
def failing_store():
    """Store whose every call fails"""
    return FakeStore(fail=True)


@pytest.fixture
def engine():
    """Cart engine without persistence"""
    return CartEngine(store=None, conflict_policy=RestaurantConflictPolicy.REJECT)


@pytest.fixture
def no_fees():
    """Restaurant without GST or delivery"""
    return RestaurantFeeConfig(isGstApplicable=False, provideDelivery=False)


@pytest.fixture
def delivery_fees():
    """Delivery fee of 40 below an order value of 500"""
    return RestaurantFeeConfig(
        isGstApplicable=False,
        provideDelivery=True,
        minOrderValueForFreeDelivery=500,
        deliveryFeeBelowMinValue=40,
    )


@pytest.fixture
def menu_payload():
    """Raw menu JSON as returned by the backend"""
    return [
        {
            "categoryId": "c1",
            "categoryName": "Starters",
            "items": [
                {
                    "_id": "d1",
                    "dishName": "Paneer Tikka",
                    "description": "Smoky cottage cheese cubes",
                    "price": 220,
                    "dishType": "veg",
                    "availableFlag": True,
                    "dishImage": "https://img.test/d1.png",
                    "variants": [
                        {"_id": "v1", "variantName": "Half", "price": 140},
                        {"_id": "v2", "variantName": "Full", "price": 220},
                    ],
                    "extraIngredients": [
                        {"_id": "e1", "ingredientName": "Extra Cheese", "price": 30},
                        {"_id": "e2", "ingredientName": "Mint Dip", "price": 15.5},
                    ],
                },
                {
                    "_id": "d2",
                    "dishName": "Chicken 65",
                    "description": "Spicy fried chicken",
                    "price": 260,
                    "dishType": "nonVeg",
                },
            ],
        },
        {
            "categoryId": "c2",
            "categoryName": "Mains",
            "items": [
                {
                    "_id": "d3",
                    "dishName": "Dal Makhani",
                    "description": "Slow cooked black lentils",
                    "price": 240,
                    "dishType": "veg",
                },
                {
                    "_id": "d4",
                    "dishName": "Butter Chicken",
                    "description": "Creamy tomato gravy",
                    "price": 320,
                    "dishType": "nonVeg",
                },
            ],
        },
        {
            "categoryId": "c3",
            "categoryName": "Desserts",
            "items": [
                {
                    "_id": "d5",
                    "dishName": "Gulab Jamun",
                    "description": "",
                    "price": 90,
                    "dishType": "veg",
                },
            ],
        },
    ]


@pytest.fixture
def menu(menu_payload):
    """Parsed menu snapshot"""
    return [MenuCategory.model_validate(c) for c in menu_payload]


@pytest.fixture
def restaurant_payload():
    """Raw restaurant JSON with fee configuration"""
    return {
        "_id": "r1",
        "restaurantName": "Spice Route",
        "restaurantUrl": "spice-route",
        "isGstApplicable": True,
        "isPricingInclusiveOfGST": False,
        "customGSTPercentage": 5,
        "provideDelivery": True,
        "minOrderValueForFreeDelivery": 500,
        "deliveryFeeBelowMinValue": 40,
        "cuisine": "North Indian",
    }
