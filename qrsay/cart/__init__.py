"""Cart package: models, storage, and engine facade."""
from .models import CartState, ExtraIngredient, LineItem, make_item_id
from .service import CartEngine, RestaurantConflictPolicy, get_cart_engine
from .storage import PersistentStore, RedisCartStore

__all__ = [
    "CartState",
    "ExtraIngredient",
    "LineItem",
    "make_item_id",
    "CartEngine",
    "RestaurantConflictPolicy",
    "get_cart_engine",
    "PersistentStore",
    "RedisCartStore",
]
