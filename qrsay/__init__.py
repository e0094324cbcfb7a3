"""
QRSay Cart Core

This package contains the client-side ordering components:
- db: Upstash Redis client and the persistent cart store
- cart: cart engine (line items, merges, persistence)
- services.pricing: totals calculator
- services.domains: menu queries, promo validation, checkout, ordering session

Note: Imports are lazy so that importing the package does not require
Redis credentials or a running event loop.
"""

__version__ = "0.1.0"

__all__ = [
    "get_redis",
    "get_cart_engine",
    "calculate_totals",
]


def __getattr__(name):
    """Lazy attribute access."""
    if name == "get_redis":
        from qrsay.db import get_redis
        return get_redis
    elif name == "get_cart_engine":
        from qrsay.cart import get_cart_engine
        return get_cart_engine
    elif name == "calculate_totals":
        from qrsay.services.pricing import calculate_totals
        return calculate_totals
    raise AttributeError(f"module 'qrsay' has no attribute '{name}'")
