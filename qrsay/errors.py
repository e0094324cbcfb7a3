"""
Common Error Constants and Exceptions

User-facing error messages live here so services and the ordering session
report the same wording.
"""

from typing import Optional

# Catalog errors
ERROR_MENU_FETCH = "Failed to fetch menu"
ERROR_RESTAURANT_FETCH = "Failed to get restaurant by ID"

# Promo errors
ERROR_PROMO_CHECK = "Failed to check promo code"
ERROR_PROMO_LIST = "Failed to get promo codes"
ERROR_PROMO_INVALID = "Promo code is not valid"
ERROR_PROMO_EMPTY_CART = "Add items to the cart before applying a promo code"

# Order errors
ERROR_ORDER_VALIDATION = "Failed to validate order"
ERROR_ORDER_PLACE = "Failed to place order"
ERROR_ORDER_EMPTY_CART = "Cart is empty"

# Cart errors
ERROR_RESTAURANT_CONFLICT = "Cart contains items from another restaurant"

# Generic errors
ERROR_NETWORK = "Network error"


class ApiError(Exception):
    """Normalized failure of a backend call.

    ``message`` is always human readable; ``status_code`` is None for
    transport-level failures (timeouts, refused connections).
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class RestaurantConflictError(Exception):
    """Raised when an item from another restaurant is added under the REJECT policy."""

    def __init__(self, cart_restaurant_id: str, item_restaurant_id: str):
        super().__init__(ERROR_RESTAURANT_CONFLICT)
        self.cart_restaurant_id = cart_restaurant_id
        self.item_restaurant_id = item_restaurant_id
