"""Orders domain service: pre-order validation and checkout."""
from typing import Any, Iterable, Optional

from qrsay.errors import ApiError, ERROR_ORDER_EMPTY_CART, ERROR_ORDER_PLACE, ERROR_ORDER_VALIDATION
from qrsay.logging import get_logger, sanitize_id_for_logging
from qrsay.services.api import ApiClient, ApiEndpoints, unwrap_data
from qrsay.services.money import to_float
from qrsay.services.pricing import Totals

logger = get_logger(__name__)


def build_order_payload(
    items: Iterable[Any],
    totals: Totals,
    restaurant_id: Optional[str],
    promo_code: Optional[str] = None,
    **order_fields: Any,
) -> dict:
    """Order request body: line items, totals breakdown and caller fields."""
    payload = {
        "restaurantId": restaurant_id,
        "items": [
            {
                "itemId": item.item_id,
                "dishId": item.dish_id,
                "dishName": item.dish_name,
                "quantity": item.quantity,
                "unitPrice": to_float(item.unit_price),
                "variantName": item.variant_name,
                "extraIngredients": [
                    {"id": e.id, "name": e.name, "price": to_float(e.price)}
                    for e in item.extra_ingredients
                ],
            }
            for item in items
        ],
        **totals.to_dict(),
    }
    if promo_code:
        payload["promoCode"] = promo_code
    payload.update(order_fields)
    return payload


class OrderService:
    """Checkout collaborator. The backend response is passed through as-is."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def validate_before_order(self, payload: dict) -> Any:
        """Ask the backend to validate an order before payment."""
        body = await self.api.post(
            ApiEndpoints.VALIDATION_BEFORE_ORDER, payload, default_error=ERROR_ORDER_VALIDATION
        )
        return unwrap_data(body)

    async def place_order(self, payload: dict) -> Any:
        """
        Place an order.

        Returns:
            Opaque order confirmation

        Raises:
            ApiError: empty order, network failure or backend rejection
        """
        if not payload.get("items"):
            raise ApiError(ERROR_ORDER_EMPTY_CART)

        body = await self.api.post(
            ApiEndpoints.PLACE_ORDER, payload, default_error=ERROR_ORDER_PLACE
        )
        if isinstance(body, dict) and body.get("success") is False:
            raise ApiError(body.get("message") or ERROR_ORDER_PLACE)

        logger.info(
            "Order placed for restaurant %s (%d items)",
            sanitize_id_for_logging(payload.get("restaurantId")),
            len(payload["items"]),
        )
        return unwrap_data(body)
