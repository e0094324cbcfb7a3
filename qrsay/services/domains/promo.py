"""Promo code domain service.

Lists restaurant promo codes and validates a code against an order amount.
Validation is the backend's job; this service only maps its answer onto
``PromoValidationResult``.
"""
from decimal import Decimal
from typing import Any, List

from pydantic import ValidationError

from qrsay.errors import ApiError, ERROR_PROMO_CHECK, ERROR_PROMO_INVALID, ERROR_PROMO_LIST
from qrsay.logging import get_logger, sanitize_string_for_logging
from qrsay.services.api import ApiClient, ApiEndpoints, unwrap_data
from qrsay.services.models import PromoCode, PromoValidationResult
from qrsay.services.money import to_float

logger = get_logger(__name__)


def _promo_terms(body: dict, code: str) -> dict:
    """Discount terms from a validation response.

    Terms come either nested under ``promoCode`` or flat next to the
    validity flag.
    """
    nested = body.get("promoCode")
    terms = dict(nested) if isinstance(nested, dict) else dict(body)
    terms.setdefault("code", code)
    return terms


class PromoService:
    """Promo code operations."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def get_promo_codes(self, restaurant_url: str) -> List[PromoCode]:
        """Promo codes advertised by a restaurant. Malformed entries are skipped."""
        body = await self.api.get(
            f"{ApiEndpoints.GET_PROMO_CODES}/{restaurant_url}",
            default_error=ERROR_PROMO_LIST,
        )
        data = unwrap_data(body)
        if isinstance(data, dict):
            data = data.get("promoCodes", [])

        promos = []
        for raw in data or []:
            try:
                promos.append(PromoCode.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping malformed promo code entry: {e}")
        return promos

    async def check_promo_code(
        self,
        code: str,
        restaurant_id: str,
        order_amount: Decimal,
    ) -> PromoValidationResult:
        """
        Validate a promo code for an order.

        Args:
            code: Code as typed by the customer
            restaurant_id: Restaurant the cart is bound to
            order_amount: Current item total

        Returns:
            PromoValidationResult; ``promo`` is set when valid

        Raises:
            ApiError: network failure
        """
        code = code.strip()
        payload = {
            "promoCode": code,
            "restaurantId": restaurant_id,
            "orderAmount": to_float(order_amount),
        }
        body = await self.api.post(
            ApiEndpoints.CHECK_PROMO_CODE, payload, default_error=ERROR_PROMO_CHECK
        )
        data: Any = unwrap_data(body)
        if not isinstance(data, dict):
            raise ApiError(ERROR_PROMO_CHECK)

        valid = bool(data.get("isValid", data.get("valid", False)))
        message = data.get("message") or (body.get("message") if isinstance(body, dict) else None)
        if not valid:
            logger.info("Promo %s rejected", sanitize_string_for_logging(code))
            return PromoValidationResult(valid=False, error_message=message or ERROR_PROMO_INVALID)

        try:
            promo = PromoCode.model_validate(_promo_terms(data, code))
        except ValidationError as e:
            logger.error(f"Malformed promo terms for {sanitize_string_for_logging(code)}: {e}")
            raise ApiError(ERROR_PROMO_CHECK) from e

        return PromoValidationResult(valid=True, promo=promo)
