"""
Pricing Calculator

Pure functions from cart contents, restaurant fee configuration and an
optional promo code to a totals breakdown. No I/O, no state: identical
inputs always produce identical ``Totals``.

Calculation order:
1. itemTotal = sum of unit_price * quantity (extras are pre-folded into unit_price)
2. gst on itemTotal, unless not applicable or prices already include it
3. delivery fee, waived at or above the free-delivery threshold
4. promo discount, capped by maxDiscount and by the pre-discount total
5. amountToBePaid, floored at 0
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from qrsay.logging import get_logger
from qrsay.services.models import DiscountType, PromoCode, RestaurantFeeConfig
from qrsay.services.money import ZERO, percent, round_money, to_decimal, to_float

logger = get_logger(__name__)

DEFAULT_GST_PERCENTAGE = Decimal("5")


@dataclass(frozen=True)
class Totals:
    """Order totals breakdown. All values are non-negative, 2 decimal places."""
    item_total: Decimal = ZERO
    gst_amount: Decimal = ZERO
    delivery_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    amount_to_be_paid: Decimal = ZERO

    def to_dict(self) -> dict:
        """Convert to dictionary (floats, camelCase) for API payloads."""
        return {
            "itemTotal": to_float(self.item_total),
            "gstAmount": to_float(self.gst_amount),
            "deliveryAmount": to_float(self.delivery_amount),
            "discountAmount": to_float(self.discount_amount),
            "amountToBePaid": to_float(self.amount_to_be_paid),
        }


def _clamp(value: Decimal, field_name: str) -> Decimal:
    """Clamp a negative intermediate to 0 and report it as a config defect."""
    if value < ZERO:
        logger.warning(
            "Pricing configuration defect: %s was negative (%s), clamped to 0",
            field_name,
            value,
        )
        return ZERO
    return value


def calculate_item_total(items: Iterable[Any]) -> Decimal:
    """Sum of unit_price * quantity over line items."""
    total = ZERO
    for item in items:
        line = to_decimal(item.unit_price) * int(item.quantity)
        total += _clamp(line, f"line total of {item.item_id}")
    return round_money(total)


def calculate_gst(item_total: Decimal, config: Optional[RestaurantFeeConfig]) -> Decimal:
    """GST on the item total under the restaurant's tax settings."""
    if config is None or not config.is_gst_applicable:
        return ZERO
    if config.is_pricing_inclusive_of_gst:
        return ZERO

    # The backend sends 0 for "not configured", so 0 falls back too
    gst_percentage = config.custom_gst_percentage or DEFAULT_GST_PERCENTAGE
    gst_percentage = _clamp(gst_percentage, "customGSTPercentage")
    return round_money(percent(item_total, gst_percentage))


def calculate_delivery(item_total: Decimal, config: Optional[RestaurantFeeConfig]) -> Decimal:
    """Delivery fee, waived once the item total reaches the threshold."""
    if config is None or not config.provide_delivery:
        return ZERO

    threshold = config.min_order_value_for_free_delivery
    if threshold and threshold > ZERO and item_total >= threshold:
        return ZERO

    fee = config.delivery_fee_below_min_value or ZERO
    return round_money(_clamp(fee, "deliveryFeeBelowMinValue"))


def calculate_discount(
    item_total: Decimal,
    promo_code: Optional[PromoCode],
    ceiling: Decimal,
) -> Decimal:
    """Promo discount, never more than ``ceiling`` (the pre-discount total)."""
    if promo_code is None:
        return ZERO

    value = _clamp(promo_code.discount_value, "discountValue")
    if promo_code.discount_type == DiscountType.PERCENTAGE:
        discount = percent(item_total, value)
        max_discount = promo_code.max_discount
        if max_discount and max_discount > ZERO and discount > max_discount:
            discount = max_discount
    else:
        discount = value

    return round_money(min(discount, ceiling))


def _finalize(
    item_total: Decimal,
    gst_amount: Decimal,
    delivery_amount: Decimal,
    discount_amount: Decimal,
) -> Totals:
    amount = item_total + gst_amount + delivery_amount - discount_amount
    return Totals(
        item_total=item_total,
        gst_amount=gst_amount,
        delivery_amount=delivery_amount,
        discount_amount=discount_amount,
        amount_to_be_paid=round_money(max(amount, ZERO)),
    )


def calculate_totals(
    items: Iterable[Any],
    fee_config: Optional[RestaurantFeeConfig] = None,
    promo_code: Optional[PromoCode] = None,
) -> Totals:
    """
    Compute the totals breakdown for a cart.

    Args:
        items: Line items (anything with item_id, unit_price and quantity)
        fee_config: Restaurant tax/delivery settings; None means no fees
        promo_code: Applied promo code terms, if any

    Returns:
        Totals with every component non-negative
    """
    items = list(items)
    if not items:
        return Totals()

    item_total = calculate_item_total(items)
    gst_amount = calculate_gst(item_total, fee_config)
    delivery_amount = calculate_delivery(item_total, fee_config)
    discount_amount = calculate_discount(
        item_total, promo_code, ceiling=item_total + gst_amount + delivery_amount
    )
    return _finalize(item_total, gst_amount, delivery_amount, discount_amount)


def calculate_totals_from_aux(items: Iterable[Any], aux_state: Mapping[str, Any]) -> Totals:
    """
    Compute totals using server-supplied fee figures.

    ``gstAmount``, ``deliveryAmount`` and ``discountAmount`` are read from
    ``aux_state`` (missing keys count as 0) instead of being derived locally.
    The same clamps apply as for ``calculate_totals``.
    """
    items = list(items)
    item_total = calculate_item_total(items)
    gst_amount = round_money(_clamp(to_decimal(aux_state.get("gstAmount")), "gstAmount"))
    delivery_amount = round_money(
        _clamp(to_decimal(aux_state.get("deliveryAmount")), "deliveryAmount")
    )
    discount_amount = _clamp(to_decimal(aux_state.get("discountAmount")), "discountAmount")
    discount_amount = round_money(min(discount_amount, item_total + gst_amount + delivery_amount))
    return _finalize(item_total, gst_amount, delivery_amount, discount_amount)
