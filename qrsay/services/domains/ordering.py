"""
Ordering Session

The interface screens talk to. Combines the cart engine, the pricing
calculator and the remote collaborators, and keeps a ``loading`` / ``error``
pair describing the last network-backed operation (menu fetch, promo check,
checkout).

Network failures never touch cart state: they are logged, recorded in
``error`` and the method returns a falsy result.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from qrsay.cart import CartEngine, CartState, LineItem
from qrsay.errors import ApiError, ERROR_ORDER_EMPTY_CART, ERROR_PROMO_EMPTY_CART
from qrsay.logging import get_logger, sanitize_id_for_logging, sanitize_string_for_logging
from qrsay.services.models import Restaurant
from qrsay.services.pricing import Totals
from .catalog import CatalogService, MenuQueryEngine
from .orders import OrderService, build_order_payload
from .promo import PromoService

logger = get_logger(__name__)


@dataclass
class RequestStatus:
    """Loading/error flags of the last network-backed operation."""
    loading: bool = False
    error: Optional[str] = None


class OrderingSession:
    """Cart, totals and remote calls for one customer session."""

    def __init__(
        self,
        cart: CartEngine,
        catalog: CatalogService,
        promos: PromoService,
        orders: OrderService,
    ):
        self.cart = cart
        self.catalog = catalog
        self.promos = promos
        self.orders = orders
        self.status = RequestStatus()
        self.restaurant: Optional[Restaurant] = None
        self.menu = MenuQueryEngine()
        self._fetch_generation = 0

    # ==================== Exposed state ====================

    @property
    def loading(self) -> bool:
        return self.status.loading

    @property
    def error(self) -> Optional[str]:
        return self.status.error

    @property
    def items(self) -> list[LineItem]:
        return self.cart.items

    @property
    def totals(self) -> Totals:
        return self.cart.totals

    # ==================== Cart operations ====================

    def add_item(self, item: Union[LineItem, Mapping[str, Any]]) -> CartState:
        return self.cart.add_item(item)

    def add_dish(
        self,
        dish_id: str,
        quantity: int = 1,
        variant_name: Optional[str] = None,
        extra_ids: tuple = (),
    ) -> CartState:
        """
        Add a dish from the loaded menu with the customer's selections.

        Raises:
            ValueError: dish not in the loaded menu, or unknown variant/extra
        """
        dish = self.menu.find_dish(dish_id)
        if dish is None:
            raise ValueError(f"Dish {dish_id} is not in the loaded menu")
        item = LineItem.from_dish(
            dish,
            quantity=quantity,
            variant_name=variant_name,
            extra_ids=extra_ids,
            restaurant_id=self.restaurant.id if self.restaurant else None,
            restaurant_name=self.restaurant.restaurant_name if self.restaurant else None,
        )
        return self.cart.add_item(item)

    def remove_item(self, item_id: str) -> CartState:
        return self.cart.remove_item(item_id)

    def update_quantity(self, item_id: str, quantity: int) -> CartState:
        return self.cart.update_quantity(item_id, quantity)

    def clear(self) -> CartState:
        return self.cart.clear()

    # ==================== Network-backed operations ====================

    def _begin(self) -> None:
        self.status.loading = True
        self.status.error = None

    def _fail(self, error: ApiError) -> None:
        self.status.loading = False
        self.status.error = error.message

    def _succeed(self) -> None:
        self.status.loading = False
        self.status.error = None

    def _next_generation(self) -> int:
        self._fetch_generation += 1
        return self._fetch_generation

    def _is_stale(self, generation: int) -> bool:
        return generation != self._fetch_generation

    def select_restaurant(self, restaurant: Restaurant) -> None:
        """Make a restaurant current; switching restaurants clears the cart."""
        self.restaurant = restaurant
        self.cart.bind_restaurant(restaurant.id, restaurant.fee_config)

    async def open_restaurant(self, restaurant_id: str) -> Optional[Restaurant]:
        """
        Fetch a restaurant, select it and load its menu.

        Restaurant and menu fetches share one generation counter: a restaurant
        that arrives after a newer open_restaurant or load_menu call started is
        dropped without touching the cart.
        """
        generation = self._next_generation()
        self._begin()
        try:
            restaurant = await self.catalog.get_restaurant_by_id(restaurant_id)
        except ApiError as e:
            if not self._is_stale(generation):
                self._fail(e)
            return None

        if self._is_stale(generation):
            logger.debug(
                "Discarding stale restaurant %s", sanitize_id_for_logging(restaurant_id)
            )
            return None

        self.select_restaurant(restaurant)
        await self.load_menu(restaurant.id)
        return restaurant

    async def load_menu(self, restaurant_id: str) -> bool:
        """
        Fetch and install a menu snapshot.

        A response that arrives after a newer ``load_menu`` or
        ``open_restaurant`` call started is discarded, as is its error.

        Returns:
            True if this call's menu was installed
        """
        generation = self._next_generation()
        self._begin()

        try:
            menu = await self.catalog.get_menu(restaurant_id)
        except ApiError as e:
            if self._is_stale(generation):
                return False
            logger.warning(
                f"Menu fetch failed for {sanitize_id_for_logging(restaurant_id)}: {e.message}"
            )
            self._fail(e)
            return False

        if self._is_stale(generation):
            logger.debug(
                "Discarding stale menu for %s (generation %d < %d)",
                sanitize_id_for_logging(restaurant_id),
                generation,
                self._fetch_generation,
            )
            return False

        self.menu = MenuQueryEngine(menu)
        self._succeed()
        return True

    async def check_promo(self, code: str) -> bool:
        """
        Validate a promo code and apply it to the cart if valid.

        Returns:
            True if the promo was applied
        """
        if self.cart.is_empty:
            self.status.error = ERROR_PROMO_EMPTY_CART
            return False

        cart_scope = self.cart.restaurant_id
        restaurant_id = cart_scope or (self.restaurant.id if self.restaurant else None)
        self._begin()
        try:
            result = await self.promos.check_promo_code(
                code, restaurant_id, self.cart.totals.item_total
            )
        except ApiError as e:
            self._fail(e)
            return False

        self.status.loading = False
        if self.cart.is_empty or self.cart.restaurant_id != cart_scope:
            # Cart was cleared or moved to another restaurant while validating
            logger.info(
                "Dropping promo %s checked against a cart that has since changed",
                sanitize_string_for_logging(code),
            )
            return False

        if not result.valid or result.promo is None:
            self.status.error = result.error_message
            return False

        self.cart.apply_promo_code(result.promo)
        return True

    def remove_promo(self) -> CartState:
        return self.cart.clear_promo_code()

    async def checkout(self, **order_fields: Any) -> Optional[Any]:
        """
        Place the order for the current cart.

        Extra keyword arguments (order type, address, payment method, ...)
        are passed to the backend unchanged. The cart is cleared only after
        the backend confirms.

        Returns:
            Order confirmation, or None on failure
        """
        if self.cart.is_empty:
            self.status.error = ERROR_ORDER_EMPTY_CART
            return None

        totals = self.cart.recompute_totals()
        promo = self.cart.promo_code
        payload = build_order_payload(
            self.cart.items,
            totals,
            self.cart.restaurant_id,
            promo_code=promo.code if promo else None,
            **order_fields,
        )

        self._begin()
        try:
            confirmation = await self.orders.place_order(payload)
        except ApiError as e:
            self._fail(e)
            return None

        self._succeed()
        self.cart.clear()
        return confirmation
