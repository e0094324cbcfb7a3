"""Cart engine: in-memory cart state with write-behind persistence."""
import asyncio
import json
import os
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from qrsay.errors import RestaurantConflictError
from qrsay.logging import get_logger, sanitize_id_for_logging
from qrsay.services.models import PromoCode, RestaurantFeeConfig
from qrsay.services.pricing import Totals, calculate_totals, calculate_totals_from_aux
from .models import CartState, LineItem
from .storage import PersistentStore, RedisCartStore, RedisKeys

logger = get_logger(__name__)

CartObserver = Callable[[CartState, Totals], None]


def _copy_item(item: LineItem) -> LineItem:
    return replace(item, extra_ingredients=list(item.extra_ingredients))


class RestaurantConflictPolicy(str, Enum):
    """What to do when an item from another restaurant is added."""
    REJECT = "reject"    # raise RestaurantConflictError, cart untouched
    REPLACE = "replace"  # clear the cart, then add


DEFAULT_CONFLICT_POLICY = RestaurantConflictPolicy(
    os.environ.get("CART_CONFLICT_POLICY", RestaurantConflictPolicy.REJECT.value).lower()
)


class CartEngine:
    """
    Sole owner and mutator of a cart.

    Features:
    - One line item per item_id; re-adding increments quantity
    - Totals recomputed after every mutation and pushed to observers
    - Write-behind persistence: a single background task always writes the
      latest full state, so out-of-order completion cannot lose updates
    - Restaurant scoping with an explicit conflict policy

    Mutating methods are synchronous and run to completion on the event loop.
    """

    def __init__(
        self,
        store: Optional[PersistentStore] = None,
        owner_id: str = "device",
        conflict_policy: RestaurantConflictPolicy = DEFAULT_CONFLICT_POLICY,
        fee_config: Optional[RestaurantFeeConfig] = None,
    ):
        self.store = store
        self.owner_id = owner_id
        self.conflict_policy = RestaurantConflictPolicy(conflict_policy)
        self.fee_config = fee_config
        self._state = CartState()
        self._totals = Totals()
        self._observers: List[CartObserver] = []
        self._dirty = False
        self._flush_task: Optional[asyncio.Task] = None

    # ==================== Read access ====================

    @property
    def state(self) -> CartState:
        return self._state

    @property
    def items(self) -> List[LineItem]:
        """Copies of the line items in insertion order.

        Edit quantities through update_quantity; changing a returned copy
        does not touch the cart.
        """
        return [_copy_item(item) for item in self._state.items]

    @property
    def restaurant_id(self) -> Optional[str]:
        return self._state.restaurant_id

    @property
    def promo_code(self) -> Optional[PromoCode]:
        return self._state.promo_code

    @property
    def aux_state(self) -> Dict[str, Any]:
        return dict(self._state.aux_state)

    @property
    def is_empty(self) -> bool:
        return self._state.is_empty

    @property
    def total_quantity(self) -> int:
        return self._state.total_quantity

    @property
    def totals(self) -> Totals:
        """Totals as of the last mutation or explicit recompute."""
        return self._totals

    def quantity_of(self, item_id: str) -> int:
        """Quantity of an item in the cart, 0 if absent."""
        item = self._state.find(item_id)
        return item.quantity if item else 0

    # ==================== Totals ====================

    def recompute_totals(self) -> Totals:
        """Recompute totals from the current items, fee config and promo."""
        self._totals = calculate_totals(
            self._state.items, self.fee_config, self._state.promo_code
        )
        return self._totals

    def server_totals(self) -> Totals:
        """Totals using the server-supplied fee figures held in aux_state."""
        return calculate_totals_from_aux(self._state.items, self._state.aux_state)

    def set_fee_config(self, fee_config: Optional[RestaurantFeeConfig]) -> Totals:
        """Bind the restaurant fee settings used for totals."""
        self.fee_config = fee_config
        totals = self.recompute_totals()
        self._notify()
        return totals

    def bind_restaurant(
        self,
        restaurant_id: str,
        fee_config: Optional[RestaurantFeeConfig] = None,
    ) -> CartState:
        """
        Scope the cart to a restaurant.

        Switching away from the restaurant the cart holds items for clears it.
        """
        if self._state.restaurant_id not in (None, restaurant_id) and not self._state.is_empty:
            logger.info(
                "Restaurant switch %s -> %s, clearing cart",
                sanitize_id_for_logging(self._state.restaurant_id),
                sanitize_id_for_logging(restaurant_id),
            )
            self._state = CartState()
        self._state.restaurant_id = restaurant_id
        self.fee_config = fee_config
        self._after_mutation()
        return self._state

    def subscribe(self, callback: CartObserver) -> Callable[[], None]:
        """
        Register an observer called with (state, totals) after every mutation.

        Returns:
            Callable that removes the observer
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    # ==================== Mutations ====================

    def add_item(self, item: Union[LineItem, Mapping[str, Any]]) -> CartState:
        """
        Add an item, merging with an existing line of the same item_id.

        Raises:
            TypeError / ValueError: malformed item
            RestaurantConflictError: item belongs to another restaurant and
                the policy is REJECT
        """
        if isinstance(item, Mapping):
            item = LineItem.from_dict(dict(item))
        elif not isinstance(item, LineItem):
            raise TypeError(f"Cannot add {type(item).__name__} to cart")

        self._check_restaurant_scope(item)

        incoming_quantity = item.quantity
        existing = self._state.find(item.item_id)
        if existing:
            existing.quantity += incoming_quantity
        else:
            # The cart owns its line items; the caller keeps its object
            item = _copy_item(item)
            if item.restaurant_id is None:
                item.restaurant_id = self._state.restaurant_id
            elif self._state.is_empty:
                # An empty cart follows whichever restaurant it is filled from
                self._state.restaurant_id = item.restaurant_id
            self._state.items.append(item)
            if self._state.restaurant_id is None:
                self._state.restaurant_id = item.restaurant_id

        logger.debug(
            "Added %s x%d to cart %s",
            sanitize_id_for_logging(item.item_id),
            incoming_quantity,
            sanitize_id_for_logging(self.owner_id),
        )
        self._after_mutation()
        return self._state

    def remove_item(self, item_id: str) -> CartState:
        """Remove a line item. Absent ids are ignored."""
        before = len(self._state.items)
        self._state.items = [i for i in self._state.items if i.item_id != item_id]
        if len(self._state.items) != before:
            self._after_mutation()
        return self._state

    def update_quantity(self, item_id: str, quantity: int) -> CartState:
        """Set an item's quantity; 0 or less removes it. Absent ids are ignored."""
        item = self._state.find(item_id)
        if item is None:
            return self._state

        quantity = int(quantity)
        if quantity <= 0:
            return self.remove_item(item_id)

        item.quantity = quantity
        self._after_mutation()
        return self._state

    def clear(self) -> CartState:
        """Empty the cart and reset aux state, promo and restaurant scope."""
        self._state = CartState()
        self._after_mutation()
        return self._state

    def set_aux_state(self, partial: Mapping[str, Any]) -> CartState:
        """Shallow-merge server-derived fee figures into aux_state."""
        self._state.aux_state.update(partial)
        self._after_mutation()
        return self._state

    def apply_promo_code(self, promo: Union[PromoCode, Mapping[str, Any]]) -> CartState:
        """Attach a promo code. Validation is the caller's job."""
        if not isinstance(promo, PromoCode):
            promo = PromoCode.model_validate(promo)
        self._state.promo_code = promo
        self._after_mutation()
        return self._state

    def clear_promo_code(self) -> CartState:
        self._state.promo_code = None
        self._after_mutation()
        return self._state

    def _check_restaurant_scope(self, item: LineItem) -> None:
        current = self._state.restaurant_id
        if (
            current is None
            or item.restaurant_id is None
            or item.restaurant_id == current
            or self._state.is_empty
        ):
            return

        if self.conflict_policy == RestaurantConflictPolicy.REJECT:
            logger.info(
                "Rejected item from restaurant %s: cart is bound to %s",
                sanitize_id_for_logging(item.restaurant_id),
                sanitize_id_for_logging(current),
            )
            raise RestaurantConflictError(current, item.restaurant_id)

        logger.info(
            "Switching cart from restaurant %s to %s",
            sanitize_id_for_logging(current),
            sanitize_id_for_logging(item.restaurant_id),
        )
        self._state = CartState()

    def _after_mutation(self) -> None:
        self.recompute_totals()
        self._schedule_persist()
        self._notify()

    def _notify(self) -> None:
        for callback in list(self._observers):
            try:
                callback(self._state, self._totals)
            except Exception as e:
                logger.error(f"Cart observer failed: {e}", exc_info=True)

    # ==================== Persistence ====================

    @property
    def has_pending_writes(self) -> bool:
        return self._dirty or (self._flush_task is not None and not self._flush_task.done())

    def _schedule_persist(self) -> None:
        if self.store is None:
            return
        self._dirty = True
        if self._flush_task is not None and not self._flush_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet: stays dirty until flush() is awaited
            return
        self._flush_task = loop.create_task(self._flush_loop())

    async def _flush_loop(self) -> None:
        while self._dirty:
            self._dirty = False
            await self._write_current_state()

    async def _write_current_state(self) -> None:
        """Write the full current state. Failures are logged, never raised."""
        try:
            # Serialized at write time, not at mutation time
            items_json = json.dumps(self._state.items_payload())
            state_json = json.dumps(self._state.state_payload())
            ok_items = await self.store.set(RedisKeys.cart_items_key(self.owner_id), items_json)
            ok_state = await self.store.set(RedisKeys.cart_state_key(self.owner_id), state_json)
            if not (ok_items and ok_state):
                logger.warning(
                    "Cart store refused write for %s", sanitize_id_for_logging(self.owner_id)
                )
        except Exception as e:
            logger.warning(f"Failed to persist cart: {e}")

    async def flush(self) -> None:
        """Wait until every pending write has been attempted."""
        if self.store is None:
            return
        if self._flush_task is not None and not self._flush_task.done():
            await self._flush_task
        if self._dirty:
            await self._flush_loop()

    async def restore(self) -> CartState:
        """
        Load the persisted cart. Called once at startup.

        Missing or corrupted data leaves the cart empty; errors are logged.
        """
        if self.store is None:
            return self._state

        try:
            raw_items = await self.store.get(RedisKeys.cart_items_key(self.owner_id))
            raw_state = await self.store.get(RedisKeys.cart_state_key(self.owner_id))
        except Exception as e:
            logger.error(f"Failed to load cart data: {e}")
            return self._state

        try:
            items = json.loads(raw_items) if raw_items else []
            state = json.loads(raw_state) if raw_state else {}
            restored = CartState.from_payloads(items, state)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(
                f"Corrupted cart data for {sanitize_id_for_logging(self.owner_id)}: {e}"
            )
            return self._state

        self._state = restored
        self.recompute_totals()
        self._notify()
        logger.info(
            "Restored cart %s with %d items",
            sanitize_id_for_logging(self.owner_id),
            len(restored.items),
        )
        return self._state


# Singleton instance
_cart_engine: Optional[CartEngine] = None


def get_cart_engine() -> CartEngine:
    """Get CartEngine singleton backed by Redis."""
    global _cart_engine
    if _cart_engine is None:
        _cart_engine = CartEngine(store=RedisCartStore())
    return _cart_engine
