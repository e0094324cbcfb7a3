"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from qrsay.logging import get_logger, sanitize_id_for_logging
from qrsay.services.models import Dish, DishType, PromoCode
from qrsay.services.money import to_decimal, to_float, multiply, ZERO

logger = get_logger(__name__)


def make_item_id(
    dish_id: str,
    variant_name: Optional[str] = None,
    extra_ids: Iterable[str] = (),
) -> str:
    """Build the identity key of an orderable unit.

    Extras are sorted so that picking the same add-ons in a different order
    yields the same line item. A plain dish keeps its own id.
    """
    parts = [str(dish_id)]
    if variant_name:
        parts.append(variant_name)
    extras = sorted(str(e) for e in extra_ids)
    if extras:
        parts.append("+".join(extras))
    return "|".join(parts)


@dataclass
class ExtraIngredient:
    """Selected add-on; its price is already folded into the line's unit price."""
    id: str
    name: str
    price: Decimal = Decimal("0")

    def __post_init__(self):
        self.price = to_decimal(self.price)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "price": str(self.price)}

    @classmethod
    def from_dict(cls, data: dict) -> "ExtraIngredient":
        return cls(
            id=str(data.get("id") or data.get("_id")),
            name=data.get("name") or data.get("ingredientName") or "",
            price=to_decimal(data.get("price", 0)),
        )


@dataclass
class LineItem:
    """Single orderable unit in the cart."""
    item_id: str
    unit_price: Decimal
    quantity: int = 1
    variant_name: Optional[str] = None
    extra_ingredients: List[ExtraIngredient] = field(default_factory=list)
    dish_type: DishType = DishType.VEG
    dish_id: Optional[str] = None
    dish_name: str = ""
    restaurant_id: Optional[str] = None
    restaurant_name: Optional[str] = None

    def __post_init__(self):
        if not self.item_id or not isinstance(self.item_id, str):
            raise ValueError("item_id must be a non-empty string")
        self.unit_price = to_decimal(self.unit_price)
        if self.unit_price < ZERO:
            logger.warning(
                "Negative unit price for item %s clamped to 0",
                sanitize_id_for_logging(self.item_id),
            )
            self.unit_price = ZERO
        self.quantity = max(1, int(self.quantity))
        self.dish_type = DishType(self.dish_type)

    @property
    def line_total(self) -> Decimal:
        """Total price for all units."""
        return multiply(self.unit_price, self.quantity)

    @classmethod
    def from_dish(
        cls,
        dish: Dish,
        quantity: int = 1,
        variant_name: Optional[str] = None,
        extra_ids: Iterable[str] = (),
        restaurant_id: Optional[str] = None,
        restaurant_name: Optional[str] = None,
    ) -> "LineItem":
        """Build a line item from a menu dish and the customer's selections.

        The variant price replaces the dish price; every selected extra adds
        its price delta. Unknown variants or extras raise ValueError.
        """
        base_price = dish.price
        if variant_name:
            variant = dish.get_variant(variant_name)
            if variant is None:
                raise ValueError(f"Dish {dish.id} has no variant {variant_name!r}")
            base_price = variant.price

        options = {opt.id: opt for opt in dish.extra_ingredients}
        extras: List[ExtraIngredient] = []
        for extra_id in extra_ids:
            opt = options.get(extra_id)
            if opt is None:
                raise ValueError(f"Dish {dish.id} has no extra ingredient {extra_id!r}")
            extras.append(ExtraIngredient(id=opt.id, name=opt.ingredient_name, price=opt.price))

        unit_price = base_price + sum((e.price for e in extras), Decimal("0"))

        return cls(
            item_id=make_item_id(dish.id, variant_name, [e.id for e in extras]),
            unit_price=unit_price,
            quantity=quantity,
            variant_name=variant_name,
            extra_ingredients=extras,
            dish_type=dish.dish_type,
            dish_id=dish.id,
            dish_name=dish.dish_name,
            restaurant_id=restaurant_id,
            restaurant_name=restaurant_name,
        )

    def to_dict(self) -> dict:
        """Convert to the persisted (camelCase) shape."""
        return {
            "itemId": self.item_id,
            "unitPrice": str(self.unit_price),
            "quantity": self.quantity,
            "variantName": self.variant_name,
            "extraIngredients": [e.to_dict() for e in self.extra_ingredients],
            "dishType": self.dish_type.value,
            "dishId": self.dish_id,
            "dishName": self.dish_name,
            "restaurantId": self.restaurant_id,
            "restaurantName": self.restaurant_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineItem":
        """Create from a persisted or request mapping.

        Accepts the legacy ``_id`` / ``price`` keys written by older clients.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Line item must be a mapping, got {type(data).__name__}")
        item_id = data.get("itemId", data.get("_id"))
        if item_id is None:
            raise ValueError("Line item is missing itemId")
        unit_price = data.get("unitPrice", data.get("price", 0))
        return cls(
            item_id=str(item_id),
            unit_price=to_decimal(unit_price),
            quantity=int(data.get("quantity") or 1),
            variant_name=data.get("variantName"),
            extra_ingredients=[
                ExtraIngredient.from_dict(e) for e in data.get("extraIngredients") or []
            ],
            dish_type=data.get("dishType") or DishType.VEG,
            dish_id=data.get("dishId"),
            dish_name=data.get("dishName") or "",
            restaurant_id=data.get("restaurantId"),
            restaurant_name=data.get("restaurantName"),
        )


@dataclass
class CartState:
    """Cart contents plus auxiliary pricing inputs."""
    items: List[LineItem] = field(default_factory=list)
    aux_state: Dict[str, Any] = field(default_factory=dict)
    restaurant_id: Optional[str] = None
    promo_code: Optional[PromoCode] = None

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_quantity(self) -> int:
        """Total number of units in cart."""
        return sum(item.quantity for item in self.items)

    def find(self, item_id: str) -> Optional[LineItem]:
        return next((item for item in self.items if item.item_id == item_id), None)

    def items_payload(self) -> List[dict]:
        return [item.to_dict() for item in self.items]

    def state_payload(self) -> dict:
        return {
            # Server fee figures may arrive as Decimal; JSON wants plain numbers
            "auxState": {
                key: to_float(value) if isinstance(value, Decimal) else value
                for key, value in self.aux_state.items()
            },
            "promoCode": self.promo_code.to_dict() if self.promo_code else None,
            "restaurantId": self.restaurant_id,
        }

    @classmethod
    def from_payloads(cls, items: Optional[list], state: Optional[dict]) -> "CartState":
        """Rebuild from the two persisted payloads; duplicate ids are merged."""
        cart = cls()
        for raw in items or []:
            item = LineItem.from_dict(raw)
            existing = cart.find(item.item_id)
            if existing:
                existing.quantity += item.quantity
            else:
                cart.items.append(item)

        state = state or {}
        cart.aux_state = dict(state.get("auxState") or {})
        promo = state.get("promoCode")
        cart.promo_code = PromoCode.model_validate(promo) if promo else None
        cart.restaurant_id = state.get("restaurantId")
        if cart.restaurant_id is None and cart.items:
            cart.restaurant_id = cart.items[0].restaurant_id
        return cart
