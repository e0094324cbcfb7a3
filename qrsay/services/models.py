"""Backend Models - Pydantic models for catalog, restaurant and promo payloads.

The backend speaks camelCase JSON with Mongo-style ``_id`` keys; models accept
both the wire names and the Python field names. Unknown keys are ignored.
"""
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from qrsay.services.money import to_decimal as _to_decimal


class DishType(str, Enum):
    """Dish dietary type."""
    VEG = "veg"
    NON_VEG = "nonVeg"


class DiscountType(str, Enum):
    """Promo discount kinds."""
    PERCENTAGE = "percentage"
    FLAT = "flat"


class _BackendModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DishVariant(_BackendModel):
    """A priced variant of a dish (e.g. half / full plate)."""
    id: Optional[str] = Field(default=None, alias="_id")
    variant_name: str = Field(alias="variantName")
    price: Decimal = Decimal("0")

    @field_validator("price", mode="before")
    @classmethod
    def convert_price_to_decimal(cls, v):
        return _to_decimal(v)


class ExtraIngredientOption(_BackendModel):
    """An add-on that can be selected with a dish."""
    id: str = Field(alias="_id")
    ingredient_name: str = Field(alias="ingredientName")
    price: Decimal = Decimal("0")

    @field_validator("price", mode="before")
    @classmethod
    def convert_price_to_decimal(cls, v):
        return _to_decimal(v)


class Dish(_BackendModel):
    """Dish model."""
    id: str = Field(alias="_id")
    dish_name: str = Field(alias="dishName")
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    dish_type: DishType = Field(default=DishType.VEG, alias="dishType")
    available_flag: bool = Field(default=True, alias="availableFlag")
    dish_image: Optional[str] = Field(default=None, alias="dishImage")
    variants: list[DishVariant] = []
    extra_ingredients: list[ExtraIngredientOption] = Field(default=[], alias="extraIngredients")

    @field_validator("price", mode="before")
    @classmethod
    def convert_price_to_decimal(cls, v):
        return _to_decimal(v)

    @field_validator("description", mode="before")
    @classmethod
    def empty_description(cls, v):
        return v or None

    def get_variant(self, variant_name: Optional[str]) -> Optional[DishVariant]:
        """Find a variant by name, None if not offered."""
        if not variant_name:
            return None
        return next((v for v in self.variants if v.variant_name == variant_name), None)


class MenuCategory(_BackendModel):
    """A named group of dishes, in display order."""
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    category_name: str = Field(alias="categoryName")
    items: list[Dish] = []


class RestaurantFeeConfig(_BackendModel):
    """Restaurant knobs controlling tax and delivery fee.

    Values are stored as sent. Negative or otherwise broken figures are
    clamped by the pricing calculator, which logs them as configuration
    warnings.
    """
    is_gst_applicable: bool = Field(default=False, alias="isGstApplicable")
    is_pricing_inclusive_of_gst: bool = Field(default=False, alias="isPricingInclusiveOfGST")
    custom_gst_percentage: Optional[Decimal] = Field(default=None, alias="customGSTPercentage")
    provide_delivery: bool = Field(default=False, alias="provideDelivery")
    min_order_value_for_free_delivery: Optional[Decimal] = Field(
        default=None, alias="minOrderValueForFreeDelivery"
    )
    delivery_fee_below_min_value: Optional[Decimal] = Field(
        default=None, alias="deliveryFeeBelowMinValue"
    )

    @field_validator(
        "custom_gst_percentage",
        "min_order_value_for_free_delivery",
        "delivery_fee_below_min_value",
        mode="before",
    )
    @classmethod
    def convert_optional_to_decimal(cls, v):
        return None if v is None else _to_decimal(v)


class Restaurant(RestaurantFeeConfig):
    """Restaurant model. Fee configuration fields sit at the top level."""
    id: str = Field(alias="_id")
    restaurant_name: Optional[str] = Field(default=None, alias="restaurantName")
    restaurant_url: Optional[str] = Field(default=None, alias="restaurantUrl")

    @property
    def fee_config(self) -> RestaurantFeeConfig:
        """Fee configuration view of this restaurant."""
        return RestaurantFeeConfig.model_validate(
            self.model_dump(include=set(RestaurantFeeConfig.model_fields))
        )


class PromoCode(_BackendModel):
    """Applied promo code terms."""
    code: str
    discount_type: DiscountType = Field(default=DiscountType.FLAT, alias="discountType")
    discount_value: Decimal = Field(default=Decimal("0"), alias="discountValue")
    max_discount: Optional[Decimal] = Field(default=None, alias="maxDiscount")

    @field_validator("discount_value", mode="before")
    @classmethod
    def convert_value_to_decimal(cls, v):
        return _to_decimal(v)

    @field_validator("max_discount", mode="before")
    @classmethod
    def convert_max_to_decimal(cls, v):
        return None if v is None else _to_decimal(v)

    @field_validator("discount_type", mode="before")
    @classmethod
    def normalize_discount_type(cls, v):
        # Anything that is not a percentage is applied as a flat amount
        if isinstance(v, DiscountType):
            return v
        return DiscountType.PERCENTAGE if str(v).lower() == "percentage" else DiscountType.FLAT

    def to_dict(self) -> dict:
        """Wire representation (camelCase, numbers as strings to keep precision)."""
        return {
            "code": self.code,
            "discountType": self.discount_type.value,
            "discountValue": str(self.discount_value),
            "maxDiscount": None if self.max_discount is None else str(self.max_discount),
        }


class PromoValidationResult(BaseModel):
    """Result of promo code validation."""
    valid: bool
    promo: Optional[PromoCode] = None
    error_message: Optional[str] = None
