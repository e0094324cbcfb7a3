"""
Tests for the cart engine and cart models
"""

import logging
from decimal import Decimal

import pytest

from qrsay.cart import CartEngine, CartState, LineItem, RestaurantConflictPolicy, make_item_id
from qrsay.errors import RestaurantConflictError
from qrsay.services.models import DishType, PromoCode


def _item(item_id="101", price=250, quantity=1, restaurant_id=None, **kwargs):
    return LineItem(
        item_id=item_id,
        unit_price=price,
        quantity=quantity,
        restaurant_id=restaurant_id,
        **kwargs,
    )


class TestMakeItemId:
    """Tests for line item identity keys."""

    def test_plain_dish_keeps_dish_id(self):
        assert make_item_id("101") == "101"

    def test_variant_and_extras(self):
        assert make_item_id("d1", "Half", ["e2", "e1"]) == "d1|Half|e1+e2"

    def test_extras_order_does_not_change_identity(self):
        assert make_item_id("d1", None, ["e1", "e2"]) == make_item_id("d1", None, ["e2", "e1"])

    def test_different_variants_are_different_items(self):
        assert make_item_id("d1", "Half") != make_item_id("d1", "Full")


class TestLineItem:
    """Tests for LineItem dataclass."""

    def test_create_line_item(self):
        item = _item(quantity=2)

        assert item.item_id == "101"
        assert item.unit_price == Decimal("250")
        assert item.dish_type == DishType.VEG
        assert item.line_total == Decimal("500")

    def test_quantity_clamped_to_one(self):
        assert _item(quantity=0).quantity == 1
        assert _item(quantity=-4).quantity == 1

    def test_negative_price_clamped(self, caplog):
        with caplog.at_level(logging.WARNING):
            item = _item(price=-10)

        assert item.unit_price == Decimal("0")
        assert "Negative unit price" in caplog.text

    def test_empty_item_id_rejected(self):
        with pytest.raises(ValueError):
            _item(item_id="")

    def test_from_dict_accepts_legacy_keys(self):
        item = LineItem.from_dict({"_id": "d9", "price": 99.5, "quantity": 2, "dishType": "nonVeg"})

        assert item.item_id == "d9"
        assert item.unit_price == Decimal("99.5")
        assert item.dish_type == DishType.NON_VEG

    def test_from_dict_requires_item_id(self):
        with pytest.raises(ValueError):
            LineItem.from_dict({"unitPrice": 10})

    def test_from_dict_requires_mapping(self):
        with pytest.raises(TypeError):
            LineItem.from_dict(["101", 250])

    def test_to_dict_roundtrip_keeps_extras_order(self):
        data = {
            "itemId": "d1|e1+e2",
            "unitPrice": "265.5",
            "quantity": 1,
            "extraIngredients": [
                {"id": "e2", "name": "Mint Dip", "price": "15.5"},
                {"id": "e1", "name": "Extra Cheese", "price": "30"},
            ],
        }

        item = LineItem.from_dict(data)

        assert [e["id"] for e in item.to_dict()["extraIngredients"]] == ["e2", "e1"]

    def test_from_dish_folds_variant_and_extras(self, menu):
        dish = menu[0].items[0]

        item = LineItem.from_dish(dish, variant_name="Half", extra_ids=["e2", "e1"])

        # 140 (Half) + 30 + 15.5
        assert item.unit_price == Decimal("185.5")
        assert item.item_id == "d1|Half|e1+e2"
        assert item.dish_name == "Paneer Tikka"
        assert [e.name for e in item.extra_ingredients] == ["Mint Dip", "Extra Cheese"]

    def test_from_dish_unknown_variant(self, menu):
        with pytest.raises(ValueError):
            LineItem.from_dish(menu[0].items[0], variant_name="Jumbo")

    def test_from_dish_unknown_extra(self, menu):
        with pytest.raises(ValueError):
            LineItem.from_dish(menu[0].items[0], extra_ids=["nope"])


class TestCartState:
    """Tests for CartState payloads."""

    def test_from_payloads_merges_duplicates(self):
        items = [
            {"itemId": "101", "unitPrice": "250", "quantity": 1},
            {"itemId": "101", "unitPrice": "250", "quantity": 2},
        ]

        state = CartState.from_payloads(items, {})

        assert len(state.items) == 1
        assert state.items[0].quantity == 3

    def test_state_payload_roundtrip(self):
        state = CartState(
            items=[_item(restaurant_id="r1")],
            aux_state={"gstAmount": 12.5},
            restaurant_id="r1",
            promo_code=PromoCode(code="FLAT100", discount_type="flat", discount_value=100),
        )

        restored = CartState.from_payloads(state.items_payload(), state.state_payload())

        assert restored.restaurant_id == "r1"
        assert restored.aux_state == {"gstAmount": 12.5}
        assert restored.promo_code.code == "FLAT100"
        assert restored.promo_code.discount_value == Decimal("100")


class TestCartEngine:
    """Tests for cart mutations."""

    def test_add_same_item_twice_merges(self, engine):
        engine.add_item(_item(quantity=1))
        engine.add_item(_item(quantity=1))

        assert len(engine.items) == 1
        assert engine.items[0].quantity == 2

    def test_add_same_instance_repeatedly(self, engine):
        item = _item(quantity=1)

        engine.add_item(item)
        engine.add_item(item)
        engine.add_item(item)

        assert engine.quantity_of("101") == 3
        assert item.quantity == 1

    def test_add_leaves_caller_item_untouched(self, engine):
        engine.add_item(_item("a", restaurant_id="r1"))
        item = _item("b")

        engine.add_item(item)

        assert item.restaurant_id is None
        assert engine.items[1].restaurant_id == "r1"

    def test_items_are_copies(self, engine):
        engine.add_item(_item(quantity=2))

        engine.items[0].quantity = 50

        assert engine.quantity_of("101") == 2
        assert engine.totals.item_total == 500

    def test_add_preserves_insertion_order(self, engine):
        engine.add_item(_item("a"))
        engine.add_item(_item("b"))
        engine.add_item(_item("a"))

        assert [i.item_id for i in engine.items] == ["a", "b"]

    def test_add_from_mapping(self, engine):
        engine.add_item({"itemId": "101", "unitPrice": 250, "quantity": 0})

        assert engine.quantity_of("101") == 1

    def test_add_malformed_item(self, engine):
        with pytest.raises(TypeError):
            engine.add_item(42)
        with pytest.raises(ValueError):
            engine.add_item({"unitPrice": 10})
        assert engine.is_empty

    def test_remove_present_item(self, engine):
        engine.add_item(_item("a"))
        engine.add_item(_item("b"))

        engine.remove_item("a")

        assert [i.item_id for i in engine.items] == ["b"]

    def test_remove_absent_item_is_noop(self, engine):
        engine.add_item(_item("a"))

        engine.remove_item("zzz")

        assert len(engine.items) == 1

    def test_update_quantity_sets_value(self, engine):
        engine.add_item(_item(quantity=5))

        engine.update_quantity("101", 2)

        assert engine.quantity_of("101") == 2

    @pytest.mark.parametrize("quantity", [0, -1, -10])
    def test_update_quantity_zero_or_negative_removes(self, engine, quantity):
        engine.add_item(_item())

        engine.update_quantity("101", quantity)

        assert engine.quantity_of("101") == 0
        assert engine.is_empty

    def test_update_quantity_absent_is_noop(self, engine):
        engine.update_quantity("nope", 3)

        assert engine.is_empty

    def test_clear_resets_everything(self, engine):
        engine.add_item(_item(restaurant_id="r1"))
        engine.set_aux_state({"gstAmount": 10})
        engine.apply_promo_code({"code": "X", "discountType": "flat", "discountValue": 5})

        engine.clear()

        assert engine.is_empty
        assert engine.aux_state == {}
        assert engine.promo_code is None
        assert engine.restaurant_id is None

    def test_set_aux_state_shallow_merges(self, engine):
        engine.set_aux_state({"gstAmount": 10, "deliveryAmount": 40})
        engine.set_aux_state({"deliveryAmount": 0})

        assert engine.aux_state == {"gstAmount": 10, "deliveryAmount": 0}

    def test_apply_and_clear_promo(self, engine):
        engine.apply_promo_code(PromoCode(code="SAVE10", discount_type="percentage", discount_value=10))
        assert engine.promo_code.code == "SAVE10"

        engine.clear_promo_code()
        assert engine.promo_code is None

    def test_total_quantity(self, engine):
        engine.add_item(_item("a", quantity=2))
        engine.add_item(_item("b", quantity=3))

        assert engine.total_quantity == 5


class TestRestaurantScope:
    """Tests for restaurant conflict handling."""

    def test_reject_policy_raises_and_keeps_cart(self, engine):
        engine.add_item(_item("a", restaurant_id="r1"))

        with pytest.raises(RestaurantConflictError) as exc_info:
            engine.add_item(_item("b", restaurant_id="r2"))

        assert exc_info.value.cart_restaurant_id == "r1"
        assert [i.item_id for i in engine.items] == ["a"]

    def test_replace_policy_clears_then_adds(self):
        engine = CartEngine(conflict_policy=RestaurantConflictPolicy.REPLACE)
        engine.add_item(_item("a", restaurant_id="r1"))
        engine.apply_promo_code({"code": "X", "discountValue": 5})

        engine.add_item(_item("b", restaurant_id="r2"))

        assert [i.item_id for i in engine.items] == ["b"]
        assert engine.restaurant_id == "r2"
        assert engine.promo_code is None

    def test_item_without_restaurant_inherits_scope(self, engine):
        engine.add_item(_item("a", restaurant_id="r1"))
        engine.add_item(_item("b"))

        assert engine.items[1].restaurant_id == "r1"

    def test_empty_cart_follows_new_restaurant(self, engine):
        engine.bind_restaurant("r1")

        engine.add_item(_item("a", restaurant_id="r2"))

        assert engine.restaurant_id == "r2"

    def test_bind_other_restaurant_clears_cart(self, engine, no_fees):
        engine.add_item(_item("a", restaurant_id="r1"))

        engine.bind_restaurant("r2", no_fees)

        assert engine.is_empty
        assert engine.restaurant_id == "r2"

    def test_bind_same_restaurant_keeps_cart(self, engine, no_fees):
        engine.add_item(_item("a", restaurant_id="r1"))

        engine.bind_restaurant("r1", no_fees)

        assert len(engine.items) == 1


class TestTotalsAndObservers:
    """Tests for reactive totals."""

    def test_concrete_scenario(self, engine, no_fees):
        engine.set_fee_config(no_fees)
        engine.add_item({"itemId": "101", "unitPrice": 250, "quantity": 1})
        engine.add_item({"itemId": "101", "unitPrice": 250, "quantity": 2})

        assert len(engine.items) == 1
        assert engine.items[0].quantity == 3
        assert engine.items[0].unit_price == 250

        totals = engine.totals
        assert totals.item_total == 750
        assert totals.gst_amount == 0
        assert totals.delivery_amount == 0
        assert totals.discount_amount == 0
        assert totals.amount_to_be_paid == 750

        engine.apply_promo_code({"code": "FLAT100", "discountType": "flat", "discountValue": 100})

        assert engine.totals.amount_to_be_paid == 650

    def test_totals_follow_every_mutation(self, engine, no_fees):
        engine.set_fee_config(no_fees)
        engine.add_item(_item(quantity=2))
        assert engine.totals.item_total == 500

        engine.update_quantity("101", 1)
        assert engine.totals.item_total == 250

        engine.remove_item("101")
        assert engine.totals.amount_to_be_paid == 0

    def test_server_totals_use_aux_state(self, engine):
        engine.add_item(_item(price=100))
        engine.set_aux_state({"gstAmount": 10, "deliveryAmount": 20, "discountAmount": 5})

        totals = engine.server_totals()

        assert totals.amount_to_be_paid == 125

    def test_observer_receives_totals(self, engine, no_fees):
        seen = []
        engine.set_fee_config(no_fees)
        engine.subscribe(lambda state, totals: seen.append(totals.amount_to_be_paid))

        engine.add_item(_item())
        engine.add_item(_item())

        assert seen == [250, 500]

    def test_unsubscribe(self, engine):
        seen = []
        unsubscribe = engine.subscribe(lambda state, totals: seen.append(1))

        unsubscribe()
        engine.add_item(_item())

        assert seen == []

    def test_failing_observer_does_not_break_mutation(self, engine, caplog):
        def boom(state, totals):
            raise RuntimeError("render failed")

        engine.subscribe(boom)
        with caplog.at_level(logging.ERROR):
            engine.add_item(_item())

        assert engine.quantity_of("101") == 1
        assert "Cart observer failed" in caplog.text
