from decimal import Decimal

from promo_engine.engine import (
    BuyXGetY, FixedAmountOff, FreeShipping, PercentageOff, Targeting, compute,
)
from promo_engine.utils.money import money_sum

from helpers import item, make_context, make_rule


def test_percentage_rounds_and_allocates_exactly():
    c = make_context([item("a", "33.33"), item("b", "33.33"), item("c", "33.34")])
    comp = compute(make_rule(PercentageOff("12.5")), c)
    assert comp.amount == Decimal("12.50")
    assert money_sum(comp.item_allocations.values()) == comp.amount
    assert not comp.free_shipping


def test_percentage_respects_maximum_discount():
    c = make_context([item("a", "500.00")])
    comp = compute(make_rule(PercentageOff(20), maximum_discount_amount=50), c)
    assert comp.amount == Decimal("50.00")
    assert comp.item_allocations == {"a": Decimal("50.00")}


def test_percentage_only_on_targeted_items():
    c = make_context([item("a", "80.00", product_id="shoe"), item("b", "20.00")])
    rule = make_rule(PercentageOff(10), targeting=Targeting(applies_to="specific_products", product_ids=["shoe"]))
    comp = compute(rule, c)
    assert comp.amount == Decimal("8.00")
    assert comp.item_allocations == {"a": Decimal("8.00")}


def test_fixed_amount_never_exceeds_targeted_subtotal():
    c = make_context([item("a", "3.50", 2)])
    comp = compute(make_rule(FixedAmountOff(10)), c)
    assert comp.amount == Decimal("7.00")
    small = compute(make_rule(FixedAmountOff("2.50")), c)
    assert small.amount == Decimal("2.50")


def test_free_shipping_leaves_subtotal_alone():
    c = make_context([item("a", "10.00")], shipping_amount="4.99")
    comp = compute(make_rule(FreeShipping()), c)
    assert comp.amount == Decimal("0")
    assert comp.free_shipping
    assert comp.shipping_amount == Decimal("4.99")
    assert comp.contributed == Decimal("4.99")
    assert comp.item_allocations == {}


def test_buy_three_get_one_half_off():
    rule = make_rule(BuyXGetY(3, 1, get_discount_percentage=50))
    four = compute(rule, make_context([item("a", "10.00", 4)]))
    assert four.amount == Decimal("5.00")
    assert four.item_allocations == {"a": Decimal("5.00")}
    three = compute(rule, make_context([item("a", "10.00", 3)]))
    assert three.amount == Decimal("0.00")


def test_buy_x_get_y_discounts_cheapest_unit_in_each_group():
    # sorted units: 1,2,3,4 | 5,6,7,8 ; cheapest of each group is free
    items = [item(f"i{p}", f"{p}.00") for p in (8, 3, 5, 1, 7, 2, 6, 4)]
    comp = compute(make_rule(BuyXGetY(3, 1)), make_context(items))
    assert comp.amount == Decimal("6.00")
    assert comp.item_allocations == {"i1": Decimal("1.00"), "i5": Decimal("5.00")}


def test_buy_x_get_y_ignores_partial_trailing_group():
    items = [item("a", "10.00", 2), item("b", "4.00", 3)]
    comp = compute(make_rule(BuyXGetY(2, 1)), make_context(items))
    # units 4,4,4 | 10,10 -> one complete group
    assert comp.amount == Decimal("4.00")


def test_buy_x_get_y_cap_redistributes():
    items = [item("a", "10.00", 2), item("b", "30.00", 2)]
    rule = make_rule(BuyXGetY(1, 1), maximum_discount_amount=20)
    comp = compute(rule, make_context(items))
    # uncapped: 10 + 30 = 40
    assert comp.amount == Decimal("20")
    assert money_sum(comp.item_allocations.values()) == Decimal("20.00")
    assert comp.item_allocations["a"] == Decimal("5.00")
