from datetime import datetime
from decimal import Decimal

import pytest

from promo_engine.engine import (
    AppliesTo, Budget, BuyXGetY, DiscountType, FixedAmountOff, FreeShipping, PercentageOff, Targeting,
)
from promo_engine.errors import InvariantViolation

from helpers import make_rule


def test_type_and_value_follow_offer():
    assert make_rule(PercentageOff(15)).type is DiscountType.PERCENTAGE
    assert make_rule(PercentageOff(15)).value == Decimal("15")
    assert make_rule(FixedAmountOff("5")).value == Decimal("5")
    assert make_rule(FreeShipping()).type is DiscountType.FREE_SHIPPING
    assert make_rule(BuyXGetY(2, 1)).value == Decimal("0")


def test_code_matching_is_case_insensitive():
    rule = make_rule(code=" Summer10 ")
    assert rule.code == "Summer10"
    assert rule.matches_code("SUMMER10")
    assert rule.matches_code("  summer10")
    assert not rule.matches_code("WINTER")
    assert not rule.matches_code(None)


def test_min_order_above_max_order_is_rejected():
    with pytest.raises(InvariantViolation):
        make_rule(minimum_order_amount=100, maximum_order_amount=50)


def test_window_must_be_ordered():
    with pytest.raises(InvariantViolation):
        make_rule(starts_at=datetime(2026, 2, 1), ends_at=datetime(2026, 1, 1))


@pytest.mark.parametrize("build", [
    lambda: PercentageOff(101),
    lambda: FixedAmountOff(-1),
    lambda: BuyXGetY(0, 1),
    lambda: BuyXGetY(2, 1, get_discount_percentage=0),
    lambda: Targeting(applies_to=AppliesTo.SPECIFIC_PRODUCTS),
    lambda: Targeting(applies_to="specific_categories"),
    lambda: Budget("spend", limit=-5),
])
def test_contradictory_payloads(build):
    with pytest.raises(InvariantViolation):
        build()


def test_budget_overrun_by_type():
    spend = Budget("spend", limit=100, used=90)
    assert not spend.would_overrun("10.00")
    assert spend.would_overrun("10.01")
    usage = Budget("usage", limit=3, used=2)
    assert not usage.would_overrun(0)
    assert Budget("usage", limit=3, used=3).exhausted


def test_targeting_ids_are_normalised_to_strings():
    t = Targeting(applies_to="specific_products", product_ids=[1, 2])
    assert t.product_ids == frozenset({"1", "2"})
