from decimal import Decimal

import pytest

from promo_engine.engine import distribute, distribute_weighted
from promo_engine.errors import InvariantViolation
from promo_engine.utils.money import money_sum

from helpers import item


def test_proportional_split():
    items = [item("a", "75.00"), item("b", "25.00")]
    assert distribute("10.00", items) == {"a": Decimal("7.50"), "b": Decimal("2.50")}


def test_remainder_goes_to_last_item():
    items = [item("a", "1.00"), item("b", "1.00"), item("c", "1.00")]
    out = distribute("0.10", items)
    assert out == {"a": Decimal("0.03"), "b": Decimal("0.03"), "c": Decimal("0.04")}


def test_single_cent():
    items = [item("a", "5.00"), item("b", "5.00")]
    out = distribute("0.01", items)
    assert money_sum(out.values()) == Decimal("0.01")
    assert out["b"] == Decimal("0.01")


@pytest.mark.parametrize("amount,prices", [
    ("19.99", ["0.01", "9.99", "10.00", "33.33"]),
    ("0.07", ["1.00"] * 9),
    ("100.00", ["100.00"]),
    ("3.33", ["0.10", "0.20", "0.30", "0.40", "0.50", "1.83"]),
])
def test_allocation_sum_is_exact(amount, prices):
    items = [item(f"i{n}", p) for n, p in enumerate(prices)]
    out = distribute(amount, items)
    assert money_sum(out.values()) == Decimal(amount)
    assert all(v >= 0 for v in out.values())


def test_zero_amount_gives_zero_shares():
    assert distribute(0, [item("a", "1.00")]) == {"a": Decimal("0.00")}


def test_nothing_to_distribute_over():
    assert distribute(0, []) == {}
    with pytest.raises(InvariantViolation):
        distribute("1.00", [])


def test_weighted_refund_proration():
    out = distribute_weighted("6.00", [("x", Decimal("1")), ("y", Decimal("2"))])
    assert out == {"x": Decimal("2.00"), "y": Decimal("4.00")}
