from decimal import Decimal

from promo_engine.utils.money import (
    D, add, from_cents, money_sum, mul, percentage, round_down, round_money, sub, to_cents,
    to_string_money,
)


def test_round_half_up():
    assert round_money("2.345") == Decimal("2.35")
    assert round_money("2.344") == Decimal("2.34")
    assert round_money(0.1 + 0.2) == Decimal("0.30")


def test_round_down_never_exceeds():
    assert round_down("2.349") == Decimal("2.34")


def test_arithmetic_helpers():
    assert add("0.10", "0.20") == Decimal("0.30")
    assert sub("10.00", "0.01") == Decimal("9.99")
    assert mul("19.99", 3) == Decimal("59.97")
    assert percentage("33.33", 15) == Decimal("5.00")
    assert money_sum(["0.10"] * 10) == Decimal("1.00")


def test_cents_round_trip_and_formatting():
    assert to_cents("12.34") == 1234
    assert from_cents(1234) == Decimal("12.34")
    assert to_string_money(5) == "5.00"
    assert D(None) == Decimal("0")
