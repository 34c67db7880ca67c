# promo_engine/utils/money.py

from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP

Money = Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))

def round_money(x) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)

def round_down(x) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_DOWN)

def add(a, b) -> Money:
    return round_money(round_money(a) + round_money(b))

def sub(a, b) -> Money:
    return round_money(round_money(a) - round_money(b))

def mul(amount, factor) -> Money:
    return round_money(D(amount) * D(factor))

def percentage(amount, percent) -> Money:
    return round_money(D(amount) * D(percent) / HUNDRED)

def money_sum(values) -> Money:
    total = ZERO
    for v in values:
        total = add(total, v)
    return total

def to_cents(x) -> int:
    return int(round_money(x) * 100)

def from_cents(cents: int) -> Money:
    return round_money(Decimal(int(cents)) / HUNDRED)

def to_string_money(x) -> str:
    return str(round_money(x))
