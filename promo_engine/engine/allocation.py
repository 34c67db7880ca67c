# promo_engine/engine/allocation.py
"""Spread an order-level discount over line items.

Shares are rounded down to the cent and the last item absorbs the
remainder, so allocations always sum to the amount exactly. Refund
proration calls :func:`distribute` directly with the original order lines.
"""
from __future__ import annotations

from typing import Iterable, Sequence

from ..errors import InvariantViolation
from ..utils.money import D, Money, ZERO, round_down, round_money, sub


def distribute_weighted(amount, weights: Sequence[tuple[str, Money]]) -> dict[str, Money]:
    amount = round_money(amount)
    if amount < 0:
        raise InvariantViolation("cannot distribute a negative amount")
    if not weights:
        if amount > 0:
            raise InvariantViolation(f"no items to distribute {amount} over")
        return {}

    total = sum((D(w) for _, w in weights), ZERO)
    out: dict[str, Money] = {}
    remaining = amount
    last = len(weights) - 1
    for idx, (item_id, weight) in enumerate(weights):
        if idx == last:
            share = remaining
        elif total <= 0:
            share = ZERO
        else:
            share = round_down(amount * D(weight) / total)
        out[item_id] = round_money(out.get(item_id, ZERO) + share)
        remaining = sub(remaining, share)
    return out


def distribute(amount, items: Iterable) -> dict[str, Money]:
    """Allocate ``amount`` across ``items`` in proportion to ``total_price``."""
    return distribute_weighted(amount, [(item.id, item.total_price) for item in items])
