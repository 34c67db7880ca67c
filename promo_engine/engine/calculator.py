# promo_engine/engine/calculator.py
from __future__ import annotations

from dataclasses import dataclass, field

from ..utils.money import Money, ZERO, add, money_sum, percentage, round_money
from .allocation import distribute, distribute_weighted
from .context import DiscountContext
from .eligibility import targeted_items
from .rules import BuyXGetY, DiscountRule, FixedAmountOff, FreeShipping, PercentageOff


@dataclass(frozen=True)
class Computation:
    amount: Money = ZERO
    item_allocations: dict = field(default_factory=dict)
    free_shipping: bool = False
    # shipping waived by a free-shipping rule; not part of ``amount``
    shipping_amount: Money = ZERO

    @property
    def has_effect(self) -> bool:
        return self.amount > 0 or self.free_shipping

    @property
    def contributed(self) -> Money:
        return add(self.amount, self.shipping_amount)


def _cap(rule: DiscountRule, amount: Money) -> Money:
    if rule.maximum_discount_amount is not None and amount > rule.maximum_discount_amount:
        return round_money(rule.maximum_discount_amount)
    return amount


def _buy_x_get_y(offer: BuyXGetY, items) -> dict[str, Money]:
    # one entry per unit, cheapest first
    units = sorted(
        ((item.unit_price, idx, item.id) for idx, item in enumerate(items) for _ in range(item.quantity)),
    )
    per_item: dict[str, Money] = {}
    size = offer.group_size
    complete = len(units) - len(units) % size
    for start in range(0, complete, size):
        group = units[start:start + size]
        for unit_price, _, item_id in group[:offer.get_quantity]:
            reduction = percentage(unit_price, offer.get_discount_percentage)
            per_item[item_id] = add(per_item.get(item_id, ZERO), reduction)
    return per_item


def compute(rule: DiscountRule, context: DiscountContext, targeted=None) -> Computation:
    """Money effect of one eligible rule, computed against undiscounted prices."""
    items = targeted_items(rule, context) if targeted is None else list(targeted)
    base = money_sum(i.total_price for i in items)
    offer = rule.offer

    if isinstance(offer, FreeShipping):
        return Computation(free_shipping=True, shipping_amount=context.shipping_amount)

    if isinstance(offer, PercentageOff):
        amount = _cap(rule, percentage(base, offer.percent))
        return Computation(amount, distribute(amount, items) if items else {})

    if isinstance(offer, FixedAmountOff):
        amount = _cap(rule, min(round_money(offer.amount), base))
        return Computation(amount, distribute(amount, items) if items else {})

    if isinstance(offer, BuyXGetY):
        per_item = _buy_x_get_y(offer, items)
        amount = money_sum(per_item.values())
        capped = _cap(rule, amount)
        if capped != amount:
            per_item = distribute_weighted(capped, list(per_item.items()))
        return Computation(capped, per_item)

    raise TypeError(f"unsupported offer {offer!r}")
