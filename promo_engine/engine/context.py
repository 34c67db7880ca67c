# promo_engine/engine/context.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

from ..errors import InvariantViolation
from ..utils.money import D, Money, ZERO, mul, money_sum, round_money


@dataclass(frozen=True)
class DiscountItem:
    id: str
    product_id: str
    quantity: int
    unit_price: Money
    total_price: Money
    variant_id: Optional[str] = None
    category_ids: frozenset = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "product_id", str(self.product_id))
        object.__setattr__(self, "unit_price", round_money(self.unit_price))
        object.__setattr__(self, "total_price", round_money(self.total_price))
        object.__setattr__(self, "category_ids", frozenset(str(c) for c in self.category_ids or ()))
        if self.quantity < 0 or self.unit_price < 0:
            raise InvariantViolation(f"item {self.id}: quantity and unit price must be >= 0")
        if self.total_price != mul(self.unit_price, self.quantity):
            raise InvariantViolation(
                f"item {self.id}: total price {self.total_price} != "
                f"{self.quantity} x {self.unit_price}"
            )

    @classmethod
    def of(cls, item_id, product_id, quantity: int, unit_price, **kw) -> "DiscountItem":
        return cls(id=item_id, product_id=product_id, quantity=quantity, unit_price=D(unit_price),
                   total_price=mul(unit_price, quantity), **kw)


@dataclass(frozen=True)
class DiscountContext:
    """Snapshot of a cart, fully resolved by the caller.

    First-order status and per-customer redemption counts are supplied here;
    the engine never looks them up.
    """

    store_id: str
    items: tuple
    subtotal: Money
    shipping_amount: Money = ZERO
    customer_id: Optional[str] = None
    customer_group_ids: frozenset = frozenset()
    region_id: Optional[str] = None
    coupon_code: Optional[str] = None
    is_first_order: bool = False
    customer_usage: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "subtotal", round_money(self.subtotal))
        object.__setattr__(self, "shipping_amount", round_money(self.shipping_amount))
        object.__setattr__(self, "customer_group_ids",
                           frozenset(str(g) for g in self.customer_group_ids or ()))
        code = (self.coupon_code or "").strip()
        object.__setattr__(self, "coupon_code", code or None)

        if self.shipping_amount < 0:
            raise InvariantViolation("shipping amount must be >= 0")
        items_total = money_sum(i.total_price for i in self.items)
        if items_total != self.subtotal:
            raise InvariantViolation(
                f"subtotal {self.subtotal} does not match item totals {items_total}"
            )
        ids = [i.id for i in self.items]
        if len(ids) != len(set(ids)):
            raise InvariantViolation("duplicate item ids in context")

    def usage_for(self, rule_id: str) -> int:
        return int(self.customer_usage.get(rule_id, 0))
