# promo_engine/engine/eligibility.py
from __future__ import annotations

from datetime import datetime
from typing import NamedTuple

from ..utils.dates import as_naive_utc, utcnow
from ..utils.money import to_string_money
from .context import DiscountContext
from .rules import AppliesTo, BudgetType, DiscountRule


class Eligibility(NamedTuple):
    eligible: bool
    reason: str

    def __bool__(self):
        return self.eligible


ELIGIBLE = Eligibility(True, "")


def _fail(reason: str) -> Eligibility:
    return Eligibility(False, reason)


def targeted_items(rule: DiscountRule, context: DiscountContext) -> list:
    t = rule.targeting
    if t.applies_to is AppliesTo.SPECIFIC_PRODUCTS:
        return [i for i in context.items if i.product_id in t.product_ids]
    if t.applies_to is AppliesTo.SPECIFIC_CATEGORIES:
        return [i for i in context.items if i.category_ids & t.category_ids]
    return list(context.items)


def evaluate(rule: DiscountRule, context: DiscountContext, now: datetime | None = None) -> Eligibility:
    """Decide whether ``rule`` applies to ``context``.

    Checks run in a fixed order and stop at the first failure; the reason is
    shown to the shopper when the rule came from a coupon code.
    """
    now = as_naive_utc(now) or utcnow()

    if not rule.is_active:
        return _fail("This discount is not active")

    if rule.starts_at and now < rule.starts_at:
        return _fail("This discount is not yet active")
    if rule.ends_at and now > rule.ends_at:
        return _fail("This discount has expired")

    if rule.usage_limit is not None and rule.usage_count >= rule.usage_limit:
        return _fail("This discount has reached its usage limit")

    if rule.usage_limit_per_customer is not None and context.customer_id:
        if context.usage_for(rule.id) >= rule.usage_limit_per_customer:
            return _fail("You have already used this discount the maximum number of times")

    # spend headroom is re-checked once the amount is known
    if rule.budget and rule.budget.exhausted:
        if rule.budget.budget_type is BudgetType.USAGE:
            return _fail("This campaign has reached its budget limit")
        return _fail("This campaign has reached its spend limit")

    if rule.first_order_only and not context.is_first_order:
        return _fail("This discount is only valid for first orders")

    if rule.minimum_order_amount is not None and context.subtotal < rule.minimum_order_amount:
        return _fail(f"Minimum order amount of {to_string_money(rule.minimum_order_amount)} required")
    if rule.maximum_order_amount is not None and context.subtotal > rule.maximum_order_amount:
        return _fail(f"Maximum order amount of {to_string_money(rule.maximum_order_amount)} exceeded")

    targeted = targeted_items(rule, context)
    if rule.minimum_quantity is not None:
        if sum(i.quantity for i in targeted) < rule.minimum_quantity:
            return _fail(f"Minimum {rule.minimum_quantity} items required")

    if rule.targeting.applies_to is not AppliesTo.ALL and not targeted:
        return _fail("No eligible products in cart for this discount")

    t = rule.targeting
    if t.customer_ids and (not context.customer_id or str(context.customer_id) not in t.customer_ids):
        return _fail("This discount is not available for your account")
    if t.customer_group_ids and not (t.customer_group_ids & context.customer_group_ids):
        return _fail("This discount is not available for your customer group")
    if t.region_ids and (not context.region_id or str(context.region_id) not in t.region_ids):
        return _fail("This discount is not available in your region")

    if rule.code:
        if not context.coupon_code:
            return _fail("A discount code is required for this discount")
        if not rule.matches_code(context.coupon_code):
            return _fail("Discount code does not match")

    return ELIGIBLE
