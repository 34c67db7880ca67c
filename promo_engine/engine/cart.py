# promo_engine/engine/cart.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from ..errors import InvariantViolation
from ..utils.dates import as_naive_utc, utcnow
from ..utils.money import Money, ZERO, add, money_sum
from .calculator import compute
from .context import DiscountContext
from .eligibility import Eligibility, evaluate, targeted_items
from .resolver import Candidate, DiscountSettings, resolve
from .rules import BudgetType, DiscountRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppliedDiscount:
    rule_id: str
    code: Optional[str]
    name: str
    type: str
    value: Money
    amount: Money
    free_shipping: bool = False
    shipping_amount: Money = ZERO

    @property
    def contributed(self) -> Money:
        return add(self.amount, self.shipping_amount)

    def as_api(self):
        return {
            "rule_id": self.rule_id,
            "code": self.code,
            "name": self.name,
            "type": self.type,
            "value": str(self.value),
            "amount": str(self.amount),
            "free_shipping": self.free_shipping,
            "shipping_amount": str(self.shipping_amount),
        }


@dataclass
class CartDiscountResult:
    is_valid: bool = True
    errors: list = field(default_factory=list)
    discount_amount: Money = ZERO
    free_shipping: bool = False
    shipping_discount: Money = ZERO
    item_discounts: dict = field(default_factory=dict)
    applied: list = field(default_factory=list)
    skipped_rule_ids: list = field(default_factory=list)
    # automatic-only result kept for information when a coupon was rejected
    automatic: Optional["CartDiscountResult"] = None

    @property
    def applied_rule_ids(self) -> list:
        return [a.rule_id for a in self.applied]

    @property
    def rule_amounts(self) -> dict:
        return {a.rule_id: a.contributed for a in self.applied}

    def as_api(self):
        out = {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "discount_amount": str(self.discount_amount),
            "free_shipping": self.free_shipping,
            "shipping_discount": str(self.shipping_discount),
            "item_discounts": {k: str(v) for k, v in self.item_discounts.items()},
            "applied_rule_ids": self.applied_rule_ids,
            "applied": [a.as_api() for a in self.applied],
            "skipped_rule_ids": list(self.skipped_rule_ids),
        }
        if self.automatic is not None:
            out["automatic"] = self.automatic.as_api()
        return out


def _check_spend_headroom(rule: DiscountRule, contributed: Money) -> Eligibility:
    b = rule.budget
    if b and b.budget_type is BudgetType.SPEND and b.would_overrun(contributed):
        return Eligibility(False, "This campaign has reached its spend limit")
    return Eligibility(True, "")


def _candidate(rule: DiscountRule, context: DiscountContext, now: datetime):
    """Returns ``(candidate, eligibility)``; candidate is None when not eligible."""
    verdict = evaluate(rule, context, now)
    if not verdict:
        return None, verdict
    computation = compute(rule, context, targeted_items(rule, context))
    verdict = _check_spend_headroom(rule, computation.contributed)
    if not verdict:
        return None, verdict
    return Candidate(rule, computation), verdict


def _automatic_candidates(rules: Iterable[DiscountRule], context: DiscountContext, now: datetime) -> list:
    out = []
    seen = set()
    for rule in rules:
        if rule.id in seen:
            continue
        seen.add(rule.id)
        if rule.store_id != context.store_id or not rule.is_automatic or rule.code:
            logger.debug("rule %s is not an automatic discount for store %s", rule.id, context.store_id)
            continue
        cand, verdict = _candidate(rule, context, now)
        if cand is None:
            logger.debug("automatic rule %s excluded: %s", rule.id, verdict.reason)
            continue
        out.append(cand)
    return out


def _build_result(applied: list, skipped: list, context: DiscountContext) -> CartDiscountResult:
    item_discounts: dict = {}
    discounts = []
    for cand in applied:
        comp, rule = cand.computation, cand.rule
        for item_id, share in comp.item_allocations.items():
            item_discounts[item_id] = add(item_discounts.get(item_id, ZERO), share)
        discounts.append(AppliedDiscount(
            rule_id=rule.id, code=rule.code, name=rule.name, type=rule.type.value,
            value=rule.value, amount=comp.amount, free_shipping=comp.free_shipping,
            shipping_amount=comp.shipping_amount,
        ))
    free_shipping = any(a.free_shipping for a in discounts)
    return CartDiscountResult(
        is_valid=True,
        discount_amount=money_sum(a.amount for a in discounts),
        free_shipping=free_shipping,
        shipping_discount=context.shipping_amount if free_shipping else ZERO,
        item_discounts=item_discounts,
        applied=discounts,
        skipped_rule_ids=[c.rule.id for c in skipped],
    )


def _invalid(reason: str, automatic: CartDiscountResult | None) -> CartDiscountResult:
    return CartDiscountResult(is_valid=False, errors=[reason], automatic=automatic)


def evaluate_cart(
    context: DiscountContext,
    automatic_rules: Iterable[DiscountRule] = (),
    coupon_rule: DiscountRule | None = None,
    settings: DiscountSettings | None = None,
    now: datetime | None = None,
) -> CartDiscountResult:
    """Work out every discount for a cart snapshot. Pure: no I/O, no mutation.

    ``coupon_rule`` is what rule storage returned for ``context.coupon_code``
    (``None`` when the code is unknown). Only a rejected coupon makes the
    result invalid; the automatic-only evaluation is then kept on
    ``result.automatic`` so the cart can keep showing it.
    """
    settings = settings or DiscountSettings()
    now = as_naive_utc(now) or utcnow()

    if coupon_rule is not None:
        if not context.coupon_code:
            raise InvariantViolation("coupon rule supplied without a coupon code", coupon_rule.id)
        if not coupon_rule.code:
            raise InvariantViolation("coupon rule has no code", coupon_rule.id)

    if not settings.enabled:
        if context.coupon_code:
            return _invalid("Discounts are currently disabled", CartDiscountResult())
        return CartDiscountResult()

    candidates = _automatic_candidates(automatic_rules, context, now)

    def _automatic_only() -> CartDiscountResult:
        applied, skipped = resolve([c for c in candidates if c.computation.has_effect], settings)
        return _build_result(applied, skipped, context)

    if context.coupon_code:
        if (coupon_rule is None or coupon_rule.store_id != context.store_id
                or not coupon_rule.matches_code(context.coupon_code)):
            logger.info("coupon %r not found for store %s", context.coupon_code, context.store_id)
            return _invalid("Invalid discount code", _automatic_only())
        cand, verdict = _candidate(coupon_rule, context, now)
        if cand is None:
            logger.info("coupon %r rejected: %s", context.coupon_code, verdict.reason)
            return _invalid(verdict.reason, _automatic_only())
        candidates = [c for c in candidates if c.rule.id != coupon_rule.id] + [cand]

    effective = [c for c in candidates if c.computation.has_effect]
    applied, skipped = resolve(effective, settings)
    result = _build_result(applied, skipped, context)
    logger.debug("store %s: applied %s, discount %s", context.store_id,
                 result.applied_rule_ids, result.discount_amount)
    return result
