# promo_engine/services/discount_service.py
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, or_

from ..engine import CartDiscountResult, DiscountContext, DiscountRule, DiscountSettings, evaluate_cart
from ..extensions import db
from ..model import Discount, DiscountRedemption
from ..utils.dates import as_naive_utc, utcnow

logger = logging.getLogger(__name__)


def list_automatic_rules(store_id) -> list[DiscountRule]:
    rows = (
        Discount.query
        .filter(Discount.store_id == str(store_id))
        .filter(Discount.is_active.is_(True))
        .filter(Discount.is_automatic.is_(True))
        .filter(Discount.code.is_(None))
        .order_by(Discount.priority.asc(), Discount.created_at.asc())
        .all()
    )
    return [d.to_rule() for d in rows]


def find_by_code(store_id, code: str | None) -> DiscountRule | None:
    code = (code or "").strip()
    if not code:
        return None
    d = (
        Discount.query
        .filter(Discount.store_id == str(store_id))
        .filter(func.lower(Discount.code) == code.lower())
        .first()
    )
    return d.to_rule() if d else None


def list_available_discounts(store_id, customer_id=None, now: datetime | None = None) -> list[Discount]:
    """Public coupon codes a shopper could be shown right now."""
    now = as_naive_utc(now) or utcnow()
    q = (
        Discount.query
        .filter(Discount.store_id == str(store_id))
        .filter(Discount.is_active.is_(True))
        .filter(Discount.is_public.is_(True))
        .filter(Discount.is_automatic.is_(False))
        .filter(Discount.code.isnot(None))
        .filter(or_(Discount.starts_at.is_(None), Discount.starts_at <= now))
        .filter(or_(Discount.ends_at.is_(None), Discount.ends_at >= now))
        .filter(or_(Discount.usage_limit.is_(None), Discount.usage_count < Discount.usage_limit))
        .order_by(Discount.priority.asc(), Discount.created_at.asc())
    )
    out = []
    for d in q.all():
        # JSON allow-list filtering stays in Python; it is dialect independent
        allowed = d.customer_ids or []
        if allowed and (customer_id is None or str(customer_id) not in {str(c) for c in allowed}):
            continue
        if d.budget_limit is not None and (d.budget_used or 0) >= d.budget_limit:
            continue
        out.append(d)
    return out


def customer_usage_counts(customer_id, rule_ids=None) -> dict[str, int]:
    if customer_id is None:
        return {}
    q = (
        db.session.query(DiscountRedemption.discount_id, func.count(DiscountRedemption.id))
        .filter(DiscountRedemption.customer_id == str(customer_id))
        .filter(DiscountRedemption.cancelled_at.is_(None))
    )
    if rule_ids is not None:
        q = q.filter(DiscountRedemption.discount_id.in_(list(rule_ids)))
    rows = q.group_by(DiscountRedemption.discount_id).all()
    return {rule_id: int(n) for rule_id, n in rows}


def evaluate_for_store(context: DiscountContext, settings: DiscountSettings | None = None,
                       now: datetime | None = None) -> CartDiscountResult:
    automatic = list_automatic_rules(context.store_id)
    coupon = find_by_code(context.store_id, context.coupon_code) if context.coupon_code else None
    result = evaluate_cart(context, automatic, coupon, settings=settings, now=now)
    logger.info(
        "store=%s customer=%s coupon=%s valid=%s discount=%s applied=%s",
        context.store_id, context.customer_id, context.coupon_code,
        result.is_valid, result.discount_amount, result.applied_rule_ids,
    )
    return result


def validate_code(context: DiscountContext, settings: DiscountSettings | None = None,
                  now: datetime | None = None) -> CartDiscountResult:
    """Check the context's coupon on its own, ignoring automatic discounts."""
    coupon = find_by_code(context.store_id, context.coupon_code)
    return evaluate_cart(context, (), coupon, settings=settings, now=now)
