from datetime import datetime
from decimal import Decimal

from promo_engine.engine import DiscountContext, DiscountItem, DiscountRule, PercentageOff
from promo_engine.extensions import db
from promo_engine.model import Discount
from promo_engine.utils.money import money_sum

STORE = "store-1"
NOW = datetime(2026, 6, 1, 12, 0, 0)

_seq = [0]


def make_rule(offer=None, **kw) -> DiscountRule:
    _seq[0] += 1
    kw.setdefault("id", f"rule-{_seq[0]}")
    kw.setdefault("store_id", STORE)
    kw.setdefault("is_automatic", True)
    kw.setdefault("created_at", datetime(2026, 1, 1, 0, 0, _seq[0] % 60))
    return DiscountRule(offer=offer or PercentageOff(10), **kw)


def item(item_id, price, qty=1, product_id=None, categories=()):
    return DiscountItem.of(item_id, product_id or f"p-{item_id}", qty, price, category_ids=frozenset(categories))


def make_context(items, **kw) -> DiscountContext:
    kw.setdefault("store_id", STORE)
    kw.setdefault("subtotal", money_sum(i.total_price for i in items))
    return DiscountContext(items=items, **kw)


def add_discount(**kw) -> Discount:
    kw.setdefault("store_id", STORE)
    kw.setdefault("name", "Test discount")
    kw.setdefault("type", "percentage")
    kw.setdefault("value", Decimal("10"))
    d = Discount(**kw)
    db.session.add(d)
    db.session.commit()
    return d
