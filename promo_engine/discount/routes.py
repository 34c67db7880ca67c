# promo_engine/discount/routes.py
from __future__ import annotations
from decimal import InvalidOperation
from flask import current_app, request, jsonify

from ..engine import DiscountContext, DiscountItem, DiscountSettings
from ..errors import ValidationFailure
from ..services import discount_service
from ..services.ledger import DiscountLedger
from ..utils.api import api_ok, api_error
from ..utils.dates import parse_iso8601
from ..utils.money import D, mul
from . import bp

# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r
def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r

# ---- helpers ---------------------------------------------------------------

class PayloadError(ValueError):
    pass

def _settings() -> DiscountSettings:
    return DiscountSettings.from_config(current_app.config)

def _money_field(data: dict, key: str, default=None):
    raw = data.get(key, default)
    if raw is None:
        raise PayloadError(f"{key} is required")
    try:
        return D(raw)
    except InvalidOperation:
        raise PayloadError(f"{key} must be numeric")

def _item_from_payload(raw: dict) -> DiscountItem:
    if not raw.get("id") or not raw.get("product_id"):
        raise PayloadError("each item needs id and product_id")
    try:
        qty = int(raw.get("quantity") or 0)
    except (TypeError, ValueError):
        raise PayloadError("quantity must be an integer")
    unit = _money_field(raw, "unit_price")
    total = _money_field(raw, "total_price", mul(unit, qty))
    return DiscountItem(
        id=raw["id"],
        product_id=raw["product_id"],
        variant_id=raw.get("variant_id"),
        category_ids=frozenset(raw.get("category_ids") or ()),
        quantity=qty,
        unit_price=unit,
        total_price=total,
    )

def _context_from_payload(data: dict) -> DiscountContext:
    store_id = data.get("store_id")
    if not store_id:
        raise PayloadError("store_id is required")
    items = [_item_from_payload(i) for i in (data.get("items") or [])]
    customer_id = data.get("customer_id")
    usage = data.get("customer_usage")
    if usage is None:
        usage = discount_service.customer_usage_counts(customer_id)
    return DiscountContext(
        store_id=str(store_id),
        items=items,
        subtotal=_money_field(data, "subtotal"),
        shipping_amount=_money_field(data, "shipping_amount", 0),
        customer_id=str(customer_id) if customer_id is not None else None,
        customer_group_ids=frozenset(data.get("customer_group_ids") or ()),
        region_id=data.get("region_id"),
        coupon_code=data.get("coupon_code"),
        is_first_order=bool(data.get("is_first_order", False)),
        customer_usage=_usage_from_payload(usage),
    )

def _usage_from_payload(usage) -> dict:
    if not isinstance(usage, dict):
        raise PayloadError("customer_usage must be an object of rule id to count")
    try:
        return {str(k): int(v) for k, v in usage.items()}
    except (TypeError, ValueError):
        raise PayloadError("customer_usage counts must be integers")

def _now_from_payload(data: dict):
    if not data.get("now"):
        return None
    now = parse_iso8601(data["now"])
    if now is None:
        raise PayloadError("Invalid datetime format for now")
    return now

# ---- routes -----------------------------------------------------------------

@bp.post("/evaluate")
def evaluate():
    data = request.get_json(silent=True) or {}
    try:
        ctx = _context_from_payload(data)
        now = _now_from_payload(data)
    except PayloadError as e:
        return err(str(e), 400)

    result = discount_service.evaluate_for_store(ctx, _settings(), now)
    return ok("evaluated", {"result": result.as_api()})

@bp.post("/validate")
def validate():
    data = request.get_json(silent=True) or {}
    if not (data.get("coupon_code") or "").strip():
        return err("coupon_code is required", 400)
    try:
        ctx = _context_from_payload(data)
        now = _now_from_payload(data)
    except PayloadError as e:
        return err(str(e), 400)

    result = discount_service.validate_code(ctx, _settings(), now)
    if not result.is_valid:
        raise ValidationFailure(result.errors[0])
    return ok("coupon valid", {"result": result.as_api()})

@bp.get("/available")
def available():
    store_id = request.args.get("store_id")
    if not store_id:
        return err("store_id is required", 400)
    rows = discount_service.list_available_discounts(store_id, request.args.get("customer_id"))
    return ok("ok", {"items": [d.as_api() for d in rows]})

@bp.post("/commit")
def commit():
    """
    Body:
      - order_id, customer_id, order_total
      - applied: [{rule_id, amount}] in application order
    """
    data = request.get_json(silent=True) or {}
    order_id = data.get("order_id")
    applied = data.get("applied") or []
    if not order_id:
        return err("order_id is required", 400)
    try:
        rule_ids = [str(a["rule_id"]) for a in applied]
        # only amounts actually sent; spend rules without one are rejected by the ledger
        amounts = {str(a["rule_id"]): D(a["amount"]) for a in applied if a.get("amount") is not None}
        order_total = D(data["order_total"]) if data.get("order_total") is not None else None
    except (KeyError, TypeError, InvalidOperation):
        return err("applied entries need rule_id and a numeric amount", 400)

    ledger = DiscountLedger(max_retries=current_app.config["DISCOUNTS_COMMIT_RETRIES"])
    report = ledger.commit(rule_ids, order_id, data.get("customer_id"), order_total, amounts)
    if not report.ok:
        return err("some discounts could not be committed", 409, report.as_api())
    return ok("committed", report.as_api())

@bp.post("/cancel")
def cancel():
    data = request.get_json(silent=True) or {}
    order_id = data.get("order_id")
    if not order_id:
        return err("order_id is required", 400)
    n = DiscountLedger().cancel_order(order_id)
    return ok("cancelled", {"order_id": str(order_id), "redemptions": n})
