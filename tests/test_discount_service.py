from datetime import timedelta
from decimal import Decimal

import pytest

from promo_engine.engine import BudgetType, BuyXGetY, DiscountSettings, DiscountType
from promo_engine.errors import InvariantViolation
from promo_engine.services import discount_service as svc
from promo_engine.services.ledger import DiscountLedger

from helpers import NOW, STORE, add_discount, item, make_context

STACKING = DiscountSettings(max_per_order=None, stacking_enabled=True)


def test_codes_are_stored_upper_case(db_session):
    d = add_discount(code=" summer ")
    assert d.code == "SUMMER"
    assert add_discount(name="auto", code="").code is None


def test_find_by_code_is_case_insensitive_and_store_scoped(db_session):
    d = add_discount(code="SUMMER10")
    add_discount(store_id="other", code="WINTER")
    assert svc.find_by_code(STORE, "summer10").id == d.id
    assert svc.find_by_code(STORE, "WINTER") is None
    assert svc.find_by_code(STORE, "  ") is None


def test_list_automatic_rules_skips_coded_and_inactive(db_session):
    auto = add_discount(name="auto", is_automatic=True, priority=2)
    first = add_discount(name="first", is_automatic=True, priority=1)
    add_discount(name="coded", code="CODE", is_automatic=True)
    add_discount(name="off", is_automatic=True, is_active=False)
    add_discount(name="manual", is_automatic=False)
    rules = svc.list_automatic_rules(STORE)
    assert [r.id for r in rules] == [first.id, auto.id]


def test_to_rule_maps_every_archetype(db_session):
    bxgy = add_discount(type="buy_x_get_y", value=0, buy_quantity=2, get_quantity=1,
                        get_discount_percentage=Decimal("50"), budget_type="usage", budget_limit=10,
                        campaign_name="spring")
    rule = bxgy.to_rule()
    assert rule.type is DiscountType.BUY_X_GET_Y
    assert rule.offer == BuyXGetY(2, 1, Decimal("50"))
    assert rule.budget.budget_type is BudgetType.USAGE
    assert rule.campaign_name == "spring"
    assert add_discount(type="free_shipping", value=0).to_rule().type is DiscountType.FREE_SHIPPING


def test_contradictory_rows_raise(db_session):
    d = add_discount(minimum_order_amount=100, maximum_order_amount=10)
    with pytest.raises(InvariantViolation):
        d.to_rule()
    d = add_discount(type="weird")
    with pytest.raises(InvariantViolation):
        d.to_rule()
    d = add_discount(budget_limit=10)
    with pytest.raises(InvariantViolation):
        d.to_rule()


def test_evaluate_for_store_end_to_end(db_session):
    add_discount(name="auto 10%", is_automatic=True, value=10, priority=0)
    coupon = add_discount(name="five off", code="FIVE", type="fixed_amount", value=5, priority=1)
    ctx = make_context([item("a", "50.00", 2)], coupon_code="five")
    result = svc.evaluate_for_store(ctx, STACKING, NOW)
    assert result.is_valid
    assert result.discount_amount == Decimal("15.00")
    assert result.applied_rule_ids[-1] == coupon.id

    report = DiscountLedger().commit(result.applied_rule_ids, "order-1", rule_amounts=result.rule_amounts)
    assert report.ok
    assert coupon.usage_count == 1


def test_per_customer_limit_round_trip(db_session):
    coupon = add_discount(code="ONCE", usage_limit_per_customer=1)
    items = [item("a", "20.00")]
    ctx = make_context(items, customer_id="c1", coupon_code="ONCE",
                       customer_usage=svc.customer_usage_counts("c1"))
    result = svc.evaluate_for_store(ctx, STACKING, NOW)
    assert result.is_valid
    DiscountLedger().commit(result.applied_rule_ids, "order-1", customer_id="c1")

    again = make_context(items, customer_id="c1", coupon_code="ONCE",
                         customer_usage=svc.customer_usage_counts("c1"))
    result = svc.evaluate_for_store(again, STACKING, NOW)
    assert not result.is_valid
    assert "maximum number of times" in result.errors[0]
    assert coupon.usage_count == 1


def test_validate_code_ignores_automatic_discounts(db_session):
    add_discount(name="auto", is_automatic=True, value=50)
    add_discount(code="TEN", value=10)
    ctx = make_context([item("a", "100.00")], coupon_code="ten")
    result = svc.validate_code(ctx, STACKING, NOW)
    assert result.is_valid
    assert result.discount_amount == Decimal("10.00")


def test_list_available_discounts(db_session):
    visible = add_discount(code="PUBLIC")
    add_discount(code="HIDDEN", is_public=False)
    add_discount(name="auto", is_automatic=True)
    add_discount(code="LATER", starts_at=NOW + timedelta(days=1))
    add_discount(code="DONE", usage_limit=1, usage_count=1)
    add_discount(code="SPENT", budget_type="spend", budget_limit=10, budget_used=Decimal("10"))
    vip = add_discount(code="VIP", customer_ids=["c9"])

    assert [d.id for d in svc.list_available_discounts(STORE, now=NOW)] == [visible.id]
    ids = {d.id for d in svc.list_available_discounts(STORE, customer_id="c9", now=NOW)}
    assert ids == {visible.id, vip.id}
