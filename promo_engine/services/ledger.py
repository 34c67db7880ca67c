# promo_engine/services/ledger.py
"""Usage and budget counters for discounts.

Each rule is committed in its own transaction. The row is read with
``SELECT ... FOR UPDATE`` and written through the model's version column,
so two commits racing on the same rule serialize: the loser either waits on
the lock or gets ``StaleDataError`` and retries against fresh counters.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import BudgetExhausted, CommitConflict, DiscountError, InvariantViolation, UsageExhausted
from ..extensions import db
from ..model import Discount, DiscountRedemption
from ..utils.dates import utcnow
from ..utils.money import D, ZERO, add, round_money

logger = logging.getLogger(__name__)

COMMITTED = "committed"
ALREADY_COMMITTED = "already_committed"
FAILED = "failed"


@dataclass
class RuleCommit:
    rule_id: str
    status: str
    error: DiscountError | None = None

    @property
    def ok(self) -> bool:
        return self.status != FAILED


@dataclass
class CommitReport:
    order_id: str
    outcomes: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    @property
    def failures(self) -> list:
        return [o for o in self.outcomes if not o.ok]

    def raise_for_failures(self):
        for o in self.outcomes:
            if o.error is not None:
                raise o.error

    def as_api(self):
        return {
            "order_id": self.order_id,
            "ok": self.ok,
            "rules": [
                {
                    "rule_id": o.rule_id,
                    "status": o.status,
                    "error": {**o.error.as_api(), "message": o.error.message} if o.error else None,
                }
                for o in self.outcomes
            ],
        }


class DiscountLedger:
    def __init__(self, session=None, max_retries: int = 3):
        self.session = session or db.session
        self.max_retries = max(1, max_retries)

    def commit(self, applied_rule_ids, order_id, customer_id=None, order_total=None,
               rule_amounts=None) -> CommitReport:
        """Record one placed order against every rule that discounted it.

        ``rule_amounts`` maps rule id to the money the rule contributed; it is
        required for spend-budget rules. Replaying the same order is a no-op.
        """
        if not order_id:
            raise InvariantViolation("order id is required to commit discounts")
        rule_amounts = {str(k): v for k, v in (rule_amounts or {}).items()}
        rule_ids = list(dict.fromkeys(str(r) for r in applied_rule_ids))
        # caller bugs surface before any counter moves
        self._check_rules(rule_ids, rule_amounts)
        report = CommitReport(order_id=str(order_id))

        for rule_id in rule_ids:
            report.outcomes.append(
                self._commit_rule(rule_id, str(order_id), customer_id, order_total, rule_amounts.get(rule_id))
            )

        if report.ok:
            logger.info("order %s: committed discounts %s", order_id, [o.rule_id for o in report.outcomes])
        else:
            logger.warning("order %s: discount commit failures %s", order_id,
                           [(o.rule_id, o.error.code) for o in report.failures])
        return report

    def cancel_order(self, order_id) -> int:
        """Mark an order's redemptions cancelled so per-customer counts skip them.

        Rule counters are left as they are; returns the number of rows marked.
        """
        rows = (
            self.session.query(DiscountRedemption)
            .filter(DiscountRedemption.order_id == str(order_id))
            .filter(DiscountRedemption.cancelled_at.is_(None))
            .all()
        )
        now = utcnow()
        for row in rows:
            row.cancelled_at = now
        self.session.commit()
        logger.info("order %s: %s discount redemptions cancelled", order_id, len(rows))
        return len(rows)

    def _check_rules(self, rule_ids, rule_amounts):
        if not rule_ids:
            return
        rows = self.session.query(Discount.id, Discount.budget_type).filter(Discount.id.in_(rule_ids)).all()
        budget_types = {rule_id: budget_type for rule_id, budget_type in rows}
        for rule_id in rule_ids:
            if rule_id not in budget_types:
                raise InvariantViolation(f"discount {rule_id} not found", rule_id)
            if budget_types[rule_id] == "spend" and rule_amounts.get(rule_id) is None:
                raise InvariantViolation("spend budget rule committed without an amount", rule_id)

    # ---- per rule -----------------------------------------------------------
    def _commit_rule(self, rule_id, order_id, customer_id, order_total, amount) -> RuleCommit:
        for attempt in range(1, self.max_retries + 1):
            try:
                status = self._apply(rule_id, order_id, customer_id, order_total, amount)
                self.session.commit()
                return RuleCommit(rule_id, status)
            except StaleDataError:
                self.session.rollback()
                logger.warning("rule %s: concurrent update, retry %s/%s", rule_id, attempt, self.max_retries)
            except IntegrityError:
                # another commit for this order won the unique redemption row
                self.session.rollback()
                return RuleCommit(rule_id, ALREADY_COMMITTED)
            except (UsageExhausted, BudgetExhausted) as e:
                self.session.rollback()
                logger.warning("rule %s: %s (order %s)", rule_id, e.message, order_id)
                return RuleCommit(rule_id, FAILED, e)
            except InvariantViolation as e:
                # row changed under us after the upfront check
                self.session.rollback()
                logger.error("rule %s: %s (order %s)", rule_id, e.message, order_id)
                return RuleCommit(rule_id, FAILED, e)

        return RuleCommit(rule_id, FAILED, CommitConflict(
            f"could not serialize counter update after {self.max_retries} attempts", rule_id))

    def _apply(self, rule_id, order_id, customer_id, order_total, amount) -> str:
        s = self.session
        done = (
            s.query(DiscountRedemption.id)
            .filter(DiscountRedemption.order_id == order_id, DiscountRedemption.discount_id == rule_id)
            .first()
        )
        if done:
            return ALREADY_COMMITTED

        d = (
            s.query(Discount)
            .filter(Discount.id == rule_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if d is None:
            raise InvariantViolation(f"discount {rule_id} not found", rule_id)

        usage_count = d.usage_count or 0
        if d.usage_limit is not None and usage_count >= d.usage_limit:
            raise UsageExhausted(f"Discount {d.code or d.name or d.id} has reached its usage limit", rule_id)

        contributed = round_money(amount) if amount is not None else None
        budget_used = D(d.budget_used or 0)
        if d.budget_type == "spend":
            if contributed is None:
                raise InvariantViolation("spend budget rule committed without an amount", rule_id)
            new_budget = add(budget_used, contributed)
        elif d.budget_type == "usage":
            new_budget = budget_used + 1
        else:
            new_budget = budget_used
        if d.budget_limit is not None and d.budget_type and new_budget > d.budget_limit:
            raise BudgetExhausted(f"Campaign {d.campaign_name or d.id} has reached its budget limit", rule_id)

        d.usage_count = usage_count + 1
        d.budget_used = new_budget
        s.add(DiscountRedemption(
            discount_id=rule_id,
            order_id=order_id,
            customer_id=str(customer_id) if customer_id is not None else None,
            discount_amount=contributed if contributed is not None else ZERO,
            order_total=round_money(order_total) if order_total is not None else None,
        ))
        s.flush()
        return COMMITTED
