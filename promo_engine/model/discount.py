# --- promo_engine/model/discount.py ---
import uuid as _uuid

from sqlalchemy.orm import validates

from ..engine.rules import (
    Budget, BuyXGetY, DiscountRule, FixedAmountOff, FreeShipping, PercentageOff, Targeting,
)
from ..errors import InvariantViolation
from ..extensions import db
from ..utils.dates import utcnow


class Discount(db.Model):
    __tablename__ = "discount"
    __table_args__ = (
        db.UniqueConstraint("store_id", "code", name="uq_discount_store_code"),
        db.Index("ix_discount_store_active", "store_id", "is_active"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(_uuid.uuid4()))
    store_id = db.Column(db.String(36), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False, default="")
    # NULL for automatic-only discounts; stored upper case
    code = db.Column(db.String(64), nullable=True, index=True)

    # "percentage" | "fixed_amount" | "free_shipping" | "buy_x_get_y"
    type = db.Column(db.String(16), nullable=False, default="percentage")
    value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # "all" | "specific_products" | "specific_categories"
    applies_to = db.Column(db.String(32), nullable=False, default="all")
    product_ids = db.Column(db.JSON, nullable=True)
    category_ids = db.Column(db.JSON, nullable=True)
    customer_ids = db.Column(db.JSON, nullable=True)
    customer_group_ids = db.Column(db.JSON, nullable=True)
    region_ids = db.Column(db.JSON, nullable=True)

    # Optional constraints
    minimum_order_amount = db.Column(db.Numeric(12, 2), nullable=True)
    maximum_order_amount = db.Column(db.Numeric(12, 2), nullable=True)
    minimum_quantity = db.Column(db.Integer, nullable=True)
    maximum_discount_amount = db.Column(db.Numeric(12, 2), nullable=True)

    usage_limit = db.Column(db.Integer, nullable=True)
    usage_limit_per_customer = db.Column(db.Integer, nullable=True)
    usage_count = db.Column(db.Integer, nullable=False, default=0)

    starts_at = db.Column(db.DateTime, nullable=True)
    ends_at = db.Column(db.DateTime, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_public = db.Column(db.Boolean, nullable=False, default=True)
    first_order_only = db.Column(db.Boolean, nullable=False, default=False)

    # Buy X Get Y
    buy_quantity = db.Column(db.Integer, nullable=True)
    get_quantity = db.Column(db.Integer, nullable=True)
    get_discount_percentage = db.Column(db.Numeric(5, 2), nullable=True)

    is_automatic = db.Column(db.Boolean, nullable=False, default=False)
    priority = db.Column(db.Integer, nullable=False, default=0)
    is_combinable = db.Column(db.Boolean, nullable=False, default=True)

    # Campaign budget: "spend" | "usage"
    campaign_name = db.Column(db.String(255), nullable=True)
    budget_type = db.Column(db.String(16), nullable=True)
    budget_limit = db.Column(db.Numeric(12, 2), nullable=True)
    budget_used = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # bumped on every counter update; stale writers get StaleDataError
    version_id = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    redemptions = db.relationship(
        "DiscountRedemption",
        back_populates="discount",
        cascade="all, delete-orphan",
        lazy="select",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @validates("code")
    def _normalize_code(self, key, code):
        code = (code or "").strip()
        return code.upper() or None

    # ---- value object -------------------------------------------------------
    def _offer(self):
        if self.type == "percentage":
            return PercentageOff(self.value)
        if self.type == "fixed_amount":
            return FixedAmountOff(self.value)
        if self.type == "free_shipping":
            return FreeShipping()
        if self.type == "buy_x_get_y":
            return BuyXGetY(
                buy_quantity=self.buy_quantity or 0,
                get_quantity=self.get_quantity or 0,
                get_discount_percentage=self.get_discount_percentage or 100,
            )
        raise InvariantViolation(f"unknown discount type {self.type!r}", self.id)

    def _budget(self):
        if self.budget_limit is None:
            return None
        if not self.budget_type:
            raise InvariantViolation("budget limit set without a budget type", self.id)
        return Budget(
            budget_type=self.budget_type,
            limit=self.budget_limit,
            used=self.budget_used or 0,
            campaign_name=self.campaign_name,
        )

    def to_rule(self) -> DiscountRule:
        return DiscountRule(
            id=self.id,
            store_id=self.store_id,
            offer=self._offer(),
            name=self.name or "",
            code=self.code,
            targeting=Targeting(
                applies_to=self.applies_to or "all",
                product_ids=self.product_ids or (),
                category_ids=self.category_ids or (),
                customer_ids=self.customer_ids or (),
                customer_group_ids=self.customer_group_ids or (),
                region_ids=self.region_ids or (),
            ),
            minimum_order_amount=self.minimum_order_amount,
            maximum_order_amount=self.maximum_order_amount,
            minimum_quantity=self.minimum_quantity,
            maximum_discount_amount=self.maximum_discount_amount,
            usage_limit=self.usage_limit,
            usage_limit_per_customer=self.usage_limit_per_customer,
            usage_count=self.usage_count or 0,
            starts_at=self.starts_at,
            ends_at=self.ends_at,
            is_active=bool(self.is_active),
            is_public=bool(self.is_public),
            first_order_only=bool(self.first_order_only),
            is_automatic=bool(self.is_automatic),
            priority=self.priority or 0,
            is_combinable=bool(self.is_combinable),
            budget=self._budget(),
            created_at=self.created_at,
        )

    def as_api(self):
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "code": self.code,
            "type": self.type,
            "value": str(self.value),
            "applies_to": self.applies_to,
            "minimum_order_amount": str(self.minimum_order_amount) if self.minimum_order_amount is not None else None,
            "usage_count": self.usage_count,
            "usage_limit": self.usage_limit,
            "is_automatic": self.is_automatic,
            "priority": self.priority,
            "is_combinable": self.is_combinable,
            "campaign": {
                "name": self.campaign_name,
                "budget_type": self.budget_type,
                "budget_limit": str(self.budget_limit) if self.budget_limit is not None else None,
                "budget_used": str(self.budget_used or 0),
            },
            "starts_at": self.starts_at.isoformat() if self.starts_at else None,
            "ends_at": self.ends_at.isoformat() if self.ends_at else None,
        }


class DiscountRedemption(db.Model):
    """One row per (order, discount) committed to the ledger."""
    __tablename__ = "discount_redemption"
    __table_args__ = (
        db.UniqueConstraint("order_id", "discount_id", name="uq_redemption_order_discount"),
    )

    id = db.Column(db.Integer, primary_key=True)
    discount_id = db.Column(db.String(36), db.ForeignKey("discount.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = db.Column(db.String(64), nullable=False, index=True)
    customer_id = db.Column(db.String(64), nullable=True, index=True)

    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    order_total = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    # set when the order is cancelled; such rows no longer count per customer
    cancelled_at = db.Column(db.DateTime, nullable=True)

    discount = db.relationship("Discount", back_populates="redemptions")
