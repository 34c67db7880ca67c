# promo_engine/engine/rules.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from ..errors import InvariantViolation
from ..utils.dates import as_naive_utc
from ..utils.money import D, HUNDRED, Money


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_SHIPPING = "free_shipping"
    BUY_X_GET_Y = "buy_x_get_y"


class AppliesTo(str, Enum):
    ALL = "all"
    SPECIFIC_PRODUCTS = "specific_products"
    SPECIFIC_CATEGORIES = "specific_categories"


class BudgetType(str, Enum):
    SPEND = "spend"
    USAGE = "usage"


# ---- offers (one payload per discount type) --------------------------------

@dataclass(frozen=True)
class PercentageOff:
    percent: Decimal

    type = DiscountType.PERCENTAGE

    def __post_init__(self):
        object.__setattr__(self, "percent", D(self.percent))
        if self.percent < 0 or self.percent > HUNDRED:
            raise InvariantViolation("percentage must be between 0 and 100")


@dataclass(frozen=True)
class FixedAmountOff:
    amount: Money

    type = DiscountType.FIXED_AMOUNT

    def __post_init__(self):
        object.__setattr__(self, "amount", D(self.amount))
        if self.amount < 0:
            raise InvariantViolation("fixed amount must be >= 0")


@dataclass(frozen=True)
class FreeShipping:
    type = DiscountType.FREE_SHIPPING


@dataclass(frozen=True)
class BuyXGetY:
    buy_quantity: int
    get_quantity: int
    get_discount_percentage: Decimal = Decimal("100")

    type = DiscountType.BUY_X_GET_Y

    def __post_init__(self):
        object.__setattr__(self, "get_discount_percentage", D(self.get_discount_percentage))
        if self.buy_quantity < 1 or self.get_quantity < 1:
            raise InvariantViolation("buy and get quantities must be >= 1")
        if not (0 < self.get_discount_percentage <= HUNDRED):
            raise InvariantViolation("get discount percentage must be in (0, 100]")

    @property
    def group_size(self) -> int:
        return self.buy_quantity + self.get_quantity


Offer = Union[PercentageOff, FixedAmountOff, FreeShipping, BuyXGetY]


def _ids(values) -> frozenset:
    return frozenset(str(v) for v in (values or ()))


@dataclass(frozen=True)
class Targeting:
    applies_to: AppliesTo = AppliesTo.ALL
    product_ids: frozenset = frozenset()
    category_ids: frozenset = frozenset()
    customer_ids: frozenset = frozenset()
    customer_group_ids: frozenset = frozenset()
    region_ids: frozenset = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "applies_to", AppliesTo(self.applies_to))
        for name in ("product_ids", "category_ids", "customer_ids",
                     "customer_group_ids", "region_ids"):
            object.__setattr__(self, name, _ids(getattr(self, name)))
        if self.applies_to is AppliesTo.SPECIFIC_PRODUCTS and not self.product_ids:
            raise InvariantViolation("specific_products targeting needs product ids")
        if self.applies_to is AppliesTo.SPECIFIC_CATEGORIES and not self.category_ids:
            raise InvariantViolation("specific_categories targeting needs category ids")


@dataclass(frozen=True)
class Budget:
    budget_type: BudgetType
    limit: Decimal
    used: Decimal = Decimal("0")
    campaign_name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "budget_type", BudgetType(self.budget_type))
        object.__setattr__(self, "limit", D(self.limit))
        object.__setattr__(self, "used", D(self.used))
        if self.limit < 0 or self.used < 0:
            raise InvariantViolation("budget limit and usage must be >= 0")

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit

    def would_overrun(self, amount) -> bool:
        if self.budget_type is BudgetType.USAGE:
            return self.used + 1 > self.limit
        return self.used + D(amount) > self.limit


@dataclass(frozen=True)
class DiscountRule:
    """Immutable discount configuration as read from storage.

    ``priority`` is ascending (0 beats 10). ``code`` is matched
    case-insensitively; a rule with a code always needs the shopper to type it.
    """

    id: str
    store_id: str
    offer: Offer
    name: str = ""
    code: Optional[str] = None
    targeting: Targeting = field(default_factory=Targeting)

    minimum_order_amount: Optional[Money] = None
    maximum_order_amount: Optional[Money] = None
    minimum_quantity: Optional[int] = None
    maximum_discount_amount: Optional[Money] = None

    usage_limit: Optional[int] = None
    usage_limit_per_customer: Optional[int] = None
    usage_count: int = 0

    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None

    is_active: bool = True
    is_public: bool = True
    first_order_only: bool = False
    is_automatic: bool = False
    priority: int = 0
    is_combinable: bool = True

    budget: Optional[Budget] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        for name in ("minimum_order_amount", "maximum_order_amount", "maximum_discount_amount"):
            value = getattr(self, name)
            if value is not None:
                value = D(value)
                if value < 0:
                    raise InvariantViolation(f"{name} must be >= 0", self.id)
                object.__setattr__(self, name, value)
        for name in ("starts_at", "ends_at", "created_at"):
            object.__setattr__(self, name, as_naive_utc(getattr(self, name)))
        if self.code is not None:
            code = self.code.strip()
            object.__setattr__(self, "code", code or None)

        if (self.minimum_order_amount is not None and self.maximum_order_amount is not None
                and self.minimum_order_amount > self.maximum_order_amount):
            raise InvariantViolation("minimum order amount exceeds maximum order amount", self.id)
        if self.starts_at and self.ends_at and self.starts_at > self.ends_at:
            raise InvariantViolation("starts_at is after ends_at", self.id)
        for name in ("minimum_quantity", "usage_limit", "usage_limit_per_customer", "usage_count"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise InvariantViolation(f"{name} must be >= 0", self.id)

    @property
    def type(self) -> DiscountType:
        return self.offer.type

    @property
    def value(self) -> Decimal:
        if isinstance(self.offer, PercentageOff):
            return self.offer.percent
        if isinstance(self.offer, FixedAmountOff):
            return self.offer.amount
        return Decimal("0")

    @property
    def campaign_name(self) -> Optional[str]:
        return self.budget.campaign_name if self.budget else None

    @property
    def sort_key(self):
        return (self.priority, self.created_at or datetime.min, self.id)

    def matches_code(self, code: str | None) -> bool:
        if not self.code or not code:
            return False
        return self.code.casefold() == code.strip().casefold()
