# promo_engine/engine/__init__.py
"""Pure discount evaluation: rules in, cart snapshot in, result out."""

from .rules import (
    AppliesTo,
    Budget,
    BudgetType,
    BuyXGetY,
    DiscountRule,
    DiscountType,
    FixedAmountOff,
    FreeShipping,
    PercentageOff,
    Targeting,
)
from .context import DiscountContext, DiscountItem
from .eligibility import Eligibility, evaluate, targeted_items
from .calculator import Computation, compute
from .allocation import distribute, distribute_weighted
from .resolver import Candidate, DiscountSettings, resolve
from .cart import AppliedDiscount, CartDiscountResult, evaluate_cart

__all__ = [
    "AppliesTo",
    "AppliedDiscount",
    "Budget",
    "BudgetType",
    "BuyXGetY",
    "Candidate",
    "CartDiscountResult",
    "Computation",
    "DiscountContext",
    "DiscountItem",
    "DiscountRule",
    "DiscountSettings",
    "DiscountType",
    "Eligibility",
    "FixedAmountOff",
    "FreeShipping",
    "PercentageOff",
    "Targeting",
    "compute",
    "distribute",
    "distribute_weighted",
    "evaluate",
    "evaluate_cart",
    "resolve",
    "targeted_items",
]
