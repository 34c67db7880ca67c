# promo_engine/errors.py
from flask import jsonify

from .utils.api import api_error


class DiscountError(Exception):
    """Base class for discount engine errors."""
    code = "E_DISCOUNT_ERROR"
    status = 400

    def __init__(self, message: str, rule_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.rule_id = rule_id

    def as_api(self):
        data = {"code": self.code}
        if self.rule_id:
            data["rule_id"] = self.rule_id
        return data


class ValidationFailure(DiscountError):
    """A supplied coupon code is unknown or not eligible."""
    code = "E_INVALID_DISCOUNT"
    status = 400


class UsageExhausted(DiscountError):
    """Raised at commit time when a rule has no redemptions left."""
    code = "E_DISCOUNT_USAGE_LIMIT"
    status = 409


class BudgetExhausted(DiscountError):
    """Raised at commit time when a campaign budget would be overrun."""
    code = "E_DISCOUNT_BUDGET"
    status = 409


class CommitConflict(DiscountError):
    """Counter update kept losing optimistic-lock races."""
    code = "E_DISCOUNT_CONFLICT"
    status = 409


class InvariantViolation(DiscountError):
    """Caller bug or contradictory rule configuration. Always fatal."""
    code = "E_INVARIANT_VIOLATION"
    status = 422


def register_error_handlers(app):
    @app.errorhandler(DiscountError)
    def handle_discount_error(e: DiscountError):
        r = jsonify(api_error(e.message, e.as_api()))
        r.status_code = e.status
        return r
