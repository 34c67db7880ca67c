# ------ promo_engine/model/__init__.py ------

from .discount import Discount, DiscountRedemption

__all__ = [
    "Discount",
    "DiscountRedemption",
]
