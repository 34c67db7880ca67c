# promo_engine/engine/resolver.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from ..errors import InvariantViolation
from .calculator import Computation
from .rules import DiscountRule

logger = logging.getLogger(__name__)


def _as_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class DiscountSettings:
    """Store-level switches for combining discounts.

    ``max_per_order`` of ``None`` means no cap.
    """

    enabled: bool = True
    max_per_order: Optional[int] = 1
    stacking_enabled: bool = False

    @classmethod
    def from_config(cls, config: Mapping) -> "DiscountSettings":
        raw_max = config.get("DISCOUNTS_MAX_PER_ORDER", 1)
        max_per_order = None
        if raw_max is not None and str(raw_max).strip() != "":
            try:
                max_per_order = int(str(raw_max).strip())
            except ValueError:
                raise InvariantViolation(f"DISCOUNTS_MAX_PER_ORDER must be an integer, got {raw_max!r}")
            if max_per_order < 1:
                raise InvariantViolation(f"DISCOUNTS_MAX_PER_ORDER must be >= 1, got {max_per_order}")
        return cls(
            enabled=_as_bool(config.get("DISCOUNTS_ENABLED"), True),
            max_per_order=max_per_order,
            stacking_enabled=_as_bool(config.get("DISCOUNTS_STACKING"), False),
        )


@dataclass(frozen=True)
class Candidate:
    rule: DiscountRule
    computation: Computation


def resolve(candidates: list[Candidate], settings: DiscountSettings) -> tuple[list[Candidate], list[Candidate]]:
    """Pick the subset of eligible candidates to apply.

    Returns ``(applied, skipped)``, both in priority order.
    """
    ordered = sorted(candidates, key=lambda c: c.rule.sort_key)
    if not ordered:
        return [], []

    first, rest = ordered[0], ordered[1:]
    applied = [first]
    skipped: list[Candidate] = []

    if not settings.stacking_enabled or not first.rule.is_combinable:
        return applied, rest

    for cand in rest:
        if settings.max_per_order is not None and len(applied) >= settings.max_per_order:
            logger.debug("rule %s skipped: max %s per order reached", cand.rule.id, settings.max_per_order)
            skipped.append(cand)
            continue
        if not cand.rule.is_combinable:
            logger.debug("rule %s skipped: not combinable", cand.rule.id)
            skipped.append(cand)
            continue
        applied.append(cand)

    return applied, skipped
