"""
Commission services package.

- calculator: commission base selection and rounding
- tier_evaluator: tier ladder evaluation (upward only)
"""

from app.services.commission.calculator import calculate_commission, commission_base
from app.services.commission.tier_evaluator import (
    TierChange,
    TierRung,
    effective_tier,
    evaluate_tier,
)


__all__ = [
    "calculate_commission",
    "commission_base",
    "TierChange",
    "TierRung",
    "effective_tier",
    "evaluate_tier",
]
