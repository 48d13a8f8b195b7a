"""
Unit tests for commission calculation and tier evaluation.

Tests cover:
- Commission rounding and input validation
- Commission base selection from order payloads
- Effective tier lookup and upward-only tier moves
"""

from decimal import Decimal

import pytest

from app.services.commission.calculator import calculate_commission, commission_base
from app.services.commission.tier_evaluator import TierRung, effective_tier, evaluate_tier


LADDER = [
    TierRung("initiate", "Initiate", 0, Decimal("0.10")),
    TierRung("adept", "Adept", 6, Decimal("0.15")),
    TierRung("inner_circle", "Inner Circle", 16, Decimal("0.20")),
]


class TestCalculateCommission:
    """Test commission amount calculation."""

    def test_basic_rate(self):
        """$100 at 15% is $15.00."""
        assert calculate_commission(Decimal("100"), Decimal("0.15")) == Decimal("15.00")

    def test_rounds_half_up(self):
        """Half a cent rounds up."""
        assert calculate_commission(Decimal("0.05"), Decimal("0.10")) == Decimal("0.01")
        assert calculate_commission(Decimal("33.33"), Decimal("0.15")) == Decimal("5.00")

    def test_zero_subtotal(self):
        """Zero subtotal gives zero commission."""
        assert calculate_commission(Decimal("0"), Decimal("0.25")) == Decimal("0.00")

    def test_negative_subtotal_rejected(self):
        """Negative subtotal raises ValueError."""
        with pytest.raises(ValueError):
            calculate_commission(Decimal("-1"), Decimal("0.10"))

    @pytest.mark.parametrize("rate", [Decimal("-0.01"), Decimal("1.01")])
    def test_rate_out_of_range_rejected(self, rate):
        """Rate must be within [0, 1]."""
        with pytest.raises(ValueError):
            calculate_commission(Decimal("10"), rate)


class TestCommissionBase:
    """Test picking the commission base from a payload."""

    def test_prefers_subtotal(self):
        """Subtotal wins over the totals."""
        payload = {"subtotal_price": "100.00", "total_line_items_price": "110", "total_price": "118.50"}
        assert commission_base(payload) == Decimal("100.00")

    def test_falls_back_to_line_items(self):
        """Line-item total is used when subtotal is missing or empty."""
        payload = {"subtotal_price": "", "total_line_items_price": "80.5", "total_price": "90"}
        assert commission_base(payload) == Decimal("80.50")

    def test_falls_back_to_total(self):
        """Grand total is the last resort."""
        assert commission_base({"total_price": "42"}) == Decimal("42.00")

    def test_empty_payload(self):
        """Nothing to go on gives zero."""
        assert commission_base({}) == Decimal("0.00")


class TestTierEvaluation:
    """Test tier ladder evaluation."""

    def test_effective_tier_bottom(self):
        """New affiliates sit on the bottom rung."""
        assert effective_tier(0, LADDER).slug == "initiate"

    def test_effective_tier_boundary(self):
        """Reaching min_referrals exactly qualifies."""
        assert effective_tier(5, LADDER).slug == "initiate"
        assert effective_tier(6, LADDER).slug == "adept"
        assert effective_tier(100, LADDER).slug == "inner_circle"

    def test_effective_tier_empty_ladder(self):
        """Empty ladder yields no tier."""
        assert effective_tier(10, []) is None

    def test_upgrade(self):
        """Sixth referral moves an initiate to adept."""
        change = evaluate_tier("initiate", 6, LADDER)

        assert change is not None
        assert change.previous_slug == "initiate"
        assert change.new_slug == "adept"
        assert change.new_commission_rate == Decimal("0.15")

    def test_skips_rungs(self):
        """A large jump lands on the highest qualifying rung."""
        assert evaluate_tier("initiate", 20, LADDER).new_slug == "inner_circle"

    def test_no_change_on_same_tier(self):
        """Staying within the current rung is not a change."""
        assert evaluate_tier("adept", 10, LADDER) is None

    def test_never_downgrades(self):
        """Falling counts after refunds do not demote."""
        assert evaluate_tier("inner_circle", 3, LADDER) is None

    def test_unknown_slug_treated_as_bottom(self):
        """An unknown current tier can move onto the ladder."""
        assert evaluate_tier("legacy", 0, LADDER).new_slug == "initiate"
