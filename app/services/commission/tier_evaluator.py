"""
Tier evaluator.

Maps an affiliate's cumulative referral count onto the tier ladder.
Affiliates only ever move up.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class TierRung:
    """One rung of the tier ladder."""

    slug: str
    name: str
    min_referrals: int
    commission_rate: Decimal


@dataclass(frozen=True)
class TierChange:
    """An upward tier move."""

    previous_slug: str
    new_slug: str
    new_name: str
    new_commission_rate: Decimal


def effective_tier(total_referrals: int, ladder: Sequence[TierRung]) -> TierRung | None:
    """
    Highest tier whose min_referrals is met.

    Args:
        total_referrals: Cumulative referral count
        ladder: Tiers in any order

    Returns:
        Matching tier or None if the ladder is empty or nothing qualifies
    """
    eligible = [t for t in ladder if t.min_referrals <= total_referrals]
    if not eligible:
        return None
    return max(eligible, key=lambda t: t.min_referrals)


def evaluate_tier(
    current_slug: str,
    total_referrals: int,
    ladder: Sequence[TierRung],
) -> TierChange | None:
    """
    Decide whether an affiliate moves to a higher tier.

    Returns None when the effective tier equals the current one or would
    be a downgrade. An unknown current slug is treated as the bottom of
    the ladder.

    Examples:
        >>> ladder = [
        ...     TierRung("initiate", "Initiate", 0, Decimal("0.10")),
        ...     TierRung("adept", "Adept", 6, Decimal("0.15")),
        ... ]
        >>> evaluate_tier("initiate", 6, ladder).new_slug
        'adept'
        >>> evaluate_tier("adept", 2, ladder) is None
        True
    """
    target = effective_tier(total_referrals, ladder)
    if target is None or target.slug == current_slug:
        return None

    current = next((t for t in ladder if t.slug == current_slug), None)
    if current is not None and target.min_referrals <= current.min_referrals:
        return None

    return TierChange(
        previous_slug=current_slug,
        new_slug=target.slug,
        new_name=target.name,
        new_commission_rate=target.commission_rate,
    )
