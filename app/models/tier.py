"""
Tier model.

Commission-rate brackets unlocked by cumulative referral count.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import JSON, CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import RateType


class Tier(Base):
    """
    Tier entity.

    Attributes:
        id: Primary key
        name: Display name ("Initiate", "Adept", ...)
        slug: Stable identifier stored on affiliates
        min_referrals: Referral count at which the tier unlocks
        commission_rate: Rate (fraction) granted to affiliates in this tier
        description: Optional marketing copy
        perks: Optional list of perk strings
        sort_order: Ordering of the ladder (ascending)
    """

    __tablename__ = "tiers"
    __table_args__ = (
        CheckConstraint("min_referrals >= 0", name="check_tier_min_referrals_non_negative"),
        CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 1",
            name="check_tier_commission_rate_range",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    min_referrals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    commission_rate: Mapped[Decimal] = mapped_column(RateType, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    perks: Mapped[list | None] = mapped_column(JSON, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Tier(slug={self.slug!r}, min_referrals={self.min_referrals}, "
            f"rate={self.commission_rate})>"
        )
