"""
Affiliate model.

A partner earning commission on referred sales.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.enums import AffiliateStatus
from app.models.types import MoneyType, RateType


if TYPE_CHECKING:
    from app.models.payout import Payout
    from app.models.referral import Referral


class Affiliate(Base):
    """
    Affiliate entity.

    Aggregate counters (total_* and balance_owed) are derived from the
    referral and payout rows by AffiliateStatsService and must not be
    edited independently.
    """

    __tablename__ = "affiliates"
    __table_args__ = (
        CheckConstraint("balance_owed >= 0", name="check_affiliate_balance_non_negative"),
        CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 1",
            name="check_affiliate_commission_rate_range",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity (external auth subject)
    identity_subject: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True, index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AffiliateStatus.PENDING, index=True,
        comment="pending, approved, rejected, inactive",
    )
    tier: Mapped[str] = mapped_column(String(50), nullable=False, default="initiate")
    commission_rate: Mapped[Decimal] = mapped_column(
        RateType, nullable=False, default=Decimal("0.10")
    )

    # Codes (matched case-insensitively)
    referral_code: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True, index=True
    )
    discount_code: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    storefront_discount_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Payment destination
    paypal_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Profile
    instagram_handle: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tiktok_handle: Mapped[str | None] = mapped_column(String(100), nullable=True)
    youtube_handle: Mapped[str | None] = mapped_column(String(100), nullable=True)
    website_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Derived aggregates
    total_referrals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_revenue: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))
    total_commission_earned: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    total_commission_paid: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    balance_owed: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))

    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    referrals: Mapped[list["Referral"]] = relationship(
        "Referral", back_populates="affiliate", lazy="noload"
    )
    payouts: Mapped[list["Payout"]] = relationship(
        "Payout", back_populates="affiliate", lazy="noload"
    )

    @property
    def is_approved(self) -> bool:
        """Whether the affiliate may earn commission."""
        return self.status == AffiliateStatus.APPROVED

    @property
    def full_name(self) -> str:
        """First and last name, whichever are present."""
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Affiliate(id={self.id}, code={self.referral_code!r}, "
            f"status={self.status}, tier={self.tier}, balance={self.balance_owed})>"
        )
