"""
Referral model.

One row per monetizable event (initial order or subscription renewal).
order_id is UNIQUE and is the only concurrency control against
double attribution.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.enums import OrderSource, ReferralStatus
from app.models.types import MoneyType, RateType


if TYPE_CHECKING:
    from app.models.affiliate import Affiliate


class Referral(Base):
    """
    Referral entity.

    commission_rate is a snapshot taken at creation; later changes to
    the affiliate's rate never touch existing rows.
    """

    __tablename__ = "referrals"
    __table_args__ = (
        CheckConstraint("order_subtotal >= 0", name="check_referral_subtotal_non_negative"),
        CheckConstraint("commission_amount >= 0", name="check_referral_commission_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    customer_id: Mapped[int | None] = mapped_column(
        ForeignKey("referred_customers.id", ondelete="SET NULL"), nullable=True
    )

    # Dedup key
    order_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    order_source: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderSource.STOREFRONT
    )
    order_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    order_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    order_subtotal: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    order_total: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(RateType, nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReferralStatus.PENDING, index=True,
        comment="pending, approved, paid, refunded, rejected",
    )
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payout_id: Mapped[int | None] = mapped_column(
        ForeignKey("payouts.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    affiliate: Mapped["Affiliate"] = relationship(
        "Affiliate", back_populates="referrals", lazy="noload"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Referral(id={self.id}, order_id={self.order_id!r}, "
            f"affiliate_id={self.affiliate_id}, amount={self.commission_amount}, "
            f"status={self.status})>"
        )
