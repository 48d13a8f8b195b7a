"""
Payout model.

One row per disbursement attempt to one affiliate.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.enums import PayoutStatus
from app.models.types import MoneyType


if TYPE_CHECKING:
    from app.models.affiliate import Affiliate


_IN_FLIGHT = text("status IN ('pending', 'processing')")


class Payout(Base):
    """
    Payout entity.

    Status: pending/processing -> completed | failed.
    A completed payout is immutable.
    """

    __tablename__ = "payouts"
    __table_args__ = (
        CheckConstraint("amount > 0", name="check_payout_amount_positive"),
        # At most one payout in flight per affiliate
        Index(
            "uq_payouts_affiliate_in_flight",
            "affiliate_id",
            unique=True,
            postgresql_where=_IN_FLIGHT,
            sqlite_where=_IN_FLIGHT,
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False, comment="paypal, manual, store_credit")
    paypal_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # External reconciliation keys
    paypal_batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    paypal_payout_item_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PayoutStatus.PENDING, index=True,
        comment="pending, processing, completed, failed",
    )
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    affiliate: Mapped["Affiliate"] = relationship(
        "Affiliate", back_populates="payouts", lazy="noload"
    )

    @property
    def is_terminal(self) -> bool:
        """Whether the payout reached completed or failed."""
        return self.status in (PayoutStatus.COMPLETED, PayoutStatus.FAILED)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Payout(id={self.id}, affiliate_id={self.affiliate_id}, "
            f"amount={self.amount}, method={self.method}, status={self.status})>"
        )
