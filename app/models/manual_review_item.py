"""
ManualReviewItem model.

Queue of ledger conflicts that need a human decision, such as a refund
arriving for a referral that has already been paid out.
"""

from datetime import UTC, datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class ManualReviewItem(Base):
    """
    Manual review queue entry.

    Attributes:
        kind: refund_on_paid_referral, conflicting_payout_status, negative_balance
        affiliate_id / referral_id / payout_id: Rows the conflict concerns
        details: Snapshot of the facts at the time of the conflict
        resolved*: Filled in by an admin
    """

    __tablename__ = "manual_review_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    affiliate_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    referral_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payout_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<ManualReviewItem(id={self.id}, kind={self.kind}, resolved={self.resolved})>"
