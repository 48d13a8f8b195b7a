"""
ReferredCustomer model.

Links an external customer identity to the affiliate credited with
acquiring them. Three join keys are unified as they are observed.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MoneyType


class ReferredCustomer(Base):
    """ReferredCustomer entity."""

    __tablename__ = "referred_customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    # Join keys, strongest first
    storefront_customer_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, unique=True, index=True
    )
    subscription_customer_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, unique=True, index=True
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    first_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    first_order_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    first_order_total: Mapped[Decimal | None] = mapped_column(MoneyType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferredCustomer(id={self.id}, affiliate_id={self.affiliate_id}, "
            f"storefront={self.storefront_customer_id}, "
            f"subscription={self.subscription_customer_id})>"
        )
