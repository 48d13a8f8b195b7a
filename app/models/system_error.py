"""
SystemErrorLog model.

Append-only diagnostic record consumed by the operations dashboard.
"""

from datetime import UTC, datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import ErrorSeverity, ErrorType


class SystemErrorLog(Base):
    """
    Diagnostic record.

    Only the resolution fields are ever updated after insert.
    """

    __tablename__ = "system_errors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    error_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ErrorType.UNKNOWN_ERROR, index=True
    )
    severity: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ErrorSeverity.ERROR, index=True
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    stack_trace: Mapped[str | None] = mapped_column(Text, nullable=True)

    source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    endpoint: Mapped[str | None] = mapped_column(String(255), nullable=True)

    affiliate_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payout_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    request_payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    response_payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    http_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False, index=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<SystemErrorLog(id={self.id}, type={self.error_type}, "
            f"severity={self.severity}, source={self.source})>"
        )
