"""
SystemErrorLog repository.

Data access layer for the diagnostic sink.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.system_error import SystemErrorLog
from app.repositories.base import BaseRepository


class SystemErrorRepository(BaseRepository[SystemErrorLog]):
    """Diagnostic record repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize system error repository."""
        super().__init__(SystemErrorLog, session)

    async def list_unresolved(
        self, severity: str | None = None, limit: int = 100
    ) -> list[SystemErrorLog]:
        """Unresolved records, newest first."""
        stmt = select(SystemErrorLog).where(SystemErrorLog.resolved.is_(False))
        if severity:
            stmt = stmt.where(SystemErrorLog.severity == severity)
        stmt = stmt.order_by(SystemErrorLog.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
