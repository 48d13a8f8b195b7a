"""
Diagnostic and manual review queues as seen by admins.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.manual_review_item import ManualReviewItem
from app.models.system_error import SystemErrorLog
from app.repositories.manual_review_repository import ManualReviewRepository
from app.repositories.system_error_repository import SystemErrorRepository
from app.services.base_service import BaseService, transaction
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import NotFoundError


class OperationsAdminService(BaseService):
    """List and resolve system errors and review items."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.error_repo = SystemErrorRepository(session)
        self.review_repo = ManualReviewRepository(session)

    async def list_errors(self, severity: str | None = None, limit: int = 100) -> list[SystemErrorLog]:
        return await self.error_repo.list_unresolved(severity=severity, limit=limit)

    @transaction
    async def resolve_error(
        self, error_id: int, resolved_by: str, notes: str | None = None
    ) -> SystemErrorLog:
        record = await self.error_repo.get_by_id(error_id)
        if record is None:
            raise NotFoundError("Error record not found", error_id=error_id)
        record.resolved = True
        record.resolved_at = utc_now()
        record.resolved_by = resolved_by
        record.resolution_notes = notes
        return record

    async def list_review_items(self, kind: str | None = None) -> list[ManualReviewItem]:
        return await self.review_repo.list_open(kind=kind)

    @transaction
    async def resolve_review_item(
        self, item_id: int, resolved_by: str, notes: str | None = None
    ) -> ManualReviewItem:
        item = await self.review_repo.get_by_id(item_id)
        if item is None:
            raise NotFoundError("Review item not found", item_id=item_id)
        item.resolved = True
        item.resolved_at = utc_now()
        item.resolved_by = resolved_by
        item.resolution_notes = notes
        self.logger.info(f"Review item {item_id} ({item.kind}) resolved by {resolved_by}")
        return item
