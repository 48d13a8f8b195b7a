"""
Activity logger.

Best-effort audit trail writes; failures are logged and never raised.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.activity_log import ActivityLog
from app.utils.request_context import RequestMeta


class ActivityLogger:
    """Writes ActivityLog rows in an independent session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def log(
        self,
        action: str,
        affiliate_id: int | None = None,
        details: dict | None = None,
        meta: RequestMeta | None = None,
    ) -> None:
        """
        Record an action.

        Args:
            action: Action name ("signup", "self_referral_blocked", ...)
            affiliate_id: Affiliate concerned, if any
            details: JSON-serializable context
            meta: Client IP and user agent
        """
        try:
            async with self.session_factory() as session:
                session.add(
                    ActivityLog(
                        affiliate_id=affiliate_id,
                        action=action,
                        details=details,
                        ip_address=meta.ip_address if meta else None,
                        user_agent=meta.user_agent if meta else None,
                    )
                )
                await session.commit()
        except Exception as e:
            logger.warning(f"Failed to log activity {action!r}: {e}")
