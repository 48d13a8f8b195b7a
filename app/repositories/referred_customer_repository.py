"""
ReferredCustomer repository.

Lookups by each of the three customer join keys.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.referred_customer import ReferredCustomer
from app.repositories.base import BaseRepository


class ReferredCustomerRepository(BaseRepository[ReferredCustomer]):
    """ReferredCustomer repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referred customer repository."""
        super().__init__(ReferredCustomer, session)

    async def get_by_storefront_id(self, customer_id: str) -> ReferredCustomer | None:
        """Get customer by storefront customer id."""
        return await self.get_by(storefront_customer_id=customer_id)

    async def get_by_subscription_id(self, customer_id: str) -> ReferredCustomer | None:
        """Get customer by subscription-billing customer id."""
        return await self.get_by(subscription_customer_id=customer_id)

    async def get_by_email(self, email: str) -> ReferredCustomer | None:
        """Get the oldest customer row with this email (case-insensitive)."""
        stmt = (
            select(ReferredCustomer)
            .where(func.lower(ReferredCustomer.email) == email.strip().lower())
            .order_by(ReferredCustomer.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
