"""
Customer resolution.

Finds the ReferredCustomer behind an external event by trying join keys
in priority order (storefront id, subscription id, email) and backfills
the keys the matched row is missing.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.referred_customer import ReferredCustomer
from app.repositories.referred_customer_repository import ReferredCustomerRepository


class ResolutionOutcome(StrEnum):
    """How a customer lookup ended."""

    FOUND_EXACT = "found_exact"
    FOUND_AND_BACKFILLED = "found_and_backfilled"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class CustomerKeys:
    """Identifiers observed on one event. Any may be missing."""

    storefront_id: str | None = None
    subscription_id: str | None = None
    email: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.storefront_id or self.subscription_id or self.email)


@dataclass
class Resolution:
    """Tagged lookup result."""

    outcome: ResolutionOutcome
    customer: ReferredCustomer | None = None
    matched_by: str | None = None
    backfilled: tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return self.customer is not None


class CustomerResolver:
    """Priority-ordered lookup across the three customer join keys."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.repo = ReferredCustomerRepository(session)

    async def resolve(self, keys: CustomerKeys) -> Resolution:
        """
        Find an existing customer and backfill missing join keys.

        A key is only backfilled when the row has no value for it; an
        existing different value is never overwritten.

        Args:
            keys: Identifiers from the event

        Returns:
            Resolution tagged found_exact, found_and_backfilled or not_found
        """
        lookups = (
            ("subscription_id", keys.subscription_id, self.repo.get_by_subscription_id),
            ("storefront_id", keys.storefront_id, self.repo.get_by_storefront_id),
            ("email", keys.email, self.repo.get_by_email),
        )

        for name, value, lookup in lookups:
            if not value:
                continue
            customer = await lookup(value)
            if customer is None:
                continue

            backfilled = await self._backfill(customer, keys)
            outcome = (
                ResolutionOutcome.FOUND_AND_BACKFILLED if backfilled
                else ResolutionOutcome.FOUND_EXACT
            )
            return Resolution(
                outcome=outcome,
                customer=customer,
                matched_by=name,
                backfilled=backfilled,
            )

        return Resolution(outcome=ResolutionOutcome.NOT_FOUND)

    async def resolve_or_create(
        self,
        keys: CustomerKeys,
        affiliate_id: int,
        order_id: str,
        order_date: datetime | None,
        order_total: Decimal,
    ) -> Resolution:
        """
        Resolve a customer, creating the row on first attributed order.

        An existing customer stays linked to the affiliate that acquired them.
        """
        resolution = await self.resolve(keys)
        if resolution.found or keys.is_empty:
            return resolution

        customer = await self.repo.create(
            affiliate_id=affiliate_id,
            storefront_customer_id=keys.storefront_id,
            subscription_customer_id=keys.subscription_id,
            email=keys.email.strip().lower() if keys.email else None,
            first_order_id=order_id,
            first_order_date=order_date,
            first_order_total=order_total,
        )
        return Resolution(outcome=ResolutionOutcome.NOT_FOUND, customer=customer)

    async def _backfill(self, customer: ReferredCustomer, keys: CustomerKeys) -> tuple[str, ...]:
        filled: list[str] = []
        if keys.storefront_id and not customer.storefront_customer_id:
            if await self.repo.get_by_storefront_id(keys.storefront_id) is None:
                customer.storefront_customer_id = keys.storefront_id
                filled.append("storefront_id")
        if keys.subscription_id and not customer.subscription_customer_id:
            if await self.repo.get_by_subscription_id(keys.subscription_id) is None:
                customer.subscription_customer_id = keys.subscription_id
                filled.append("subscription_id")
        if keys.email and not customer.email:
            customer.email = keys.email.strip().lower()
            filled.append("email")
        if filled:
            await self.session.flush()
        return tuple(filled)
