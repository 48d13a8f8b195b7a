"""
Collaborator interfaces.

Handlers and orchestrators receive these as constructor arguments so
each external system can be swapped for a mock.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol


@dataclass(frozen=True)
class PayoutItemRequest:
    """One recipient in a disbursement batch."""

    affiliate_id: int
    receiver_email: str
    amount: Decimal
    note: str = ""

    @property
    def sender_item_id(self) -> str:
        """Idempotency tag the processor echoes back on every item."""
        return str(self.affiliate_id)


@dataclass(frozen=True)
class BatchSubmission:
    """Processor's answer to a batch-create call."""

    batch_id: str
    batch_status: str
    sender_batch_id: str


@dataclass(frozen=True)
class RemoteItem:
    """Status of one item as reported by the processor."""

    sender_item_id: str | None
    payout_item_id: str | None
    transaction_status: str
    mapped_status: str
    error: str | None = None

    @property
    def affiliate_id(self) -> int | None:
        try:
            return int(self.sender_item_id) if self.sender_item_id else None
        except ValueError:
            return None


@dataclass(frozen=True)
class RemoteBatch:
    """Status of a batch and its items."""

    batch_id: str
    batch_status: str
    mapped_status: str
    items: tuple[RemoteItem, ...] = field(default_factory=tuple)


class PayoutProcessor(Protocol):
    """Payment disbursement processor."""

    async def create_batch(
        self,
        sender_batch_id: str,
        items: list[PayoutItemRequest],
        email_subject: str,
        email_message: str,
    ) -> BatchSubmission: ...

    async def get_batch(self, batch_id: str) -> RemoteBatch: ...

    async def verify_webhook_signature(
        self, headers: Mapping[str, str], event: dict[str, Any], webhook_id: str
    ) -> bool: ...


class NotificationClient(Protocol):
    """Marketing platform receiving named profile events."""

    async def track(self, event_name: str, email: str, properties: dict[str, Any]) -> bool: ...


class DiscountProvisioner(Protocol):
    """Storefront API able to create discount codes."""

    async def create_discount_code(self, code: str, percent: Decimal, title: str) -> str: ...
