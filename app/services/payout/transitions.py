"""
Payout terminal transitions.

A single pure decision function shared by the reconciliation poller,
the disbursement webhook and admin overrides. Applying the same remote
result twice yields NoOp the second time.
"""

from dataclasses import dataclass
from datetime import datetime

from app.models.enums import PayoutStatus


@dataclass(frozen=True)
class PayoutSnapshot:
    """The fields of a payout the decision depends on."""

    payout_id: int
    status: str
    item_id: str | None = None


@dataclass(frozen=True)
class RemoteResult:
    """
    Status observed for a payout.

    Attributes:
        status: completed, failed or processing
        observed_at: When the status was observed
        item_id: External item id, when known
        failure_reason: Processor error or transaction status on failure
    """

    status: str
    observed_at: datetime
    item_id: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class CompletePayout:
    """Move the payout to completed."""

    payout_id: int
    completed_at: datetime
    item_id: str | None


@dataclass(frozen=True)
class FailPayout:
    """Move the payout to failed."""

    payout_id: int
    failure_reason: str


@dataclass(frozen=True)
class NoOp:
    """
    Nothing to do.

    conflict is True when the remote result contradicts a terminal
    state already recorded (e.g. completed reported for a failed payout).
    """

    reason: str
    conflict: bool = False


PayoutTransition = CompletePayout | FailPayout | NoOp

_OPEN_STATUSES = (PayoutStatus.PENDING, PayoutStatus.PROCESSING)


def apply_terminal_status(payout: PayoutSnapshot, remote: RemoteResult) -> PayoutTransition:
    """
    Decide the transition for a payout given a remote status.

    Rules:
        open + completed -> CompletePayout
        open + failed -> FailPayout
        anything + processing -> NoOp
        same terminal status again -> NoOp
        opposite terminal status -> NoOp(conflict=True)

    Examples:
        >>> from datetime import UTC, datetime
        >>> now = datetime(2026, 1, 1, tzinfo=UTC)
        >>> p = PayoutSnapshot(1, "processing")
        >>> isinstance(apply_terminal_status(p, RemoteResult("completed", now)), CompletePayout)
        True
        >>> done = PayoutSnapshot(1, "completed")
        >>> apply_terminal_status(done, RemoteResult("completed", now)).conflict
        False
    """
    if remote.status not in (PayoutStatus.COMPLETED, PayoutStatus.FAILED):
        return NoOp(reason=f"remote status {remote.status} is not terminal")

    if payout.status in _OPEN_STATUSES:
        if remote.status == PayoutStatus.COMPLETED:
            return CompletePayout(
                payout_id=payout.payout_id,
                completed_at=remote.observed_at,
                item_id=remote.item_id or payout.item_id,
            )
        return FailPayout(
            payout_id=payout.payout_id,
            failure_reason=remote.failure_reason or "Payout failed",
        )

    if payout.status == remote.status:
        return NoOp(reason=f"payout already {payout.status}")

    return NoOp(
        reason=f"remote reports {remote.status} but payout is {payout.status}",
        conflict=True,
    )
