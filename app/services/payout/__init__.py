"""
Payout services package.

Contains modular services for payout processing:
- transitions: pure terminal-status decision (shared by every entry point)
- settlement: applies a decision and its side effects to the ledger
- orchestrator: eligibility, batch submission, payout persistence
- reconciliation: periodic processor status poller
"""

from app.services.payout.orchestrator import PayoutBatchResult, PayoutOrchestrator
from app.services.payout.reconciliation import ReconciliationPoller, ReconciliationReport
from app.services.payout.settlement import PayoutSettlementService, SettlementResult
from app.services.payout.transitions import (
    CompletePayout,
    FailPayout,
    NoOp,
    PayoutSnapshot,
    RemoteResult,
    apply_terminal_status,
)


__all__ = [
    # Transitions
    "CompletePayout",
    "FailPayout",
    "NoOp",
    "PayoutSnapshot",
    "RemoteResult",
    "apply_terminal_status",
    # Services
    "PayoutBatchResult",
    "PayoutOrchestrator",
    "PayoutSettlementService",
    "SettlementResult",
    "ReconciliationPoller",
    "ReconciliationReport",
]
