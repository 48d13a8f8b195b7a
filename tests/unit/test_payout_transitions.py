"""
Unit tests for the payout terminal-transition decision.
"""

from datetime import UTC, datetime

import pytest

from app.services.payout.transitions import (
    CompletePayout,
    FailPayout,
    NoOp,
    PayoutSnapshot,
    RemoteResult,
    apply_terminal_status,
)


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestApplyTerminalStatus:
    """Test the transition table."""

    @pytest.mark.parametrize("status", ["pending", "processing"])
    def test_open_payout_completes(self, status):
        """Open payouts complete on a completed result."""
        decision = apply_terminal_status(
            PayoutSnapshot(7, status), RemoteResult("completed", NOW, item_id="ITEM-1")
        )

        assert decision == CompletePayout(payout_id=7, completed_at=NOW, item_id="ITEM-1")

    def test_keeps_known_item_id(self):
        """Item id falls back to the one already stored."""
        decision = apply_terminal_status(
            PayoutSnapshot(7, "processing", item_id="ITEM-OLD"), RemoteResult("completed", NOW)
        )

        assert decision.item_id == "ITEM-OLD"

    def test_open_payout_fails(self):
        """Failure carries the processor reason."""
        decision = apply_terminal_status(
            PayoutSnapshot(3, "processing"),
            RemoteResult("failed", NOW, failure_reason="RECEIVER_UNREGISTERED"),
        )

        assert decision == FailPayout(payout_id=3, failure_reason="RECEIVER_UNREGISTERED")

    def test_default_failure_reason(self):
        """A failure without reason still gets one."""
        decision = apply_terminal_status(PayoutSnapshot(3, "pending"), RemoteResult("failed", NOW))

        assert decision.failure_reason == "Payout failed"

    def test_processing_is_noop(self):
        """Non-terminal remote status never moves a payout."""
        decision = apply_terminal_status(PayoutSnapshot(1, "processing"), RemoteResult("processing", NOW))

        assert isinstance(decision, NoOp)
        assert decision.conflict is False

    @pytest.mark.parametrize("status", ["completed", "failed"])
    def test_repeat_is_idempotent(self, status):
        """The same terminal status twice is a plain NoOp."""
        decision = apply_terminal_status(PayoutSnapshot(1, status), RemoteResult(status, NOW))

        assert isinstance(decision, NoOp)
        assert decision.conflict is False

    @pytest.mark.parametrize(
        ("local", "remote"),
        [("failed", "completed"), ("completed", "failed")],
    )
    def test_contradiction_is_conflict(self, local, remote):
        """Opposite terminal statuses are flagged, not applied."""
        decision = apply_terminal_status(PayoutSnapshot(1, local), RemoteResult(remote, NOW))

        assert isinstance(decision, NoOp)
        assert decision.conflict is True
