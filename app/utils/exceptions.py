"""
Exception hierarchy.

Defines typed error conditions raised by the ledger, webhook, payout and
admin layers, plus helpers that classify third-party exceptions.
"""

from sqlalchemy.exc import IntegrityError


class AffiliateLedgerError(Exception):
    """Base class for all domain errors."""

    error_code = "internal_error"
    http_status = 500

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        """Structured payload for admin-facing API responses."""
        return {"error": self.message, "error_code": self.error_code, **self.context}


class SignatureVerificationError(AffiliateLedgerError):
    """Webhook signature missing or invalid."""

    error_code = "invalid_signature"
    http_status = 401


class AuthorizationError(AffiliateLedgerError):
    """Caller is not allowed to perform the operation."""

    error_code = "forbidden"
    http_status = 403


class InvalidRequestError(AffiliateLedgerError):
    """Malformed or incomplete admin request."""

    error_code = "invalid_request"
    http_status = 400


class NotFoundError(AffiliateLedgerError):
    """Referenced entity does not exist."""

    error_code = "not_found"
    http_status = 404


class InvalidStatusTransitionError(AffiliateLedgerError):
    """Requested status change is not allowed by the state machine."""

    error_code = "invalid_status_transition"
    http_status = 409


class ExternalServiceError(AffiliateLedgerError):
    """
    Third-party call failed or timed out.

    Retryable: callers surface it as 5xx (webhooks) or leave the work for
    the next poller tick.
    """

    error_code = "external_service_error"
    http_status = 502

    def __init__(self, message: str, service: str, status: int | None = None, **context) -> None:
        super().__init__(message, service=service, status=status, **context)
        self.service = service
        self.status = status


class ProcessorNotConfiguredError(ExternalServiceError):
    """Payment processor credentials are missing."""

    error_code = "processor_not_configured"
    http_status = 503


class PaymentProcessorError(ExternalServiceError):
    """Payment processor rejected or failed a request."""

    error_code = "payment_processor_error"


class PayoutError(AffiliateLedgerError):
    """Base class for payout orchestration errors."""

    error_code = "payout_error"
    http_status = 400


class InvalidPayoutMethodError(PayoutError):
    """Unknown disbursement method."""

    error_code = "invalid_payout_method"


class NoEligibleAffiliatesError(PayoutError):
    """None of the selected affiliates can be paid out."""

    error_code = "no_eligible_affiliates"


class MissingPayoutDestinationError(PayoutError):
    """Electronic batch rejected: some recipients have no payment email."""

    error_code = "missing_payout_destination"


class PayoutImmutableError(PayoutError):
    """A completed payout cannot change."""

    error_code = "payout_immutable"
    http_status = 409


class PartialWriteError(PayoutError):
    """
    External disbursement succeeded but local persistence failed.

    Money is in flight with no local record; context carries the batch id
    and items needed to rebuild the rows by hand.
    """

    error_code = "partial_write"
    http_status = 500


def is_duplicate_key_error(exc: Exception) -> bool:
    """
    Check if exception is a unique-constraint violation.

    Args:
        exc: Exception raised by a flush/commit

    Returns:
        True for IntegrityError caused by a duplicate key
    """
    if not isinstance(exc, IntegrityError):
        return False
    text = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    return "unique" in text or "duplicate" in text
