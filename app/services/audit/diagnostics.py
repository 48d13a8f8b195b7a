"""
Diagnostic sink.

Append-only writes to system_errors. Each record is written in its own
session so a caller whose transaction is already broken can still leave
a trace. Writing a record never raises.
"""

import traceback
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.enums import ErrorSeverity, ErrorType
from app.models.system_error import SystemErrorLog
from app.utils.request_context import RequestMeta


_MAX_PAYLOAD_CHARS = 20_000

_LOG_LEVELS = {
    ErrorSeverity.INFO: "INFO",
    ErrorSeverity.WARNING: "WARNING",
    ErrorSeverity.ERROR: "ERROR",
    ErrorSeverity.CRITICAL: "CRITICAL",
}


def _clip_payload(payload: Any) -> dict | None:
    """Keep payload snapshots JSON-shaped and bounded."""
    if payload is None:
        return None
    if not isinstance(payload, dict):
        payload = {"value": payload}
    text = repr(payload)
    if len(text) > _MAX_PAYLOAD_CHARS:
        return {"truncated": True, "preview": text[:_MAX_PAYLOAD_CHARS]}
    return payload


class DiagnosticSink:
    """Writes SystemErrorLog rows."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """
        Initialize diagnostic sink.

        Args:
            session_factory: Factory for independent sessions
        """
        self.session_factory = session_factory

    async def record(
        self,
        message: str,
        *,
        error_type: ErrorType = ErrorType.UNKNOWN_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        source: str | None = None,
        exc: BaseException | None = None,
        meta: RequestMeta | None = None,
        affiliate_id: int | None = None,
        order_id: str | None = None,
        payout_id: int | None = None,
        request_payload: Any = None,
        response_payload: Any = None,
        http_status: int | None = None,
        details: dict | None = None,
    ) -> int | None:
        """
        Append a diagnostic record.

        Returns:
            New record id, or None if the write itself failed
        """
        stack = None
        if exc is not None:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

        log = logger.opt(exception=exc) if exc is not None else logger
        log.log(
            _LOG_LEVELS.get(severity, "ERROR"),
            f"[{error_type}] {source or '-'}: {message}",
        )

        try:
            async with self.session_factory() as session:
                record = SystemErrorLog(
                    error_type=error_type,
                    severity=severity,
                    message=message,
                    stack_trace=stack,
                    source=source,
                    endpoint=meta.endpoint if meta else None,
                    ip_address=meta.ip_address if meta else None,
                    user_agent=meta.user_agent if meta else None,
                    affiliate_id=affiliate_id,
                    order_id=order_id,
                    payout_id=payout_id,
                    request_payload=_clip_payload(request_payload),
                    response_payload=_clip_payload(response_payload),
                    http_status=http_status,
                    details=details,
                )
                session.add(record)
                await session.commit()
                return record.id
        except Exception as e:
            logger.error(f"Failed to write diagnostic record: {e}", extra={"original": message})
            return None
