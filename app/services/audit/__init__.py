"""
Audit services package.

- diagnostics: SystemErrorLog sink (independent session, never raises)
- activity_logger: activity trail (best effort)
- review_queue: manual review items (caller's transaction)
"""

from app.services.audit.activity_logger import ActivityLogger
from app.services.audit.diagnostics import DiagnosticSink
from app.services.audit.review_queue import ManualReviewQueue


__all__ = ["ActivityLogger", "DiagnosticSink", "ManualReviewQueue"]
