"""
Fraud heuristics package.

- signals: pure scoring over activity snapshots
- fraud_service: snapshot gathering from the ledger
"""

from app.services.fraud.fraud_service import FraudCheckService
from app.services.fraud.signals import (
    ApplicationSnapshot,
    FraudAssessment,
    ReferralActivitySnapshot,
    count_similar_emails,
    score_application,
    score_referral,
)


__all__ = [
    "FraudCheckService",
    "ApplicationSnapshot",
    "FraudAssessment",
    "ReferralActivitySnapshot",
    "count_similar_emails",
    "score_application",
    "score_referral",
]
