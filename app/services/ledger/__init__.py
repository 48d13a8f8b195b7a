"""
Ledger services package.

- stats_service: aggregate re-derivation and tier evaluation
"""

from app.services.ledger.stats_service import AffiliateStatsService, StatsResult


__all__ = ["AffiliateStatsService", "StatsResult"]
