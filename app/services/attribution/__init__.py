"""
Attribution services package.

- customer_resolver: three-key customer lookup with backfill
"""

from app.services.attribution.customer_resolver import (
    CustomerKeys,
    CustomerResolver,
    Resolution,
    ResolutionOutcome,
)


__all__ = ["CustomerKeys", "CustomerResolver", "Resolution", "ResolutionOutcome"]
