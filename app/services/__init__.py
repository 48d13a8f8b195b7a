"""
Services.

Business logic layer.
"""

from app.services.base_service import BaseService, transaction


__all__ = [
    "BaseService",
    "transaction",
]
