"""SQLAlchemy models for the book tracker.

All models are imported here so metadata.create_all() can discover them.
"""

from booktracker.models.base import Base, TimestampMixin
from booktracker.models.quota_record import QuotaRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "QuotaRecord",
]
