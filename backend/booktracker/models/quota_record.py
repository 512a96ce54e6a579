"""Daily usage counter for metered external APIs."""

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from booktracker.models.base import Base, TimestampMixin


class QuotaRecord(TimestampMixin, Base):
    """One row per quota period (calendar day in the quota time zone).

    ``count`` only grows within a period and is the authoritative number
    of metered calls made. Rows for past periods are left untouched and
    removed by the retention purge.
    """

    __tablename__ = "api_quota_usage"
    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_api_quota_usage_count_non_negative"),
    )

    period_key: Mapped[str] = mapped_column(
        String(10),
        primary_key=True,
        comment="Calendar day as YYYY-MM-DD in the quota time zone",
    )
    count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Metered calls made during the period",
    )

    def __repr__(self) -> str:
        return f"<QuotaRecord(period_key='{self.period_key}', count={self.count})>"
