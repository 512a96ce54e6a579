"""Daily quota tracking for the metered search API.

The tracker keeps one counter per calendar day in a fixed time zone.
Callers must gate every metered call on ``reserve()``; ``usage()`` is a
display-only snapshot and must never be used to decide whether to call.

Reservation is a single compare-and-commit against the counter store:
the increment is applied only when the new count stays within the
ceiling, so concurrent reservations can never overshoot it.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from booktracker.config import settings
from booktracker.models.quota_record import QuotaRecord

logger = structlog.get_logger(__name__)


@dataclass
class QuotaUsage:
    """Point-in-time view of a quota period."""

    used: int
    remaining: int
    period_key: str
    limit: int

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


class QuotaStore(ABC):
    """Counter storage with an atomic increment-with-ceiling primitive."""

    @abstractmethod
    async def try_increment(self, period_key: str, amount: int, ceiling: int) -> bool:
        """Add ``amount`` to the period counter if the result stays <= ceiling.

        Must be indivisible: either the increment commits or nothing changes.

        Returns:
            True if the increment was committed
        """

    @abstractmethod
    async def get_count(self, period_key: str) -> int:
        """Current count for a period (0 when the period has no record yet)."""

    @abstractmethod
    async def purge_expired(self, cutoff_key: str) -> int:
        """Delete records for periods strictly before ``cutoff_key``.

        Returns:
            Number of records removed
        """


class InMemoryQuotaStore(QuotaStore):
    """Process-local store, for tests and single-process deployments."""

    def __init__(self):
        self._counts: Dict[str, int] = {}
        self._updated: Dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    async def try_increment(self, period_key: str, amount: int, ceiling: int) -> bool:
        async with self._lock:
            current = self._counts.get(period_key, 0)
            if current + amount > ceiling:
                return False
            self._counts[period_key] = current + amount
            self._updated[period_key] = datetime.now(timezone.utc)
            return True

    async def get_count(self, period_key: str) -> int:
        return self._counts.get(period_key, 0)

    async def purge_expired(self, cutoff_key: str) -> int:
        async with self._lock:
            expired = [key for key in self._counts if key < cutoff_key]
            for key in expired:
                del self._counts[key]
                self._updated.pop(key, None)
            return len(expired)


class SQLQuotaStore(QuotaStore):
    """Database-backed store using one conditional upsert per reservation.

    The record for a period is created by the first reservation of that
    period. The increment is an ``INSERT ... ON CONFLICT DO UPDATE ...
    WHERE count + n <= ceiling`` statement, which both SQLite and
    PostgreSQL execute atomically.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize SQL quota store.

        Args:
            session_factory: Async session factory for database access
        """
        self.session_factory = session_factory

    async def try_increment(self, period_key: str, amount: int, ceiling: int) -> bool:
        if amount > ceiling:
            return False

        now = datetime.now(timezone.utc)
        async with self.session_factory() as session:
            async with session.begin():
                dialect_name = session.get_bind().dialect.name
                stmt = self._upsert_statement(dialect_name, period_key, amount, ceiling, now)
                result = await session.execute(stmt)
                return result.rowcount == 1

    async def get_count(self, period_key: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(QuotaRecord.count).where(QuotaRecord.period_key == period_key)
            )
            return result.scalar_one_or_none() or 0

    async def purge_expired(self, cutoff_key: str) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(QuotaRecord).where(QuotaRecord.period_key < cutoff_key)
                )
                return result.rowcount or 0

    @staticmethod
    def _upsert_statement(
        dialect_name: str,
        period_key: str,
        amount: int,
        ceiling: int,
        now: datetime,
    ):
        if dialect_name == "postgresql":
            insert = pg_insert
        elif dialect_name == "sqlite":
            insert = sqlite_insert
        else:
            raise NotImplementedError(f"Quota store does not support dialect: {dialect_name}")

        stmt = insert(QuotaRecord).values(
            period_key=period_key,
            count=amount,
            last_updated=now,
        )
        return stmt.on_conflict_do_update(
            index_elements=[QuotaRecord.period_key],
            set_={"count": QuotaRecord.count + amount, "last_updated": now},
            where=(QuotaRecord.count + amount) <= ceiling,
        )


class QuotaTracker:
    """Rolling daily counter gating calls to a metered API."""

    def __init__(
        self,
        store: QuotaStore,
        daily_limit: Optional[int] = None,
        timezone_name: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize quota tracker.

        Args:
            store: Counter store providing the atomic increment
            daily_limit: Ceiling per period (default: GOOGLE_DAILY_QUOTA)
            timezone_name: IANA zone that defines the calendar day
            clock: Returns the current aware datetime; injectable for tests
        """
        self.store = store
        self.daily_limit = daily_limit if daily_limit is not None else settings.GOOGLE_DAILY_QUOTA
        self.tz = ZoneInfo(timezone_name or settings.QUOTA_TIMEZONE)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = logger.bind(service="quota_tracker")

    def period_key(self, at: Optional[datetime] = None) -> str:
        """Calendar day (YYYY-MM-DD) in the quota time zone."""
        moment = at or self._clock()
        return moment.astimezone(self.tz).strftime("%Y-%m-%d")

    async def reserve(self, n: int = 1) -> bool:
        """Atomically reserve ``n`` units of today's allowance.

        Returns:
            True if the units were committed, False if the ceiling would be exceeded
        """
        if n < 1:
            raise ValueError("n must be a positive integer")

        period_key = self.period_key()
        reserved = await self.store.try_increment(period_key, n, self.daily_limit)

        if reserved:
            self.logger.debug("quota_reserved", period_key=period_key, amount=n)
        else:
            self.logger.warning(
                "quota_reservation_refused",
                period_key=period_key,
                amount=n,
                limit=self.daily_limit,
            )
        return reserved

    async def usage(self) -> QuotaUsage:
        """Read-only snapshot of the current period. Never gate calls on it."""
        period_key = self.period_key()
        used = await self.store.get_count(period_key)
        return QuotaUsage(
            used=used,
            remaining=max(self.daily_limit - used, 0),
            period_key=period_key,
            limit=self.daily_limit,
        )

    async def purge_expired(self, retention_days: Optional[int] = None) -> int:
        """Remove records older than the retention window.

        Intended for the external maintenance job.

        Returns:
            Number of records removed
        """
        days = retention_days if retention_days is not None else settings.QUOTA_RETENTION_DAYS
        today = self._clock().astimezone(self.tz).date()
        cutoff_key = (today - timedelta(days=days)).isoformat()

        removed = await self.store.purge_expired(cutoff_key)
        self.logger.info("quota_records_purged", cutoff=cutoff_key, removed=removed)
        return removed


_quota_tracker: Optional[QuotaTracker] = None


def get_quota_tracker() -> QuotaTracker:
    """Get the process-wide quota tracker, creating it on first use.

    Returns:
        QuotaTracker backed by the store selected by QUOTA_BACKEND
    """
    global _quota_tracker
    if _quota_tracker is None:
        if settings.QUOTA_BACKEND == "memory":
            store: QuotaStore = InMemoryQuotaStore()
        else:
            from booktracker.db.session import async_session_factory

            store = SQLQuotaStore(async_session_factory)
        _quota_tracker = QuotaTracker(store)
        logger.info(
            "quota_tracker_initialized",
            backend=settings.QUOTA_BACKEND,
            daily_limit=_quota_tracker.daily_limit,
        )
    return _quota_tracker
