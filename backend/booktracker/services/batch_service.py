"""Periodic re-search of tracked books for users with notifications on.

The runner is a thin sequential loop. Where users and books are stored
and how notifications are delivered are outside this module: both are
injected as protocol implementations.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol

import structlog

from booktracker.config import settings
from booktracker.scrapers.base import Listing
from booktracker.services.search_service import SearchService, get_search_service

logger = structlog.get_logger(__name__)


@dataclass
class TrackedBook:
    """A book a user wants to be told about."""

    book_id: str
    title: str
    author: Optional[str] = None
    topic: Optional[str] = None
    last_searched: Optional[datetime] = None


@dataclass
class TrackedUser:
    user_id: str
    notifications_enabled: bool = True
    books: List[TrackedBook] = field(default_factory=list)


class BookRepository(Protocol):
    """Storage for users and their tracked books."""

    async def list_users(self) -> List[TrackedUser]:
        ...

    async def mark_searched(self, book: TrackedBook, searched_at: datetime) -> None:
        ...


class Notifier(Protocol):
    """Receives new listings found for a user's book."""

    async def __call__(self, user: TrackedUser, book: TrackedBook, listings: List[Listing]) -> None:
        ...


class BatchSearchRunner:
    """Search every due book of every opted-in user, one at a time."""

    def __init__(
        self,
        repository: BookRepository,
        notifier: Notifier,
        search_service: Optional[SearchService] = None,
        research_interval: Optional[timedelta] = None,
        book_delay: Optional[float] = None,
        user_delay: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize batch runner.

        Args:
            repository: Source of users and books, records search times
            notifier: Called with non-empty results per book
            search_service: Aggregation service (default: process-wide one)
            research_interval: Minimum time between searches of one book
            book_delay: Seconds to wait after each searched book
            user_delay: Seconds to wait after each user
            clock: Returns the current aware datetime; injectable for tests
        """
        self.repository = repository
        self.notifier = notifier
        self.search_service = search_service
        self.research_interval = research_interval or timedelta(
            hours=settings.BATCH_RESEARCH_INTERVAL_HOURS
        )
        self.book_delay = book_delay if book_delay is not None else settings.BATCH_BOOK_DELAY_SECONDS
        self.user_delay = user_delay if user_delay is not None else settings.BATCH_USER_DELAY_SECONDS
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = logger.bind(service="batch_search")

    def is_due(self, book: TrackedBook, now: datetime) -> bool:
        if book.last_searched is None:
            return True
        return now - book.last_searched >= self.research_interval

    async def run(self) -> Dict[str, Any]:
        """Run one pass over all users.

        Returns:
            Dict with processing statistics:
                - users_processed: Users with notifications enabled
                - books_searched: Books that were due and searched
                - books_skipped: Books searched within the interval
                - notifications_sent: Books whose results were delivered
                - errors: Books whose search or delivery failed
        """
        service = self.search_service or get_search_service()
        stats = {
            "users_processed": 0,
            "books_searched": 0,
            "books_skipped": 0,
            "notifications_sent": 0,
            "errors": 0,
        }

        users = await self.repository.list_users()
        self.logger.info("batch_search_started", users=len(users))

        for user in users:
            if not user.notifications_enabled:
                continue
            stats["users_processed"] += 1

            for book in user.books:
                now = self._clock()
                if not self.is_due(book, now):
                    stats["books_skipped"] += 1
                    continue

                try:
                    listings = await service.search_all_platforms(
                        book.title,
                        author=book.author,
                        topic=book.topic,
                    )
                    stats["books_searched"] += 1

                    if listings:
                        await self.notifier(user, book, listings)
                        stats["notifications_sent"] += 1

                    await self.repository.mark_searched(book, now)
                    book.last_searched = now

                    self.logger.info(
                        "book_searched",
                        user_id=user.user_id,
                        book_id=book.book_id,
                        results=len(listings),
                    )
                except Exception as e:
                    stats["errors"] += 1
                    self.logger.error(
                        "book_search_failed",
                        user_id=user.user_id,
                        book_id=book.book_id,
                        error=str(e),
                        exc_info=True,
                    )

                await asyncio.sleep(self.book_delay)

            await asyncio.sleep(self.user_delay)

        self.logger.info("batch_search_complete", **stats)
        return stats
