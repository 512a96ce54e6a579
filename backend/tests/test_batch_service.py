"""Tests for the periodic batch re-search of tracked books."""

from datetime import datetime, timedelta, timezone
from typing import List
from unittest.mock import AsyncMock

from booktracker.scrapers.base import Listing
from booktracker.services.batch_service import BatchSearchRunner, TrackedBook, TrackedUser

NOW = datetime(2026, 5, 4, 12, 0, tzinfo=timezone.utc)


class InMemoryRepository:
    def __init__(self, users: List[TrackedUser]):
        self.users = users
        self.marked: List[str] = []

    async def list_users(self) -> List[TrackedUser]:
        return self.users

    async def mark_searched(self, book: TrackedBook, searched_at: datetime) -> None:
        self.marked.append(book.book_id)


def _search_service(results_by_title):
    service = AsyncMock()

    async def _search(title, author=None, topic=None):
        outcome = results_by_title.get(title, [])
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    service.search_all_platforms.side_effect = _search
    return service


def _runner(repository, notifier, service) -> BatchSearchRunner:
    return BatchSearchRunner(
        repository=repository,
        notifier=notifier,
        search_service=service,
        book_delay=0,
        user_delay=0,
        clock=lambda: NOW,
    )


class TestBatchSearchRunner:
    """Tests for BatchSearchRunner.run."""

    async def test_searches_due_books_and_notifies(self):
        found = [Listing(title="Dune", price="$8", source="Craigslist", link="https://x.test/1")]
        users = [
            TrackedUser(
                user_id="u1",
                books=[
                    TrackedBook(book_id="b1", title="Dune", author="Frank Herbert"),
                    TrackedBook(book_id="b2", title="Emma", last_searched=NOW - timedelta(hours=1)),
                    TrackedBook(book_id="b3", title="Ulysses", last_searched=NOW - timedelta(hours=7)),
                ],
            ),
            TrackedUser(
                user_id="u2",
                notifications_enabled=False,
                books=[TrackedBook(book_id="b4", title="Dune")],
            ),
        ]
        repository = InMemoryRepository(users)
        notifier = AsyncMock()
        service = _search_service({"Dune": found})

        stats = await _runner(repository, notifier, service).run()

        assert stats == {
            "users_processed": 1,
            "books_searched": 2,
            "books_skipped": 1,
            "notifications_sent": 1,
            "errors": 0,
        }
        assert repository.marked == ["b1", "b3"]
        notifier.assert_awaited_once()
        user, book, listings = notifier.await_args.args
        assert (user.user_id, book.book_id, listings) == ("u1", "b1", found)
        service.search_all_platforms.assert_any_await("Dune", author="Frank Herbert", topic=None)
        assert users[0].books[0].last_searched == NOW

    async def test_failure_for_one_book_does_not_stop_the_run(self):
        users = [
            TrackedUser(
                user_id="u1",
                books=[
                    TrackedBook(book_id="b1", title="Broken"),
                    TrackedBook(book_id="b2", title="Dune"),
                ],
            )
        ]
        repository = InMemoryRepository(users)
        service = _search_service({"Broken": RuntimeError("database unavailable")})

        stats = await _runner(repository, AsyncMock(), service).run()

        assert stats["errors"] == 1
        assert stats["books_searched"] == 1
        assert repository.marked == ["b2"]

    async def test_empty_results_are_not_delivered(self):
        users = [TrackedUser(user_id="u1", books=[TrackedBook(book_id="b1", title="Obscure")])]
        notifier = AsyncMock()

        stats = await _runner(InMemoryRepository(users), notifier, _search_service({})).run()

        notifier.assert_not_awaited()
        assert stats["notifications_sent"] == 0
        assert stats["books_searched"] == 1
