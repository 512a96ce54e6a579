"""Aggregation service fanning a book query out to every listing source.

All adapters run concurrently. Each one is isolated: an exception or a
timeout in one source contributes an empty list and never affects the
others. Results are concatenated in a fixed source order and
de-duplicated by link.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from booktracker.config import settings
from booktracker.scrapers.base import BaseSourceAdapter, Listing, SearchQuery
from booktracker.scrapers.factory import get_adapter_factory
from booktracker.scrapers.utils.normalizer import dedupe_by_link

logger = structlog.get_logger(__name__)

# Concatenation order of adapter outputs
CANONICAL_ORDER = ("craigslist", "reddit", "ebay", "google")

TOPIC_SOURCE = "google"


class SearchService:
    """Service running one book query against every registered source."""

    def __init__(
        self,
        adapters: Optional[Sequence[BaseSourceAdapter]] = None,
        deadline_seconds: Optional[float] = None,
        adapter_timeout: Optional[float] = None,
    ):
        """Initialize search service.

        Args:
            adapters: Adapters in concatenation order. Defaults to the
                factory's adapters in CANONICAL_ORDER.
            deadline_seconds: Overall bound for one aggregation; adapters
                still running at the deadline are cancelled.
            adapter_timeout: Per-adapter bound applied on top of each
                adapter's own timeout.
        """
        self.adapters = list(adapters) if adapters is not None else self._default_adapters()
        self.deadline_seconds = (
            deadline_seconds if deadline_seconds is not None else settings.SEARCH_DEADLINE_SECONDS
        )
        self.adapter_timeout = (
            adapter_timeout if adapter_timeout is not None else settings.ADAPTER_TIMEOUT_SECONDS
        )
        self.logger = logger.bind(service="search_service")

    @staticmethod
    def _default_adapters() -> List[BaseSourceAdapter]:
        factory = get_adapter_factory()
        adapters = []
        for source_slug in CANONICAL_ORDER:
            adapter = factory.create_adapter(source_slug)
            if adapter is not None:
                adapters.append(adapter)
        return adapters

    async def search_all_platforms(
        self,
        book_title: str,
        author: Optional[str] = None,
        topic: Optional[str] = None,
    ) -> List[Listing]:
        """Search every source for a book and merge the results.

        Returns:
            Listings in source order, unique by link

        Raises:
            InvalidQueryError: If the title is empty (no source is queried)
        """
        query = SearchQuery(book_title=book_title, author=author, topic=topic)

        jobs = self._plan(query)
        self.logger.info(
            "aggregation_started",
            query=query.search_string,
            topic=query.topic,
            sources=[label for label, _, _ in jobs],
        )

        tasks = [
            asyncio.create_task(self._run_isolated(label, adapter, text), name=label)
            for label, adapter, text in jobs
        ]
        if not tasks:
            return []

        done, pending = await asyncio.wait(tasks, timeout=self.deadline_seconds)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            self.logger.warning(
                "aggregation_deadline_reached",
                deadline=self.deadline_seconds,
                cancelled=[task.get_name() for task in pending],
            )

        combined: List[Listing] = []
        per_source: Dict[str, int] = {}
        for task in tasks:
            listings = task.result() if task in done else []
            per_source[task.get_name()] = len(listings)
            combined.extend(listings)

        unique = dedupe_by_link(combined)
        self.logger.info(
            "aggregation_complete",
            query=query.search_string,
            total=len(combined),
            unique=len(unique),
            per_source=per_source,
        )
        return unique

    async def search_book(
        self,
        book_title: str,
        author: Optional[str] = None,
        topic: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Aggregate listings and stamp the time of the search.

        Returns:
            Dict with ``results`` (listing dicts) and ``searched_at`` (ISO 8601)
        """
        listings = await self.search_all_platforms(book_title, author=author, topic=topic)
        return {
            "results": [listing.to_dict() for listing in listings],
            "searched_at": datetime.now(timezone.utc).isoformat(),
        }

    def _plan(self, query: SearchQuery) -> List[Tuple[str, BaseSourceAdapter, str]]:
        """(label, adapter, query text) per task, in concatenation order."""
        jobs = [(adapter.source_slug, adapter, query.search_string) for adapter in self.adapters]

        topic_text = query.topic_search_string
        if topic_text:
            topic_adapter = next(
                (adapter for adapter in self.adapters if adapter.source_slug == TOPIC_SOURCE),
                None,
            )
            if topic_adapter is not None:
                jobs.append((f"{TOPIC_SOURCE}:topic", topic_adapter, topic_text))
        return jobs

    async def _run_isolated(self, label: str, adapter: BaseSourceAdapter, text: str) -> List[Listing]:
        """Run one adapter; any exception or timeout yields an empty list."""
        try:
            return await asyncio.wait_for(adapter.search(text), timeout=self.adapter_timeout)
        except asyncio.TimeoutError:
            self.logger.warning("source_timeout", source=label, timeout=self.adapter_timeout)
        except Exception as e:
            self.logger.error(
                "source_failed",
                source=label,
                error=str(e),
                error_type=type(e).__name__,
            )
        return []


_search_service: Optional[SearchService] = None


def get_search_service() -> SearchService:
    """Get the process-wide search service, registering adapters on first use."""
    global _search_service
    if _search_service is None:
        from booktracker.scrapers.register_adapters import register_all_adapters

        register_all_adapters()
        _search_service = SearchService()
    return _search_service


async def search_all_platforms(
    book_title: str,
    author: Optional[str] = None,
    topic: Optional[str] = None,
) -> List[Listing]:
    """Search every source using the default service."""
    return await get_search_service().search_all_platforms(book_title, author=author, topic=topic)


async def search_book(
    book_title: str,
    author: Optional[str] = None,
    topic: Optional[str] = None,
) -> Dict[str, Any]:
    """``SearchService.search_book`` using the default service."""
    return await get_search_service().search_book(book_title, author=author, topic=topic)
