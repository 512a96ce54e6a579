"""Base source adapter interface.

All listing sources should inherit from BaseScraperAdapter (HTML pages)
or BaseAPIAdapter (JSON APIs) and implement _search().
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import structlog
from bs4 import BeautifulSoup

from booktracker.config import settings
from booktracker.core.exceptions import BookTrackerException, InvalidQueryError
from booktracker.scrapers.utils.normalizer import make_absolute_url
from booktracker.scrapers.utils.retry import scrape_retry


@dataclass
class Listing:
    """Normalized listing returned by every adapter.

    ``link`` is the de-duplication identity across sources. ``id`` is
    assigned fresh on construction and is not stable across queries.
    """

    title: str
    price: str
    source: str
    link: str
    condition: Optional[str] = None
    seller: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.title:
            raise ValueError("title is required")
        if not self.link:
            raise ValueError("link is required")
        if not self.source:
            raise ValueError("source is required")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SearchQuery:
    """A book search request.

    The title is required. Author is appended to the title to form the
    search string; topic is only used for a supplemental paid search.
    """

    book_title: str
    author: Optional[str] = None
    topic: Optional[str] = None

    def __post_init__(self):
        self.book_title = (self.book_title or "").strip()
        self.author = (self.author or "").strip() or None
        self.topic = (self.topic or "").strip() or None
        if not self.book_title:
            raise InvalidQueryError("Book title is required")

    @property
    def search_string(self) -> str:
        return " ".join(part for part in (self.book_title, self.author) if part)

    @property
    def topic_search_string(self) -> Optional[str]:
        if not self.topic:
            return None
        return f"{self.search_string} {self.topic}"


class BaseSourceAdapter(ABC):
    """Abstract base class for all listing sources.

    search() never raises: network errors, timeouts, layout changes and
    quota exhaustion are logged and turned into an empty result list.
    """

    source_slug: str = ""  # Must be overridden in subclass (e.g., "ebay")
    source_name: str = ""  # Display label used in Listing.source
    adapter_type: str = ""  # 'api' or 'scraper'
    metered: bool = False  # True when calls consume the paid quota

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the adapter with dependency injection points.

        Args:
            http_client: Shared httpx.AsyncClient. When None, a client is
                opened per request.
            timeout: Upper bound in seconds for one search() call.
        """
        self.http_client = http_client
        self.timeout = timeout if timeout is not None else settings.ADAPTER_TIMEOUT_SECONDS
        self.logger = structlog.get_logger(adapter=self.source_slug)

    async def search(self, query: str) -> List[Listing]:
        """Search this source for listings matching ``query``.

        Returns:
            List of Listing objects, empty on any failure.
        """
        try:
            listings = await asyncio.wait_for(self._search(query), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.logger.warning("adapter_timeout", query=query, timeout=self.timeout)
            return []
        except BookTrackerException as e:
            self.logger.warning("adapter_aborted", query=query, error=e.message)
            return []
        except Exception as e:
            self.logger.error(
                "adapter_search_failed",
                query=query,
                error=str(e),
                error_type=type(e).__name__,
            )
            return []

        self.logger.info("adapter_search_complete", query=query, count=len(listings))
        return listings

    @abstractmethod
    async def _search(self, query: str) -> List[Listing]:
        """Fetch and normalize listings. May raise; search() isolates errors."""

    def _default_headers(self) -> Dict[str, str]:
        return {"User-Agent": settings.API_USER_AGENT}

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Issue an HTTP request through the injected or a per-request client."""
        headers = {**self._default_headers(), **kwargs.pop("headers", {})}

        if self.http_client is not None:
            return await self.http_client.request(method, url, headers=headers, **kwargs)

        async with httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            follow_redirects=True,
        ) as client:
            return await client.request(method, url, headers=headers, **kwargs)


class BaseScraperAdapter(BaseSourceAdapter):
    """Base class for adapters that parse HTML search result pages."""

    adapter_type = "scraper"
    BASE_URL: str = ""

    def _default_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": settings.SCRAPER_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }

    @scrape_retry
    async def _fetch_html(self, url: str, params: Optional[Dict[str, str]] = None) -> str:
        """Fetch a page and return its HTML.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses
        """
        self.logger.debug("scraping_url", url=url, params=params)
        response = await self._request("GET", url, params=params)
        response.raise_for_status()
        return response.text

    @staticmethod
    def _soup(html: str) -> BeautifulSoup:
        return BeautifulSoup(html, "html.parser")

    @staticmethod
    def _text(element, selector: str) -> str:
        """Stripped text of the first match of ``selector`` under ``element``."""
        found = element.select_one(selector)
        return found.get_text(strip=True) if found else ""

    def _absolute(self, href: Optional[str]) -> str:
        return make_absolute_url(href, self.BASE_URL)


class BaseAPIAdapter(BaseSourceAdapter):
    """Base class for adapters backed by a JSON API."""

    adapter_type = "api"

    def _default_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": settings.API_USER_AGENT,
            "Accept": "application/json",
        }
