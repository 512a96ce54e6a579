"""Google Custom Search JSON API adapter.

Finds book listings at online retailers through a Programmable Search
Engine. Documentation: https://developers.google.com/custom-search/v1/reference/rest/v1/cse/list

This source is metered: every strategy call consumes one unit of the
daily quota, reserved immediately before the call is made.
"""

import asyncio
import re
from typing import Any, Dict, List, Optional

import httpx

from booktracker.config import settings
from booktracker.core.exceptions import QuotaExhaustedError, ScraperError, UpstreamRateLimitError
from booktracker.scrapers.base import BaseAPIAdapter, Listing
from booktracker.scrapers.schemas import GoogleSearchItem, GoogleSearchResponse, parse_raw_record
from booktracker.scrapers.utils.normalizer import (
    SEE_LISTING_FOR_PRICE,
    ConditionClassifier,
    PriceNormalizer,
    clean_title,
    contains_any,
    dedupe_by_link,
)
from booktracker.services.quota_service import QuotaTracker


# Domains that are accepted as book commerce without further checks
BOOK_RETAILERS = [
    "amazon", "barnes", "abebooks", "alibris", "thriftbooks",
    "bookdepository", "waterstones", "powells", "strand",
]

BOOK_KEYWORDS = [
    "book", "paperback", "hardcover", "novel", "textbook",
    "bestseller", "author", "isbn", "edition", "publisher",
]

SALE_KEYWORDS = [
    "buy", "purchase", "price", "sale", "shop", "order",
    "available", "stock", "shipping", "$",
]

# Substring of the display domain -> friendly source name (checked in order)
DOMAIN_SOURCE_NAMES = {
    "amazon": "Amazon",
    "barnesandnoble": "Barnes & Noble",
    "bn.com": "Barnes & Noble",
    "abebooks": "AbeBooks",
    "alibris": "Alibris",
    "thriftbooks": "ThriftBooks",
    "bookdepository": "Book Depository",
    "waterstones": "Waterstones",
    "powells": "Powell's Books",
    "strand": "Strand Books",
    "ebay": "eBay",
    "etsy": "Etsy",
    "mercari": "Mercari",
    "facebook": "Facebook Marketplace",
}

PREMIUM_SOURCES = {"Amazon", "Barnes & Noble", "AbeBooks", "ThriftBooks"}

SELLER_DOMAINS = ("ebay", "etsy", "amazon")
SELLER_PATTERNS = [
    re.compile(r"seller:\s*([^,\n]+)", re.IGNORECASE),
    re.compile(r"sold by\s+([^,\n]+)", re.IGNORECASE),
]


def relevance_score(listing: Listing) -> int:
    """Score a listing for ordering paid search results.

    +10 for a premium retailer, +5 for a real price, +3 for a known
    condition and +2 more when that condition is "New".
    """
    score = 0
    if listing.source in PREMIUM_SOURCES:
        score += 10
    if PriceNormalizer.is_real_price(listing.price):
        score += 5
    if listing.condition:
        score += 3
    if listing.condition == "New":
        score += 2
    return score


class GoogleSearchAdapter(BaseAPIAdapter):
    """Paid search adapter using the Google Custom Search JSON API.

    Requires GOOGLE_API_KEY and GOOGLE_SEARCH_ENGINE_ID. The free tier
    allows 100 queries per day; the tracker ceiling sits below that.
    """

    source_slug = "google"
    source_name = "Google"
    metered = True

    API_URL = "https://customsearch.googleapis.com/customsearch/v1"
    RESULT_FIELDS = "items(title,link,snippet,displayLink,pagemap),searchInformation"

    SEARCH_STRATEGIES = (
        ('"{query}" book buy purchase', "Direct book purchase search"),
        ("{query} book for sale used new", "Book for sale search"),
        ("{query} paperback hardcover price", "Format-specific search"),
    )
    RESULTS_PER_CALL = 10
    MAX_RESULTS = 8
    STRATEGY_DELAY_SECONDS = 0.1

    RATE_LIMIT_STATUSES = (403, 429)

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        quota_tracker: Optional[QuotaTracker] = None,
        api_key: Optional[str] = None,
        search_engine_id: Optional[str] = None,
        strategy_delay: Optional[float] = None,
    ):
        """Initialize Google Custom Search adapter."""
        super().__init__(http_client=http_client, timeout=timeout)
        self.quota_tracker = quota_tracker  # Injected by factory
        self.api_key = (api_key if api_key is not None else settings.GOOGLE_API_KEY).strip()
        self.search_engine_id = (
            search_engine_id if search_engine_id is not None else settings.GOOGLE_SEARCH_ENGINE_ID
        ).strip()
        self.strategy_delay = (
            strategy_delay if strategy_delay is not None else self.STRATEGY_DELAY_SECONDS
        )

        if not self.api_key or not self.search_engine_id:
            self.logger.warning(
                "google_credentials_missing",
                message="GOOGLE_API_KEY or GOOGLE_SEARCH_ENGINE_ID not set",
            )

    async def _search(self, query: str) -> List[Listing]:
        """Run the query-rewrite strategies in order, one quota unit each.

        Raises:
            QuotaExhaustedError: If no quota is left before the first call
        """
        if not self.api_key or not self.search_engine_id:
            self.logger.warning("google_search_skipped", reason="credentials_missing")
            return []
        if self.quota_tracker is None:
            raise ScraperError(self.source_name, "quota tracker not configured")

        results: List[Listing] = []

        for index, (template, description) in enumerate(self.SEARCH_STRATEGIES):
            if index > 0:
                await asyncio.sleep(self.strategy_delay)

            if not await self.quota_tracker.reserve(1):
                if index == 0:
                    raise QuotaExhaustedError(self.source_name, self.quota_tracker.period_key())
                # Keep what earlier strategies found, skip the rest
                self.logger.warning(
                    "google_quota_exhausted_mid_query",
                    query=query,
                    strategies_run=index,
                    results_so_far=len(results),
                )
                break

            strategy_query = template.format(query=query)
            self.logger.info("searching_google", strategy=description, query=strategy_query)

            try:
                items = await self._call_search_api(strategy_query)
            except UpstreamRateLimitError as e:
                self.logger.error(
                    "google_rate_limited",
                    status_code=e.status_code,
                    strategy=description,
                )
                break
            except (httpx.HTTPError, ValueError) as e:
                self.logger.error("google_strategy_failed", strategy=description, error=str(e))
                continue

            for raw_item in items:
                item = parse_raw_record("google", raw_item)
                if item is None:
                    continue
                listing = self._process_item(item, query)
                if listing:
                    results.append(listing)

        unique = dedupe_by_link(results)
        # sorted() is stable, so equal scores keep upstream order
        ranked = sorted(unique, key=relevance_score, reverse=True)

        self.logger.info(
            "google_fetch_complete",
            query=query,
            total=len(results),
            unique=len(unique),
        )
        return ranked[: self.MAX_RESULTS]

    async def _call_search_api(self, strategy_query: str) -> List[Dict[str, Any]]:
        """Make one call to the Custom Search endpoint.

        Returns:
            Raw ``items`` entries (empty when the search had no hits)

        Raises:
            UpstreamRateLimitError: On HTTP 403/429
            httpx.HTTPStatusError: On other error statuses
        """
        response = await self._request(
            "GET",
            self.API_URL,
            params={
                "key": self.api_key,
                "cx": self.search_engine_id,
                "q": strategy_query,
                "num": str(self.RESULTS_PER_CALL),
                "start": "1",
                "safe": "medium",
                "fields": self.RESULT_FIELDS,
            },
        )

        if response.status_code in self.RATE_LIMIT_STATUSES:
            raise UpstreamRateLimitError(self.source_name, response.status_code)
        response.raise_for_status()

        envelope = GoogleSearchResponse.model_validate(response.json())
        self.logger.debug(
            "google_search_api_success",
            query=strategy_query,
            returned_items=len(envelope.items),
            total_results=envelope.total_results,
        )
        return envelope.items

    def _process_item(self, item: GoogleSearchItem, original_query: str) -> Optional[Listing]:
        if not self._is_book_related(item, original_query):
            return None

        source = self._determine_source(item.display_link)
        return Listing(
            title=clean_title(item.title) or item.title,
            price=self._extract_price(item) or SEE_LISTING_FOR_PRICE,
            source=source,
            link=item.link,
            condition=self._extract_condition(item),
            seller=self._extract_seller(item),
        )

    @staticmethod
    def _is_book_related(item: GoogleSearchItem, original_query: str) -> bool:
        """Known retailer domain, or book wording plus sale wording/query match."""
        if contains_any(item.display_link, BOOK_RETAILERS):
            return True

        text = f"{item.title} {item.snippet}"
        if not contains_any(text, BOOK_KEYWORDS):
            return False

        if contains_any(text, SALE_KEYWORDS):
            return True

        query_words = [word for word in original_query.lower().split(" ") if len(word) > 2]
        return contains_any(text, query_words)

    @staticmethod
    def _extract_price(item: GoogleSearchItem) -> Optional[str]:
        """Structured product/offer data first, snippet text second."""
        if item.pagemap:
            for product in item.pagemap.product:
                if product.price:
                    return PriceNormalizer.format_price(product.price)
            for offer in item.pagemap.offer:
                if offer.price:
                    currency = offer.pricecurrency or "$"
                    return f"{currency}{offer.price}"

        return PriceNormalizer.extract_price_from_snippet(item.snippet)

    @staticmethod
    def _extract_condition(item: GoogleSearchItem) -> Optional[str]:
        if item.pagemap:
            condition = ConditionClassifier.from_availability(
                product.availability for product in item.pagemap.product
            )
            if condition:
                return condition
        return ConditionClassifier.from_text(item.snippet)

    @staticmethod
    def _determine_source(domain: str) -> str:
        domain_lower = domain.lower()
        for key, name in DOMAIN_SOURCE_NAMES.items():
            if key in domain_lower:
                return name

        bare = domain.removeprefix("www.").split(".")[0]
        return bare[:1].upper() + bare[1:] if bare else "Google"

    @staticmethod
    def _extract_seller(item: GoogleSearchItem) -> Optional[str]:
        """Seller name from marketplace snippets ("Seller: x" / "Sold by x")."""
        if not contains_any(item.display_link, SELLER_DOMAINS):
            return None

        for pattern in SELLER_PATTERNS:
            match = pattern.search(item.snippet)
            if match:
                return match.group(1).strip()
        return None
