"""eBay auction adapter.

Scrapes the eBay search results page restricted to the Books category
(category id 267). The first ``.s-item`` on the page is a promoted
placeholder and is always skipped.
"""

from typing import Dict, List, Optional

from booktracker.scrapers.base import BaseScraperAdapter, Listing
from booktracker.scrapers.schemas import EbayRow, parse_raw_record
from booktracker.scrapers.utils.normalizer import (
    CONDITION_NOT_SPECIFIED,
    PRICE_NOT_LISTED,
    contains_any,
)


class EbayAdapter(BaseScraperAdapter):
    """Auction adapter for book listings on eBay."""

    source_slug = "ebay"
    source_name = "eBay"

    BASE_URL = "https://www.ebay.com"
    SEARCH_PATH = "/sch/i.html"
    BOOKS_CATEGORY_ID = "267"

    MAX_ROWS = 10
    PLACEHOLDER_TITLES = ("shop on ebay",)

    async def _search(self, query: str) -> List[Listing]:
        html = await self._fetch_html(
            f"{self.BASE_URL}{self.SEARCH_PATH}",
            params={"_nkw": f"{query} book", "_sacat": self.BOOKS_CATEGORY_ID},
        )

        listings: List[Listing] = []
        rows = self._extract_rows(html)[: self.MAX_ROWS]
        for row in rows[1:]:
            record = parse_raw_record("ebay", row)
            if record is None:
                continue
            if contains_any(record.title, self.PLACEHOLDER_TITLES):
                continue
            listings.append(self._to_listing(record))

        return listings

    def _extract_rows(self, html: str) -> List[Dict[str, Optional[str]]]:
        soup = self._soup(html)
        rows = []
        for element in soup.select(".s-item"):
            link_elem = element.select_one(".s-item__link")
            rows.append(
                {
                    "title": self._text(element, ".s-item__title"),
                    "price": self._text(element, ".s-item__price") or None,
                    "link": link_elem.get("href") if link_elem else None,
                    "condition": self._text(element, ".SECONDARY_INFO") or None,
                }
            )
        return rows

    def _to_listing(self, record: EbayRow) -> Listing:
        return Listing(
            title=record.title,
            price=record.price or PRICE_NOT_LISTED,
            source=self.source_name,
            link=self._absolute(record.link),
            condition=record.condition or CONDITION_NOT_SPECIFIED,
        )
