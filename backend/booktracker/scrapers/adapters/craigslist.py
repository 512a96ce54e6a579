"""Craigslist classifieds adapter.

Scrapes the public "for sale" search page. Craigslist has served two
markups over time (legacy ``.result-row`` and the static
``cl-static-search-result`` list), so both are recognised.
"""

from typing import Dict, List, Optional

from booktracker.scrapers.base import BaseScraperAdapter, Listing
from booktracker.scrapers.schemas import CraigslistRow, parse_raw_record
from booktracker.scrapers.utils.normalizer import PRICE_NOT_LISTED, contains_any, query_terms


class CraigslistAdapter(BaseScraperAdapter):
    """Classifieds adapter for used books posted on Craigslist."""

    source_slug = "craigslist"
    source_name = "Craigslist"

    BASE_URL = "https://craigslist.org"
    SEARCH_PATH = "/search/sss"

    MAX_ROWS = 8
    CONDITION = "Used"
    BOOK_KEYWORDS = ("book", "novel", "textbook")

    # (row, title, price, link, location) selectors, newest layout last
    _LAYOUTS = [
        (".result-row", ".result-title", ".result-price", ".result-title", ".result-hood"),
        ("li.cl-static-search-result", ".title", ".price", "a", ".location"),
    ]

    async def _search(self, query: str) -> List[Listing]:
        html = await self._fetch_html(
            f"{self.BASE_URL}{self.SEARCH_PATH}",
            params={"query": query},
        )

        listings: List[Listing] = []
        for row in self._extract_rows(html)[: self.MAX_ROWS]:
            record = parse_raw_record("craigslist", row)
            if record is None:
                continue
            if not self._is_book_related(record.title, query):
                self.logger.debug("row_not_book_related", title=record.title)
                continue
            listings.append(self._to_listing(record))

        return listings

    def _extract_rows(self, html: str) -> List[Dict[str, Optional[str]]]:
        """Pull raw title/price/link/location fields out of the results page."""
        soup = self._soup(html)

        for row_sel, title_sel, price_sel, link_sel, hood_sel in self._LAYOUTS:
            elements = soup.select(row_sel)
            if not elements:
                continue

            rows = []
            for element in elements:
                link_elem = element.select_one(link_sel) or element.select_one("a[href]")
                rows.append(
                    {
                        "title": self._text(element, title_sel),
                        "price": self._text(element, price_sel) or None,
                        "link": link_elem.get("href") if link_elem else None,
                        "location": self._text(element, hood_sel).strip("() ") or None,
                    }
                )
            return rows

        self.logger.info("no_result_rows_found")
        return []

    def _is_book_related(self, title: str, query: str) -> bool:
        """Title names a book-ish keyword, or shares a word with the query."""
        if contains_any(title, self.BOOK_KEYWORDS):
            return True
        return contains_any(title, query_terms(query))

    def _to_listing(self, record: CraigslistRow) -> Listing:
        source = self.source_name
        if record.location:
            source = f"{self.source_name} ({record.location})"

        return Listing(
            title=record.title,
            price=record.price or PRICE_NOT_LISTED,
            source=source,
            link=self._absolute(record.link),
            condition=self.CONDITION,
        )
