"""Normalization helpers shared by the source adapters.

Price and condition extraction, title cleanup, URL handling and the
link-based de-duplication used to merge results from several sources.
"""

import re
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence
from urllib.parse import urljoin

if TYPE_CHECKING:
    from booktracker.scrapers.base import Listing


# Price sentinels used when a source does not expose a usable price
PRICE_NOT_LISTED = "Price not listed"
SEE_POST_FOR_PRICE = "See post for price"
SEE_LISTING_FOR_PRICE = "See listing for price"

CONDITION_NOT_SPECIFIED = "Condition not specified"

# Ordered (pattern, label) pairs checked against free text
CONDITION_PATTERNS = [
    (re.compile(r"\b(new|brand new)\b", re.IGNORECASE), "New"),
    (re.compile(r"\b(used|pre-owned|second-hand)\b", re.IGNORECASE), "Used"),
    (re.compile(r"\b(like new|excellent)\b", re.IGNORECASE), "Like New"),
    (re.compile(r"\b(good condition)\b", re.IGNORECASE), "Good"),
    (re.compile(r"\b(fair condition)\b", re.IGNORECASE), "Fair"),
    (re.compile(r"\b(refurbished|renewed)\b", re.IGNORECASE), "Refurbished"),
]

_TITLE_SUFFIX_PATTERNS = [
    re.compile(r"\s*-\s*(Amazon\.com|Barnes & Noble|eBay|Etsy).*$", re.IGNORECASE),
    re.compile(r"\s*\|\s*.*$"),
    re.compile(r"\s*:\s*Books\s*$"),
]


class PriceNormalizer:
    """Price extraction and formatting utilities.

    Prices are kept as display strings ("$12.99") because several sources
    only offer free text; sentinels mark listings without a price.
    """

    DOLLAR_PATTERN = re.compile(r"\$(\d+(?:\.\d{2})?)")

    # Snippet patterns, most specific currency marker first
    SNIPPET_PATTERNS = [
        re.compile(r"\$(\d{1,4}(?:\.\d{2})?)"),  # $12.99
        re.compile(r"USD?\s*(\d{1,4}(?:\.\d{2})?)", re.IGNORECASE),  # USD 12.99
        re.compile(r"Price:\s*\$?(\d{1,4}(?:\.\d{2})?)", re.IGNORECASE),  # Price: 12.99
        re.compile(r"(\d{1,4}(?:\.\d{2})?)\s*USD", re.IGNORECASE),  # 12.99 USD
    ]

    @staticmethod
    def format_price(raw: str) -> str:
        """Format a structured price value as ``$<amount>`` with two decimals.

        Handles:
        - "12.5" -> "$12.50"
        - "$1,234.00" -> "$1234.00"
        - "call for price" -> "call for price" (returned unchanged)

        Args:
            raw: Raw price string

        Returns:
            Formatted price, or the raw value when it holds no number
        """
        cleaned = re.sub(r"[^\d.]", "", raw or "")
        try:
            amount = float(cleaned)
        except ValueError:
            return raw
        return f"${amount:.2f}"

    @classmethod
    def extract_dollar_price(cls, text: str) -> Optional[str]:
        """Return the first ``$<number>`` in text, or None."""
        if not text:
            return None
        match = cls.DOLLAR_PATTERN.search(text)
        return f"${match.group(1)}" if match else None

    @classmethod
    def extract_price_from_snippet(cls, snippet: str) -> Optional[str]:
        """Try each snippet pattern in order and return ``$<number>``.

        Args:
            snippet: Search result snippet text

        Returns:
            Extracted price string, or None if nothing matched
        """
        if not snippet:
            return None
        for pattern in cls.SNIPPET_PATTERNS:
            match = pattern.search(snippet)
            if match:
                return f"${match.group(1)}"
        return None

    @staticmethod
    def is_real_price(price: Optional[str]) -> bool:
        """True when ``price`` is an actual value rather than a sentinel."""
        if not price:
            return False
        if price in (PRICE_NOT_LISTED, SEE_POST_FOR_PRICE):
            return False
        return "See listing" not in price


class ConditionClassifier:
    """Maps free text and structured availability fields to condition labels."""

    @staticmethod
    def from_availability(values: Iterable[Optional[str]]) -> Optional[str]:
        for value in values:
            if not value:
                continue
            lowered = value.lower()
            if "new" in lowered:
                return "New"
            if "used" in lowered:
                return "Used"
            if "refurbished" in lowered:
                return "Refurbished"
        return None

    @staticmethod
    def from_text(text: str) -> Optional[str]:
        if not text:
            return None
        for pattern, label in CONDITION_PATTERNS:
            if pattern.search(text):
                return label
        return None


def make_absolute_url(href: Optional[str], base_url: str) -> str:
    """Resolve a possibly relative link against ``base_url``.

    Returns an empty string when there is no link.
    """
    if not href:
        return ""
    href = href.strip()
    if href.startswith(("http://", "https://")):
        return href
    if href.startswith("//"):
        return "https:" + href
    return urljoin(base_url.rstrip("/") + "/", href.lstrip("/"))


def clean_title(title: str, max_length: int = 100) -> str:
    """Strip retailer suffixes from a page title and bound its length."""
    cleaned = title or ""
    for pattern in _TITLE_SUFFIX_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = cleaned.strip()
    if len(cleaned) > max_length:
        return cleaned[:max_length] + "..."
    return cleaned


def query_terms(query: str) -> List[str]:
    """Lowercased whitespace-delimited tokens of a query."""
    return [word.lower() for word in (query or "").split() if word]


def contains_any(text: str, keywords: Sequence[str]) -> bool:
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in keywords)


def dedupe_by_link(listings: Iterable["Listing"]) -> List["Listing"]:
    """Keep the first listing for each distinct link, preserving order."""
    seen_links = set()
    unique: List["Listing"] = []
    for listing in listings:
        if listing.link in seen_links:
            continue
        seen_links.add(listing.link)
        unique.append(listing)
    return unique
