"""Source-specific adapter implementations.

Each adapter inherits from BaseScraperAdapter (HTML search pages) or
BaseAPIAdapter (JSON APIs) and implements _search().
"""

# Scraper adapters
from .craigslist import CraigslistAdapter
from .ebay import EbayAdapter

# API adapters
from .reddit import RedditAdapter
from .google_search import GoogleSearchAdapter

__all__ = [
    # Scraper adapters
    "CraigslistAdapter",
    "EbayAdapter",
    # API adapters
    "RedditAdapter",
    "GoogleSearchAdapter",
]
