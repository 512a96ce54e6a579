"""Register all source adapters with the factory.

Called during application startup and by the command line runner.
Calling it more than once is harmless.
"""

from typing import Optional

import structlog

from booktracker.scrapers.adapters import (
    CraigslistAdapter,
    EbayAdapter,
    GoogleSearchAdapter,
    RedditAdapter,
)
from booktracker.scrapers.factory import AdapterFactory, get_adapter_factory

logger = structlog.get_logger(__name__)

ADAPTERS = [
    ("craigslist", CraigslistAdapter),
    ("reddit", RedditAdapter),
    ("ebay", EbayAdapter),
    ("google", GoogleSearchAdapter),
]


def register_all_adapters(factory: Optional[AdapterFactory] = None) -> AdapterFactory:
    """Register every available adapter with ``factory`` (default: global)."""
    factory = factory or get_adapter_factory()

    for source_slug, adapter_class in ADAPTERS:
        if factory.has_adapter(source_slug):
            continue
        factory.register_adapter(source_slug, adapter_class)

    logger.info(
        "all_adapters_registered",
        count=len(factory.get_registered_sources()),
        sources=factory.get_registered_sources(),
    )
    return factory
