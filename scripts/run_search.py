"""Manual search runner for testing and debugging sources.

Runs the full aggregation, or a single source adapter, for one book and
prints the listings found.

Usage:
    python scripts/run_search.py --title "Dune"
    python scripts/run_search.py --title "Dune" --author "Frank Herbert"
    python scripts/run_search.py --title "Dune" --topic "science fiction"
    python scripts/run_search.py --title "Dune" --source ebay --limit 5
"""

import argparse
import asyncio
from typing import List, Optional

from booktracker.config import settings
from booktracker.core.exceptions import InvalidQueryError
from booktracker.core.logging import configure_logging
from booktracker.db.session import init_models
from booktracker.scrapers.base import Listing, SearchQuery
from booktracker.scrapers.factory import get_adapter_factory
from booktracker.scrapers.register_adapters import register_all_adapters
from booktracker.services.quota_service import get_quota_tracker
from booktracker.services.search_service import SearchService


async def run_search(
    title: str,
    author: Optional[str] = None,
    topic: Optional[str] = None,
    source: Optional[str] = None,
    limit: int = 20,
) -> int:
    """Run a search and display the results.

    Returns:
        Process exit code
    """
    factory = register_all_adapters()
    if settings.QUOTA_BACKEND != "memory":
        await init_models()

    if source and not factory.has_adapter(source):
        print(f"\nError: Unknown source '{source}'")
        print("\nAvailable sources:")
        for slug in factory.get_registered_sources():
            print(f"   - {slug}")
        return 2

    try:
        query = SearchQuery(book_title=title, author=author, topic=topic)
    except InvalidQueryError as e:
        print(f"\nError: {e.message}")
        return 2

    print(f"\n{'=' * 70}")
    print(f"  Searching {source or 'all sources'} for: {query.search_string}")
    if query.topic:
        print(f"  Topic: {query.topic}")
    print(f"{'=' * 70}\n")

    if source:
        adapter = get_adapter_factory().create_adapter(source)
        listings = await adapter.search(query.search_string)
    else:
        listings = await SearchService().search_all_platforms(title, author=author, topic=topic)

    _print_listings(listings, limit)

    usage = await get_quota_tracker().usage()
    print(f"  Paid search quota: {usage.used}/{usage.limit} used on {usage.period_key}")
    print(f"{'=' * 70}\n")
    return 0


def _print_listings(listings: List[Listing], limit: int) -> None:
    if not listings:
        print("No listings found.\n")
        return

    print(f"Found {len(listings)} listings\n")
    for i, listing in enumerate(listings[:limit], 1):
        print(f"[{i}] {listing.title}")
        print(f"    Price: {listing.price}")
        print(f"    Source: {listing.source}")
        if listing.condition:
            print(f"    Condition: {listing.condition}")
        if listing.seller:
            print(f"    Seller: {listing.seller}")
        print(f"    URL: {listing.link[:80]}")
        print()

    by_source = {}
    for listing in listings:
        by_source[listing.source] = by_source.get(listing.source, 0) + 1

    print(f"{'=' * 70}")
    print("  Summary")
    print(f"{'=' * 70}")
    print(f"  Total: {len(listings)}  Displayed: {min(limit, len(listings))}")
    for name, count in sorted(by_source.items()):
        print(f"    - {name}: {count}")


def main():
    """Parse arguments and run the search."""
    parser = argparse.ArgumentParser(
        description="Search book listing sources from the command line",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_search.py --title "Dune"
  python scripts/run_search.py --title "Dune" --author "Frank Herbert" --topic "science fiction"
  python scripts/run_search.py --title "Dune" --source reddit
        """,
    )
    parser.add_argument("--title", required=True, help="Book title")
    parser.add_argument("--author", help="Author name, appended to the title")
    parser.add_argument("--topic", help="Subject for one extra paid search")
    parser.add_argument(
        "--source",
        help="Run only this source (craigslist, reddit, ebay, google)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Maximum number of listings to display (default: 20)",
    )
    parser.add_argument("--debug", action="store_true", help="Show debug logs")

    args = parser.parse_args()
    configure_logging(debug=args.debug)

    raise SystemExit(asyncio.run(run_search(args.title, args.author, args.topic, args.source, args.limit)))


if __name__ == "__main__":
    main()
