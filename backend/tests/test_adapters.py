"""Tests for the source adapters against canned upstream responses."""

import asyncio
from urllib.parse import parse_qs

import httpx
import pytest

from booktracker.scrapers.adapters import (
    CraigslistAdapter,
    EbayAdapter,
    GoogleSearchAdapter,
    RedditAdapter,
)
from booktracker.scrapers.adapters.google_search import relevance_score
from booktracker.scrapers.adapters.reddit import RedditCredentials
from booktracker.scrapers.base import Listing
from booktracker.scrapers.utils.normalizer import (
    CONDITION_NOT_SPECIFIED,
    PRICE_NOT_LISTED,
    SEE_LISTING_FOR_PRICE,
    SEE_POST_FOR_PRICE,
)
from booktracker.services.quota_service import InMemoryQuotaStore, QuotaTracker

from conftest import html_response, json_response


# ============================================================================
# FIXTURE DATA
# ============================================================================

CRAIGSLIST_LEGACY_HTML = """
<ul class="rows">
  <li class="result-row">
    <a class="result-title" href="/sfo/bks/1.html">Dune paperback novel</a>
    <span class="result-price">$8</span>
    <span class="result-hood"> (San Francisco)</span>
  </li>
  <li class="result-row">
    <a class="result-title" href="https://sfbay.craigslist.org/bks/2.html">Dune Messiah hardcover</a>
  </li>
  <li class="result-row">
    <a class="result-title" href="/sfo/fuo/3.html">Oak dresser</a>
    <span class="result-price">$120</span>
  </li>
  <li class="result-row">
    <span class="result-price">$5</span>
  </li>
</ul>
"""

CRAIGSLIST_STATIC_HTML = """
<ol>
  <li class="cl-static-search-result" title="Used textbook">
    <a href="https://sfbay.craigslist.org/bks/9.html">
      <div class="title">Calculus textbook 8th ed</div>
      <div class="details"><div class="price">$25</div><div class="location">Oakland</div></div>
    </a>
  </li>
</ol>
"""

EBAY_HTML = """
<ul class="srp-results">
  <li class="s-item">
    <a class="s-item__link" href="https://www.ebay.com/itm/0"></a>
    <div class="s-item__title">Shop on eBay</div>
    <span class="s-item__price">$20.00</span>
  </li>
  <li class="s-item">
    <a class="s-item__link" href="https://www.ebay.com/itm/1"></a>
    <div class="s-item__title">Dune by Frank Herbert (Paperback)</div>
    <span class="s-item__price">$7.99</span>
    <span class="SECONDARY_INFO">Pre-Owned</span>
  </li>
  <li class="s-item">
    <a class="s-item__link" href="https://www.ebay.com/itm/2"></a>
    <div class="s-item__title">Dune Deluxe Edition</div>
  </li>
  <li class="s-item">
    <div class="s-item__title">Row without a link</div>
  </li>
</ul>
"""


def _reddit_post(post_id: str, title: str, **overrides) -> dict:
    data = {
        "id": post_id,
        "title": title,
        "selftext": "",
        "permalink": f"/r/bookexchange/comments/{post_id}/",
        "subreddit": "bookexchange",
        "author": f"user_{post_id}",
        "over_18": False,
        "subreddit_type": "public",
    }
    data.update(overrides)
    return {"kind": "t3", "data": data}


def _reddit_listing(posts: list) -> dict:
    return {"kind": "Listing", "data": {"children": posts}}


def _reddit_credentials() -> RedditCredentials:
    return RedditCredentials(
        client_id="client",
        client_secret="secret",
        username="bookbot",
        password="hunter2",
    )


def _google_item(title: str, link: str, display_link: str, snippet: str = "", pagemap=None) -> dict:
    item = {"title": title, "link": link, "displayLink": display_link, "snippet": snippet}
    if pagemap is not None:
        item["pagemap"] = pagemap
    return item


def _google_adapter(client, tracker) -> GoogleSearchAdapter:
    return GoogleSearchAdapter(
        http_client=client,
        quota_tracker=tracker,
        api_key="test-key",
        search_engine_id="test-cx",
        strategy_delay=0,
    )


# ============================================================================
# TESTS: CRAIGSLIST
# ============================================================================

class TestCraigslistAdapter:
    """Tests for the classifieds scraper."""

    async def test_parses_legacy_layout(self, make_client):
        client, transport = make_client(lambda request: html_response(CRAIGSLIST_LEGACY_HTML))
        adapter = CraigslistAdapter(http_client=client)

        listings = await adapter.search("Dune")

        assert [item.title for item in listings] == ["Dune paperback novel", "Dune Messiah hardcover"]

        first, second = listings
        assert first.link == "https://craigslist.org/sfo/bks/1.html"
        assert first.price == "$8"
        assert first.source == "Craigslist (San Francisco)"
        assert first.condition == "Used"

        assert second.link == "https://sfbay.craigslist.org/bks/2.html"
        assert second.price == PRICE_NOT_LISTED
        assert second.source == "Craigslist"

        request = transport.requests[0]
        assert request.url.path == "/search/sss"
        assert request.url.params["query"] == "Dune"

    async def test_parses_static_layout(self, make_client):
        client, _ = make_client(lambda request: html_response(CRAIGSLIST_STATIC_HTML))
        adapter = CraigslistAdapter(http_client=client)

        listings = await adapter.search("calculus")

        assert len(listings) == 1
        assert listings[0].title == "Calculus textbook 8th ed"
        assert listings[0].source == "Craigslist (Oakland)"
        assert listings[0].price == "$25"

    async def test_caps_rows_examined(self, make_client):
        rows = "".join(
            f'<li class="result-row"><a class="result-title" href="/b/{i}.html">Book {i}</a></li>'
            for i in range(12)
        )
        client, _ = make_client(lambda request: html_response(f"<ul>{rows}</ul>"))

        listings = await CraigslistAdapter(http_client=client).search("anything")

        assert len(listings) == CraigslistAdapter.MAX_ROWS

    async def test_upstream_error_returns_empty(self, make_client):
        client, _ = make_client(lambda request: html_response("oops", status_code=503))

        assert await CraigslistAdapter(http_client=client).search("Dune") == []

    async def test_unknown_markup_returns_empty(self, make_client):
        client, _ = make_client(lambda request: html_response("<html><body>blocked</body></html>"))

        assert await CraigslistAdapter(http_client=client).search("Dune") == []


# ============================================================================
# TESTS: EBAY
# ============================================================================

class TestEbayAdapter:
    """Tests for the auction scraper."""

    async def test_skips_placeholder_row_and_fills_defaults(self, make_client):
        client, transport = make_client(lambda request: html_response(EBAY_HTML))
        adapter = EbayAdapter(http_client=client)

        listings = await adapter.search("Dune")

        assert [item.link for item in listings] == [
            "https://www.ebay.com/itm/1",
            "https://www.ebay.com/itm/2",
        ]
        assert listings[0].price == "$7.99"
        assert listings[0].condition == "Pre-Owned"
        assert listings[1].price == PRICE_NOT_LISTED
        assert listings[1].condition == CONDITION_NOT_SPECIFIED
        assert all(item.source == "eBay" for item in listings)

        params = transport.requests[0].url.params
        assert params["_nkw"] == "Dune book"
        assert params["_sacat"] == "267"

    async def test_first_row_always_skipped(self, make_client):
        html = """
        <li class="s-item"><a class="s-item__link" href="https://www.ebay.com/itm/10"></a>
          <div class="s-item__title">Dune first row</div></li>
        <li class="s-item"><a class="s-item__link" href="https://www.ebay.com/itm/11"></a>
          <div class="s-item__title">Dune second row</div></li>
        """
        client, _ = make_client(lambda request: html_response(html))

        listings = await EbayAdapter(http_client=client).search("Dune")

        assert [item.title for item in listings] == ["Dune second row"]

    async def test_network_error_returns_empty(self, make_client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, transport = make_client(handler)

        assert await EbayAdapter(http_client=client).search("Dune") == []
        # One retry on connection errors
        assert len(transport.requests) == 2


# ============================================================================
# TESTS: REDDIT
# ============================================================================

class TestRedditAdapter:
    """Tests for the discussion-forum API adapter."""

    def _handler(self, search_payload):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "www.reddit.com":
                return json_response({"access_token": "tok-1", "expires_in": 3600})
            return json_response(search_payload(request))

        return handler

    async def test_overlapping_subqueries_yield_at_most_five_unique(self, make_client):
        posts = [_reddit_post(f"p{i}", f"Selling Dune copy {i} $5") for i in range(7)]
        client, transport = make_client(self._handler(lambda request: _reddit_listing(posts)))
        adapter = RedditAdapter(http_client=client, credentials=_reddit_credentials(), subquery_delay=0)

        listings = await adapter.search("Dune")

        links = [item.link for item in listings]
        assert len(listings) <= 5
        assert len(links) == len(set(links))
        assert links[0] == "https://reddit.com/r/bookexchange/comments/p0/"

        search_calls = transport.calls_to("oauth.reddit.com")
        assert [call.url.params["q"] for call in search_calls] == [
            "Dune for sale",
            "selling Dune",
            "Dune book sale",
        ]
        assert search_calls[0].headers["Authorization"] == "Bearer tok-1"
        assert search_calls[0].url.params["sort"] == "new"
        assert search_calls[0].url.params["t"] == "month"
        # Token is cached across sub-queries
        assert len(transport.calls_to("www.reddit.com")) == 1

    async def test_filters_non_sale_nsfw_and_private_posts(self, make_client):
        posts = [
            _reddit_post("a", "Selling Dune hardcover", selftext="asking $12 shipped"),
            _reddit_post("b", "What did you think of Dune?"),
            _reddit_post("c", "Dune for sale", over_18=True),
            _reddit_post("d", "Dune for sale", subreddit_type="private"),
            _reddit_post("e", "Dune for sale, make an offer", author=None),
        ]
        client, _ = make_client(self._handler(lambda request: _reddit_listing(posts)))
        adapter = RedditAdapter(http_client=client, credentials=_reddit_credentials(), subquery_delay=0)

        listings = await adapter.search("Dune")

        assert [item.link.rsplit("/", 2)[-2] for item in listings] == ["a", "e"]
        assert listings[0].price == "$12"
        assert listings[0].source == "Reddit r/bookexchange"
        assert listings[0].seller == "/u/user_a"
        assert listings[1].price == SEE_POST_FOR_PRICE
        assert listings[1].seller is None

    async def test_missing_credentials_makes_no_calls(self, make_client):
        client, transport = make_client(lambda request: json_response({}))
        credentials = RedditCredentials(client_id="", client_secret="", username="", password="")

        listings = await RedditAdapter(http_client=client, credentials=credentials).search("Dune")

        assert listings == []
        assert transport.requests == []

    async def test_failed_subquery_does_not_stop_others(self, make_client):
        def payload(request):
            if request.url.params["q"] == "selling Dune":
                raise httpx.ReadError("reset", request=request)
            return _reddit_listing([_reddit_post(request.url.params["q"][:4], "Dune for sale")])

        client, _ = make_client(self._handler(payload))
        adapter = RedditAdapter(http_client=client, credentials=_reddit_credentials(), subquery_delay=0)

        listings = await adapter.search("Dune")

        assert len(listings) == 1

    async def test_token_error_returns_empty(self, make_client):
        client, _ = make_client(lambda request: json_response({"error": "invalid_grant"}))
        adapter = RedditAdapter(http_client=client, credentials=_reddit_credentials(), subquery_delay=0)

        assert await adapter.search("Dune") == []


# ============================================================================
# TESTS: GOOGLE CUSTOM SEARCH
# ============================================================================

class TestGoogleSearchAdapter:
    """Tests for the metered paid-search adapter."""

    async def test_relevance_ordering(self, make_client, memory_tracker):
        items = [
            _google_item(
                "Dune book discussion",
                "https://www.bookblog.example/dune",
                "www.bookblog.example",
                snippet="Where to buy the book",
            ),
            _google_item(
                "Dune: Deluxe Edition - Amazon.com",
                "https://www.amazon.com/dp/1",
                "www.amazon.com",
                pagemap={"product": [{"price": "9.99", "availability": "https://schema.org/NewCondition"}]},
            ),
        ]
        client, _ = make_client(lambda request: json_response({"items": items}))
        adapter = _google_adapter(client, memory_tracker)

        listings = await adapter.search("Dune")

        assert [item.source for item in listings] == ["Amazon", "Bookblog"]
        premium, unknown = listings
        assert premium.title == "Dune: Deluxe Edition"
        assert premium.price == "$9.99"
        assert premium.condition == "New"
        assert relevance_score(premium) == 20
        assert unknown.price == SEE_LISTING_FOR_PRICE
        assert unknown.condition is None
        assert relevance_score(unknown) == 0

    async def test_runs_each_strategy_once_per_quota_unit(self, make_client, memory_tracker):
        client, transport = make_client(lambda request: json_response({}))
        adapter = _google_adapter(client, memory_tracker)

        assert await adapter.search("Dune") == []

        assert len(transport.requests) == 3
        assert (await memory_tracker.usage()).used == 3
        params = parse_qs(transport.requests[0].url.query.decode())
        assert params["q"] == ['"Dune" book buy purchase']
        assert params["cx"] == ["test-cx"]
        assert params["num"] == ["10"]

    async def test_exhausted_quota_makes_zero_calls(self, make_client, memory_tracker):
        for _ in range(memory_tracker.daily_limit):
            assert await memory_tracker.reserve(1)
        assert (await memory_tracker.usage()).remaining == 0

        client, transport = make_client(lambda request: json_response({}))
        adapter = _google_adapter(client, memory_tracker)

        assert await adapter.search("Dune") == []
        assert transport.requests == []

    async def test_quota_runs_out_mid_query_keeps_results(self, make_client):
        tracker = QuotaTracker(InMemoryQuotaStore(), daily_limit=1)
        items = [_google_item("Dune paperback", "https://www.thriftbooks.com/w/dune", "www.thriftbooks.com")]
        client, transport = make_client(lambda request: json_response({"items": items}))
        adapter = _google_adapter(client, tracker)

        listings = await adapter.search("Dune")

        assert len(transport.requests) == 1
        assert [item.source for item in listings] == ["ThriftBooks"]
        assert (await tracker.usage()).used == 1

    async def test_rate_limit_stops_remaining_strategies(self, make_client, memory_tracker):
        client, transport = make_client(lambda request: json_response({"error": {}}, status_code=429))
        adapter = _google_adapter(client, memory_tracker)

        assert await adapter.search("Dune") == []
        assert len(transport.requests) == 1

    async def test_server_error_moves_to_next_strategy(self, make_client, memory_tracker):
        responses = iter(
            [
                json_response({}, status_code=500),
                json_response({"items": [_google_item("Dune hardcover", "https://www.abebooks.com/1", "www.abebooks.com")]}),
                json_response({}),
            ]
        )
        client, transport = make_client(lambda request: next(responses))

        listings = await _google_adapter(client, memory_tracker).search("Dune")

        assert len(transport.requests) == 3
        assert [item.source for item in listings] == ["AbeBooks"]

    async def test_filters_unrelated_results_and_extracts_seller(self, make_client, memory_tracker):
        items = [
            _google_item("Dune (2021 film) trailer", "https://video.example/dune", "video.example",
                         snippet="Watch the trailer"),
            _google_item("Dune paperback", "https://www.ebay.com/itm/5", "www.ebay.com",
                         snippet="Used copy. Seller: pagesandco, ships fast"),
        ]
        client, _ = make_client(lambda request: json_response({"items": items}))

        listings = await _google_adapter(client, memory_tracker).search("Dune")

        assert len(listings) == 1
        assert listings[0].source == "eBay"
        assert listings[0].seller == "pagesandco"
        assert listings[0].condition == "Used"

    async def test_missing_credentials_reserve_nothing(self, make_client, memory_tracker):
        client, transport = make_client(lambda request: json_response({}))
        adapter = GoogleSearchAdapter(
            http_client=client,
            quota_tracker=memory_tracker,
            api_key="",
            search_engine_id="",
        )

        assert await adapter.search("Dune") == []
        assert transport.requests == []
        assert (await memory_tracker.usage()).used == 0

    async def test_results_capped_and_equal_scores_keep_upstream_order(self, make_client, memory_tracker):
        items = [
            _google_item(f"Dune copy {i}", f"https://www.alibris.com/{i}", "www.alibris.com")
            for i in range(10)
        ]
        items[5]["pagemap"] = {"offer": [{"price": "4.50"}]}
        client, _ = make_client(lambda request: json_response({"items": items}))

        listings = await _google_adapter(client, memory_tracker).search("Dune")

        assert len(listings) == GoogleSearchAdapter.MAX_RESULTS
        assert [item.link for item in listings] == [
            f"https://www.alibris.com/{i}" for i in (5, 0, 1, 2, 3, 4, 6, 7)
        ]
        assert relevance_score(listings[0]) == 5
        assert all(relevance_score(item) == 0 for item in listings[1:])

    async def test_offer_price_used_when_product_has_none(self, make_client, memory_tracker):
        items = [
            _google_item(
                "Dune paperback",
                "https://www.powells.com/book/dune",
                "www.powells.com",
                snippet="Now only $3.00 while stock lasts",
                pagemap={
                    "product": [{"name": "Dune"}],
                    "offer": [{"price": "4.50"}],
                },
            ),
            _google_item(
                "Dune hardcover",
                "https://www.waterstones.com/book/dune",
                "www.waterstones.com",
                pagemap={"offer": [{"price": "12.00", "pricecurrency": "GBP"}]},
            ),
        ]
        client, _ = make_client(lambda request: json_response({"items": items}))

        listings = await _google_adapter(client, memory_tracker).search("Dune")

        prices = {item.source: item.price for item in listings}
        assert prices == {"Powell's Books": "$4.50", "Waterstones": "GBP12.00"}


class TestAdapterTimeout:
    """Tests for the per-adapter timeout in the shared search() wrapper."""

    async def test_slow_adapter_returns_empty(self):
        class SlowAdapter(EbayAdapter):
            async def _search(self, query):
                await asyncio.sleep(5)
                return [Listing(title="x", price="$1", source="eBay", link="https://x.test/1")]

        assert await SlowAdapter(timeout=0.05).search("Dune") == []
