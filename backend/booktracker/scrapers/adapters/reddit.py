"""Reddit discussion-forum adapter.

Searches public subreddits for recent "for sale" posts via the Reddit API.
Documentation: https://www.reddit.com/dev/api/#GET_search

Authenticates as a script app (OAuth2 password grant), which needs four
secrets: client id, client secret, username and password.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from booktracker.config import settings
from booktracker.core.exceptions import ScraperError
from booktracker.scrapers.base import BaseAPIAdapter, Listing
from booktracker.scrapers.schemas import RedditListingResponse, RedditPost, parse_raw_record
from booktracker.scrapers.utils.normalizer import (
    SEE_POST_FOR_PRICE,
    PriceNormalizer,
    contains_any,
    dedupe_by_link,
)
from booktracker.scrapers.utils.retry import auth_retry


@dataclass(frozen=True)
class RedditCredentials:
    client_id: str
    client_secret: str
    username: str
    password: str

    @classmethod
    def from_settings(cls) -> "RedditCredentials":
        return cls(
            client_id=settings.REDDIT_CLIENT_ID.strip(),
            client_secret=settings.REDDIT_CLIENT_SECRET.strip(),
            username=settings.REDDIT_USERNAME.strip(),
            password=settings.REDDIT_PASSWORD.strip(),
        )

    def is_complete(self) -> bool:
        return all([self.client_id, self.client_secret, self.username, self.password])


class RedditAdapter(BaseAPIAdapter):
    """Discussion-forum adapter for book sale posts on Reddit.

    Runs three phrasing variants of the query one after another with a
    short pause between them, keeping at most five unique posts.
    """

    source_slug = "reddit"
    source_name = "Reddit"

    TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
    SEARCH_URL = "https://oauth.reddit.com/search"
    POST_BASE_URL = "https://reddit.com"

    SEARCH_TEMPLATES = (
        "{query} for sale",
        "selling {query}",
        "{query} book sale",
    )
    POSTS_PER_QUERY = 15
    MAX_RESULTS = 5
    TIME_WINDOW = "month"
    SUBQUERY_DELAY_SECONDS = 0.5

    SALE_KEYWORDS = ("for sale", "selling", "sale", "$")

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        credentials: Optional[RedditCredentials] = None,
        subquery_delay: Optional[float] = None,
    ):
        """Initialize Reddit adapter."""
        super().__init__(http_client=http_client, timeout=timeout)
        self.credentials = credentials or RedditCredentials.from_settings()
        self.subquery_delay = (
            subquery_delay if subquery_delay is not None else self.SUBQUERY_DELAY_SECONDS
        )

        if not self.credentials.is_complete():
            self.logger.warning(
                "reddit_credentials_missing",
                message="REDDIT_CLIENT_ID, REDDIT_CLIENT_SECRET, REDDIT_USERNAME or REDDIT_PASSWORD not set",
            )

        # OAuth token caching
        self._access_token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None

    async def _search(self, query: str) -> List[Listing]:
        if not self.credentials.is_complete():
            self.logger.warning("reddit_search_skipped", reason="credentials_missing")
            return []

        results: List[Listing] = []

        for index, template in enumerate(self.SEARCH_TEMPLATES):
            # Sub-queries stay sequential to respect Reddit's rate limits
            if index > 0:
                await asyncio.sleep(self.subquery_delay)

            term = template.format(query=query)
            try:
                posts = await self._search_posts(term)
            except (httpx.HTTPError, ValueError) as e:
                self.logger.error("reddit_subquery_failed", term=term, error=str(e))
                continue

            for post in posts:
                listing = self._to_listing(post)
                if listing:
                    results.append(listing)

        unique = dedupe_by_link(results)
        self.logger.debug("reddit_posts_collected", total=len(results), unique=len(unique))
        return unique[: self.MAX_RESULTS]

    async def _search_posts(self, term: str) -> List[RedditPost]:
        """Run one search call and return the validated posts.

        Raises:
            httpx.HTTPStatusError: If the API returns an error status
        """
        token = await self._get_access_token()

        response = await self._request(
            "GET",
            self.SEARCH_URL,
            params={
                "q": term,
                "sort": "new",
                "t": self.TIME_WINDOW,
                "limit": str(self.POSTS_PER_QUERY),
                "type": "link",
                "raw_json": "1",
            },
            headers={"Authorization": f"Bearer {token}"},
        )

        if response.status_code == 401:
            # Token revoked or expired early; fetch a new one next time
            self._access_token = None
        response.raise_for_status()

        envelope = RedditListingResponse.model_validate(response.json())
        posts: List[RedditPost] = []
        for child in envelope.data.children[: self.POSTS_PER_QUERY]:
            post = parse_raw_record("reddit", child.data)
            if post is not None:
                posts.append(post)

        self.logger.debug("reddit_search_api_success", term=term, returned_posts=len(posts))
        return posts

    @auth_retry
    async def _get_access_token(self) -> str:
        """Get an OAuth 2.0 access token using the password grant.

        Caches the token until shortly before it expires.

        Raises:
            ScraperError: If the token response carries no access token
        """
        now = datetime.now(timezone.utc)
        if self._access_token and self._token_expires_at and now < self._token_expires_at:
            return self._access_token

        self.logger.info("reddit_requesting_new_token")

        response = await self._request(
            "POST",
            self.TOKEN_URL,
            auth=(self.credentials.client_id, self.credentials.client_secret),
            data={
                "grant_type": "password",
                "username": self.credentials.username,
                "password": self.credentials.password,
            },
        )
        response.raise_for_status()

        token_data: Dict[str, Any] = response.json()
        access_token = token_data.get("access_token")
        if not access_token:
            raise ScraperError(self.source_name, token_data.get("error", "no access_token in response"))

        expires_in = int(token_data.get("expires_in", 3600))
        self._access_token = access_token
        # Refresh one minute before expiry
        self._token_expires_at = now + timedelta(seconds=max(expires_in - 60, 0))

        self.logger.info("reddit_token_acquired", expires_in=expires_in)
        return access_token

    def _to_listing(self, post: RedditPost) -> Optional[Listing]:
        """Map a post to a Listing, or None when it is not a public sale post."""
        combined = f"{post.title} {post.selftext}".lower()

        if not contains_any(combined, self.SALE_KEYWORDS):
            return None
        if post.over_18 or post.subreddit_type != "public":
            return None

        return Listing(
            title=post.title,
            price=PriceNormalizer.extract_dollar_price(combined) or SEE_POST_FOR_PRICE,
            source=f"{self.source_name} r/{post.subreddit}",
            link=f"{self.POST_BASE_URL}{post.permalink}",
            seller=f"/u/{post.author}" if post.author else None,
        )
