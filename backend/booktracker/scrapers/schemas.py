"""Raw record contracts for each listing source.

Every adapter first parses what the source returned into one of these
models, then maps it to a Listing. The ``kind`` field tags the source so
the records form a discriminated union. Records that do not validate are
dropped rather than raising.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

logger = structlog.get_logger(__name__)


class _RawRecord(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        coerce_numbers_to_str=True,
        str_strip_whitespace=True,
    )


class CraigslistRow(_RawRecord):
    """One result row from the classifieds search page."""

    kind: Literal["craigslist"] = "craigslist"
    title: str = Field(min_length=1)
    link: str = Field(min_length=1)
    price: Optional[str] = None
    location: Optional[str] = None


class EbayRow(_RawRecord):
    """One item row from the auction search page."""

    kind: Literal["ebay"] = "ebay"
    title: str = Field(min_length=1)
    link: str = Field(min_length=1)
    price: Optional[str] = None
    condition: Optional[str] = None


class RedditPost(_RawRecord):
    """The ``data`` object of one post in a search listing."""

    kind: Literal["reddit"] = "reddit"
    title: str = Field(min_length=1)
    permalink: str = Field(min_length=1)
    subreddit: str = Field(min_length=1)
    selftext: str = ""
    over_18: bool = False
    subreddit_type: str = ""
    author: Optional[str] = None

    @field_validator("selftext", "subreddit_type", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class GoogleProduct(_RawRecord):
    name: Optional[str] = None
    price: Optional[str] = None
    availability: Optional[str] = None
    brand: Optional[str] = None


class GoogleOffer(_RawRecord):
    price: Optional[str] = None
    pricecurrency: Optional[str] = None


class GooglePagemap(_RawRecord):
    product: List[GoogleProduct] = Field(default_factory=list)
    offer: List[GoogleOffer] = Field(default_factory=list)


class GoogleSearchItem(_RawRecord):
    """One entry of ``items`` in a Custom Search response."""

    kind: Literal["google"] = "google"
    title: str = Field(min_length=1)
    link: str = Field(min_length=1)
    snippet: str = ""
    display_link: str = Field("", alias="displayLink")
    pagemap: Optional[GooglePagemap] = None

    @field_validator("snippet", "display_link", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class GoogleSearchResponse(_RawRecord):
    """Envelope of a Custom Search response; items are validated one by one."""

    items: List[Dict[str, Any]] = Field(default_factory=list)
    search_information: Optional[Dict[str, Any]] = Field(None, alias="searchInformation")

    @property
    def total_results(self) -> Optional[int]:
        """Upstream estimate of total hits (sent as a string by the API)."""
        raw = (self.search_information or {}).get("totalResults")
        try:
            return int(raw)
        except (TypeError, ValueError):
            return None


class RedditListingChild(_RawRecord):
    data: Dict[str, Any] = Field(default_factory=dict)


class RedditListingData(_RawRecord):
    children: List[RedditListingChild] = Field(default_factory=list)


class RedditListingResponse(_RawRecord):
    """Envelope of a Reddit search response."""

    data: RedditListingData = Field(default_factory=RedditListingData)


RawRecord = Annotated[
    Union[CraigslistRow, EbayRow, RedditPost, GoogleSearchItem],
    Field(discriminator="kind"),
]

_raw_record_adapter: TypeAdapter = TypeAdapter(RawRecord)


def parse_raw_record(kind: str, payload: Dict[str, Any]) -> Optional[RawRecord]:
    """Validate a raw payload as the record type tagged ``kind``.

    Args:
        kind: Source tag ("craigslist", "ebay", "reddit", "google")
        payload: Raw fields extracted from the source response

    Returns:
        The typed record, or None when required fields are missing or invalid
    """
    try:
        return _raw_record_adapter.validate_python({**payload, "kind": kind})
    except ValidationError as e:
        logger.debug(
            "raw_record_dropped",
            kind=kind,
            errors=e.error_count(),
            fields=sorted(payload.keys()),
        )
        return None
