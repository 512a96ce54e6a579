"""Search and quota schemas."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SearchRequest(BaseModel):
    """Book search request body."""

    book_title: str = Field(..., max_length=300, description="Title of the book")
    author: Optional[str] = Field(None, max_length=200, description="Author name")
    topic: Optional[str] = Field(None, max_length=200, description="Subject for an extra paid search")


class ListingResponse(BaseModel):
    """One normalized listing."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    price: str
    source: str
    link: str
    condition: Optional[str] = None
    seller: Optional[str] = None


class SearchResultsResponse(BaseModel):
    results: List[ListingResponse]
    searched_at: str


class QuotaUsageResponse(BaseModel):
    """Snapshot of today's paid search allowance (display only)."""

    used: int
    remaining: int
    period_key: str
    limit: int
