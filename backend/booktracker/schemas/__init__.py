"""Pydantic schemas for the book tracker API.

All request/response models are defined here for easy import.
"""

from booktracker.schemas.common import ApiResponse, ErrorDetail, ErrorResponse
from booktracker.schemas.health import HealthCheckResponse
from booktracker.schemas.search import (
    ListingResponse,
    QuotaUsageResponse,
    SearchRequest,
    SearchResultsResponse,
)

__all__ = [
    # Common
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    # Search
    "SearchRequest",
    "ListingResponse",
    "SearchResultsResponse",
    "QuotaUsageResponse",
    # Health
    "HealthCheckResponse",
]
