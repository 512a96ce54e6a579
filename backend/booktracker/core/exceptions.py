"""Custom exception classes for the application."""

from typing import Optional


class BookTrackerException(Exception):
    """Base exception for all book tracker errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class InvalidQueryError(BookTrackerException):
    """Raised when a search is requested without a usable book title."""

    def __init__(self, message: str = "Book title is required"):
        super().__init__(message)


class ScraperError(BookTrackerException):
    """Raised when a source adapter encounters an error."""

    def __init__(self, platform: str, message: str):
        self.platform = platform
        super().__init__(f"Scraper error for {platform}: {message}")


class QuotaExhaustedError(BookTrackerException):
    """Raised when the daily allowance for a metered source is used up."""

    def __init__(self, platform: str, period_key: Optional[str] = None):
        self.platform = platform
        self.period_key = period_key
        suffix = f" for period {period_key}" if period_key else ""
        super().__init__(f"Daily quota exhausted for {platform}{suffix}")


class UpstreamRateLimitError(BookTrackerException):
    """Raised when an external API refuses calls (HTTP 429/403)."""

    def __init__(self, platform: str, status_code: int):
        self.platform = platform
        self.status_code = status_code
        super().__init__(f"Rate limit exceeded for {platform} (HTTP {status_code})")
