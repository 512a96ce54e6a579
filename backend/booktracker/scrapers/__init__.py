"""Listing sources for the book tracker.

This package provides:
- Base adapter classes and the normalized Listing record
- One adapter per marketplace, classified and paid search source
- Factory for creating and configuring adapter instances
"""

from .base import (
    BaseAPIAdapter,
    BaseScraperAdapter,
    BaseSourceAdapter,
    Listing,
    SearchQuery,
)
from .factory import AdapterFactory, adapter_factory, get_adapter_factory

__all__ = [
    # Base classes
    "BaseSourceAdapter",
    "BaseScraperAdapter",
    "BaseAPIAdapter",
    # Data structures
    "Listing",
    "SearchQuery",
    # Factory
    "AdapterFactory",
    "adapter_factory",
    "get_adapter_factory",
]
