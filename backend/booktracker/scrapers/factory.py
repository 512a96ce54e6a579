"""Factory for creating and managing source adapter instances."""

from typing import Dict, Optional, Type

import httpx
import structlog

from booktracker.scrapers.base import BaseSourceAdapter
from booktracker.services.quota_service import QuotaTracker, get_quota_tracker


logger = structlog.get_logger(__name__)


class AdapterFactory:
    """Factory for creating and configuring adapter instances.

    Injects the shared HTTP client and, for metered sources, the quota
    tracker.
    """

    def __init__(
        self,
        quota_tracker: Optional[QuotaTracker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the adapter factory.

        Args:
            quota_tracker: Tracker handed to metered adapters. Resolved
                lazily from get_quota_tracker() when not given.
            http_client: Shared client; adapters open their own when None.
        """
        self._quota_tracker = quota_tracker
        self.http_client = http_client

        # Registry of adapter classes
        self._adapter_registry: Dict[str, Type[BaseSourceAdapter]] = {}

    @property
    def quota_tracker(self) -> QuotaTracker:
        if self._quota_tracker is None:
            self._quota_tracker = get_quota_tracker()
        return self._quota_tracker

    def register_adapter(self, source_slug: str, adapter_class: Type[BaseSourceAdapter]) -> None:
        """Register an adapter class for a source.

        Args:
            source_slug: Source identifier (e.g., "craigslist")
            adapter_class: Adapter class (must inherit from BaseSourceAdapter)
        """
        if not issubclass(adapter_class, BaseSourceAdapter):
            raise ValueError(f"Adapter class must inherit from BaseSourceAdapter: {adapter_class}")

        self._adapter_registry[source_slug] = adapter_class
        logger.debug(
            "adapter_registered",
            source_slug=source_slug,
            adapter_type=adapter_class.adapter_type,
        )

    def create_adapter(self, source_slug: str) -> Optional[BaseSourceAdapter]:
        """Create and configure an adapter instance.

        Returns:
            Configured adapter instance, or None if not registered
        """
        adapter_class = self._adapter_registry.get(source_slug)
        if not adapter_class:
            logger.warning("adapter_not_found", source_slug=source_slug)
            return None

        adapter = adapter_class(http_client=self.http_client)

        if adapter.metered:
            adapter.quota_tracker = self.quota_tracker

        logger.debug(
            "adapter_created",
            source_slug=source_slug,
            adapter_type=adapter.adapter_type,
            metered=adapter.metered,
        )
        return adapter

    def get_registered_sources(self) -> list[str]:
        """Registered source slugs, in registration order."""
        return list(self._adapter_registry.keys())

    def has_adapter(self, source_slug: str) -> bool:
        return source_slug in self._adapter_registry


# Global factory instance
adapter_factory = AdapterFactory()


def get_adapter_factory() -> AdapterFactory:
    """Get the global adapter factory instance."""
    return adapter_factory
