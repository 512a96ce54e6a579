"""FastAPI dependency injection providers."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from booktracker.db.session import async_session_factory
from booktracker.services import quota_service, search_service


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is committed on success or rolled back on error.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_search_service() -> search_service.SearchService:
    return search_service.get_search_service()


def get_quota_tracker() -> quota_service.QuotaTracker:
    return quota_service.get_quota_tracker()
