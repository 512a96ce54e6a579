"""Health check schemas."""

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Health check response schema."""

    status: str
    version: str
    timestamp: str
    database: str
