"""Paid search quota endpoint."""

from fastapi import APIRouter, Depends

from booktracker.dependencies import get_quota_tracker
from booktracker.schemas import ApiResponse, QuotaUsageResponse
from booktracker.services.quota_service import QuotaTracker

router = APIRouter()


@router.get("", response_model=ApiResponse[QuotaUsageResponse])
async def get_quota_usage(tracker: QuotaTracker = Depends(get_quota_tracker)):
    """Today's usage of the paid search allowance. Informational only."""
    usage = await tracker.usage()
    return ApiResponse(status="success", data=QuotaUsageResponse(**usage.to_dict()))
