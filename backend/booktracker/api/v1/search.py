"""Book search API endpoints."""

from fastapi import APIRouter, Depends

from booktracker.dependencies import get_search_service
from booktracker.schemas import ApiResponse, SearchRequest, SearchResultsResponse
from booktracker.services.search_service import SearchService

router = APIRouter()


@router.post("", response_model=ApiResponse[SearchResultsResponse])
async def search_book(
    request: SearchRequest,
    service: SearchService = Depends(get_search_service),
):
    """Search every listing source for a book.

    Sources are queried concurrently; a failing source contributes no
    results instead of failing the request. An empty title returns 400.
    """
    payload = await service.search_book(
        request.book_title,
        author=request.author,
        topic=request.topic,
    )
    return ApiResponse(
        status="success",
        data=SearchResultsResponse.model_validate(payload),
    )
