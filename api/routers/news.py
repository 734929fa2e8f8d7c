from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from app.core.logging import get_logger
from app.models.news_public import (
    NewsItemOut,
    NewsListResponse,
    NewsStatusResponse,
    RefreshResponse,
)
from services.news_service import NewsService, get_news_service

logger = get_logger().bind(module="news_router")

router = APIRouter(
    prefix="/news",
    tags=["news"],
)


def _list_response(items) -> NewsListResponse:
    return NewsListResponse(
        items=[NewsItemOut.from_item(item) for item in items],
        total=len(items),
    )


@router.get("", response_model=NewsListResponse)
async def get_news(service: NewsService = Depends(get_news_service)) -> NewsListResponse:
    if service.status().last_refreshed_at is None:
        # nothing fetched yet (scheduler disabled or still warming up)
        logger.info("news_list_initial_refresh")
        await service.refresh_now()
    return _list_response(service.list())


@router.get("/search", response_model=NewsListResponse)
async def search_news(
    q: str = Query(..., min_length=1, description="Case-insensitive match on headline or summary."),
    service: NewsService = Depends(get_news_service),
) -> NewsListResponse:
    return _list_response(service.search(q))


@router.get("/status", response_model=NewsStatusResponse)
async def get_news_status(service: NewsService = Depends(get_news_service)) -> NewsStatusResponse:
    status = service.status()
    return NewsStatusResponse(last_refreshed_at=status.last_refreshed_at, item_count=status.item_count)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_news(service: NewsService = Depends(get_news_service)) -> RefreshResponse:
    result = await service.refresh_now()
    return RefreshResponse(count=result.count, timestamp=result.timestamp)


@router.get("/{item_id}", response_model=NewsItemOut)
async def get_news_item(
    item_id: str = Path(..., min_length=1),
    service: NewsService = Depends(get_news_service),
) -> NewsItemOut:
    item = service.get_by_id(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Article not found")
    return NewsItemOut.from_item(item)
