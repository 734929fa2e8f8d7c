# app/main.py
from __future__ import annotations

import uuid
from datetime import timedelta

from fastapi import APIRouter, FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from app.config import get_settings
from app.core.logging import configure_logging, get_logger
from app.core.request_id import clear_request_id, set_request_id
from services.news_service import get_news_service

from api.routers.news import router as news_router

settings = get_settings()
configure_logging(service_name="api", level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger()

app = FastAPI(
    title="News Aggregator",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.on_event("startup")
async def _startup_scheduler() -> None:
    if not settings.NEWS_SCHEDULER_ENABLED:
        logger.info("news_scheduler_disabled")
        return
    get_news_service().start_scheduler(timedelta(minutes=settings.NEWS_REFRESH_INTERVAL_MINUTES))


@app.on_event("shutdown")
async def _shutdown_cleanup() -> None:
    await get_news_service().shutdown()


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        set_request_id(req_id)

        logger.info("request_started", method=request.method, path=str(request.url.path))
        try:
            response: StarletteResponse = await call_next(request)
        except Exception as exc:
            logger.error("request_exception", error=str(exc.__class__.__name__))
            clear_request_id()
            raise
        logger.info("request_ended", status_code=response.status_code)
        response.headers["X-Request-Id"] = req_id
        clear_request_id()
        return response


app.add_middleware(RequestIdMiddleware)


@app.get("/health")
async def health() -> dict:
    return {"ok": True, "version": settings.APP_VERSION}


api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(news_router)
app.include_router(api_v1_router)
