"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import settings
from src.up_bid.api.router import router as bid_router
from src.up_common.database import check_database, engine
from src.up_common.errors import AppError
from src.up_common.redis_client import close_redis, ping_redis
from src.up_common.response import error_response
from src.up_gateway.middleware.request_log import RequestLogMiddleware
from src.up_offer.api.router import router as offer_router
from src.up_payment.api.connect_router import router as connect_router
from src.up_payment.api.webhook_router import router as webhook_router
from src.up_sweep.api.router import router as cron_router
from src.up_widget.api.router import router as widget_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Fail fast when PostgreSQL or Redis is unreachable; dispose both on shutdown."""
    await check_database()
    await ping_redis()
    logger.info("%s started (gateway=%s)", settings.APP_NAME, settings.PAYMENT_GATEWAY)
    yield
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    resp = error_response(exc.code, exc.message, request)
    return JSONResponse(status_code=exc.http_status, content=resp.model_dump())


app.include_router(bid_router, prefix="/api/v1")
app.include_router(offer_router, prefix="/api/v1")
app.include_router(widget_router, prefix="/api/v1")
app.include_router(cron_router, prefix="/api/v1")
app.include_router(webhook_router, prefix="/api/v1")
app.include_router(connect_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
