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
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.settings import settings
from src.bm_common.database import async_session_factory, engine
from src.bm_common.errors import AppError, InternalError
from src.bm_common.redis_client import close_redis, get_redis
from src.bm_common.response import ApiResponse, error_response, success_response
from src.bm_gateway.middleware.request_log import RequestLogMiddleware
from src.bm_ledger.application.service import close_ledger_client, get_ledger_client
from src.bm_market.api.router import router as market_router
from src.bm_reconciliation.api.router import router as reconciliation_router
from src.bm_reconciliation.application.engine import ReconciliationEngine
from src.bm_reconciliation.application.scheduler import ReconciliationScheduler
from src.bm_transaction.api.router import router as transaction_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, start the sweep loop. Shutdown: reverse order."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()

    scheduler: ReconciliationScheduler | None = None
    if settings.RECONCILE_ENABLED:
        scheduler = ReconciliationScheduler(
            ReconciliationEngine(async_session_factory, get_ledger_client())
        )
        scheduler.start()
    yield
    if scheduler is not None:
        await scheduler.stop()
    await close_ledger_client()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version=VERSION,
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


def _envelope(request: Request, status_code: int, code: int, message: str) -> JSONResponse:
    resp = error_response(code, message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=status_code,
        content=resp.model_dump(by_alias=True),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning("%s: %s", type(exc).__name__, exc.message)
    return _envelope(request, exc.http_status, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return _envelope(request, 400, 1001, "; ".join(parts) or "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = 1000 + exc.status_code % 100 if exc.status_code < 500 else 9002
    return _envelope(request, exc.status_code, code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    err = InternalError()
    return _envelope(request, err.http_status, err.code, err.message)


app.include_router(market_router, prefix="/api/v1")
app.include_router(transaction_router, prefix="/api/v1")
app.include_router(reconciliation_router, prefix="/api/v1")


@app.get("/health")
async def health(request: Request) -> ApiResponse:
    resp = success_response(
        {"status": "ok", "version": VERSION, "network": settings.LEDGER_NETWORK}
    )
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
