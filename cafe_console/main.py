import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError

from .api_client import create_http_client
from .cache import QueryCache
from .config import settings
from .exceptions import ConsoleError, NavigationRequired, QuerySuperseded
from .querying import LatestQueryGate
from .routers import analytics_router, auth_router, booking_router, cafe_router, item_router, redeem_router, slot_router
from .schemas import Notice
from .session import clear_cookie

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("cafe_console")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Opens the shared API connection pool and the read cache.
    """
    logger.info("Café console starting up...")

    app.state.http_client = create_http_client()
    app.state.query_gate = LatestQueryGate()

    redis_client = None
    if settings.CACHE_ENABLED:
        try:
            redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
            logger.info("Read cache backed by Redis.")
        except Exception as e:
            logger.error(f"Failed to set up Redis, running without read cache: {e}")
            redis_client = None
    app.state.query_cache = QueryCache(redis_client)

    yield

    logger.info("Café console shutting down...")
    await app.state.http_client.aclose()
    if redis_client is not None:
        await redis_client.aclose()


app = FastAPI(
    title="Café Console",
    description="Bookings, slots, redemptions and reports for café admins and staff.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(ConsoleError)
async def console_error_handler(request: Request, exc: ConsoleError):
    if isinstance(exc, QuerySuperseded):
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    if isinstance(exc, NavigationRequired):
        response = RedirectResponse(exc.location, status_code=status.HTTP_303_SEE_OTHER)
        if exc.clear_credential:
            clear_cookie(response)
        return response

    if exc.category == "transport":
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path}: {exc.error_code} {exc.message}")

    notice = Notice(
        level="error" if exc.category in ("transport", "internal") else "warning",
        category=exc.category,
        code=exc.error_code,
        message=exc.message,
        retryable=exc.retryable,
        details=exc.details,
    )
    return JSONResponse(status_code=exc.status_code, content={"notice": notice.model_dump()})


@app.exception_handler(ValidationError)
async def payload_error_handler(request: Request, exc: ValidationError):
    # An API payload that does not match the expected shape
    logger.error(f"{request.method} {request.url.path}: unreadable API payload: {exc}")
    notice = Notice(
        level="error",
        category="transport",
        code="MALFORMED_RESPONSE",
        message="The café service sent an unreadable response.",
        retryable=True,
    )
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"notice": notice.model_dump()})


app.include_router(auth_router.router)
app.include_router(booking_router.router)
app.include_router(slot_router.router)
app.include_router(redeem_router.router)
app.include_router(item_router.router)
app.include_router(analytics_router.router)
app.include_router(cafe_router.router)


@app.get("/health")
def health():
    return {"status": "ok"}
