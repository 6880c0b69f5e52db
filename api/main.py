"""
api/main.py -- FastAPI application factory for the dealership back office.

Run with:  uvicorn asgi:app --reload

create_app(settings) builds a fresh application from an explicit Settings
object. The settings, the password hasher, the token service and the admin
store are all hung off app.state; route handlers and dependencies read them
from there and never from module globals.

Middleware stack (outermost to innermost; Starlette wraps the last one added
outermost):
  1. log_requests          -- method, path, status, latency per request
  2. CORSMiddleware        -- adds CORS headers for the admin frontends
  3. SlowAPIMiddleware     -- default limits; per-route limits run in the
                              @limiter.limit wrappers

Lifespan opens the admin store on startup and disposes of it on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.admin import router as admin_router
from auth.errors import StoreUnavailable
from auth.passwords import PasswordHasher
from auth.store import AdminStore
from auth.tokens import TokenService
from core.config import Settings

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("carz.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the admin store on startup and close it on shutdown.

    A database that is down at startup is logged but does not abort startup:
    login and protected routes answer 503 until it comes back, and the store
    picks it up on the next request without a restart.
    """
    settings: Settings = app.state.settings
    logger.info("Back-office API starting up (debug=%s)", settings.debug)
    app.state.admin_store = AdminStore(settings.database_url)
    try:
        if not app.state.admin_store.has_admins():
            logger.warning("No admin accounts provisioned -- run scripts/create_admin.py")
    except StoreUnavailable:
        logger.warning("Admin store unavailable at startup; requests will get 503 until it recovers")

    yield

    app.state.admin_store.close()
    logger.info("Back-office API shutdown complete")


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Plain def: SlowAPIMiddleware may call it directly without awaiting,
    and Starlette runs sync handlers in the threadpool.
    """
    retry_after = int(getattr(exc, "retry_after", 15 * 60))
    logger.warning("Rate limit hit on %s from %s", request.url.path, request.client.host if request.client else "?")
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc.detail),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    """Return 503 when the credential store fails.

    Distinct from the 401 credential failure so clients know to retry later.
    """
    logger.error("Credential store unavailable on %s %s: %s", request.method, request.url.path, exc)
    response = JSONResponse(
        status_code=503,
        content=ErrorResponse(
            error=ErrorDetail(
                code="store_unavailable",
                message="Service temporarily unavailable. Try again later.",
            )
        ).model_dump(exclude_none=True),
    )
    response.headers["Retry-After"] = "30"
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation.

    The offending input values are left out of the detail so a rejected
    password never echoes back.
    """
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(errors),
            )
        ).model_dump(),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers and dependencies raise HTTPException with a dict detail.
    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    headers = getattr(exc, "headers", None)
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit and no auth -- load balancers must always reach it.
# ---------------------------------------------------------------------------


async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=API_VERSION, timestamp=datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(settings: Settings) -> FastAPI:
    """Build the back-office API from an explicit Settings object.

    The hasher and token service are created here, once per app, from the
    settings; the store is opened in lifespan because it owns connections.
    """
    app = FastAPI(
        title="Carz Back Office API",
        description="Administrator authentication for the dealership back office.",
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )

    app.state.settings = settings
    app.state.hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
    # SlowAPI looks for app.state.limiter by convention.
    app.state.limiter = limiter

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )
    app.middleware("http")(log_requests)

    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(StoreUnavailable, store_unavailable_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(admin_router, prefix="/api/admin", tags=["Admin Auth"])
    app.add_api_route("/api/health", health, methods=["GET"], tags=["Health"], response_model=HealthResponse)

    return app
