"""Main application entry point."""

import asyncio
import logging
import os
import time
import traceback
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.routes import api_router
from app.core.config import get_settings
from app.core.exceptions import AppException, TooManyRequestsException
from app.core.rate_limiter import get_client_ip
from app.db.session import close_db, init_db
from app.jobs.cleanup import cleanup_loop

# ─────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────
settings = get_settings()

log_level = logging.DEBUG if settings.debug else logging.INFO

logging.basicConfig(
    level=log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("accounts")

# Suppress verbose SQLAlchemy logs in production
if not settings.debug:
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def error_response(status_code: int, message: str, exc: Exception = None, headers: dict = None) -> JSONResponse:
    """Render the error envelope; the stack is only exposed in debug mode."""
    content = {"message": message}
    if settings.debug and exc is not None:
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=status_code, content=content, headers=headers)


# ─────────────────────────────────────────────────────────────
# Request logging - one line per request, traceback for anything unhandled
# ─────────────────────────────────────────────────────────────
async def request_logging_middleware(request: Request, call_next):
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as exc:
        logger.exception(
            f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {exc}"
        )
        response = error_response(500, "Internal Server Error", exc)

    duration_ms = (time.perf_counter() - started) * 1000
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} "
        f"({duration_ms:.1f}ms) ip={get_client_ip(request)}"
    )
    return response


# ─────────────────────────────────────────────────────────────
# Lifespan: Startup + Shutdown
# ─────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    # ─── Startup ───
    logger.info(f"Starting up {settings.app_name} v{app.version}...")

    await init_db()
    logger.info("Database tables initialized")

    cleanup_task = None
    if settings.cleanup_enabled:
        cleanup_task = asyncio.create_task(cleanup_loop(settings.cleanup_interval_minutes))

    logger.info("Application startup complete")
    yield

    # ─── Shutdown ───
    logger.info("Shutting down application...")
    if cleanup_task is not None:
        cleanup_task.cancel()
        with suppress(asyncio.CancelledError):
            await cleanup_task
    await close_db()
    logger.info("Database connections closed")


# ─────────────────────────────────────────────────────────────
# FastAPI App
# ─────────────────────────────────────────────────────────────
app = FastAPI(
    title=settings.app_name,
    description="User accounts, email verification and JWT sessions",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,  # Hide docs in prod
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
    default_response_class=JSONResponse,
)


# ─────────────────────────────────────────────────────────────
# Exception handlers - every error uses the same envelope
# ─────────────────────────────────────────────────────────────
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    headers = None
    if isinstance(exc, TooManyRequestsException):
        headers = {"Retry-After": str(exc.retry_after)}
    return error_response(exc.status_code, exc.message, exc, headers)


@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    logger.warning(f"Concurrent update rejected on {request.method} {request.url.path}")
    return error_response(409, "The account was modified by another request, please retry", exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Validation error"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return error_response(400, message, exc)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail), exc, getattr(exc, "headers", None))


# ─────────────────────────────────────────────────────────────
# Security & Performance Middleware
# ─────────────────────────────────────────────────────────────
app.add_middleware(BaseHTTPMiddleware, dispatch=request_logging_middleware)

# Trusted hosts (prevent DNS rebinding, host header attacks)
app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.allowed_hosts_list,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=600,
)

# ─────────────────────────────────────────────────────────────
# Static Files (uploaded images)
# ─────────────────────────────────────────────────────────────
os.makedirs(settings.upload_dir, exist_ok=True)
app.mount(
    "/uploads",
    StaticFiles(directory=settings.upload_dir, html=False),
    name="uploads",
)

# ─────────────────────────────────────────────────────────────
# API Router
# ─────────────────────────────────────────────────────────────
app.include_router(api_router, prefix="/api/v1")


# ─────────────────────────────────────────────────────────────
# Run with Uvicorn (only when running directly)
# ─────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug",
    )
