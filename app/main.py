from contextlib import asynccontextmanager
from typing import Optional
import logging

import redis
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import auth, health, products
from app.config import Settings, get_settings
from app.database import Database
from app.exceptions import SweetShopError
from app.middleware.request_logging import RequestLoggingMiddleware
from app.utils.cache import CacheService

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def error_body(message: str, status_code: int, details: Optional[list] = None) -> dict:
    error = {"message": message, "status": status_code}
    if details:
        error["details"] = details
    return {"error": error}


async def sweet_shop_error_handler(request: Request, exc: SweetShopError):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.status_code, exc.details),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", status.HTTP_400_BAD_REQUEST, details),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = "Route not found"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR),
    )


def create_app(
    settings: Optional[Settings] = None,
    cache_client: Optional[redis.Redis] = None,
) -> FastAPI:
    """
    Build the application.

    The database and cache handles are opened in the lifespan and stored on
    `app.state`; tests pass their own settings and Redis client.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan context manager for startup and shutdown events.
        """
        # Startup
        logger.info("Starting up application...")

        database = Database(settings.DATABASE_URL, timeout=settings.STORE_TIMEOUT_SECONDS)
        logger.info("Creating database tables...")
        database.create_all()
        logger.info("Database tables created successfully")

        if cache_client is not None:
            cache = CacheService(cache_client, ttl=settings.CACHE_TTL)
        else:
            cache = CacheService.from_url(settings.REDIS_URL, ttl=settings.CACHE_TTL)

        app.state.database = database
        app.state.cache = cache

        yield

        # Shutdown
        logger.info("Shutting down application...")
        cache.close()
        database.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        description="""
    Backend API for the Sweet Shop:

    - **Auth**: registration and login with bearer tokens
    - **Products**: listing, search and admin CRUD
    - **Inventory**: purchase and restock with oversell protection

    ## Stock Management & Race Condition Handling
    Purchases decrement stock with a single conditional UPDATE
    (`... WHERE quantity >= :requested`). When several users buy the last
    units at once, only the requests that still fit succeed.

    Send an `Idempotency-Key` header to make retries of a purchase or restock
    safe: a repeated key returns the original receipt.
    """,
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SweetShopError, sweet_shop_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Include API routers
    app.include_router(health.router, prefix="/api/v1")
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(products.router, prefix="/api/v1")

    @app.get("/", tags=["Root"])
    def root():
        """Root endpoint with API information."""
        return {
            "name": settings.APP_NAME,
            "version": "1.0.0",
            "docs": "/docs",
            "redoc": "/redoc",
            "health": "/api/v1/health/"
        }

    return app


configure_logging(get_settings().LOG_LEVEL)
app = create_app()
