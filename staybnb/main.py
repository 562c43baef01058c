import asyncio
import datetime
import logging
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401  registers the tables on Base.metadata
from .booking_scheduler import run_booking_scheduler
from .config import Settings
from .database import Base, build_engine, build_session_factory
from .errors import AppError
from .payments import RazorpayGateway
from .routers import auth_router, booking_router, listing_router, review_router

# Set up a logger
logger = logging.getLogger("staybnb")

# Leading location segment FastAPI adds before the field name
_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


def _error_body(code: str, message: str, field: Optional[str] = None) -> dict:
    body = {"success": False, "error": code, "message": message}
    if field:
        body["field"] = field
    return body


def _register_exception_handlers(app: FastAPI):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message, exc.field),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(part) for part in first.get("loc", ()) if part not in _LOCATION_PREFIXES]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body("VALIDATION_ERROR", first.get("msg", "Invalid request"), ".".join(loc) or None),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code = "NOT_FOUND" if exc.status_code == status.HTTP_404_NOT_FOUND else "HTTP_ERROR"
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(code, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("INTERNAL_ERROR", "Internal Server Error"),
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles application startup and shutdown events.
    """
    settings: Settings = app.state.settings
    logger.info("StayBnB API starting up...")

    # This is not strictly necessary with Alembic but ensures tables exist
    Base.metadata.create_all(bind=app.state.engine)

    redis_client = None
    app.state.rate_limit_active = False
    if settings.RATE_LIMIT_ENABLED:
        try:
            redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8")
            await FastAPILimiter.init(redis_client)
            app.state.rate_limit_active = True
            logger.info("FastAPILimiter initialized with Redis.")
        except Exception as e:
            logger.error(f"Failed to initialize FastAPILimiter: {e}")

    scheduler_task = None
    if settings.STAY_COMPLETION_INTERVAL_SECONDS > 0:
        scheduler_task = asyncio.create_task(
            run_booking_scheduler(app.state.session_factory, settings.STAY_COMPLETION_INTERVAL_SECONDS)
        )

    yield  # The application is now running

    # --- Code to run on shutdown ---
    logger.info("StayBnB API shutting down...")

    if scheduler_task is not None:
        scheduler_task.cancel()
        try:
            await scheduler_task
        except asyncio.CancelledError:
            logger.info("Booking scheduler task successfully cancelled.")

    if redis_client is not None:
        await redis_client.close()

    app.state.payment_gateway.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Builds the application with its own engine, session factory and payment gateway.
    Run with `uvicorn --factory staybnb.main:create_app`.
    """
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="StayBnB API",
        description="Short-term rental marketplace: listings, bookings, payments and reviews.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = build_engine(settings.DATABASE_URL)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.payment_gateway = RazorpayGateway(settings)
    app.state.rate_limit_active = False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_exception_handlers(app)

    app.include_router(auth_router.router)
    app.include_router(listing_router.router)
    app.include_router(booking_router.router)
    app.include_router(review_router.router)

    @app.get("/")
    def read_root():
        return {"message": "Welcome to the StayBnB API"}

    @app.get("/api/health")
    def health_check():
        return {
            "success": True,
            "message": "Server is running",
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }

    return app
