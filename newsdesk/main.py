"""
Newsdesk API - FastAPI application entry point.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .database import engine, Base
from .middleware import SecurityHeadersMiddleware, RequestLoggingMiddleware
from .limiter import limiter
from .logging_config import api_logger
from . import models  # noqa: F401  registers tables on Base
from .responses import api_exception_handler, validation_exception_handler
from .routes import (
    auth_router,
    admins_router,
    posts_router,
    approvals_router,
    categories_router,
    scheduler_router,
    rss_router,
    subscriptions_router,
    notifications_router,
    push_router,
    activity_router,
    health_router,
)
from .worker.scheduler import task_scheduler

settings = get_settings()

# Create tables (in production, use Alembic migrations instead)
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start and stop the background task scheduler"""
    if settings.scheduler_enabled:
        task_scheduler.start()
    else:
        api_logger.info("Task scheduler disabled")

    yield

    task_scheduler.stop()


app = FastAPI(
    title="Newsdesk API",
    description="Backend API for the Newsdesk financial news CMS",
    version="1.0.0",
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(StarletteHTTPException, api_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, api_exception_handler)

app.add_middleware(SecurityHeadersMiddleware)

# Request logging middleware (only in debug mode)
if settings.debug:
    app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "Accept",
        "Origin",
        "X-Requested-With",
    ],
    max_age=3600,
)

# Routes
app.include_router(auth_router)
app.include_router(admins_router)
app.include_router(posts_router)
app.include_router(approvals_router)
app.include_router(categories_router)
app.include_router(scheduler_router)
app.include_router(rss_router)
app.include_router(subscriptions_router)
app.include_router(notifications_router)
app.include_router(push_router)
app.include_router(activity_router)
app.include_router(health_router)


@app.get("/")
def root():
    return {
        "message": "Newsdesk API",
        "docs": "/api/docs" if settings.debug else "Disabled in production",
    }
