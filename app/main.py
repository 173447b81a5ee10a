"""Class Routine Review: FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app import models  # noqa: F401  registers tables on Base
from app.api.routes import ai, analytics, deadlines, weekly_review
from app.core.config import settings
from app.core.errors import CodedHTTPException, coded_exception_handler
from app.core.logging_config import setup_logging
from app.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from app.core.rate_limit import limiter
from app.db.database import Base, engine
from app.services.ai_service import is_configured
from app.services.calendar_service import get_calendar

setup_logging()
logger = logging.getLogger(__name__)

# Create all tables on startup
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    calendar = get_calendar()
    logger.info(
        f"{settings.app_name} started | env={settings.environment} | "
        f"semester={calendar.semester or 'none'} | weeks={len(calendar.weeks)} | "
        f"ai_configured={is_configured()}"
    )
    yield
    logger.info(f"{settings.app_name} shutting down")


app = FastAPI(
    title=settings.app_name,
    description="Aggregation, streak and risk analysis over daily class routine checks.",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(CodedHTTPException, coded_exception_handler)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

_cors_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
if _cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Routers
app.include_router(analytics.router, prefix=settings.api_prefix)
app.include_router(weekly_review.router, prefix=settings.api_prefix)
app.include_router(deadlines.router, prefix=settings.api_prefix)
app.include_router(ai.router, prefix=settings.api_prefix)


@app.get("/health")
def health():
    return {"status": "ok"}
