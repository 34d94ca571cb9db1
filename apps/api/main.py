"""
IdeaFlow API - FastAPI Backend
Main application entry point: credits, subscriptions, Paddle billing and AI content services.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings, validate_security_settings
from database import Base, async_session_maker, engine
import models  # noqa: F401
from routers import (
    health,
    auth,
    catalog,
    credits,
    subscriptions,
    paddle,
    ai_services,
    content_scheduler,
)
from services.catalog import seed_catalog

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting IdeaFlow API")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database schema verified")
        except Exception:
            logger.exception("Database bootstrap skipped")
    if settings.SEED_CATALOG_ON_STARTUP:
        try:
            async with async_session_maker() as session:
                seeded = await seed_catalog(session)
            logger.info("Catalog seeded: %s services, %s plans", seeded["services"], seeded["plans"])
        except Exception:
            logger.exception("Catalog seeding skipped")
    yield
    # Shutdown
    logger.info("Shutting down IdeaFlow API")


app = FastAPI(
    title="IdeaFlow API",
    description="Credits, subscriptions and metered AI content services",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(catalog.router, prefix="/services", tags=["Services"])
app.include_router(credits.router, prefix="/credits", tags=["Credits"])
app.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
app.include_router(paddle.router, prefix="/paddle", tags=["Paddle"])
app.include_router(ai_services.router, prefix="/ai-services", tags=["AI Services"])
app.include_router(
    content_scheduler.router,
    prefix="/ai-services/content-scheduler",
    tags=["Content Scheduler"],
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "IdeaFlow API",
        "version": "0.1.0",
        "status": "running"
    }
