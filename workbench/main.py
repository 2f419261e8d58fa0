"""
Main FastAPI application.

This is the entry point for the API server.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from workbench.core.config import settings
from workbench.errors import AppError, app_error_handler
from workbench.routers import (
    applications,
    campaigns,
    communications,
    evaluations,
    health,
    pathway_templates,
    recommendations,
    scheduling,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup and shutdown; connections are opened lazily per request."""
    logger.info("Starting %s...", settings.APP_NAME)
    yield
    logger.info("Shutting down %s...", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Campaign workbench: pathway templates, application progression and evaluation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_exception_handler(AppError, app_error_handler)

app.include_router(health.router, tags=["Health"])
app.include_router(pathway_templates.router)
app.include_router(pathway_templates.phase_router)
app.include_router(campaigns.program_router)
app.include_router(campaigns.router)
app.include_router(applications.router)
app.include_router(evaluations.router)
app.include_router(recommendations.router)
app.include_router(recommendations.public_router)
app.include_router(scheduling.router)
app.include_router(communications.router)
