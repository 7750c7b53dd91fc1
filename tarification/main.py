"""
Nomadays Tarification API - Main application entry point.

Pricing rules of the back office: tarification of cotations, payment
terms, accommodation season/rate matching and early bird discounts.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tarification import __version__
from tarification.config import get_settings
from tarification.api import (
    tenants,
    cotations,
    payment_terms,
    accommodations,
)

settings = get_settings()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting %s...", settings.app_name)

    if settings.create_tables:
        from tarification.database import init_models

        await init_models()
        logger.info("Database tables created")

    yield

    # Shutdown
    logger.info("Shutting down %s...", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="""
    ## Nomadays Tarification API

    Pricing rules of the DMC back office:

    - **Tarification**: selling prices, margins, commissions and VAT per cotation
    - **Payment Terms**: installment schedules with due dates
    - **Seasons & Rates**: season resolution and rate lookup for accommodations
    - **Multi-tenant Architecture**: every request carries an `X-Tenant-ID` header
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tenants.router, prefix="/tenants", tags=["Tenants"])
app.include_router(cotations.router, prefix="/cotations", tags=["Cotations"])
app.include_router(payment_terms.router)  # Payment terms CRUD
app.include_router(accommodations.router)  # /accommodations endpoints


@app.get("/", tags=["Health"])
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": __version__,
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "database": settings.database_url.split(":", 1)[0],
    }
