# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Marketplace API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.exceptions import (
    MarketplaceException,
    marketplace_exception_handler,
    unexpected_exception_handler,
    validation_exception_handler,
)
from app.routers import (
    admin,
    applications,
    health,
    payments,
    scores,
    tasks,
    verification,
    webhooks,
)
from app.auth import routes as auth_routes

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown.
    """
    logger.info(f"Starting Marketplace API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")

    yield

    logger.info("Shutting down Marketplace API")


# Create FastAPI application
app = FastAPI(
    title="Marketplace API",
    description="""
## Consultant Marketplace Backend

Stores sell through independent consultants. This API ranks consultants and
splits each customer payment between consultant and store.

### Consultant Score

A 0-10 score built from customer ratings (40%), sales activity (35%) and
training completion (25%), mapped to a tier (Diamond, Gold, Silver, Bronze,
Beginner). Stores use it to review applications; consultants never see
their own score.

### Split Payments

1. **Create** - `POST /api/v1/payments` opens a Stripe PaymentIntent and records the commission split
2. **Pay** - the customer completes payment with the returned client secret
3. **Settle** - Stripe's webhook confirms the payment; consultant and store shares are transferred
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Auth",
            "description": "Authentication endpoints for verifying JWT tokens",
        },
        {
            "name": "Scores",
            "description": "Consultant scores and public metrics",
        },
        {
            "name": "Admin",
            "description": "Score statistics and bulk recalculation",
        },
        {
            "name": "Applications",
            "description": "Consultant applications to stores, ranked by score",
        },
        {
            "name": "Payments",
            "description": "Split payments and their lifecycle",
        },
        {
            "name": "Webhooks",
            "description": "Stripe event intake",
        },
        {
            "name": "Verification",
            "description": "Signup verification codes",
        },
        {
            "name": "Tasks",
            "description": "Track async task progress",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(MarketplaceException)
async def handle_marketplace_exception(request: Request, exc: MarketplaceException):
    """Handle custom Marketplace exceptions."""
    return await marketplace_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_exception(request: Request, exc: RequestValidationError):
    return await validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    return await unexpected_exception_handler(request, exc)


# =============================================================================
# Routers
# =============================================================================

# Authentication endpoints
app.include_router(
    auth_routes.router,
    prefix="/api/v1",
    tags=["Auth"]
)

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

# Consultant score endpoints
app.include_router(
    scores.router,
    prefix="/api/v1/consultants",
    tags=["Scores"]
)

# Admin score endpoints
app.include_router(
    admin.router,
    prefix="/api/v1/admin",
    tags=["Admin"]
)

# Store application endpoints
app.include_router(
    applications.router,
    prefix="/api/v1/stores",
    tags=["Applications"]
)

# Split payment endpoints
app.include_router(
    payments.router,
    prefix="/api/v1/payments",
    tags=["Payments"]
)

# Stripe webhooks
app.include_router(
    webhooks.router,
    prefix="/api/v1/webhooks",
    tags=["Webhooks"]
)

# Signup verification endpoints
app.include_router(
    verification.router,
    prefix="/api/v1/verification",
    tags=["Verification"]
)

# Task status endpoints
app.include_router(
    tasks.router,
    prefix="/api/v1/tasks",
    tags=["Tasks"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "Marketplace API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
