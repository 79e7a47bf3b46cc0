# backend/app/main.py
"""
CombatBooking API entry point.

Wires the booking, webhook, health and metrics routers into a single FastAPI
application with the unified problem-details error envelope.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.constants import BRAND_NAME
from .database import is_sqlite_url
from .errors import register_error_handlers
from .routes import bookings, health, prometheus, stripe_webhooks

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = "Booking, payment and notification backend for combat-sports training camps"
API_VERSION = "1.0.0"


def _validate_startup_config() -> None:
    if not settings.stripe_configured:
        logger.warning("STRIPE_SECRET_KEY is not set; payment endpoints will return 503")
    if not settings.webhook_secret:
        logger.warning("STRIPE_WEBHOOK_SECRET is not set; payment webhooks will be rejected")
    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY is not set; booking emails will not be delivered")


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{API_TITLE} starting up...")
    logger.info(f"Environment: {settings.environment}")
    _validate_startup_config()

    if is_sqlite_url(settings.database_url) and not settings.is_testing:
        from .init_db import create_tables

        create_tables()

    yield

    logger.info(f"{API_TITLE} shutting down...")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
register_error_handlers(app)

_ALLOWED_ORIGINS = [settings.frontend_url]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)
logger.info("CORS allow_origins=%s allow_credentials=%s", _ALLOWED_ORIGINS, True)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings.router, prefix="/bookings")
api_v1.include_router(stripe_webhooks.router)
api_v1.include_router(health.router)
app.include_router(api_v1)

# Load balancers probe the unversioned health path
app.include_router(health.router, include_in_schema=False)
app.include_router(prometheus.router)


@app.get("/")
def root() -> dict[str, str]:
    return {"message": f"Welcome to the {API_TITLE}", "version": API_VERSION, "docs": "/docs"}


fastapi_app = app

__all__ = ["app", "fastapi_app"]
