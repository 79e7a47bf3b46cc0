# backend/app/routes/health.py
"""
Health check endpoints for the application.

Used by load balancers and uptime monitors; the health check also pings the
database and reports whether the payment and email providers are configured.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..core.config import settings
from ..core.constants import BRAND_NAME

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


class HealthCheckResponse(BaseModel):
    status: str
    service: str
    timestamp: datetime
    database: bool
    payments_configured: bool
    email_configured: bool


@router.get("/health", response_model=HealthCheckResponse)
def health_check(response: Response, db: Session = Depends(get_db)) -> HealthCheckResponse:
    """
    Basic health check endpoint.

    Returns:
        ``healthy`` when the database answers, ``degraded`` otherwise.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        db_status = False

    response.headers["Cache-Control"] = "no-store"
    return HealthCheckResponse(
        status="healthy" if db_status else "degraded",
        service=f"{BRAND_NAME.lower()}-api",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        payments_configured=settings.stripe_configured,
        email_configured=bool(settings.resend_api_key),
    )
