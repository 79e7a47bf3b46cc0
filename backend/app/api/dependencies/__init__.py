# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_user, get_current_user_optional, require_admin, require_roles
from .database import get_db
from .services import (
    get_access_token_service,
    get_booking_service,
    get_notification_service,
    get_payment_gateway,
    get_reconciliation_service,
    get_stripe_webhook_service,
)

__all__ = [
    # Auth
    "get_current_user",
    "get_current_user_optional",
    "require_admin",
    "require_roles",
    # Database
    "get_db",
    # Services
    "get_access_token_service",
    "get_booking_service",
    "get_notification_service",
    "get_payment_gateway",
    "get_reconciliation_service",
    "get_stripe_webhook_service",
]
