# Booking and webhook routers are mounted under /api/v1 in main.py;
# health and prometheus are also exposed unversioned.
from . import (
    bookings as bookings,
    health as health,
    prometheus as prometheus,
    stripe_webhooks as stripe_webhooks,
)

__all__ = ["bookings", "health", "prometheus", "stripe_webhooks"]
