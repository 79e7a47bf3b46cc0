# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the CombatBooking platform.

Usage:
    from app.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_booking_repository(db)
    booking = repository.get_booking_with_details(booking_id)
"""

from .base_repository import BaseRepository
from .booking_access_token_repository import BookingAccessTokenRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .gym_repository import GymRepository, PackageRepository
from .profile_repository import ProfileRepository

__all__ = [
    "BaseRepository",
    "BookingAccessTokenRepository",
    "BookingRepository",
    "GymRepository",
    "PackageRepository",
    "ProfileRepository",
    "RepositoryFactory",
]
