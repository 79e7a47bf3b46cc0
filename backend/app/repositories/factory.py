# backend/app/repositories/factory.py
"""
Repository Factory for the CombatBooking platform.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from sqlalchemy.orm import Session

from .booking_access_token_repository import BookingAccessTokenRepository
from .booking_repository import BookingRepository
from .gym_repository import GymRepository, PackageRepository
from .profile_repository import ProfileRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        return BookingRepository(db)

    @staticmethod
    def create_access_token_repository(db: Session) -> BookingAccessTokenRepository:
        return BookingAccessTokenRepository(db)

    @staticmethod
    def create_gym_repository(db: Session) -> GymRepository:
        return GymRepository(db)

    @staticmethod
    def create_package_repository(db: Session) -> PackageRepository:
        return PackageRepository(db)

    @staticmethod
    def create_profile_repository(db: Session) -> ProfileRepository:
        return ProfileRepository(db)
