"""
Database models for the CombatBooking platform.

Importing this package registers every table on ``Base.metadata``.
"""

from .booking import AWAITING_DECISION_STATUSES, Booking, BookingStatus, ExperienceLevel
from .booking_access_token import BookingAccessToken
from .gym import Gym, GymStatus, Package, PackageType, PackageVariant, VerificationStatus
from .profile import Profile, UserRole

__all__ = [
    "AWAITING_DECISION_STATUSES",
    "Booking",
    "BookingAccessToken",
    "BookingStatus",
    "ExperienceLevel",
    "Gym",
    "GymStatus",
    "Package",
    "PackageType",
    "PackageVariant",
    "Profile",
    "UserRole",
    "VerificationStatus",
]
