"""
Guest booking access tokens ("magic links").

A token is 32 random bytes rendered as hex. Only its SHA-256 hash is
persisted, together with the email it was issued to and its expiry. Several
live tokens per booking are normal: every confirmation email mints a new one.
"""

from dataclasses import dataclass
from datetime import datetime
import hashlib
import logging
import secrets
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import ACCESS_TOKEN_BYTES, ACCESS_TOKEN_MAX_DAYS
from ..core.exceptions import (
    AccessTokenExpiredException,
    AccessTokenNotFoundException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import days_from_now, ensure_utc, utc_now
from ..models.booking import Booking
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    booking_id: str
    email: str
    expires_at: datetime


@dataclass(frozen=True)
class ResolvedAccess:
    booking_id: str
    email: str
    expires_at: datetime


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def build_magic_link(token: str) -> str:
    return f"{settings.frontend_url}/bookings/access/{token}"


class AccessTokenService(BaseService):
    """Issues and resolves guest access tokens."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.token_repository = RepositoryFactory.create_access_token_repository(db)

    @BaseService.measure_operation("issue_access_token")
    def issue(
        self,
        booking_id: str,
        email: str,
        expires_in_days: Optional[int] = None,
        *,
        single_use: bool = False,
    ) -> IssuedToken:
        """
        Mint a token bound to ``email``.

        The email must match the booking's guest email (case-insensitive) at
        issuance; later changes to the booking do not affect issued tokens.

        Raises:
            NotFoundException: unknown booking
            ForbiddenException: email does not match the booking
            ValidationException: lifetime outside 0..365 days
        """
        days = settings.access_token_default_days if expires_in_days is None else expires_in_days
        if days < 0 or days > ACCESS_TOKEN_MAX_DAYS:
            raise ValidationException(
                f"expiresInDays must be between 0 and {ACCESS_TOKEN_MAX_DAYS}",
                code="INVALID_TOKEN_LIFETIME",
            )

        booking = self.booking_repository.get_by_id(booking_id, load_relationships=False)
        if not booking:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")

        normalized = (email or "").strip().lower()
        if not normalized or (booking.guest_email or "").lower() != normalized:
            raise ForbiddenException("Email does not match booking")

        with self.transaction():
            return self._mint(booking, normalized, days, single_use)

    def issue_for_booking(self, booking: Booking, expires_in_days: Optional[int] = None) -> IssuedToken:
        """Mint a token for the guest email already on file (confirmation emails)."""
        if not booking.guest_email:
            raise ValidationException("Booking has no guest email", code="NO_GUEST_EMAIL")
        days = settings.access_token_default_days if expires_in_days is None else expires_in_days
        return self._mint(booking, booking.guest_email.lower(), days, False)

    def _mint(self, booking: Booking, email: str, days: int, single_use: bool) -> IssuedToken:
        token = secrets.token_hex(ACCESS_TOKEN_BYTES)
        expires_at = days_from_now(days)
        self.token_repository.create(
            booking_id=booking.id,
            token_hash=hash_token(token),
            email=email,
            expires_at=expires_at,
            is_single_use=single_use,
        )
        self.log_operation("access_token_issued", booking_id=booking.id, expires_in_days=days)
        return IssuedToken(token=token, booking_id=booking.id, email=email, expires_at=expires_at)

    @BaseService.measure_operation("resolve_access_token")
    def resolve(self, token: str) -> ResolvedAccess:
        """
        Map a raw token to its booking.

        Raises:
            ValidationException: token too short to be one of ours
            AccessTokenNotFoundException: no such token
            AccessTokenExpiredException: past expiry, or single-use and spent
        """
        if not token or len(token) < settings.access_token_min_length:
            raise ValidationException("Invalid token", code="INVALID_TOKEN")

        record = self.token_repository.get_by_hash(hash_token(token))
        if not record:
            raise AccessTokenNotFoundException()

        if record.is_expired(utc_now()):
            raise AccessTokenExpiredException()

        if record.is_single_use:
            with self.transaction():
                claimed = record.used_at is None and self.token_repository.mark_used(record.id)
            if not claimed:
                raise AccessTokenExpiredException("Token has already been used")

        return ResolvedAccess(
            booking_id=record.booking_id,
            email=record.email,
            expires_at=ensure_utc(record.expires_at),
        )
