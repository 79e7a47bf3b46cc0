# backend/app/models/booking_access_token.py
"""
Guest access tokens ("magic links").

Only the SHA-256 hash of the token is stored. Tokens are keyed by their own
id so they can be revoked individually without touching the booking.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.timezone_utils import ensure_utc, utc_now
from ..database import Base


class BookingAccessToken(Base):
    __tablename__ = "booking_access_tokens"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_single_use = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utc_now)

    booking = relationship("Booking", back_populates="access_tokens")

    def is_expired(self, now=None) -> bool:
        now = now or utc_now()
        return now > ensure_utc(self.expires_at)

    @property
    def is_spent(self) -> bool:
        return bool(self.is_single_use and self.used_at is not None)

    def __repr__(self) -> str:
        return f"<BookingAccessToken {self.id}: booking={self.booking_id} expires={self.expires_at}>"
