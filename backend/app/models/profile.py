# backend/app/models/profile.py
from enum import Enum

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func
import ulid

from ..core.timezone_utils import utc_now
from ..database import Base


class UserRole(str, Enum):
    FIGHTER = "fighter"
    OWNER = "owner"
    ADMIN = "admin"


class Profile(Base):
    """Account profile mirrored from the auth provider; role drives authorization."""

    __tablename__ = "profiles"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), nullable=True, index=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.FIGHTER.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utc_now)

    def __repr__(self) -> str:
        return f"<Profile {self.id}: {self.email} ({self.role})>"
