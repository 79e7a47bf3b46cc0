# backend/app/repositories/booking_access_token_repository.py
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..core.timezone_utils import utc_now
from ..models.booking_access_token import BookingAccessToken
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingAccessTokenRepository(BaseRepository[BookingAccessToken]):
    """Stores hashed guest access tokens; raw tokens never reach this layer."""

    def __init__(self, db: Session):
        super().__init__(db, BookingAccessToken)

    def get_by_hash(self, token_hash: str) -> Optional[BookingAccessToken]:
        try:
            return (
                self.db.query(BookingAccessToken)
                .filter(BookingAccessToken.token_hash == token_hash)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error looking up access token: {str(e)}")
            raise RepositoryException(f"Failed to look up access token: {str(e)}")

    def mark_used(self, token_id: str) -> bool:
        """Stamp ``used_at`` once; a second caller gets False."""
        rowcount = (
            self.db.query(BookingAccessToken)
            .filter(BookingAccessToken.id == token_id, BookingAccessToken.used_at.is_(None))
            .update({BookingAccessToken.used_at: utc_now()}, synchronize_session="fetch")
        )
        self.db.flush()
        return rowcount == 1

    def count_for_booking(self, booking_id: str) -> int:
        return self.db.query(BookingAccessToken).filter_by(booking_id=booking_id).count()
