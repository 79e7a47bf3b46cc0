# backend/app/repositories/booking_repository.py
"""
Booking Repository for the CombatBooking platform.

All writes to ``status`` and ``stripe_payment_intent_id`` are narrow
UPDATE statements against a single row, never whole-row overwrites. The
confirm transition is a conditional update so concurrent confirm paths
(direct capture, webhook redelivery, manual sync) cannot both win.
"""

import logging
from typing import Any, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.exceptions import RepositoryException
from ..core.timezone_utils import utc_now
from ..models.booking import Booking, BookingStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    # Lookups

    def get_booking_with_details(self, booking_id: str) -> Optional[Booking]:
        """Get a booking with gym, package and variant loaded."""
        try:
            return self._apply_eager_loading(
                self.db.query(Booking).filter(Booking.id == booking_id)
            ).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting booking details: {str(e)}")
            raise RepositoryException(f"Failed to get booking details: {str(e)}")

    def get_by_reference(self, booking_reference: str) -> Optional[Booking]:
        return self._apply_eager_loading(
            self.db.query(Booking).filter(Booking.booking_reference == booking_reference.upper())
        ).first()

    def find_by_reference_and_email(self, booking_reference: str, email: str) -> Optional[Booking]:
        return self._apply_eager_loading(
            self.db.query(Booking).filter(
                Booking.booking_reference == booking_reference.strip().upper(),
                Booking.guest_email == email.strip().lower(),
            )
        ).first()

    def get_by_payment_intent_id(self, payment_intent_id: str) -> Optional[Booking]:
        """Exact match on the stored intent id."""
        return self._apply_eager_loading(
            self.db.query(Booking).filter(Booking.stripe_payment_intent_id == payment_intent_id)
        ).first()

    def reference_exists(self, booking_reference: str) -> bool:
        return self.exists(booking_reference=booking_reference)

    # Narrow writes

    def set_payment_intent_id(self, booking_id: str, payment_intent_id: str) -> None:
        self._update_columns(
            booking_id, {"stripe_payment_intent_id": payment_intent_id}, allowed_statuses=None
        )

    def update_status(
        self,
        booking_id: str,
        new_status: str,
        *,
        allowed_statuses: Optional[Iterable[str]] = None,
        **extra_columns: Any,
    ) -> bool:
        """
        Set ``status`` (and any extra columns) on one booking.

        When ``allowed_statuses`` is given the update only applies if the row
        is currently in one of them; returns whether a row changed.
        """
        values = {"status": new_status, **extra_columns}
        return self._update_columns(booking_id, values, allowed_statuses=allowed_statuses)

    def mark_confirmed_if_not_confirmed(self, booking_id: str) -> bool:
        """
        UPDATE bookings SET status='confirmed' WHERE id=:id AND status != 'confirmed'.

        Returns True only for the caller whose write flipped the status.
        """
        try:
            now = utc_now()
            rowcount = (
                self.db.query(Booking)
                .filter(
                    Booking.id == booking_id,
                    Booking.status != BookingStatus.CONFIRMED.value,
                )
                .update(
                    {
                        Booking.status: BookingStatus.CONFIRMED.value,
                        Booking.payment_captured_at: now,
                        Booking.updated_at: now,
                    },
                    synchronize_session="fetch",
                )
            )
            self.db.flush()
            if rowcount:
                self.logger.info(f"Booking {booking_id} marked confirmed")
            else:
                self.logger.info(f"Booking {booking_id} was already confirmed; no update applied")
            return rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error confirming booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to confirm booking: {str(e)}")

    def _update_columns(
        self,
        booking_id: str,
        values: dict[str, Any],
        *,
        allowed_statuses: Optional[Iterable[str]],
    ) -> bool:
        try:
            query = self.db.query(Booking).filter(Booking.id == booking_id)
            if allowed_statuses is not None:
                query = query.filter(Booking.status.in_(list(allowed_statuses)))
            payload = {getattr(Booking, key): value for key, value in values.items()}
            payload[Booking.updated_at] = utc_now()
            rowcount = query.update(payload, synchronize_session="fetch")
            self.db.flush()
            return rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking: {str(e)}")

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Booking.gym),
            joinedload(Booking.package),
            joinedload(Booking.variant),
        )
