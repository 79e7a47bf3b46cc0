"""
Template registry for strongly-typed access to Jinja templates.

Use with TemplateService to avoid stringly-typed paths.
"""

from enum import Enum


class TemplateRegistry(str, Enum):
    # Booking request lifecycle
    BOOKING_ADMIN_NEW_REQUEST = "email/booking/admin_new_booking.html"
    BOOKING_GUEST_REQUEST_RECEIVED = "email/booking/guest_request_received.html"
    BOOKING_GUEST_CONFIRMED = "email/booking/guest_booking_confirmed.html"

    # Request-to-book
    BOOKING_GUEST_REQUEST_ACCEPTED = "email/booking/guest_request_accepted.html"
    BOOKING_GUEST_REQUEST_DECLINED = "email/booking/guest_request_declined.html"

    # Guest access
    BOOKING_GUEST_MAGIC_LINK = "email/booking/guest_magic_link.html"

    @property
    def metric_name(self) -> str:
        """Short label used for email metrics, e.g. ``guest_booking_confirmed``."""
        return self.value.rsplit("/", 1)[-1].split(".", 1)[0]
