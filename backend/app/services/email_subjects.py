"""
Centralized email subject builders.

Keep subjects in code (not templates) for versioning and logging.
Bodies remain in Jinja templates.
"""

from app.core.constants import BRAND_NAME


class EmailSubject:
    """Utility class with static builders for email subjects."""

    @staticmethod
    def admin_new_booking(reference: str) -> str:
        return f"New Booking Request - {reference}"

    @staticmethod
    def guest_request_received(reference: str) -> str:
        return f"Booking Request Received - {reference}"

    @staticmethod
    def booking_confirmed(reference: str) -> str:
        return f"Booking Confirmed - {reference}"

    @staticmethod
    def request_accepted(reference: str) -> str:
        return f"Booking Request Accepted - {reference}"

    @staticmethod
    def request_declined(reference: str) -> str:
        return f"Booking Request Update - {reference}"

    @staticmethod
    def magic_link(reference: str) -> str:
        return f"Your {BRAND_NAME} booking link - {reference}"
