from typing import Optional

from .base import StandardizedModel


class WebhookResponse(StandardizedModel):
    """Acknowledgement returned to the payment provider."""

    received: bool = True
    handled: Optional[bool] = None
    confirmed: Optional[bool] = None
    already_confirmed: Optional[bool] = None
    booking_not_found: Optional[bool] = None
    email_sent: Optional[bool] = None
