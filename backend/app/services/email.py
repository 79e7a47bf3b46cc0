# backend/app/services/email.py
"""
Email Service for the CombatBooking platform.

Sends transactional email through the Resend API. Subjects are built by
``EmailSubject`` and bodies rendered by ``TemplateService``; this module only
knows how to deliver a rendered message.

A missing Resend key does not break construction; the first send fails with
a ServiceException instead, which the notification layer reports as
``email_sent: false``.
"""

import logging
import re
from typing import Any, Dict, Optional

import resend
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import BRAND_NAME
from ..core.exceptions import ServiceException
from .base import BaseService

logger = logging.getLogger(__name__)


class EmailService(BaseService):
    """
    Service for sending emails using Resend API.

    Extends BaseService for consistent architecture, metrics collection,
    and standardized error handling. Uses dependency injection pattern.
    """

    def __init__(self, db: Optional[Session] = None):
        super().__init__(db)

        self.api_key = settings.resend_api_key
        if self.api_key:
            resend.api_key = self.api_key
        else:
            self.logger.warning("Resend API key not configured - emails will fail to send")

        self.from_email = settings.from_email
        if not self.from_email or "noreply" in self.from_email.lower():
            self.from_email = f"{BRAND_NAME} <bookings@combatbooking.com>"

    def _html_to_text(self, html_content: str) -> str:
        """Convert HTML content to plain text for better deliverability"""
        text = re.sub(r"<(style|title)[^>]*>.*?</\1>", "", html_content, flags=re.S | re.I)
        text = re.sub(r"<[^>]+>", "", text)
        text = re.sub(r"\s+", " ", text)
        return text.strip()

    @BaseService.measure_operation("send_email")
    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send a generic email using Resend.

        Returns:
            Dict containing the Resend API response (``{"skipped": True}`` when
            email sending is disabled)

        Raises:
            ServiceException: If the key is missing or the send fails
        """
        if not settings.email_enabled:
            self.logger.info(f"Email disabled, skipping send to {to_email} - Subject: {subject}")
            return {"id": None, "skipped": True}

        if not self.api_key:
            raise ServiceException("Resend API key not configured")

        try:
            sender_email = from_email or self.from_email
            sender = f"{from_name} <{sender_email}>" if from_name else sender_email

            if not text_content:
                text_content = self._html_to_text(html_content)

            email_data = {
                "from": sender,
                "to": to_email,
                "subject": subject,
                "html": html_content,
                "text": text_content,
            }

            response = resend.Emails.send(email_data)

            self.logger.info(f"Email sent successfully to {to_email} - Subject: {subject}")
            self.log_operation("email_sent", to_email=to_email, subject=subject)
            return response

        except Exception as e:
            error_msg = str(e) or type(e).__name__
            self.logger.error(f"Failed to send email to {to_email}: {error_msg}")
            self.log_operation("email_failed", to_email=to_email, subject=subject, error=error_msg)
            raise ServiceException(f"Email sending failed: {error_msg}")
