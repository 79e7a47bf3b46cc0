# backend/app/services/template_service.py
"""
Template rendering service for CombatBooking.

Renders the Jinja2 email bodies under ``app/templates`` with a shared set of
common context variables (brand, frontend URL, current year).
"""

from datetime import date, datetime
from decimal import Decimal
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import BRAND_NAME
from .base import BaseService
from .template_registry import TemplateRegistry

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "THB": "฿", "AUD": "A$"}


def format_currency(amount: Any, currency: Optional[str] = "USD") -> str:
    """``format_currency(1234.5, "USD")`` -> ``$1,234.50``; unknown codes are suffixed."""
    if amount is None:
        return ""
    value = Decimal(str(amount))
    code = (currency or "USD").upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{symbol}{value:,.2f}"
    return f"{value:,.2f} {code}"


def format_date(value: Any, fmt: str = "%B %d, %Y") -> str:
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.strftime(fmt)
    return str(value)


class TemplateService(BaseService):
    """
    Centralized template rendering service using Jinja2.

    The session is optional: rendering never touches the database, but the
    service still extends BaseService for logging and operation metrics.
    """

    def __init__(self, db: Optional[Session] = None):
        super().__init__(db)

        template_dir = Path(__file__).parent.parent / "templates"

        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["currency"] = format_currency
        self.env.filters["format_date"] = format_date

        self.logger.debug(f"TemplateService initialized with template directory: {template_dir}")

    def get_common_context(self) -> Dict[str, Any]:
        """Variables available to every template."""
        return {
            "brand_name": BRAND_NAME,
            "frontend_url": settings.frontend_url,
            "current_year": datetime.now().year,
            "support_email": settings.admin_email,
        }

    @BaseService.measure_operation("render_template")
    def render_template(
        self,
        template_name: "TemplateRegistry | str",
        context: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> str:
        """
        Render a template with the given context.

        Args:
            template_name: Registry entry or path relative to the templates directory
            context: Dictionary of template variables
            **kwargs: Additional template variables (override ``context``)

        Returns:
            Rendered template as string

        Raises:
            TemplateNotFound: If template doesn't exist
        """
        name = template_name.value if isinstance(template_name, TemplateRegistry) else template_name
        try:
            template = self.env.get_template(name)

            full_context = self.get_common_context()
            if context:
                full_context.update(context)
            full_context.update(kwargs)

            rendered = template.render(full_context)
            self.logger.debug(f"Successfully rendered template: {name}")
            return rendered
        except TemplateNotFound:
            self.logger.error(f"Template not found: {name}")
            raise

    def template_exists(self, template_name: "TemplateRegistry | str") -> bool:
        name = template_name.value if isinstance(template_name, TemplateRegistry) else template_name
        try:
            self.env.get_template(name)
            return True
        except TemplateNotFound:
            return False
