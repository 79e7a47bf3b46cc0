# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the CombatBooking platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Each class carries the HTTP status it maps to, so routes only need
``raise exc.to_http_exception()``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedException(DomainException):
    """Raised when the caller is not authenticated (or presented a bad PIN)."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Forbidden", **kwargs: Any) -> None:
        kwargs.setdefault("code", "FORBIDDEN")
        super().__init__(message, **kwargs)


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class GoneException(DomainException):
    """Raised when a resource existed but is no longer usable."""

    status_code = status.HTTP_410_GONE


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Payment gateway


class PaymentGatewayUnavailableException(ServiceException):
    """Gateway is unconfigured or unreachable; nothing was changed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Payment system unavailable", **kwargs: Any) -> None:
        kwargs.setdefault("code", "PAYMENT_SYSTEM_UNAVAILABLE")
        super().__init__(message, **kwargs)


class PaymentGatewayException(ServiceException):
    """The provider rejected the operation (declined, expired, unknown intent)."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("code", "PAYMENT_GATEWAY_ERROR")
        super().__init__(message, **kwargs)


# Bookings


class InvalidBookingTransitionException(ValidationException):
    """Raised when an operation is not allowed from the booking's current status."""

    def __init__(self, action: str, current_status: str, allowed: Optional[list[str]] = None):
        message = f"Cannot {action} booking. Current status: {current_status}."
        if allowed:
            message += f" Allowed statuses: {', '.join(allowed)}."
        super().__init__(
            message=message,
            code="INVALID_BOOKING_STATUS",
            details={"current_status": current_status, "allowed_statuses": allowed or []},
        )


# Guest access tokens


class AccessTokenNotFoundException(NotFoundException):
    """No token with this value was ever issued."""

    def __init__(self) -> None:
        super().__init__("Invalid or expired token", code="ACCESS_TOKEN_NOT_FOUND")


class AccessTokenExpiredException(GoneException):
    """The token exists but is past its expiry (or already used)."""

    def __init__(self, message: str = "Token has expired") -> None:
        super().__init__(message, code="ACCESS_TOKEN_EXPIRED")


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
