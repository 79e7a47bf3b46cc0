# backend/app/routes/bookings.py
"""
Booking routes - API v1

Mounted under /api/v1/bookings. All business logic is delegated to
BookingService, AccessTokenService and ReconciliationService; handlers run
the synchronous services in a worker thread.

Endpoints:
    POST /                              - Create booking (guest or signed in)
    POST /guest-access                  - Reference + PIN lookup
    POST /request-access                - Email a fresh magic link
    GET  /access/{token}                - Resolve a magic-link token
    GET  /{booking_id}                  - Booking detail (admin, owner, booking user)
    POST /{booking_id}/payment-intent   - Create or reuse the card authorization
    POST /{booking_id}/confirm-payment  - Mark authorized, notify gym and guest
    POST /{booking_id}/capture          - Capture and confirm (admin or owner)
    POST /{booking_id}/decline          - Release authorization and decline
    POST /{booking_id}/accept-request   - Request-to-book accept
    POST /{booking_id}/decline-request  - Request-to-book decline
    POST /{booking_id}/notify           - "Request received" emails
    POST /{booking_id}/resend-confirmation - Re-send confirmation (admin)
    POST /{booking_id}/sync-stripe      - Reconcile against the gateway (admin)
    POST /{booking_id}/access-token     - Issue a guest access token
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from ..api.dependencies import (
    get_access_token_service,
    get_booking_service,
    get_current_user,
    get_current_user_optional,
    get_reconciliation_service,
    require_admin,
    require_roles,
)
from ..core.constants import INVALID_ACCESS_LINK_MESSAGE, PAYMENT_UNAVAILABLE_MESSAGE
from ..core.exceptions import (
    AccessTokenExpiredException,
    AccessTokenNotFoundException,
    DomainException,
    PaymentGatewayException,
    PaymentGatewayUnavailableException,
)
from ..principal import SERVICE_ROLE, UserPrincipal
from ..schemas.booking import (
    AccessTokenRequest,
    AccessTokenResponse,
    BookingActionResponse,
    BookingCreate,
    BookingCreateResponse,
    BookingEnvelope,
    BookingResponse,
    ConfirmPaymentRequest,
    DeclineRequestBody,
    GuestAccessRequest,
    MessageResponse,
    NotifyResponse,
    PaymentIntentResponse,
    RequestAccessRequest,
    ResolvedAccessResponse,
    SyncStripeResponse,
)
from ..services.access_token_service import AccessTokenService, build_magic_link
from ..services.booking_service import BookingService
from ..services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def handle_guest_exception(exc: DomainException) -> NoReturn:
    """Like handle_domain_exception, but gateway detail never reaches guests."""
    if isinstance(exc, (PaymentGatewayException, PaymentGatewayUnavailableException)):
        raise HTTPException(
            status_code=exc.status_code,
            detail={"message": PAYMENT_UNAVAILABLE_MESSAGE, "code": exc.code},
        )
    handle_domain_exception(exc)


def handle_operator_failure(action: str, exc: Exception) -> NoReturn:
    """Unexpected errors on operator endpoints keep their message for debugging."""
    logger.exception(f"Unexpected error while trying to {action}: {exc}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": f"Failed to {action}: {exc}", "code": "INTERNAL_ERROR"},
    )


# Static paths first


@router.post("", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    current_user: Optional[UserPrincipal] = Depends(get_current_user_optional),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCreateResponse:
    """
    Create a booking.

    The price is computed server-side. The response is the only place the
    booking PIN is ever returned.
    """
    try:
        result = await asyncio.to_thread(booking_service.create_booking, booking_data, current_user)
    except DomainException as e:
        handle_guest_exception(e)

    booking, quote = result.booking, result.quote
    return BookingCreateResponse(
        **BookingResponse.model_validate(booking).model_dump(),
        booking_pin=booking.booking_pin,
        duration_label=quote.duration_label,
        billable_units=quote.billable_units,
        min_stay_days=quote.min_stay_days,
        below_min_stay=quote.below_min_stay,
    )


@router.post("/guest-access", response_model=BookingEnvelope)
async def guest_access(
    payload: GuestAccessRequest,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingEnvelope:
    try:
        booking = await asyncio.to_thread(
            booking_service.guest_access, payload.booking_reference, payload.booking_pin
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))


@router.post("/request-access", response_model=MessageResponse)
async def request_access(
    payload: RequestAccessRequest,
    booking_service: BookingService = Depends(get_booking_service),
) -> MessageResponse:
    try:
        message = await asyncio.to_thread(
            booking_service.request_access, payload.email, payload.booking_reference
        )
    except DomainException as e:
        handle_guest_exception(e)
    return MessageResponse(message=message)


@router.get("/access/{token}", response_model=ResolvedAccessResponse)
async def resolve_access_token(
    token: str,
    access_token_service: AccessTokenService = Depends(get_access_token_service),
) -> ResolvedAccessResponse:
    """Resolve a magic link. Unknown and expired tokens look the same to the caller."""
    try:
        resolved = await asyncio.to_thread(access_token_service.resolve, token)
    except (AccessTokenNotFoundException, AccessTokenExpiredException) as e:
        logger.info(f"Access token rejected: {e.code}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": INVALID_ACCESS_LINK_MESSAGE, "code": "INVALID_ACCESS_LINK"},
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ResolvedAccessResponse(
        booking_id=resolved.booking_id, email=resolved.email, expires_at=resolved.expires_at
    )


# Routes with path parameters


@router.get("/{booking_id}", response_model=BookingEnvelope)
async def get_booking(
    booking_id: str,
    current_user: UserPrincipal = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingEnvelope:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_id, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))


@router.post("/{booking_id}/payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    booking_id: str,
    current_user: Optional[UserPrincipal] = Depends(get_current_user_optional),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaymentIntentResponse:
    try:
        result = await asyncio.to_thread(
            booking_service.create_payment_authorization, booking_id, current_user
        )
    except DomainException as e:
        handle_guest_exception(e)
    return PaymentIntentResponse(**result)


@router.post(
    "/{booking_id}/confirm-payment",
    response_model=BookingActionResponse,
    response_model_exclude_none=True,
)
async def confirm_payment(
    booking_id: str,
    payload: ConfirmPaymentRequest,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingActionResponse:
    try:
        result = await asyncio.to_thread(
            booking_service.confirm_authorization, booking_id, payload.payment_intent_id
        )
    except DomainException as e:
        handle_guest_exception(e)
    return BookingActionResponse(**result)


@router.post(
    "/{booking_id}/capture",
    response_model=BookingActionResponse,
    response_model_exclude_none=True,
)
async def capture_booking(
    booking_id: str,
    current_user: UserPrincipal = Depends(require_roles("admin", "owner")),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingActionResponse:
    """Accept an authorized booking: capture the payment and confirm."""
    try:
        result = await asyncio.to_thread(booking_service.capture_booking, booking_id, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    except Exception as e:
        handle_operator_failure("capture payment", e)
    return BookingActionResponse(**result)


@router.post(
    "/{booking_id}/decline",
    response_model=BookingActionResponse,
    response_model_exclude_none=True,
)
async def decline_booking(
    booking_id: str,
    current_user: UserPrincipal = Depends(require_roles("admin", "owner")),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingActionResponse:
    try:
        result = await asyncio.to_thread(booking_service.decline_booking, booking_id, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    except Exception as e:
        handle_operator_failure("decline booking", e)
    return BookingActionResponse(**result)


@router.post(
    "/{booking_id}/accept-request",
    response_model=BookingActionResponse,
    response_model_exclude_none=True,
)
async def accept_request(
    booking_id: str,
    current_user: UserPrincipal = Depends(require_roles("admin", "owner")),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingActionResponse:
    try:
        result = await asyncio.to_thread(booking_service.accept_request, booking_id, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingActionResponse(**result)


@router.post(
    "/{booking_id}/decline-request",
    response_model=BookingActionResponse,
    response_model_exclude_none=True,
)
async def decline_request(
    booking_id: str,
    payload: Optional[DeclineRequestBody] = Body(None),
    current_user: UserPrincipal = Depends(require_roles("admin", "owner")),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingActionResponse:
    reason = payload.reason if payload else None
    try:
        result = await asyncio.to_thread(
            booking_service.decline_request, booking_id, current_user, reason
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingActionResponse(**result)


@router.post(
    "/{booking_id}/notify",
    response_model=NotifyResponse,
    response_model_exclude_none=True,
)
async def notify_booking(
    booking_id: str,
    current_user: UserPrincipal = Depends(require_roles("admin", "owner", SERVICE_ROLE)),
    reconciliation_service: ReconciliationService = Depends(get_reconciliation_service),
) -> NotifyResponse:
    try:
        result = await asyncio.to_thread(reconciliation_service.notify, booking_id, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    except Exception as e:
        handle_operator_failure("send notifications", e)
    return NotifyResponse(**result)


@router.post(
    "/{booking_id}/resend-confirmation",
    response_model=BookingActionResponse,
    response_model_exclude_none=True,
)
async def resend_confirmation(
    booking_id: str,
    current_user: UserPrincipal = Depends(require_admin),
    reconciliation_service: ReconciliationService = Depends(get_reconciliation_service),
) -> BookingActionResponse:
    try:
        result = await asyncio.to_thread(reconciliation_service.resend_confirmation, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    except Exception as e:
        handle_operator_failure("resend confirmation", e)
    return BookingActionResponse(**result)


@router.post(
    "/{booking_id}/sync-stripe",
    response_model=SyncStripeResponse,
    response_model_exclude_none=True,
)
async def sync_stripe(
    booking_id: str,
    current_user: UserPrincipal = Depends(require_admin),
    reconciliation_service: ReconciliationService = Depends(get_reconciliation_service),
) -> SyncStripeResponse:
    try:
        result = await asyncio.to_thread(reconciliation_service.sync_with_gateway, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    except Exception as e:
        handle_operator_failure("sync with Stripe", e)
    return SyncStripeResponse(**result)


@router.post("/{booking_id}/access-token", response_model=AccessTokenResponse)
async def issue_access_token(
    booking_id: str,
    payload: AccessTokenRequest,
    access_token_service: AccessTokenService = Depends(get_access_token_service),
) -> AccessTokenResponse:
    """Issue a guest token; the email must match the booking's guest email."""
    try:
        issued = await asyncio.to_thread(
            access_token_service.issue, booking_id, payload.email, payload.expires_in_days
        )
    except DomainException as e:
        handle_domain_exception(e)
    return AccessTokenResponse(
        token=issued.token,
        magic_link=build_magic_link(issued.token),
        expires_at=issued.expires_at,
    )
