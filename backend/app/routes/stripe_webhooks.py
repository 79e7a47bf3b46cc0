"""
Payment webhook endpoints.

``POST /webhooks/payments`` receives Stripe events; ``/webhooks/stripe`` is
kept as an alias for endpoints registered in the Stripe dashboard before the
rename. Signature verification happens before anything touches the database.
"""

import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..api.dependencies import get_stripe_webhook_service
from ..core.exceptions import DomainException
from ..schemas.webhook import WebhookResponse
from ..services.payment_gateway import get_field
from ..services.stripe_webhook_service import StripeWebhookService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def _process(request: Request, webhook_service: StripeWebhookService) -> Dict[str, Any]:
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        event = webhook_service.construct_event(payload, signature)
        event_type = get_field(event, "type")
        logger.info(f"Received payment webhook {event_type}")
        return await asyncio.to_thread(webhook_service.handle_event, event)
    except DomainException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error processing payment webhook: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Webhook processing failed", "code": "WEBHOOK_PROCESSING_FAILED"},
        )


@router.post("/payments", response_model=WebhookResponse, response_model_exclude_none=True)
async def handle_payment_events(
    request: Request,
    webhook_service: StripeWebhookService = Depends(get_stripe_webhook_service),
) -> WebhookResponse:
    """
    Handle payment provider webhook events.

    - payment_intent.succeeded: confirm the matching booking (idempotent)
    - payment_intent.canceled / payment_intent.payment_failed: acknowledged
    - anything else: acknowledged as unhandled
    """
    return WebhookResponse(**await _process(request, webhook_service))


@router.post(
    "/stripe",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    include_in_schema=False,
)
async def handle_payment_events_legacy(
    request: Request,
    webhook_service: StripeWebhookService = Depends(get_stripe_webhook_service),
) -> WebhookResponse:
    return WebhookResponse(**await _process(request, webhook_service))
