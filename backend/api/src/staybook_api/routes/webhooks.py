"""Webhook endpoints for external service integrations.

Stripe checkout events confirm, compensate or mark failed the
reservations correlated with a session. The endpoint requires no
authentication; payloads are verified with the Stripe signing secret.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from staybook.models.errors import BookingError, ErrorCode, ErrorResponse
from staybook.services.stripe_service import StripeService, StripeServiceError
from staybook.services.webhook_handler import RetryableWebhookError, WebhookHandler
from staybook.utils.logging import get_logger, log_payment_event
from staybook_api.dependencies import get_stripe, get_webhook_handler

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


class WebhookResponse(BaseModel):
    """Standard webhook response."""

    received: bool
    event_id: str | None = None
    event_type: str | None = None
    processing_result: str  # "success", "duplicate", "skipped", "conflict", "error", "retry"
    message: str | None = None


@router.post(
    "/webhooks/stripe",
    summary="Receive Stripe webhook events",
    description="""
Endpoint for Stripe webhook events. Handles:
- checkout.session.completed (paid) and checkout.session.async_payment_succeeded:
  re-checks the dates, then confirms the reservations or cancels them for a manual refund
- checkout.session.expired and checkout.session.async_payment_failed:
  marks still-pending reservations as payment failed

**Idempotent**: Duplicate events (same event_id) return 200 with 'duplicate' result.
Storage failures return 500 so that Stripe redelivers the event. Any other
processing error is recorded and acknowledged with 200.
""",
    response_model=WebhookResponse,
    responses={
        400: {"description": "Invalid signature or missing header", "model": ErrorResponse},
        500: {"description": "Transient failure; Stripe will retry", "model": WebhookResponse},
    },
)
async def handle_stripe_webhook(
    request: Request,
    stripe_service: StripeService = Depends(get_stripe),
    handler: WebhookHandler = Depends(get_webhook_handler),
) -> WebhookResponse | JSONResponse:
    """Verify the signature and hand the event to the webhook handler."""
    signature = request.headers.get("Stripe-Signature")
    if not signature:
        logger.warning("Webhook request missing Stripe-Signature header")
        raise BookingError(
            code=ErrorCode.INVALID_WEBHOOK_SIGNATURE,
            details={"message": "Missing Stripe-Signature header"},
        )

    payload = await request.body()
    try:
        event = stripe_service.verify_webhook_signature(payload, signature)
    except StripeServiceError as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise BookingError(
            code=ErrorCode.INVALID_WEBHOOK_SIGNATURE,
            details={"message": "Invalid webhook signature"},
        ) from e

    event_id = event.get("id")
    event_type = event.get("type")
    log_payment_event(logger, event_type or "", event_id or "", result="received")

    try:
        processing_result, message = handler.process_event(
            event, StripeService.compute_payload_hash(payload)
        )
    except RetryableWebhookError as e:
        response = WebhookResponse(
            received=False,
            event_id=event_id,
            event_type=event_type,
            processing_result="retry",
            message=str(e),
        )
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content=response.model_dump(),
        )

    return WebhookResponse(
        received=True,
        event_id=event_id,
        event_type=event_type,
        processing_result=processing_result,
        message=message,
    )
