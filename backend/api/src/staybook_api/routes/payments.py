"""Payment endpoints.

Opens Stripe Checkout sessions for pending reservations. The outcome of
the payment arrives later on the Stripe webhook.
"""

from fastapi import APIRouter, Depends

from staybook.config import Settings
from staybook.models.payment import PaymentSession
from staybook.services.payment_gateway import PaymentGateway
from staybook_api.dependencies import get_app_settings, get_payment_gateway
from staybook_api.models.payments import CheckoutRequest

router = APIRouter(tags=["payments"])


@router.post(
    "/payments/checkout",
    summary="Start checkout",
    description="""
Open a Stripe Checkout session for a pending reservation. If it belongs
to a group, the session covers every sibling with one line item each.

Redirect the guest to `redirect_url`. Reservations stay `pending` until
the payment webhook confirms them.
""",
    response_model=PaymentSession,
    responses={
        404: {"description": "Reservation or unit not found"},
        409: {"description": "Reservation is not pending"},
        502: {"description": "Payment processor error"},
    },
)
async def create_checkout(
    body: CheckoutRequest,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_app_settings),
) -> PaymentSession:
    base = settings.frontend_url.rstrip("/")
    success_url = body.success_url or f"{base}/book/confirmation?session_id={{CHECKOUT_SESSION_ID}}"
    cancel_url = body.cancel_url or f"{base}/book/cancelled?reservation_id={body.reservation_id}"
    return gateway.checkout(body.reservation_id, success_url, cancel_url)
