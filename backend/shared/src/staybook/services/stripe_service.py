"""Stripe Checkout integration.

Uses the v8+ ``StripeClient``. The secret key and webhook signing secret
come from SSM Parameter Store. Refunds are not issued from here; conflicts
found after payment are refunded manually.
"""

import hashlib
import json
import logging
import math
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

import stripe
from stripe import StripeClient

from staybook.config import Settings, get_settings

from .ssm_service import SSMServiceError, get_ssm_service

logger = logging.getLogger(__name__)

SECRET_KEY_PARAMETER = "stripe/secret_key"
WEBHOOK_SECRET_PARAMETER = "stripe/webhook_secret"


class StripeServiceError(Exception):
    """Raised when a Stripe operation fails."""

    def __init__(self, message: str, stripe_error_code: str | None = None) -> None:
        super().__init__(message)
        self.stripe_error_code = stripe_error_code


class StripeSignatureError(StripeServiceError):
    """Raised when a webhook payload fails signature verification."""


class StripeService:
    """Service for Stripe Checkout sessions and webhook verification.

    Usage:
        stripe_svc = get_stripe_service()
        session = stripe_svc.create_checkout_session(
            line_items=[{"name": "Sea View, 3 nights", "amount": 30000}],
            success_url="https://example.com/book/confirmation",
            cancel_url="https://example.com/book/cancel",
            metadata={"reservation_id": "RES-2024-1A2B3C4D", "is_group": "false"},
            idempotency_key="checkout_RES-2024-1A2B3C4D",
        )
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._ssm = get_ssm_service()
        self._client: StripeClient | None = None
        self._webhook_secret: str | None = None

    def _get_client(self) -> StripeClient:
        """Lazily build the Stripe client from the SSM secret key.

        Raises:
            StripeServiceError: If credentials cannot be retrieved
        """
        if self._client is None:
            try:
                secret_key = self._ssm.get_secret(SECRET_KEY_PARAMETER)
            except SSMServiceError as e:
                raise StripeServiceError(f"Failed to initialize Stripe client: {e}") from e
            self._client = StripeClient(secret_key)
            logger.info("Stripe client initialized for environment: %s", self._settings.environment)
        return self._client

    def _get_webhook_secret(self) -> str:
        if self._webhook_secret is None:
            try:
                self._webhook_secret = self._ssm.get_secret(WEBHOOK_SECRET_PARAMETER)
            except SSMServiceError as e:
                raise StripeServiceError(f"Failed to get webhook secret: {e}") from e
        return self._webhook_secret

    def create_checkout_session(
        self,
        *,
        line_items: list[dict[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        idempotency_key: str,
        customer_email: str | None = None,
    ) -> dict[str, Any]:
        """Create a Stripe Checkout session.

        Args:
            line_items: ``{"name", "amount", "description"?}`` dicts, amounts in cents
            success_url: Redirect after payment (may contain ``{CHECKOUT_SESSION_ID}``)
            cancel_url: Redirect when the guest abandons checkout
            metadata: Opaque values Stripe echoes on every session event
            idempotency_key: Key preventing duplicate sessions on retry
            customer_email: Prefills the checkout form and receipt

        Returns:
            Dict with ``session_id``, ``checkout_url`` and ``expires_at``

        Raises:
            StripeServiceError: If session creation fails
        """
        client = self._get_client()
        # Rounded up to the minute so a replayed request within the same
        # minute sends identical parameters under its idempotency key.
        ttl = timedelta(minutes=self._settings.checkout_session_ttl_minutes)
        expires_at = math.ceil((datetime.now(timezone.utc) + ttl).timestamp() / 60) * 60

        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": self._settings.currency,
                        "unit_amount": item["amount"],
                        "product_data": {
                            "name": item["name"],
                            **(
                                {"description": item["description"]}
                                if item.get("description")
                                else {}
                            ),
                        },
                    },
                    "quantity": 1,
                }
                for item in line_items
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            "expires_at": expires_at,
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = client.checkout.sessions.create(
                params=params,
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            error_code = getattr(e, "code", None)
            logger.error(
                "Stripe checkout session creation failed: %s (code: %s)",
                str(e),
                error_code,
            )
            raise StripeServiceError(
                f"Failed to create checkout session: {e}",
                stripe_error_code=error_code,
            ) from e

        logger.info(
            "Checkout session created: %s (%d line items, %d cents)",
            session.id,
            len(line_items),
            sum(item["amount"] for item in line_items),
        )
        return {
            "session_id": session.id,
            "checkout_url": session.url,
            "expires_at": datetime.fromtimestamp(session.expires_at, tz=timezone.utc),
        }

    def retrieve_checkout_session(self, session_id: str) -> dict[str, Any]:
        """Fetch a checkout session to see whether it can still be paid.

        Returns:
            Dict with ``session_id``, ``checkout_url``, ``status`` (open,
            complete or expired) and ``expires_at``

        Raises:
            StripeServiceError: If the session cannot be retrieved
        """
        client = self._get_client()
        try:
            session = client.checkout.sessions.retrieve(session_id)
        except stripe.StripeError as e:
            error_code = getattr(e, "code", None)
            logger.error("Stripe checkout session %s lookup failed: %s", session_id, e)
            raise StripeServiceError(
                f"Failed to retrieve checkout session: {e}",
                stripe_error_code=error_code,
            ) from e

        return {
            "session_id": session.id,
            "checkout_url": session.url,
            "status": session.status,
            "expires_at": datetime.fromtimestamp(session.expires_at, tz=timezone.utc),
        }

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify a webhook signature and parse the event.

        Args:
            payload: Raw request body bytes
            signature: Stripe-Signature header value

        Raises:
            StripeSignatureError: If the signature or payload is invalid
        """
        webhook_secret = self._get_webhook_secret()
        try:
            stripe.Webhook.construct_event(payload, signature, webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise StripeSignatureError("Invalid webhook signature") from e
        except ValueError as e:
            logger.warning("Malformed webhook payload: %s", str(e))
            raise StripeSignatureError("Malformed webhook payload") from e

        # Plain dicts rather than StripeObjects for downstream parsing
        event: dict[str, Any] = json.loads(payload)
        return event

    @staticmethod
    def compute_payload_hash(payload: bytes) -> str:
        """SHA-256 of the raw payload, stored with the webhook event log."""
        return hashlib.sha256(payload).hexdigest()


@lru_cache(maxsize=1)
def get_stripe_service() -> StripeService:
    """Get the shared StripeService instance."""
    return StripeService()
