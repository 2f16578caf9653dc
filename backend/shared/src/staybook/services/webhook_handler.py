"""Webhook handler for processing Stripe events.

Translates verified Stripe checkout events into processor-neutral
``PaymentEvent`` objects, hands them to the reconciler and records each
event id so that redelivered events are acknowledged without side effects.
"""

import datetime as dt
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError

from staybook.models import (
    BookingError,
    ErrorCode,
    InvalidTransitionError,
    PaymentEvent,
    PaymentEventType,
)
from staybook.utils.logging import get_logger, log_payment_event

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService
    from .reconciler import PaymentReconciler

logger = get_logger(__name__)

# Stripe event type -> payment event type. checkout.session.completed is
# only a completed payment when the session reports payment_status=paid;
# delayed methods follow up with async_payment_succeeded/failed.
STRIPE_EVENT_TYPES: dict[str, PaymentEventType] = {
    "checkout.session.completed": PaymentEventType.PAYMENT_COMPLETED,
    "checkout.session.async_payment_succeeded": PaymentEventType.PAYMENT_COMPLETED,
    "checkout.session.async_payment_failed": PaymentEventType.PAYMENT_FAILED_ASYNC,
    "checkout.session.expired": PaymentEventType.PAYMENT_EXPIRED,
}

OUTCOME_TO_RESULT = {
    "confirmed": "success",
    "marked_failed": "success",
    "compensated": "conflict",
    "duplicate_payment": "conflict",
    "noop": "skipped",
}


class RetryableWebhookError(Exception):
    """Processing failed transiently; the event must not be recorded."""


class WebhookHandler:
    """Handler for processing Stripe webhook events.

    Ensures idempotent processing using event_id tracking. Events are only
    recorded once handled, so a retryable failure leaves them eligible
    for redelivery.
    """

    WEBHOOK_EVENTS_TABLE = "stripe-webhook-events"

    def __init__(self, db: "DynamoDBService", reconciler: "PaymentReconciler") -> None:
        self.db = db
        self.reconciler = reconciler

    def is_event_already_processed(self, event_id: str) -> bool:
        """Check if webhook event was already processed (idempotency)."""
        existing = self.db.get_item(self.WEBHOOK_EVENTS_TABLE, {"event_id": event_id})
        return existing is not None

    def log_event(
        self,
        event_id: str,
        event_type: str,
        payload_hash: str,
        processing_result: str,
        session_id: str | None = None,
        reservation_ids: list[str] | None = None,
        outcome: str | None = None,
        error_message: str | None = None,
    ) -> None:
        """Record a webhook event for idempotency and audit trail.

        Args:
            event_id: Stripe event ID
            event_type: Event type (checkout.session.completed, etc.)
            payload_hash: SHA-256 hash of payload
            processing_result: Result (success, skipped, conflict, error)
            session_id: Checkout session the event refers to
            reservation_ids: Reservations echoed in the session metadata
            outcome: Reconciliation outcome, if the event was reconciled
            error_message: Error message if processing failed
        """
        item: dict[str, Any] = {
            "event_id": event_id,
            "event_type": event_type,
            "processed_at": dt.datetime.now(dt.UTC).isoformat(),
            "payload_hash": payload_hash,
            "processing_result": processing_result,
        }
        if session_id:
            item["session_id"] = session_id
        if reservation_ids:
            item["reservation_ids"] = reservation_ids
        if outcome:
            item["outcome"] = outcome
        if error_message:
            item["error_message"] = error_message

        self.db.put_item(
            self.WEBHOOK_EVENTS_TABLE,
            item,
            condition_expression="attribute_not_exists(event_id)",
        )

    @staticmethod
    def to_payment_event(event: dict[str, Any]) -> PaymentEvent | None:
        """Map a Stripe event to a payment event, or None if it is not one we act on."""
        event_type = event.get("type", "")
        payment_event_type = STRIPE_EVENT_TYPES.get(event_type)
        if payment_event_type is None:
            return None

        session = event.get("data", {}).get("object", {})
        if event_type == "checkout.session.completed" and session.get("payment_status") != "paid":
            return None

        metadata = session.get("metadata") or {}
        return PaymentEvent(
            event_type=payment_event_type,
            session_id=session.get("id", ""),
            event_id=event.get("id"),
            metadata={k: str(v) for k, v in metadata.items()},
        )

    def process_event(self, event: dict[str, Any], payload_hash: str) -> tuple[str, str | None]:
        """Process a verified Stripe event.

        Args:
            event: Parsed Stripe webhook event
            payload_hash: SHA-256 hash of the raw payload

        Returns:
            Tuple of (processing_result, message)

        Raises:
            RetryableWebhookError: Storage failure or concurrent update; the
                event is left unrecorded so Stripe redelivers it
        """
        event_id = event.get("id", "")
        event_type = event.get("type", "")

        if self.is_event_already_processed(event_id):
            log_payment_event(logger, event_type, event_id, result="duplicate")
            return "duplicate", "Event already processed"

        payment_event = self.to_payment_event(event)
        if payment_event is None:
            message = f"Event type '{event_type}' not handled"
            session = event.get("data", {}).get("object", {})
            if event_type == "checkout.session.completed":
                message = f"Payment status is '{session.get('payment_status')}', not 'paid'"
            log_payment_event(logger, event_type, event_id, result="skipped")
            self.log_event(event_id, event_type, payload_hash, "skipped", error_message=message)
            return "skipped", message

        if not payment_event.session_id:
            message = "Missing checkout session id"
            log_payment_event(logger, event_type, event_id, result="error", error=message)
            self.log_event(event_id, event_type, payload_hash, "error", error_message=message)
            return "error", message

        try:
            result = self.reconciler.handle(payment_event)
        except (ClientError, BotoCoreError) as e:
            log_payment_event(
                logger,
                event_type,
                event_id,
                session_id=payment_event.session_id,
                result="error",
                error=str(e),
                retryable=True,
            )
            raise RetryableWebhookError(str(e)) from e
        except InvalidTransitionError as e:
            if e.code != ErrorCode.CONCURRENT_MODIFICATION:
                return self._record_failure(
                    event_id, event_type, payload_hash, payment_event, e.message
                )
            log_payment_event(
                logger,
                event_type,
                event_id,
                session_id=payment_event.session_id,
                result="error",
                error=e.message,
                retryable=True,
            )
            raise RetryableWebhookError(e.message) from e
        except BookingError as e:
            return self._record_failure(event_id, event_type, payload_hash, payment_event, e.message)
        except Exception as e:
            logger.exception("Unexpected error reconciling event %s", event_id)
            message = f"Failed to reconcile payment event: {e}"
            return self._record_failure(event_id, event_type, payload_hash, payment_event, message)

        processing_result = OUTCOME_TO_RESULT.get(result.outcome, "success")
        message = None
        if result.outcome == "compensated":
            message = "Dates no longer available; reservations cancelled for manual refund"
        elif result.outcome == "duplicate_payment":
            message = "Reservations already paid through another session; manual refund required"

        log_payment_event(
            logger,
            event_type,
            event_id,
            session_id=payment_event.session_id,
            reservation_ids=result.reservation_ids or payment_event.reservation_ids,
            result=processing_result,
            outcome=result.outcome,
        )
        self.log_event(
            event_id,
            event_type,
            payload_hash,
            processing_result,
            session_id=payment_event.session_id,
            reservation_ids=result.reservation_ids or payment_event.reservation_ids,
            outcome=result.outcome,
            error_message=message,
        )
        return processing_result, message

    def _record_failure(
        self,
        event_id: str,
        event_type: str,
        payload_hash: str,
        payment_event: PaymentEvent,
        message: str,
    ) -> tuple[str, str | None]:
        log_payment_event(
            logger,
            event_type,
            event_id,
            session_id=payment_event.session_id,
            reservation_ids=payment_event.reservation_ids,
            result="error",
            error=message,
        )
        self.log_event(
            event_id,
            event_type,
            payload_hash,
            "error",
            session_id=payment_event.session_id,
            reservation_ids=payment_event.reservation_ids,
            error_message=message,
        )
        return "error", message
