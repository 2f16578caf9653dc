"""Payment reconciler: finalize reservations from asynchronous payment events.

On ``payment_completed`` the pending reservation set for the session gets
one authoritative overlap re-check against confirmed/completed
reservations, after funds have moved:

- every reservation is free: the whole set becomes confirmed and paid;
- any reservation overlaps: the whole set is cancelled, its payment marked
  failed and flagged for a manual refund.

When the paid session no longer owns the set (the guest paid an earlier
tab), reservations still pending are moved back onto the paid session
first. If they were already confirmed through another session, the second
payment is reported for a manual refund.

``payment_expired`` and ``payment_failed_async`` mark still-pending
reservations as payment-failed without cancelling them.

Every write is conditioned on the reservation still being pending for the
same session, so redelivered events end in the same state.
"""

from typing import TYPE_CHECKING

from staybook.models import (
    CompensationRequired,
    DomainEventType,
    ErrorCode,
    InvalidTransitionError,
    PaymentCorrelationError,
    PaymentEvent,
    PaymentEventType,
    ReconciliationResult,
    Reservation,
    ReservationStatus,
)
from staybook.utils.logging import get_logger

if TYPE_CHECKING:
    from .availability import AvailabilityService
    from .events import EventPublisher
    from .reservations import ReservationService

logger = get_logger(__name__)

COMPENSATION_NOTE = (
    "Payment captured but dates were already confirmed for another booking "
    "({conflicts}). Cancelled automatically; manual refund required."
)


class PaymentReconciler:
    """Applies payment events to reservation state."""

    def __init__(
        self,
        reservations: "ReservationService",
        availability: "AvailabilityService",
        events: "EventPublisher",
    ) -> None:
        self.reservations = reservations
        self.availability = availability
        self.events = events

    def handle(self, event: PaymentEvent) -> ReconciliationResult:
        """Dispatch a payment event.

        Raises:
            InvalidTransitionError: The set changed mid-update and is still
                pending; the event should be redelivered
        """
        if event.event_type == PaymentEventType.PAYMENT_COMPLETED:
            return self.payment_completed(event)
        return self.payment_expired(event)

    def _pending_set(self, event: PaymentEvent) -> list[Reservation]:
        pending = self.reservations.list_by_session(event.session_id, ReservationStatus.PENDING)
        if not pending:
            raise PaymentCorrelationError(details={"session_id": event.session_id})

        echoed = set(event.reservation_ids)
        if echoed and echoed != {r.reservation_id for r in pending}:
            logger.warning(
                "Session %s metadata lists %s but pending set is %s",
                event.session_id,
                ",".join(sorted(echoed)),
                ",".join(r.reservation_id for r in pending),
            )
        return pending

    def payment_completed(self, event: PaymentEvent) -> ReconciliationResult:
        """Confirm or compensate the pending set paid through ``event.session_id``."""
        try:
            pending = self._pending_set(event)
        except PaymentCorrelationError:
            pending = self._claim_stranded(event)
            if not pending:
                return self._paid_elsewhere(event)

        try:
            self._recheck(pending)
        except CompensationRequired as conflict:
            return self._compensate(pending, event.session_id, conflict)

        if not self.reservations.confirm_paid(pending, event.session_id):
            return self._after_failed_write(event.session_id, pending, "confirm")

        self.events.publish(
            DomainEventType.RESERVATION_CONFIRMED,
            pending,
            payload={"session_id": event.session_id},
        )
        return ReconciliationResult(
            outcome="confirmed",
            reservation_ids=[r.reservation_id for r in pending],
        )

    def _claim_stranded(self, event: PaymentEvent) -> list[Reservation]:
        """Rebind reservations echoed in the metadata that are pending under another session.

        Happens when the guest pays a session the set has since moved away
        from. The captured funds belong to this event's session, so the set
        is moved back onto it before the usual re-check.

        Raises:
            InvalidTransitionError: The set changed while being rebound
        """
        if not event.reservation_ids:
            return []
        candidates = self.reservations.get_many(event.reservation_ids)
        stranded = [
            r
            for r in candidates
            if r.status == ReservationStatus.PENDING and r.payment_session_id != event.session_id
        ]
        if not stranded:
            return []

        logger.warning(
            "Session %s paid for %s now bound to %s",
            event.session_id,
            ",".join(r.reservation_id for r in stranded),
            ",".join(sorted({r.payment_session_id or "-" for r in stranded})),
        )
        if not self.reservations.rebind_payment_session(stranded, event.session_id):
            raise InvalidTransitionError(
                ErrorCode.CONCURRENT_MODIFICATION,
                details={
                    "session_id": event.session_id,
                    "action": "rebind",
                    "reservation_ids": ",".join(r.reservation_id for r in stranded),
                },
            )
        return [r.model_copy(update={"payment_session_id": event.session_id}) for r in stranded]

    def _paid_elsewhere(self, event: PaymentEvent) -> ReconciliationResult:
        """Nothing is pending; flag funds captured for a set already paid through another session."""
        candidates = self.reservations.get_many(event.reservation_ids) if event.reservation_ids else []
        paid_twice = [
            r
            for r in candidates
            if r.status in (ReservationStatus.CONFIRMED, ReservationStatus.COMPLETED)
            and r.payment_session_id != event.session_id
        ]
        if not paid_twice:
            logger.info("No pending reservations for session %s; already handled", event.session_id)
            return ReconciliationResult(outcome="noop")

        logger.error(
            "Session %s captured a second payment for %s (paid through %s); manual refund required",
            event.session_id,
            ",".join(r.reservation_id for r in paid_twice),
            ",".join(sorted({r.payment_session_id or "-" for r in paid_twice})),
        )
        self.events.publish(
            DomainEventType.CONFLICT_NEEDS_REFUND,
            paid_twice,
            payload={"session_id": event.session_id, "reason": "duplicate_payment"},
        )
        return ReconciliationResult(
            outcome="duplicate_payment",
            reservation_ids=[r.reservation_id for r in paid_twice],
        )

    def _recheck(self, pending: list[Reservation]) -> None:
        """Overlap test for every reservation against other confirmed/completed ones.

        Raises:
            CompensationRequired: Listing each conflicting reservation
        """
        conflicts: dict[str, list[str]] = {}
        for reservation in pending:
            overlapping = self.availability.find_conflicts(
                reservation.unit_id,
                reservation.check_in,
                reservation.check_out,
                exclude_reservation_ids=[reservation.reservation_id],
            )
            if overlapping:
                conflicts[reservation.reservation_id] = [o.reservation_id for o in overlapping]
        if conflicts:
            raise CompensationRequired(conflicts)

    def _compensate(
        self,
        pending: list[Reservation],
        session_id: str,
        conflict: CompensationRequired,
    ) -> ReconciliationResult:
        described = "; ".join(
            f"{rid} overlaps {','.join(others)}" for rid, others in conflict.conflicts.items()
        )
        note = COMPENSATION_NOTE.format(conflicts=described)

        if not self.reservations.cancel_for_compensation(pending, session_id, note):
            return self._after_failed_write(session_id, pending, "compensate")

        logger.warning(
            "Post-payment conflict for session %s: %s",
            session_id,
            described,
        )
        self.events.publish(
            DomainEventType.CONFLICT_NEEDS_REFUND,
            pending,
            payload={"session_id": session_id, "conflicts": described},
        )
        return ReconciliationResult(
            outcome="compensated",
            reservation_ids=[r.reservation_id for r in pending],
            conflicts=conflict.conflicts,
        )

    def _after_failed_write(
        self,
        session_id: str,
        pending: list[Reservation],
        action: str,
    ) -> ReconciliationResult:
        """A guarded transaction was rejected; decide between no-op and retry."""
        still_pending = self.reservations.list_by_session(session_id, ReservationStatus.PENDING)
        if not still_pending:
            logger.info(
                "Session %s was handled concurrently during %s; nothing to do",
                session_id,
                action,
            )
            return ReconciliationResult(outcome="noop")

        raise InvalidTransitionError(
            ErrorCode.CONCURRENT_MODIFICATION,
            details={
                "session_id": session_id,
                "action": action,
                "reservation_ids": ",".join(r.reservation_id for r in pending),
            },
        )

    def payment_expired(self, event: PaymentEvent) -> ReconciliationResult:
        """Mark still-pending reservations of the session as payment-failed."""
        try:
            pending = self._pending_set(event)
        except PaymentCorrelationError:
            logger.info("No pending reservations for expired session %s", event.session_id)
            return ReconciliationResult(outcome="noop")

        updated = self.reservations.mark_payment_failed(pending, event.session_id)
        if not updated:
            return ReconciliationResult(outcome="noop")

        self.events.publish(
            DomainEventType.PAYMENT_EXPIRED,
            [r for r in pending if r.reservation_id in updated],
            payload={"session_id": event.session_id, "event_type": event.event_type.value},
        )
        return ReconciliationResult(outcome="marked_failed", reservation_ids=updated)
