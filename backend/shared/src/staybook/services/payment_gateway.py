"""Payment handoff: open a checkout session for pending reservations.

The session metadata identifies the reservation set so that every
asynchronous payment event can be correlated back to it:

- single: ``{"reservation_id": ..., "is_group": "false"}``
- group:  ``{"group_reservation_ids": "id1,id2", "group_reference": ..., "is_group": "true"}``
"""

from typing import TYPE_CHECKING, Any

from staybook.models import (
    ErrorCode,
    InvalidTransitionError,
    NotFoundError,
    PaymentSession,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    ValidationError,
)
from staybook.utils.logging import get_logger

if TYPE_CHECKING:
    from .reservations import ReservationService
    from .stripe_service import StripeService
    from .units import UnitService

logger = get_logger(__name__)


def build_session_metadata(reservations: list[Reservation]) -> dict[str, str]:
    """Correlation metadata echoed back by the processor."""
    if len(reservations) == 1:
        return {"reservation_id": reservations[0].reservation_id, "is_group": "false"}

    metadata = {
        "group_reservation_ids": ",".join(r.reservation_id for r in reservations),
        "is_group": "true",
    }
    group_reference = reservations[0].group_reference
    if group_reference:
        metadata["group_reference"] = group_reference
    return metadata


def _to_payment_session(session: dict[str, Any], reservations: list[Reservation]) -> PaymentSession:
    return PaymentSession(
        session_id=session["session_id"],
        redirect_url=session["checkout_url"],
        reservation_ids=[r.reservation_id for r in reservations],
        group_reference=reservations[0].group_reference,
        amount_total=sum(r.total_price for r in reservations),
        expires_at=session.get("expires_at"),
    )


class PaymentGateway:
    """Creates payment sessions for one reservation or a sibling set."""

    def __init__(
        self,
        reservations: "ReservationService",
        units: "UnitService",
        stripe: "StripeService",
    ) -> None:
        self.reservations = reservations
        self.units = units
        self.stripe = stripe

    def create_payment_session(
        self,
        reservations: list[Reservation],
        success_url: str,
        cancel_url: str,
    ) -> PaymentSession:
        """Open a checkout session and correlate it with the reservations.

        The session id is stored on every reservation before the redirect
        URL is returned. A set still bound to an open session gets that
        session back instead of a second one. If a unit cannot be resolved
        the pending reservations are deleted, so none is left without a
        payment path.

        Raises:
            ValidationError: Empty set or mixed groups
            InvalidTransitionError: A reservation is not pending
            NotFoundError: A unit no longer exists (reservations removed)
            StripeServiceError: The processor rejected the session
        """
        if not reservations:
            raise ValidationError(ErrorCode.INVALID_REQUEST, details={"reason": "no reservations"})
        if len({r.group_reference for r in reservations}) > 1:
            raise ValidationError(
                ErrorCode.INVALID_REQUEST,
                details={"reason": "reservations belong to different groups"},
            )

        not_payable = [r for r in reservations if r.status != ReservationStatus.PENDING]
        if not_payable:
            raise InvalidTransitionError(
                ErrorCode.RESERVATION_NOT_PAYABLE,
                details={
                    "reservation_id": not_payable[0].reservation_id,
                    "status": not_payable[0].status.value,
                },
            )

        open_session, reservations = self._resume_session(reservations)
        if open_session is not None:
            return open_session

        line_items = []
        for reservation in reservations:
            unit = self.units.find_unit(reservation.unit_id)
            if unit is None:
                deleted = self.reservations.delete_pending(reservations)
                logger.warning(
                    "Unit %s missing for %s; removed %d orphaned pending reservation(s)",
                    reservation.unit_id,
                    reservation.reservation_id,
                    deleted,
                )
                raise NotFoundError(
                    ErrorCode.UNIT_NOT_FOUND,
                    details={"unit_id": reservation.unit_id},
                )
            line_items.append(
                {
                    "name": f"{unit.name}, {reservation.nights} night(s)",
                    "description": (
                        f"{reservation.check_in.isoformat()} to {reservation.check_out.isoformat()}, "
                        f"{reservation.guest_count} guest(s)"
                    ),
                    "amount": reservation.total_price,
                }
            )

        metadata = build_session_metadata(reservations)
        # payment_attempt only moves once the previous session is dead.
        reference = reservations[0].group_reference or reservations[0].reservation_id
        attempt = max(r.payment_attempt for r in reservations)
        idempotency_key = f"checkout_{reference}_{attempt}"
        session = self.stripe.create_checkout_session(
            line_items=line_items,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            idempotency_key=idempotency_key,
            customer_email=reservations[0].guest_email,
        )

        self.reservations.attach_payment_session(reservations, session["session_id"])
        return _to_payment_session(session, reservations)

    def _resume_session(
        self, reservations: list[Reservation]
    ) -> tuple[PaymentSession | None, list[Reservation]]:
        """Reuse the session the set is already bound to while it can be paid.

        A session the processor reports as expired is marked failed here,
        which bumps ``payment_attempt`` before a new session is opened.

        Raises:
            InvalidTransitionError: The bound session was already submitted
        """
        session_ids = {r.payment_session_id for r in reservations}
        if len(session_ids) != 1 or None in session_ids:
            return None, reservations
        if any(r.payment_status != PaymentStatus.PENDING for r in reservations):
            return None, reservations

        session_id = session_ids.pop()
        session = self.stripe.retrieve_checkout_session(session_id)
        if session["status"] == "open":
            logger.info("Reusing open checkout session %s", session_id)
            return _to_payment_session(session, reservations), reservations
        if session["status"] == "complete":
            raise InvalidTransitionError(
                ErrorCode.RESERVATION_NOT_PAYABLE,
                details={"session_id": session_id, "reason": "payment already submitted"},
            )

        self.reservations.mark_payment_failed(reservations, session_id)
        return None, self.reservations.get_many([r.reservation_id for r in reservations])

    def checkout(
        self,
        reservation_id: str,
        success_url: str,
        cancel_url: str,
    ) -> PaymentSession:
        """Open a session for a reservation and, if grouped, all its siblings."""
        reservation = self.reservations.get_reservation(reservation_id)
        siblings = self.reservations.get_siblings(reservation)
        return self.create_payment_session(siblings, success_url, cancel_url)
