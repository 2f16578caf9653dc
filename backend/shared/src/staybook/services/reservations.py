"""Reservation lifecycle service.

States: ``inquiry`` and ``pending`` on creation; ``pending -> confirmed`` and
the post-payment cancellation only through the payment reconciler;
``inquiry/pending -> cancelled`` on explicit request. Sibling reservations
of a group (same ``group_reference``) always move together in one DynamoDB
transaction, and every write is conditioned on the status it expects.
"""

import datetime as dt
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr

from staybook.config import Settings
from staybook.models import (
    CANCELLABLE_STATUSES,
    AvailabilityConflict,
    AvailabilityResult,
    DomainEventType,
    ErrorCode,
    GroupReservationCreate,
    InvalidTransitionError,
    NotFoundError,
    PaymentStatus,
    Reservation,
    ReservationCreate,
    ReservationStatus,
    UnavailableReason,
    Unit,
    ValidationError,
)
from staybook.utils.dates import validate_stay
from staybook.utils.logging import get_logger, log_reservation_transition

if TYPE_CHECKING:
    from .allocation import GroupAllocator
    from .availability import AvailabilityService
    from .dynamodb import DynamoDBService
    from .events import EventPublisher
    from .pricing import PricingService
    from .units import UnitService

logger = get_logger(__name__)

CREATION_STATUSES = (ReservationStatus.INQUIRY, ReservationStatus.PENDING)

_REASON_TO_CODE = {
    UnavailableReason.OVERLAP: ErrorCode.DATES_UNAVAILABLE,
    UnavailableReason.BLOCKED: ErrorCode.DATES_BLOCKED,
    UnavailableReason.MIN_STAY: ErrorCode.MINIMUM_STAY_NOT_MET,
}


def generate_reservation_id(now: dt.datetime) -> str:
    """Random reservation reference, e.g. ``RES-2024-1A2B3C4D``."""
    return f"RES-{now.year}-{uuid.uuid4().hex[:8].upper()}"


def generate_group_reference(now: dt.datetime) -> str:
    """Random group reference, e.g. ``GRP-2024-A1B2C3``."""
    return f"GRP-{now.year}-{uuid.uuid4().hex[:6].upper()}"


def append_note(existing: str | None, note: str) -> str:
    return f"{existing}\n{note}" if existing else note


def conflict_for(result: AvailabilityResult, unit_id: str) -> AvailabilityConflict:
    """Translate a negative availability result into an exception."""
    reason = result.reason or UnavailableReason.OVERLAP
    details = {"unit_id": unit_id, "reason": reason.value}
    if result.min_stay is not None:
        details["min_stay"] = str(result.min_stay)
    return AvailabilityConflict(_REASON_TO_CODE[reason], details=details)


class ReservationService:
    """Creates reservations and applies lifecycle transitions."""

    TABLE = "reservations"
    SESSION_INDEX = "payment_session_id-index"
    GROUP_INDEX = "group_reference-index"

    def __init__(
        self,
        db: "DynamoDBService",
        units: "UnitService",
        availability: "AvailabilityService",
        pricing: "PricingService",
        allocator: "GroupAllocator",
        events: "EventPublisher",
        settings: Settings,
    ) -> None:
        self.db = db
        self.units = units
        self.availability = availability
        self.pricing = pricing
        self.allocator = allocator
        self.events = events
        self.settings = settings

    # =========================================================================
    # Creation
    # =========================================================================

    def create_reservation(
        self,
        request: ReservationCreate,
        status: ReservationStatus = ReservationStatus.INQUIRY,
    ) -> Reservation:
        """Create a single-unit reservation as ``inquiry`` or ``pending``.

        Inquiries skip the calendar. Pending reservations are checked against
        confirmed/completed reservations, blocked days and minimum stay, but
        not against other pending reservations.

        Raises:
            ValidationError: Bad status, dates or party larger than the unit
            NotFoundError: Unknown unit
            AvailabilityConflict: Pending request for unavailable dates
        """
        self._require_creation_status(status)
        start, end = validate_stay(request.check_in, request.check_out)
        unit = self.units.get_unit(request.unit_id)
        party_size = request.party_size
        self._require_capacity(unit, party_size)

        if status == ReservationStatus.PENDING:
            result = self.availability.check_unit(unit, start, end)
            if not result.available:
                raise conflict_for(result, unit.unit_id)

        quote = self.pricing.compute_stay_price(unit.unit_id, start, end, party_size, unit=unit)
        now = dt.datetime.now(dt.UTC)
        reservation = Reservation(
            reservation_id=generate_reservation_id(now),
            unit_id=unit.unit_id,
            guest_name=request.guest_name,
            guest_email=request.guest_email,
            guest_phone=request.guest_phone,
            check_in=start,
            check_out=end,
            guest_count=party_size,
            total_price=quote.total_price,
            status=status,
            payment_status=PaymentStatus.PENDING,
            source=request.source,
            notes=request.notes,
            created_at=now,
            updated_at=now,
        )

        if not self.db.put_item(
            self.TABLE,
            reservation.to_item(),
            condition_expression="attribute_not_exists(reservation_id)",
        ):
            raise InvalidTransitionError(
                ErrorCode.CONCURRENT_MODIFICATION,
                details={"reservation_id": reservation.reservation_id},
            )

        log_reservation_transition(
            logger,
            f"create_{status.value}",
            [reservation.reservation_id],
            status=status.value,
            unit_id=unit.unit_id,
            total_price=reservation.total_price,
        )
        self.events.publish(self._creation_event(status), [reservation])
        return reservation

    def create_group_reservation(
        self,
        request: GroupReservationCreate,
        status: ReservationStatus = ReservationStatus.INQUIRY,
    ) -> list[Reservation]:
        """Create sibling reservations for a party split across units.

        All siblings share one ``group_reference`` and are written in a
        single transaction. Each is priced for its own guest share.

        Raises:
            ValidationError: Group booking disabled, bad allocation or dates
            NotFoundError: Unknown unit in the allocation
            AvailabilityConflict: No group option, or a pending unit is unavailable
        """
        self._require_creation_status(status)
        start, end = validate_stay(request.check_in, request.check_out)
        if not self.settings.allow_group_booking:
            raise ValidationError(ErrorCode.GROUP_BOOKING_DISABLED)

        party_size = request.party_size
        if party_size < 2:
            raise ValidationError(
                ErrorCode.INVALID_ALLOCATION,
                details={"party_size": str(party_size), "reason": "a group needs at least two guests"},
            )

        shares = self._resolve_shares(request, start, end, party_size)

        if status == ReservationStatus.PENDING:
            for unit, _ in shares:
                result = self.availability.check_unit(unit, start, end)
                if not result.available:
                    raise conflict_for(result, unit.unit_id)

        now = dt.datetime.now(dt.UTC)
        group_reference = generate_group_reference(now)
        siblings = []
        for unit, share in shares:
            quote = self.pricing.compute_stay_price(unit.unit_id, start, end, share, unit=unit)
            siblings.append(
                Reservation(
                    reservation_id=generate_reservation_id(now),
                    unit_id=unit.unit_id,
                    group_reference=group_reference,
                    guest_name=request.guest_name,
                    guest_email=request.guest_email,
                    guest_phone=request.guest_phone,
                    check_in=start,
                    check_out=end,
                    guest_count=share,
                    total_price=quote.total_price,
                    status=status,
                    payment_status=PaymentStatus.PENDING,
                    source=request.source,
                    notes=request.notes,
                    created_at=now,
                    updated_at=now,
                )
            )

        ops = [
            self.db.put_op(
                self.TABLE,
                r.to_item(),
                condition_expression="attribute_not_exists(reservation_id)",
            )
            for r in siblings
        ]
        if not self.db.transact_write(ops):
            raise InvalidTransitionError(
                ErrorCode.CONCURRENT_MODIFICATION,
                details={"group_reference": group_reference},
            )

        log_reservation_transition(
            logger,
            f"create_group_{status.value}",
            [r.reservation_id for r in siblings],
            group_reference=group_reference,
            status=status.value,
            total_price=sum(r.total_price for r in siblings),
        )
        self.events.publish(self._creation_event(status), siblings)
        return siblings

    def _resolve_shares(
        self,
        request: GroupReservationCreate,
        start: dt.date,
        end: dt.date,
        party_size: int,
    ) -> list[tuple[Unit, int]]:
        if request.allocations is None:
            option = self.allocator.allocate(start, end, party_size)
            if option is None:
                raise AvailabilityConflict(
                    ErrorCode.NO_GROUP_OPTION,
                    details={"party_size": str(party_size)},
                )
            pairs = [(a.unit_id, a.assigned_guests) for a in option.allocations]
        else:
            pairs = [(s.unit_id, s.guest_count) for s in request.allocations]

        shares = [(self.units.get_unit(unit_id), count) for unit_id, count in pairs]
        for unit, count in shares:
            self._require_capacity(unit, count)

        allocated = sum(count for _, count in shares)
        if len(shares) < 2 or allocated != party_size:
            raise ValidationError(
                ErrorCode.INVALID_ALLOCATION,
                details={
                    "units": str(len(shares)),
                    "allocated": str(allocated),
                    "party_size": str(party_size),
                },
            )
        return shares

    @staticmethod
    def _require_creation_status(status: ReservationStatus) -> None:
        if status not in CREATION_STATUSES:
            raise ValidationError(
                ErrorCode.INVALID_REQUEST,
                details={"status": status.value, "reason": "must be inquiry or pending"},
            )

    @staticmethod
    def _require_capacity(unit: Unit, guests: int) -> None:
        if guests > unit.capacity:
            raise ValidationError(
                ErrorCode.CAPACITY_EXCEEDED,
                details={
                    "unit_id": unit.unit_id,
                    "capacity": str(unit.capacity),
                    "guests": str(guests),
                },
            )

    @staticmethod
    def _creation_event(status: ReservationStatus) -> DomainEventType:
        if status == ReservationStatus.INQUIRY:
            return DomainEventType.INQUIRY_CREATED
        return DomainEventType.RESERVATION_REQUESTED

    # =========================================================================
    # Reads
    # =========================================================================

    def get_reservation(self, reservation_id: str) -> Reservation:
        """Get a reservation or raise NotFoundError."""
        item = self.db.get_item(
            self.TABLE, {"reservation_id": reservation_id}, consistent_read=True
        )
        if not item:
            raise NotFoundError(
                ErrorCode.RESERVATION_NOT_FOUND,
                details={"reservation_id": reservation_id},
            )
        return Reservation.from_item(item)

    def get_group(self, group_reference: str) -> list[Reservation]:
        """All siblings of a group, ordered by reservation_id."""
        items = self.db.query_by_gsi(
            self.TABLE, self.GROUP_INDEX, "group_reference", group_reference
        )
        if not items:
            raise NotFoundError(
                ErrorCode.GROUP_NOT_FOUND,
                details={"group_reference": group_reference},
            )
        return sorted((Reservation.from_item(i) for i in items), key=lambda r: r.reservation_id)

    def get_siblings(self, reservation: Reservation) -> list[Reservation]:
        """The reservation's whole sibling set (itself when not grouped)."""
        if not reservation.group_reference:
            return [reservation]
        return self.get_group(reservation.group_reference)

    def get_many(self, reservation_ids: list[str]) -> list[Reservation]:
        """Fetch several reservations; missing ids are skipped."""
        keys = [{"reservation_id": rid} for rid in dict.fromkeys(reservation_ids)]
        items = self.db.batch_get(self.TABLE, keys, consistent_read=True)
        return sorted((Reservation.from_item(i) for i in items), key=lambda r: r.reservation_id)

    def list_by_session(
        self,
        session_id: str,
        status: ReservationStatus | None = None,
    ) -> list[Reservation]:
        """Reservations correlated with a payment session."""
        filter_expression = Attr("status").eq(status.value) if status else None
        items = self.db.query_by_gsi(
            self.TABLE,
            self.SESSION_INDEX,
            "payment_session_id",
            session_id,
            filter_expression=filter_expression,
        )
        return sorted((Reservation.from_item(i) for i in items), key=lambda r: r.reservation_id)

    def list_needing_refund(self) -> list[Reservation]:
        """Cancelled reservations whose captured payment must be refunded by hand."""
        items = self.db.scan(self.TABLE, filter_expression=Attr("needs_manual_refund").eq(True))
        return sorted((Reservation.from_item(i) for i in items), key=lambda r: r.updated_at)

    # =========================================================================
    # Transitions
    # =========================================================================

    def cancel_reservation(self, reservation_id: str, reason: str | None = None) -> list[Reservation]:
        """Cancel an inquiry or pending reservation with all of its siblings.

        Raises:
            NotFoundError: Unknown reservation
            InvalidTransitionError: A sibling is already confirmed, completed or cancelled
        """
        reservation = self.get_reservation(reservation_id)
        siblings = self.get_siblings(reservation)

        blocked = [r for r in siblings if r.status not in CANCELLABLE_STATUSES]
        if blocked:
            raise InvalidTransitionError(
                ErrorCode.INVALID_STATE_TRANSITION,
                details={
                    "reservation_id": blocked[0].reservation_id,
                    "status": blocked[0].status.value,
                },
            )

        now = dt.datetime.now(dt.UTC).isoformat()
        note = f"Cancelled: {reason}" if reason else "Cancelled on request"
        ops = [
            self.db.update_op(
                self.TABLE,
                {"reservation_id": r.reservation_id},
                "SET #status = :cancelled, #notes = :notes, updated_at = :now",
                {
                    ":cancelled": ReservationStatus.CANCELLED.value,
                    ":notes": append_note(r.notes, note),
                    ":now": now,
                    ":inquiry": ReservationStatus.INQUIRY.value,
                    ":pending": ReservationStatus.PENDING.value,
                },
                {"#status": "status", "#notes": "notes"},
                condition_expression="#status IN (:inquiry, :pending)",
            )
            for r in siblings
        ]
        if not self.db.transact_write(ops):
            raise InvalidTransitionError(
                ErrorCode.CONCURRENT_MODIFICATION,
                details={"reservation_id": reservation_id},
            )

        cancelled = [
            r.model_copy(
                update={
                    "status": ReservationStatus.CANCELLED,
                    "notes": append_note(r.notes, note),
                    "updated_at": dt.datetime.fromisoformat(now),
                }
            )
            for r in siblings
        ]
        log_reservation_transition(
            logger,
            "cancel",
            [r.reservation_id for r in cancelled],
            group_reference=reservation.group_reference,
            status=ReservationStatus.CANCELLED.value,
        )
        self.events.publish(
            DomainEventType.RESERVATION_CANCELLED, cancelled, payload={"reason": note}
        )
        return cancelled

    def attach_payment_session(self, reservations: list[Reservation], session_id: str) -> list[Reservation]:
        """Store the payment session id on every pending reservation of the set.

        Raises:
            InvalidTransitionError: A reservation left ``pending`` meanwhile
        """
        now = dt.datetime.now(dt.UTC).isoformat()
        ops = [
            self.db.update_op(
                self.TABLE,
                {"reservation_id": r.reservation_id},
                "SET payment_session_id = :sid, payment_status = :payment_pending, updated_at = :now",
                {
                    ":sid": session_id,
                    ":now": now,
                    ":pending": ReservationStatus.PENDING.value,
                    ":payment_pending": PaymentStatus.PENDING.value,
                },
                {"#status": "status"},
                condition_expression="#status = :pending",
            )
            for r in reservations
        ]
        if not self.db.transact_write(ops):
            raise InvalidTransitionError(
                ErrorCode.RESERVATION_NOT_PAYABLE,
                details={"reservation_ids": ",".join(r.reservation_id for r in reservations)},
            )

        log_reservation_transition(
            logger,
            "attach_payment_session",
            [r.reservation_id for r in reservations],
            session_id=session_id,
        )
        return [
            r.model_copy(
                update={
                    "payment_session_id": session_id,
                    "payment_status": PaymentStatus.PENDING,
                    "updated_at": dt.datetime.fromisoformat(now),
                }
            )
            for r in reservations
        ]

    def rebind_payment_session(self, reservations: list[Reservation], session_id: str) -> bool:
        """Move pending reservations onto the session that was actually paid.

        Each item must still be pending and still carry the session id it
        was read with.

        Returns:
            True if every reservation was moved, False if nothing was written
        """
        ops = []
        for r in reservations:
            values: dict[str, Any] = {
                ":sid": session_id,
                ":now": dt.datetime.now(dt.UTC).isoformat(),
                ":pending": ReservationStatus.PENDING.value,
                ":payment_pending": PaymentStatus.PENDING.value,
            }
            condition = "#status = :pending AND attribute_not_exists(payment_session_id)"
            if r.payment_session_id:
                values[":previous"] = r.payment_session_id
                condition = "#status = :pending AND payment_session_id = :previous"
            ops.append(
                self.db.update_op(
                    self.TABLE,
                    {"reservation_id": r.reservation_id},
                    "SET payment_session_id = :sid, payment_status = :payment_pending, updated_at = :now",
                    values,
                    {"#status": "status"},
                    condition_expression=condition,
                )
            )
        moved = self.db.transact_write(ops)
        log_reservation_transition(
            logger,
            "rebind_payment_session",
            [r.reservation_id for r in reservations],
            session_id=session_id,
            previous_sessions=",".join(sorted({r.payment_session_id or "-" for r in reservations})),
            applied=moved,
        )
        return moved

    def delete_pending(self, reservations: list[Reservation]) -> int:
        """Delete pending reservations that can no longer be paid for.

        Returns:
            Number of reservations removed
        """
        deleted = 0
        for r in reservations:
            if self.db.delete_item(
                self.TABLE,
                {"reservation_id": r.reservation_id},
                condition_expression="#status = :pending",
                expression_attribute_values={":pending": ReservationStatus.PENDING.value},
                expression_attribute_names={"#status": "status"},
            ):
                deleted += 1
        log_reservation_transition(
            logger,
            "delete_orphaned_pending",
            [r.reservation_id for r in reservations],
            deleted=deleted,
        )
        return deleted

    def _session_guarded_update(
        self,
        reservations: list[Reservation],
        session_id: str,
        update_expression: str,
        values_for: Callable[[Reservation], dict[str, Any]],
        names: dict[str, str],
    ) -> bool:
        guard = {
            ":pending": ReservationStatus.PENDING.value,
            ":sid": session_id,
            ":now": dt.datetime.now(dt.UTC).isoformat(),
        }
        ops = [
            self.db.update_op(
                self.TABLE,
                {"reservation_id": r.reservation_id},
                update_expression,
                {**values_for(r), **guard},
                {**names, "#status": "status"},
                condition_expression="#status = :pending AND payment_session_id = :sid",
            )
            for r in reservations
        ]
        return self.db.transact_write(ops)

    def confirm_paid(self, reservations: list[Reservation], session_id: str) -> bool:
        """Confirm a paid reservation set in one transaction.

        Only the payment reconciler calls this, after re-checking overlap.
        Every item must still be pending and carry ``session_id``.

        Returns:
            True if confirmed, False if any precondition failed (nothing written)
        """
        confirmed = self._session_guarded_update(
            reservations,
            session_id,
            "SET #status = :confirmed, payment_status = :paid, updated_at = :now",
            lambda r: {
                ":confirmed": ReservationStatus.CONFIRMED.value,
                ":paid": PaymentStatus.PAID.value,
            },
            {},
        )
        log_reservation_transition(
            logger,
            "confirm_paid",
            [r.reservation_id for r in reservations],
            group_reference=reservations[0].group_reference if reservations else None,
            session_id=session_id,
            status=ReservationStatus.CONFIRMED.value if confirmed else None,
            applied=confirmed,
        )
        return confirmed

    def cancel_for_compensation(
        self,
        reservations: list[Reservation],
        session_id: str,
        note: str,
    ) -> bool:
        """Cancel a paid-but-conflicting set and flag it for a manual refund.

        Returns:
            True if applied, False if any precondition failed (nothing written)
        """
        applied = self._session_guarded_update(
            reservations,
            session_id,
            "SET #status = :cancelled, payment_status = :failed, "
            "needs_manual_refund = :flag, #notes = :notes, updated_at = :now",
            lambda r: {
                ":cancelled": ReservationStatus.CANCELLED.value,
                ":failed": PaymentStatus.FAILED.value,
                ":flag": True,
                ":notes": append_note(r.notes, note),
            },
            {"#notes": "notes"},
        )
        log_reservation_transition(
            logger,
            "cancel_for_compensation",
            [r.reservation_id for r in reservations],
            group_reference=reservations[0].group_reference if reservations else None,
            session_id=session_id,
            status=ReservationStatus.CANCELLED.value if applied else None,
            applied=applied,
        )
        return applied

    def mark_payment_failed(
        self,
        reservations: list[Reservation],
        session_id: str | None = None,
    ) -> list[str]:
        """Set ``payment_status=failed`` on reservations still pending.

        Status is left unchanged; the guest may retry payment, and
        ``payment_attempt`` is bumped so that retry opens a new session.
        Reservations already marked failed are skipped, so a redelivered
        expiry is a no-op.

        Args:
            reservations: Candidate reservations
            session_id: Only touch reservations still bound to this session

        Returns:
            Ids of reservations that were updated
        """
        condition = "#status = :pending AND payment_status <> :failed"
        values: dict[str, Any] = {
            ":failed": PaymentStatus.FAILED.value,
            ":now": dt.datetime.now(dt.UTC).isoformat(),
            ":pending": ReservationStatus.PENDING.value,
            ":one": 1,
        }
        if session_id:
            condition += " AND payment_session_id = :sid"
            values[":sid"] = session_id

        updated = []
        for r in reservations:
            attrs = self.db.update_item(
                self.TABLE,
                {"reservation_id": r.reservation_id},
                "SET payment_status = :failed, updated_at = :now ADD payment_attempt :one",
                values,
                {"#status": "status"},
                condition_expression=condition,
            )
            if attrs is not None:
                updated.append(r.reservation_id)

        log_reservation_transition(
            logger,
            "mark_payment_failed",
            [r.reservation_id for r in reservations],
            session_id=session_id,
            updated=len(updated),
        )
        return updated
