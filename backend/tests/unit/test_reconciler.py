"""Tests for the payment reconciler.

Covers the post-payment overlap re-check, compensation of conflicting
sets, expiry handling and redelivery of the same event.
"""

import datetime as dt
from unittest.mock import patch

import pytest

from staybook.models import (
    DomainEventType,
    ErrorCode,
    GroupReservationCreate,
    InvalidTransitionError,
    PaymentEvent,
    PaymentEventType,
    PaymentStatus,
    ReservationCreate,
    ReservationStatus,
)

JUNE_1 = dt.date(2024, 6, 1)
JUNE_4 = dt.date(2024, 6, 4)


@pytest.fixture
def open_session(reservation_service, guest):
    """Create a pending reservation for sea-view and bind it to a session."""

    def _open(session_id: str, check_in=JUNE_1, check_out=JUNE_4):
        reservation = reservation_service.create_reservation(
            ReservationCreate(
                unit_id="sea-view", check_in=check_in, check_out=check_out, guest_count=2, **guest
            ),
            ReservationStatus.PENDING,
        )
        return reservation_service.attach_payment_session([reservation], session_id)[0]

    return _open


def _event(event_type: PaymentEventType, session_id: str, *reservation_ids: str) -> PaymentEvent:
    return PaymentEvent(
        event_type=event_type,
        session_id=session_id,
        event_id=f"evt_{session_id}",
        metadata={"reservation_id": reservation_ids[0], "is_group": "false"} if reservation_ids else {},
    )


class TestPaymentCompleted:
    def test_confirms_free_reservation(self, reconciler, reservation_service, event_publisher, open_session, sea_view):
        reservation = open_session("cs_test_001")

        result = reconciler.handle(
            _event(PaymentEventType.PAYMENT_COMPLETED, "cs_test_001", reservation.reservation_id)
        )

        assert result.outcome == "confirmed"
        assert result.reservation_ids == [reservation.reservation_id]
        stored = reservation_service.get_reservation(reservation.reservation_id)
        assert stored.status == ReservationStatus.CONFIRMED
        assert stored.payment_status == PaymentStatus.PAID
        assert event_publisher.list_events(DomainEventType.RESERVATION_CONFIRMED)

    def test_concurrent_pending_pair(self, reconciler, reservation_service, event_publisher, open_session, sea_view):
        first = open_session("cs_test_001")
        second = open_session("cs_test_002")

        first_result = reconciler.handle(
            _event(PaymentEventType.PAYMENT_COMPLETED, "cs_test_001", first.reservation_id)
        )
        second_result = reconciler.handle(
            _event(PaymentEventType.PAYMENT_COMPLETED, "cs_test_002", second.reservation_id)
        )

        assert first_result.outcome == "confirmed"
        assert second_result.outcome == "compensated"
        assert second_result.conflicts == {second.reservation_id: [first.reservation_id]}

        winner = reservation_service.get_reservation(first.reservation_id)
        loser = reservation_service.get_reservation(second.reservation_id)
        assert winner.status == ReservationStatus.CONFIRMED
        assert loser.status == ReservationStatus.CANCELLED
        assert loser.payment_status == PaymentStatus.FAILED
        assert loser.needs_manual_refund is True
        assert "manual refund required" in loser.notes
        assert first.reservation_id in loser.notes

        refunds = event_publisher.list_events(DomainEventType.CONFLICT_NEEDS_REFUND)
        assert [e.reservation_ids for e in refunds] == [[second.reservation_id]]

    def test_redelivery_is_noop(self, reconciler, reservation_service, open_session, sea_view):
        reservation = open_session("cs_test_001")
        event = _event(PaymentEventType.PAYMENT_COMPLETED, "cs_test_001", reservation.reservation_id)

        reconciler.handle(event)
        again = reconciler.handle(event)

        assert again.outcome == "noop"
        assert reservation_service.get_reservation(reservation.reservation_id).status == ReservationStatus.CONFIRMED

    def test_unknown_session_is_noop(self, reconciler, db):
        result = reconciler.handle(_event(PaymentEventType.PAYMENT_COMPLETED, "cs_unknown"))

        assert result.outcome == "noop"

    def test_payment_on_superseded_session_confirms(self, reconciler, reservation_service, open_session, sea_view):
        reservation = open_session("cs_test_001")
        reservation_service.attach_payment_session([reservation], "cs_test_002")

        result = reconciler.handle(
            _event(PaymentEventType.PAYMENT_COMPLETED, "cs_test_001", reservation.reservation_id)
        )

        assert result.outcome == "confirmed"
        stored = reservation_service.get_reservation(reservation.reservation_id)
        assert stored.status == ReservationStatus.CONFIRMED
        assert stored.payment_status == PaymentStatus.PAID
        assert stored.payment_session_id == "cs_test_001"

    def test_payment_on_superseded_session_with_conflict_is_compensated(
        self, reconciler, reservation_service, event_publisher, open_session, sea_view
    ):
        blocker = open_session("cs_test_009")
        reservation = open_session("cs_test_001")
        reservation_service.attach_payment_session([reservation], "cs_test_002")
        reconciler.handle(_event(PaymentEventType.PAYMENT_COMPLETED, "cs_test_009", blocker.reservation_id))

        result = reconciler.handle(
            _event(PaymentEventType.PAYMENT_COMPLETED, "cs_test_001", reservation.reservation_id)
        )

        assert result.outcome == "compensated"
        stored = reservation_service.get_reservation(reservation.reservation_id)
        assert stored.status == ReservationStatus.CANCELLED
        assert stored.needs_manual_refund is True
        refunds = event_publisher.list_events(DomainEventType.CONFLICT_NEEDS_REFUND)
        assert [e.reservation_ids for e in refunds] == [[reservation.reservation_id]]

    def test_second_payment_for_confirmed_set_is_flagged(
        self, reconciler, reservation_service, event_publisher, open_session, sea_view
    ):
        reservation = open_session("cs_test_001")
        reservation_service.attach_payment_session([reservation], "cs_test_002")
        reconciler.handle(_event(PaymentEventType.PAYMENT_COMPLETED, "cs_test_002", reservation.reservation_id))

        result = reconciler.handle(
            _event(PaymentEventType.PAYMENT_COMPLETED, "cs_test_001", reservation.reservation_id)
        )

        assert result.outcome == "duplicate_payment"
        assert result.reservation_ids == [reservation.reservation_id]
        stored = reservation_service.get_reservation(reservation.reservation_id)
        assert stored.status == ReservationStatus.CONFIRMED
        assert stored.payment_session_id == "cs_test_002"
        refunds = event_publisher.list_events(DomainEventType.CONFLICT_NEEDS_REFUND)
        assert len(refunds) == 1
        assert refunds[0].payload["reason"] == "duplicate_payment"

    def test_rejected_rebind_is_retryable(self, reconciler, reservation_service, open_session, sea_view):
        reservation = open_session("cs_test_001")
        reservation_service.attach_payment_session([reservation], "cs_test_002")

        with patch.object(reservation_service, "rebind_payment_session", return_value=False):
            with pytest.raises(InvalidTransitionError) as exc_info:
                reconciler.handle(
                    _event(PaymentEventType.PAYMENT_COMPLETED, "cs_test_001", reservation.reservation_id)
                )

        assert exc_info.value.code == ErrorCode.CONCURRENT_MODIFICATION
        assert reservation_service.get_reservation(reservation.reservation_id).status == ReservationStatus.PENDING

    def test_expiry_of_superseded_session_is_noop(self, reconciler, reservation_service, open_session, sea_view):
        reservation = open_session("cs_test_001")
        reservation_service.attach_payment_session([reservation], "cs_test_002")

        result = reconciler.handle(
            _event(PaymentEventType.PAYMENT_EXPIRED, "cs_test_001", reservation.reservation_id)
        )

        assert result.outcome == "noop"
        assert reservation_service.get_reservation(reservation.reservation_id).payment_status == PaymentStatus.PENDING

    def test_group_confirms_every_sibling(self, reconciler, reservation_service, guest, make_unit):
        make_unit("U1", capacity=4, base_price=10000)
        make_unit("U2", capacity=3, base_price=8000)
        siblings = reservation_service.create_group_reservation(
            GroupReservationCreate(check_in=JUNE_1, check_out=JUNE_4, guest_count=6, **guest),
            ReservationStatus.PENDING,
        )
        reservation_service.attach_payment_session(siblings, "cs_group_001")

        result = reconciler.handle(
            PaymentEvent(
                event_type=PaymentEventType.PAYMENT_COMPLETED,
                session_id="cs_group_001",
                metadata={
                    "group_reservation_ids": ",".join(r.reservation_id for r in siblings),
                    "is_group": "true",
                },
            )
        )

        assert result.outcome == "confirmed"
        stored = reservation_service.get_group(siblings[0].group_reference)
        assert {r.status for r in stored} == {ReservationStatus.CONFIRMED}

    def test_group_conflict_cancels_every_sibling(
        self, reconciler, reservation_service, guest, make_unit, store_reservation
    ):
        make_unit("U1", capacity=4, base_price=10000)
        make_unit("U2", capacity=3, base_price=8000)
        siblings = reservation_service.create_group_reservation(
            GroupReservationCreate(check_in=JUNE_1, check_out=JUNE_4, guest_count=6, **guest),
            ReservationStatus.PENDING,
        )
        reservation_service.attach_payment_session(siblings, "cs_group_001")
        blocker = store_reservation("U2", dt.date(2024, 6, 2), dt.date(2024, 6, 3))

        result = reconciler.handle(_event(PaymentEventType.PAYMENT_COMPLETED, "cs_group_001"))

        assert result.outcome == "compensated"
        u2 = next(r for r in siblings if r.unit_id == "U2")
        assert result.conflicts == {u2.reservation_id: [blocker.reservation_id]}
        stored = reservation_service.get_group(siblings[0].group_reference)
        assert {r.status for r in stored} == {ReservationStatus.CANCELLED}
        assert all(r.needs_manual_refund for r in stored)

    def test_rejected_write_with_pending_set_is_retryable(
        self, reconciler, reservation_service, open_session, sea_view
    ):
        reservation = open_session("cs_test_001")

        with patch.object(reservation_service, "confirm_paid", return_value=False):
            with pytest.raises(InvalidTransitionError) as exc_info:
                reconciler.handle(
                    _event(PaymentEventType.PAYMENT_COMPLETED, "cs_test_001", reservation.reservation_id)
                )

        assert exc_info.value.code == ErrorCode.CONCURRENT_MODIFICATION


class TestPaymentExpired:
    @pytest.mark.parametrize(
        "event_type", [PaymentEventType.PAYMENT_EXPIRED, PaymentEventType.PAYMENT_FAILED_ASYNC]
    )
    def test_marks_failed_without_cancelling(
        self, reconciler, reservation_service, event_publisher, open_session, sea_view, event_type
    ):
        reservation = open_session("cs_test_001")

        result = reconciler.handle(_event(event_type, "cs_test_001", reservation.reservation_id))

        assert result.outcome == "marked_failed"
        stored = reservation_service.get_reservation(reservation.reservation_id)
        assert stored.status == ReservationStatus.PENDING
        assert stored.payment_status == PaymentStatus.FAILED
        assert event_publisher.list_events(DomainEventType.PAYMENT_EXPIRED)

    def test_redelivered_expiry_is_noop(self, reconciler, open_session, sea_view):
        reservation = open_session("cs_test_001")
        event = _event(PaymentEventType.PAYMENT_EXPIRED, "cs_test_001", reservation.reservation_id)

        reconciler.handle(event)

        assert reconciler.handle(event).outcome == "noop"

    def test_expiry_after_confirmation_is_noop(self, reconciler, reservation_service, open_session, sea_view):
        reservation = open_session("cs_test_001")
        reconciler.handle(_event(PaymentEventType.PAYMENT_COMPLETED, "cs_test_001", reservation.reservation_id))

        result = reconciler.handle(
            _event(PaymentEventType.PAYMENT_EXPIRED, "cs_test_001", reservation.reservation_id)
        )

        assert result.outcome == "noop"
        stored = reservation_service.get_reservation(reservation.reservation_id)
        assert stored.payment_status == PaymentStatus.PAID
