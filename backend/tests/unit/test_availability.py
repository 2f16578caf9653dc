"""Unit tests for AvailabilityService.

Covers the overlap, blocked-day and minimum-stay rules plus the
availability quote consumed by the booking flow.
"""

import datetime as dt

import pytest

from staybook.models import (
    DateOverride,
    ErrorCode,
    NotFoundError,
    ReservationStatus,
    UnavailableReason,
    ValidationError,
)
from staybook.services.availability import evaluate_calendar

JUNE_1 = dt.date(2024, 6, 1)
JUNE_4 = dt.date(2024, 6, 4)


class TestScenarios:
    def test_free_calendar_is_available_with_price(self, availability_service, sea_view):
        """Scenario A."""
        quote = availability_service.quote("sea-view", "2024-06-01", "2024-06-04", 2)

        assert quote.available is True
        assert quote.reason is None
        assert quote.price == 30000

    def test_blocked_day_inside_stay(self, availability_service, override_service, sea_view):
        """Scenario B."""
        override_service.bulk_upsert(
            [DateOverride(unit_id="sea-view", date=dt.date(2024, 6, 2), is_blocked=True)]
        )

        quote = availability_service.quote("sea-view", JUNE_1, JUNE_4, 2)

        assert quote.available is False
        assert quote.reason == UnavailableReason.BLOCKED
        assert quote.price is None

    def test_min_stay_override_on_check_in_day(self, availability_service, override_service, sea_view):
        """Scenario C."""
        override_service.bulk_upsert([DateOverride(unit_id="sea-view", date=JUNE_1, min_stay=5)])

        quote = availability_service.quote("sea-view", JUNE_1, JUNE_4, 2)

        assert quote.available is False
        assert quote.reason == UnavailableReason.MIN_STAY
        assert quote.min_stay == 5
        assert quote.price is None


class TestOverlap:
    @pytest.mark.parametrize("status", [ReservationStatus.CONFIRMED, ReservationStatus.COMPLETED])
    def test_confirmed_and_completed_block(self, availability_service, store_reservation, sea_view, status):
        store_reservation("sea-view", dt.date(2024, 6, 3), dt.date(2024, 6, 6), status=status)

        result = availability_service.check_availability("sea-view", JUNE_1, JUNE_4)

        assert result.available is False
        assert result.reason == UnavailableReason.OVERLAP

    @pytest.mark.parametrize(
        "status",
        [ReservationStatus.INQUIRY, ReservationStatus.PENDING, ReservationStatus.CANCELLED],
    )
    def test_other_statuses_do_not_block(self, availability_service, store_reservation, sea_view, status):
        store_reservation("sea-view", JUNE_1, JUNE_4, status=status)

        assert availability_service.check_availability("sea-view", JUNE_1, JUNE_4).available is True

    def test_back_to_back_stays_are_available(self, availability_service, store_reservation, sea_view):
        store_reservation("sea-view", dt.date(2024, 5, 28), JUNE_1)
        store_reservation("sea-view", JUNE_4, dt.date(2024, 6, 8))

        assert availability_service.check_availability("sea-view", JUNE_1, JUNE_4).available is True

    def test_enclosing_reservation_conflicts(self, availability_service, store_reservation, sea_view):
        store_reservation("sea-view", dt.date(2024, 5, 20), dt.date(2024, 6, 20))

        conflicts = availability_service.find_conflicts("sea-view", JUNE_1, JUNE_4)

        assert len(conflicts) == 1

    def test_other_units_are_ignored(self, availability_service, store_reservation, make_unit, sea_view):
        make_unit("harbour")
        store_reservation("harbour", JUNE_1, JUNE_4)

        assert availability_service.find_conflicts("sea-view", JUNE_1, JUNE_4) == []

    def test_excluded_reservation_is_ignored(self, availability_service, store_reservation, sea_view):
        own = store_reservation("sea-view", JUNE_1, JUNE_4)

        conflicts = availability_service.find_conflicts(
            "sea-view", JUNE_1, JUNE_4, exclude_reservation_ids=[own.reservation_id]
        )

        assert conflicts == []

    def test_overlap_is_reported_before_blocked(
        self, availability_service, store_reservation, override_service, sea_view
    ):
        store_reservation("sea-view", JUNE_1, JUNE_4)
        override_service.bulk_upsert(
            [DateOverride(unit_id="sea-view", date=JUNE_1, is_blocked=True, min_stay=7)]
        )

        result = availability_service.check_availability("sea-view", JUNE_1, JUNE_4)

        assert result.reason == UnavailableReason.OVERLAP


class TestCalendarRules:
    def test_blocked_day_outside_stay_is_ignored(self, sea_view):
        overrides = {JUNE_4: DateOverride(unit_id="sea-view", date=JUNE_4, is_blocked=True)}

        assert evaluate_calendar(sea_view, JUNE_1, JUNE_4, overrides).available is True

    def test_unit_default_min_stay(self, make_unit):
        unit = make_unit("cabin", min_stay=4)

        result = evaluate_calendar(unit, JUNE_1, JUNE_4, {})

        assert result.reason == UnavailableReason.MIN_STAY
        assert result.min_stay == 4

    def test_check_in_override_relaxes_unit_min_stay(self, make_unit):
        unit = make_unit("cabin", min_stay=4)
        overrides = {JUNE_1: DateOverride(unit_id="cabin", date=JUNE_1, min_stay=2)}

        assert evaluate_calendar(unit, JUNE_1, JUNE_4, overrides).available is True

    def test_min_stay_on_later_day_is_ignored(self, sea_view):
        day_two = dt.date(2024, 6, 2)
        overrides = {day_two: DateOverride(unit_id="sea-view", date=day_two, min_stay=7)}

        assert evaluate_calendar(sea_view, JUNE_1, JUNE_4, overrides).available is True

    def test_blocked_wins_over_min_stay(self, sea_view):
        overrides = {JUNE_1: DateOverride(unit_id="sea-view", date=JUNE_1, is_blocked=True, min_stay=9)}

        assert evaluate_calendar(sea_view, JUNE_1, JUNE_4, overrides).reason == UnavailableReason.BLOCKED


class TestQuoteValidation:
    def test_invalid_range(self, availability_service, sea_view):
        with pytest.raises(ValidationError) as exc_info:
            availability_service.quote("sea-view", JUNE_4, JUNE_1, 2)
        assert exc_info.value.code == ErrorCode.INVALID_DATE_RANGE

    def test_unknown_unit(self, availability_service, db):
        with pytest.raises(NotFoundError):
            availability_service.quote("nowhere", JUNE_1, JUNE_4, 2)

    def test_children_count_towards_capacity(self, availability_service, sea_view):
        with pytest.raises(ValidationError) as exc_info:
            availability_service.quote("sea-view", JUNE_1, JUNE_4, 3, children_count=2)
        assert exc_info.value.code == ErrorCode.CAPACITY_EXCEEDED

    def test_price_uses_party_size(self, availability_service, summer_unit):
        quote = availability_service.quote("garden-loft", JUNE_1, JUNE_4, 2, children_count=1)

        # 3 nights at 8000 + 1 extra guest at 1500
        assert quote.price == 3 * 9500
