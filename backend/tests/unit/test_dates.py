"""Unit tests for calendar-day normalization and stay ranges."""

import datetime as dt
import pytest

from staybook.models import ErrorCode, ValidationError
from staybook.utils.dates import (
    iter_nights,
    nights_between,
    ranges_overlap,
    to_calendar_day,
    validate_stay,
)


class TestToCalendarDay:
    def test_date_is_returned_unchanged(self):
        assert to_calendar_day(dt.date(2024, 6, 1)) == dt.date(2024, 6, 1)

    def test_iso_date_string(self):
        assert to_calendar_day("2024-06-01") == dt.date(2024, 6, 1)

    def test_aware_datetime_uses_utc_day(self):
        """23:30 in Madrid on June 1st is still June 1st in UTC, 01:30 on June 2nd is not."""
        madrid = dt.timezone(dt.timedelta(hours=2))
        assert to_calendar_day(dt.datetime(2024, 6, 1, 23, 30, tzinfo=madrid)) == dt.date(2024, 6, 1)
        assert to_calendar_day(dt.datetime(2024, 6, 2, 1, 30, tzinfo=madrid)) == dt.date(2024, 6, 1)

    def test_naive_datetime_is_treated_as_utc(self):
        assert to_calendar_day(dt.datetime(2024, 6, 1, 23, 59)) == dt.date(2024, 6, 1)

    def test_iso_datetime_with_z_suffix(self):
        assert to_calendar_day("2024-06-01T22:00:00Z") == dt.date(2024, 6, 1)

    def test_iso_datetime_with_offset(self):
        assert to_calendar_day("2024-06-02T01:00:00+02:00") == dt.date(2024, 6, 1)

    @pytest.mark.parametrize("value", ["", "not-a-date", "2024-13-01", 20240601])
    def test_invalid_values_raise(self, value):
        with pytest.raises(ValidationError) as exc_info:
            to_calendar_day(value)
        assert exc_info.value.code == ErrorCode.INVALID_DATE_RANGE


class TestValidateStay:
    def test_returns_normalized_pair(self):
        assert validate_stay("2024-06-01", dt.date(2024, 6, 4)) == (
            dt.date(2024, 6, 1),
            dt.date(2024, 6, 4),
        )

    @pytest.mark.parametrize("check_out", ["2024-06-01", "2024-05-31"])
    def test_check_out_must_follow_check_in(self, check_out):
        with pytest.raises(ValidationError) as exc_info:
            validate_stay("2024-06-01", check_out)
        assert exc_info.value.code == ErrorCode.INVALID_DATE_RANGE
        assert exc_info.value.details["check_out"] == check_out


class TestNights:
    def test_nights_between(self):
        assert nights_between(dt.date(2024, 6, 1), dt.date(2024, 6, 4)) == 3

    def test_iter_nights_excludes_check_out_day(self):
        nights = list(iter_nights(dt.date(2024, 2, 28), dt.date(2024, 3, 2)))
        assert nights == [dt.date(2024, 2, 28), dt.date(2024, 2, 29), dt.date(2024, 3, 1)]


class TestRangesOverlap:
    def test_back_to_back_stays_do_not_overlap(self):
        assert not ranges_overlap(
            dt.date(2024, 6, 1), dt.date(2024, 6, 4), dt.date(2024, 6, 4), dt.date(2024, 6, 6)
        )

    def test_shared_night_overlaps(self):
        assert ranges_overlap(
            dt.date(2024, 6, 1), dt.date(2024, 6, 4), dt.date(2024, 6, 3), dt.date(2024, 6, 6)
        )

    def test_containment_overlaps(self):
        assert ranges_overlap(
            dt.date(2024, 6, 1), dt.date(2024, 6, 10), dt.date(2024, 6, 3), dt.date(2024, 6, 4)
        )
