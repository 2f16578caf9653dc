"""Calendar-day helpers.

Every date that enters the booking core is normalized to a ``datetime.date``
(a UTC calendar day) and stored as an ISO ``YYYY-MM-DD`` string. Stays are
half-open ranges ``[check_in, check_out)``: the check-out day is not a night.
"""

import datetime as dt
from collections.abc import Iterator

from staybook.models.errors import ErrorCode, ValidationError


def to_calendar_day(value: dt.date | dt.datetime | str) -> dt.date:
    """Normalize a date-like value to a UTC calendar day.

    Aware datetimes are converted to UTC before the day is taken; naive
    datetimes are assumed to already be UTC. Strings may be ISO dates or
    ISO datetimes (a trailing ``Z`` is accepted).

    Raises:
        ValidationError: If the value cannot be interpreted as a date.
    """
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt.UTC)
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return dt.date.fromisoformat(text)
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            return to_calendar_day(dt.datetime.fromisoformat(text))
        except ValueError:
            pass
    raise ValidationError(
        ErrorCode.INVALID_DATE_RANGE,
        details={"value": str(value), "reason": "not a valid date"},
    )


def validate_stay(
    check_in: dt.date | dt.datetime | str,
    check_out: dt.date | dt.datetime | str,
) -> tuple[dt.date, dt.date]:
    """Normalize a stay and require ``check_in < check_out``."""
    start = to_calendar_day(check_in)
    end = to_calendar_day(check_out)
    if end <= start:
        raise ValidationError(
            ErrorCode.INVALID_DATE_RANGE,
            details={
                "check_in": start.isoformat(),
                "check_out": end.isoformat(),
                "reason": "check_out must be after check_in",
            },
        )
    return start, end


def nights_between(check_in: dt.date, check_out: dt.date) -> int:
    """Number of nights in ``[check_in, check_out)``."""
    return (check_out - check_in).days


def iter_nights(check_in: dt.date, check_out: dt.date) -> Iterator[dt.date]:
    """Yield each night of the stay, excluding the check-out day."""
    current = check_in
    while current < check_out:
        yield current
        current += dt.timedelta(days=1)


def ranges_overlap(
    a_start: dt.date, a_end: dt.date, b_start: dt.date, b_end: dt.date
) -> bool:
    """Half-open interval overlap; back-to-back stays do not overlap."""
    return a_start < b_end and a_end > b_start
