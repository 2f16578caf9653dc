"""Availability service: overlap, blocked-date and minimum-stay checks.

Only ``confirmed`` and ``completed`` reservations occupy the calendar.
Pending and inquiry reservations never block each other; the decisive
overlap check runs again when a payment completes.
"""

import datetime as dt
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from boto3.dynamodb.conditions import Attr, Key

from staybook.models import (
    BLOCKING_STATUSES,
    AvailabilityQuote,
    AvailabilityResult,
    DateOverride,
    ErrorCode,
    Reservation,
    UnavailableReason,
    Unit,
    ValidationError,
)
from staybook.utils.dates import nights_between, ranges_overlap, validate_stay

if TYPE_CHECKING:
    from .date_overrides import DateOverrideService
    from .dynamodb import DynamoDBService
    from .pricing import PricingService
    from .units import UnitService

logger = logging.getLogger(__name__)


def evaluate_calendar(
    unit: Unit,
    check_in: dt.date,
    check_out: dt.date,
    overrides: dict[dt.date, DateOverride],
) -> AvailabilityResult:
    """Blocked-day and minimum-stay rules for a stay, given its overrides."""
    if any(o.is_blocked for day, o in overrides.items() if check_in <= day < check_out):
        return AvailabilityResult(available=False, reason=UnavailableReason.BLOCKED)

    check_in_override = overrides.get(check_in)
    if check_in_override is not None and check_in_override.min_stay is not None:
        min_stay = check_in_override.min_stay
    else:
        min_stay = unit.min_stay

    if nights_between(check_in, check_out) < min_stay:
        return AvailabilityResult(
            available=False,
            reason=UnavailableReason.MIN_STAY,
            min_stay=min_stay,
        )
    return AvailabilityResult.ok()


class AvailabilityService:
    """Service for availability checks against the unit calendar."""

    RESERVATIONS_TABLE = "reservations"
    UNIT_CHECK_IN_INDEX = "unit_id-check_in-index"

    def __init__(
        self,
        db: "DynamoDBService",
        units: "UnitService",
        overrides: "DateOverrideService",
        pricing: "PricingService",
    ) -> None:
        """Initialize availability service.

        Args:
            db: DynamoDB service instance
            units: Unit catalogue
            overrides: Date override reader
            pricing: Pricing service used for quotes
        """
        self.db = db
        self.units = units
        self.overrides = overrides
        self.pricing = pricing

    def find_conflicts(
        self,
        unit_id: str,
        check_in: dt.date | str,
        check_out: dt.date | str,
        exclude_reservation_ids: Iterable[str] = (),
    ) -> list[Reservation]:
        """Confirmed/completed reservations overlapping ``[check_in, check_out)``.

        Args:
            unit_id: Unit to check
            check_in: Requested check-in
            check_out: Requested check-out
            exclude_reservation_ids: Reservations to ignore (usually the caller's own)

        Returns:
            Overlapping reservations, empty when the calendar is free
        """
        start, end = validate_stay(check_in, check_out)
        excluded = set(exclude_reservation_ids)

        # Candidates start before our check-out; the filter keeps those
        # ending after our check-in. Back-to-back stays fall out here.
        items = self.db.query(
            self.RESERVATIONS_TABLE,
            Key("unit_id").eq(unit_id) & Key("check_in").lt(end.isoformat()),
            index_name=self.UNIT_CHECK_IN_INDEX,
            filter_expression=(
                Attr("check_out").gt(start.isoformat())
                & Attr("status").is_in([s.value for s in BLOCKING_STATUSES])
            ),
        )

        conflicts = []
        for item in items:
            existing = Reservation.from_item(item)
            if existing.reservation_id in excluded:
                continue
            if ranges_overlap(existing.check_in, existing.check_out, start, end):
                conflicts.append(existing)
        return conflicts

    def check_availability(
        self,
        unit_id: str,
        check_in: dt.date | str,
        check_out: dt.date | str,
        exclude_reservation_ids: Iterable[str] = (),
    ) -> AvailabilityResult:
        """Check whether a unit can be booked for a stay.

        Rules are applied in order: overlap with confirmed/completed
        reservations, blocked days, then the effective minimum stay
        (check-in day override, else the unit default).

        Raises:
            ValidationError: If check_out is not after check_in
            NotFoundError: If the unit does not exist
        """
        start, end = validate_stay(check_in, check_out)
        unit = self.units.get_unit(unit_id)
        return self.check_unit(unit, start, end, exclude_reservation_ids)

    def check_unit(
        self,
        unit: Unit,
        start: dt.date,
        end: dt.date,
        exclude_reservation_ids: Iterable[str] = (),
    ) -> AvailabilityResult:
        conflicts = self.find_conflicts(unit.unit_id, start, end, exclude_reservation_ids)
        if conflicts:
            logger.info(
                "Unit %s overlaps %d reservation(s) for %s..%s",
                unit.unit_id,
                len(conflicts),
                start,
                end,
            )
            return AvailabilityResult(available=False, reason=UnavailableReason.OVERLAP)

        overrides = self.overrides.get_overrides(unit.unit_id, start, end)
        return evaluate_calendar(unit, start, end, overrides)

    def is_unit_available(self, unit: Unit, start: dt.date, end: dt.date) -> bool:
        """Availability for an already-loaded unit (used when scanning many units)."""
        return self.check_unit(unit, start, end).available

    def quote(
        self,
        unit_id: str,
        check_in: dt.date | str,
        check_out: dt.date | str,
        guest_count: int,
        children_count: int = 0,
    ) -> AvailabilityQuote:
        """Availability plus price for a party in one unit.

        The price is only included when the stay is available.

        Raises:
            ValidationError: Invalid dates or party larger than the unit
            NotFoundError: If the unit does not exist
        """
        start, end = validate_stay(check_in, check_out)
        party_size = guest_count + children_count
        if guest_count < 1 or children_count < 0:
            raise ValidationError(
                ErrorCode.INVALID_REQUEST,
                details={"guest_count": str(guest_count), "children_count": str(children_count)},
            )

        unit = self.units.get_unit(unit_id)
        if party_size > unit.capacity:
            raise ValidationError(
                ErrorCode.CAPACITY_EXCEEDED,
                details={"unit_id": unit_id, "capacity": str(unit.capacity), "guests": str(party_size)},
            )

        result = self.check_unit(unit, start, end)
        if not result.available:
            return AvailabilityQuote(**result.model_dump())

        price = self.pricing.compute_stay_price(unit_id, start, end, party_size, unit=unit)
        return AvailabilityQuote(available=True, price=price.total_price)
