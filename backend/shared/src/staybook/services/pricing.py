"""Pricing service for per-stay rate calculation.

The nightly rate is resolved in priority order: a date override price, then
the first season covering the night, then the unit base price. Units priced
per person add a surcharge for each guest above ``base_guests``.
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from staybook.models import (
    DateOverride,
    ExtraGuestPriceType,
    NightlyPrice,
    PriceQuote,
    PricingMode,
    Unit,
)
from staybook.utils.dates import iter_nights, nights_between, validate_stay

if TYPE_CHECKING:
    from .date_overrides import DateOverrideService
    from .units import UnitService


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def extra_guest_surcharge(unit: Unit, nightly_rate: int, guest_count: int) -> int:
    """Per-night surcharge for guests above the unit's base-guest threshold."""
    if unit.pricing_mode != PricingMode.PER_PERSON:
        return 0
    extra_guests = max(0, guest_count - unit.base_guests)
    if extra_guests == 0:
        return 0
    if unit.extra_guest_price_type == ExtraGuestPriceType.PERCENTAGE:
        per_guest = Decimal(nightly_rate) * Decimal(unit.extra_guest_price) / Decimal(100)
        return _round_cents(per_guest * extra_guests)
    return unit.extra_guest_price * extra_guests


def calculate_stay_price(
    unit: Unit,
    check_in: dt.date,
    check_out: dt.date,
    guest_count: int,
    overrides: dict[dt.date, DateOverride],
) -> PriceQuote:
    """Price a stay without touching storage.

    Args:
        unit: Unit with base and seasonal prices
        check_in: First night
        check_out: Departure day (not charged)
        guest_count: Guests staying in this unit
        overrides: Date overrides for the stay, keyed by day

    Returns:
        PriceQuote with the per-night breakdown
    """
    nightly: list[NightlyPrice] = []
    for night in iter_nights(check_in, check_out):
        override = overrides.get(night)
        if override is not None and override.price is not None:
            rate, source = override.price, "override"
        else:
            season = unit.season_for(night)
            if season is not None:
                rate, source = season.price, "season"
            else:
                rate, source = unit.base_price, "base"

        rate += extra_guest_surcharge(unit, rate, guest_count)
        nightly.append(NightlyPrice(date=night, price=rate, source=source))

    return PriceQuote(
        unit_id=unit.unit_id,
        check_in=check_in,
        check_out=check_out,
        nights=nights_between(check_in, check_out),
        guest_count=guest_count,
        nightly=nightly,
        total_price=sum(n.price for n in nightly),
    )


class PricingService:
    """Service for stay pricing backed by units and date overrides."""

    def __init__(
        self,
        units: "UnitService",
        overrides: "DateOverrideService",
    ) -> None:
        self.units = units
        self.overrides = overrides

    def compute_stay_price(
        self,
        unit_id: str,
        check_in: dt.date | str,
        check_out: dt.date | str,
        guest_count: int,
        unit: Unit | None = None,
    ) -> PriceQuote:
        """Price a stay for ``guest_count`` guests in one unit.

        Args:
            unit_id: Unit to price
            check_in: Check-in day
            check_out: Check-out day
            guest_count: Guests assigned to this unit
            unit: Already-loaded unit, to skip a lookup

        Raises:
            ValidationError: If the date range is invalid
            NotFoundError: If the unit does not exist
        """
        start, end = validate_stay(check_in, check_out)
        unit = unit or self.units.get_unit(unit_id)
        overrides = self.overrides.get_overrides(unit.unit_id, start, end)
        return calculate_stay_price(unit, start, end, guest_count, overrides)
