"""Availability and price quote models."""

import datetime as dt

from pydantic import BaseModel, Field

from .allocation import GroupAllocation
from .enums import UnavailableReason


class AvailabilityResult(BaseModel):
    """Outcome of an availability check for one unit and stay."""

    available: bool
    reason: UnavailableReason | None = None
    min_stay: int | None = Field(
        default=None,
        description="Effective minimum nights, set when reason is min_stay",
    )

    @classmethod
    def ok(cls) -> "AvailabilityResult":
        return cls(available=True)


class NightlyPrice(BaseModel):
    """Price of a single night."""

    date: dt.date
    price: int = Field(..., ge=0, description="EUR cents including extra-guest surcharge")
    source: str = Field(..., description="override, season or base")


class PriceQuote(BaseModel):
    """Total stay price with per-night breakdown. Amounts in EUR cents."""

    unit_id: str
    check_in: dt.date
    check_out: dt.date
    nights: int
    guest_count: int
    nightly: list[NightlyPrice]
    total_price: int


class AvailabilityQuote(AvailabilityResult):
    """Availability answer for the booking flow; price only when available."""

    price: int | None = Field(default=None, description="Stay total in EUR cents")


class UnitOffer(BaseModel):
    """A unit that can hold the whole party for the requested stay."""

    unit_id: str
    name: str
    capacity: int
    price: int


class SearchResult(BaseModel):
    """Units available for a stay, with a group option when none fits alone."""

    check_in: dt.date
    check_out: dt.date
    party_size: int
    available_units: list[UnitOffer] = Field(default_factory=list)
    group_option: GroupAllocation | None = None
