"""Rental unit model with its pricing rules."""

import datetime as dt

from pydantic import BaseModel, Field, model_validator

from .enums import ExtraGuestPriceType, PricingMode


class SeasonalPrice(BaseModel):
    """Nightly rate for a named season. Both boundary days are included."""

    name: str = Field(..., description="Season label", examples=["High season"])
    start_date: dt.date = Field(..., description="First night of the season")
    end_date: dt.date = Field(..., description="Last night of the season (inclusive)")
    price: int = Field(..., ge=0, description="Nightly rate in EUR cents")

    @model_validator(mode="after")
    def _check_range(self) -> "SeasonalPrice":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def covers(self, night: dt.date) -> bool:
        return self.start_date <= night <= self.end_date


class Unit(BaseModel):
    """A rentable unit. Amounts are stored in EUR cents."""

    unit_id: str = Field(..., description="Unit identifier", examples=["apt-sea-view"])
    name: str = Field(..., description="Display name")
    capacity: int = Field(..., ge=1, description="Maximum number of guests")
    base_price: int = Field(..., ge=0, description="Default nightly rate in EUR cents")
    pricing_mode: PricingMode = Field(default=PricingMode.FLAT)
    base_guests: int = Field(
        default=2,
        ge=1,
        description="Guests included in the nightly rate (per_person mode)",
    )
    extra_guest_price: int = Field(
        default=0,
        ge=0,
        description="Surcharge per extra guest: cents when fixed, percent when percentage",
    )
    extra_guest_price_type: ExtraGuestPriceType = Field(default=ExtraGuestPriceType.FIXED)
    min_stay: int = Field(default=1, ge=1, description="Default minimum nights")
    seasonal_prices: list[SeasonalPrice] = Field(default_factory=list)

    def season_for(self, night: dt.date) -> SeasonalPrice | None:
        """First season whose inclusive range contains ``night``."""
        for season in self.seasonal_prices:
            if season.covers(night):
                return season
        return None
