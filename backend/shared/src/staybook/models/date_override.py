"""Per-day calendar override for a unit."""

import datetime as dt

from pydantic import BaseModel, Field


class DateOverride(BaseModel):
    """Price, blocking or minimum-stay override for one unit on one day.

    Written in bulk by the property operator; the booking core only reads it.
    """

    unit_id: str
    date: dt.date
    price: int | None = Field(default=None, ge=0, description="Nightly rate in EUR cents")
    is_blocked: bool = False
    min_stay: int | None = Field(
        default=None,
        ge=1,
        description="Minimum nights for stays checking in on this day",
    )
    notes: str | None = None
