"""Reservation models.

Dates are calendar days; a stay covers ``[check_in, check_out)``.
Amounts are stored in EUR cents.
"""

import datetime as dt
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from .enums import PaymentStatus, ReservationSource, ReservationStatus


class GuestContact(BaseModel):
    """Contact details of the guest making the request."""

    guest_name: str = Field(..., min_length=1, max_length=200)
    guest_email: EmailStr
    guest_phone: str | None = Field(default=None, max_length=40)

    @field_validator("guest_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("guest_name must not be blank")
        return value

    @field_validator("guest_email", mode="before")
    @classmethod
    def _normalize_email(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


class Reservation(GuestContact):
    """A stored reservation for one unit.

    Group siblings share ``group_reference`` and transition together.
    """

    reservation_id: str = Field(..., examples=["RES-2024-1A2B3C4D"])
    unit_id: str
    group_reference: str | None = Field(default=None, examples=["GRP-2024-A1B2C3"])
    check_in: dt.date
    check_out: dt.date
    guest_count: int = Field(..., ge=1)
    total_price: int = Field(..., ge=0, description="Stay price in EUR cents")
    status: ReservationStatus
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_session_id: str | None = None
    payment_attempt: int = Field(
        default=0,
        ge=0,
        description="Bumped each time a payment session is declared dead",
    )
    source: ReservationSource = ReservationSource.DIRECT
    notes: str | None = None
    needs_manual_refund: bool = False
    created_at: dt.datetime
    updated_at: dt.datetime

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "Reservation":
        """Build from a DynamoDB item."""
        return cls.model_validate(item)

    def to_item(self) -> dict[str, Any]:
        """Serialize for DynamoDB; None attributes are omitted."""
        return self.model_dump(mode="json", exclude_none=True)


class ReservationCreate(GuestContact):
    """Request to reserve a single unit."""

    unit_id: str
    check_in: dt.date
    check_out: dt.date
    guest_count: int = Field(..., ge=1, description="Adults")
    children_count: int = Field(default=0, ge=0)
    source: ReservationSource = ReservationSource.DIRECT
    notes: str | None = Field(default=None, max_length=2000)

    @property
    def party_size(self) -> int:
        return self.guest_count + self.children_count


class UnitShare(BaseModel):
    """Guests assigned to one unit of a group request."""

    unit_id: str
    guest_count: int = Field(..., ge=1)


class GroupReservationCreate(GuestContact):
    """Request to split one party across several units.

    ``allocations`` may be supplied by the caller (usually the group option
    returned by a search); when omitted the allocator computes one.
    """

    check_in: dt.date
    check_out: dt.date
    guest_count: int = Field(..., ge=1, description="Adults")
    children_count: int = Field(default=0, ge=0)
    allocations: list[UnitShare] | None = None
    source: ReservationSource = ReservationSource.DIRECT
    notes: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _unique_units(self) -> "GroupReservationCreate":
        if self.allocations is not None:
            unit_ids = [share.unit_id for share in self.allocations]
            if len(unit_ids) != len(set(unit_ids)):
                raise ValueError("each unit may appear only once in allocations")
        return self

    @property
    def party_size(self) -> int:
        return self.guest_count + self.children_count
