"""API models for reservation endpoints."""

from typing import Literal

from pydantic import BaseModel, Field

from staybook.models.enums import ReservationStatus
from staybook.models.reservation import GroupReservationCreate, Reservation, ReservationCreate

# Only these two statuses can be requested by a caller
CreationStatus = Literal["inquiry", "pending"]


class ReservationCreateRequest(ReservationCreate):
    """Create a single-unit inquiry or pending reservation."""

    status: CreationStatus = Field(
        default="inquiry",
        description="'inquiry' skips the calendar; 'pending' checks it and leads to payment",
    )

    @property
    def reservation_status(self) -> ReservationStatus:
        return ReservationStatus(self.status)


class GroupReservationCreateRequest(GroupReservationCreate):
    """Create a group inquiry or pending reservation across several units."""

    status: CreationStatus = "inquiry"

    @property
    def reservation_status(self) -> ReservationStatus:
        return ReservationStatus(self.status)


class GroupReservationResponse(BaseModel):
    """All sibling reservations created for one group."""

    group_reference: str
    reservations: list[Reservation]
    total_price: int = Field(..., description="Sum over siblings, EUR cents")


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class CancellationResponse(BaseModel):
    """Result of an explicit cancellation; lists every cancelled sibling."""

    cancelled: list[Reservation]


class ReservationListResponse(BaseModel):
    reservations: list[Reservation]
    total_count: int
