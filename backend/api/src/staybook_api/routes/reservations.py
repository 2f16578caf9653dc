"""Reservation endpoints.

Provides REST endpoints for:
- Creating single-unit and group reservations as inquiry or pending
- Retrieving a reservation by ID
- Cancelling an inquiry or pending reservation (with its group siblings)
- Listing reservations flagged for manual refund

Confirmation only happens through the payment webhook.
"""

from fastapi import APIRouter, Depends
from starlette.status import HTTP_201_CREATED

from staybook.models.reservation import Reservation
from staybook.services.reservations import ReservationService
from staybook_api.dependencies import get_reservation_service
from staybook_api.models.reservations import (
    CancellationResponse,
    CancelRequest,
    GroupReservationCreateRequest,
    GroupReservationResponse,
    ReservationCreateRequest,
    ReservationListResponse,
)

router = APIRouter(tags=["reservations"])


@router.post(
    "/reservations",
    summary="Create reservation",
    description="""
Create a reservation for one unit.

- `inquiry`: recorded without checking the calendar.
- `pending`: rejected with 409 if the dates overlap a confirmed or
  completed stay, include a blocked day or are shorter than the minimum
  stay. Proceed with `POST /api/payments/checkout`.

The total price is computed server-side. Amounts are in EUR cents.
""",
    response_model=Reservation,
    status_code=HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid dates, contact details or party larger than the unit"},
        404: {"description": "Unit not found"},
        409: {"description": "Dates unavailable, blocked or minimum stay not met"},
    },
)
async def create_reservation(
    body: ReservationCreateRequest,
    service: ReservationService = Depends(get_reservation_service),
) -> Reservation:
    return service.create_reservation(body, body.reservation_status)


@router.post(
    "/reservations/group",
    summary="Create group reservation",
    description="""
Split one party across several units under a shared group reference.

Pass `allocations` (usually the `group_option` returned by the search)
or omit it to let the allocator choose units. All siblings are written
atomically and later paid, confirmed or cancelled together.
""",
    response_model=GroupReservationResponse,
    status_code=HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid allocation or dates"},
        403: {"description": "Group booking disabled"},
        409: {"description": "No group option or a unit is unavailable"},
    },
)
async def create_group_reservation(
    body: GroupReservationCreateRequest,
    service: ReservationService = Depends(get_reservation_service),
) -> GroupReservationResponse:
    siblings = service.create_group_reservation(body, body.reservation_status)
    return GroupReservationResponse(
        group_reference=siblings[0].group_reference or "",
        reservations=siblings,
        total_price=sum(r.total_price for r in siblings),
    )


@router.get(
    "/reservations/compensations",
    summary="List reservations needing a manual refund",
    description="""
Reservations that were paid after their dates had been confirmed for
another booking. They are cancelled and must be refunded by hand.
""",
    response_model=ReservationListResponse,
)
async def list_compensations(
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationListResponse:
    reservations = service.list_needing_refund()
    return ReservationListResponse(reservations=reservations, total_count=len(reservations))


@router.get(
    "/reservations/{reservation_id}",
    summary="Get reservation",
    response_model=Reservation,
    responses={404: {"description": "Reservation not found"}},
)
async def get_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
) -> Reservation:
    return service.get_reservation(reservation_id)


@router.post(
    "/reservations/{reservation_id}/cancel",
    summary="Cancel reservation",
    description="""
Cancel an inquiry or pending reservation. Group siblings are cancelled
together. Confirmed, completed or already cancelled reservations return 409.
""",
    response_model=CancellationResponse,
    responses={
        404: {"description": "Reservation not found"},
        409: {"description": "Reservation cannot be cancelled in its current status"},
    },
)
async def cancel_reservation(
    reservation_id: str,
    body: CancelRequest | None = None,
    service: ReservationService = Depends(get_reservation_service),
) -> CancellationResponse:
    reason = body.reason if body else None
    return CancellationResponse(cancelled=service.cancel_reservation(reservation_id, reason))
