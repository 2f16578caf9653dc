"""Availability endpoints.

All dates are in YYYY-MM-DD format; check_out is exclusive. Amounts are in
EUR cents.
"""

from fastapi import APIRouter, Depends

from staybook.models.availability import AvailabilityQuote, SearchResult
from staybook.services.availability import AvailabilityService
from staybook.services.search import SearchService
from staybook_api.dependencies import get_availability_service, get_search_service
from staybook_api.models.availability import AvailabilityRequest, SearchRequest

router = APIRouter(tags=["availability"])


@router.post(
    "/availability",
    summary="Check availability of one unit",
    description="""
Check whether a unit can be booked for the stay and party.

Returns `available` and, when unavailable, the first failing rule as
`reason` (`overlap`, `blocked` or `min_stay`, the latter with the
effective `min_stay`). The stay price is included only when available.

Only confirmed and completed reservations occupy the calendar; other
pending requests do not.
""",
    response_model=AvailabilityQuote,
    response_model_exclude_none=True,
    responses={
        200: {
            "description": "Availability check completed",
            "content": {
                "application/json": {
                    "examples": {
                        "available": {"value": {"available": True, "price": 30000}},
                        "min_stay": {
                            "value": {"available": False, "reason": "min_stay", "min_stay": 3}
                        },
                    }
                }
            },
        },
        400: {"description": "Invalid date range or party larger than the unit"},
        404: {"description": "Unit not found"},
    },
)
async def check_availability(
    body: AvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityQuote:
    return service.quote(
        body.unit_id,
        body.check_in,
        body.check_out,
        body.guest_count,
        body.children_count,
    )


@router.post(
    "/availability/search",
    summary="Search all units",
    description="""
List every unit that can hold the whole party for the stay, largest
first, each with its price. When none fits and group booking is enabled,
`group_option` proposes a split of the party across several units.
""",
    response_model=SearchResult,
)
async def search_availability(
    body: SearchRequest,
    service: SearchService = Depends(get_search_service),
) -> SearchResult:
    return service.search(body.check_in, body.check_out, body.guest_count, body.children_count)
