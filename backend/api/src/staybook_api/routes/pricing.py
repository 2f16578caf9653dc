"""Pricing endpoints. Amounts are in EUR cents."""

import datetime as dt

from fastapi import APIRouter, Depends, Query

from staybook.models.availability import PriceQuote
from staybook.services.pricing import PricingService
from staybook_api.dependencies import get_pricing_service

router = APIRouter(tags=["pricing"])


@router.get(
    "/units/{unit_id}/price",
    summary="Quote a stay price",
    description="""
Price a stay in one unit with a per-night breakdown.

Each night uses the date override price, else the matching seasonal
price, else the unit base price. Units priced per person add the
extra-guest surcharge above the included guests.
""",
    response_model=PriceQuote,
    responses={
        400: {"description": "Invalid date range"},
        404: {"description": "Unit not found"},
    },
)
async def get_stay_price(
    unit_id: str,
    check_in: dt.date = Query(..., examples=["2025-07-15"]),
    check_out: dt.date = Query(..., examples=["2025-07-18"]),
    guest_count: int = Query(default=1, ge=1),
    service: PricingService = Depends(get_pricing_service),
) -> PriceQuote:
    return service.compute_stay_price(unit_id, check_in, check_out, guest_count)
