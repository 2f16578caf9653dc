"""Stay search across all units, falling back to a group option."""

import datetime as dt
from typing import TYPE_CHECKING

from staybook.config import Settings
from staybook.models import ErrorCode, SearchResult, UnitOffer, ValidationError
from staybook.utils.dates import validate_stay

if TYPE_CHECKING:
    from .allocation import GroupAllocator
    from .availability import AvailabilityService
    from .pricing import PricingService
    from .units import UnitService


class SearchService:
    """Finds units that can host a party for a stay."""

    def __init__(
        self,
        units: "UnitService",
        availability: "AvailabilityService",
        pricing: "PricingService",
        allocator: "GroupAllocator",
        settings: Settings,
    ) -> None:
        self.units = units
        self.availability = availability
        self.pricing = pricing
        self.allocator = allocator
        self.settings = settings

    def search(
        self,
        check_in: dt.date | str,
        check_out: dt.date | str,
        guest_count: int,
        children_count: int = 0,
    ) -> SearchResult:
        """List units that fit the whole party, largest first.

        When none fits, group booking is enabled and the party has more
        than one guest, a group option is attached instead.
        """
        start, end = validate_stay(check_in, check_out)
        if guest_count < 1 or children_count < 0:
            raise ValidationError(ErrorCode.INVALID_REQUEST, details={"guest_count": str(guest_count)})
        party_size = guest_count + children_count

        units = sorted(self.units.list_units(), key=lambda u: u.capacity, reverse=True)
        result = SearchResult(check_in=start, check_out=end, party_size=party_size)

        available = [u for u in units if self.availability.is_unit_available(u, start, end)]
        for unit in available:
            if unit.capacity < party_size:
                continue
            quote = self.pricing.compute_stay_price(unit.unit_id, start, end, party_size, unit=unit)
            result.available_units.append(
                UnitOffer(
                    unit_id=unit.unit_id,
                    name=unit.name,
                    capacity=unit.capacity,
                    price=quote.total_price,
                )
            )

        if not result.available_units and self.settings.allow_group_booking and party_size > 1:
            result.group_option = self.allocator.allocate(start, end, party_size, candidates=available)
        return result
