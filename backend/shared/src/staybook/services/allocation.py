"""Group allocator: split a party across several available units.

Only used when no single unit can hold the party. Units are taken largest
first until their combined capacity covers the party; each selected unit
then receives as many of the remaining guests as it can hold. A partial
allocation is never returned.
"""

import datetime as dt
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from staybook.models import GroupAllocation, Unit, UnitAllocation
from staybook.utils.dates import validate_stay

if TYPE_CHECKING:
    from .availability import AvailabilityService
    from .pricing import PricingService
    from .units import UnitService

logger = logging.getLogger(__name__)


def allocate_guests(units: Sequence[Unit], guest_count: int) -> list[tuple[Unit, int]] | None:
    """Greedy capacity-descending fill.

    Args:
        units: Candidate units, all available for the stay
        guest_count: Party size to place

    Returns:
        ``(unit, assigned_guests)`` pairs with no zero assignments, or None
        when the units cannot cover the party
    """
    if guest_count < 1:
        return None

    # sorted() is stable: equal capacities keep their input order
    ordered = sorted(units, key=lambda unit: unit.capacity, reverse=True)

    selected: list[Unit] = []
    covered = 0
    for unit in ordered:
        if covered >= guest_count:
            break
        selected.append(unit)
        covered += unit.capacity

    if covered < guest_count:
        return None

    remaining = guest_count
    assignments: list[tuple[Unit, int]] = []
    for unit in selected:
        share = min(remaining, unit.capacity)
        remaining -= share
        if share > 0:
            assignments.append((unit, share))
    return assignments


class GroupAllocator:
    """Builds priced group options from currently available units."""

    def __init__(
        self,
        units: "UnitService",
        availability: "AvailabilityService",
        pricing: "PricingService",
    ) -> None:
        self.units = units
        self.availability = availability
        self.pricing = pricing

    def available_units(self, check_in: dt.date, check_out: dt.date) -> list[Unit]:
        """Units independently available for the stay, in catalogue order."""
        return [
            unit
            for unit in self.units.list_units()
            if self.availability.is_unit_available(unit, check_in, check_out)
        ]

    def allocate(
        self,
        check_in: dt.date | str,
        check_out: dt.date | str,
        guest_count: int,
        candidates: Sequence[Unit] | None = None,
    ) -> GroupAllocation | None:
        """Produce a full-coverage group option, or None.

        Args:
            check_in: Check-in day
            check_out: Check-out day
            guest_count: Total party size
            candidates: Units already known to be available; looked up when omitted

        Returns:
            GroupAllocation priced per unit for its assigned guests
        """
        start, end = validate_stay(check_in, check_out)
        if candidates is None:
            candidates = self.available_units(start, end)

        assignments = allocate_guests(candidates, guest_count)
        if assignments is None:
            logger.info(
                "No group option for %d guests on %s..%s (%d units available)",
                guest_count,
                start,
                end,
                len(candidates),
            )
            return None

        allocations = []
        for unit, share in assignments:
            quote = self.pricing.compute_stay_price(unit.unit_id, start, end, share, unit=unit)
            allocations.append(
                UnitAllocation(
                    unit_id=unit.unit_id,
                    name=unit.name,
                    capacity=unit.capacity,
                    assigned_guests=share,
                    price=quote.total_price,
                )
            )

        return GroupAllocation(
            allocations=allocations,
            total_guests=sum(a.assigned_guests for a in allocations),
            total_price=sum(a.price for a in allocations),
        )
