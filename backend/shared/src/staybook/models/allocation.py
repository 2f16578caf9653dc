"""Group allocation models."""

from pydantic import BaseModel, Field


class UnitAllocation(BaseModel):
    """Guests assigned to one unit, priced for that share."""

    unit_id: str
    name: str = ""
    capacity: int = Field(..., ge=1)
    assigned_guests: int = Field(..., ge=1)
    price: int = Field(default=0, ge=0, description="EUR cents for the assigned guests")


class GroupAllocation(BaseModel):
    """A full-coverage split of one party across several units."""

    allocations: list[UnitAllocation]
    total_guests: int
    total_price: int
