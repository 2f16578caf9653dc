"""API models for availability and search endpoints."""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class AvailabilityRequest(BaseModel):
    """Availability query for one unit."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "unit_id": "sea-view",
                    "check_in": "2025-07-15",
                    "check_out": "2025-07-18",
                    "guest_count": 2,
                    "children_count": 0,
                }
            ]
        },
    )

    unit_id: str = Field(..., min_length=1)
    check_in: dt.date = Field(..., description="Check-in date (YYYY-MM-DD)")
    check_out: dt.date = Field(..., description="Check-out date, exclusive (YYYY-MM-DD)")
    guest_count: int = Field(..., ge=1, description="Adults")
    children_count: int = Field(default=0, ge=0)


class SearchRequest(BaseModel):
    """Search across all units for a party."""

    check_in: dt.date
    check_out: dt.date
    guest_count: int = Field(..., ge=1, description="Adults")
    children_count: int = Field(default=0, ge=0)
