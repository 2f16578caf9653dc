"""API models for payment endpoints."""

from pydantic import BaseModel, ConfigDict, Field


class CheckoutRequest(BaseModel):
    """Open a checkout session for a reservation and, if grouped, its siblings.

    Redirect URLs default to the frontend booking pages.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"reservation_id": "RES-2025-1A2B3C4D"},
            ]
        },
    )

    reservation_id: str = Field(..., min_length=1)
    success_url: str | None = Field(
        default=None,
        description="May contain {CHECKOUT_SESSION_ID}",
    )
    cancel_url: str | None = None
