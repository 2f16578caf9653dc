"""Payment session and payment event models."""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field

from .enums import PaymentEventType


class PaymentSession(BaseModel):
    """External checkout session opened for one or several reservations."""

    model_config = ConfigDict(strict=True)

    session_id: str = Field(..., examples=["cs_test_a1b2c3"])
    redirect_url: str
    reservation_ids: list[str]
    group_reference: str | None = None
    amount_total: int = Field(..., ge=0, description="EUR cents")
    expires_at: dt.datetime | None = None


class PaymentEvent(BaseModel):
    """Processor-neutral payment event consumed by the reconciler.

    ``metadata`` is echoed back verbatim from session creation.
    """

    event_type: PaymentEventType
    session_id: str
    event_id: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def is_group(self) -> bool:
        return self.metadata.get("is_group") == "true"

    @property
    def reservation_ids(self) -> list[str]:
        """Reservation ids carried in the metadata."""
        if self.is_group:
            raw = self.metadata.get("group_reservation_ids", "")
            return [rid for rid in raw.split(",") if rid]
        rid = self.metadata.get("reservation_id")
        return [rid] if rid else []


class ReconciliationResult(BaseModel):
    """What the reconciler did with one event."""

    outcome: str = Field(
        ...,
        description="confirmed, compensated, duplicate_payment, marked_failed or noop",
    )
    reservation_ids: list[str] = Field(default_factory=list)
    conflicts: dict[str, list[str]] = Field(default_factory=dict)
