"""Domain event published to the outbox table."""

import datetime as dt
from typing import Any

from pydantic import BaseModel, Field

from .enums import DomainEventType


class DomainEvent(BaseModel):
    """Notification for external collaborators (mailers, invoicing)."""

    event_id: str
    event_type: DomainEventType
    reservation_ids: list[str]
    group_reference: str | None = None
    payload: dict[str, str] = Field(default_factory=dict)
    occurred_at: dt.datetime

    def to_item(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
