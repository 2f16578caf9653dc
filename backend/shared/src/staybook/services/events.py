"""Domain event outbox.

Events are written to the ``domain-events`` table for the notification and
invoicing collaborators to consume. Publishing never fails the caller: a
storage error is logged and the booking operation proceeds.
"""

import datetime as dt
import logging
import uuid
from typing import TYPE_CHECKING

from botocore.exceptions import BotoCoreError, ClientError

from staybook.models import DomainEvent, DomainEventType, Reservation

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = logging.getLogger(__name__)


class EventPublisher:
    """Writes domain events to the outbox table."""

    TABLE = "domain-events"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def publish(
        self,
        event_type: DomainEventType,
        reservations: list[Reservation],
        payload: dict[str, str] | None = None,
    ) -> DomainEvent | None:
        """Record an event about a reservation or sibling set.

        Returns:
            The stored event, or None if it could not be written
        """
        event = DomainEvent(
            event_id=f"EVT-{uuid.uuid4().hex}",
            event_type=event_type,
            reservation_ids=[r.reservation_id for r in reservations],
            group_reference=reservations[0].group_reference if reservations else None,
            payload=payload or {},
            occurred_at=dt.datetime.now(dt.UTC),
        )
        try:
            self.db.put_item(self.TABLE, event.to_item())
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Failed to publish %s for %s: %s",
                event_type.value,
                ",".join(event.reservation_ids),
                e,
            )
            return None

        logger.info(
            "Published %s for %s",
            event_type.value,
            ",".join(event.reservation_ids),
        )
        return event

    def list_events(self, event_type: DomainEventType | None = None) -> list[DomainEvent]:
        """All stored events, oldest first (operator tooling and tests)."""
        items = self.db.scan(self.TABLE)
        events = [DomainEvent.model_validate(item) for item in items]
        if event_type is not None:
            events = [e for e in events if e.event_type == event_type]
        return sorted(events, key=lambda e: e.occurred_at)
