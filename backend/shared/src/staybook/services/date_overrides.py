"""Per-day calendar overrides (price, blocked flag, minimum stay)."""

import datetime as dt
import logging

from boto3.dynamodb.conditions import Key

from staybook.models.date_override import DateOverride
from staybook.services.dynamodb import DynamoDBService

logger = logging.getLogger(__name__)


class DateOverrideService:
    """Reads overrides for a unit; bulk upsert is for the operator's admin flow."""

    TABLE = "date-overrides"

    def __init__(self, db: DynamoDBService) -> None:
        self.db = db

    def get_overrides(
        self, unit_id: str, start: dt.date, end: dt.date
    ) -> dict[dt.date, DateOverride]:
        """Overrides for days in ``[start, end)``, keyed by day."""
        if end <= start:
            return {}
        last_day = end - dt.timedelta(days=1)
        items = self.db.query(
            self.TABLE,
            Key("unit_id").eq(unit_id)
            & Key("date").between(start.isoformat(), last_day.isoformat()),
        )
        overrides = (DateOverride.model_validate(item) for item in items)
        return {override.date: override for override in overrides}

    def bulk_upsert(self, overrides: list[DateOverride]) -> int:
        """Create or replace overrides. Returns the number written."""
        self.db.batch_put(
            self.TABLE,
            [o.model_dump(mode="json", exclude_none=True) for o in overrides],
        )
        logger.info("Upserted %d date overrides", len(overrides))
        return len(overrides)
