"""Unit catalogue access."""

import logging

from staybook.models.errors import ErrorCode, NotFoundError
from staybook.models.unit import Unit
from staybook.services.dynamodb import DynamoDBService

logger = logging.getLogger(__name__)


class UnitService:
    """Reads (and seeds) rental units."""

    TABLE = "units"

    def __init__(self, db: DynamoDBService) -> None:
        self.db = db

    def find_unit(self, unit_id: str) -> Unit | None:
        item = self.db.get_item(self.TABLE, {"unit_id": unit_id})
        return Unit.model_validate(item) if item else None

    def get_unit(self, unit_id: str) -> Unit:
        """Get a unit or raise NotFoundError."""
        unit = self.find_unit(unit_id)
        if unit is None:
            raise NotFoundError(ErrorCode.UNIT_NOT_FOUND, details={"unit_id": unit_id})
        return unit

    def list_units(self) -> list[Unit]:
        """All units, ordered by unit_id for stable results."""
        units = [Unit.model_validate(item) for item in self.db.scan(self.TABLE)]
        return sorted(units, key=lambda unit: unit.unit_id)

    def put_unit(self, unit: Unit) -> Unit:
        self.db.put_item(self.TABLE, unit.model_dump(mode="json", exclude_none=True))
        logger.info("Stored unit %s (capacity %d)", unit.unit_id, unit.capacity)
        return unit
