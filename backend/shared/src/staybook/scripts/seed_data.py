#!/usr/bin/env python3
"""Seed a development database with sample units and calendar overrides.

Creates three units of different sizes (so group allocation can be tried
out) with seasonal prices, plus a few blocked days and a longer minimum
stay around the summer peak.

Usage:
    staybook-seed --env dev
    staybook-seed --env dev --units-only
    staybook-seed --env dev --clear-first
"""

import argparse
import datetime as dt
import os
import sys

from staybook.models import DateOverride, PricingMode, SeasonalPrice, Unit
from staybook.services.date_overrides import DateOverrideService
from staybook.services.dynamodb import DynamoDBService
from staybook.services.units import UnitService


def sample_units(year: int) -> list[Unit]:
    """Three units priced for a Mediterranean season."""

    def summer(price: int) -> SeasonalPrice:
        return SeasonalPrice(
            name="High Season (Summer)",
            start_date=dt.date(year, 7, 1),
            end_date=dt.date(year, 8, 31),
            price=price,
        )

    return [
        Unit(
            unit_id="casa-grande",
            name="Casa Grande",
            capacity=6,
            base_price=18000,  # €180.00
            min_stay=2,
            seasonal_prices=[summer(24000)],
        ),
        Unit(
            unit_id="casa-jardin",
            name="Casa Jardín",
            capacity=4,
            base_price=11000,
            pricing_mode=PricingMode.PER_PERSON,
            base_guests=2,
            extra_guest_price=2000,  # €20.00 per extra guest and night
            seasonal_prices=[summer(14000)],
        ),
        Unit(
            unit_id="estudio-mar",
            name="Estudio Mar",
            capacity=2,
            base_price=7000,
            seasonal_prices=[summer(9500)],
        ),
    ]


def sample_overrides(year: int) -> list[DateOverride]:
    """Maintenance closures and a peak-week minimum stay."""
    overrides = [
        DateOverride(unit_id="casa-grande", date=dt.date(year, 3, day), is_blocked=True, notes="Painting")
        for day in range(10, 15)
    ]
    overrides += [
        DateOverride(unit_id=unit_id, date=dt.date(year, 8, 15), min_stay=7, price=price, notes="Assumption week")
        for unit_id, price in (("casa-grande", 28000), ("casa-jardin", 16000), ("estudio-mar", 11000))
    ]
    return overrides


TABLE_KEYS = {"units": ("unit_id",), "date-overrides": ("unit_id", "date")}


def clear_table(db: DynamoDBService, table: str) -> int:
    """Delete every item of a table. Returns the number deleted."""
    items = db.scan(table)
    for item in items:
        db.delete_item(table, {k: item[k] for k in TABLE_KEYS[table]})
    return len(items)


def seed(db: DynamoDBService, year: int, units_only: bool = False) -> tuple[int, int]:
    """Write the sample data. Returns (units, overrides) written."""
    service = UnitService(db)
    units = sample_units(year)
    for unit in units:
        service.put_unit(unit)
        print(f"  ✓ {unit.name} (capacity {unit.capacity})")

    if units_only:
        return len(units), 0
    return len(units), DateOverrideService(db).bulk_upsert(sample_overrides(year))


def main(argv: list[str] | None = None) -> int:
    """Run the seed script."""
    parser = argparse.ArgumentParser(description="Seed development database with sample data")
    parser.add_argument(
        "--env",
        choices=["dev", "staging", "prod"],
        default="dev",
        help="Target environment (default: dev)",
    )
    parser.add_argument(
        "--year",
        type=int,
        default=dt.date.today().year,
        help="Season year for prices and overrides (default: current year)",
    )
    parser.add_argument("--units-only", action="store_true", help="Only seed units")
    parser.add_argument("--clear-first", action="store_true", help="Clear existing data before seeding")
    args = parser.parse_args(argv)

    if args.env == "prod":
        confirm = input("⚠️  WARNING: You are about to modify PRODUCTION data. Type 'yes' to continue: ")
        if confirm.lower() != "yes":
            print("Aborted.")
            return 1

    db = DynamoDBService(os.environ.get("DYNAMODB_TABLE_PREFIX", f"staybook-{args.env}"))
    print(f"\n🌱 Seeding {args.env} environment ({db.name_prefix}-*)\n")

    if args.clear_first:
        for table in ("units", "date-overrides"):
            print(f"  Cleared {clear_table(db, table)} items from {table}")

    unit_count, override_count = seed(db, args.year, args.units_only)
    print(f"\n✅ Seeded {unit_count} units and {override_count} date overrides")
    return 0


if __name__ == "__main__":
    sys.exit(main())
