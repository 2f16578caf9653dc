"""Tests for the development seed script."""

import datetime as dt

from staybook.scripts.seed_data import clear_table, main, sample_units, seed


def test_seed_writes_units_and_overrides(db, unit_service, override_service):
    units, overrides = seed(db, 2025)

    assert units == 3
    assert overrides == 8
    assert [u.unit_id for u in unit_service.list_units()] == ["casa-grande", "casa-jardin", "estudio-mar"]
    peak = override_service.get_overrides("casa-jardin", dt.date(2025, 8, 15), dt.date(2025, 8, 16))
    assert peak[dt.date(2025, 8, 15)].min_stay == 7
    march = override_service.get_overrides("casa-grande", dt.date(2025, 3, 1), dt.date(2025, 4, 1))
    assert march[dt.date(2025, 3, 12)].is_blocked is True


def test_seeded_units_support_group_search(db, search_service):
    seed(db, 2025)

    result = search_service.search(dt.date(2025, 5, 5), dt.date(2025, 5, 8), 10)

    assert result.available_units == []
    assert result.group_option.total_guests == 10


def test_units_only(db, override_service):
    assert seed(db, 2025, units_only=True) == (3, 0)
    assert override_service.get_overrides("casa-grande", dt.date(2025, 3, 1), dt.date(2025, 4, 1)) == {}


def test_clear_table(db):
    seed(db, 2025)

    assert clear_table(db, "date-overrides") == 8
    assert db.scan("date-overrides") == []


def test_main_uses_table_prefix(db, unit_service):
    assert main(["--env", "dev", "--year", "2025", "--clear-first"]) == 0

    assert len(unit_service.list_units()) == len(sample_units(2025))
