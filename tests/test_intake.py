import json

import pytest

from ricemill.db import export_backup
from ricemill.errors import InsufficientStockError, ValidationError
from ricemill.services.demo_data import load_demo_data, upsert_reference_data
from ricemill.services.intake import (
    centers,
    districts,
    filter_records,
    list_intake,
    paginate,
    summary_stats,
)
from ricemill.services.reconciliation import list_dispatches
from ricemill.services.summary import operations_summary


def test_seed_summary(seeded):
    s = summary_stats(list_intake(seeded))

    assert s.total_records == 5
    assert s.total_new_bags == 0
    assert s.total_old_bags == s.total_bags == 3359
    assert s.total_quintals == pytest.approx(1343.6)
    assert s.unique_centers == 4
    assert s.unique_districts == 1


def test_seed_dates_are_iso(seeded):
    records = list_intake(seeded)
    assert [r.date for r in records] == ["2025-04-27"] * 3 + ["2025-04-28"] * 2
    assert [r.s_no for r in records] == [1, 2, 3, 4, 5]


def test_seeding_only_fills_missing_collections(seeded, make_intake):
    make_intake("PACS NEW", 50.0)

    assert upsert_reference_data(seeded) == []
    assert len(list_intake(seeded)) == 6
    assert len(list_dispatches(seeded)) == 15


def test_add_intake_numbers_and_totals(seeded, make_intake):
    rec = make_intake("pacs kasala i", 120.5, bags=300)

    assert rec.s_no == 6
    assert rec.center_name == "PACS KASALA I"
    assert rec.total_bags == 300
    assert list_intake(seeded)[-1] == rec


@pytest.mark.parametrize("quintals,bags", [(0, 100), (-3, 100), ("x", 100), (10.0, 0)])
def test_add_intake_validation(conn, make_intake, quintals, bags):
    with pytest.raises(ValidationError):
        make_intake("PACS X", quintals, bags=bags)
    assert list_intake(conn) == []


def test_filters(seeded):
    records = list_intake(seeded)

    assert [r.s_no for r in filter_records(records, search="ka56.6348")] == [1, 5]
    assert [r.s_no for r in filter_records(records, center="PACS MADDUR")] == [3]
    assert [r.s_no for r in filter_records(records, search="12002")] == [4]
    assert [r.s_no for r in filter_records(records, date_from="2025-04-28")] == [4, 5]
    assert filter_records(records, district="MEDAK") == []
    assert districts(records) == ["SANGAREDDY"]
    assert centers(records) == ["PACS KASALA I", "PACS KASALA II", "PACS KONYALA", "PACS MADDUR"]


def test_pagination_clamps():
    rows = list(range(60))

    page, shown, total = paginate(rows, 2, 25)
    assert (page[0], len(page), shown, total) == (25, 25, 2, 3)

    page, shown, _ = paginate(rows, 99, 25)
    assert (page, shown) == (list(range(50, 60)), 3)

    page, shown, total = paginate([], 0, 25)
    assert (page, shown, total) == ([], 1, 1)


def test_demo_data_loads(seeded):
    load_demo_data(seeded, seed=3)

    s = operations_summary(seeded)
    assert s["acks"].produced == 2
    assert s["stock"].frk_received == 1000
    assert s["electricity"]["total_kwh"] > 0
    assert s["hamali"]["pending_entries"] == 4


def test_second_demo_load_writes_nothing(seeded):
    load_demo_data(seeded)
    before = export_backup(seeded)

    with pytest.raises(InsufficientStockError):
        load_demo_data(seeded)

    assert json.loads(export_backup(seeded))["collections"] == json.loads(before)["collections"]
