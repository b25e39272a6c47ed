import pytest

from ricemill.db import _connect, ensure_schema
from ricemill.services.demo_data import upsert_reference_data
from ricemill.services.intake import add_intake


@pytest.fixture
def conn(tmp_path):
    c = _connect(tmp_path / "test.db")
    ensure_schema(c)
    yield c
    c.close()


@pytest.fixture
def seeded(conn):
    """Seed paddy intake (5 trucks, 1343.6 Qtl) and the old gunny dispatch list."""
    upsert_reference_data(conn)
    return conn


@pytest.fixture
def make_intake(conn):
    def _make(center, quintals, *, district="SANGAREDDY", bags=100, day="2025-05-01"):
        return add_intake(
            conn,
            date=day,
            vehicle_no="TS01AB1234",
            w_slip_no=900,
            truck_chit_no=13000,
            center_name=center,
            district=district,
            new_bags=0,
            old_bags=bags,
            total_quintals=quintals,
            moisture=13.0,
            unloading_point="OLD GODOWN",
        )

    return _make
