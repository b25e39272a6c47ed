import pytest

from ricemill.errors import InsufficientStockError, RecordNotFoundError, ValidationError
from ricemill.services.production import (
    QTL_PER_ACK,
    ack_label,
    available_paddy,
    compute_quantities,
    create_batch,
    edit_batch,
    list_batches,
    parse_ack_count,
    production_totals,
)

SEED_TOTAL = 1343.6


def test_two_ack_boiled_batch(seeded):
    b = create_batch(seeded, ack_count=2, rice_type="boiled", production_date="2025-05-02")

    assert b.ack_number == "2 ACK BOILED"
    assert b.rice_produced == pytest.approx(574.2)
    assert b.paddy_used == pytest.approx(574.2 / 0.68)
    assert b.paddy_used == pytest.approx(844.41, abs=0.01)
    assert b.mill_name == "Surya Industries"


@pytest.mark.parametrize("n,rice_type,rate", [(1, "boiled", 0.68), (3, "raw", 0.67), (5, "raw", 0.67)])
def test_quantities_follow_outturn(n, rice_type, rate):
    rice, paddy = compute_quantities(n, rice_type)
    assert rice == pytest.approx(n * QTL_PER_ACK)
    assert paddy == pytest.approx(rice / rate)


def test_batch_beyond_available_paddy_is_rejected(seeded):
    with pytest.raises(InsufficientStockError) as exc:
        create_batch(seeded, ack_count=4, rice_type="boiled", production_date="2025-05-02")

    assert exc.value.required == pytest.approx(4 * QTL_PER_ACK / 0.68)
    assert exc.value.available == pytest.approx(SEED_TOTAL)
    assert "Insufficient paddy" in str(exc.value)
    assert list_batches(seeded) == []


def test_availability_counts_prior_batches(seeded):
    create_batch(seeded, ack_count=2, rice_type="boiled", production_date="2025-05-02")
    create_batch(seeded, ack_count=1, rice_type="boiled", production_date="2025-05-03")

    before = list_batches(seeded)
    with pytest.raises(InsufficientStockError):
        create_batch(seeded, ack_count=1, rice_type="boiled", production_date="2025-05-04")

    assert list_batches(seeded) == before
    assert available_paddy(SEED_TOTAL, before) == pytest.approx(SEED_TOTAL - 3 * QTL_PER_ACK / 0.68)


def test_no_paddy_rejects_everything(conn):
    with pytest.raises(InsufficientStockError):
        create_batch(conn, ack_count=1, rice_type="raw", production_date="2025-05-02")


@pytest.mark.parametrize("bad", [0, -1, 1.5, "two", None])
def test_ack_count_must_be_whole_and_positive(seeded, bad):
    with pytest.raises(ValidationError):
        create_batch(seeded, ack_count=bad, rice_type="boiled", production_date="2025-05-02")


def test_unknown_rice_type(seeded):
    with pytest.raises(ValidationError):
        create_batch(seeded, ack_count=1, rice_type="parboiled", production_date="2025-05-02")


def test_edit_recomputes_and_excludes_own_usage(seeded):
    first = create_batch(seeded, ack_count=1, rice_type="boiled", production_date="2025-05-02")
    create_batch(seeded, ack_count=1, rice_type="raw", production_date="2025-05-03")

    # 3 boiled would need 1266.6 Qtl; only 1343.6 - 428.5 is free of the other batch
    with pytest.raises(InsufficientStockError):
        edit_batch(seeded, first.id, ack_count=3, rice_type="boiled")

    updated = edit_batch(seeded, first.id, ack_count=2, rice_type="boiled", notes="re-weighed")
    assert updated.ack_number == "2 ACK BOILED"
    assert updated.rice_produced == pytest.approx(574.2)
    assert updated.production_date == "2025-05-02"
    assert updated.notes == "re-weighed"
    assert list_batches(seeded)[0] == updated


def test_edit_unknown_batch(seeded):
    with pytest.raises(RecordNotFoundError):
        edit_batch(seeded, "nope", ack_count=1, rice_type="raw")


def test_ack_label_round_trip():
    assert parse_ack_count(ack_label(3, "raw")) == 3
    assert parse_ack_count("legacy batch") == 1
    assert parse_ack_count("X ACK RAW") == 1


def test_production_totals(seeded):
    create_batch(seeded, ack_count=2, rice_type="boiled", production_date="2025-05-02")
    totals = production_totals(SEED_TOTAL, list_batches(seeded))

    assert totals["total_acks"] == 2
    assert totals["rice_produced"] == pytest.approx(574.2)
    assert totals["paddy_available"] == pytest.approx(SEED_TOTAL - 574.2 / 0.68)
