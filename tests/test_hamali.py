import pytest

from ricemill.errors import RecordNotFoundError, ValidationError
from ricemill.services.hamali import (
    RATE_TABLE,
    HamaliWorkEntry,
    add_supervisor_salary,
    allocate_payment,
    apply_payment,
    edit_work,
    list_payments,
    list_salaries,
    list_work,
    rate_for,
    record_work,
    work_totals,
)


def _entry(id, total, status="pending"):
    return HamaliWorkEntry(
        id=id,
        work_type="LOADING",
        work_description=None,
        quantity=1,
        unit="bags",
        rate_per_unit=total,
        total_amount=total,
        work_date="2025-05-01",
        payment_status=status,
    )


def test_rate_table_has_28_types():
    assert len(RATE_TABLE) == 28
    assert rate_for("PADDY DIRECT BATTI") == (3.50, "bags")
    assert rate_for("unknown work") is None


def test_rate_and_unit_default_from_table(conn):
    e = record_work(conn, work_type="PADDY DIRECT BATTI", quantity=200, work_date="2025-05-01")
    assert e.rate_per_unit == 3.5
    assert e.unit == "bags"
    assert e.total_amount == pytest.approx(700)
    assert e.payment_status == "pending"


def test_free_text_type_needs_rate(conn):
    with pytest.raises(ValidationError):
        record_work(conn, work_type="Sweeping yard", quantity=2, unit="days", work_date="2025-05-01")

    e = record_work(conn, work_type="Sweeping yard", quantity=2, unit="days", rate=450, work_date="2025-05-01")
    assert e.total_amount == pytest.approx(900)


def test_thousand_against_600_then_500_marks_only_first(conn):
    a = record_work(conn, work_type="A", quantity=1, unit="bags", rate=600, work_date="2025-05-01")
    b = record_work(conn, work_type="B", quantity=1, unit="bags", rate=500, work_date="2025-05-02")

    payment = apply_payment(conn, amount=1000, payment_date="2025-05-03")

    status = {e.id: e.payment_status for e in list_work(conn)}
    assert status == {a.id: "paid", b.id: "pending"}
    assert payment.amount == 1000
    assert payment.entries_marked == [a.id]
    assert payment.unmatched_amount == pytest.approx(400)
    assert [p.amount for p in list_payments(conn)] == [1000]


def test_entry_too_large_is_skipped_not_split():
    entries = [_entry("big", 800), _entry("small", 300), _entry("done", 50, "paid")]

    out, marked, remaining = allocate_payment(entries, 500)

    assert marked == ["small"]
    assert [e.payment_status for e in out] == ["pending", "paid", "paid"]
    assert remaining == pytest.approx(200)


def test_allocation_is_in_collection_order_not_best_fit():
    entries = [_entry("a", 300), _entry("b", 400), _entry("c", 700)]
    _, marked, remaining = allocate_payment(entries, 700)
    assert marked == ["a", "b"]
    assert remaining == 0


def test_non_positive_payment_rejected(conn):
    with pytest.raises(ValidationError):
        apply_payment(conn, amount=0, payment_date="2025-05-03")
    assert list_payments(conn) == []


def test_edit_recomputes_total(conn):
    e = record_work(conn, work_type="PADDY NET TO BATTI", quantity=100, work_date="2025-05-01")
    updated = edit_work(
        conn, e.id, work_type=e.work_type, quantity=150, unit="bags", rate=4.0, work_date="2025-05-01"
    )
    assert updated.total_amount == pytest.approx(600)
    assert list_work(conn)[0].total_amount == pytest.approx(600)

    with pytest.raises(RecordNotFoundError):
        edit_work(conn, "missing", work_type="X", quantity=1, unit="bags", rate=1, work_date="2025-05-01")


def test_work_totals(conn):
    record_work(conn, work_type="A", quantity=1, unit="bags", rate=600, work_date="2025-05-01")
    record_work(conn, work_type="B", quantity=1, unit="bags", rate=500, work_date="2025-05-02")
    apply_payment(conn, amount=600, payment_date="2025-05-03")

    totals = work_totals(list_work(conn), list_payments(conn))
    assert totals["pending_amount"] == pytest.approx(500)
    assert totals["paid_work_amount"] == pytest.approx(600)
    assert totals["pending_entries"] == 1


def test_supervisor_salary_status(conn):
    part = add_supervisor_salary(
        conn, supervisor_name="Ravi", designation="Supervisor", month="2025-05", monthly_salary=18000, paid_amount=9000
    )
    full = add_supervisor_salary(
        conn, supervisor_name="Ravi", designation="Supervisor", month="2025-04", monthly_salary=18000, paid_amount=18000
    )
    assert part.payment_status == "pending"
    assert full.payment_status == "paid"
    assert len(list_salaries(conn)) == 2

    with pytest.raises(ValidationError):
        add_supervisor_salary(conn, supervisor_name="Ravi", designation="S", month="May 2025", monthly_salary=1)
