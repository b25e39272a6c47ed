import pytest

from ricemill.errors import DuplicateRecordError, PaymentExceedsBalanceError, ValidationError
from ricemill.services.byproducts import (
    SaleItemInput,
    apply_payment,
    build_sale,
    create_sale,
    derive_stock,
    list_payments,
    list_productions,
    list_sales,
    overdue_sales,
    payment_status,
    receivables_summary,
    record_production,
    settle,
    unprocessed_batches,
)
from ricemill.services.production import create_batch, list_batches


def _sale_kwargs(**over):
    kw = dict(sale_date="2025-05-10", invoice_number="INV-001", party_name="Sri Feeds", payment_terms=30)
    kw.update(over)
    return kw


@pytest.fixture
def batch(seeded):
    return create_batch(seeded, ack_count=1, rice_type="boiled", production_date="2025-05-02")


def test_record_production_yields(seeded, batch):
    rec = record_production(
        seeded,
        rice_production_id=batch.id,
        quantities={"husk": 84.44, "bran-boiled": 21.11, "broken-rice": 12.0},
    )

    assert rec.quantities["husk"] == pytest.approx(84.44)
    assert rec.quantities["ash"] == 0
    assert rec.yields["husk"] == pytest.approx(84.44 / batch.paddy_used * 100)
    assert rec.headline_yields["bran"] == pytest.approx(21.11 / batch.paddy_used * 100)
    assert set(rec.headline_yields) == {"husk", "bran", "broken-rice", "param", "rejection-rice"}
    assert unprocessed_batches(list_batches(seeded), list_productions(seeded)) == []


def test_one_production_per_batch(seeded, batch):
    record_production(seeded, rice_production_id=batch.id, quantities={"husk": 10})
    with pytest.raises(DuplicateRecordError):
        record_production(seeded, rice_production_id=batch.id, quantities={"husk": 5})
    assert len(list_productions(seeded)) == 1


def test_production_rejects_unknown_or_empty(seeded, batch):
    with pytest.raises(ValidationError):
        record_production(seeded, rice_production_id=batch.id, quantities={"straw": 3})
    with pytest.raises(ValidationError):
        record_production(seeded, rice_production_id=batch.id, quantities={})


def test_sale_totals_and_due_date():
    sale = build_sale(
        [SaleItemInput("husk", 10, 500, 5.0), SaleItemInput("bran-raw", 4, 1800, 12.0)],
        **_sale_kwargs(),
    )

    assert sale.subtotal == pytest.approx(5000 + 7200)
    assert sale.gst_amount == pytest.approx(250 + 864)
    assert sale.total_amount == pytest.approx(sale.subtotal + sale.gst_amount)
    assert sale.balance_amount == pytest.approx(sale.total_amount)
    assert sale.paid_amount == 0
    assert sale.payment_status == "pending"
    assert sale.due_date == "2025-06-09"


def test_sale_needs_items():
    with pytest.raises(ValidationError):
        build_sale([], **_sale_kwargs())


@pytest.mark.parametrize("paid", [0, 1, 2624.99, 2625, 5249.99, 5250])
def test_status_matches_paid_amount(paid):
    sale = build_sale([SaleItemInput("husk", 10, 500, 5.0)], **_sale_kwargs())
    if paid:
        sale = settle(sale, paid)

    assert sale.balance_amount == pytest.approx(sale.total_amount - sale.paid_amount)
    if sale.balance_amount <= 0:
        assert sale.payment_status == "paid"
    elif paid > 0:
        assert sale.payment_status == "partial"
    else:
        assert sale.payment_status == "pending"


def test_payment_status_rule():
    assert payment_status(0, 100) == "pending"
    assert payment_status(40, 60) == "partial"
    assert payment_status(100, 0) == "paid"


def test_overpayment_rejected_and_sale_untouched(seeded):
    sale = create_sale(seeded, [SaleItemInput("husk", 10, 500, 5.0)], **_sale_kwargs())

    with pytest.raises(PaymentExceedsBalanceError):
        apply_payment(seeded, sale_id=sale.id, amount=5250.01, payment_date="2025-05-11")

    assert list_sales(seeded) == [sale]
    assert list_payments(seeded) == []


@pytest.mark.parametrize("amount", [0, -10, "abc"])
def test_non_positive_payment_rejected(seeded, amount):
    sale = create_sale(seeded, [SaleItemInput("husk", 10, 500, 5.0)], **_sale_kwargs())
    with pytest.raises(ValidationError):
        apply_payment(seeded, sale_id=sale.id, amount=amount, payment_date="2025-05-11")


def test_partial_then_exact_payment_settles_sale(seeded):
    sale = create_sale(seeded, [SaleItemInput("husk", 10, 500, 5.0)], **_sale_kwargs())

    apply_payment(seeded, sale_id=sale.id, amount=2000, payment_date="2025-05-11", payment_method="upi")
    mid = list_sales(seeded)[0]
    assert mid.payment_status == "partial"
    assert mid.balance_amount == pytest.approx(3250)

    apply_payment(seeded, sale_id=sale.id, amount=3250, payment_date="2025-05-20", payment_method="cheque")
    done = list_sales(seeded)[0]
    assert done.payment_status == "paid"
    assert done.balance_amount == 0
    assert [p.amount for p in list_payments(seeded)] == [2000, 3250]


def test_duplicate_invoice_rejected(seeded):
    create_sale(seeded, [SaleItemInput("husk", 1, 100)], **_sale_kwargs())
    with pytest.raises(DuplicateRecordError):
        create_sale(seeded, [SaleItemInput("husk", 1, 100)], **_sale_kwargs())


def test_stock_is_derived_and_may_go_negative(seeded, batch):
    record_production(seeded, rice_production_id=batch.id, quantities={"husk": 50, "param": 5})
    create_sale(seeded, [SaleItemInput("husk", 20, 400, 5.0)], **_sale_kwargs())
    create_sale(seeded, [SaleItemInput("param", 8, 1500, 5.0)], **_sale_kwargs(invoice_number="INV-002"))

    stock = derive_stock(list_productions(seeded), list_sales(seeded))

    assert stock["husk"].total_produced == pytest.approx(50)
    assert stock["husk"].total_sold == pytest.approx(20)
    assert stock["husk"].current_stock == pytest.approx(30)
    assert stock["husk"].average_rate == pytest.approx(20 * 400 * 1.05 / 20)
    assert stock["param"].current_stock == pytest.approx(-3)
    assert stock["ash"].average_rate == 0
    assert stock["husk"].last_sale_date == "2025-05-10"


def test_receivables_and_overdue(seeded):
    sale = create_sale(seeded, [SaleItemInput("husk", 10, 500, 5.0)], **_sale_kwargs(payment_terms=7))
    apply_payment(seeded, sale_id=sale.id, amount=1000, payment_date="2025-05-11")

    sales = list_sales(seeded)
    summary = receivables_summary(sales, list_payments(seeded), derive_stock([], sales), today="2025-06-01")

    assert summary["total_revenue"] == pytest.approx(5250)
    assert summary["pending_receivables"] == pytest.approx(4250)
    assert summary["overdue_count"] == 1
    assert overdue_sales(sales, today="2025-05-12") == []


@pytest.mark.parametrize("item", [SaleItemInput("bran-raw", 3, 33.33, 5.0), SaleItemInput("param", 1, 10.01, 5.0)])
def test_paise_totals_settle_with_the_shown_balance(seeded, item):
    sale = create_sale(seeded, [item], **_sale_kwargs())
    assert sale.total_amount == round(sale.total_amount, 2)
    assert sale.total_amount == round(sale.subtotal + sale.gst_amount, 2)

    apply_payment(seeded, sale_id=sale.id, amount=round(sale.balance_amount, 2), payment_date="2025-05-11")

    done = list_sales(seeded)[0]
    assert done.payment_status == "paid"
    assert done.balance_amount == 0


def test_payment_amount_is_stored_as_entered(seeded):
    sale = create_sale(seeded, [SaleItemInput("husk", 10, 500, 5.0)], **_sale_kwargs())

    apply_payment(seeded, sale_id=sale.id, amount=0.1, payment_date="2025-05-11")
    apply_payment(seeded, sale_id=sale.id, amount=0.2, payment_date="2025-05-12")

    assert [p.amount for p in list_payments(seeded)] == [0.1, 0.2]
    assert list_sales(seeded)[0].paid_amount == 0.3
