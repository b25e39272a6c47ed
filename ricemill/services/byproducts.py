from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from ricemill.db import load_rows, save_many, save_rows
from ricemill.errors import (
    DuplicateRecordError,
    PaymentExceedsBalanceError,
    RecordNotFoundError,
    ValidationError,
)
from ricemill.schema import BY_PRODUCT_PAYMENTS, BY_PRODUCT_PRODUCTIONS, BY_PRODUCT_SALES
from ricemill.services.production import RiceProductionBatch, list_batches
from ricemill.utils import (
    add_days,
    from_row,
    iso_today,
    new_id,
    non_negative_number,
    optional_text,
    positive_number,
    require_choice,
    require_date,
    require_text,
    safe_div,
    to_number,
    to_rows,
)

logger = logging.getLogger(__name__)

BY_PRODUCT_TYPES = {
    "husk": {"name": "Rice Husk", "unit": "Qtl", "default_gst": 5.0},
    "bran-boiled": {"name": "Bran (Boiled)", "unit": "Qtl", "default_gst": 5.0},
    "bran-raw": {"name": "Bran (Raw)", "unit": "Qtl", "default_gst": 5.0},
    "broken-rice": {"name": "Broken Rice", "unit": "Qtl", "default_gst": 5.0},
    "param": {"name": "Param (Small Broken)", "unit": "Qtl", "default_gst": 5.0},
    "rejection-rice": {"name": "Rejection Rice", "unit": "Qtl", "default_gst": 5.0},
    "re-sorted-rice": {"name": "Re-sorted Rice", "unit": "Qtl", "default_gst": 5.0},
    "ash": {"name": "Ash", "unit": "Qtl", "default_gst": 5.0},
}
PRODUCT_TYPES = list(BY_PRODUCT_TYPES)

PAYMENT_METHODS = ["cash", "cheque", "bank-transfer", "upi", "other"]
DEFAULT_PAYMENT_TERMS = 30


# -------------------------
# Records
# -------------------------

@dataclass
class ByProductProduction:
    id: str
    rice_production_id: str
    ack_number: str
    production_date: str
    paddy_used: float
    quantities: dict
    yields: dict  # % of parent batch paddy, per category
    notes: Optional[str] = None

    @property
    def total_quantity(self) -> float:
        return sum(float(v) for v in self.quantities.values())

    @property
    def headline_yields(self) -> dict:
        y = self.yields
        return {
            "husk": float(y.get("husk", 0.0)),
            "bran": float(y.get("bran-boiled", 0.0)) + float(y.get("bran-raw", 0.0)),
            "broken-rice": float(y.get("broken-rice", 0.0)),
            "param": float(y.get("param", 0.0)),
            "rejection-rice": float(y.get("rejection-rice", 0.0)),
        }


@dataclass
class SaleItemInput:
    product_type: str
    quantity: float
    rate: float
    gst_rate: float = 5.0


@dataclass
class SaleItem:
    id: str
    product_type: str
    product_name: str
    quantity: float
    rate: float
    gst_rate: float
    amount: float
    gst_amount: float
    total_amount: float


@dataclass
class ByProductSale:
    id: str
    invoice_number: str
    sale_date: str
    party_name: str
    items: list[SaleItem]
    subtotal: float
    gst_amount: float
    total_amount: float
    paid_amount: float
    balance_amount: float
    payment_status: str
    payment_terms: int
    due_date: str
    party_phone: Optional[str] = None
    party_address: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, row: dict) -> "ByProductSale":
        sale = from_row(cls, row)
        sale.items = [from_row(SaleItem, i) for i in row.get("items", [])]
        return sale


@dataclass
class ByProductPayment:
    id: str
    sale_id: str
    party_name: str
    amount: float
    payment_date: str
    payment_method: str
    reference_number: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class StockLine:
    product_type: str
    product_name: str
    total_produced: float = 0.0
    total_sold: float = 0.0
    current_stock: float = 0.0
    total_revenue: float = 0.0
    average_rate: float = 0.0
    last_sale_date: Optional[str] = None

    @property
    def stock_pct(self) -> float:
        return safe_div(self.current_stock, self.total_produced) * 100.0


# -------------------------
# Loaders
# -------------------------

def list_productions(conn) -> list[ByProductProduction]:
    return [from_row(ByProductProduction, r) for r in load_rows(conn, BY_PRODUCT_PRODUCTIONS)]


def list_sales(conn) -> list[ByProductSale]:
    return [ByProductSale.from_dict(r) for r in load_rows(conn, BY_PRODUCT_SALES)]


def list_payments(conn) -> list[ByProductPayment]:
    return [from_row(ByProductPayment, r) for r in load_rows(conn, BY_PRODUCT_PAYMENTS)]


# -------------------------
# Production
# -------------------------

def unprocessed_batches(batches: list[RiceProductionBatch], productions: list[ByProductProduction]) -> list[RiceProductionBatch]:
    """Rice batches not yet processed into by-products (a batch is processed at most once)."""
    done = {p.rice_production_id for p in productions}
    return [b for b in batches if b.id not in done]


def build_production(
    batch: RiceProductionBatch,
    productions: list[ByProductProduction],
    *,
    quantities: dict,
    production_date: Optional[str] = None,
    notes: Optional[str] = None,
) -> ByProductProduction:
    if any(p.rice_production_id == batch.id for p in productions):
        raise DuplicateRecordError(f"By-products for {batch.ack_number} are already recorded.")

    unknown = [k for k in (quantities or {}) if k not in BY_PRODUCT_TYPES]
    if unknown:
        raise ValidationError(f"Unknown by-product type(s): {', '.join(unknown)}.")

    qty = {
        t: non_negative_number((quantities or {}).get(t) or 0, BY_PRODUCT_TYPES[t]["name"])
        for t in PRODUCT_TYPES
    }
    if sum(qty.values()) <= 0:
        raise ValidationError("Enter a quantity > 0 for at least one by-product.")

    paddy = float(batch.paddy_used)
    yields = {t: safe_div(q, paddy) * 100.0 for t, q in qty.items()}

    return ByProductProduction(
        id=new_id(),
        rice_production_id=batch.id,
        ack_number=batch.ack_number,
        production_date=require_date(production_date or batch.production_date, "Production date"),
        paddy_used=paddy,
        quantities=qty,
        yields=yields,
        notes=optional_text(notes),
    )


def record_production(
    conn,
    *,
    rice_production_id: str,
    quantities: dict,
    production_date: Optional[str] = None,
    notes: Optional[str] = None,
) -> ByProductProduction:
    batch = next((b for b in list_batches(conn) if b.id == rice_production_id), None)
    if batch is None:
        raise RecordNotFoundError("Rice production batch not found.")

    productions = list_productions(conn)
    try:
        rec = build_production(batch, productions, quantities=quantities, production_date=production_date, notes=notes)
    except DuplicateRecordError as e:
        logger.warning("By-product production rejected: %s", e)
        raise

    productions.append(rec)
    save_rows(conn, BY_PRODUCT_PRODUCTIONS, to_rows(productions))
    logger.info("By-products recorded for %s: %.2f Qtl total", rec.ack_number, rec.total_quantity)
    return rec


# -------------------------
# Stock (derived on every read)
# -------------------------

def derive_stock(productions: list[ByProductProduction], sales: list[ByProductSale]) -> dict[str, StockLine]:
    stock = {t: StockLine(product_type=t, product_name=cfg["name"]) for t, cfg in BY_PRODUCT_TYPES.items()}

    for p in productions:
        for t, q in p.quantities.items():
            if t in stock:
                stock[t].total_produced += float(q)

    for s in sales:
        for item in s.items:
            line = stock.get(item.product_type)
            if line is None:
                continue
            line.total_sold += float(item.quantity)
            line.total_revenue += float(item.total_amount)
            if line.last_sale_date is None or s.sale_date > line.last_sale_date:
                line.last_sale_date = s.sale_date

    for line in stock.values():
        # oversold stock goes negative, no guard
        line.current_stock = line.total_produced - line.total_sold
        line.average_rate = safe_div(line.total_revenue, line.total_sold)

    return stock


# -------------------------
# Sales
# -------------------------

def payment_status(paid_amount: float, balance_amount: float) -> str:
    if balance_amount <= 0:
        return "paid"
    if paid_amount > 0:
        return "partial"
    return "pending"


def _build_item(inp: SaleItemInput) -> SaleItem:
    product_type = require_choice(inp.product_type, PRODUCT_TYPES, "product type")
    quantity = positive_number(inp.quantity, "Quantity")
    rate = positive_number(inp.rate, "Rate")
    gst_rate = non_negative_number(inp.gst_rate, "GST rate")

    # money is held in paise
    amount = round(quantity * rate, 2)
    gst_amount = round(amount * gst_rate / 100.0, 2)
    return SaleItem(
        id=new_id(),
        product_type=product_type,
        product_name=BY_PRODUCT_TYPES[product_type]["name"],
        quantity=quantity,
        rate=rate,
        gst_rate=gst_rate,
        amount=amount,
        gst_amount=gst_amount,
        total_amount=round(amount + gst_amount, 2),
    )


def build_sale(
    items: list[SaleItemInput],
    *,
    sale_date: str,
    invoice_number: str,
    party_name: str,
    party_phone: Optional[str] = None,
    party_address: Optional[str] = None,
    payment_terms: int = DEFAULT_PAYMENT_TERMS,
    notes: Optional[str] = None,
) -> ByProductSale:
    if not items:
        raise ValidationError("At least one line item is required.")

    sale_date = require_date(sale_date, "Sale date")
    terms = to_number(payment_terms, "Payment terms")
    if terms < 0 or int(terms) != terms:
        raise ValidationError("Payment terms must be a whole number of days >= 0.")

    lines = [_build_item(i) for i in items]
    subtotal = round(sum(i.amount for i in lines), 2)
    gst_amount = round(sum(i.gst_amount for i in lines), 2)
    total = round(subtotal + gst_amount, 2)

    return ByProductSale(
        id=new_id(),
        invoice_number=require_text(invoice_number, "Invoice number"),
        sale_date=sale_date,
        party_name=require_text(party_name, "Party name"),
        party_phone=optional_text(party_phone),
        party_address=optional_text(party_address),
        items=lines,
        subtotal=subtotal,
        gst_amount=gst_amount,
        total_amount=total,
        paid_amount=0.0,
        balance_amount=total,
        payment_status=payment_status(0.0, total),
        payment_terms=int(terms),
        due_date=add_days(sale_date, int(terms)),
        notes=optional_text(notes),
    )


def create_sale(conn, items: list[SaleItemInput], **kwargs) -> ByProductSale:
    sales = list_sales(conn)
    sale = build_sale(items, **kwargs)
    if any(s.invoice_number == sale.invoice_number for s in sales):
        raise DuplicateRecordError(f"Invoice {sale.invoice_number} already exists.")

    sales.append(sale)
    save_rows(conn, BY_PRODUCT_SALES, to_rows(sales))
    logger.info("By-product sale %s created: %.2f for %s", sale.invoice_number, sale.total_amount, sale.party_name)
    return sale


def settle(sale: ByProductSale, amount) -> ByProductSale:
    """Sale after applying `amount`; raises without touching the sale."""
    amt = round(to_number(amount, "Payment amount"), 2)
    if amt <= 0:
        raise ValidationError("Payment amount must be > 0.")
    if amt > sale.balance_amount:
        raise PaymentExceedsBalanceError(amount=amt, balance=sale.balance_amount)

    paid = round(sale.paid_amount + amt, 2)
    balance = round(sale.total_amount - paid, 2)
    return replace(sale, paid_amount=paid, balance_amount=balance, payment_status=payment_status(paid, balance))


def apply_payment(
    conn,
    *,
    sale_id: str,
    amount,
    payment_date: str,
    payment_method: str = "cash",
    reference_number: Optional[str] = None,
    notes: Optional[str] = None,
) -> ByProductPayment:
    """Payment entry and sale update are written in one transaction."""
    sales = list_sales(conn)
    idx = next((i for i, s in enumerate(sales) if s.id == sale_id), None)
    if idx is None:
        raise RecordNotFoundError("Sale not found.")

    sale = sales[idx]
    try:
        amt = round(to_number(amount, "Payment amount"), 2)
        updated = settle(sale, amt)
    except ValidationError as e:
        logger.warning("Payment on %s rejected: %s", sale.invoice_number, e)
        raise

    payment = ByProductPayment(
        id=new_id(),
        sale_id=sale.id,
        party_name=sale.party_name,
        amount=amt,
        payment_date=require_date(payment_date, "Payment date"),
        payment_method=require_choice(payment_method, PAYMENT_METHODS, "payment method"),
        reference_number=optional_text(reference_number),
        notes=optional_text(notes),
    )

    sales[idx] = updated
    payments = list_payments(conn)
    payments.append(payment)
    save_many(
        conn,
        {
            BY_PRODUCT_SALES: to_rows(sales),
            BY_PRODUCT_PAYMENTS: to_rows(payments),
        },
    )
    logger.info(
        "Payment %.2f applied to %s (balance %.2f, %s)",
        payment.amount, sale.invoice_number, updated.balance_amount, updated.payment_status,
    )
    return payment


# -------------------------
# Summaries
# -------------------------

def overdue_sales(sales: list[ByProductSale], today: Optional[str] = None) -> list[ByProductSale]:
    today = today or iso_today()
    return [s for s in sales if s.balance_amount > 0 and s.due_date < today]


def receivables_summary(
    sales: list[ByProductSale],
    payments: list[ByProductPayment],
    stock: dict[str, StockLine],
    today: Optional[str] = None,
) -> dict:
    total_revenue = sum(s.total_amount for s in sales)
    total_paid = sum(p.amount for p in payments)
    return {
        "total_revenue": total_revenue,
        "total_paid": total_paid,
        "pending_receivables": total_revenue - total_paid,
        "stock_value": sum(line.current_stock * line.average_rate for line in stock.values()),
        "overdue_count": len(overdue_sales(sales, today)),
    }
