from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from ricemill.db import load_rows, save_many, save_rows
from ricemill.errors import RecordNotFoundError, ValidationError
from ricemill.schema import HAMALI_PAYMENTS, HAMALI_WORK, SUPERVISOR_SALARIES
from ricemill.utils import (
    from_row,
    new_id,
    non_negative_number,
    optional_text,
    positive_number,
    require_choice,
    require_date,
    require_text,
    to_rows,
)

logger = logging.getLogger(__name__)

UNITS = ["bags", "qtl", "ton", "ack", "bale", "hours", "days"]
PAYMENT_METHODS = ["cash", "bank-transfer", "upi"]

# (work type, rate per unit in Rs, unit)
RATE_TABLE = [
    ("PADDY UNLOADING TO NET / NET TO LOADING", 4.00, "bags"),
    ("PADDY DIRECT BATTI", 3.50, "bags"),
    ("PADDY NET TO BATTI", 3.50, "bags"),
    ("PADDY LOOSE FILLING TO PC", 2.00, "bags"),
    ("PADDY LOADING WITH VEHICLE TO PC", 5.00, "bags"),
    ("PADDY NET TO PALTI & LORRY LOADING", 5.50, "bags"),
    ("PADDY LORRY LOADING MAMUL OTHER STATES", 30.00, "ton"),
    ("FCI RICE LOADING+KANTA+CHAPA+STITCHING+STENCIL", 6.00, "bags"),
    ("RICE 26KG KANTA+STITCHING TO NET/LOADING", 2.50, "bags"),
    ("RICE 26KGS NET TO LOADING", 1.60, "bags"),
    ("RICE NET TO LOADING/UNLOADING", 2.00, "bags"),
    ("RICE UNLOADING & PALTI/NET", 2.30, "bags"),
    ("FCI RICE LORRY THADU BATHA", 400.00, "ack"),
    ("BRAN FILLING & LOADING", 100.00, "ton"),
    ("BRAN LOADING MAMUL", 30.00, "ton"),
    ("BROKEN RICE FILLING & NET/LOADING", 4.00, "bags"),
    ("BROKEN RICE FILLING, KANTA & NET/LOADING", 5.00, "bags"),
    ("BROKEN RICE LOADING MAMUL", 30.00, "ton"),
    ("BROKEN RICE NET TO LOADING", 2.00, "bags"),
    ("PARAM FILLING & NET/LOADING", 80.00, "ton"),
    ("PARAM LOADING MAMUL", 30.00, "ton"),
    ("PARAM NET TO LOADING", 2.00, "bags"),
    ("FRK LORRY UNLOADING", 1.60, "bags"),
    ("FRK BLENDER LOADING", 1.00, "bags"),
    ("NEW GUNNIES BALES UNLOADING", 25.00, "bale"),
    ("GUNNIES BUNDELING AND NET", 2.00, "bags"),
    ("PADDY/RICE/BROKENRICE/ NET TO PALTI", 1.50, "bags"),
    ("HOPPER LOADING (BROKEN, REJECTION, RICE)", 3.00, "bags"),
]
_RATES = {t: (rate, unit) for t, rate, unit in RATE_TABLE}


@dataclass
class HamaliWorkEntry:
    id: str
    work_type: str
    work_description: Optional[str]
    quantity: float
    unit: str
    rate_per_unit: float
    total_amount: float
    work_date: str
    payment_status: str = "pending"  # pending / paid
    notes: Optional[str] = None


@dataclass
class HamaliPayment:
    id: str
    amount: float
    payment_date: str
    payment_method: str
    work_period: Optional[str] = None
    notes: Optional[str] = None
    entries_marked: list = field(default_factory=list)
    unmatched_amount: float = 0.0


@dataclass
class SupervisorSalary:
    id: str
    supervisor_name: str
    designation: str
    month: str  # YYYY-MM
    monthly_salary: float
    paid_amount: float
    payment_status: str
    payment_date: Optional[str] = None
    notes: Optional[str] = None


def rate_for(work_type: str) -> Optional[tuple[float, str]]:
    return _RATES.get(str(work_type or "").strip())


# -------------------------
# Work entries
# -------------------------

def list_work(conn) -> list[HamaliWorkEntry]:
    return [from_row(HamaliWorkEntry, r) for r in load_rows(conn, HAMALI_WORK)]


def list_payments(conn) -> list[HamaliPayment]:
    return [from_row(HamaliPayment, r) for r in load_rows(conn, HAMALI_PAYMENTS)]


def _work_fields(work_type, quantity, unit, rate, work_date, description, notes) -> dict:
    work_type = require_text(work_type, "Work type")
    table = rate_for(work_type)
    if rate is None or str(rate).strip() == "":
        if table is None:
            raise ValidationError("Rate per unit is required for a work type outside the rate table.")
        rate = table[0]
    if not unit:
        unit = table[1] if table else None

    qty = positive_number(quantity, "Quantity")
    rate_f = positive_number(rate, "Rate per unit")
    return {
        "work_type": work_type,
        "work_description": optional_text(description),
        "quantity": qty,
        "unit": require_choice(unit, UNITS, "unit"),
        "rate_per_unit": rate_f,
        "total_amount": qty * rate_f,
        "work_date": require_date(work_date, "Work date"),
        "notes": optional_text(notes),
    }


def record_work(
    conn,
    *,
    work_type: str,
    quantity: float,
    work_date: str,
    unit: Optional[str] = None,
    rate: Optional[float] = None,
    description: Optional[str] = None,
    notes: Optional[str] = None,
) -> HamaliWorkEntry:
    """
    Piece-rate work entry. For a rate-table work type, rate and unit
    default to the table values; free-text types must give both.
    """
    entries = list_work(conn)
    rec = HamaliWorkEntry(
        id=new_id(),
        payment_status="pending",
        **_work_fields(work_type, quantity, unit, rate, work_date, description, notes),
    )
    entries.append(rec)
    save_rows(conn, HAMALI_WORK, to_rows(entries))
    logger.info("Hamali work recorded: %s x %.2f %s = %.2f", rec.work_type, rec.quantity, rec.unit, rec.total_amount)
    return rec


def edit_work(
    conn,
    work_id: str,
    *,
    work_type: str,
    quantity: float,
    unit: str,
    rate: float,
    work_date: str,
    description: Optional[str] = None,
    notes: Optional[str] = None,
) -> HamaliWorkEntry:
    entries = list_work(conn)
    idx = next((i for i, e in enumerate(entries) if e.id == work_id), None)
    if idx is None:
        raise RecordNotFoundError("Hamali work entry not found.")

    updated = replace(entries[idx], **_work_fields(work_type, quantity, unit, rate, work_date, description, notes))
    entries[idx] = updated
    save_rows(conn, HAMALI_WORK, to_rows(entries))
    logger.info("Hamali work %s edited: total now %.2f", work_id, updated.total_amount)
    return updated


# -------------------------
# Payments
# -------------------------

def allocate_payment(entries: list[HamaliWorkEntry], amount: float) -> tuple[list[HamaliWorkEntry], list[str], float]:
    """
    Walks pending entries in collection order and marks an entry paid only when
    the remaining amount covers its whole total. An entry that does not fit is
    skipped, even if a later, smaller one would; entries are never part-paid.

    Returns (entries after allocation, ids marked paid, amount left unmatched).
    """
    remaining = float(amount)
    marked: list[str] = []
    out: list[HamaliWorkEntry] = []

    for e in entries:
        if e.payment_status == "pending" and remaining > 0 and remaining >= e.total_amount:
            remaining -= e.total_amount
            marked.append(e.id)
            out.append(replace(e, payment_status="paid"))
        else:
            out.append(e)

    return out, marked, remaining


def apply_payment(
    conn,
    *,
    amount: float,
    payment_date: str,
    payment_method: str = "cash",
    work_period: Optional[str] = None,
    notes: Optional[str] = None,
) -> HamaliPayment:
    """The full amount is recorded as a payment regardless of how much matched work entries."""
    amt = positive_number(amount, "Payment amount")
    method = require_choice(payment_method, PAYMENT_METHODS, "payment method")
    pay_date = require_date(payment_date, "Payment date")

    entries, marked, unmatched = allocate_payment(list_work(conn), amt)

    payment = HamaliPayment(
        id=new_id(),
        amount=amt,
        payment_date=pay_date,
        payment_method=method,
        work_period=optional_text(work_period),
        notes=optional_text(notes),
        entries_marked=marked,
        unmatched_amount=unmatched,
    )
    payments = list_payments(conn)
    payments.append(payment)

    save_many(conn, {HAMALI_WORK: to_rows(entries), HAMALI_PAYMENTS: to_rows(payments)})
    logger.info("Hamali payment %.2f recorded: %s entr(ies) marked paid, %.2f unmatched", amt, len(marked), unmatched)
    return payment


def work_totals(entries: list[HamaliWorkEntry], payments: list[HamaliPayment]) -> dict:
    pending = [e for e in entries if e.payment_status == "pending"]
    paid = [e for e in entries if e.payment_status == "paid"]
    return {
        "total_work_amount": sum(e.total_amount for e in entries),
        "pending_amount": sum(e.total_amount for e in pending),
        "paid_work_amount": sum(e.total_amount for e in paid),
        "pending_entries": len(pending),
        "total_payments": sum(p.amount for p in payments),
    }


# -------------------------
# Supervisor salaries
# -------------------------

def salary_status(paid_amount: float, monthly_salary: float) -> str:
    return "paid" if paid_amount >= monthly_salary else "pending"


def list_salaries(conn) -> list[SupervisorSalary]:
    return [from_row(SupervisorSalary, r) for r in load_rows(conn, SUPERVISOR_SALARIES)]


def add_supervisor_salary(
    conn,
    *,
    supervisor_name: str,
    designation: str,
    month: str,
    monthly_salary: float,
    paid_amount: float = 0.0,
    payment_date: Optional[str] = None,
    notes: Optional[str] = None,
) -> SupervisorSalary:
    month = require_text(month, "Month")
    if len(month) != 7 or month[4] != "-":
        raise ValidationError("Month must be in YYYY-MM format.")

    salary = positive_number(monthly_salary, "Monthly salary")
    paid = non_negative_number(paid_amount or 0, "Paid amount")

    rec = SupervisorSalary(
        id=new_id(),
        supervisor_name=require_text(supervisor_name, "Supervisor name"),
        designation=require_text(designation, "Designation"),
        month=month,
        monthly_salary=salary,
        paid_amount=paid,
        payment_status=salary_status(paid, salary),
        payment_date=(require_date(payment_date, "Payment date") if payment_date else None),
        notes=optional_text(notes),
    )
    rows = list_salaries(conn)
    rows.append(rec)
    save_rows(conn, SUPERVISOR_SALARIES, to_rows(rows))
    logger.info("Supervisor salary recorded: %s %s (%s)", rec.supervisor_name, rec.month, rec.payment_status)
    return rec
