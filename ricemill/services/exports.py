from __future__ import annotations

import logging
from typing import Any, Callable

import pandas as pd

from ricemill.services.byproducts import ByProductSale
from ricemill.services.electricity import ElectricityReading
from ricemill.services.hamali import HamaliPayment, HamaliWorkEntry
from ricemill.services.intake import PaddyIntakeRecord
from ricemill.services.production import RiceProductionBatch
from ricemill.services.reconciliation import OldGunnyDispatch, ReconciliationRecord

logger = logging.getLogger(__name__)

Column = tuple[str, Callable[[Any], Any]]

PADDY_COLUMNS: list[Column] = [
    ("S.No", lambda r: r.s_no),
    ("Date", lambda r: r.date),
    ("Vehicle No", lambda r: r.vehicle_no),
    ("W Slip No", lambda r: r.w_slip_no),
    ("Truck Chit No", lambda r: r.truck_chit_no),
    ("Center", lambda r: r.center_name),
    ("District", lambda r: r.district),
    ("New Bags", lambda r: r.new_bags),
    ("Old Bags", lambda r: r.old_bags),
    ("Total Bags", lambda r: r.total_bags),
    ("Quintals", lambda r: r.total_quintals),
    ("Moisture", lambda r: r.moisture),
    ("Unloading Point", lambda r: r.unloading_point),
]

RICE_COLUMNS: list[Column] = [
    ("Date", lambda b: b.production_date),
    ("ACK", lambda b: b.ack_number),
    ("Rice Type", lambda b: b.rice_type),
    ("Paddy Used (Qtl)", lambda b: b.paddy_used),
    ("Rice Produced (Qtl)", lambda b: b.rice_produced),
    ("Mill", lambda b: b.mill_name),
    ("Notes", lambda b: b.notes),
]

ELECTRICITY_COLUMNS: list[Column] = [
    ("Date", lambda r: r.reading_date),
    ("KWH", lambda r: r.kwh),
    ("KVAH", lambda r: r.kvah),
    ("RMD (kW)", lambda r: r.rmd),
    ("Power Factor", lambda r: None if r.power_factor is None else round(r.power_factor, 3)),
    ("Bill Amount", lambda r: r.bill_amount),
    ("Bill Period", lambda r: r.bill_period),
    ("Notes", lambda r: r.notes),
]

HAMALI_WORK_COLUMNS: list[Column] = [
    ("Date", lambda e: e.work_date),
    ("Work Type", lambda e: e.work_type),
    ("Description", lambda e: e.work_description),
    ("Quantity", lambda e: e.quantity),
    ("Unit", lambda e: e.unit),
    ("Rate", lambda e: e.rate_per_unit),
    ("Total Amount", lambda e: e.total_amount),
    ("Status", lambda e: e.payment_status),
    ("Notes", lambda e: e.notes),
]

HAMALI_PAYMENT_COLUMNS: list[Column] = [
    ("Date", lambda p: p.payment_date),
    ("Amount", lambda p: p.amount),
    ("Method", lambda p: p.payment_method),
    ("Work Period", lambda p: p.work_period),
    ("Entries Paid", lambda p: len(p.entries_marked)),
    ("Unmatched Amount", lambda p: p.unmatched_amount),
    ("Notes", lambda p: p.notes),
]

SALES_COLUMNS: list[Column] = [
    ("Date", lambda s: s.sale_date),
    ("Invoice No", lambda s: s.invoice_number),
    ("Party", lambda s: s.party_name),
    ("Items", lambda s: " / ".join(f"{i.product_name} {i.quantity:g} Qtl" for i in s.items)),
    ("Subtotal", lambda s: s.subtotal),
    ("GST Amount", lambda s: s.gst_amount),
    ("Total Amount", lambda s: s.total_amount),
    ("Paid Amount", lambda s: s.paid_amount),
    ("Balance Amount", lambda s: s.balance_amount),
    ("Status", lambda s: s.payment_status),
    ("Due Date", lambda s: s.due_date),
]

RECONCILIATION_COLUMNS: list[Column] = [
    ("Center", lambda r: r.center_name),
    ("District", lambda r: r.district),
    ("Total Bags", lambda r: r.total_paddy_received),
    ("Total Quintals", lambda r: r.total_quintals),
    ("Reconciled Quintals", lambda r: r.reconciled_quintals),
    ("Balance Quintals", lambda r: r.balance_quintals),
    ("Status", lambda r: r.reconciliation_status),
    ("Reconciliation Date", lambda r: r.reconciliation_date),
    ("Notes", lambda r: r.notes),
]

GUNNY_DISPATCH_COLUMNS: list[Column] = [
    ("Date", lambda d: d.dispatch_date),
    ("Center", lambda d: d.center_name),
    ("District", lambda d: d.district),
    ("Gunnies Dispatched", lambda d: d.gunnies_dispatched),
    ("Acknowledged", lambda d: "Yes" if d.acknowledgment_received else "No"),
    ("Acknowledgment Date", lambda d: d.acknowledgment_date),
    ("Status", lambda d: d.status),
    ("Comments", lambda d: d.comments),
]


def to_frame(records: list, columns: list[Column]) -> pd.DataFrame:
    return pd.DataFrame(
        [[get(r) for _, get in columns] for r in records],
        columns=[h for h, _ in columns],
    )


def to_csv(records: list, columns: list[Column]) -> str:
    """Header row plus one line per record, newline-terminated; values are quoted only when they need it."""
    text = to_frame(records, columns).to_csv(index=False, lineterminator="\n")
    logger.debug("Exported %s row(s) to CSV", len(records))
    return text


def paddy_csv(records: list[PaddyIntakeRecord]) -> str:
    return to_csv(records, PADDY_COLUMNS)


def rice_csv(batches: list[RiceProductionBatch]) -> str:
    return to_csv(batches, RICE_COLUMNS)


def electricity_csv(readings: list[ElectricityReading]) -> str:
    return to_csv(readings, ELECTRICITY_COLUMNS)


def hamali_work_csv(entries: list[HamaliWorkEntry]) -> str:
    return to_csv(entries, HAMALI_WORK_COLUMNS)


def hamali_payments_csv(payments: list[HamaliPayment]) -> str:
    return to_csv(payments, HAMALI_PAYMENT_COLUMNS)


def sales_csv(sales: list[ByProductSale]) -> str:
    return to_csv(sales, SALES_COLUMNS)


def reconciliation_csv(records: list[ReconciliationRecord]) -> str:
    return to_csv(records, RECONCILIATION_COLUMNS)


def gunny_dispatch_csv(dispatches: list[OldGunnyDispatch]) -> str:
    return to_csv(dispatches, GUNNY_DISPATCH_COLUMNS)
