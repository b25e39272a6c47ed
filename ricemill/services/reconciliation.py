from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from ricemill.db import load_rows, save_rows
from ricemill.errors import RecordNotFoundError
from ricemill.schema import GUNNY_DISPATCHES, RECONCILIATIONS
from ricemill.services.intake import PaddyIntakeRecord, list_intake
from ricemill.utils import (
    from_row,
    iso_today,
    new_id,
    optional_text,
    positive_number,
    require_choice,
    require_date,
    require_text,
    to_rows,
)

logger = logging.getLogger(__name__)

STATUSES = ["pending", "in-progress", "completed"]


@dataclass
class CenterTotal:
    center_name: str
    district: str
    total_bags: int = 0
    total_quintals: float = 0.0

    @property
    def id(self) -> str:
        return center_key(self.center_name, self.district)


@dataclass
class ReconciliationRecord:
    id: str
    center_name: str
    district: str
    total_paddy_received: int  # bags
    total_quintals: float
    reconciled_quintals: float = 0.0
    balance_quintals: float = 0.0
    reconciliation_status: str = "pending"
    reconciliation_date: Optional[str] = None
    reconciliation_document: Optional[str] = None
    notes: Optional[str] = None
    snapshot_total_quintals: Optional[float] = None  # total when first touched (display only)


def center_key(center_name: str, district: str) -> str:
    return f"{center_name}-{district}"


def center_totals(intake: list[PaddyIntakeRecord]) -> dict[str, CenterTotal]:
    out: dict[str, CenterTotal] = {}
    for r in intake:
        key = center_key(r.center_name, r.district)
        if key not in out:
            out[key] = CenterTotal(center_name=r.center_name, district=r.district)
        out[key].total_bags += int(r.total_bags)
        out[key].total_quintals += float(r.total_quintals)
    return out


def list_reconciliations(conn) -> list[ReconciliationRecord]:
    return [from_row(ReconciliationRecord, r) for r in load_rows(conn, RECONCILIATIONS)]


def merge_center_records(
    intake: list[PaddyIntakeRecord],
    stored: list[ReconciliationRecord],
) -> list[ReconciliationRecord]:
    """
    One record per center. Totals always come fresh from the intake data;
    only reconciled quantity, status, date, document and notes are stored.
    """
    by_id = {r.id: r for r in stored}
    out = []
    for key, c in center_totals(intake).items():
        existing = by_id.get(key)
        reconciled = existing.reconciled_quintals if existing else 0.0
        out.append(
            ReconciliationRecord(
                id=key,
                center_name=c.center_name,
                district=c.district,
                total_paddy_received=c.total_bags,
                total_quintals=c.total_quintals,
                reconciled_quintals=reconciled,
                balance_quintals=c.total_quintals - reconciled,
                reconciliation_status=existing.reconciliation_status if existing else "pending",
                reconciliation_date=existing.reconciliation_date if existing else None,
                reconciliation_document=existing.reconciliation_document if existing else None,
                notes=existing.notes if existing else None,
                snapshot_total_quintals=existing.snapshot_total_quintals if existing else None,
            )
        )
    return out


def center_records(conn) -> list[ReconciliationRecord]:
    return merge_center_records(list_intake(conn), list_reconciliations(conn))


def apply_reconcile(record: ReconciliationRecord, amount, *, today: Optional[str] = None) -> Optional[ReconciliationRecord]:
    """
    Record after reconciling `amount` quintals, or None when the amount
    is not a positive number. Amounts above the balance clamp to it.
    """
    try:
        amt = positive_number(amount, "Reconcile amount")
    except ValueError:
        return None

    actual = max(0.0, min(amt, record.balance_quintals))
    reconciled = record.reconciled_quintals + actual
    balance = record.total_quintals - reconciled
    status = "completed" if balance <= 0 else "in-progress"

    if status != "completed":
        completed_on = None
    elif actual == 0 and record.reconciliation_status == "completed" and record.reconciliation_date:
        completed_on = record.reconciliation_date
    else:
        completed_on = today or iso_today()

    return replace(
        record,
        reconciled_quintals=reconciled,
        balance_quintals=balance,
        reconciliation_status=status,
        reconciliation_date=completed_on,
        snapshot_total_quintals=(
            record.snapshot_total_quintals
            if record.snapshot_total_quintals is not None
            else record.total_quintals
        ),
    )


def _upsert(stored: list[ReconciliationRecord], rec: ReconciliationRecord) -> list[ReconciliationRecord]:
    out = [r for r in stored if r.id != rec.id]
    out.append(rec)
    return out


def _find_center(conn, center_id: str) -> tuple[ReconciliationRecord, list[ReconciliationRecord]]:
    stored = list_reconciliations(conn)
    merged = merge_center_records(list_intake(conn), stored)
    rec = next((r for r in merged if r.id == center_id), None)
    if rec is None:
        raise RecordNotFoundError(f"Center '{center_id}' has no paddy intake.")
    return rec, stored


def reconcile(conn, center_id: str, amount, *, today: Optional[str] = None) -> Optional[ReconciliationRecord]:
    rec, stored = _find_center(conn, center_id)

    updated = apply_reconcile(rec, amount, today=today)
    if updated is None:
        logger.warning("Reconcile for %s ignored: amount %r is not a positive number", center_id, amount)
        return None

    save_rows(conn, RECONCILIATIONS, to_rows(_upsert(stored, updated)))
    logger.info(
        "Reconciled %.2f Qtl at %s (balance %.2f, %s)",
        updated.reconciled_quintals - rec.reconciled_quintals, center_id,
        updated.balance_quintals, updated.reconciliation_status,
    )
    return updated


def update_status(
    conn,
    center_id: str,
    status: str,
    *,
    notes: Optional[str] = None,
    today: Optional[str] = None,
) -> ReconciliationRecord:
    rec, stored = _find_center(conn, center_id)
    status = require_choice(status, STATUSES, "reconciliation status")
    updated = replace(
        rec,
        reconciliation_status=status,
        reconciliation_date=(today or iso_today()) if status == "completed" else None,
        notes=optional_text(notes),
    )
    save_rows(conn, RECONCILIATIONS, to_rows(_upsert(stored, updated)))
    logger.info("Reconciliation status of %s set to %s", center_id, status)
    return updated


def attach_document(conn, center_id: str, document_ref: str) -> ReconciliationRecord:
    rec, stored = _find_center(conn, center_id)
    updated = replace(rec, reconciliation_document=require_text(document_ref, "Document"))
    save_rows(conn, RECONCILIATIONS, to_rows(_upsert(stored, updated)))
    logger.info("Reconciliation document attached for %s", center_id)
    return updated


def reconciliation_summary(records: list[ReconciliationRecord]) -> dict:
    return {
        "total_quintals": sum(r.total_quintals for r in records),
        "reconciled_quintals": sum(r.reconciled_quintals for r in records),
        "balance_quintals": sum(r.balance_quintals for r in records),
        "completed": sum(1 for r in records if r.reconciliation_status == "completed"),
        "in_progress": sum(1 for r in records if r.reconciliation_status == "in-progress"),
        "pending": sum(1 for r in records if r.reconciliation_status == "pending"),
    }


# -------------------------
# Old gunny dispatch
# -------------------------

@dataclass
class OldGunnyDispatch:
    id: str
    center_name: str
    district: str
    gunnies_dispatched: int
    dispatch_date: str
    acknowledgment_received: bool = False
    acknowledgment_date: Optional[str] = None
    acknowledgment_photo: Optional[str] = None
    comments: Optional[str] = None
    status: str = "dispatched"  # dispatched / acknowledged


def list_dispatches(conn) -> list[OldGunnyDispatch]:
    return [from_row(OldGunnyDispatch, r) for r in load_rows(conn, GUNNY_DISPATCHES)]


def _dispatch_fields(center_name, district, gunnies_dispatched, dispatch_date, comments) -> dict:
    qty = positive_number(gunnies_dispatched, "Gunnies dispatched")
    return {
        "center_name": require_text(center_name, "Center").upper(),
        "district": require_text(district, "District").upper(),
        "gunnies_dispatched": int(qty),
        "dispatch_date": require_date(dispatch_date, "Dispatch date"),
        "comments": optional_text(comments),
    }


def create_dispatch(
    conn,
    *,
    center_name: str,
    district: str,
    gunnies_dispatched: int,
    dispatch_date: str,
    comments: Optional[str] = None,
) -> OldGunnyDispatch:
    rows = list_dispatches(conn)
    rec = OldGunnyDispatch(id=new_id(), **_dispatch_fields(center_name, district, gunnies_dispatched, dispatch_date, comments))
    rows.append(rec)
    save_rows(conn, GUNNY_DISPATCHES, to_rows(rows))
    logger.info("Old gunny dispatch: %s sacks to %s", rec.gunnies_dispatched, rec.center_name)
    return rec


def _replace_dispatch(conn, dispatch_id: str, **changes) -> OldGunnyDispatch:
    rows = list_dispatches(conn)
    idx = next((i for i, d in enumerate(rows) if d.id == dispatch_id), None)
    if idx is None:
        raise RecordNotFoundError("Gunny dispatch not found.")
    rows[idx] = replace(rows[idx], **changes)
    save_rows(conn, GUNNY_DISPATCHES, to_rows(rows))
    return rows[idx]


def edit_dispatch(
    conn,
    dispatch_id: str,
    *,
    center_name: str,
    district: str,
    gunnies_dispatched: int,
    dispatch_date: str,
    comments: Optional[str] = None,
) -> OldGunnyDispatch:
    fields_ = _dispatch_fields(center_name, district, gunnies_dispatched, dispatch_date, comments)
    rec = _replace_dispatch(conn, dispatch_id, **fields_)
    logger.info("Gunny dispatch %s edited", dispatch_id)
    return rec


def toggle_acknowledgment(conn, dispatch_id: str, *, today: Optional[str] = None) -> OldGunnyDispatch:
    current = next((d for d in list_dispatches(conn) if d.id == dispatch_id), None)
    if current is None:
        raise RecordNotFoundError("Gunny dispatch not found.")

    received = not current.acknowledgment_received
    rec = _replace_dispatch(
        conn,
        dispatch_id,
        acknowledgment_received=received,
        acknowledgment_date=(today or iso_today()) if received else None,
        status="acknowledged" if received else "dispatched",
    )
    logger.info("Gunny dispatch %s -> %s", dispatch_id, rec.status)
    return rec


def attach_ack_photo(conn, dispatch_id: str, photo_ref: str) -> OldGunnyDispatch:
    return _replace_dispatch(conn, dispatch_id, acknowledgment_photo=require_text(photo_ref, "Photo"))


def dispatch_totals(dispatches: list[OldGunnyDispatch]) -> dict:
    acked = [d for d in dispatches if d.acknowledgment_received]
    return {
        "total_dispatched": sum(d.gunnies_dispatched for d in dispatches),
        "acknowledged": sum(d.gunnies_dispatched for d in acked),
        "pending_acknowledgment": sum(d.gunnies_dispatched for d in dispatches if not d.acknowledgment_received),
        "acknowledged_count": len(acked),
        "dispatch_count": len(dispatches),
    }
