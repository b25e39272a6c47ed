from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from ricemill.db import load_rows, save_rows
from ricemill.errors import InsufficientStockError, RecordNotFoundError, ValidationError
from ricemill.schema import RICE_PRODUCTIONS
from ricemill.services.intake import list_intake, total_intake_quintals
from ricemill.utils import (
    from_row,
    new_id,
    optional_text,
    require_choice,
    require_date,
    to_number,
    to_rows,
)

logger = logging.getLogger(__name__)

QTL_PER_ACK = 287.1
OUTTURN_RATES = {"boiled": 0.68, "raw": 0.67}
RICE_TYPES = list(OUTTURN_RATES)
DEFAULT_MILL_NAME = "Surya Industries"


@dataclass
class RiceProductionBatch:
    id: str
    ack_number: str  # "2 ACK BOILED"
    ack_count: int
    rice_type: str
    paddy_used: float  # Qtl
    rice_produced: float  # Qtl
    production_date: str
    mill_name: Optional[str] = None
    notes: Optional[str] = None


def outturn_rate(rice_type: str) -> float:
    return OUTTURN_RATES[require_choice(rice_type, RICE_TYPES, "rice type")]


def ack_label(ack_count: int, rice_type: str) -> str:
    return f"{int(ack_count)} ACK {str(rice_type).upper()}"


def parse_ack_count(label: str) -> int:
    """'3 ACK RAW' -> 3; anything unparsable counts as one ACK."""
    parts = str(label or "").split()
    if "ACK" in str(label or "") and parts:
        try:
            return int(parts[0])
        except ValueError:
            return 1
    return 1


def _validate_ack_count(ack_count) -> int:
    f = to_number(ack_count, "Number of ACKs")
    if f < 1 or int(f) != f:
        raise ValidationError("Number of ACKs must be a whole number >= 1.")
    return int(f)


def compute_quantities(ack_count: int, rice_type: str) -> tuple[float, float]:
    """(rice_produced, paddy_used) in quintals."""
    rice_produced = int(ack_count) * QTL_PER_ACK
    paddy_used = rice_produced / outturn_rate(rice_type)
    return rice_produced, paddy_used


def available_paddy(
    total_intake: float,
    batches: list[RiceProductionBatch],
    *,
    exclude_id: Optional[str] = None,
) -> float:
    used = sum(float(b.paddy_used) for b in batches if b.id != exclude_id)
    return float(total_intake) - used


def list_batches(conn) -> list[RiceProductionBatch]:
    return [from_row(RiceProductionBatch, r) for r in load_rows(conn, RICE_PRODUCTIONS)]


def get_batch(conn, batch_id: str) -> RiceProductionBatch:
    for b in list_batches(conn):
        if b.id == batch_id:
            return b
    raise RecordNotFoundError("Rice production batch not found.")


def plan_batch(
    batches: list[RiceProductionBatch],
    total_intake: float,
    *,
    ack_count,
    rice_type: str,
    production_date: str,
    notes: Optional[str] = None,
    mill_name: Optional[str] = None,
) -> RiceProductionBatch:
    """Builds a new batch or raises InsufficientStockError; touches nothing."""
    n = _validate_ack_count(ack_count)
    rice_type = require_choice(rice_type, RICE_TYPES, "rice type")
    rice_produced, paddy_used = compute_quantities(n, rice_type)

    remaining = available_paddy(total_intake, batches)
    if paddy_used > remaining:
        raise InsufficientStockError("paddy", required=paddy_used, available=remaining)

    return RiceProductionBatch(
        id=new_id(),
        ack_number=ack_label(n, rice_type),
        ack_count=n,
        rice_type=rice_type,
        paddy_used=paddy_used,
        rice_produced=rice_produced,
        production_date=require_date(production_date, "Production date"),
        mill_name=optional_text(mill_name) or DEFAULT_MILL_NAME,
        notes=optional_text(notes),
    )


def create_batch(
    conn,
    *,
    ack_count,
    rice_type: str,
    production_date: str,
    notes: Optional[str] = None,
    mill_name: Optional[str] = None,
) -> RiceProductionBatch:
    batches = list_batches(conn)
    total_intake = total_intake_quintals(list_intake(conn))

    try:
        batch = plan_batch(
            batches,
            total_intake,
            ack_count=ack_count,
            rice_type=rice_type,
            production_date=production_date,
            notes=notes,
            mill_name=mill_name,
        )
    except InsufficientStockError as e:
        logger.warning("Rice batch rejected: %s", e)
        raise

    batches.append(batch)
    save_rows(conn, RICE_PRODUCTIONS, to_rows(batches))
    logger.info(
        "Rice batch %s created: %.2f Qtl rice from %.2f Qtl paddy",
        batch.ack_number, batch.rice_produced, batch.paddy_used,
    )
    return batch


def edit_batch(
    conn,
    batch_id: str,
    *,
    ack_count,
    rice_type: str,
    production_date: Optional[str] = None,
    notes: Optional[str] = None,
) -> RiceProductionBatch:
    """
    Recomputes rice/paddy from the edited ACK count and type.
    Availability is re-checked against every OTHER batch, so an edit
    cannot push paddy usage past the intake total.
    """
    batches = list_batches(conn)
    idx = next((i for i, b in enumerate(batches) if b.id == batch_id), None)
    if idx is None:
        raise RecordNotFoundError("Rice production batch not found.")

    n = _validate_ack_count(ack_count)
    rice_type = require_choice(rice_type, RICE_TYPES, "rice type")
    rice_produced, paddy_used = compute_quantities(n, rice_type)

    total_intake = total_intake_quintals(list_intake(conn))
    remaining = available_paddy(total_intake, batches, exclude_id=batch_id)
    if paddy_used > remaining:
        logger.warning("Edit of rice batch %s rejected: needs %.2f Qtl, %.2f available", batch_id, paddy_used, remaining)
        raise InsufficientStockError("paddy", required=paddy_used, available=remaining)

    old = batches[idx]
    updated = replace(
        old,
        ack_number=ack_label(n, rice_type),
        ack_count=n,
        rice_type=rice_type,
        paddy_used=paddy_used,
        rice_produced=rice_produced,
        production_date=(require_date(production_date, "Production date") if production_date else old.production_date),
        notes=optional_text(notes) if notes is not None else old.notes,
    )
    batches[idx] = updated
    save_rows(conn, RICE_PRODUCTIONS, to_rows(batches))
    logger.info("Rice batch %s edited: %s -> %s", batch_id, old.ack_number, updated.ack_number)
    return updated


def production_totals(total_intake: float, batches: list[RiceProductionBatch]) -> dict:
    used = sum(float(b.paddy_used) for b in batches)
    return {
        "total_paddy": float(total_intake),
        "paddy_used": used,
        "paddy_available": float(total_intake) - used,
        "rice_produced": sum(float(b.rice_produced) for b in batches),
        "total_acks": sum(parse_ack_count(b.ack_number) for b in batches),
        "batches": len(batches),
    }
