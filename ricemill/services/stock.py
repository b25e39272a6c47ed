from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from ricemill.db import load_rows, save_rows
from ricemill.errors import DuplicateRecordError, InsufficientStockError, RecordNotFoundError
from ricemill.schema import FCI_CONSIGNMENTS, FRK_STOCKS, GUNNY_STOCKS, REXIN_STICKERS
from ricemill.services.production import QTL_PER_ACK, list_batches
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

FRK_KG_PER_ACK = 290.0
BAGS_PER_ACK = 580
STICKERS_PER_ACK = 580
FRK_KG_PER_BAG = 20

GUNNY_TYPES = ["2024-25-new", "2023-24-leftover"]
GUNNY_SOURCES = ["new-bales", "received-with-paddy"]
CONSIGNMENT_STATUSES = ["in-transit", "dumping-done", "qc-passed", "rejected", "dispatched"]
IN_TRANSIT_STATUSES = ("in-transit", "dumping-done", "qc-passed")


@dataclass
class GunnyStock:
    id: str
    type: str
    quantity: int
    source: str
    date_received: str
    notes: Optional[str] = None


@dataclass
class FRKStock:
    id: str
    quantity: float  # kg
    supplier: str
    bags: int
    batch_number: str
    certificate_number: Optional[str]
    premix_certificate_number: Optional[str]
    date_received: str
    expiry_date: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class RexinSticker:
    id: str
    quantity: int
    date_received: str
    notes: Optional[str] = None


@dataclass
class FCIConsignment:
    id: str
    ack_number: str
    rice_quantity: float
    frk_quantity: float
    total_bags: int
    gunny_type: str
    stickers_used: int
    consignment_date: str
    status: str = "in-transit"
    lorry_number: Optional[str] = None
    transporter_name: Optional[str] = None
    e_way_bill: Optional[str] = None
    fci_weight: Optional[float] = None
    fci_moisture: Optional[float] = None
    notes: Optional[str] = None


@dataclass
class StockPosition:
    rice_produced: float = 0.0
    rice_consigned: float = 0.0
    gunnies_received: int = 0
    frk_received: float = 0.0
    stickers_received: int = 0
    gunnies_used: int = 0
    frk_used: float = 0.0
    stickers_used: int = 0
    gunnies_by_type: dict = field(default_factory=dict)  # remaining per gunny type

    @property
    def rice_remaining(self) -> float:
        return self.rice_produced - self.rice_consigned

    @property
    def gunnies_remaining(self) -> int:
        return self.gunnies_received - self.gunnies_used

    @property
    def frk_remaining(self) -> float:
        return self.frk_received - self.frk_used

    @property
    def stickers_remaining(self) -> int:
        return self.stickers_received - self.stickers_used


def list_gunny_stocks(conn) -> list[GunnyStock]:
    return [from_row(GunnyStock, r) for r in load_rows(conn, GUNNY_STOCKS)]


def list_frk_stocks(conn) -> list[FRKStock]:
    return [from_row(FRKStock, r) for r in load_rows(conn, FRK_STOCKS)]


def list_stickers(conn) -> list[RexinSticker]:
    return [from_row(RexinSticker, r) for r in load_rows(conn, REXIN_STICKERS)]


def list_consignments(conn) -> list[FCIConsignment]:
    return [from_row(FCIConsignment, r) for r in load_rows(conn, FCI_CONSIGNMENTS)]


# -------------------------
# Receipts
# -------------------------

def receive_gunnies(
    conn,
    *,
    gunny_type: str,
    quantity: int,
    source: str,
    date_received: str,
    notes: Optional[str] = None,
) -> GunnyStock:
    qty = positive_number(quantity, "Gunny quantity")
    rec = GunnyStock(
        id=new_id(),
        type=require_choice(gunny_type, GUNNY_TYPES, "gunny type"),
        quantity=int(qty),
        source=require_choice(source, GUNNY_SOURCES, "gunny source"),
        date_received=require_date(date_received, "Date received"),
        notes=optional_text(notes),
    )
    rows = list_gunny_stocks(conn)
    rows.append(rec)
    save_rows(conn, GUNNY_STOCKS, to_rows(rows))
    logger.info("Gunnies received: %s (%s)", rec.quantity, rec.type)
    return rec


def receive_frk(
    conn,
    *,
    quantity_kg: float,
    supplier: str,
    batch_number: str,
    date_received: str,
    bags: Optional[int] = None,
    certificate_number: Optional[str] = None,
    premix_certificate_number: Optional[str] = None,
    expiry_date: Optional[str] = None,
    notes: Optional[str] = None,
) -> FRKStock:
    """FRK arrives in 20 kg bags; bag count defaults to kg / 20 rounded up."""
    kg = positive_number(quantity_kg, "FRK quantity (kg)")
    if bags is None or str(bags).strip() == "":
        n_bags = -(-int(kg) // FRK_KG_PER_BAG)
    else:
        n_bags = int(non_negative_number(bags, "FRK bags"))

    rec = FRKStock(
        id=new_id(),
        quantity=kg,
        supplier=require_text(supplier, "Supplier"),
        bags=n_bags,
        batch_number=require_text(batch_number, "Batch number"),
        certificate_number=optional_text(certificate_number),
        premix_certificate_number=optional_text(premix_certificate_number),
        date_received=require_date(date_received, "Date received"),
        expiry_date=(require_date(expiry_date, "Expiry date") if expiry_date else None),
        notes=optional_text(notes),
    )
    rows = list_frk_stocks(conn)
    rows.append(rec)
    save_rows(conn, FRK_STOCKS, to_rows(rows))
    logger.info("FRK received: %.1f kg from %s (batch %s)", rec.quantity, rec.supplier, rec.batch_number)
    return rec


def receive_stickers(conn, *, quantity: int, date_received: str, notes: Optional[str] = None) -> RexinSticker:
    qty = positive_number(quantity, "Sticker quantity")
    rec = RexinSticker(
        id=new_id(),
        quantity=int(qty),
        date_received=require_date(date_received, "Date received"),
        notes=optional_text(notes),
    )
    rows = list_stickers(conn)
    rows.append(rec)
    save_rows(conn, REXIN_STICKERS, to_rows(rows))
    logger.info("Rexin stickers received: %s", rec.quantity)
    return rec


# -------------------------
# Position
# -------------------------

def compute_position(
    batches,
    consignments: list[FCIConsignment],
    gunnies: list[GunnyStock],
    frk: list[FRKStock],
    stickers: list[RexinSticker],
) -> StockPosition:
    by_type = {t: 0 for t in GUNNY_TYPES}
    for g in gunnies:
        by_type[g.type] = by_type.get(g.type, 0) + int(g.quantity)
    for c in consignments:
        by_type[c.gunny_type] = by_type.get(c.gunny_type, 0) - int(c.total_bags)

    return StockPosition(
        rice_produced=sum(float(b.rice_produced) for b in batches),
        rice_consigned=sum(float(c.rice_quantity) for c in consignments),
        gunnies_received=sum(int(g.quantity) for g in gunnies),
        frk_received=sum(float(f.quantity) for f in frk),
        stickers_received=sum(int(s.quantity) for s in stickers),
        gunnies_used=sum(int(c.total_bags) for c in consignments),
        frk_used=sum(float(c.frk_quantity) for c in consignments),
        stickers_used=sum(int(c.stickers_used) for c in consignments),
        gunnies_by_type=by_type,
    )


def stock_position(conn) -> StockPosition:
    return compute_position(
        list_batches(conn),
        list_consignments(conn),
        list_gunny_stocks(conn),
        list_frk_stocks(conn),
        list_stickers(conn),
    )


# -------------------------
# FCI consignments
# -------------------------

def check_consignment(position: StockPosition, gunny_type: str) -> None:
    """Raises InsufficientStockError for the first input short of one ACK."""
    if position.rice_remaining < QTL_PER_ACK:
        raise InsufficientStockError("rice", required=QTL_PER_ACK, available=position.rice_remaining)
    if position.frk_remaining < FRK_KG_PER_ACK:
        raise InsufficientStockError("FRK", required=FRK_KG_PER_ACK, available=position.frk_remaining, unit="kg")
    gunnies = position.gunnies_by_type.get(gunny_type, 0)
    if gunnies < BAGS_PER_ACK:
        raise InsufficientStockError(f"{gunny_type} gunnies", required=BAGS_PER_ACK, available=gunnies, unit="bags")
    if position.stickers_remaining < STICKERS_PER_ACK:
        raise InsufficientStockError(
            "rexin stickers", required=STICKERS_PER_ACK, available=position.stickers_remaining, unit="stickers"
        )


def create_consignment(
    conn,
    *,
    ack_number: str,
    consignment_date: str,
    gunny_type: str = "2024-25-new",
    lorry_number: Optional[str] = None,
    transporter_name: Optional[str] = None,
    e_way_bill: Optional[str] = None,
    notes: Optional[str] = None,
) -> FCIConsignment:
    gunny_type = require_choice(gunny_type, GUNNY_TYPES, "gunny type")
    ack_number = require_text(ack_number, "ACK number")
    consignment_date = require_date(consignment_date, "Consignment date")

    consignments = list_consignments(conn)
    if any(c.ack_number == ack_number for c in consignments):
        raise DuplicateRecordError(f"ACK '{ack_number}' already has a consignment.")

    try:
        check_consignment(stock_position(conn), gunny_type)
    except InsufficientStockError as e:
        logger.warning("Consignment %s rejected: %s", ack_number, e)
        raise

    rec = FCIConsignment(
        id=new_id(),
        ack_number=ack_number,
        rice_quantity=QTL_PER_ACK,
        frk_quantity=FRK_KG_PER_ACK,
        total_bags=BAGS_PER_ACK,
        gunny_type=gunny_type,
        stickers_used=STICKERS_PER_ACK,
        consignment_date=consignment_date,
        status="in-transit",
        lorry_number=optional_text(lorry_number),
        transporter_name=optional_text(transporter_name),
        e_way_bill=optional_text(e_way_bill),
        notes=optional_text(notes),
    )
    consignments.append(rec)
    save_rows(conn, FCI_CONSIGNMENTS, to_rows(consignments))
    logger.info("FCI consignment %s created (lorry %s)", rec.ack_number, rec.lorry_number or "-")
    return rec


def update_consignment_status(
    conn,
    consignment_id: str,
    status: str,
    *,
    fci_weight: Optional[float] = None,
    fci_moisture: Optional[float] = None,
) -> FCIConsignment:
    rows = list_consignments(conn)
    idx = next((i for i, c in enumerate(rows) if c.id == consignment_id), None)
    if idx is None:
        raise RecordNotFoundError("FCI consignment not found.")

    changes = {"status": require_choice(status, CONSIGNMENT_STATUSES, "consignment status")}
    if fci_weight is not None:
        changes["fci_weight"] = non_negative_number(fci_weight, "FCI weight")
    if fci_moisture is not None:
        changes["fci_moisture"] = non_negative_number(fci_moisture, "FCI moisture")

    rows[idx] = replace(rows[idx], **changes)
    save_rows(conn, FCI_CONSIGNMENTS, to_rows(rows))
    logger.info("FCI consignment %s -> %s", rows[idx].ack_number, rows[idx].status)
    return rows[idx]


def delete_consignment(conn, consignment_id: str) -> None:
    """Removing a consignment returns its rice, FRK, gunnies and stickers to stock."""
    rows = list_consignments(conn)
    kept = [c for c in rows if c.id != consignment_id]
    if len(kept) == len(rows):
        raise RecordNotFoundError("FCI consignment not found.")
    save_rows(conn, FCI_CONSIGNMENTS, to_rows(kept))
    logger.info("FCI consignment %s deleted", consignment_id)


def consignment_counts(consignments: list[FCIConsignment]) -> dict:
    return {
        "total": len(consignments),
        "dispatched": sum(1 for c in consignments if c.status == "dispatched"),
        "in_transit": sum(1 for c in consignments if c.status in IN_TRANSIT_STATUSES),
        "rejected": sum(1 for c in consignments if c.status == "rejected"),
    }
