from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from ricemill.db import load_rows, save_rows
from ricemill.errors import ValidationError
from ricemill.schema import PADDY_INTAKE
from ricemill.utils import (
    from_row,
    non_negative_number,
    optional_text,
    positive_number,
    require_choice,
    require_date,
    require_text,
    to_rows,
)

logger = logging.getLogger(__name__)

UNLOADING_POINTS = ["OLD GODOWN", "NEW GODOWN", "PLANT SHED", "BATTI", "OTHER"]
DEFAULT_PAGE_SIZE = 25


@dataclass
class PaddyIntakeRecord:
    s_no: int
    date: str  # ISO date
    vehicle_no: str
    w_slip_no: int
    truck_chit_no: int
    center_name: str
    district: str
    new_bags: int
    old_bags: int
    total_bags: int
    total_quintals: float
    moisture: Optional[float]
    unloading_point: str


@dataclass
class IntakeSummary:
    total_records: int
    total_new_bags: int
    total_old_bags: int
    total_bags: int
    total_quintals: float
    unique_centers: int
    unique_districts: int


def list_intake(conn) -> list[PaddyIntakeRecord]:
    return [from_row(PaddyIntakeRecord, r) for r in load_rows(conn, PADDY_INTAKE)]


def total_intake_quintals(records: list[PaddyIntakeRecord]) -> float:
    return sum(float(r.total_quintals) for r in records)


def add_intake(
    conn,
    *,
    date: str,
    vehicle_no: str,
    w_slip_no: int,
    truck_chit_no: int,
    center_name: str,
    district: str,
    new_bags: int,
    old_bags: int,
    total_quintals: float,
    moisture: Optional[float],
    unloading_point: str,
) -> PaddyIntakeRecord:
    """
    Append-only operator entry. Total bags is always new + old;
    the serial number continues from the last record.
    """
    records = list_intake(conn)

    new_b = int(non_negative_number(new_bags, "New bags"))
    old_b = int(non_negative_number(old_bags, "Old bags"))
    if new_b + old_b <= 0:
        raise ValidationError("Total bags must be > 0.")

    rec = PaddyIntakeRecord(
        s_no=max((r.s_no for r in records), default=0) + 1,
        date=require_date(date, "Date"),
        vehicle_no=require_text(vehicle_no, "Vehicle no").upper(),
        w_slip_no=int(non_negative_number(w_slip_no, "W slip no")),
        truck_chit_no=int(non_negative_number(truck_chit_no, "Truck chit no")),
        center_name=require_text(center_name, "Center").upper(),
        district=require_text(district, "District").upper(),
        new_bags=new_b,
        old_bags=old_b,
        total_bags=new_b + old_b,
        total_quintals=positive_number(total_quintals, "Total quintals"),
        moisture=(non_negative_number(moisture, "Moisture") if optional_text(moisture) else None),
        unloading_point=require_choice(unloading_point, UNLOADING_POINTS, "unloading point"),
    )

    records.append(rec)
    save_rows(conn, PADDY_INTAKE, to_rows(records))
    logger.info("Paddy intake #%s recorded: %s, %.2f Qtl", rec.s_no, rec.center_name, rec.total_quintals)
    return rec


def summary_stats(records: list[PaddyIntakeRecord]) -> IntakeSummary:
    return IntakeSummary(
        total_records=len(records),
        total_new_bags=sum(int(r.new_bags) for r in records),
        total_old_bags=sum(int(r.old_bags) for r in records),
        total_bags=sum(int(r.total_bags) for r in records),
        total_quintals=total_intake_quintals(records),
        unique_centers=len({r.center_name for r in records}),
        unique_districts=len({r.district for r in records}),
    )


def districts(records: list[PaddyIntakeRecord]) -> list[str]:
    return sorted({r.district for r in records})


def centers(records: list[PaddyIntakeRecord], district: Optional[str] = None) -> list[str]:
    return sorted({r.center_name for r in records if district is None or r.district == district})


def filter_records(
    records: list[PaddyIntakeRecord],
    *,
    search: Optional[str] = None,
    district: Optional[str] = None,
    center: Optional[str] = None,
    unloading_point: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> list[PaddyIntakeRecord]:
    """Free-text search covers vehicle, center, district and slip/chit numbers (case-insensitive)."""
    needle = (search or "").strip().lower()

    out = []
    for r in records:
        if district and r.district != district:
            continue
        if center and r.center_name != center:
            continue
        if unloading_point and r.unloading_point != unloading_point:
            continue
        if date_from and r.date < date_from:
            continue
        if date_to and r.date > date_to:
            continue
        if needle:
            haystack = " ".join(
                [r.vehicle_no, r.center_name, r.district, str(r.w_slip_no), str(r.truck_chit_no)]
            ).lower()
            if needle not in haystack:
                continue
        out.append(r)
    return out


def paginate(records: list, page: int, page_size: int = DEFAULT_PAGE_SIZE) -> tuple[list, int, int]:
    """
    1-based pages. Returns (rows, page actually shown, total pages).
    Out-of-range pages clamp to the nearest valid page.
    """
    page_size = max(1, int(page_size))
    total_pages = max(1, math.ceil(len(records) / page_size))
    page = min(max(1, int(page)), total_pages)
    start = (page - 1) * page_size
    return records[start:start + page_size], page, total_pages
