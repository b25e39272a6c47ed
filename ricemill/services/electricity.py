from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from typing import Optional

from bs4 import BeautifulSoup

from ricemill.config import TariffConfig
from ricemill.db import load_object, load_rows, save_object, save_rows
from ricemill.errors import BillParseError, RecordNotFoundError
from ricemill.schema import ELECTRICITY_READINGS, LIVE_READING
from ricemill.utils import (
    extract_number,
    from_row,
    iso_today,
    new_id,
    non_negative_number,
    optional_text,
    require_date,
    require_text,
    safe_div,
    to_rows,
)

logger = logging.getLogger(__name__)

PF_STANDARD = 0.9
KWH_PER_ACK_ESTIMATE = 65.0

# Candidate CSS selectors per bill field, tried as one selector group.
BILL_SELECTORS = {
    "service_number": "[data-service], .service-number, #service-number",
    "kwh": "[data-kwh], .kwh-reading, #kwh",
    "kvah": "[data-kvah], .kvah-reading, #kvah",
    "rmd": "[data-rmd], .rmd-reading, #rmd",
    "bill_amount": "[data-amount], .bill-amount, #total-amount",
}


@dataclass
class ElectricityReading:
    id: str
    reading_date: str
    kwh: float
    kvah: float
    rmd: float  # recorded maximum demand, kW
    bill_amount: float
    bill_period: str
    notes: Optional[str] = None

    @property
    def power_factor(self) -> Optional[float]:
        return power_factor(self.kwh, self.kvah)


@dataclass
class LiveReading:
    kwh: float = 0.0
    kvah: float = 0.0
    rmd: float = 0.0
    last_updated: Optional[str] = None


@dataclass
class BillEstimate:
    fixed_charges: float = 0.0
    energy_charges: float = 0.0
    demand_charges: float = 0.0
    fuel_surcharge: float = 0.0
    electricity_duty: float = 0.0
    additional_charges: float = 0.0
    total_amount: float = 0.0


@dataclass
class ParsedBill:
    service_number: Optional[str] = None
    kwh: Optional[float] = None
    kvah: Optional[float] = None
    rmd: Optional[float] = None
    bill_amount: Optional[float] = None

    @property
    def matched(self) -> list[str]:
        return [k for k, v in asdict(self).items() if v is not None]


def power_factor(kwh: float, kvah: float) -> Optional[float]:
    """kWh / kVAh; None when kVAh is zero."""
    if not kvah:
        return None
    return float(kwh) / float(kvah)


def is_below_standard(pf: Optional[float]) -> bool:
    return pf is not None and pf < PF_STANDARD


# -------------------------
# Billed readings
# -------------------------

def list_readings(conn) -> list[ElectricityReading]:
    return [from_row(ElectricityReading, r) for r in load_rows(conn, ELECTRICITY_READINGS)]


def _reading_fields(reading_date, kwh, kvah, rmd, bill_amount, bill_period, notes) -> dict:
    return {
        "reading_date": require_date(reading_date, "Reading date"),
        "kwh": non_negative_number(kwh, "KWH"),
        "kvah": non_negative_number(kvah, "KVAH"),
        "rmd": non_negative_number(rmd, "RMD"),
        "bill_amount": non_negative_number(bill_amount, "Bill amount"),
        "bill_period": require_text(bill_period, "Bill period"),
        "notes": optional_text(notes),
    }


def add_reading(
    conn,
    *,
    reading_date: str,
    kwh: float,
    kvah: float,
    rmd: float,
    bill_amount: float,
    bill_period: str,
    notes: Optional[str] = None,
) -> ElectricityReading:
    readings = list_readings(conn)
    rec = ElectricityReading(id=new_id(), **_reading_fields(reading_date, kwh, kvah, rmd, bill_amount, bill_period, notes))
    readings.append(rec)
    save_rows(conn, ELECTRICITY_READINGS, to_rows(readings))
    logger.info("Electricity bill %s recorded: %.0f kWh, %.2f", rec.bill_period, rec.kwh, rec.bill_amount)
    return rec


def edit_reading(conn, reading_id: str, **values) -> ElectricityReading:
    readings = list_readings(conn)
    idx = next((i for i, r in enumerate(readings) if r.id == reading_id), None)
    if idx is None:
        raise RecordNotFoundError("Electricity reading not found.")

    current = asdict(readings[idx])
    current.update({k: v for k, v in values.items() if k in current and k != "id"})
    updated = replace(
        readings[idx],
        **_reading_fields(
            current["reading_date"], current["kwh"], current["kvah"], current["rmd"],
            current["bill_amount"], current["bill_period"], current["notes"],
        ),
    )
    readings[idx] = updated
    save_rows(conn, ELECTRICITY_READINGS, to_rows(readings))
    logger.info("Electricity reading %s edited", reading_id)
    return updated


def delete_reading(conn, reading_id: str) -> None:
    readings = list_readings(conn)
    kept = [r for r in readings if r.id != reading_id]
    if len(kept) == len(readings):
        raise RecordNotFoundError("Electricity reading not found.")
    save_rows(conn, ELECTRICITY_READINGS, to_rows(kept))
    logger.info("Electricity reading %s deleted", reading_id)


def reading_totals(readings: list[ElectricityReading]) -> dict:
    total_kwh = sum(r.kwh for r in readings)
    total_kvah = sum(r.kvah for r in readings)
    total_bill = sum(r.bill_amount for r in readings)
    return {
        "total_kwh": total_kwh,
        "total_kvah": total_kvah,
        "total_bill_amount": total_bill,
        "average_power_factor": safe_div(total_kwh, total_kvah),
        "average_cost_per_unit": safe_div(total_bill, total_kwh),
        "cost_per_ack": cost_per_ack(readings),
    }


def cost_per_ack(readings: list[ElectricityReading], kwh_per_ack: float = KWH_PER_ACK_ESTIMATE) -> float:
    total_kwh = sum(r.kwh for r in readings)
    if total_kwh == 0:
        return 0.0
    estimated_acks = total_kwh / kwh_per_ack
    return safe_div(sum(r.bill_amount for r in readings), estimated_acks)


# -------------------------
# Live (unbilled) reading
# -------------------------

def get_live_reading(conn) -> LiveReading:
    raw = load_object(conn, LIVE_READING)
    return from_row(LiveReading, raw) if raw else LiveReading()


def set_live_reading(conn, *, kwh: float, kvah: float, rmd: float, today: Optional[str] = None) -> LiveReading:
    live = LiveReading(
        kwh=non_negative_number(kwh, "KWH"),
        kvah=non_negative_number(kvah, "KVAH"),
        rmd=non_negative_number(rmd, "RMD"),
        last_updated=today or iso_today(),
    )
    save_object(conn, LIVE_READING, asdict(live))
    logger.info("Live reading updated: %.0f kWh / %.0f kVAh / %.1f kW", live.kwh, live.kvah, live.rmd)
    return live


def estimate_current_bill(live: LiveReading, tariff: Optional[TariffConfig] = None) -> BillEstimate:
    """
    Projected HT bill for the in-progress period.
    Without both kWh and kVAh there is nothing to project: all zero.
    """
    if not live.kwh or not live.kvah:
        return BillEstimate()

    t = tariff or TariffConfig()
    demand = live.rmd * t.demand_rate_per_kw
    energy = live.kwh * t.energy_rate_per_kwh
    fixed = t.fixed_charge
    fuel = live.kwh * t.fuel_surcharge_per_kwh
    duty = (energy + demand) * t.duty_rate
    additional = t.additional_charges

    return BillEstimate(
        fixed_charges=fixed,
        energy_charges=energy,
        demand_charges=demand,
        fuel_surcharge=fuel,
        electricity_duty=duty,
        additional_charges=additional,
        total_amount=demand + energy + fixed + fuel + duty + additional,
    )


def live_bill_from_last_rate(readings: list[ElectricityReading], live: LiveReading) -> float:
    """Live kWh priced at the last bill's effective rate per unit."""
    if not readings or not live.kwh:
        return 0.0
    last = readings[-1]
    return live.kwh * safe_div(last.bill_amount, last.kwh)


# -------------------------
# HTML bill import
# -------------------------

def parse_html_bill(html: str | bytes) -> ParsedBill:
    """
    Best-effort extraction of bill fields from a saved HTML bill.
    Raises BillParseError when the document cannot be read or no field is found.
    """
    if isinstance(html, bytes):
        try:
            html = html.decode("utf-8")
        except UnicodeDecodeError:
            html = html.decode("latin-1")
    if not str(html).strip():
        raise BillParseError("The bill file is empty.")

    soup = BeautifulSoup(html, "html.parser")
    bill = ParsedBill()
    for name, selector in BILL_SELECTORS.items():
        el = soup.select_one(selector)
        if el is None:
            continue
        text = el.get_text(" ", strip=True)
        if name == "service_number":
            bill.service_number = text or None
        else:
            value = extract_number(text)
            # a zero reading is treated as "not found"
            setattr(bill, name, value if value else None)

    if not bill.matched:
        logger.warning("HTML bill import found no known fields")
        raise BillParseError("Error parsing HTML bill. Please check the file format.")

    logger.info("HTML bill parsed: %s", ", ".join(bill.matched))
    return bill
