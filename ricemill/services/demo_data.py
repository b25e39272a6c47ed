from __future__ import annotations

import logging
import random
from datetime import date, timedelta

from ricemill.db import ensure_schema, has_collection, save_many
from ricemill.errors import InsufficientStockError
from ricemill.schema import GUNNY_DISPATCHES, PADDY_INTAKE
from ricemill.services import electricity, hamali, stock
from ricemill.services.intake import PaddyIntakeRecord, list_intake, total_intake_quintals
from ricemill.services.production import available_paddy, compute_quantities, create_batch, list_batches
from ricemill.services.reconciliation import OldGunnyDispatch
from ricemill.utils import dmy_to_iso, to_rows

logger = logging.getLogger(__name__)

# (s_no, date, vehicle, w slip, truck chit, center, new bags, old bags, quintals, moisture)
PADDY_SEED = [
    (1, "27-04-2025", "KA56.6348", 844, 12955, "PACS KONYALA", 0, 719, 287.6, 13.4),
    (2, "27-04-2025", "KA38A6777", 845, 12001, "PACS KASALA II", 0, 531, 212.4, 13.5),
    (3, "27-04-2025", "KA56.2087", 846, 12051, "PACS MADDUR", 0, 592, 236.8, 13.4),
    (4, "28-04-2025", "AP23TA1235", 847, 12002, "PACS KASALA I", 0, 701, 280.4, 13.0),
    (5, "28-04-2025", "KA56.6348", 848, 12957, "PACS KONYALA", 0, 816, 326.4, 13.0),
]
SEED_DISTRICT = "SANGAREDDY"
SEED_UNLOADING_POINT = "OLD GODOWN"
DEMO_RICE_TYPES = ["boiled", "raw"]

# (date, center, gunnies, comments)
GUNNY_DISPATCH_SEED = [
    ("22-04-2025", "IKP HATHNOORA", 15000, "Initial dispatch for RABI 2024-25"),
    ("22-04-2025", "IKP NAWABPET", 9000, "First batch dispatch"),
    ("23-04-2025", "PACS HATHNOORA", 15000, "Second dispatch to PACS center"),
    ("23-04-2025", "PACS SIKINDLAPUR", 11000, "Regular dispatch"),
    ("25-04-2025", "IKP CHANDAPUR", 6200, "Mid-season dispatch"),
    ("28-04-2025", "IKP GUNDLAMACHNOOR", 5000, "Regular dispatch"),
    ("01-05-2025", "PACS KASALA", 12000, "May dispatch batch 1"),
    ("04-05-2025", "PACS KASALA", 6250, "May dispatch batch 2"),
    ("07-05-2025", "IKP HATHNOORA", 4650, "Additional dispatch"),
    ("08-05-2025", "PACS KASALA", 700, "Small batch dispatch"),
    ("09-05-2025", "PACS KASALA", 1500, "Follow-up dispatch"),
    ("12-05-2025", "IKP HATHNOORA", 2700, "Mid-May dispatch"),
    ("14-05-2025", "PACS KASALA", 1800, "Regular dispatch"),
    ("16-05-2025", "PACS KASALA", 5600, "Large batch dispatch"),
    ("20-05-2025", "PACS ISMAILKHANPET", 800, "Final dispatch for May"),
]


def seed_paddy_records() -> list[PaddyIntakeRecord]:
    return [
        PaddyIntakeRecord(
            s_no=s_no,
            date=dmy_to_iso(d),
            vehicle_no=vehicle,
            w_slip_no=slip,
            truck_chit_no=chit,
            center_name=center,
            district=SEED_DISTRICT,
            new_bags=new_bags,
            old_bags=old_bags,
            total_bags=new_bags + old_bags,
            total_quintals=qtl,
            moisture=moisture,
            unloading_point=SEED_UNLOADING_POINT,
        )
        for s_no, d, vehicle, slip, chit, center, new_bags, old_bags, qtl, moisture in PADDY_SEED
    ]


def seed_gunny_dispatches() -> list[OldGunnyDispatch]:
    return [
        OldGunnyDispatch(
            id=str(i),
            center_name=center,
            district=SEED_DISTRICT,
            gunnies_dispatched=qty,
            dispatch_date=dmy_to_iso(d),
            comments=comments,
        )
        for i, (d, center, qty, comments) in enumerate(GUNNY_DISPATCH_SEED, start=1)
    ]


def upsert_reference_data(conn) -> list[str]:
    """Seeds intake and gunny dispatch lists the first time only. Returns the keys seeded."""
    ensure_schema(conn)

    payloads = {}
    if not has_collection(conn, PADDY_INTAKE):
        payloads[PADDY_INTAKE] = to_rows(seed_paddy_records())
    if not has_collection(conn, GUNNY_DISPATCHES):
        payloads[GUNNY_DISPATCHES] = to_rows(seed_gunny_dispatches())

    if payloads:
        save_many(conn, payloads)
        logger.info("Seeded reference data: %s", ", ".join(payloads))
    return list(payloads)


def load_demo_data(conn, *, seed: int = 7) -> None:
    """Reference data plus a few weeks of stock receipts, production, meter bills and hamali work."""
    random.seed(seed)
    upsert_reference_data(conn)

    # both demo batches must fit before anything is written
    needed = sum(compute_quantities(1, t)[1] for t in DEMO_RICE_TYPES)
    remaining = available_paddy(total_intake_quintals(list_intake(conn)), list_batches(conn))
    if needed > remaining:
        logger.warning("Demo data not loaded: %.2f Qtl paddy needed, %.2f available", needed, remaining)
        raise InsufficientStockError("paddy for demo batches", required=needed, available=remaining)

    base = date.today() - timedelta(days=21)

    stock.receive_gunnies(conn, gunny_type="2024-25-new", quantity=2500, source="new-bales", date_received=base)
    stock.receive_gunnies(
        conn, gunny_type="2023-24-leftover", quantity=900, source="received-with-paddy", date_received=base
    )
    stock.receive_frk(
        conn,
        quantity_kg=1000,
        supplier="Demo FRK Supplier",
        batch_number="FRK-DEMO-01",
        certificate_number="CERT-001",
        date_received=base,
    )
    stock.receive_stickers(conn, quantity=2000, date_received=base)

    for i, rice_type in enumerate(DEMO_RICE_TYPES):
        create_batch(
            conn,
            ack_count=1,
            rice_type=rice_type,
            production_date=base + timedelta(days=3 + i),
            notes="Demo batch",
        )

    for i in range(3):
        kwh = random.randint(18000, 26000)
        kvah = int(kwh / random.uniform(0.86, 0.97))
        rmd = random.randint(180, 240)
        electricity.add_reading(
            conn,
            reading_date=base + timedelta(days=7 * i),
            kwh=kwh,
            kvah=kvah,
            rmd=rmd,
            bill_amount=round(kwh * 8.2 + rmd * 400, 2),
            bill_period=f"Week {i + 1}",
        )

    for work_type, _, unit in random.sample(hamali.RATE_TABLE, 4):
        qty = random.randint(5, 40) if unit in ("ton", "ack", "bale") else random.randint(200, 900)
        hamali.record_work(conn, work_type=work_type, quantity=qty, work_date=base + timedelta(days=random.randint(0, 20)))

    logger.info("Demo data loaded (seed=%s)", seed)
