from __future__ import annotations

import math
from dataclasses import dataclass

from ricemill.services import byproducts, electricity, hamali, reconciliation
from ricemill.services.intake import list_intake, summary_stats, total_intake_quintals
from ricemill.services.production import QTL_PER_ACK, list_batches, parse_ack_count, production_totals
from ricemill.services.stock import (
    BAGS_PER_ACK,
    FRK_KG_PER_ACK,
    IN_TRANSIT_STATUSES,
    STICKERS_PER_ACK,
    FCIConsignment,
    StockPosition,
    compute_position,
    list_consignments,
    list_frk_stocks,
    list_gunny_stocks,
    list_stickers,
)
from ricemill.utils import progress_pct

CAPACITY_YIELD = 0.675


@dataclass(frozen=True)
class Constraint:
    name: str
    capacity: int  # ACKs possible


@dataclass(frozen=True)
class AckStats:
    total_possible: int
    produced: int
    delivered: int
    in_transit: int
    pending: int
    consignments: int

    @property
    def produced_pct(self) -> int:
        return progress_pct(self.produced, self.total_possible)

    @property
    def delivered_pct(self) -> int:
        return progress_pct(self.delivered, self.total_possible)


def bottleneck_analysis(
    total_paddy: float,
    gunnies_remaining: float,
    frk_remaining_kg: float,
    stickers_remaining: float,
) -> tuple[list[Constraint], Constraint]:
    """
    ACKs possible under each input taken alone, and the binding one
    (smallest capacity; first listed wins a tie).
    """
    constraints = [
        Constraint("Rice Production", max(0, math.floor(float(total_paddy) * CAPACITY_YIELD / QTL_PER_ACK))),
        Constraint("Gunny Bags", max(0, math.floor(float(gunnies_remaining) / BAGS_PER_ACK))),
        Constraint("FRK Stock", max(0, math.floor(float(frk_remaining_kg) / FRK_KG_PER_ACK))),
        Constraint("Rexin Stickers", max(0, math.floor(float(stickers_remaining) / STICKERS_PER_ACK))),
    ]
    binding = constraints[0]
    for c in constraints[1:]:
        if c.capacity < binding.capacity:
            binding = c
    return constraints, binding


def ack_stats(total_paddy: float, batches, consignments: list[FCIConsignment]) -> AckStats:
    produced = sum(parse_ack_count(b.ack_number) for b in batches)
    return AckStats(
        total_possible=math.ceil(float(total_paddy) / QTL_PER_ACK),
        produced=produced,
        delivered=sum(1 for c in consignments if c.status == "dispatched"),
        in_transit=sum(1 for c in consignments if c.status in IN_TRANSIT_STATUSES),
        pending=produced - len(consignments),
        consignments=len(consignments),
    )


def frk_status(position: StockPosition, total_possible_acks: int) -> dict:
    required = total_possible_acks * FRK_KG_PER_ACK
    remaining = position.frk_remaining
    shortage = max(0.0, required - remaining)
    return {
        "received": position.frk_received,
        "used": position.frk_used,
        "remaining": remaining,
        "required": required,
        "shortage": shortage,
        "acks_affected": math.ceil(shortage / FRK_KG_PER_ACK),
        "sufficient": remaining >= required,
        "coverage_pct": min(100, progress_pct(remaining, required)),
    }


def operations_summary(conn) -> dict:
    """Read-only view across every collection, recomputed on each call."""
    intake = list_intake(conn)
    total_paddy = total_intake_quintals(intake)
    batches = list_batches(conn)
    consignments = list_consignments(conn)
    position = compute_position(
        batches, consignments, list_gunny_stocks(conn), list_frk_stocks(conn), list_stickers(conn)
    )

    acks = ack_stats(total_paddy, batches, consignments)
    constraints, binding = bottleneck_analysis(
        total_paddy, position.gunnies_remaining, position.frk_remaining, position.stickers_remaining
    )

    bp_sales = byproducts.list_sales(conn)
    bp_stock = byproducts.derive_stock(byproducts.list_productions(conn), bp_sales)
    readings = electricity.list_readings(conn)

    return {
        "paddy": summary_stats(intake),
        "production": production_totals(total_paddy, batches),
        "acks": acks,
        "stock": position,
        "frk": frk_status(position, acks.total_possible),
        "constraints": constraints,
        "bottleneck": binding,
        "by_products": byproducts.receivables_summary(bp_sales, byproducts.list_payments(conn), bp_stock),
        "by_product_stock": bp_stock,
        "electricity": electricity.reading_totals(readings),
        "hamali": hamali.work_totals(hamali.list_work(conn), hamali.list_payments(conn)),
        "reconciliation": reconciliation.reconciliation_summary(
            reconciliation.merge_center_records(intake, reconciliation.list_reconciliations(conn))
        ),
        "gunny_dispatch": reconciliation.dispatch_totals(reconciliation.list_dispatches(conn)),
    }
