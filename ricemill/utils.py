from __future__ import annotations

import math
import re
import uuid
from dataclasses import asdict, fields
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from ricemill.errors import ValidationError


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


def from_row(cls, row: dict):
    """Build a record dataclass from a stored dict, ignoring keys the class does not know."""
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in row.items() if k in known})


def to_rows(records) -> list[dict]:
    return [asdict(r) for r in records]


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0


def add_days(iso_date: str, days: int) -> str:
    return (date.fromisoformat(str(iso_date)) + timedelta(days=int(days))).isoformat()


def dmy_to_iso(s: str) -> str:
    """'27-04-2025' -> '2025-04-27'"""
    day, month, year = str(s).split("-")
    return date(int(year), int(month), int(day)).isoformat()


def require_text(value: Any, label: str) -> str:
    s = "" if value is None else str(value).strip()
    if not s:
        raise ValidationError(f"{label} is required.")
    return s


def optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s if s else None


def to_number(value: Any, label: str) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number.")
    if f != f:  # NaN
        raise ValidationError(f"{label} must be a number.")
    return f


def positive_number(value: Any, label: str) -> float:
    f = to_number(value, label)
    if f <= 0:
        raise ValidationError(f"{label} must be > 0.")
    return f


def non_negative_number(value: Any, label: str) -> float:
    f = to_number(value, label)
    if f < 0:
        raise ValidationError(f"{label} cannot be negative.")
    return f


def require_date(value: Any, label: str) -> str:
    if isinstance(value, date):
        return value.isoformat()
    s = require_text(value, label)
    try:
        return date.fromisoformat(s).isoformat()
    except ValueError:
        raise ValidationError(f"{label} must be a date (YYYY-MM-DD).")


def require_choice(value: Any, choices, label: str) -> str:
    s = "" if value is None else str(value).strip()
    if s not in choices:
        raise ValidationError(f"Invalid {label} '{s}'. Use one of: {', '.join(choices)}.")
    return s


_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def extract_number(text: str) -> Optional[float]:
    """First number in a label, ignoring grouping commas ('Rs. 1,23,456.50' -> 123456.5)."""
    m = _NUMBER_RE.search(str(text or "").replace(",", ""))
    return float(m.group(0)) if m else None


def progress_pct(current: float, total: float) -> int:
    # half-up, so 12.5% shows as 13%
    return int(math.floor(safe_div(current, total) * 100 + 0.5)) if total > 0 else 0
