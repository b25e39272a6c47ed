from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "RICEMILL_DATA_DIR"
SESSION_DATA_DIR = "ricemill_data_dir"


@dataclass(frozen=True)
class TariffConfig:
    """HT tariff used to project the current-period electricity bill."""

    demand_rate_per_kw: float = 400.0
    energy_rate_per_kwh: float = 6.5
    fixed_charge: float = 1500.0
    fuel_surcharge_per_kwh: float = 0.5
    duty_rate: float = 0.16
    additional_charges: float = 200.0  # meter rent etc.

    @classmethod
    def from_dict(cls, raw: dict | None) -> "TariffConfig":
        if not isinstance(raw, dict):
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for k, v in raw.items():
            if k not in known:
                continue
            try:
                kwargs[k] = float(v)
            except (TypeError, ValueError):
                continue
        return cls(**kwargs)


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "INR"
    mill_name: str = "Surya Industries"
    tariff: TariffConfig = field(default_factory=TariffConfig)

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


def _default_data_dir() -> Path:
    return Path.home() / ".ricemill_ops"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            payload = json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return payload if isinstance(payload, dict) else {}
    return {}


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = data_dir / CONFIG_FILE_NAME
    payload = _load_persisted_settings(data_dir)
    payload["data_dir"] = str(data_dir)
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Update session for immediate effect
    st.session_state[SESSION_DATA_DIR] = str(data_dir)


def build_settings(data_dir: Path) -> Settings:
    """Settings for an explicit data directory (tariff overrides read from its settings.json)."""
    data_dir = Path(data_dir).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)
    persisted = _load_persisted_settings(data_dir)

    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "ricemill.db",
        mill_name=str(persisted.get("mill_name") or Settings.mill_name),
        tariff=TariffConfig.from_dict(persisted.get("tariff")),
    )


@st.cache_resource
def get_settings() -> Settings:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    if SESSION_DATA_DIR in st.session_state:
        data_dir = Path(st.session_state[SESSION_DATA_DIR])
    elif os.getenv(ENV_DATA_DIR):
        data_dir = Path(os.getenv(ENV_DATA_DIR, ""))
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir))

    return build_settings(data_dir)
