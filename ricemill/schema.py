SCHEMA_SQL = r"""
-- One JSON array per record collection (rice productions, sales, hamali work, ...)
CREATE TABLE IF NOT EXISTS collections (
  key TEXT PRIMARY KEY,
  payload TEXT NOT NULL,                 -- JSON array (or object for singletons)
  updated_at TEXT NOT NULL               -- ISO datetime
);

-- Small bookkeeping values (last sync, seed markers)
CREATE TABLE IF NOT EXISTS meta (
  key TEXT PRIMARY KEY,
  value TEXT
);
"""

# Collection keys
PADDY_INTAKE = "cmr_paddy_intake"
RICE_PRODUCTIONS = "cmr_rice_productions"
BY_PRODUCT_PRODUCTIONS = "cmr_by_product_productions"
BY_PRODUCT_SALES = "cmr_by_product_sales"
BY_PRODUCT_PAYMENTS = "cmr_by_product_payments"
ELECTRICITY_READINGS = "cmr_electricity_readings"
LIVE_READING = "cmr_live_reading"
HAMALI_WORK = "cmr_hamali_work"
HAMALI_PAYMENTS = "cmr_hamali_payments"
SUPERVISOR_SALARIES = "cmr_supervisor_salaries"
RECONCILIATIONS = "cmr_reconciliations"
GUNNY_DISPATCHES = "cmr_gunny_dispatches"
GUNNY_STOCKS = "cmr_gunny_stocks"
FRK_STOCKS = "cmr_frk_stocks"
REXIN_STICKERS = "cmr_rexin_stickers"
FCI_CONSIGNMENTS = "cmr_fci_consignments"

ALL_COLLECTIONS = [
    PADDY_INTAKE,
    RICE_PRODUCTIONS,
    BY_PRODUCT_PRODUCTIONS,
    BY_PRODUCT_SALES,
    BY_PRODUCT_PAYMENTS,
    ELECTRICITY_READINGS,
    LIVE_READING,
    HAMALI_WORK,
    HAMALI_PAYMENTS,
    SUPERVISOR_SALARIES,
    RECONCILIATIONS,
    GUNNY_DISPATCHES,
    GUNNY_STOCKS,
    FRK_STOCKS,
    REXIN_STICKERS,
    FCI_CONSIGNMENTS,
]

META_LAST_SYNC = "cmr_last_sync"
