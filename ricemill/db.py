from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Iterable, Mapping

import streamlit as st

from ricemill.errors import StorageError
from ricemill.schema import ALL_COLLECTIONS, META_LAST_SYNC, SCHEMA_SQL
from ricemill.utils import iso_now

logger = logging.getLogger(__name__)


def _connect(db_path: Path | str) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> sqlite3.Connection:
    return _connect(db_path)


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA_SQL)
    conn.commit()


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    cur = conn.execute(sql, tuple(params))
    rows = cur.fetchall()
    cur.close()
    return rows


# -------------------------
# JSON collections
# -------------------------

def _load_payload(conn: sqlite3.Connection, key: str) -> Any:
    try:
        rows = q(conn, "SELECT payload FROM collections WHERE key=?", (key,))
    except sqlite3.Error as e:
        raise StorageError(f"Could not read '{key}': {e}") from e
    if not rows:
        return None
    try:
        return json.loads(rows[0]["payload"])
    except ValueError as e:
        raise StorageError(f"Stored data for '{key}' is not valid JSON.") from e


def has_collection(conn: sqlite3.Connection, key: str) -> bool:
    return bool(q(conn, "SELECT 1 FROM collections WHERE key=?", (key,)))


def load_rows(conn: sqlite3.Connection, key: str) -> list[dict]:
    """Whole collection under `key`; a missing key is an empty collection."""
    payload = _load_payload(conn, key)
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise StorageError(f"Stored data for '{key}' is not a list.")
    return payload


def load_object(conn: sqlite3.Connection, key: str) -> dict | None:
    payload = _load_payload(conn, key)
    if payload is None:
        return None
    if not isinstance(payload, dict):
        raise StorageError(f"Stored data for '{key}' is not an object.")
    return payload


def save_many(conn: sqlite3.Connection, payloads: Mapping[str, Any]) -> None:
    """
    Re-serialises every given collection in ONE transaction:
    either all keys are written or none is.
    """
    ts = iso_now()
    try:
        encoded = {key: json.dumps(payload) for key, payload in payloads.items()}
    except (TypeError, ValueError) as e:
        raise StorageError(f"Could not serialise {', '.join(payloads)}: {e}") from e

    try:
        with conn:
            for key, text in encoded.items():
                conn.execute(
                    """
                    INSERT INTO collections (key, payload, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET payload=excluded.payload, updated_at=excluded.updated_at
                    """,
                    (key, text, ts),
                )
            conn.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
                (META_LAST_SYNC, ts),
            )
    except sqlite3.Error as e:
        logger.error("Saving %s failed: %s", ", ".join(payloads), e)
        raise StorageError(f"Could not save {', '.join(payloads)}: {e}") from e

    for key, payload in payloads.items():
        n = len(payload) if isinstance(payload, list) else 1
        logger.debug("Saved %s item(s) to %s", n, key)


def save_rows(conn: sqlite3.Connection, key: str, rows: list[dict]) -> None:
    save_many(conn, {key: rows})


def save_object(conn: sqlite3.Connection, key: str, obj: dict) -> None:
    save_many(conn, {key: obj})


def last_sync(conn: sqlite3.Connection) -> str | None:
    rows = q(conn, "SELECT value FROM meta WHERE key=?", (META_LAST_SYNC,))
    return str(rows[0]["value"]) if rows else None


def collection_counts(conn: sqlite3.Connection) -> list[dict]:
    out = []
    for key in ALL_COLLECTIONS:
        payload = _load_payload(conn, key)
        if payload is None:
            n = 0
        elif isinstance(payload, list):
            n = len(payload)
        else:
            n = 1
        out.append({"collection": key, "items": n})
    return out


# -------------------------
# Backup / restore
# -------------------------

def export_backup(conn: sqlite3.Connection) -> str:
    data = {}
    for key in ALL_COLLECTIONS:
        payload = _load_payload(conn, key)
        if payload is not None:
            data[key] = payload
    return json.dumps({"exported_at": iso_now(), "collections": data}, indent=2)


def import_backup(conn: sqlite3.Connection, text: str) -> list[str]:
    """Replaces every collection present in the backup document. Returns the keys restored."""
    try:
        doc = json.loads(text)
    except ValueError as e:
        raise StorageError("Backup file is not valid JSON.") from e

    collections = doc.get("collections") if isinstance(doc, dict) else None
    if not isinstance(collections, dict):
        raise StorageError("Backup file has no 'collections' section.")

    unknown = [k for k in collections if k not in ALL_COLLECTIONS]
    if unknown:
        raise StorageError(f"Backup contains unknown collections: {', '.join(sorted(unknown))}")

    save_many(conn, collections)
    logger.info("Restored %s collection(s) from backup", len(collections))
    return list(collections)


def wipe_all(conn: sqlite3.Connection) -> None:
    # Keep schema, delete data.
    try:
        with conn:
            conn.execute("DELETE FROM collections;")
            conn.execute("DELETE FROM meta;")
    except sqlite3.Error as e:
        raise StorageError(f"Could not wipe data: {e}") from e
    logger.info("All collections wiped")
