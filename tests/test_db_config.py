import json
import logging

import pytest

from ricemill import logging_setup
from ricemill.config import TariffConfig, build_settings
from ricemill.db import (
    _connect,
    collection_counts,
    ensure_schema,
    export_backup,
    import_backup,
    last_sync,
    load_object,
    load_rows,
    save_many,
    save_rows,
    wipe_all,
)
from ricemill.errors import StorageError
from ricemill.schema import ELECTRICITY_READINGS, HAMALI_WORK, LIVE_READING, PADDY_INTAKE
from ricemill.services.intake import list_intake


def _raw_put(conn, key, text):
    conn.execute("INSERT INTO collections (key, payload, updated_at) VALUES (?, ?, '2025-01-01')", (key, text))
    conn.commit()


def test_missing_collection_is_empty(conn):
    assert load_rows(conn, PADDY_INTAKE) == []
    assert load_object(conn, LIVE_READING) is None
    assert last_sync(conn) is None


def test_save_stamps_last_sync(conn):
    save_rows(conn, HAMALI_WORK, [{"id": "a"}])
    assert load_rows(conn, HAMALI_WORK) == [{"id": "a"}]
    assert last_sync(conn) is not None


def test_corrupt_payload_raises(conn):
    _raw_put(conn, PADDY_INTAKE, "{not json")
    with pytest.raises(StorageError):
        load_rows(conn, PADDY_INTAKE)


def test_wrong_shape_raises(conn):
    _raw_put(conn, PADDY_INTAKE, json.dumps({"s_no": 1}))
    _raw_put(conn, LIVE_READING, json.dumps([1, 2]))
    with pytest.raises(StorageError):
        load_rows(conn, PADDY_INTAKE)
    with pytest.raises(StorageError):
        load_object(conn, LIVE_READING)


def test_save_many_is_all_or_nothing(conn):
    conn.execute("DROP TABLE meta")
    conn.commit()

    with pytest.raises(StorageError):
        save_many(conn, {HAMALI_WORK: [{"id": "a"}], ELECTRICITY_READINGS: [{"id": "b"}]})

    assert load_rows(conn, HAMALI_WORK) == []
    assert load_rows(conn, ELECTRICITY_READINGS) == []


def test_unserialisable_payload_writes_nothing(conn):
    with pytest.raises(StorageError):
        save_many(conn, {HAMALI_WORK: [{"id": "a"}], ELECTRICITY_READINGS: [object()]})
    assert load_rows(conn, HAMALI_WORK) == []


def test_backup_round_trip(seeded, tmp_path):
    text = export_backup(seeded)

    other = _connect(tmp_path / "restored.db")
    ensure_schema(other)
    restored = import_backup(other, text)

    assert PADDY_INTAKE in restored
    assert list_intake(other) == list_intake(seeded)
    counts = {c["collection"]: c["items"] for c in collection_counts(other)}
    assert counts[PADDY_INTAKE] == 5
    assert counts[HAMALI_WORK] == 0
    other.close()


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        json.dumps({"exported_at": "x"}),
        json.dumps({"collections": {"cmr_unknown": []}}),
    ],
)
def test_bad_backup_is_rejected(conn, text):
    with pytest.raises(StorageError):
        import_backup(conn, text)
    assert load_rows(conn, PADDY_INTAKE) == []


def test_wipe_all(seeded):
    wipe_all(seeded)
    assert list_intake(seeded) == []
    assert last_sync(seeded) is None


def test_tariff_from_dict_ignores_junk():
    t = TariffConfig.from_dict({"energy_rate_per_kwh": "7.25", "duty_rate": "abc", "colour": "blue"})
    assert t.energy_rate_per_kwh == 7.25
    assert t.duty_rate == 0.16
    assert TariffConfig.from_dict(None) == TariffConfig()


def test_build_settings_reads_overrides(tmp_path):
    (tmp_path / "settings.json").write_text(
        json.dumps({"mill_name": "Sri Lakshmi Mills", "tariff": {"fixed_charge": 2500}}), encoding="utf-8"
    )
    s = build_settings(tmp_path)

    assert s.db_path == tmp_path.resolve() / "ricemill.db"
    assert s.log_dir == tmp_path.resolve() / "logs"
    assert s.mill_name == "Sri Lakshmi Mills"
    assert s.tariff.fixed_charge == 2500
    assert s.tariff.energy_rate_per_kwh == 6.5


def test_build_settings_survives_broken_file(tmp_path):
    (tmp_path / "settings.json").write_text("{oops", encoding="utf-8")
    s = build_settings(tmp_path)
    assert s.mill_name == "Surya Industries"
    assert s.tariff == TariffConfig()


def test_configure_logging_writes_file(tmp_path, monkeypatch):
    monkeypatch.setattr(logging_setup, "_configured", False)
    logger = logging.getLogger("ricemill")
    before = list(logger.handlers)

    logging_setup.configure_logging(tmp_path / "logs")
    logging.getLogger("ricemill.tests").info("hello")
    logging_setup.configure_logging(tmp_path / "elsewhere")

    added = [h for h in logger.handlers if h not in before]
    for h in added:
        h.flush()
        logger.removeHandler(h)
        h.close()

    assert len(added) == 2
    assert "hello" in (tmp_path / "logs" / "ricemill.log").read_text(encoding="utf-8")
    assert not (tmp_path / "elsewhere").exists()
