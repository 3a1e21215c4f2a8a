"""Tests for RecordStore lookup/save/delete."""
from datetime import datetime

import pytest
from sqlalchemy import text

from stagesync.errors import UnknownTable
from stagesync.stores import RecordStore


@pytest.fixture(name="store")
def store_fixture(production_engine):
    return RecordStore(production_engine)


class TestRecordStore:
    def test_lookup_absent(self, store):
        assert store.lookup("source_records", 1) is None
        assert not store.exists("source_records", 1)

    def test_save_inserts_then_updates(self, store):
        stamp = datetime(2025, 1, 15, 7, 30)
        store.save("source_records", {"id": 1, "name": "first", "updated_at": stamp})
        store.save("source_records", {"id": 1, "name": "second", "updated_at": stamp})

        row = store.lookup("source_records", 1)
        assert row["name"] == "second"
        assert row["updated_at"] == stamp

    def test_save_ignores_unknown_columns(self, store):
        store.save("source_records", {
            "id": 2, "name": "x", "updated_at": datetime(2025, 1, 1), "extra": "dropped",
        })
        assert "extra" not in store.lookup("source_records", 2)

    def test_delete(self, store):
        store.save("source_records", {"id": 3, "name": "x", "updated_at": datetime(2025, 1, 1)})
        assert store.delete("source_records", 3) is True
        assert store.delete("source_records", 3) is False

    def test_unknown_table(self, store):
        with pytest.raises(UnknownTable):
            store.lookup("no_such_table", 1)

    def test_reflects_tables_missing_from_metadata(self, production_engine):
        with production_engine.begin() as conn:
            conn.execute(text("CREATE TABLE legacy_rows (id INTEGER PRIMARY KEY, label TEXT)"))
            conn.execute(text("INSERT INTO legacy_rows (id, label) VALUES (1, 'old')"))

        store = RecordStore(production_engine)
        assert store.lookup("legacy_rows", 1) == {"id": 1, "label": "old"}
        store.save("legacy_rows", {"id": 1, "label": "new"})
        assert store.lookup("legacy_rows", 1)["label"] == "new"
