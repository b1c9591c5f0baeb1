"""Tests for data persistence layer."""

import json
from datetime import datetime

import pytest

from expiry_alerts.data_store import BackendType, DataStore, JSONEncoder, create_data_store, json_decoder
from expiry_alerts.models import InventoryItem, ScheduledNotification
from expiry_alerts.sqlite_store import SQLiteStore


class TestJSONEncoder:
    """Tests for custom JSON encoder."""

    def test_encode_datetime(self):
        """Datetime is encoded as ISO format."""
        dt = datetime(2024, 1, 15, 10, 30, 0)
        encoded = json.dumps({"time": dt}, cls=JSONEncoder)
        assert "2024-01-15T10:30:00" in encoded

    def test_encode_fallback_raises(self):
        """Unsupported types fall through to default encoder."""
        with pytest.raises(TypeError):
            json.dumps({"bad": object()}, cls=JSONEncoder)


class TestJSONDecoder:
    """Tests for the JSON object hook."""

    def test_decodes_known_keys(self):
        data = json_decoder({"expires_at": "2024-01-15T10:30:00", "name": "2024-01-15"})
        assert data["expires_at"] == datetime(2024, 1, 15, 10, 30)
        assert data["name"] == "2024-01-15"

    def test_leaves_invalid_values(self):
        assert json_decoder({"fire_at": "soon"}) == {"fire_at": "soon"}


class TestDataStoreInit:
    """Tests for DataStore initialization."""

    def test_creates_directory(self, tmp_path):
        target = tmp_path / "nested" / "data"
        DataStore(data_dir=target)
        assert target.exists()

    def test_default_data_dir(self, monkeypatch, tmp_path):
        """DataStore uses ./data by default."""
        monkeypatch.chdir(tmp_path)
        store = DataStore()
        assert store.data_dir == tmp_path / "data"


class TestKeyValue:
    """Tests for string state storage."""

    def test_unset_key(self, data_store):
        assert data_store.get_string("missing") is None

    def test_set_and_get(self, data_store):
        data_store.set_string("last_expiry_check", "2026-03-10T10:00:00")
        data_store.set_string("other", "x")
        assert data_store.get_string("last_expiry_check") == "2026-03-10T10:00:00"

    def test_overwrite(self, data_store):
        data_store.set_string("k", "1")
        data_store.set_string("k", "2")
        assert data_store.get_string("k") == "2"

    def test_persisted_as_json(self, data_store, temp_data_dir):
        data_store.set_string("k", "v")
        state = json.loads((temp_data_dir / "state.json").read_text())
        assert state == {"k": "v"}


class TestInventoryPersistence:
    """Tests for inventory save/load."""

    def test_load_empty(self, data_store):
        assert data_store.load_inventory() == []

    def test_round_trip(self, data_store):
        item = InventoryItem(id="milk", name="Milk", expires_at=datetime(2026, 3, 12, 18, 0))
        data_store.save_inventory([item])

        loaded = data_store.load_inventory()

        assert loaded == [item]
        assert isinstance(loaded[0].expires_at, datetime)

    def test_corrupt_file_raises(self, data_store, temp_data_dir):
        (temp_data_dir / "inventory.json").write_text("{not json")
        with pytest.raises(json.JSONDecodeError):
            data_store.load_inventory()


class TestScheduledPersistence:
    """Tests for pending notification save/load."""

    def test_load_empty(self, data_store):
        assert data_store.load_scheduled() == []

    def test_round_trip(self, data_store):
        entry = ScheduledNotification(
            id="expiry-milk-0",
            title="Expiring Today!",
            body="Milk expires today. Use it now!",
            fire_at=datetime(2026, 3, 10, 9, 0),
            payload={"item_id": "milk", "offset_days": 0, "kind": "expiry-alert"},
        )
        data_store.save_scheduled([entry])

        assert data_store.load_scheduled() == [entry]


class TestCreateDataStore:
    """Tests for backend selection."""

    def test_json_default(self, temp_data_dir):
        assert isinstance(create_data_store(data_dir=temp_data_dir), DataStore)

    def test_sqlite_in_data_dir(self, temp_data_dir):
        store = create_data_store(BackendType.SQLITE, data_dir=temp_data_dir)
        assert isinstance(store, SQLiteStore)
        assert store.db_path == temp_data_dir / "expiry_alerts.db"

    def test_sqlite_explicit_path(self, tmp_path):
        db_path = tmp_path / "custom" / "alerts.db"
        store = create_data_store(BackendType.SQLITE, db_path=db_path)
        assert store.db_path == db_path
        assert db_path.exists()
