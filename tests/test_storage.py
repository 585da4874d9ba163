"""Tests for the key-value persistence primitives."""

from __future__ import annotations

import json

import pytest

from tunnlto.config.storage import JsonFileStorage, MemoryStorage
from tunnlto.errors import StorageError


def test_memory_storage_basics():
    storage = MemoryStorage({"a": "1"})

    storage.set("b", "2")
    storage.remove("a")
    storage.remove("missing")

    assert storage.get("a") is None
    assert storage.get("b") == "2"
    assert storage.keys() == ["b"]


def test_json_file_storage_persists_between_instances(tmp_path):
    path = tmp_path / "storage.json"
    storage = JsonFileStorage(path)

    storage.set("tunnels", "{}")
    storage.set("selectedTunnelID", "ab12")
    storage.remove("selectedTunnelID")

    reopened = JsonFileStorage(path)
    assert reopened.get("tunnels") == "{}"
    assert reopened.get("selectedTunnelID") is None
    assert reopened.keys() == ["tunnels"]
    assert not path.with_suffix(".json.tmp").exists()


def test_json_file_storage_missing_file_is_empty(tmp_path):
    assert JsonFileStorage(tmp_path / "absent.json").keys() == []


def test_json_file_storage_sets_corrupt_file_aside(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("{half", encoding="utf-8")

    storage = JsonFileStorage(path)

    assert storage.keys() == []
    assert (tmp_path / "storage.json.corrupt").read_text(encoding="utf-8") == "{half"


def test_json_file_storage_keeps_non_string_values_as_json(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text(json.dumps({"settings": {"autoStart": True}}), encoding="utf-8")

    assert json.loads(JsonFileStorage(path).get("settings")) == {"autoStart": True}


def test_json_file_storage_write_failure_raises(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    storage = JsonFileStorage(blocker / "storage.json")

    with pytest.raises(StorageError):
        storage.set("tunnels", "{}")


class FakeKeyring:
    """In-memory replacement for the python-keyring module functions."""

    def __init__(self) -> None:
        self.entries: dict[tuple[str, str], str] = {}

    def get_keyring(self):
        return self

    def get_password(self, service, name):
        return self.entries.get((service, name))

    def set_password(self, service, name, value):
        self.entries[(service, name)] = value

    def delete_password(self, service, name):
        from keyring.errors import PasswordDeleteError

        if (service, name) not in self.entries:
            raise PasswordDeleteError(name)
        del self.entries[(service, name)]


@pytest.fixture()
def fake_keyring(monkeypatch):
    pytest.importorskip("keyring")
    fake = FakeKeyring()
    for attribute in ("get_keyring", "get_password", "set_password", "delete_password"):
        monkeypatch.setattr(f"tunnlto.config.keyring_storage.keyring.{attribute}", getattr(fake, attribute))
    return fake


def test_keyring_storage_tracks_keys(fake_keyring):
    from tunnlto.config.keyring_storage import KeyringStorage

    storage = KeyringStorage(service="TunnlTo-test")
    storage.set("tunnels", "{}")
    storage.set("settings", "{}")
    storage.set("tunnels", '{"a": 1}')
    storage.remove("settings")
    storage.remove("never-set")

    assert storage.get("tunnels") == '{"a": 1}'
    assert storage.get("settings") is None
    assert storage.keys() == ["tunnels"]


def test_keyring_storage_runs_legacy_migration(fake_keyring):
    from tunnlto.config.keyring_storage import KeyringStorage
    from tunnlto.core.manager import TunnelManager
    from tunnlto.core.store import TunnelStore

    storage = KeyringStorage(service="TunnlTo-test")
    storage.set("tunnel-wireguard-office", json.dumps({"name": "office", "interfaceAddress": "10.0.0.2/32"}))

    manager = TunnelManager(TunnelStore(storage))

    assert manager.get_tunnel_names() == ["office"]
    assert "tunnel-wireguard-office" not in storage.keys()


def test_keyring_storage_unavailable_backend(monkeypatch):
    pytest.importorskip("keyring")
    from tunnlto.config.keyring_storage import KeyringStorage

    def broken():
        raise RuntimeError("no backend")

    monkeypatch.setattr("tunnlto.config.keyring_storage.keyring.get_keyring", broken)
    storage = KeyringStorage(service="TunnlTo-test")

    assert storage.is_available() is False
    assert storage.get("tunnels") is None
    assert storage.keys() == []
    with pytest.raises(StorageError):
        storage.set("tunnels", "{}")
