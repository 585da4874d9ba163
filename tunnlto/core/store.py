"""Persistence of the tunnel collection, selection pointer and settings."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, Optional

import yaml

from ..config.storage import (
    CORRUPT_TUNNELS_KEY,
    SELECTED_TUNNEL_KEY,
    SETTINGS_KEY,
    TUNNELS_KEY,
    KeyValueStorage,
)
from .logging_manager import get_logging_manager
from .schema import MigrationReport, SchemaMigrator, upgrade_record
from .settings import Settings
from .tunnel import Tunnel, generate_tunnel_id, is_valid_tunnel_id

LOGGER = get_logging_manager().logger

TunnelMap = Dict[str, Tunnel]


class TunnelStore:
    """Reads and writes whole records through an injected key-value storage.

    Every save replaces the complete tunnel collection under one key; the
    selected tunnel id and the settings record live under their own keys.
    """

    def __init__(self, storage: KeyValueStorage, migrator: Optional[SchemaMigrator] = None) -> None:
        self.storage = storage
        self.migrator = migrator or SchemaMigrator(storage)

    def migrate(self) -> MigrationReport:
        """Run the schema upgrades; called once at startup before loading."""
        self._set_aside_corrupt_collection()
        return self.migrator.run()

    def _set_aside_corrupt_collection(self) -> None:
        raw = self.storage.get(TUNNELS_KEY)
        if raw is None or self._decode_collection(raw) is not None:
            return
        LOGGER.error("Stored tunnel collection is corrupt; keeping a copy under %r and starting empty", CORRUPT_TUNNELS_KEY)
        self.storage.set(CORRUPT_TUNNELS_KEY, raw)
        self.storage.remove(TUNNELS_KEY)

    @staticmethod
    def _decode_collection(raw: str) -> Optional[dict]:
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    def load_tunnels(self) -> TunnelMap:
        LOGGER.debug("Retrieving tunnels from storage")
        raw = self.storage.get(TUNNELS_KEY)
        if raw is None:
            return {}
        data = self._decode_collection(raw)
        if data is None:
            LOGGER.error("Stored tunnel collection is not a JSON object; treating it as empty")
            return {}
        tunnels: TunnelMap = {}
        for key, record in data.items():
            if not isinstance(record, dict):
                LOGGER.warning("Skipping stored tunnel %s: record is not an object", key)
                continue
            tunnel = upgrade_record(record, key)
            tunnel.id = tunnel.id or key
            tunnels[tunnel.id] = tunnel
        return tunnels

    def save_tunnels(self, tunnels: Iterable[Tunnel]) -> None:
        LOGGER.debug("Saving tunnels to storage")
        data = {tunnel.id: tunnel.to_dict() for tunnel in tunnels}
        self.storage.set(TUNNELS_KEY, json.dumps(data))

    def get_tunnel(self, tunnel_id: str) -> Optional[Tunnel]:
        return self.load_tunnels().get(tunnel_id)

    def load_selected_tunnel_id(self) -> Optional[str]:
        selected = self.storage.get(SELECTED_TUNNEL_KEY)
        LOGGER.debug("Retrieved selected tunnel id %s from storage", selected)
        return selected or None

    def save_selected_tunnel_id(self, tunnel_id: str) -> None:
        LOGGER.debug("Saving selected tunnel id %s to storage", tunnel_id)
        self.storage.set(SELECTED_TUNNEL_KEY, tunnel_id)

    def clear_selected_tunnel_id(self) -> None:
        LOGGER.debug("Deleting the selected tunnel id from storage")
        self.storage.remove(SELECTED_TUNNEL_KEY)

    def load_settings(self) -> Settings:
        raw = self.storage.get(SETTINGS_KEY)
        if raw is None:
            settings = Settings()
            self.save_settings(settings)
            return settings
        try:
            data = json.loads(raw)
        except ValueError:
            LOGGER.error("Stored settings are not valid JSON; using defaults")
            return Settings()
        if not isinstance(data, dict):
            LOGGER.error("Stored settings are not an object; using defaults")
            return Settings()
        return Settings.from_dict(data)

    def save_settings(self, settings: Settings) -> None:
        LOGGER.debug("Saving settings to storage")
        self.storage.set(SETTINGS_KEY, json.dumps(settings.to_dict()))

    def export_tunnels(self, export_path: Path) -> None:
        data = {"tunnels": [tunnel.to_dict() for tunnel in self.load_tunnels().values()]}
        with Path(export_path).open("w", encoding="utf-8") as fh:
            if Path(export_path).suffix in {".yaml", ".yml"}:
                yaml.safe_dump(data, fh, sort_keys=False)
            else:
                json.dump(data, fh, indent=2)

    def import_tunnels(self, import_path: Path) -> TunnelMap:
        """Merge a backup written by :meth:`export_tunnels` into the collection."""
        with Path(import_path).open("r", encoding="utf-8") as fh:
            if Path(import_path).suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(fh) or {}
            else:
                data = json.load(fh)
        tunnels = self.load_tunnels()
        records = data.get("tunnels", []) if isinstance(data, dict) else []
        for record in records:
            if not isinstance(record, dict):
                continue
            tunnel = upgrade_record(record, "")
            if not is_valid_tunnel_id(tunnel.id):
                if tunnel.id:
                    LOGGER.warning("Backup tunnel %r has malformed id %r; assigning a new one", tunnel.name, tunnel.id)
                tunnel.id = generate_tunnel_id(tunnels.keys())
            tunnels[tunnel.id] = tunnel
        self.save_tunnels(tunnels.values())
        return tunnels
