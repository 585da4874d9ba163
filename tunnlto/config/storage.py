"""String keyed persistence primitives backing the tunnel store."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from ..core.logging_manager import get_logging_manager
from ..errors import StorageError

LOGGER = get_logging_manager().logger

TUNNELS_KEY = "tunnels"
SELECTED_TUNNEL_KEY = "selectedTunnelID"
SETTINGS_KEY = "settings"
CORRUPT_TUNNELS_KEY = "tunnels.corrupt"

# Written by releases before 1.0.0.
LEGACY_TUNNEL_PREFIX = "tunnel-wireguard-"
LEGACY_SELECTED_TUNNEL_KEY = "selectedTunnel"


class KeyValueStorage(Protocol):
    """Flat text key-value store, the only persistence the core relies on."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...


class MemoryStorage:
    """Dictionary backed storage used for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class JsonFileStorage:
    """All keys kept in one JSON object file, replaced atomically on each write."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            LOGGER.error("Storage file %s is unreadable, starting empty: %s", self.path, exc)
            self._set_aside()
            return {}
        if not isinstance(data, dict):
            LOGGER.error("Storage file %s does not hold an object, starting empty", self.path)
            self._set_aside()
            return {}
        return {str(key): value if isinstance(value, str) else json.dumps(value) for key, value in data.items()}

    def _set_aside(self) -> None:
        aside = self.path.with_suffix(self.path.suffix + ".corrupt")
        try:
            self.path.replace(aside)
            LOGGER.warning("Moved unreadable storage file to %s", aside)
        except OSError as exc:
            LOGGER.warning("Could not move unreadable storage file aside: %s", exc)

    def _flush(self) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            tmp_path.replace(self.path)
        except OSError as exc:
            raise StorageError(f"Failed to write {self.path}: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()

    def remove(self, key: str) -> None:
        with self._lock:
            if key in self._data:
                del self._data[key]
                self._flush()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data)
