"""Key-value storage kept in the platform keyring via python-keyring."""

from __future__ import annotations

import json
from typing import List, Optional

import keyring
from keyring.errors import KeyringError, NoKeyringError, PasswordDeleteError

from ..core.logging_manager import get_logging_manager
from ..errors import StorageError

LOGGER = get_logging_manager().logger
SERVICE_NAME = "TunnlTo"
INDEX_KEY = "__index__"


class KeyringStorage:
    """Error tolerant keyring wrapper implementing the storage protocol.

    Keyrings cannot enumerate entries, so the stored key names are tracked in a
    reserved index entry.
    """

    def __init__(self, service: str = SERVICE_NAME) -> None:
        self.service = service
        self._available = True
        try:
            keyring.get_keyring()
        except Exception as exc:
            LOGGER.warning("Keyring backend unavailable: %s", exc)
            self._available = False

    def is_available(self) -> bool:
        return self._available

    def _read(self, name: str) -> Optional[str]:
        if not self._available:
            return None
        try:
            return keyring.get_password(self.service, name)
        except (NoKeyringError, KeyringError) as exc:
            LOGGER.error("Failed to read %s from keyring: %s", name, exc)
            return None

    def _write(self, name: str, value: str) -> None:
        if not self._available:
            raise StorageError("Keyring backend unavailable")
        try:
            keyring.set_password(self.service, name, value)
        except (NoKeyringError, KeyringError) as exc:
            LOGGER.error("Failed to save %s to keyring: %s", name, exc)
            raise StorageError(f"Failed to save {name}: {exc}") from exc

    def keys(self) -> List[str]:
        raw = self._read(INDEX_KEY)
        if not raw:
            return []
        try:
            names = json.loads(raw)
        except ValueError:
            LOGGER.warning("Keyring index is unreadable, treating it as empty")
            return []
        return [str(name) for name in names] if isinstance(names, list) else []

    def get(self, key: str) -> Optional[str]:
        return self._read(key)

    def set(self, key: str, value: str) -> None:
        self._write(key, value)
        names = self.keys()
        if key not in names:
            names.append(key)
            self._write(INDEX_KEY, json.dumps(names))

    def remove(self, key: str) -> None:
        if not self._available:
            return
        try:
            keyring.delete_password(self.service, key)
        except PasswordDeleteError:
            LOGGER.debug("No keyring entry for %s to delete", key)
        except (NoKeyringError, KeyringError) as exc:
            LOGGER.error("Failed to delete %s from keyring: %s", key, exc)
            raise StorageError(f"Failed to delete {key}: {exc}") from exc
        names = self.keys()
        if key in names:
            names.remove(key)
            self._write(INDEX_KEY, json.dumps(names))
