"""In-memory view over the tunnel store used by the rest of the application."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .logging_manager import get_logging_manager
from .profile_parser import parse_profile
from .schema import MigrationReport
from .settings import Settings
from .store import TunnelStore
from .tunnel import Tunnel, generate_tunnel_id

LOGGER = get_logging_manager().logger


class TunnelManager:
    """Owns the live tunnel collection and persists every mutation."""

    def __init__(self, store: TunnelStore) -> None:
        self.store = store
        self.migration_report: MigrationReport = store.migrate()
        self.tunnels: Dict[str, Tunnel] = store.load_tunnels()
        self.settings: Settings = store.load_settings()
        get_logging_manager().set_history_limit(self.settings.log_limit)
        LOGGER.info("Loaded %d tunnels", len(self.tunnels))

    def list_tunnels(self) -> Iterable[Tunnel]:
        return self.tunnels.values()

    def get_tunnel(self, tunnel_id: str) -> Optional[Tunnel]:
        return self.tunnels.get(tunnel_id)

    def get_tunnel_id_list(self) -> List[str]:
        return list(self.tunnels)

    def get_tunnel_names(self) -> List[str]:
        return [tunnel.name for tunnel in self.tunnels.values()]

    def new_tunnel(self) -> Tunnel:
        """Return an unsaved draft with a fresh id."""
        return Tunnel(id=generate_tunnel_id(self.tunnels))

    def import_profile(self, text: str, file_name: str) -> Tunnel:
        """Return an unsaved draft populated from a profile file's contents."""
        return parse_profile(text, file_name, draft=self.new_tunnel())

    def add_tunnel(self, tunnel: Tunnel) -> None:
        """Insert or replace ``tunnel`` by id and persist the collection."""
        if not tunnel.id:
            tunnel.id = generate_tunnel_id(self.tunnels)
        self.tunnels[tunnel.id] = tunnel
        self.store.save_tunnels(self.tunnels.values())
        LOGGER.info("Saved tunnel %s (%s)", tunnel.name, tunnel.id)

    def remove_tunnel(self, tunnel_id: str) -> None:
        if tunnel_id not in self.tunnels:
            return
        removed = self.tunnels.pop(tunnel_id)
        self.store.save_tunnels(self.tunnels.values())
        if self.store.load_selected_tunnel_id() == tunnel_id:
            self.store.clear_selected_tunnel_id()
        if self.settings.auto_connect_tunnel_id == tunnel_id:
            self.update_settings(auto_connect_tunnel_id="")
        LOGGER.info("Deleted tunnel %s (%s)", removed.name, tunnel_id)

    def is_name_available(self, name: str, tunnel_id: Optional[str] = None) -> bool:
        """True when no tunnel other than ``tunnel_id`` is called exactly ``name``."""
        return not any(tunnel.name == name for tunnel in self.tunnels.values() if tunnel.id != tunnel_id)

    def check_tunnel(self, tunnel: Tunnel) -> List[str]:
        """Problems that keep the editor from saving ``tunnel``."""
        problems: List[str] = []
        if not tunnel.name.strip():
            problems.append("Name is required")
        elif not self.is_name_available(tunnel.name, tunnel.id):
            problems.append(f"Name {tunnel.name!r} is used by another tunnel")
        if not tunnel.interface.has_address():
            problems.append("An IPv4 or IPv6 address is required")
        if not tunnel.interface.private_key:
            problems.append("Interface private key is required")
        if not tunnel.peer.public_key:
            problems.append("Peer public key is required")
        if not tunnel.peer.endpoint:
            problems.append("Peer endpoint is required")
        return problems

    def save_tunnel(self, tunnel: Tunnel) -> bool:
        """Persist ``tunnel`` if it passes :meth:`check_tunnel`."""
        problems = self.check_tunnel(tunnel)
        if problems:
            LOGGER.warning("Refusing to save tunnel %s: %s", tunnel.id, "; ".join(problems))
            return False
        self.add_tunnel(tunnel)
        return True

    def select_tunnel(self, tunnel_id: Optional[str]) -> None:
        if tunnel_id and tunnel_id in self.tunnels:
            self.store.save_selected_tunnel_id(tunnel_id)
        else:
            self.store.clear_selected_tunnel_id()

    def selected_tunnel_id(self) -> Optional[str]:
        selected = self.store.load_selected_tunnel_id()
        return selected if selected in self.tunnels else None

    def selected_tunnel(self) -> Optional[Tunnel]:
        selected = self.selected_tunnel_id()
        return self.tunnels[selected] if selected else None

    def update_settings(self, **changes: Any) -> Settings:
        auto_connect = changes.get("auto_connect_tunnel_id")
        if auto_connect and auto_connect not in self.tunnels:
            LOGGER.warning("Ignoring unknown auto connect tunnel %s", auto_connect)
            changes["auto_connect_tunnel_id"] = ""
        self.settings.update(**changes)
        self.store.save_settings(self.settings)
        if "log_limit" in changes:
            get_logging_manager().set_history_limit(self.settings.log_limit)
        return self.settings

    def auto_connect_tunnel(self) -> Optional[Tunnel]:
        """The tunnel configured to connect on startup, if it still exists."""
        tunnel_id = self.settings.auto_connect_tunnel_id
        if not tunnel_id:
            return None
        tunnel = self.tunnels.get(tunnel_id)
        if tunnel is None:
            LOGGER.warning("Auto connect tunnel %s no longer exists", tunnel_id)
        return tunnel
