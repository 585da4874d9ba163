"""Boundary towards the wiresock client process that runs tunnels.

The process itself is an external collaborator. This module renders the
config file it is started with, builds its command line, decodes the state
events it reports and performs the one-shot auto connect on startup.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import psutil

from .logging_manager import get_logging_manager
from .manager import TunnelManager
from .tunnel import Tunnel

LOGGER = get_logging_manager().logger

WIRESOCK_BINARY = "wiresock-client"
WIRESOCK_STOPPED = "STOPPED"


class TunnelExecutor(Protocol):
    """Fire-and-forget requests to the process that owns the network driver."""

    def enable_tunnel(self, tunnel: Tunnel, log_level: str) -> None:
        ...

    def disable_tunnel(self) -> None:
        ...


@dataclass
class TunnelState:
    wiresock_status: str = ""
    tunnel_status: str = ""
    tunnel_id: str = ""
    logs: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TunnelState":
        logs = data.get("logs")
        return cls(
            wiresock_status=str(data.get("wiresock_status") or ""),
            tunnel_status=str(data.get("tunnel_status") or ""),
            tunnel_id=str(data.get("tunnel_id") or ""),
            logs=[str(line) for line in logs] if isinstance(logs, list) else None,
        )


def _join(*values: str) -> str:
    return ", ".join(value for value in values if value)


def render_tunnel_config(tunnel: Tunnel) -> str:
    """Return the WireGuard style config text for ``tunnel``."""
    interface = tunnel.interface
    peer = tunnel.peer
    rules = tunnel.rules
    lines = ["[Interface]", f"PrivateKey = {interface.private_key}"]
    lines.append(f"Address = {_join(interface.ipv4_address, interface.ipv6_address)}")
    optional_interface = [("ListenPort", interface.port), ("DNS", interface.dns), ("MTU", interface.mtu)]
    lines.extend(f"{key} = {value}" for key, value in optional_interface if value)

    lines.extend(["", "[Peer]", f"PublicKey = {peer.public_key}"])
    if peer.preshared_key:
        lines.append(f"PresharedKey = {peer.preshared_key}")
    endpoint = f"{peer.endpoint}:{peer.port}" if peer.port else peer.endpoint
    lines.append(f"Endpoint = {endpoint}")
    optional_peer = [
        ("PersistentKeepalive", peer.persistent_keepalive),
        ("AllowedApps", _join(rules.allowed.apps, rules.allowed.folders)),
        ("DisallowedApps", _join(rules.disallowed.apps, rules.disallowed.folders)),
        ("AllowedIPs", rules.allowed.ip_addresses),
        ("DisallowedIPs", rules.disallowed.ip_addresses),
    ]
    lines.extend(f"{key} = {value}" for key, value in optional_peer if value)
    return "\n".join(lines) + "\n"


def write_tunnel_config(tunnel: Tunnel, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_tunnel_config(tunnel), encoding="utf-8")
    LOGGER.debug("Wrote config for tunnel %s to %s", tunnel.id, path)
    return path


def build_wiresock_command(config_path: Path, log_level: str, binary: str = WIRESOCK_BINARY) -> List[str]:
    """Return the wiresock client invocation for a rendered config file."""
    return [binary, "run", "-config", str(config_path), "-log-level", log_level]


def is_wiresock_running(binary: str = WIRESOCK_BINARY) -> bool:
    """Whether a wiresock client process is currently alive."""
    for proc in psutil.process_iter(["name"]):
        try:
            name = (proc.info.get("name") or "").lower()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        if name.startswith(binary):
            return True
    return False


class AutoConnector:
    """Enable the configured startup tunnel once the client reports it is idle."""

    def __init__(self, manager: TunnelManager, executor: TunnelExecutor) -> None:
        self._manager = manager
        self._executor = executor
        self.has_run = False

    def handle_state(self, state: TunnelState) -> Optional[Tunnel]:
        if self.has_run or state.wiresock_status != WIRESOCK_STOPPED:
            return None
        self.has_run = True
        tunnel = self._manager.auto_connect_tunnel()
        if tunnel is None:
            return None
        LOGGER.info("Auto connecting tunnel %s", tunnel.name)
        self._executor.enable_tunnel(tunnel, self._manager.settings.log_level)
        return tunnel
