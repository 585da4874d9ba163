"""Import of WireGuard style ``Key = Value`` profiles into draft tunnels.

The parser only copies fields. It never checks that the result is a usable
tunnel; the editor validates before saving. Lines it does not understand,
section headers and comments are skipped, and it never stops part way through
a file.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from .logging_manager import get_logging_manager
from .tunnel import RuleSet, Tunnel

LOGGER = get_logging_manager().logger


def split_addresses(value: str) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(ipv4, ipv6)`` from a comma separated address list.

    Entries with a colon count as IPv6, entries with a dot as IPv4. The last
    entry of each family wins and a family that never appears is ``None``.
    """
    ipv4: Optional[str] = None
    ipv6: Optional[str] = None
    for entry in value.split(","):
        entry = entry.strip()
        if ":" in entry:
            ipv6 = entry
        elif "." in entry:
            ipv4 = entry
    return ipv4, ipv6


def split_endpoint(value: str) -> Tuple[str, str]:
    """Split ``host:port`` on the last colon so bare IPv6 hosts survive."""
    host, separator, port = value.strip().rpartition(":")
    if not separator:
        return value.strip(), ""
    return host.strip(), port.strip()


def split_apps(value: str) -> Tuple[str, str]:
    """Return ``(apps, folders)``; entries with a path separator are folders."""
    apps: List[str] = []
    folders: List[str] = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if "/" in entry or "\\" in entry:
            folders.append(entry)
        else:
            apps.append(entry)
    return ", ".join(apps), ", ".join(folders)


def profile_name_from_file(file_name: str) -> str:
    """Tunnel name for an imported file: the base name without its extension."""
    base = file_name.replace("\\", "/").rsplit("/", 1)[-1]
    stem, dot, _ = base.rpartition(".")
    if dot and stem:
        return stem
    return base


def _set_addresses(tunnel: Tunnel, value: str) -> None:
    ipv4, ipv6 = split_addresses(value)
    if ipv4 is not None:
        tunnel.interface.ipv4_address = ipv4
    if ipv6 is not None:
        tunnel.interface.ipv6_address = ipv6


def _set_endpoint(tunnel: Tunnel, value: str) -> None:
    tunnel.peer.endpoint, tunnel.peer.port = split_endpoint(value)


def _set_apps(rule_set: RuleSet, value: str) -> None:
    rule_set.apps, rule_set.folders = split_apps(value)


_HANDLERS: Dict[str, Callable[[Tunnel, str], None]] = {
    "address": _set_addresses,
    "port": lambda t, v: setattr(t.interface, "port", v),
    "listenport": lambda t, v: setattr(t.interface, "port", v),
    "privatekey": lambda t, v: setattr(t.interface, "private_key", v),
    "dns": lambda t, v: setattr(t.interface, "dns", v),
    "mtu": lambda t, v: setattr(t.interface, "mtu", v),
    "endpoint": _set_endpoint,
    "publickey": lambda t, v: setattr(t.peer, "public_key", v),
    "presharedkey": lambda t, v: setattr(t.peer, "preshared_key", v),
    "persistentkeepalive": lambda t, v: setattr(t.peer, "persistent_keepalive", v),
    "allowedips": lambda t, v: setattr(t.rules.allowed, "ip_addresses", v),
    "disallowedips": lambda t, v: setattr(t.rules.disallowed, "ip_addresses", v),
    "allowedapps": lambda t, v: _set_apps(t.rules.allowed, v),
    "disallowedapps": lambda t, v: _set_apps(t.rules.disallowed, v),
}


def apply_profile(tunnel: Tunnel, text: str) -> int:
    """Overwrite ``tunnel`` fields from profile ``text`` in place.

    Returns the number of recognised assignments.
    """
    applied = 0
    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith(("#", ";", "[")):
            continue
        key, separator, value = line.partition("=")
        if not separator:
            LOGGER.debug("Ignoring profile line %d without assignment", line_number)
            continue
        handler = _HANDLERS.get(key.strip().lower())
        if handler is None:
            LOGGER.debug("Ignoring unrecognised profile key %r on line %d", key.strip(), line_number)
            continue
        handler(tunnel, value.strip())
        applied += 1
    return applied


def parse_profile(text: str, file_name: str, draft: Optional[Tunnel] = None) -> Tunnel:
    """Return a copy of ``draft`` (or a blank tunnel) updated from a profile file."""
    tunnel = draft.copy() if draft is not None else Tunnel()
    tunnel.name = profile_name_from_file(file_name)
    applied = apply_profile(tunnel, text)
    LOGGER.info("Imported %d settings from profile %s", applied, file_name)
    return tunnel
