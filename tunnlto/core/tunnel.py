"""Data structures describing tunnel configurations."""

from __future__ import annotations

import copy
import random
import string
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from ..errors import TunnelIDExhaustedError

ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 4
ID_SPACE = len(ID_ALPHABET) ** ID_LENGTH
MAX_ID_ATTEMPTS = 10_000

_RANDOM = random.SystemRandom()


def _text(value: Any) -> str:
    """Coerce a persisted field to the string form the model uses."""
    if value is None:
        return ""
    return str(value)


@dataclass
class Interface:
    ipv4_address: str = ""
    ipv6_address: str = ""
    port: str = ""
    private_key: str = ""
    dns: str = ""
    mtu: str = ""

    def has_address(self) -> bool:
        return bool(self.ipv4_address.strip() or self.ipv6_address.strip())

    def to_dict(self) -> Dict[str, str]:
        return {
            "ipv4Address": self.ipv4_address,
            "ipv6Address": self.ipv6_address,
            "port": self.port,
            "privateKey": self.private_key,
            "dns": self.dns,
            "mtu": self.mtu,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Interface":
        return cls(
            ipv4_address=_text(data.get("ipv4Address")),
            ipv6_address=_text(data.get("ipv6Address")),
            port=_text(data.get("port")),
            private_key=_text(data.get("privateKey")),
            dns=_text(data.get("dns")),
            mtu=_text(data.get("mtu")),
        )


@dataclass
class Peer:
    endpoint: str = ""
    port: str = ""
    public_key: str = ""
    preshared_key: str = ""
    persistent_keepalive: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "endpoint": self.endpoint,
            "port": self.port,
            "publicKey": self.public_key,
            "presharedKey": self.preshared_key,
            "persistentKeepalive": self.persistent_keepalive,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Peer":
        return cls(
            endpoint=_text(data.get("endpoint")),
            port=_text(data.get("port")),
            public_key=_text(data.get("publicKey")),
            preshared_key=_text(data.get("presharedKey")),
            persistent_keepalive=_text(data.get("persistentKeepalive")),
        )


@dataclass
class RuleSet:
    """Comma separated apps, folders and addresses handed to the tunnel process."""

    apps: str = ""
    folders: str = ""
    ip_addresses: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"apps": self.apps, "folders": self.folders, "ipAddresses": self.ip_addresses}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleSet":
        return cls(
            apps=_text(data.get("apps")),
            folders=_text(data.get("folders")),
            ip_addresses=_text(data.get("ipAddresses")),
        )


@dataclass
class Rules:
    allowed: RuleSet = field(default_factory=RuleSet)
    disallowed: RuleSet = field(default_factory=RuleSet)

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {"allowed": self.allowed.to_dict(), "disallowed": self.disallowed.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rules":
        return cls(
            allowed=RuleSet.from_dict(data.get("allowed") or {}),
            disallowed=RuleSet.from_dict(data.get("disallowed") or {}),
        )


@dataclass
class Tunnel:
    """A named VPN endpoint configuration in the current (1.0.1) schema."""

    id: str = ""
    name: str = ""
    interface: Interface = field(default_factory=Interface)
    peer: Peer = field(default_factory=Peer)
    rules: Rules = field(default_factory=Rules)

    @classmethod
    def create(cls, existing_ids: Iterable[str], rng: Optional[random.Random] = None) -> "Tunnel":
        """Return a blank draft carrying an id unused by ``existing_ids``."""
        return cls(id=generate_tunnel_id(existing_ids, rng=rng))

    def copy(self) -> "Tunnel":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "interface": self.interface.to_dict(),
            "peer": self.peer.to_dict(),
            "rules": self.rules.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tunnel":
        return cls(
            id=_text(data.get("id")),
            name=_text(data.get("name")),
            interface=Interface.from_dict(data.get("interface") or {}),
            peer=Peer.from_dict(data.get("peer") or {}),
            rules=Rules.from_dict(data.get("rules") or {}),
        )


def is_valid_tunnel_id(value: Any) -> bool:
    return isinstance(value, str) and len(value) == ID_LENGTH and all(char in ID_ALPHABET for char in value)


def generate_tunnel_id(
    existing_ids: Iterable[str],
    rng: Optional[random.Random] = None,
    max_attempts: int = MAX_ID_ATTEMPTS,
) -> str:
    """Draw random 4 character ids until one is not in ``existing_ids``."""
    taken = set(existing_ids)
    if len(taken) >= ID_SPACE:
        raise TunnelIDExhaustedError(f"All {ID_SPACE} tunnel ids are in use")
    chooser = rng or _RANDOM
    for _ in range(max_attempts):
        candidate = "".join(chooser.choice(ID_ALPHABET) for _ in range(ID_LENGTH))
        if candidate not in taken:
            return candidate
    raise TunnelIDExhaustedError(f"No unused tunnel id found after {max_attempts} attempts")
