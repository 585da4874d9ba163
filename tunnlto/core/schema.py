"""Historical tunnel record shapes and the startup migrations between them.

Three shapes have been persisted over time:

* ``LegacyTunnelV0`` - releases before 1.0.0 kept every tunnel as a flat
  object under its own ``tunnel-wireguard-*`` key.
* ``TunnelV1_0_0`` - one ``tunnels`` map keyed by id, with a single
  ``interface.ipAddress`` field.
* ``Tunnel`` (1.0.1, current) - the address split into ``ipv4Address`` and
  ``ipv6Address``.

Both passes of :class:`SchemaMigrator` run on every startup and only touch
records that are still in an older shape, so running them again changes
nothing.
"""

from __future__ import annotations

import json
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..config.storage import (
    LEGACY_SELECTED_TUNNEL_KEY,
    LEGACY_TUNNEL_PREFIX,
    TUNNELS_KEY,
    KeyValueStorage,
)
from .logging_manager import get_logging_manager
from .profile_parser import split_addresses, split_endpoint
from .tunnel import Interface, Peer, RuleSet, Rules, Tunnel, _text, generate_tunnel_id

LOGGER = get_logging_manager().logger


class SchemaVersion(str, Enum):
    V0 = "0"
    V1_0_0 = "1.0.0"
    V1_0_1 = "1.0.1"


CURRENT_VERSION = SchemaVersion.V1_0_1
SECTIONS = ("interface", "peer", "rules")


@dataclass
class LegacyTunnelV0:
    name: str = ""
    private_key: str = ""
    interface_address: str = ""
    dns: str = ""
    mtu: str = ""
    public_key: str = ""
    preshared_key: str = ""
    endpoint: str = ""
    allowed_apps: str = ""
    disallowed_apps: str = ""
    allowed_ips: str = ""
    disallowed_ips: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LegacyTunnelV0":
        return cls(
            name=_text(data.get("name")),
            private_key=_text(data.get("privateKey")),
            interface_address=_text(data.get("interfaceAddress")),
            dns=_text(data.get("dns")),
            mtu=_text(data.get("mtu")),
            public_key=_text(data.get("publicKey")),
            preshared_key=_text(data.get("presharedKey")),
            endpoint=_text(data.get("endpoint")),
            allowed_apps=_text(data.get("allowedApps")),
            disallowed_apps=_text(data.get("disallowedApps")),
            allowed_ips=_text(data.get("allowedIPs")),
            disallowed_ips=_text(data.get("disallowedIPs")),
        )


@dataclass
class InterfaceV1_0_0:
    ip_address: str = ""
    port: str = ""
    private_key: str = ""
    dns: str = ""
    mtu: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "ipAddress": self.ip_address,
            "port": self.port,
            "privateKey": self.private_key,
            "dns": self.dns,
            "mtu": self.mtu,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InterfaceV1_0_0":
        return cls(
            ip_address=_text(data.get("ipAddress")),
            port=_text(data.get("port")),
            private_key=_text(data.get("privateKey")),
            dns=_text(data.get("dns")),
            mtu=_text(data.get("mtu")),
        )


@dataclass
class TunnelV1_0_0:
    id: str = ""
    name: str = ""
    interface: InterfaceV1_0_0 = field(default_factory=InterfaceV1_0_0)
    peer: Peer = field(default_factory=Peer)
    rules: Rules = field(default_factory=Rules)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "interface": self.interface.to_dict(),
            "peer": self.peer.to_dict(),
            "rules": self.rules.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TunnelV1_0_0":
        return cls(
            id=_text(data.get("id")),
            name=_text(data.get("name")),
            interface=InterfaceV1_0_0.from_dict(data.get("interface") or {}),
            peer=Peer.from_dict(data.get("peer") or {}),
            rules=Rules.from_dict(data.get("rules") or {}),
        )


def detect_version(record: Dict[str, Any]) -> SchemaVersion:
    """Classify a raw persisted record by the fields it carries.

    Only a flat record (a top level ``interfaceAddress``, or none of the
    nested sections) is pre-1.0; a nested record missing a section is a
    current record with defaults.
    """
    interface = record.get("interface")
    if isinstance(interface, dict):
        return SchemaVersion.V1_0_0 if "ipAddress" in interface else SchemaVersion.V1_0_1
    if "interfaceAddress" in record or not any(isinstance(record.get(key), dict) for key in SECTIONS):
        return SchemaVersion.V0
    return SchemaVersion.V1_0_1


def _is_complete(record: Dict[str, Any]) -> bool:
    return all(isinstance(record.get(key), dict) for key in SECTIONS) and bool(record.get("id"))


def _strip_masks(value: str) -> str:
    entries = [entry.strip().split("/", 1)[0] for entry in value.split(",")]
    return ", ".join(entry for entry in entries if entry)


def upgrade_v0(legacy: LegacyTunnelV0, tunnel_id: str) -> TunnelV1_0_0:
    host, port = split_endpoint(legacy.endpoint)
    return TunnelV1_0_0(
        id=tunnel_id,
        name=legacy.name,
        interface=InterfaceV1_0_0(
            ip_address=_strip_masks(legacy.interface_address),
            private_key=legacy.private_key,
            dns=legacy.dns,
            mtu=legacy.mtu,
        ),
        peer=Peer(
            endpoint=host,
            port=port,
            public_key=legacy.public_key,
            preshared_key=legacy.preshared_key,
        ),
        rules=Rules(
            allowed=RuleSet(apps=legacy.allowed_apps, ip_addresses=legacy.allowed_ips),
            disallowed=RuleSet(apps=legacy.disallowed_apps, ip_addresses=legacy.disallowed_ips),
        ),
    )


def upgrade_v1_0_0(old: TunnelV1_0_0) -> Tunnel:
    ipv4, ipv6 = split_addresses(old.interface.ip_address)
    return Tunnel(
        id=old.id,
        name=old.name,
        interface=Interface(
            ipv4_address=ipv4 or "",
            ipv6_address=ipv6 or "",
            port=old.interface.port,
            private_key=old.interface.private_key,
            dns=old.interface.dns,
            mtu=old.interface.mtu,
        ),
        peer=old.peer,
        rules=old.rules,
    )


def upgrade_record(record: Dict[str, Any], tunnel_id: str) -> Tunnel:
    """Bring a record of any known shape up to the current ``Tunnel``.

    ``tunnel_id`` is only used for pre-1.0 records, which never had one.
    """
    version = detect_version(record)
    if version is SchemaVersion.V0:
        return upgrade_v1_0_0(upgrade_v0(LegacyTunnelV0.from_dict(record), tunnel_id))
    if version is SchemaVersion.V1_0_0:
        return upgrade_v1_0_0(TunnelV1_0_0.from_dict(record))
    if version is SchemaVersion.V1_0_1:
        return Tunnel.from_dict(record)
    raise ValueError(f"Unhandled schema version {version}")


@dataclass
class MigrationReport:
    legacy_migrated: List[str] = field(default_factory=list)
    addresses_split: List[str] = field(default_factory=list)
    removed_keys: List[str] = field(default_factory=list)
    normalised: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.legacy_migrated or self.addresses_split or self.removed_keys or self.normalised)


class SchemaMigrator:
    """Upgrade persisted tunnels to the current shape before they are loaded."""

    def __init__(self, storage: KeyValueStorage, rng: Optional[random.Random] = None) -> None:
        self._storage = storage
        self._rng = rng

    def run(self) -> MigrationReport:
        report = MigrationReport()
        collection = self._read_collection()
        if collection is None:
            LOGGER.error("Tunnel collection is not valid JSON; skipping migration")
            return report
        self._migrate_legacy(collection, report)
        self._upgrade_records(collection, report)
        if report.changed:
            LOGGER.info(
                "Migration finished: %d legacy tunnels converted, %d addresses split, %d records normalised",
                len(report.legacy_migrated),
                len(report.addresses_split),
                len(report.normalised),
            )
        else:
            LOGGER.debug("Tunnel data already at schema %s", CURRENT_VERSION.value)
        return report

    def _read_collection(self) -> Optional[Dict[str, Any]]:
        raw = self._storage.get(TUNNELS_KEY)
        if raw is None:
            return {}
        try:
            collection = json.loads(raw)
        except ValueError:
            return None
        return collection if isinstance(collection, dict) else None

    def _write_collection(self, collection: Dict[str, Any]) -> None:
        self._storage.set(TUNNELS_KEY, json.dumps(collection))

    def _migrate_legacy(self, collection: Dict[str, Any], report: MigrationReport) -> None:
        if self._storage.get(LEGACY_SELECTED_TUNNEL_KEY) is not None:
            self._storage.remove(LEGACY_SELECTED_TUNNEL_KEY)
            report.removed_keys.append(LEGACY_SELECTED_TUNNEL_KEY)

        for key in sorted(self._storage.keys()):
            if not key.startswith(LEGACY_TUNNEL_PREFIX):
                continue
            raw = self._storage.get(key)
            if raw is None:
                continue
            try:
                data = json.loads(raw)
            except ValueError:
                LOGGER.error("Legacy tunnel %s is not valid JSON; leaving it in place", key)
                continue
            if not isinstance(data, dict):
                LOGGER.error("Legacy tunnel %s is not an object; leaving it in place", key)
                continue
            legacy = LegacyTunnelV0.from_dict(data)
            tunnel_id = generate_tunnel_id(collection.keys(), rng=self._rng)
            collection[tunnel_id] = upgrade_v0(legacy, tunnel_id).to_dict()
            # Persist before deleting the source so an interrupted run loses nothing.
            self._write_collection(collection)
            self._storage.remove(key)
            report.legacy_migrated.append(tunnel_id)
            report.removed_keys.append(key)
            LOGGER.info("Migrated legacy tunnel %r to id %s", legacy.name, tunnel_id)

    def _upgrade_records(self, collection: Dict[str, Any], report: MigrationReport) -> None:
        for tunnel_id, record in list(collection.items()):
            if not isinstance(record, dict):
                continue
            version = detect_version(record)
            if version is SchemaVersion.V1_0_1 and _is_complete(record):
                continue
            tunnel = upgrade_record(record, tunnel_id)
            tunnel.id = tunnel.id or tunnel_id
            collection[tunnel_id] = tunnel.to_dict()
            if version is SchemaVersion.V1_0_0:
                report.addresses_split.append(tunnel_id)
                LOGGER.info("Split interface address of tunnel %s", tunnel_id)
            else:
                report.normalised.append(tunnel_id)
                LOGGER.warning("Rewrote incomplete %s record of tunnel %s", version.value, tunnel_id)
        if report.addresses_split or report.normalised:
            self._write_collection(collection)
