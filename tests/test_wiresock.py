"""Tests for the tunnel process boundary helpers."""

from __future__ import annotations

from pathlib import Path

from tunnlto.core.manager import TunnelManager
from tunnlto.core.profile_parser import parse_profile
from tunnlto.core.store import TunnelStore
from tunnlto.core.tunnel import Tunnel
from tunnlto.core.wiresock import (
    AutoConnector,
    TunnelState,
    build_wiresock_command,
    is_wiresock_running,
    render_tunnel_config,
    write_tunnel_config,
)


class DummyExecutor:
    def __init__(self):
        self.enabled = []
        self.disabled = 0

    def enable_tunnel(self, tunnel, log_level):
        self.enabled.append((tunnel.id, log_level))

    def disable_tunnel(self):
        self.disabled += 1


class DummyProcess:
    def __init__(self, name):
        self.info = {"name": name}


def test_rendered_config_parses_back(sample_tunnel):
    text = render_tunnel_config(sample_tunnel)

    parsed = parse_profile(text, "office.conf", draft=Tunnel(id=sample_tunnel.id))

    assert parsed == sample_tunnel


def test_render_layout(sample_tunnel):
    text = render_tunnel_config(sample_tunnel)

    assert text.startswith("[Interface]\nPrivateKey = ")
    assert "Address = 10.0.0.2, fd00::2\n" in text
    assert "Endpoint = vpn.example.com:51820\n" in text
    assert "AllowedApps = chrome.exe, C:\\Program Files\\App\n" in text
    assert "PresharedKey" not in text


def test_render_omits_empty_optional_keys():
    tunnel = Tunnel(id="ab12", name="bare")
    tunnel.interface.ipv4_address = "10.0.0.2"
    tunnel.peer.endpoint = "vpn.example.com"

    text = render_tunnel_config(tunnel)

    assert "Address = 10.0.0.2\n" in text
    assert "Endpoint = vpn.example.com\n" in text
    for key in ("DNS", "MTU", "ListenPort", "PersistentKeepalive", "AllowedApps", "DisallowedIPs"):
        assert f"{key} =" not in text


def test_write_tunnel_config(tmp_path, sample_tunnel):
    path = write_tunnel_config(sample_tunnel, tmp_path / "nested" / "tunnel.conf")

    assert path.read_text(encoding="utf-8") == render_tunnel_config(sample_tunnel)


def test_build_wiresock_command():
    command = build_wiresock_command(Path("/tmp/tunnel.conf"), "all")

    assert command == ["wiresock-client", "run", "-config", "/tmp/tunnel.conf", "-log-level", "all"]


def test_state_from_partial_event():
    state = TunnelState.from_dict({"wiresock_status": "STOPPED", "logs": ["a", 1]})

    assert state.wiresock_status == "STOPPED"
    assert state.tunnel_status == ""
    assert state.tunnel_id == ""
    assert state.logs == ["a", "1"]


def test_auto_connect_fires_once_when_stopped(storage, sample_tunnel):
    manager = TunnelManager(TunnelStore(storage))
    manager.add_tunnel(sample_tunnel)
    manager.update_settings(auto_connect_tunnel_id="ab12", log_level="all")
    executor = DummyExecutor()
    connector = AutoConnector(manager, executor)

    assert connector.handle_state(TunnelState(wiresock_status="STARTING")) is None
    assert connector.handle_state(TunnelState(wiresock_status="STOPPED")) is sample_tunnel
    assert connector.handle_state(TunnelState(wiresock_status="STOPPED")) is None

    assert executor.enabled == [("ab12", "all")]


def test_auto_connect_without_configured_tunnel(storage):
    manager = TunnelManager(TunnelStore(storage))
    executor = DummyExecutor()
    connector = AutoConnector(manager, executor)

    connector.handle_state(TunnelState(wiresock_status="STOPPED"))

    assert connector.has_run is True
    assert executor.enabled == []


def test_is_wiresock_running(monkeypatch):
    monkeypatch.setattr(
        "tunnlto.core.wiresock.psutil.process_iter",
        lambda attrs: [DummyProcess("explorer.exe"), DummyProcess("wiresock-client.exe")],
    )
    assert is_wiresock_running() is True

    monkeypatch.setattr("tunnlto.core.wiresock.psutil.process_iter", lambda attrs: [DummyProcess(None)])
    assert is_wiresock_running() is False
