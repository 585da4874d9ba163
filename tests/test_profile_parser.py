"""Tests for importing WireGuard style profiles."""

from __future__ import annotations

from tunnlto.core.profile_parser import (
    parse_profile,
    profile_name_from_file,
    split_addresses,
    split_apps,
    split_endpoint,
)
from tunnlto.core.tunnel import Tunnel

PROFILE = """
[Interface]
PrivateKey = yAnz5TF+lXXJte14tji3zlMNq+hd2rYUIgJBgB3fBmk=
Address = 10.8.0.2/32, fd00::2/128
DNS = 1.1.1.1, 1.0.0.1
MTU = 1420

[Peer]
PublicKey = xTIBA5rboUvnH4htodjb6e697QjLERt1NAB4mZqp8Dg=
PresharedKey = FpCyhws9cxwWoV4xELtfJvjJN+zQVRPISllRWgeopVE=
Endpoint = vpn.example.com:51820
PersistentKeepalive = 25
AllowedIPs = 0.0.0.0/0, ::/0
DisallowedIPs = 192.168.1.0/24
AllowedApps = firefox.exe, /opt/tools
DisallowedApps = steam.exe
"""


def test_parse_full_profile():
    tunnel = parse_profile(PROFILE, "office.conf")

    assert tunnel.name == "office"
    assert tunnel.interface.private_key == "yAnz5TF+lXXJte14tji3zlMNq+hd2rYUIgJBgB3fBmk="
    assert tunnel.interface.ipv4_address == "10.8.0.2/32"
    assert tunnel.interface.ipv6_address == "fd00::2/128"
    assert tunnel.interface.dns == "1.1.1.1, 1.0.0.1"
    assert tunnel.interface.mtu == "1420"
    assert tunnel.peer.public_key == "xTIBA5rboUvnH4htodjb6e697QjLERt1NAB4mZqp8Dg="
    assert tunnel.peer.preshared_key == "FpCyhws9cxwWoV4xELtfJvjJN+zQVRPISllRWgeopVE="
    assert tunnel.peer.endpoint == "vpn.example.com"
    assert tunnel.peer.port == "51820"
    assert tunnel.peer.persistent_keepalive == "25"
    assert tunnel.rules.allowed.ip_addresses == "0.0.0.0/0, ::/0"
    assert tunnel.rules.disallowed.ip_addresses == "192.168.1.0/24"
    assert tunnel.rules.allowed.apps == "firefox.exe"
    assert tunnel.rules.allowed.folders == "/opt/tools"
    assert tunnel.rules.disallowed.apps == "steam.exe"
    assert tunnel.rules.disallowed.folders == ""


def test_endpoint_splits_on_last_colon():
    tunnel = parse_profile("Endpoint = 2001:db8::1:51820", "v6.conf")

    assert tunnel.peer.endpoint == "2001:db8::1"
    assert tunnel.peer.port == "51820"


def test_endpoint_without_port_leaves_port_empty():
    assert split_endpoint("vpn.example.com") == ("vpn.example.com", "")


def test_apps_and_folders_are_separated():
    tunnel = parse_profile(r"AllowedApps = chrome.exe, C:\Program Files\App", "apps.conf")

    assert tunnel.rules.allowed.apps == "chrome.exe"
    assert tunnel.rules.allowed.folders == r"C:\Program Files\App"


def test_split_apps_rejoins_with_comma_space():
    assert split_apps("a.exe,b.exe , /usr/bin, D:\\x") == ("a.exe, b.exe", "/usr/bin, D:\\x")


def test_last_address_of_each_family_wins():
    assert split_addresses("10.0.0.1, 10.0.0.2, fe80::1") == ("10.0.0.2", "fe80::1")
    assert split_addresses("fe80::1") == (None, "fe80::1")
    assert split_addresses("") == (None, None)


def test_address_with_single_family_keeps_other_field():
    draft = Tunnel(id="zz99")
    draft.interface.ipv6_address = "fd00::9"

    tunnel = parse_profile("Address = 10.1.0.3", "x.conf", draft=draft)

    assert tunnel.interface.ipv4_address == "10.1.0.3"
    assert tunnel.interface.ipv6_address == "fd00::9"


def test_unrecognised_and_malformed_lines_are_ignored():
    text = "\n".join(
        [
            "# comment",
            "garbage without equals",
            "PostUp = iptables -A FORWARD",
            "= orphan value",
            "MTU = 1380",
        ]
    )

    tunnel = parse_profile(text, "odd.conf")

    assert tunnel.interface.mtu == "1380"
    assert tunnel.interface.ipv4_address == ""


def test_listen_port_alias():
    assert parse_profile("ListenPort = 41000", "p.conf").interface.port == "41000"
    assert parse_profile("Port = 41001", "p.conf").interface.port == "41001"


def test_parse_does_not_mutate_draft():
    draft = Tunnel(id="ab12")

    tunnel = parse_profile("MTU = 1280", "home.conf", draft=draft)

    assert tunnel.id == "ab12"
    assert draft.interface.mtu == ""
    assert draft.name == ""


def test_profile_without_addresses_is_accepted():
    tunnel = parse_profile("PrivateKey = abc=", "keys-only.conf")

    assert tunnel.interface.ipv4_address == ""
    assert tunnel.interface.ipv6_address == ""
    assert tunnel.interface.private_key == "abc="


def test_profile_name_from_file():
    assert profile_name_from_file("office.conf") == "office"
    assert profile_name_from_file(r"C:\Users\me\home.vpn.conf") == "home.vpn"
    assert profile_name_from_file("/tmp/noext") == "noext"
    assert profile_name_from_file(".hidden") == ".hidden"
