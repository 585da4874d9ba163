"""Shared pytest configuration."""

from __future__ import annotations

import os
import tempfile

# Keep log files and default storage paths out of the real home directory; the
# path constants are computed when the package is first imported.
os.environ["XDG_CONFIG_HOME"] = tempfile.mkdtemp(prefix="tunnlto-tests-")

import pytest

from tunnlto.config.storage import MemoryStorage
from tunnlto.core.tunnel import Interface, Peer, RuleSet, Rules, Tunnel


@pytest.fixture()
def storage():
    return MemoryStorage()


@pytest.fixture()
def sample_tunnel():
    return Tunnel(
        id="ab12",
        name="office",
        interface=Interface(
            ipv4_address="10.0.0.2",
            ipv6_address="fd00::2",
            port="51820",
            private_key="yAnz5TF+lXXJte14tji3zlMNq+hd2rYUIgJBgB3fBmk=",
            dns="1.1.1.1",
            mtu="1420",
        ),
        peer=Peer(
            endpoint="vpn.example.com",
            port="51820",
            public_key="xTIBA5rboUvnH4htodjb6e697QjLERt1NAB4mZqp8Dg=",
            preshared_key="",
            persistent_keepalive="25",
        ),
        rules=Rules(
            allowed=RuleSet(apps="chrome.exe", folders=r"C:\Program Files\App", ip_addresses="0.0.0.0/0"),
            disallowed=RuleSet(apps="steam.exe", folders="", ip_addresses="192.168.0.0/16"),
        ),
    )
