"""Curve25519 key helpers for tunnel interfaces."""

from __future__ import annotations

import base64
import binascii
import os
from typing import Dict

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey

KEY_SIZE = 32


def _encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _public_bytes(private_key: X25519PrivateKey) -> bytes:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def generate_key_pair() -> Dict[str, str]:
    """Return a fresh ``{"publicKey": ..., "privateKey": ...}`` pair in base64."""
    private_key = X25519PrivateKey.generate()
    private_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return {
        "publicKey": _encode(_public_bytes(private_key)),
        "privateKey": _encode(private_bytes),
    }


def derive_public_key(private_key_base64: str) -> str:
    """Derive the base64 public key for ``private_key_base64``.

    Called on every keystroke of the private key field, so it never raises:
    anything that is not a base64 encoded 32 byte secret yields ``""``.
    """
    try:
        raw = base64.b64decode(private_key_base64.strip(), validate=True)
    except (AttributeError, binascii.Error, ValueError, TypeError):
        return ""
    if len(raw) != KEY_SIZE:
        return ""
    try:
        private_key = X25519PrivateKey.from_private_bytes(raw)
    except ValueError:
        return ""
    return _encode(_public_bytes(private_key))


def generate_preshared_key() -> str:
    """Return a random symmetric pre-shared key, base64 encoded."""
    return _encode(os.urandom(KEY_SIZE))
