"""Exception types raised by the tunnel configuration core."""

from __future__ import annotations


class TunnltoError(RuntimeError):
    pass


class StorageError(TunnltoError):
    """The persistence primitive could not store a value."""


class TunnelIDExhaustedError(TunnltoError):
    """No unused tunnel id could be drawn."""
