"""Process-wide application settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

LOG_LEVELS = ("debug", "all")
DEFAULT_LOG_LEVEL = "debug"
DEFAULT_LOG_LIMIT = 50


def _flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _log_level(value: Any) -> str:
    return value if value in LOG_LEVELS else DEFAULT_LOG_LEVEL


def _log_limit(value: Any) -> int:
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return DEFAULT_LOG_LIMIT
    return limit if limit > 0 else DEFAULT_LOG_LIMIT


@dataclass
class Settings:
    """Every field has a default so records written by older versions still load."""

    auto_start: bool = False
    auto_connect_tunnel_id: str = ""
    log_level: str = DEFAULT_LOG_LEVEL
    start_minimized: bool = False
    minimize_to_tray: bool = False
    log_limit: int = DEFAULT_LOG_LIMIT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "autoStart": self.auto_start,
            "autoConnectTunnelID": self.auto_connect_tunnel_id,
            "logLevel": self.log_level,
            "startMinimized": self.start_minimized,
            "minimizeToTray": self.minimize_to_tray,
            "logLimit": self.log_limit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        return cls(
            auto_start=_flag(data.get("autoStart"), False),
            auto_connect_tunnel_id=str(data.get("autoConnectTunnelID") or ""),
            log_level=_log_level(data.get("logLevel")),
            start_minimized=_flag(data.get("startMinimized"), False),
            minimize_to_tray=_flag(data.get("minimizeToTray"), False),
            log_limit=_log_limit(data.get("logLimit")),
        )

    def update(self, **changes: Any) -> None:
        """Apply attribute changes, normalising them like a persisted record."""
        for name, value in changes.items():
            if name not in self.__dataclass_fields__:
                raise AttributeError(f"Unknown setting {name!r}")
            setattr(self, name, value)
        self.__dict__.update(vars(Settings.from_dict(self.to_dict())))
