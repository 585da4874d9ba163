"""Utility helpers for computing and preparing on-disk paths used by TunnlTo."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Tuple

CONFIG_DIR_NAME = "TunnlTo"
CONFIG_ROOT = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / CONFIG_DIR_NAME
LOG_DIR = CONFIG_ROOT / "logs"
STORAGE_FILE = CONFIG_ROOT / "storage.json"
TUNNEL_CONFIG_FILE = CONFIG_ROOT / "tunnel.conf"


def ensure_directories() -> Tuple[Path, Path]:
    """Ensure configuration and log directories exist before use."""
    CONFIG_ROOT.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    return CONFIG_ROOT, LOG_DIR

