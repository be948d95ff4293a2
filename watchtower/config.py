"""
Config Module.

Loads config/settings.yaml and applies defaults for anything missing.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_SETTINGS_PATH = PROJECT_ROOT / "config" / "settings.yaml"


@dataclass
class Config:
    host: str = "0.0.0.0"
    port: int = 8080
    poll_interval: float = 0.1  # seconds
    session_filter: str = "gt-*"
    socket_path: str = ""  # empty = tmux default
    static_dir: Path = PROJECT_ROOT / "web" / "dist"
    thread_pool_workers: int = 2
    log_level: str = "INFO"


def settings_path() -> Path:
    """Settings file location, overridable with WATCHTOWER_SETTINGS."""
    override = os.environ.get("WATCHTOWER_SETTINGS")
    return Path(override) if override else DEFAULT_SETTINGS_PATH


def load_settings(path: Path | None = None) -> dict:
    """Load the raw settings mapping; a missing or empty file gives {}."""
    path = path or settings_path()
    if not path.exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_config(path: Path | None = None) -> Config:
    """
    Build a Config from settings.yaml.

    Args:
        path: Settings file (default: WATCHTOWER_SETTINGS or config/settings.yaml)

    Returns:
        Config with defaults applied

    Raises:
        ValueError: If the port or poll interval is out of range
    """
    settings = load_settings(path)
    defaults = Config()
    server = settings.get("server") or {}
    tmux = settings.get("tmux") or {}
    logging_settings = settings.get("logging") or {}

    port = int(server.get("port", defaults.port))
    if not 0 < port < 65536:
        raise ValueError(f"server.port out of range: {port}")

    poll_interval_ms = tmux.get("poll_interval_ms", defaults.poll_interval * 1000)
    if poll_interval_ms <= 0:
        raise ValueError(f"tmux.poll_interval_ms must be positive: {poll_interval_ms}")

    static_dir = Path(server.get("static_dir", defaults.static_dir))
    if not static_dir.is_absolute():
        static_dir = PROJECT_ROOT / static_dir

    return Config(
        host=server.get("host", defaults.host),
        port=port,
        poll_interval=poll_interval_ms / 1000,
        session_filter=tmux.get("session_filter", defaults.session_filter) or "",
        socket_path=tmux.get("socket_path", defaults.socket_path) or "",
        static_dir=static_dir,
        thread_pool_workers=int(
            tmux.get("thread_pool_workers", defaults.thread_pool_workers)
        ),
        log_level=os.environ.get(
            "WATCHTOWER_LOG_LEVEL", logging_settings.get("level", defaults.log_level)
        ).upper(),
    )
