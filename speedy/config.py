"""Environment-driven settings."""
from __future__ import annotations

import os
from pathlib import Path

DEFAULT_FPS = 20
MIN_FPS = 10
MAX_FPS = 30

_TRUTHY = ("1", "true", "yes")


def _flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in _TRUTHY


def data_dir() -> Path:
    """SPEEDY_DATA_DIR, else $XDG_DATA_HOME/speedy, else ~/.local/share/speedy."""
    override = os.environ.get("SPEEDY_DATA_DIR")
    if override:
        return Path(override).expanduser()
    xdg = os.environ.get("XDG_DATA_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".local" / "share"
    return base / "speedy"


def render_fps(value: int | None = None) -> int:
    if value is None:
        raw = os.environ.get("SPEEDY_FPS", "")
        try:
            value = int(raw) if raw else DEFAULT_FPS
        except ValueError:
            print(f"[CONFIG] ignoring SPEEDY_FPS={raw!r}")
            value = DEFAULT_FPS
    return max(MIN_FPS, min(MAX_FPS, value))


def headless() -> bool:
    return _flag("HEADLESS")


def muted() -> bool:
    return _flag("SPEEDY_MUTE")
