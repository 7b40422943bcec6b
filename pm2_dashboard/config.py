from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_PORT = 1999


def _env_number(name: str, default: float, cast: type = float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}")
    return value


@dataclass(frozen=True)
class Config:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    ws_path: str = "/"
    full_sync_interval: float = 1.5  # seconds, 0 disables the loop
    state_sync_interval: float = 1.5
    log_tail_lines: int = 100
    pm2_bin: str = "pm2"
    pm2_timeout: float = 10.0

    @classmethod
    def from_env(cls, env_path: str | Path | None = None) -> Config:
        load_dotenv(env_path)

        ws_path = os.getenv("DASHBOARD_WS_PATH", "/").strip() or "/"
        if not ws_path.startswith("/"):
            ws_path = "/" + ws_path

        return cls(
            host=os.getenv("DASHBOARD_HOST", "0.0.0.0"),
            port=int(_env_number("DASHBOARD_PORT", DEFAULT_PORT, int)),
            ws_path=ws_path,
            full_sync_interval=_env_number("FULL_SYNC_INTERVAL", 1.5),
            state_sync_interval=_env_number("STATE_SYNC_INTERVAL", 1.5),
            log_tail_lines=int(_env_number("LOG_TAIL_LINES", 100, int)),
            pm2_bin=os.getenv("PM2_BIN", "pm2"),
            pm2_timeout=_env_number("PM2_TIMEOUT", 10.0),
        )
