from __future__ import annotations


class DashboardError(Exception):
    """Base class for all pm2-dashboard errors."""


class ConfigError(DashboardError, ValueError):
    """Raised when an environment setting cannot be parsed."""


class ProcessManagerError(DashboardError):
    """A PM2 operation failed (non-zero exit, timeout, bad output)."""

    def __init__(self, message: str, target: int | None = None) -> None:
        super().__init__(message)
        self.target = target


class LogReadError(DashboardError):
    """A log file could not be read or truncated."""

    def __init__(self, path: str, cause: OSError) -> None:
        super().__init__(f"{path}: {cause.strerror or cause}")
        self.path = path
        self.cause = cause
