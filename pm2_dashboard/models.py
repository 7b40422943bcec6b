from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

CLUSTER_EXEC_MODES = frozenset({"cluster_mode", "cluster"})


# ---------------------------------------------------------------------------
# ProcessEntry: one raw element of the PM2 process list
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcessEntry:
    """Read-only view of one ``pm2 jlist`` element."""

    pm_id: int
    name: str
    exec_mode: str = "fork_mode"
    instance: int | str | None = None  # NODE_APP_INSTANCE, cluster only
    status: str = "unknown"
    restart_time: int = 0
    pm_uptime: int = 0  # epoch millis of the last (re)start
    cpu: float = 0.0
    memory: int = 0  # resident bytes
    out_log_path: str | None = None
    err_log_path: str | None = None
    is_instrumentation: bool = False  # pm2 modules (pmx_module)

    @classmethod
    def from_pm2(cls, raw: dict[str, Any]) -> ProcessEntry:
        """Build an entry from PM2's JSON, tolerating missing keys."""
        env = raw.get("pm2_env") or {}
        monit = raw.get("monit") or {}
        return cls(
            pm_id=int(raw.get("pm_id", env.get("pm_id", -1))),
            name=str(raw.get("name") or env.get("name") or ""),
            exec_mode=str(env.get("exec_mode") or "fork_mode"),
            instance=env.get("NODE_APP_INSTANCE"),
            status=str(env.get("status") or "unknown"),
            restart_time=int(env.get("restart_time") or 0),
            pm_uptime=int(env.get("pm_uptime") or 0),
            cpu=float(monit.get("cpu") or 0.0),
            memory=int(monit.get("memory") or 0),
            out_log_path=env.get("pm_out_log_path"),
            err_log_path=env.get("pm_err_log_path"),
            is_instrumentation=bool(env.get("pmx_module")),
        )

    @property
    def is_cluster(self) -> bool:
        return self.exec_mode in CLUSTER_EXEC_MODES

    @property
    def log_paths(self) -> list[str]:
        return [p for p in (self.out_log_path, self.err_log_path) if p]


def display_name(entry: ProcessEntry) -> str:
    """Name shown to clients.

    Cluster instances of one app share a name, so they are suffixed with
    their instance index:

        api   (cluster_mode, instance 2) → api-2
        worker (fork_mode)               → worker
    """
    if entry.is_cluster and entry.instance is not None:
        return f"{entry.name}-{entry.instance}"
    return entry.name


def format_memory(num_bytes: int | float) -> str:
    return f"{num_bytes / 1024 / 1024:.2f} MB"


def visible(entries: list[ProcessEntry]) -> list[ProcessEntry]:
    """Drop instrumentation-only entries, keeping listing order."""
    return [e for e in entries if not e.is_instrumentation]


# ---------------------------------------------------------------------------
# ProcessView: what clients receive
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcessView:
    id: int
    name: str
    status: str
    restart: int
    cpu: float
    memory: str
    type: str
    # Only set on full snapshots:
    uptime: int | None = None
    logs: str | None = None

    @classmethod
    def from_entry(
        cls,
        entry: ProcessEntry,
        *,
        logs: str | None = None,
        full: bool = True,
    ) -> ProcessView:
        return cls(
            id=entry.pm_id,
            name=display_name(entry),
            status=entry.status,
            restart=entry.restart_time,
            cpu=entry.cpu,
            memory=format_memory(entry.memory),
            type=entry.exec_mode,
            uptime=entry.pm_uptime if full else None,
            logs=logs if full else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "restart": self.restart,
        }
        if self.uptime is not None:
            data["uptime"] = self.uptime
        data["cpu"] = self.cpu
        data["memory"] = self.memory
        data["type"] = self.type
        if self.logs is not None:
            data["logs"] = self.logs
        return data


# ---------------------------------------------------------------------------
# Envelopes: outbound message types
# ---------------------------------------------------------------------------

class EnvelopeType(str, enum.Enum):
    UPDATE = "update"      # full snapshot, with logs and uptime
    STATE = "statepm2"     # state-only snapshot


def envelope(kind: EnvelopeType, views: list[ProcessView]) -> dict[str, Any]:
    return {"type": kind.value, "data": [v.to_dict() for v in views]}


# ---------------------------------------------------------------------------
# Commands: inbound client requests
# ---------------------------------------------------------------------------

class CommandKind(str, enum.Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    RESET = "reset"
    CLEAR = "clear"  # truncate out + err logs
    START_ALL = "start-all"
    STOP_ALL = "stop-all"
    RESTART_ALL = "restart-all"
    RESET_ALL = "reset-all"

    @property
    def is_bulk(self) -> bool:
        return self.value.endswith("-all")

    @property
    def operation(self) -> str:
        """Process manager method name this kind maps to."""
        return self.value.removesuffix("-all")


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    target: int | None = None
