"""Shared fakes for pm2-dashboard tests."""

from __future__ import annotations

import asyncio
import dataclasses
from pathlib import Path

import pytest

from pm2_dashboard.errors import ProcessManagerError
from pm2_dashboard.models import ProcessEntry
from pm2_dashboard.pm2_client import ProcessManager


class FakeProcessManager(ProcessManager):
    """In-memory process manager recording every call.

    ``failing`` holds (operation, pm_id) pairs that should raise;
    ``fail_list`` makes list_processes()/describe() raise.
    """

    def __init__(self, entries: list[ProcessEntry]) -> None:
        self.entries = list(entries)
        self.calls: list[tuple[str, int | None]] = []
        self.failing: set[tuple[str, int]] = set()
        self.fail_list = False
        self.delay = 0.0

    def get(self, pm_id: int) -> ProcessEntry:
        return next(e for e in self.entries if e.pm_id == pm_id)

    def _update(self, pm_id: int, **changes: object) -> None:
        self.entries = [
            dataclasses.replace(e, **changes) if e.pm_id == pm_id else e
            for e in self.entries
        ]

    async def _mutate(self, op: str, pm_id: int, **changes: object) -> None:
        self.calls.append((op, pm_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if (op, pm_id) in self.failing:
            raise ProcessManagerError(f"{op} {pm_id} failed", target=pm_id)
        if not any(e.pm_id == pm_id for e in self.entries):
            raise ProcessManagerError(f"process {pm_id} not found", target=pm_id)
        self._update(pm_id, **changes)

    async def connect(self) -> None:
        self.calls.append(("connect", None))

    async def list_processes(self) -> list[ProcessEntry]:
        self.calls.append(("list", None))
        if self.fail_list:
            raise ProcessManagerError("daemon unreachable")
        return list(self.entries)

    async def start(self, pm_id: int) -> None:
        await self._mutate("start", pm_id, status="online")

    async def stop(self, pm_id: int) -> None:
        await self._mutate("stop", pm_id, status="stopped")

    async def restart(self, pm_id: int) -> None:
        restarts = next(
            (e.restart_time for e in self.entries if e.pm_id == pm_id), 0,
        )
        await self._mutate("restart", pm_id, status="online", restart_time=restarts + 1)

    async def reset(self, pm_id: int) -> None:
        await self._mutate("reset", pm_id, restart_time=0)

    async def describe(self, pm_id: int) -> list[ProcessEntry]:
        self.calls.append(("describe", pm_id))
        if self.fail_list or ("describe", pm_id) in self.failing:
            raise ProcessManagerError(f"process or namespace {pm_id} not found")
        return [e for e in self.entries if e.pm_id == pm_id]


class FakeSink:
    """Records frames; optionally fails or stalls on send."""

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.sent: list[str] = []
        self.fail = fail
        self.delay = delay

    async def send_text(self, data: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionResetError("client went away")
        self.sent.append(data)


def write_log(path: Path, lines: int, prefix: str = "line") -> Path:
    path.write_text("\n".join(f"{prefix} {i}" for i in range(1, lines + 1)) + "\n")
    return path


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    d = tmp_path / "logs"
    d.mkdir()
    return d


@pytest.fixture
def entries(log_dir: Path) -> list[ProcessEntry]:
    """Three apps plus a pm2 module that must stay hidden."""
    result = []
    for pm_id, name, mode, instance in [
        (0, "api", "cluster_mode", 0),
        (1, "api", "cluster_mode", 1),
        (3, "worker", "fork_mode", None),
    ]:
        out = write_log(log_dir / f"{name}-{pm_id}-out.log", 5, prefix=f"{name}{pm_id}")
        err = write_log(log_dir / f"{name}-{pm_id}-error.log", 2, prefix="err")
        result.append(ProcessEntry(
            pm_id=pm_id,
            name=name,
            exec_mode=mode,
            instance=instance,
            status="online",
            restart_time=2,
            pm_uptime=1_700_000_000_000,
            cpu=1.5,
            memory=12_958_000,
            out_log_path=str(out),
            err_log_path=str(err),
        ))
    result.append(ProcessEntry(
        pm_id=4,
        name="pm2-logrotate",
        status="online",
        out_log_path=str(write_log(log_dir / "logrotate-out.log", 1)),
        err_log_path=str(write_log(log_dir / "logrotate-error.log", 1)),
        is_instrumentation=True,
    ))
    return result


@pytest.fixture
def manager(entries: list[ProcessEntry]) -> FakeProcessManager:
    return FakeProcessManager(entries)
