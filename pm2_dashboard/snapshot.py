from __future__ import annotations

import asyncio
import logging

from .errors import LogReadError
from .logs import LogTailLoader
from .models import ProcessEntry, ProcessView, visible
from .pm2_client import ProcessManager

log = logging.getLogger(__name__)


class ProcessSnapshotReader:
    """Turns the process manager's listing into per-process views.

    Views are rebuilt from a fresh listing on every call and never reused.
    A failing ``list_processes()`` propagates; a failing log read only
    affects the one process whose log is broken.
    """

    def __init__(self, manager: ProcessManager, logs: LogTailLoader) -> None:
        self.manager = manager
        self.logs = logs

    async def build_full_snapshot(self) -> list[ProcessView]:
        entries = visible(await self.manager.list_processes())
        # gather keeps listing order regardless of completion order
        return list(await asyncio.gather(*(self._full_view(e) for e in entries)))

    async def build_state_snapshot(self) -> list[ProcessView]:
        entries = visible(await self.manager.list_processes())
        return [ProcessView.from_entry(e, full=False) for e in entries]

    async def _full_view(self, entry: ProcessEntry) -> ProcessView:
        try:
            logs = await self.logs.load_tail(entry.out_log_path)
        except LogReadError as exc:
            log.warning("Error reading log file for %s: %s", entry.pm_id, exc)
            logs = f"[log unavailable: {exc}]"
        return ProcessView.from_entry(entry, logs=logs)
