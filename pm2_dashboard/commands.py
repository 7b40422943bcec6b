"""Inbound client commands → process manager mutations.

Wire format (JSON text frame)::

    {"type": "restart", "id": 3}
    {"type": "stop-all"}
    {"type": "clear", "id": 3}

Malformed frames and unknown types are dropped; nothing a client sends can
take the dispatcher down.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable

from .errors import ProcessManagerError
from .logs import LogTailLoader
from .models import Command, CommandKind, visible
from .pm2_client import ProcessManager

log = logging.getLogger(__name__)

# Verb forms for log lines, e.g. "Error restarting 3", "3 restarted successfully"
_DOING = {
    "start": "starting",
    "stop": "stopping",
    "restart": "restarting",
    "reset": "resetting",
}
_DONE = {
    "start": "started",
    "stop": "stopped",
    "restart": "restarted",
    "reset": "reset",
}


def _parse_id(value: object) -> int | None:
    # bool is an int subclass, but never a valid pm_id
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def parse_command(raw: str | bytes) -> Command | None:
    """Decode one inbound frame; return None if it isn't a valid command."""
    try:
        msg = json.loads(raw)
    except (ValueError, RecursionError):
        log.warning("Ignoring malformed message: %.200r", raw)
        return None
    if not isinstance(msg, dict):
        log.warning("Ignoring non-object message: %.200r", raw)
        return None

    try:
        kind = CommandKind(msg.get("type"))
    except ValueError:
        log.debug("Ignoring unknown command type %r", msg.get("type"))
        return None

    if kind.is_bulk:
        return Command(kind)

    target = _parse_id(msg.get("id"))
    if target is None:
        log.warning("Ignoring %s command without a valid id: %r", kind.value, msg.get("id"))
        return None
    return Command(kind, target)


class CommandDispatcher:
    """Routes commands to the process manager and triggers resyncs.

    ``on_change`` is awaited after every command that (may have) mutated
    state; failed single-target commands do not trigger it.
    """

    def __init__(
        self,
        manager: ProcessManager,
        logs: LogTailLoader,
        on_change: Callable[[], Awaitable[None]],
    ) -> None:
        self.manager = manager
        self.logs = logs
        self.on_change = on_change

    async def handle_raw(self, raw: str | bytes) -> None:
        command = parse_command(raw)
        if command is not None:
            await self.handle(command)

    async def handle(self, command: Command) -> None:
        """Execute ``command``.  Errors are logged, never raised."""
        try:
            if command.kind is CommandKind.CLEAR:
                await self._clear_logs(command.target)
            elif command.kind.is_bulk:
                await self._apply_all(command.kind.operation)
            elif command.kind.operation in _DONE:
                await self._apply_one(command.kind.operation, command.target)
            else:
                log.debug("Ignoring unsupported command %r", command)
        except Exception:
            log.exception("Unexpected error handling %r", command)

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    async def _apply_one(self, op: str, target: int | None) -> None:
        if target is None:
            return
        if not await self._call(op, target):
            return
        await self.on_change()

    async def _apply_all(self, op: str) -> None:
        try:
            entries = visible(await self.manager.list_processes())
        except ProcessManagerError as exc:
            log.error("Error retrieving PM2 process list for %s-all: %s", op, exc)
            return

        # Mutations run concurrently; the single resync waits for all of them
        await asyncio.gather(*(self._call(op, e.pm_id) for e in entries))
        await self.on_change()

    async def _clear_logs(self, target: int | None) -> None:
        if target is None:
            return
        try:
            desc = await self.manager.describe(target)
        except ProcessManagerError as exc:
            log.error("Error describing %s: %s", target, exc)
            return
        if not desc:
            log.error("Error describing %s: no such process", target)
            return

        await self.logs.truncate_all(desc[0].log_paths)
        await self.on_change()

    async def _call(self, op: str, target: int) -> bool:
        """Run one manager mutation; log the outcome and report success."""
        try:
            await getattr(self.manager, op)(target)
        except ProcessManagerError as exc:
            log.error("Error %s %s: %s", _DOING[op], target, exc)
            return False
        except Exception:
            log.exception("Unexpected error %s %s", _DOING[op], target)
            return False
        log.info("%s %s successfully", target, _DONE[op])
        return True