"""Periodic and on-demand snapshot broadcasting.

Two loops run independently: a full sync (logs + uptime, ``update``) and
a lightweight state sync (``statepm2``).  Commands ask for an extra full
sync once they complete, without touching the loops' phase.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .errors import ProcessManagerError
from .hub import BroadcastHub
from .models import EnvelopeType, ProcessView, envelope
from .snapshot import ProcessSnapshotReader

log = logging.getLogger(__name__)


class _SingleFlight:
    """Runs at most one pass at a time; requests during a pass coalesce.

    A request arriving while a pass is in flight marks the flight dirty,
    and the running drainer performs exactly one more pass afterwards.
    Every caller returns only once a pass that *started after* its request
    has finished, so a snapshot requested after a command always reflects
    that command.
    """

    def __init__(self, name: str, run: Callable[[], Awaitable[None]]) -> None:
        self.name = name
        self._run = run
        self._dirty = False
        self._task: asyncio.Task[None] | None = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def trigger(self) -> None:
        self._dirty = True
        if not self.in_flight:
            self._task = asyncio.create_task(self._drain(), name=f"sync-{self.name}")
        # Shielded so a cancelled caller doesn't abort a broadcast others wait on
        await asyncio.shield(self._task)

    async def _drain(self) -> None:
        while self._dirty:
            self._dirty = False
            await self._run()

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()


class SyncScheduler:
    def __init__(
        self,
        reader: ProcessSnapshotReader,
        hub: BroadcastHub,
        *,
        full_interval: float = 1.5,
        state_interval: float = 1.5,
    ) -> None:
        self.reader = reader
        self.hub = hub
        self.full_interval = full_interval
        self.state_interval = state_interval
        self._full = _SingleFlight("full", self._full_pass)
        self._state = _SingleFlight("state", self._state_pass)
        self._loops: list[asyncio.Task[None]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self._loops)

    def start(self) -> None:
        if self.is_running:
            return
        if self.full_interval > 0:
            self._loops.append(asyncio.create_task(
                self._loop(self.full_interval, self._full), name="full-sync-loop",
            ))
        if self.state_interval > 0:
            self._loops.append(asyncio.create_task(
                self._loop(self.state_interval, self._state), name="state-sync-loop",
            ))
        log.info(
            "Sync loops started (full every %gs, state every %gs)",
            self.full_interval, self.state_interval,
        )

    async def stop(self) -> None:
        loops, self._loops = self._loops, []
        for task in loops:
            task.cancel()
        self._full.cancel()
        self._state.cancel()
        await asyncio.gather(*loops, return_exceptions=True)

    # ------------------------------------------------------------------
    # Sync entry points
    # ------------------------------------------------------------------

    async def sync_full(self) -> None:
        """Build and broadcast a full snapshot.  Never raises."""
        await self._full.trigger()

    async def sync_state(self) -> None:
        """Build and broadcast a state-only snapshot.  Never raises."""
        await self._state.trigger()

    async def request_full_sync(self) -> None:
        """On-demand full sync after a command; the timers keep their phase."""
        await self.sync_full()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _loop(interval: float, flight: _SingleFlight) -> None:
        while True:
            await asyncio.sleep(interval)
            await flight.trigger()

    async def _full_pass(self) -> None:
        await self._pass(EnvelopeType.UPDATE, self.reader.build_full_snapshot)

    async def _state_pass(self) -> None:
        await self._pass(EnvelopeType.STATE, self.reader.build_state_snapshot)

    async def _pass(
        self,
        kind: EnvelopeType,
        build: Callable[[], Awaitable[list[ProcessView]]],
    ) -> None:
        try:
            views = await build()
        except ProcessManagerError as exc:
            log.error("Error retrieving PM2 status: %s", exc)
            return
        except Exception:
            log.exception("Unexpected error building %s snapshot", kind.value)
            return

        try:
            await self.hub.broadcast(envelope(kind, views))
        except Exception:
            log.exception("Unexpected error broadcasting %s snapshot", kind.value)
