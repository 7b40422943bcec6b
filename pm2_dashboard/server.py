"""WebSocket server exposing live PM2 state to dashboard clients."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.routing import WebSocketRoute
from starlette.websockets import WebSocket

from .commands import CommandDispatcher
from .config import Config
from .hub import BroadcastHub
from .logs import LogTailLoader
from .pm2_client import ProcessManager
from .scheduler import SyncScheduler
from .snapshot import ProcessSnapshotReader

log = logging.getLogger(__name__)


def create_app(
    manager: ProcessManager,
    config: Config | None = None,
) -> Starlette:
    """Wire the sync loop, hub and dispatcher into a Starlette app.

    The app has a single WebSocket route.  Its lifespan starts and stops
    the periodic sync loops, so they run only while the server serves.
    """
    cfg = config or Config()

    logs = LogTailLoader(cfg.log_tail_lines)
    hub = BroadcastHub()
    reader = ProcessSnapshotReader(manager, logs)
    scheduler = SyncScheduler(
        reader,
        hub,
        full_interval=cfg.full_sync_interval,
        state_interval=cfg.state_sync_interval,
    )
    dispatcher = CommandDispatcher(manager, logs, scheduler.request_full_sync)

    # Strong references to in-flight command tasks
    pending: set[asyncio.Task[None]] = set()

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        scheduler.start()
        try:
            yield
        finally:
            await scheduler.stop()
            for task in list(pending):
                task.cancel()
            await asyncio.gather(*list(pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Route: dashboard WebSocket
    # ------------------------------------------------------------------
    async def dashboard(websocket: WebSocket) -> None:
        await websocket.accept()
        hub.subscribe(websocket)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes")
                if raw is None:
                    continue
                # Each command runs on its own so a slow PM2 call never
                # blocks this client's reader
                task = asyncio.create_task(dispatcher.handle_raw(raw))
                pending.add(task)
                task.add_done_callback(pending.discard)
        finally:
            hub.unsubscribe(websocket)

    app = Starlette(
        routes=[WebSocketRoute(cfg.ws_path, dashboard)],
        lifespan=lifespan,
    )
    app.state.hub = hub
    app.state.scheduler = scheduler
    app.state.dispatcher = dispatcher
    app.state.pending = pending
    return app
