"""Fan-out of snapshot envelopes to connected dashboard clients."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

log = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT = 5.0


class Sink(Protocol):
    """Anything that can receive a text frame (e.g. a Starlette WebSocket)."""

    async def send_text(self, data: str) -> None:
        ...


class BroadcastHub:
    """Set of subscribed sinks; a sink is identified by the connection itself.

    Only ever touched from the event loop thread, so membership updates
    need no locking.
    """

    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT) -> None:
        self.send_timeout = send_timeout
        self._sinks: set[Sink] = set()

    def __len__(self) -> int:
        return len(self._sinks)

    def __contains__(self, sink: object) -> bool:
        return sink in self._sinks

    def subscribe(self, sink: Sink) -> None:
        self._sinks.add(sink)
        log.info("Client connected (%d total)", len(self._sinks))

    def unsubscribe(self, sink: Sink) -> None:
        if sink in self._sinks:
            self._sinks.discard(sink)
            log.info("Client disconnected (%d total)", len(self._sinks))

    async def broadcast(self, envelope: dict[str, Any]) -> int:
        """Send ``envelope`` to every subscriber; return successful deliveries.

        The payload is serialized once.  A sink whose send fails or times
        out is dropped without affecting delivery to the others.
        """
        if not self._sinks:
            return 0

        payload = json.dumps(envelope)
        # Iterate over a copy: sinks may (un)subscribe while we await sends
        sinks = list(self._sinks)
        results = await asyncio.gather(
            *(self._send(sink, payload) for sink in sinks),
            return_exceptions=True,
        )

        delivered = 0
        for sink, result in zip(sinks, results):
            if isinstance(result, BaseException):
                log.warning("Dropping client after failed send: %r", result)
                self.unsubscribe(sink)
            else:
                delivered += 1
        return delivered

    async def _send(self, sink: Sink, payload: str) -> None:
        await asyncio.wait_for(sink.send_text(payload), timeout=self.send_timeout)
