"""PM2 adapter: drives the ``pm2`` command-line tool as a subprocess.

The dashboard only needs a handful of PM2 operations, all of which the CLI
exposes: ``jlist`` for the process table (JSON), and ``start`` / ``stop`` /
``restart`` / ``reset`` addressed by numeric pm_id.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod

from .errors import ProcessManagerError
from .models import ProcessEntry

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ProcessManager(ABC):
    """The operations the dashboard needs from a process manager.

    Every method either returns or raises ProcessManagerError.
    """

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def list_processes(self) -> list[ProcessEntry]:
        ...

    @abstractmethod
    async def start(self, pm_id: int) -> None:
        ...

    @abstractmethod
    async def stop(self, pm_id: int) -> None:
        ...

    @abstractmethod
    async def restart(self, pm_id: int) -> None:
        ...

    @abstractmethod
    async def reset(self, pm_id: int) -> None:
        ...

    @abstractmethod
    async def describe(self, pm_id: int) -> list[ProcessEntry]:
        ...


def parse_jlist(output: str) -> list[ProcessEntry]:
    """Parse ``pm2 jlist`` output into entries.

    PM2 sometimes prints banner lines (update notices, daemon spawn
    messages) before the JSON, so only the last line that looks like a
    JSON array is parsed.
    """
    for line in reversed(output.splitlines()):
        line = line.strip()
        if line.startswith("["):
            break
    else:
        raise ProcessManagerError("pm2 jlist returned no process list")

    try:
        raw = json.loads(line)
    except json.JSONDecodeError as exc:
        raise ProcessManagerError(f"pm2 jlist returned invalid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise ProcessManagerError("pm2 jlist did not return a list")

    return [ProcessEntry.from_pm2(item) for item in raw if isinstance(item, dict)]


class Pm2Client(ProcessManager):
    def __init__(
        self,
        binary: str = "pm2",
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.binary = binary
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Make sure the PM2 daemon is reachable (spawning it if needed)."""
        await self._run("ping")

    async def list_processes(self) -> list[ProcessEntry]:
        return parse_jlist(await self._run("jlist"))

    async def start(self, pm_id: int) -> None:
        await self._run("start", str(pm_id), target=pm_id)

    async def stop(self, pm_id: int) -> None:
        await self._run("stop", str(pm_id), target=pm_id)

    async def restart(self, pm_id: int) -> None:
        await self._run("restart", str(pm_id), target=pm_id)

    async def reset(self, pm_id: int) -> None:
        await self._run("reset", str(pm_id), target=pm_id)

    async def describe(self, pm_id: int) -> list[ProcessEntry]:
        entries = [e for e in await self.list_processes() if e.pm_id == pm_id]
        if not entries:
            raise ProcessManagerError(
                f"process or namespace {pm_id} not found", target=pm_id,
            )
        return entries

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run(self, *args: str, target: int | None = None) -> str:
        """Run ``pm2 <args>`` and return stdout; raise on failure or timeout."""
        cmd = f"{self.binary} {' '.join(args)}"
        env = os.environ.copy()
        # Keep the output machine-readable
        env.setdefault("PM2_DISCRETE_MODE", "true")
        env["FORCE_COLOR"] = "0"

        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            raise ProcessManagerError(f"{cmd}: {exc}", target=target) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            raise ProcessManagerError(
                f"{cmd}: timed out after {self.timeout:g}s", target=target,
            ) from None

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise ProcessManagerError(
                f"{cmd}: exited with {proc.returncode}"
                + (f": {detail}" if detail else ""),
                target=target,
            )

        log.debug("%s ok", cmd)
        return stdout.decode("utf-8", errors="replace")
