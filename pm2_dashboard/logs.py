"""Log tail reading and truncation for PM2 output files.

PM2 writes each process's stdout/stderr to flat files on disk.  Reads are
done in a worker thread so a slow disk never stalls the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections import deque

from .errors import LogReadError

log = logging.getLogger(__name__)

DEFAULT_TAIL_LINES = 100


def _read_tail(path: str, lines: int) -> str:
    # Only "\n" ends a line; a bare "\r" (progress redraws) stays in the text.
    # The bounded deque keeps huge logs out of memory.
    with open(path, encoding="utf-8", errors="replace", newline="\n") as f:
        tail = deque(f, maxlen=lines)
    return "\n".join(line.removesuffix("\n") for line in tail)


class LogTailLoader:
    def __init__(self, lines: int = DEFAULT_TAIL_LINES) -> None:
        self.lines = max(1, lines)

    async def load_tail(self, path: str | None) -> str:
        """Return the last ``self.lines`` lines of ``path``, newline-joined.

        A trailing newline terminates the last line rather than starting
        an empty one.  Raises LogReadError if the file cannot be read.
        """
        if not path:
            raise LogReadError("<none>", FileNotFoundError("no log path"))
        try:
            return await asyncio.to_thread(_read_tail, path, self.lines)
        except OSError as exc:
            raise LogReadError(path, exc) from exc

    async def truncate(self, path: str) -> None:
        try:
            await asyncio.to_thread(os.truncate, path, 0)
        except OSError as exc:
            raise LogReadError(path, exc) from exc

    async def truncate_all(self, paths: list[str]) -> list[str]:
        """Truncate every path independently; return those that were cleared.

        One failing file never prevents the others from being cleared.
        """
        results = await asyncio.gather(
            *(self.truncate(p) for p in paths), return_exceptions=True,
        )
        cleared: list[str] = []
        for path, result in zip(paths, results):
            if isinstance(result, BaseException):
                log.error("Error clearing log file %s: %s", path, result)
            else:
                log.info("Cleared log file %s", path)
                cleared.append(path)
        return cleared
