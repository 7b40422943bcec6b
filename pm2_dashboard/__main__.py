"""Run the PM2 dashboard server.

Usage:
    python -m pm2_dashboard [--host HOST] [--port PORT] [--env-file FILE]

Connects to the PM2 daemon first; if that fails the process exits with
status 2.  Otherwise it serves until SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import signal
import sys
from pathlib import Path

import uvicorn

from .config import Config
from .errors import ConfigError, ProcessManagerError
from .pm2_client import Pm2Client
from .server import create_app

log = logging.getLogger(__name__)

EXIT_PM2_UNAVAILABLE = 2


async def _run(config: Config) -> int:
    manager = Pm2Client(binary=config.pm2_bin, timeout=config.pm2_timeout)
    try:
        await manager.connect()
    except ProcessManagerError as exc:
        log.error("Error connecting to PM2: %s", exc)
        return EXIT_PM2_UNAVAILABLE

    app = create_app(manager, config)
    uvi = uvicorn.Server(uvicorn.Config(
        app, host=config.host, port=config.port, log_level="warning",
    ))

    # Use _serve() instead of serve() so uvicorn doesn't install its own
    # signal handlers over ours.
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    serve_task = asyncio.create_task(uvi._serve())
    log.info(
        "Server is listening on ws://%s:%d%s",
        config.host, config.port, config.ws_path,
    )

    waiter = asyncio.create_task(shutdown.wait())
    await asyncio.wait({serve_task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    if shutdown.is_set():
        log.info("Signal received, shutting down")
    waiter.cancel()

    uvi.should_exit = True
    await serve_task
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Real-time PM2 dashboard server")
    parser.add_argument("--host", help="Interface to bind (default: DASHBOARD_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port to listen on (default: DASHBOARD_PORT or 1999)")
    parser.add_argument("--env-file", type=Path, help="Load settings from this .env file")
    parser.add_argument(
        "--log-level", default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [pm2-dashboard] %(levelname)s %(message)s",
    )

    try:
        config = Config.from_env(args.env_file)
    except ConfigError as exc:
        parser.error(str(exc))

    overrides = {
        k: v for k, v in (("host", args.host), ("port", args.port)) if v is not None
    }
    if overrides:
        config = dataclasses.replace(config, **overrides)

    sys.exit(asyncio.run(_run(config)))


if __name__ == "__main__":
    main()
