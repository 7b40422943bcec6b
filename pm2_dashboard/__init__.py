"""Real-time PM2 dashboard server.

Polls PM2 for process state, pushes snapshots to every connected WebSocket
client, and accepts control commands:
  - start / stop / restart / reset a single process (by pm_id)
  - start-all / stop-all / restart-all / reset-all
  - clear: truncate a process's stdout/stderr log files

Run standalone:
    python -m pm2_dashboard
"""

from pm2_dashboard.config import Config
from pm2_dashboard.pm2_client import Pm2Client, ProcessManager
from pm2_dashboard.server import create_app

__all__ = ["Config", "Pm2Client", "ProcessManager", "create_app"]
