"""
dockwatch - deduplicated, rate-limited snapshots of Docker container state.

dockwatch subscribes to the Docker event stream, coalesces bursts of events,
re-reads the state of every container and calls you back only when the
(filtered) set of containers actually changed. Useful for config generators,
DNS updaters and reverse-proxy reconcilers that want "current state" rather
than raw events.

Features:
  - Debounced refresh with an upper bound under event storms
  - Periodic idle refresh in case the event stream silently stalls
  - Order-insensitive change detection (no callback for no-op events)
  - Composable filters on labels and state
  - Optional auto-reconnect with exponential backoff

Main Components:
  - monitor.py: session loop, pull, dedup and callback (Monitor, run)
  - gate.py: debounce state machine
  - reconnect.py: backoff supervisor
  - hashing.py: structural digests
  - filters.py: filter algebra
  - backend.py: docker-py state source

Usage:
  import dockwatch

  def on_change(containers):
      ...

  dockwatch.run(on_change, filter=dockwatch.StateEquals("running"))

Dependencies:
  - docker>=7.0.0
  - PyYAML (configuration files)
  - Python 3.10+
"""

import os
from pathlib import Path

from .backend import DockerBackend
from .config import AppConfig, ConfigManager, MonitorConfig, ReconnectConfig, load_config
from .errors import Cancelled, ConfigError, RetryExhausted, TransportError, WatchError
from .filters import All, Any, Filter, LabelEquals, LabelExists, Not, StateEquals
from .hashing import hash_container, hash_containers
from .model import Container, Network, Port
from .monitor import Monitor, run

__version__ = "0.1.0"

__all__ = [
    "All", "Any", "AppConfig", "Cancelled", "ConfigError", "ConfigManager", "Container",
    "DockerBackend", "Filter", "LabelEquals", "LabelExists", "Monitor", "MonitorConfig",
    "Network", "Not", "Port", "ReconnectConfig", "RetryExhausted", "StateEquals",
    "TransportError", "WatchError", "get_log_path", "hash_container", "hash_containers",
    "load_config", "run",
]


def get_log_path() -> str:
    """
    Get the log file path following XDG Base Directory spec.

    Returns XDG_DATA_HOME/dockwatch/logs/dockwatch.log with fallback to /tmp.
    Creates directory if it doesn't exist.
    """
    xdg_data_home = os.environ.get('XDG_DATA_HOME')
    if not xdg_data_home:
        xdg_data_home = Path.home() / '.local' / 'share'
    else:
        xdg_data_home = Path(xdg_data_home)

    log_dir = xdg_data_home / 'dockwatch' / 'logs'

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        return str(log_dir / 'dockwatch.log')
    except (PermissionError, OSError):
        return '/tmp/dockwatch.log'
