"""
Command-line entry point: ``python -m dockwatch [config.yaml]``.

Prints one block per delivered snapshot until interrupted. Mostly useful to
try out a filter or timing settings against a live daemon.
"""

import logging
import signal
import sys
from typing import List, Optional

from . import get_log_path
from .backend import DockerBackend
from .config import ConfigManager
from .errors import Cancelled, WatchError
from .model import Container
from .monitor import Monitor

logger = logging.getLogger("dockwatch")


def print_snapshot(containers: List[Container]) -> None:
    print(f"--- {len(containers)} containers")
    for c in containers:
        print(f"{c.name:30} {c.image:40} {c.state}")
    sys.stdout.flush()


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    manager = ConfigManager(argv[0] if argv else None)
    try:
        config = manager.load_config()
    except WatchError as e:
        print(f"dockwatch: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(filename=manager.get_custom_log_path() or get_log_path(),
                        level=manager.get_log_level(),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        backend = DockerBackend(timeout=config.monitor.pull_timeout)
    except WatchError as e:
        print(f"dockwatch: {e}", file=sys.stderr)
        return 1

    monitor = Monitor(print_snapshot, backend, config.monitor)

    def signal_handler(sig, frame):
        logger.info(f"Received signal {signal.Signals(sig).name}, shutting down")
        monitor.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        monitor.run()
    except Cancelled:
        return 0
    except WatchError as e:
        logger.error(f"Monitoring stopped: {e}")
        print(f"dockwatch: {e}", file=sys.stderr)
        return 1
    finally:
        backend.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
