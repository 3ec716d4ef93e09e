"""
Container monitor: turns the Docker event stream into deduplicated snapshots.

Architecture:
  1. A session subscribes to the event stream and pulls the full container
     state straight away, so the callback always sees the initial snapshot.
  2. An EventPump thread copies raw events from the (blocking) docker-py
     stream into a queue. Everything else happens on the thread that called
     run(): arrivals, timer expiry, pulls and callbacks are handled strictly
     one at a time.
  3. A RefreshGate decides when the next pull is due (debounce, max debounce,
     idle refresh).
  4. Each pull lists and inspects every container, applies the filter and
     digests the result. The callback only runs when the digest differs from
     the last delivered one.
  5. With reconnect configured, sessions are restarted by ReconnectSupervisor.

Thread Safety:
  - stop() may be called from any thread (signal handlers included)
  - the callback is never invoked concurrently by the monitor
  - a slow callback delays the handling of the next event

Error Handling:
  - stream errors, listing errors and pull timeouts -> TransportError
  - a container that fails to inspect is logged and left out
  - exceptions raised by the callback propagate out of run() unchanged
"""

import logging
import queue
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from .backend import DockerBackend
from .config import MonitorConfig, ReconnectConfig
from .errors import Cancelled, TransportError
from .filters import accept_all
from .gate import RefreshGate, Trigger
from .hashing import hash_containers
from .model import Container
from .reconnect import ReconnectSupervisor

logger = logging.getLogger(__name__)

Callback = Callable[[List[Container]], None]

# Upper bound on a single wait, so a stop_event set directly (without
# calling stop()) is still noticed promptly.
POLL_INTERVAL = 0.5

_ARRIVAL = "arrival"
_ERROR = "error"
_CLOSED = "closed"
_WAKE = "wake"


class EventPump(threading.Thread):
    """Copies events from a blocking stream into a queue."""

    def __init__(self, stream: Iterable[Dict[str, Any]], out: queue.Queue):
        super().__init__(daemon=True, name="dockwatch-events")
        self.stream = stream
        self.out = out

    def run(self) -> None:
        try:
            for event in self.stream:
                self.out.put((_ARRIVAL, event))
        except Exception as e:
            self.out.put((_ERROR, e))
        else:
            self.out.put((_CLOSED, None))


class Monitor:
    """Watches a state source and reports changes to `callback`.

    `source` is anything with ``events()``, ``list_container_ids()`` and
    ``inspect_container(id)``; see backend.DockerBackend.
    """

    def __init__(self, callback: Callback, source, config: Optional[MonitorConfig] = None,
                 stop_event: Optional[threading.Event] = None,
                 log: Optional[logging.Logger] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.callback = callback
        self.source = source
        self.config = config or MonitorConfig()
        self.config.validate()
        self.filter = self.config.filter or accept_all()
        self.log = log or logger
        self.clock = clock

        self._stop = stop_event or threading.Event()
        self._queue: Optional[queue.Queue] = None
        self._cursor: Optional[int] = None

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Request cancellation; run() raises Cancelled shortly after."""
        self._stop.set()
        q = self._queue
        if q is not None:
            q.put((_WAKE, None))

    def _check_stop(self) -> None:
        if self._stop.is_set():
            raise Cancelled("monitor stopped")

    def run(self) -> None:
        """Block until stopped (Cancelled) or a fatal error occurs."""
        if self.config.reconnect is None:
            self.run_session()
            return
        supervisor = ReconnectSupervisor(self.config.reconnect, self._stop,
                                         clock=self.clock, log=self.log)
        supervisor.run(self.run_session)

    def run_session(self) -> None:
        """One subscribe-and-watch lifetime. Always ends with an exception."""
        self._check_stop()
        stream = self.source.events()
        events: queue.Queue = queue.Queue()
        self._queue = events
        pump = EventPump(stream, events)
        pump.start()
        self.log.info("Subscribed to docker events")

        try:
            # initial state, also after every reconnect
            self.refresh()

            cfg = self.config
            gate = RefreshGate(cfg.debounce, cfg.max_debounce, cfg.max_idle, now=self.clock())
            while True:
                self._check_stop()
                timeout = min(gate.timeout(self.clock()), POLL_INTERVAL)
                try:
                    kind, payload = events.get(timeout=timeout)
                except queue.Empty:
                    kind, payload = None, None
                self._check_stop()

                if kind == _ARRIVAL:
                    self._log_event(payload)
                    gate.arrival(self.clock())
                elif kind == _ERROR:
                    raise TransportError(f"Failed to stream events: {payload}") from payload
                elif kind == _CLOSED:
                    raise TransportError("Docker event stream closed")

                trigger = gate.poll(self.clock())
                if trigger is None:
                    continue
                if trigger is Trigger.MAX_DEBOUNCE:
                    self.log.debug(f"Maximum debounce time exceeded ({cfg.max_debounce}s), refreshing")
                elif trigger is Trigger.IDLE:
                    self.log.debug(f"Maximum idle time exceeded ({cfg.max_idle}s), refreshing")
                self.refresh()
        finally:
            self._queue = None
            self._close_stream(stream)
            pump.join(timeout=1.0)

    def _close_stream(self, stream) -> None:
        close = getattr(stream, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception as e:
            self.log.warning(f"Error while closing docker event stream: {e}")

    def _log_event(self, event: Any) -> None:
        if isinstance(event, dict):
            actor = (event.get("Actor") or {}).get("ID", "")
            self.log.debug(
                f"Received event from docker: type={event.get('Type')} "
                f"action={event.get('Action')} actor={actor}"
            )
        else:
            self.log.debug(f"Received event from docker: {event!r}")

    def refresh(self) -> bool:
        """Pull, filter and digest; invoke the callback if anything changed.

        Returns True when the callback was invoked.
        """
        try:
            containers = self._pull()
        except TransportError as e:
            self.log.warning(f"Failed to refresh containers: {e}")
            raise

        digest = hash_containers(containers)
        if self._cursor is not None and digest == self._cursor:
            self.log.debug("Container state unchanged, not invoking callback")
            return False

        self.log.debug(f"Container state changed, invoking callback ({len(containers)} containers)")
        # set before calling back, so a failing callback is not re-delivered
        self._cursor = digest
        self.callback(containers)
        return True

    def _pull(self) -> List[Container]:
        """Run _gather() on a worker thread, bounded by pull_timeout.

        A pull that times out cannot be interrupted: its worker is abandoned and
        may keep talking to the source while a later pull runs. Sources should
        bound each request themselves; run() and the command line create the
        DockerBackend with a docker-py request timeout equal to pull_timeout.
        """
        timeout = self.config.pull_timeout
        if timeout is None:
            return self._gather()

        result: Dict[str, Any] = {}

        def target():
            try:
                result['value'] = self._gather()
            except Exception as e:
                result['error'] = e

        worker = threading.Thread(target=target, daemon=True, name="dockwatch-pull")
        worker.start()
        worker.join(timeout)
        if worker.is_alive():
            raise TransportError(f"Timed out after {timeout}s refreshing containers")
        if 'error' in result:
            raise result['error']
        return result['value']

    def _gather(self) -> List[Container]:
        containers = []
        for container_id in self.source.list_container_ids():
            try:
                container = self.source.inspect_container(container_id)
            except TransportError as e:
                self.log.warning(f"Failed to inspect container {container_id}: {e}")
                continue
            if self.filter(container):
                containers.append(container)
        return containers


def run(callback: Callback, source=None, *,
        filter: Optional[Callable[[Container], bool]] = None,
        debounce: float = 0.1,
        max_debounce: float = 5.0,
        max_idle: float = 30.0,
        pull_timeout: Optional[float] = 30.0,
        reconnect: Optional[ReconnectConfig] = None,
        config: Optional[MonitorConfig] = None,
        stop_event: Optional[threading.Event] = None,
        log: Optional[logging.Logger] = None) -> None:
    """Monitor Docker containers and call `callback` whenever the filtered set changes.

    The initial state is delivered immediately. Blocks until `stop_event` is
    set (raises Cancelled) or a fatal error occurs. Passing `config` overrides
    the individual timing keyword arguments. Without `source`, a DockerBackend
    is created from the environment and closed on return.
    """
    if config is None:
        config = MonitorConfig(
            debounce=debounce,
            max_debounce=max_debounce,
            max_idle=max_idle,
            pull_timeout=pull_timeout,
            filter=filter,
            reconnect=reconnect,
        )

    owned = None
    if source is None:
        source = owned = DockerBackend(timeout=config.pull_timeout)

    try:
        monitor = Monitor(callback, source, config, stop_event=stop_event, log=log)
        (log or logger).debug("Entering main event loop")
        monitor.run()
    finally:
        if owned is not None:
            owned.close()
