"""
Docker state source built on docker-py.

This module is the only place that talks to the Docker daemon. It provides
the three operations the monitor needs:
  - events(): live event stream, filtered server-side to the container and
    network events that can change what a snapshot looks like
  - list_container_ids(): ids of all containers, running or not
  - inspect_container(id): full detail for one container, as a Container

Raw inspect records are translated by convert_container(). Any error coming
out of docker-py is re-raised as TransportError so the monitor only has one
kind of failure to handle.

Dependencies:
  - docker>=7.0.0 (docker-py client, low-level APIClient calls)
"""

import functools
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

import docker
from docker.errors import DockerException, NotFound

from .errors import TransportError
from .model import Container, Network, Port

logger = logging.getLogger(__name__)

# Docker events that may change the snapshot. The daemon does the filtering;
# anything else that slips through is still just an arrival to the monitor.
EVENT_TYPES = ["container", "network"]
EVENT_ACTIONS = [
    "create", "start", "stop", "die", "kill", "pause", "unpause",
    "rename", "update", "destroy", "connect", "disconnect",
]
EVENT_FILTERS = {"type": EVENT_TYPES, "event": EVENT_ACTIONS}


def docker_errors(action: str) -> Callable:
    """
    Decorator for Docker API methods that turns docker-py failures into
    TransportError.

    requests/urllib3 connection errors are OSError subclasses and are wrapped
    as well.

    Usage:
        @docker_errors("list containers")
        def list_container_ids(self) -> List[str]:
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return func(*args, **kwargs)
            except TransportError:
                raise
            except (DockerException, OSError) as e:
                raise TransportError(f"Failed to {action}: {e}") from e
        return wrapper
    return decorator


class DockerBackend:
    def __init__(self, client: Optional[docker.DockerClient] = None, timeout: Optional[float] = None):
        # docker-py applies `timeout` to every request except the event stream
        self._owns_client = client is None
        if client is None:
            try:
                kwargs = {"timeout": timeout} if timeout else {}
                client = docker.from_env(**kwargs)
            except DockerException as e:
                raise TransportError(f"Failed to create docker client: {e}") from e
        self.client = client

    @docker_errors("subscribe to docker events")
    def events(self) -> Iterator[Dict[str, Any]]:
        """Open the event stream. The returned stream has a close() method."""
        return self.client.events(decode=True, filters=EVENT_FILTERS)

    @docker_errors("list containers")
    def list_container_ids(self) -> List[str]:
        return [summary["Id"] for summary in self.client.api.containers(all=True)]

    @docker_errors("inspect container")
    def inspect_container(self, container_id: str) -> Container:
        try:
            attrs = self.client.api.inspect_container(container_id)
        except NotFound as e:
            # removed between list and inspect
            raise TransportError(f"Container {container_id} no longer exists") from e
        return convert_container(attrs)

    def close(self) -> None:
        if self._owns_client:
            try:
                self.client.close()
            except (DockerException, OSError) as e:
                logger.warning(f"Error while closing docker client: {e}")


def _parse_port(value: Any) -> Optional[int]:
    try:
        port = int(value)
    except (TypeError, ValueError):
        return None
    if 0 <= port <= 65535:
        return port
    return None


def convert_container(attrs: Dict[str, Any]) -> Container:
    """Translate a docker inspect record into a Container."""
    config = attrs.get('Config') or {}
    state = attrs.get('State') or {}
    settings = attrs.get('NetworkSettings') or {}

    networks = []
    for name, net in (settings.get('Networks') or {}).items():
        net = net or {}
        networks.append(Network(
            name=name,
            id=net.get('NetworkID') or "",
            ip_address=net.get('IPAddress') or "",
            ip6_address=net.get('GlobalIPv6Address') or "",
            gateway=net.get('Gateway') or "",
            aliases=list(net.get('Aliases') or []),
        ))

    ports = []
    for port_proto, bindings in (settings.get('Ports') or {}).items():
        parts = port_proto.split('/')
        if len(parts) != 2:
            continue
        container_port = _parse_port(parts[0])
        if container_port is None:
            continue
        # exposed but unpublished ports have no bindings
        for binding in bindings or []:
            host_port = _parse_port(binding.get('HostPort'))
            if host_port is None:
                continue
            ports.append(Port(
                host_ip=binding.get('HostIp') or "",
                host_port=host_port,
                container_port=container_port,
                protocol=parts[1],
            ))

    return Container(
        id=attrs.get('Id') or "",
        name=(attrs.get('Name') or "").lstrip('/'),
        image=config.get('Image') or "",
        state=state.get('Status') or "",
        labels=dict(config.get('Labels') or {}),
        networks=networks,
        ports=ports,
    )
