"""
Snapshot data models for watched containers.

A Container is produced fresh on every pull and never mutated; the next pull
supersedes it wholesale. Collections (labels, networks, ports, aliases) may be
None when the daemon reports nothing, which is treated the same as empty.

Data Classes:
  - Container: identity, name, image, state, labels, networks, ports
  - Network: one network attachment of a container
  - Port: one published port binding
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Network:
    name: str
    id: str = ""
    ip_address: str = ""
    ip6_address: str = ""
    gateway: str = ""
    aliases: Optional[List[str]] = field(default_factory=list)  # DNS aliases, order irrelevant


@dataclass(frozen=True)
class Port:
    host_ip: str
    host_port: int
    container_port: int
    protocol: str = "tcp"  # tcp or udp


@dataclass(frozen=True)
class Container:
    id: str
    name: str
    image: str = ""
    state: str = ""  # running, exited, paused, ...
    labels: Optional[Dict[str, str]] = field(default_factory=dict)
    networks: Optional[List[Network]] = field(default_factory=list)
    ports: Optional[List[Port]] = field(default_factory=list)

    def has_label(self, key: str) -> bool:
        return bool(self.labels) and key in self.labels
