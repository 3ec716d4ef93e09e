"""
Order-insensitive structural digests used for change detection.

Every object gets a 64-bit digest. Scalar fields are fed into blake2b in a
fixed order, each prefixed with its length so that ("ab", "c") and
("a", "bc") differ. Unordered members (labels, networks, ports, aliases and
the snapshot itself) are digested one by one and folded by addition modulo
2**64, which does not depend on order and, unlike XOR, does not let two equal
members cancel each other out. The empty fold is 0, and None collections are
folded exactly like empty ones; likewise a None string field digests as "".

Digests only detect change; a collision suppresses one callback and is an
accepted risk.
"""

import hashlib
import struct
from typing import Iterable, Mapping, Optional

from .model import Container, Network, Port

_MASK = (1 << 64) - 1
_U64 = struct.Struct("<Q")


def _new():
    return hashlib.blake2b(digest_size=8)


def _feed(h, value: Optional[str]) -> None:
    data = (value or "").encode("utf-8")
    h.update(_U64.pack(len(data)))
    h.update(data)


def _feed_int(h, value: int) -> None:
    h.update(_U64.pack(value & _MASK))


def _finish(h) -> int:
    return _U64.unpack(h.digest())[0]


def fold(digests: Iterable[int]) -> int:
    """Combine digests without regard to order."""
    total = 0
    for d in digests:
        total = (total + d) & _MASK
    return total


def hash_labels(labels: Optional[Mapping[str, str]]) -> int:
    if not labels:
        return 0

    def pair(key: str, value: str) -> int:
        h = _new()
        _feed(h, key)
        _feed(h, value)
        return _finish(h)

    return fold(pair(k, v) for k, v in labels.items())


def hash_aliases(aliases: Optional[Iterable[str]]) -> int:
    if not aliases:
        return 0

    def one(alias: str) -> int:
        h = _new()
        _feed(h, alias)
        return _finish(h)

    # aliases are a set; duplicates carry no meaning
    return fold(one(a) for a in set(aliases))


def hash_network(network: Network) -> int:
    h = _new()
    _feed(h, network.name)
    _feed(h, network.id)
    _feed(h, network.ip_address)
    _feed(h, network.ip6_address)
    _feed(h, network.gateway)
    _feed_int(h, hash_aliases(network.aliases))
    return _finish(h)


def hash_port(port: Port) -> int:
    h = _new()
    _feed(h, port.host_ip)
    _feed_int(h, port.host_port)
    _feed_int(h, port.container_port)
    _feed(h, port.protocol)
    return _finish(h)


def hash_container(container: Container) -> int:
    h = _new()
    _feed(h, container.id)
    _feed(h, container.name)
    _feed(h, container.image)
    _feed(h, container.state)
    _feed_int(h, hash_labels(container.labels))
    _feed_int(h, fold(hash_network(n) for n in container.networks or ()))
    _feed_int(h, fold(hash_port(p) for p in container.ports or ()))
    return _finish(h)


def hash_containers(containers: Optional[Iterable[Container]]) -> int:
    """Digest a whole snapshot; the order of `containers` is irrelevant."""
    if not containers:
        return 0
    return fold(hash_container(c) for c in containers)
