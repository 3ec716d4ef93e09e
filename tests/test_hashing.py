import itertools
import random

from dockwatch.hashing import hash_container, hash_containers, hash_network, hash_port
from dockwatch.model import Container, Network, Port


def make_container(**overrides):
    fields = dict(
        id="abc123",
        name="web",
        image="nginx:latest",
        state="running",
        labels={"app": "web", "env": "prod", "tier": "front"},
        networks=[
            Network(name="bridge", id="n1", ip_address="172.17.0.2", gateway="172.17.0.1",
                    aliases=["web", "www", "frontend"]),
            Network(name="backend", id="n2", ip_address="10.0.0.5", ip6_address="fd00::5",
                    gateway="10.0.0.1", aliases=["web-be"]),
        ],
        ports=[
            Port(host_ip="0.0.0.0", host_port=8080, container_port=80, protocol="tcp"),
            Port(host_ip="0.0.0.0", host_port=8443, container_port=443, protocol="tcp"),
            Port(host_ip="::", host_port=53, container_port=53, protocol="udp"),
        ],
    )
    fields.update(overrides)
    return Container(**fields)


def test_hash_is_deterministic():
    assert hash_container(make_container()) == hash_container(make_container())
    assert 0 <= hash_container(make_container()) < 2 ** 64


def test_label_order_does_not_matter():
    a = make_container(labels={"app": "web", "env": "prod", "tier": "front"})
    b = make_container(labels={"tier": "front", "app": "web", "env": "prod"})
    assert hash_container(a) == hash_container(b)


def test_network_and_port_order_does_not_matter():
    base = make_container()
    for networks in itertools.permutations(base.networks):
        for ports in itertools.permutations(base.ports):
            shuffled = make_container(networks=list(networks), ports=list(ports))
            assert hash_container(shuffled) == hash_container(base)


def test_alias_order_does_not_matter():
    a = Network(name="bridge", aliases=["web", "www", "frontend"])
    b = Network(name="bridge", aliases=["frontend", "web", "www"])
    assert hash_network(a) == hash_network(b)


def test_collection_order_does_not_matter():
    containers = [make_container(id=f"c{i}", name=f"name{i}") for i in range(6)]
    expected = hash_containers(containers)
    rng = random.Random(42)
    for _ in range(20):
        shuffled = list(containers)
        rng.shuffle(shuffled)
        assert hash_containers(shuffled) == expected


def test_none_and_empty_hash_the_same():
    empty = make_container(labels={}, networks=[], ports=[])
    nil = make_container(labels=None, networks=None, ports=None)
    assert hash_container(empty) == hash_container(nil)
    assert hash_network(Network(name="n", aliases=None)) == hash_network(Network(name="n", aliases=[]))
    assert hash_containers([]) == hash_containers(None) == 0


def test_none_string_fields_hash_like_empty():
    assert hash_container(make_container(image=None, state=None)) == hash_container(make_container(image="", state=""))
    assert hash_network(Network(name="n", gateway=None, ip6_address=None)) == hash_network(Network(name="n"))
    assert hash_port(Port(host_ip=None, host_port=80, container_port=80)) == \
        hash_port(Port(host_ip="", host_port=80, container_port=80))


def test_every_field_matters():
    base = hash_container(make_container())
    variants = [
        make_container(id="other"),
        make_container(name="other"),
        make_container(image="nginx:1.25"),
        make_container(state="exited"),
        make_container(labels={"app": "web", "env": "dev", "tier": "front"}),
        make_container(labels={"app": "web", "env": "prod"}),
        make_container(networks=[Network(name="bridge", id="n1", ip_address="172.17.0.3")]),
        make_container(networks=[]),
        make_container(ports=[Port(host_ip="0.0.0.0", host_port=8081, container_port=80)]),
        make_container(ports=[]),
    ]
    hashes = {hash_container(v) for v in variants}
    assert base not in hashes
    assert len(hashes) == len(variants)


def test_network_fields_matter():
    base = Network(name="bridge", id="n1", ip_address="172.17.0.2", ip6_address="fd00::2",
                   gateway="172.17.0.1", aliases=["web"])
    changed = [
        Network(name="host", id="n1", ip_address="172.17.0.2", ip6_address="fd00::2", gateway="172.17.0.1", aliases=["web"]),
        Network(name="bridge", id="n9", ip_address="172.17.0.2", ip6_address="fd00::2", gateway="172.17.0.1", aliases=["web"]),
        Network(name="bridge", id="n1", ip_address="172.17.0.9", ip6_address="fd00::2", gateway="172.17.0.1", aliases=["web"]),
        Network(name="bridge", id="n1", ip_address="172.17.0.2", ip6_address="fd00::9", gateway="172.17.0.1", aliases=["web"]),
        Network(name="bridge", id="n1", ip_address="172.17.0.2", ip6_address="fd00::2", gateway="172.17.0.9", aliases=["web"]),
        Network(name="bridge", id="n1", ip_address="172.17.0.2", ip6_address="fd00::2", gateway="172.17.0.1", aliases=["www"]),
    ]
    for n in changed:
        assert hash_network(n) != hash_network(base)


def test_port_fields_matter():
    base = Port(host_ip="0.0.0.0", host_port=8080, container_port=80, protocol="tcp")
    assert hash_port(base) != hash_port(Port("127.0.0.1", 8080, 80, "tcp"))
    assert hash_port(base) != hash_port(Port("0.0.0.0", 8081, 80, "tcp"))
    assert hash_port(base) != hash_port(Port("0.0.0.0", 8080, 81, "tcp"))
    assert hash_port(base) != hash_port(Port("0.0.0.0", 8080, 80, "udp"))
    # host and container port swapped
    assert hash_port(Port("", 80, 8080)) != hash_port(Port("", 8080, 80))


def test_field_boundaries_are_respected():
    a = make_container(name="ab", image="c")
    b = make_container(name="a", image="bc")
    assert hash_container(a) != hash_container(b)

    labels_a = make_container(labels={"ab": "c"})
    labels_b = make_container(labels={"a": "bc"})
    assert hash_container(labels_a) != hash_container(labels_b)


def test_duplicate_containers_do_not_cancel_out():
    c = make_container()
    assert hash_containers([c, c]) != hash_containers([])


def test_adding_or_removing_a_container_changes_the_hash():
    a = make_container(id="a")
    b = make_container(id="b")
    assert hash_containers([a]) != hash_containers([a, b])
    assert hash_containers([a, b]) != hash_containers([b])
