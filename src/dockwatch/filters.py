"""
Composable container filters.

A filter is an immutable predicate object with one operation,
``evaluate(container) -> bool``. Filters are also callable, so anything that
accepts a plain ``Callable[[Container], bool]`` accepts them too.

Leaf filters:
  - LabelExists(key): the label is present, whatever its value
  - LabelEquals(key, value): the label is present and equal (case-sensitive)
  - StateEquals(state): exact match on the container state

Composites:
  - All(*filters): every child matches; true when empty
  - Any(*filters): at least one child matches; false when empty
  - Not(filter): negation

``a & b``, ``a | b`` and ``~a`` build the same composites.

Filters can also be described in YAML and turned into objects with
``from_config``::

    all:
      - label_exists: traefik.enable
      - not: {state: exited}
      - label_equals: {key: env, value: prod}
"""

from typing import Callable, Mapping, Tuple

from .errors import ConfigError
from .model import Container


class Filter:
    """Base class for container predicates."""

    __slots__ = ()

    def evaluate(self, container: Container) -> bool:
        raise NotImplementedError

    def __call__(self, container: Container) -> bool:
        return self.evaluate(container)

    def __and__(self, other: "Filter") -> "Filter":
        return All(self, other)

    def __or__(self, other: "Filter") -> "Filter":
        return Any(self, other)

    def __invert__(self) -> "Filter":
        return Not(self)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def _key(self) -> Tuple:
        raise NotImplementedError

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash((type(self).__name__, self._key()))


class All(Filter):
    __slots__ = ("filters",)

    def __init__(self, *filters: Filter):
        object.__setattr__(self, "filters", tuple(filters))

    def evaluate(self, container: Container) -> bool:
        for f in self.filters:
            if not f(container):
                return False
        return True

    def _key(self):
        return self.filters

    def __repr__(self):
        return f"All({', '.join(map(repr, self.filters))})"


class Any(Filter):
    __slots__ = ("filters",)

    def __init__(self, *filters: Filter):
        object.__setattr__(self, "filters", tuple(filters))

    def evaluate(self, container: Container) -> bool:
        for f in self.filters:
            if f(container):
                return True
        return False

    def _key(self):
        return self.filters

    def __repr__(self):
        return f"Any({', '.join(map(repr, self.filters))})"


class Not(Filter):
    __slots__ = ("filter",)

    def __init__(self, inner: Filter):
        object.__setattr__(self, "filter", inner)

    def evaluate(self, container: Container) -> bool:
        return not self.filter(container)

    def _key(self):
        return (self.filter,)

    def __repr__(self):
        return f"Not({self.filter!r})"


class LabelExists(Filter):
    __slots__ = ("key",)

    def __init__(self, key: str):
        object.__setattr__(self, "key", key)

    def evaluate(self, container: Container) -> bool:
        return container.has_label(self.key)

    def _key(self):
        return (self.key,)

    def __repr__(self):
        return f"LabelExists({self.key!r})"


class LabelEquals(Filter):
    __slots__ = ("key", "value")

    def __init__(self, key: str, value: str):
        object.__setattr__(self, "key", key)
        object.__setattr__(self, "value", value)

    def evaluate(self, container: Container) -> bool:
        return container.has_label(self.key) and container.labels[self.key] == self.value

    def _key(self):
        return (self.key, self.value)

    def __repr__(self):
        return f"LabelEquals({self.key!r}, {self.value!r})"


class StateEquals(Filter):
    __slots__ = ("state",)

    def __init__(self, state: str):
        object.__setattr__(self, "state", state)

    def evaluate(self, container: Container) -> bool:
        return container.state == self.state

    def _key(self):
        return (self.state,)

    def __repr__(self):
        return f"StateEquals({self.state!r})"


def accept_all() -> Filter:
    return All()


def _children(value: object, op: str) -> list:
    if not isinstance(value, list):
        raise ConfigError(f"'{op}' expects a list of filters, got {type(value).__name__}")
    return [from_config(v) for v in value]


def _scalar(value: object, op: str) -> str:
    # YAML reads unquoted true/false as bools; Docker labels spell them lowercase
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ConfigError(f"'{op}' expects a string, got {type(value).__name__}")


def _label_equals(value: object) -> Filter:
    if isinstance(value, Mapping) and set(value) == {"key", "value"}:
        return LabelEquals(_scalar(value["key"], "label_equals"), _scalar(value["value"], "label_equals"))
    if isinstance(value, Mapping) and len(value) == 1:
        # shorthand: {label_equals: {env: prod}}
        (key, val), = value.items()
        return LabelEquals(_scalar(key, "label_equals"), _scalar(val, "label_equals"))
    raise ConfigError(f"invalid label_equals filter: {value!r}")


_BUILDERS: Mapping[str, Callable[[object], Filter]] = {
    "all": lambda v: All(*_children(v, "all")),
    "any": lambda v: Any(*_children(v, "any")),
    "not": lambda v: Not(from_config(v)),
    "label_exists": lambda v: LabelExists(_scalar(v, "label_exists")),
    "label_equals": _label_equals,
    "state": lambda v: StateEquals(_scalar(v, "state")),
}


def from_config(data: object) -> Filter:
    """Build a filter tree from a nested mapping (as loaded from YAML).

    Each mapping holds exactly one operator key. ``None`` or an empty mapping
    gives the accept-all filter.
    """
    if data is None:
        return accept_all()
    if not isinstance(data, Mapping):
        raise ConfigError(f"filter must be a mapping, got {type(data).__name__}")
    if not data:
        return accept_all()
    if len(data) != 1:
        raise ConfigError(f"filter mapping must have exactly one operator, got {sorted(data)}")
    (op, value), = data.items()
    builder = _BUILDERS.get(op)
    if builder is None:
        raise ConfigError(f"unknown filter operator: {op!r}")
    return builder(value)
