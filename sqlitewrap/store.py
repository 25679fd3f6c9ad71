"""Ordered parameter container bound positionally to ``?`` placeholders."""

from .convert import to_value
from .errors import InterfaceError


class Store:
    """Parameters for one query invocation, in binding order.

    ``add`` appends and returns the store itself so calls chain::

        Store().add("Ahsoka").add(102).add(3.1415).add(b"\\x01\\x02")

    Position ``i`` (0-based) binds to placeholder ``i + 1``. Once a store has
    been handed to a bind it is consumed: it can be bound again elsewhere but
    no longer grows.
    """

    __slots__ = ("_values", "_consumed")

    def __init__(self, capacity=None):
        # Python lists grow on their own; capacity is accepted for parity
        # with with_capacity() and only validated.
        if capacity is not None and capacity < 0:
            raise ValueError("capacity must be non-negative")
        self._values = []
        self._consumed = False

    @classmethod
    def with_capacity(cls, capacity):
        return cls(capacity)

    @classmethod
    def of(cls, *objs):
        return cls(len(objs)).extend(objs)

    def add(self, obj):
        if self._consumed:
            raise InterfaceError("Store was already bound; build a new one")
        self._values.append(to_value(obj))
        return self

    def extend(self, objs):
        for obj in objs:
            self.add(obj)
        return self

    def is_empty(self):
        return not self._values

    def values(self):
        return tuple(self._values)

    @property
    def consumed(self):
        return self._consumed

    def _consume(self):
        self._consumed = True
        return self.values()

    def __len__(self):
        return len(self._values)

    def __iter__(self):
        return iter(tuple(self._values))

    def __getitem__(self, index):
        return self._values[index]

    def __eq__(self, other):
        if isinstance(other, Store):
            return self._values == other._values
        return NotImplemented

    __hash__ = None

    def __repr__(self):
        return f"Store({self._values!r})"
