"""Tagged values crossing the boundary to the native engine.

A :class:`Value` is one of five variants mirroring SQLite's fundamental
datatypes. Values are immutable; Text and Blob payloads are owned copies.
Conversions to and from Python objects live in :mod:`sqlitewrap.convert`.
"""

import datetime
import enum
import time

from .errors import DataError, InterfaceError

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class Type(enum.IntEnum):
    """Column type codes as reported by ``sqlite3_column_type``."""

    INT64 = 1
    FLOAT64 = 2
    TEXT = 3
    BLOB = 4
    NULL = 5

    @classmethod
    def from_native(cls, code):
        try:
            return cls(code)
        except ValueError:
            raise InterfaceError(f"Unknown native column type {code}") from None


class _NullMarker:
    """Explicit null parameter; ``None`` is accepted the same way."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "NULL"

    def __bool__(self):
        return False


NULL = _NullMarker()


class Timestamp:
    """Seconds since the Unix epoch, stored as an Int64 value."""

    __slots__ = ("_seconds",)

    def __init__(self, seconds):
        object.__setattr__(self, "_seconds", int(seconds))

    def __setattr__(self, name, value):
        raise AttributeError("Timestamp is immutable")

    @classmethod
    def now(cls):
        return cls(time.time())

    @property
    def value(self):
        return self._seconds

    def to_datetime(self):
        return datetime.datetime.fromtimestamp(self._seconds, tz=datetime.timezone.utc)

    def __int__(self):
        return self._seconds

    def __eq__(self, other):
        if isinstance(other, Timestamp):
            return self._seconds == other._seconds
        return NotImplemented

    def __lt__(self, other):
        if isinstance(other, Timestamp):
            return self._seconds < other._seconds
        return NotImplemented

    def __hash__(self):
        return hash(("Timestamp", self._seconds))

    def __repr__(self):
        return f"Timestamp({self._seconds})"


class Value:
    __slots__ = ("_type", "_payload")

    def __init__(self, type_, payload):
        object.__setattr__(self, "_type", Type(type_))
        object.__setattr__(self, "_payload", payload)

    def __setattr__(self, name, value):
        raise AttributeError("Value is immutable")

    # Variant constructors

    @classmethod
    def null(cls):
        return cls(Type.NULL, None)

    @classmethod
    def int64(cls, v):
        if isinstance(v, bool):
            v = int(v)
        if not isinstance(v, int):
            raise TypeError(f"int64 needs an int, got {type(v).__name__}")
        if v < INT64_MIN or v > INT64_MAX:
            raise DataError(f"Integer {v} out of signed 64-bit range")
        return cls(Type.INT64, v)

    @classmethod
    def float64(cls, v):
        if not isinstance(v, (int, float)) or isinstance(v, bool):
            raise TypeError(f"float64 needs a float, got {type(v).__name__}")
        return cls(Type.FLOAT64, float(v))

    @classmethod
    def text(cls, v):
        if not isinstance(v, str):
            raise TypeError(f"text needs a str, got {type(v).__name__}")
        return cls(Type.TEXT, v)

    @classmethod
    def blob(cls, v):
        if not isinstance(v, (bytes, bytearray, memoryview)):
            raise TypeError(f"blob needs bytes, got {type(v).__name__}")
        return cls(Type.BLOB, bytes(v))

    @classmethod
    def of(cls, obj):
        return convert.to_value(obj)

    # Introspection

    @property
    def kind(self):
        return self._type

    @property
    def payload(self):
        return self._payload

    @property
    def is_null(self):
        return self._type is Type.NULL

    # Extraction

    def as_int(self):
        return convert.to_int(self)

    def as_float(self):
        return convert.to_float(self)

    def as_text(self):
        return convert.to_text(self)

    def as_bytes(self):
        return convert.to_bytes(self)

    def as_timestamp(self):
        return convert.to_timestamp(self)

    def as_datetime(self):
        return convert.to_datetime(self)

    def __eq__(self, other):
        if isinstance(other, Value):
            return self._type is other._type and self._payload == other._payload
        return NotImplemented

    def __hash__(self):
        return hash((self._type, self._payload))

    def __repr__(self):
        if self._type is Type.NULL:
            return "Value.null()"
        return f"Value.{self._type.name.lower()}({self._payload!r})"


from . import convert  # noqa: E402
