"""Explicit conversions between Python objects and :class:`Value`.

Construction is total over the supported Python types. Extraction is strict:
asking for a type the value does not hold raises
:class:`~sqlitewrap.errors.TypeMismatchError`; nothing is coerced between
Int64 and Float64 or parsed out of Text.
"""

import datetime

from .errors import DataError, TypeMismatchError
from .value import NULL, Timestamp, Type, Value

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def to_value(obj):
    if isinstance(obj, Value):
        return obj
    if obj is None or obj is NULL:
        return Value.null()
    # bool and every fixed-width integer end up as Python int
    if isinstance(obj, int):
        return Value.int64(obj)
    if isinstance(obj, float):
        return Value.float64(obj)
    if isinstance(obj, str):
        return Value.text(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return Value.blob(obj)
    if isinstance(obj, Timestamp):
        return Value.int64(obj.value)
    if isinstance(obj, datetime.datetime):
        return Value.text(datetime_text(obj))
    raise DataError(f"Cannot convert {type(obj).__name__} to a SQLite value")


def datetime_text(dt):
    """Formats ``dt`` as ``YYYY-MM-DD HH:MM:SS``.

    Aware datetimes are shifted to UTC first, so the text always names the
    same instant; it reads back as a naive UTC datetime. Microseconds are
    truncated.
    """
    if dt.utcoffset() is not None:
        dt = dt.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return dt.strftime(DATETIME_FORMAT)


def _expect(value, expected):
    if value.kind is not expected:
        raise TypeMismatchError(expected, value.kind)
    return value.payload


def to_int(value):
    return _expect(value, Type.INT64)


def to_float(value):
    return _expect(value, Type.FLOAT64)


def to_text(value):
    return _expect(value, Type.TEXT)


def to_bytes(value):
    return _expect(value, Type.BLOB)


def to_timestamp(value):
    return Timestamp(_expect(value, Type.INT64))


def to_datetime(value):
    text = _expect(value, Type.TEXT)
    try:
        return datetime.datetime.strptime(text, DATETIME_FORMAT)
    except ValueError:
        raise DataError(f"Malformed datetime text {text!r}, expected {DATETIME_FORMAT}") from None


def to_python(value):
    """Unwraps a value to its plain payload; None for Null."""
    if value is None:
        return None
    return value.payload
