"""Prepared statements: positional binding, stepping and row decoding.

A :class:`Statement` owns exactly one native ``sqlite3_stmt`` handle and a
strong reference to the :class:`~sqlitewrap.connection.Connection` that
prepared it. The connection tracks its live statements and finalizes them
before closing, so a statement can never outlive the handle it was compiled
against.

State machine::

    PREPARED --bind--> BOUND --step--> STEPPING --step--> EXHAUSTED
        ^                                                     |
        +------------------------ reset ----------------------+

    any state --finalize--> FINALIZED
"""

import collections.abc
import ctypes
import enum
import logging

from .convert import to_python
from .errors import (
    BindError, ConstraintError, InterfaceError, PrepareError, StepError,
    error_from_handle,
)
from .native import (
    SQLITE_CONSTRAINT, SQLITE_DONE, SQLITE_MISUSE, SQLITE_OK, SQLITE_RANGE,
    SQLITE_ROW, SQLITE_TRANSIENT, primary_code,
)
from .store import Store
from .value import Type, Value

logger = logging.getLogger(__name__)


class StepResult(enum.Enum):
    ROW = "row"
    DONE = "done"
    ERROR = "error"


class StatementState(enum.Enum):
    PREPARED = "prepared"
    BOUND = "bound"
    STEPPING = "stepping"
    EXHAUSTED = "exhausted"
    FINALIZED = "finalized"


class Row(collections.abc.Mapping):
    """One decoded result row keyed by column name.

    A column holding SQL NULL maps to ``None``; every other column maps to a
    :class:`~sqlitewrap.value.Value`. Decoding never produces
    ``Value.null()``.
    """

    __slots__ = ("_values",)

    def __init__(self, values):
        self._values = dict(values)

    def __getitem__(self, name):
        return self._values[name]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def is_null(self, name):
        return self._values[name] is None

    def _typed(self, name, extract):
        v = self._values[name]
        return None if v is None else extract(v)

    def get_int(self, name):
        return self._typed(name, Value.as_int)

    def get_float(self, name):
        return self._typed(name, Value.as_float)

    def get_text(self, name):
        return self._typed(name, Value.as_text)

    def get_bytes(self, name):
        return self._typed(name, Value.as_bytes)

    def get_timestamp(self, name):
        return self._typed(name, Value.as_timestamp)

    def get_datetime(self, name):
        return self._typed(name, Value.as_datetime)

    def to_dict(self):
        return {k: to_python(v) for k, v in self._values.items()}

    def __repr__(self):
        return f"Row({self._values!r})"


class Statement:
    def __init__(self, connection, sql):
        connection._require_open()
        self._connection = connection
        self._lib = connection._lib
        self._sql = sql
        self._params = None
        self.last_code = SQLITE_OK

        stmt_ptr = ctypes.c_void_p()
        res = self._lib.sqlite3_prepare_v2(
            connection._handle,
            sql.encode("utf-8"),
            -1,
            ctypes.byref(stmt_ptr),
            None,
        )
        if res != SQLITE_OK:
            if stmt_ptr:
                self._lib.sqlite3_finalize(stmt_ptr)
            raise error_from_handle(self._lib, connection._handle, PrepareError, code=res, sql=sql)
        if not stmt_ptr:
            # Empty input or only comments: the engine returns OK and no handle.
            raise PrepareError("No SQL statement to prepare", SQLITE_MISUSE, sql=sql)

        self._stmt = stmt_ptr
        self._state = StatementState.PREPARED
        connection._track(self)

    @property
    def sql(self):
        return self._sql

    @property
    def state(self):
        return self._state

    @property
    def finalized(self):
        return self._stmt is None

    @property
    def connection(self):
        return self._connection

    def _live(self):
        if self._stmt is None:
            raise InterfaceError("Statement is finalized")
        return self._stmt

    # Introspection

    @property
    def column_count(self):
        return self._lib.sqlite3_column_count(self._live())

    @property
    def parameter_count(self):
        return self._lib.sqlite3_bind_parameter_count(self._live())

    def parameter_index(self, name):
        """1-based position of a named parameter (``:name``, ``@name``), or None."""
        idx = self._lib.sqlite3_bind_parameter_index(self._live(), name.encode("utf-8"))
        return idx or None

    def _check_column(self, idx):
        count = self.column_count
        if not 0 <= idx < count:
            raise IndexError(f"Column index {idx} out of range (0..{count - 1})")

    def column_name(self, idx):
        self._check_column(idx)
        return self._name_at(idx)

    def _name_at(self, idx):
        name = self._lib.sqlite3_column_name(self._stmt, idx)
        if name is None:
            raise MemoryError("sqlite3_column_name returned NULL")
        return name.decode("utf-8", errors="replace")

    def column_names(self):
        return [self.column_name(i) for i in range(self.column_count)]

    def column_type(self, idx):
        """Type of column ``idx`` in the current row; only valid after a ROW step."""
        self._check_column(idx)
        return self._type_at(idx)

    def _type_at(self, idx):
        return Type.from_native(self._lib.sqlite3_column_type(self._stmt, idx))

    # Binding

    def bind(self, store):
        h = self._live()
        if not isinstance(store, Store):
            store = Store().extend(store)
        values = store._consume()

        expected = self._lib.sqlite3_bind_parameter_count(h)
        if len(values) != expected:
            raise BindError(
                f"Incorrect number of parameters: expected {expected}, got {len(values)}",
                SQLITE_RANGE, sql=self._sql, params=values,
            )

        for i, value in enumerate(values):
            idx = i + 1
            res = self._bind_at(h, idx, value)
            if res != SQLITE_OK:
                # Earlier positions stay bound; reset() clears them.
                raise error_from_handle(
                    self._lib, self._connection._handle, BindError, code=res,
                    position=idx, value=value, sql=self._sql, params=values,
                )

        self._params = values
        self._state = StatementState.BOUND
        return self

    def _bind_at(self, h, idx, value):
        lib = self._lib
        kind = value.kind
        if kind is Type.NULL:
            return lib.sqlite3_bind_null(h, idx)
        if kind is Type.INT64:
            return lib.sqlite3_bind_int64(h, idx, value.payload)
        if kind is Type.FLOAT64:
            return lib.sqlite3_bind_double(h, idx, value.payload)
        if kind is Type.TEXT:
            try:
                b = value.payload.encode("utf-8")
            except UnicodeEncodeError as e:
                raise BindError(
                    f"Text parameter {idx} is not valid UTF-8: {e}",
                    position=idx, value=value, sql=self._sql,
                ) from e
            return lib.sqlite3_bind_text(h, idx, b, len(b), SQLITE_TRANSIENT)
        b = value.payload
        return lib.sqlite3_bind_blob(h, idx, b, len(b), SQLITE_TRANSIENT)

    # Stepping

    def step(self):
        """Advances one row. Busy/locked and every other failure is ERROR.

        Once exhausted the statement stays put until ``reset()``; the engine
        would otherwise rewind on its own and run the SQL again.
        """
        h = self._live()
        if self._state is StatementState.EXHAUSTED:
            return StepResult.DONE if self.last_code == SQLITE_DONE else StepResult.ERROR
        res = self._lib.sqlite3_step(h)
        self.last_code = res
        if res == SQLITE_ROW:
            self._state = StatementState.STEPPING
            return StepResult.ROW
        self._state = StatementState.EXHAUSTED
        if res == SQLITE_DONE:
            return StepResult.DONE
        return StepResult.ERROR

    def _step_error(self):
        cls = ConstraintError if primary_code(self.last_code) == SQLITE_CONSTRAINT else StepError
        return error_from_handle(
            self._lib, self._connection._handle, cls,
            code=self.last_code, sql=self._sql, params=self._params,
        )

    def execute(self):
        """Steps to completion, discarding any rows produced."""
        while True:
            res = self.step()
            if res is StepResult.DONE:
                return
            if res is StepResult.ERROR:
                raise self._step_error()

    # Extraction

    def fetch_row(self, column_count=None):
        if self._state is not StatementState.STEPPING:
            raise InterfaceError("No current row; step() must return ROW first")
        available = self.column_count
        n = available if column_count is None else column_count
        if n > available:
            raise IndexError(f"Row has {available} columns, {n} requested")
        values = {}
        for i in range(n):
            name = self._name_at(i)
            kind = self._type_at(i)
            if kind is Type.NULL:
                values[name] = None
            elif kind is Type.INT64:
                values[name] = Value.int64(self._lib.sqlite3_column_int64(self._stmt, i))
            elif kind is Type.FLOAT64:
                values[name] = Value.float64(self._lib.sqlite3_column_double(self._stmt, i))
            elif kind is Type.TEXT:
                values[name] = Value.text(self._column_text(i))
            else:
                values[name] = Value.blob(self._column_blob(i))
        return Row(values)

    def _column_text(self, idx):
        # Fetch the pointer before the length so no conversion happens in between.
        ptr = self._lib.sqlite3_column_text(self._stmt, idx)
        n = self._lib.sqlite3_column_bytes(self._stmt, idx)
        if not ptr:
            return ""
        return ctypes.string_at(ptr, n).decode("utf-8", errors="replace")

    def _column_blob(self, idx):
        ptr = self._lib.sqlite3_column_blob(self._stmt, idx)
        n = self._lib.sqlite3_column_bytes(self._stmt, idx)
        if not ptr:
            # Zero-length blobs come back as NULL pointers.
            return b""
        return ctypes.string_at(ptr, n)

    def fetch_result(self):
        """Collects every remaining row; an empty list means the query ran and matched nothing."""
        n = self.column_count
        rows = []
        while True:
            res = self.step()
            if res is StepResult.ROW:
                row = self.fetch_row(n)
                if row:
                    rows.append(row)
            elif res is StepResult.DONE:
                return rows
            else:
                raise self._step_error()

    def __iter__(self):
        n = self.column_count
        while True:
            res = self.step()
            if res is StepResult.DONE:
                return
            if res is StepResult.ERROR:
                raise self._step_error()
            yield self.fetch_row(n)

    # Lifecycle

    def reset(self):
        """Rewinds the cursor and clears every binding."""
        h = self._live()
        # sqlite3_reset repeats the last step error, which was already reported.
        self._lib.sqlite3_reset(h)
        self._lib.sqlite3_clear_bindings(h)
        self._params = None
        self._state = StatementState.PREPARED
        return self

    def finalize(self):
        if self._stmt is None:
            return
        stmt, self._stmt = self._stmt, None
        self._lib.sqlite3_finalize(stmt)
        self._state = StatementState.FINALIZED
        self._connection._untrack(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finalize()

    def __del__(self):
        if getattr(self, "_stmt", None) is None:
            return
        try:
            self.finalize()
        except Exception:
            logger.warning("Failed to finalize statement %r", self._sql, exc_info=True)

    def __repr__(self):
        return f"<Statement {self._state.value} {self._sql!r}>"
