import collections
import contextlib
import ctypes
import logging
import os
import weakref

from . import engine as _engine
from .errors import (
    ConnectionAlreadyOpenError, ConnectionFailure, ConnectionNotOpenError,
    DatabaseError, ExecError, FilesystemError, InterfaceError, OperationalError,
    error_from_handle,
)
from .native import (
    IN_MEMORY, SQLITE_OK, SQLITE_OPEN_CREATE, SQLITE_OPEN_READONLY,
    SQLITE_OPEN_READWRITE, load_library,
)
from .statement import Statement
from .store import Store

logger = logging.getLogger(__name__)

DEFAULT_STMT_CACHE_SIZE = 128


class Connection:
    """Owns at most one native ``sqlite3`` connection handle.

    Configure with the chained builders, then ``open()`` or ``create()``::

        db = Connection().in_memory()
        db.create(["CREATE TABLE person (id INTEGER PRIMARY KEY, name TEXT)"])
        rowid = db.insert("INSERT INTO person (name) VALUES (?)", Store().add("Ahsoka"))

    Engine failures inside ``exec``/``insert``/``select``/``update`` are logged,
    kept in ``last_error`` and reported as False/None. Calling them on a
    connection that is not open raises ``ConnectionNotOpenError``.
    """

    def __init__(self, path=None):
        self._lib = load_library()
        self._path = None if path is None else os.fspath(path)
        self._handle = None
        self._read_only = False
        self._engine_held = False
        self._statements = weakref.WeakSet()

        # Opt-in prepared statement cache, keyed by query text (LRU)
        self._stmt_cache = collections.OrderedDict()
        self._stmt_cache_size = 0

        self.stats = collections.Counter()
        self.last_error = None

    # Configuration

    def file(self, path):
        self._ensure_closed()
        self._path = os.fspath(path)
        return self

    def in_memory(self):
        self._ensure_closed()
        self._path = IN_MEMORY
        return self

    def reuse_prepared(self, max_size=DEFAULT_STMT_CACHE_SIZE):
        if max_size < 0:
            raise ValueError("max_size must be non-negative")
        self._stmt_cache_size = max_size
        while len(self._stmt_cache) > max_size:
            _, old = self._stmt_cache.popitem(last=False)
            old.finalize()
        return self

    @property
    def path(self):
        return self._path

    @property
    def is_open(self):
        return self._handle is not None

    @property
    def read_only(self):
        return self._read_only

    @property
    def in_memory_db(self):
        return self._path == IN_MEMORY

    # Lifecycle

    def _ensure_closed(self):
        if self._handle is not None:
            raise ConnectionAlreadyOpenError(f"Database {self._path!r} already opened")

    def _require_open(self):
        if self._handle is None:
            raise ConnectionNotOpenError("Database is not opened")
        return self._handle

    def _fail(self, operation, exc):
        self.last_error = exc
        logger.error("%s failed (code=%s): %s", operation, exc.code, exc)

    def open(self, read_only=False):
        """Opens an existing database. Never creates a missing file."""
        self._ensure_closed()
        flags = SQLITE_OPEN_READONLY if read_only else SQLITE_OPEN_READWRITE
        return self._open_native(flags, read_only)

    def create(self, init_statements=()):
        """Creates a fresh database, removing any file at ``path`` first.

        ``init_statements`` run in order; the first failure closes the
        connection again and returns False.
        """
        self._ensure_closed()
        if isinstance(init_statements, str):
            init_statements = [init_statements]

        if self._path not in (None, "", IN_MEMORY):
            try:
                os.remove(self._path)
            except FileNotFoundError:
                pass
            except OSError as e:
                raise FilesystemError(f"Can't remove {self._path!r}: {e}", e.errno) from e

        if not self._open_native(SQLITE_OPEN_READWRITE | SQLITE_OPEN_CREATE, False):
            return False

        for sql in init_statements:
            if not self.exec(sql):
                failure = self.last_error
                self.close()
                self.last_error = failure
                return False
        return True

    def _open_native(self, flags, read_only):
        if self._path is None:
            raise InterfaceError("No database path set; use file() or in_memory()")
        self.last_error = None

        _engine.engine.acquire()
        handle = ctypes.c_void_p()
        rc = self._lib.sqlite3_open_v2(self._path.encode("utf-8"), ctypes.byref(handle), flags, None)
        if rc != SQLITE_OK:
            err = error_from_handle(self._lib, handle, ConnectionFailure, code=rc)
            # A handle is allocated even on failure and must be released.
            if handle:
                self._lib.sqlite3_close_v2(handle)
            _engine.engine.release()
            self._fail(f"open {self._path!r}", err)
            return False

        self._handle = handle
        self._read_only = read_only
        self._engine_held = True
        logger.debug("opened %s (read_only=%s)", self._path, read_only)
        return True

    def close(self):
        """Finalizes every statement, then closes. Closing twice is a no-op."""
        if self._handle is None:
            return True

        for stmt in list(self._stmt_cache.values()):
            stmt.finalize()
        self._stmt_cache.clear()
        for stmt in list(self._statements):
            stmt.finalize()

        rc = self._lib.sqlite3_close_v2(self._handle)
        if rc != SQLITE_OK:
            self._fail("close", error_from_handle(self._lib, self._handle, OperationalError, code=rc))
            return False

        self._handle = None
        self._read_only = False
        if self._engine_held:
            self._engine_held = False
            _engine.engine.release()
        logger.debug("closed %s", self._path)
        return True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __del__(self):
        if getattr(self, "_handle", None) is None:
            return
        try:
            if not self.close():
                logger.warning("Failed to close %r on release", self._path)
        except Exception:
            logger.warning("Failed to close %r on release", self._path, exc_info=True)

    # Statement tracking and reuse

    def _track(self, stmt):
        self._statements.add(stmt)

    def _untrack(self, stmt):
        self._statements.discard(stmt)

    @property
    def live_statements(self):
        return len(self._statements)

    def prepare(self, sql):
        """Compiles ``sql``; the caller owns the result (use it as a context manager)."""
        self._require_open()
        self.stats["prepare_count"] += 1
        return Statement(self, sql)

    def _checkout(self, sql):
        if self._stmt_cache_size > 0:
            stmt = self._stmt_cache.pop(sql, None)
            if stmt is not None:
                self.stats["cache_hit"] += 1
                logger.debug("reusing prepared statement %r", sql)
                return stmt
            self.stats["cache_miss"] += 1
        return self.prepare(sql)

    def _recycle(self, stmt):
        if stmt.finalized:
            return
        if self._stmt_cache_size <= 0:
            stmt.finalize()
            return

        stmt.reset()
        old = self._stmt_cache.pop(stmt.sql, None)
        if old is not None and old is not stmt:
            old.finalize()
        self._stmt_cache[stmt.sql] = stmt

        while len(self._stmt_cache) > self._stmt_cache_size:
            _, evicted = self._stmt_cache.popitem(last=False)
            evicted.finalize()

    @contextlib.contextmanager
    def _statement(self, sql):
        stmt = self._checkout(sql)
        try:
            yield stmt
        finally:
            self._recycle(stmt)

    # Queries

    def exec(self, sql):
        """Runs parameterless SQL (DDL, pragmas); may hold several statements."""
        handle = self._require_open()
        self.last_error = None
        rc = self._lib.sqlite3_exec(handle, sql.encode("utf-8"), None, None, None)
        if rc != SQLITE_OK:
            self._fail("exec", error_from_handle(self._lib, handle, ExecError, code=rc, sql=sql))
            return False
        return True

    def execute_query(self, sql, store=None):
        self._require_open()
        self.last_error = None
        try:
            with self._statement(sql) as stmt:
                stmt.bind(Store() if store is None else store)
                stmt.execute()
        except DatabaseError as e:
            self._fail("execute_query", e)
            return False
        return True

    def insert(self, sql, store=None):
        """Returns the rowid of the inserted row, or None on failure."""
        if self.execute_query(sql, store):
            return self.last_insert_rowid()
        return None

    def update(self, sql, store=None):
        return self.execute_query(sql, store)

    def delete(self, sql, store=None):
        return self.execute_query(sql, store)

    def select(self, sql, store=None):
        """Returns the matching rows, or None when nothing matched or the query failed.

        ``last_error`` is None after a successful query that matched no rows.
        """
        self._require_open()
        self.last_error = None
        try:
            with self._statement(sql) as stmt:
                stmt.bind(Store() if store is None else store)
                rows = stmt.fetch_result()
        except DatabaseError as e:
            self._fail("select", e)
            return None
        return rows or None

    def last_insert_rowid(self):
        return self._lib.sqlite3_last_insert_rowid(self._require_open())

    def changes(self):
        return self._lib.sqlite3_changes(self._require_open())

    def error_code(self):
        return self._lib.sqlite3_errcode(self._require_open())

    def error_message(self):
        msg = self._lib.sqlite3_errmsg(self._require_open())
        return msg.decode("utf-8", errors="replace") if msg else ""

    @staticmethod
    def version():
        return _engine.version()

    @staticmethod
    def version_number():
        return _engine.version_number()

    def __repr__(self):
        state = "open" if self._handle is not None else "closed"
        return f"<Connection {self._path!r} {state}>"


def connect(path, *, read_only=False, create=False, init_statements=(), stmt_cache_size=0):
    """Opens (or creates) a database and returns the connection, raising on failure."""
    conn = Connection(path)
    if stmt_cache_size:
        conn.reuse_prepared(stmt_cache_size)
    ok = conn.create(init_statements) if create else conn.open(read_only)
    if not ok:
        raise conn.last_error
    return conn
