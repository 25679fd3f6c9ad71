import json


class Error(Exception):
    pass


class InterfaceError(Error):
    """Misuse of the wrapper itself (wrong call order, closed handles)."""


class ConnectionAlreadyOpenError(InterfaceError):
    pass


class ConnectionNotOpenError(InterfaceError):
    pass


class DatabaseError(Error):
    """An error reported by the native engine.

    ``code`` is the native result code when one is available, ``message`` the
    engine's own text without the appended context.
    """

    def __init__(self, message, code=None, *, sql=None, params=None):
        self.message = message
        self.code = code
        self.sql = sql
        self.params = params
        text = message
        if sql is not None:
            ctx = {
                "native_code": code,
                "sql": sql,
                "params": _render_params(params),
            }
            text = text + "\nContext: " + json.dumps(ctx, ensure_ascii=False)
        super().__init__(text)


class OperationalError(DatabaseError):
    pass


class ProgrammingError(DatabaseError):
    pass


class InternalError(DatabaseError):
    pass


class IntegrityError(DatabaseError):
    pass


class DataError(DatabaseError):
    pass


class ConnectionFailure(OperationalError):
    pass


class FilesystemError(OperationalError):
    pass


class ExecError(OperationalError):
    pass


class StepError(OperationalError):
    pass


class ConstraintError(StepError, IntegrityError):
    pass


class PrepareError(ProgrammingError):
    pass


class BindError(DatabaseError):
    def __init__(self, message, code=None, *, position=None, value=None, sql=None, params=None):
        self.position = position
        self.value = value
        super().__init__(message, code, sql=sql, params=params)


class TypeMismatchError(DataError):
    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Value is {actual.name}, not {expected.name}")


def _render_value(value, max_text=200, max_blob=32):
    # Bound parameters are always Values; render the payload the way SQL would spell it.
    payload = value.payload
    if isinstance(payload, bytes):
        shown = payload[:max_blob].hex()
        if len(payload) > max_blob:
            return f"x'{shown}'... ({len(payload)} bytes)"
        return f"x'{shown}'"
    if isinstance(payload, str) and len(payload) > max_text:
        return payload[:max_text] + "…"
    return payload


def _render_params(values, max_items=50):
    if values is None:
        return None
    rendered = [_render_value(v) for v in values[:max_items]]
    if len(values) > max_items:
        rendered.append(f"<{len(values) - max_items} more>")
    return rendered


def error_from_handle(lib, db_handle, cls, *, code=None, sql=None, params=None, **kwargs):
    """Builds ``cls`` from the connection's last native error.

    ``code`` overrides ``sqlite3_errcode`` for calls that return their status
    directly (step, bind) where the connection may already report something
    newer.
    """
    if code is None:
        code = lib.sqlite3_errcode(db_handle) if db_handle else None
    msg = lib.sqlite3_errmsg(db_handle) if db_handle else None
    # Native messages should be UTF-8, but don't crash if not.
    if msg:
        msg_str = msg.decode("utf-8", errors="replace")
    elif code is not None:
        raw = lib.sqlite3_errstr(code)
        msg_str = raw.decode("utf-8", errors="replace") if raw else f"Unknown error {code}"
    else:
        msg_str = "Unknown error"
    return cls(msg_str, code, sql=sql, params=params, **kwargs)
