from .errors import (
    Error, InterfaceError, ConnectionAlreadyOpenError, ConnectionNotOpenError,
    DatabaseError, OperationalError, ProgrammingError, InternalError,
    IntegrityError, DataError, ConnectionFailure, FilesystemError, ExecError,
    StepError, ConstraintError, PrepareError, BindError, TypeMismatchError,
)
from .value import NULL, Timestamp, Type, Value
from .store import Store
from .statement import Row, Statement, StatementState, StepResult
from .connection import Connection, connect
from .engine import Engine, version, version_number
from .native import IN_MEMORY

__version__ = "0.3.0"


def sqlite_version():
    """Version string of the loaded native library, e.g. ``"3.45.1"``."""
    return version()


def sqlite_version_number():
    """Numeric version code of the loaded native library, e.g. ``3045001``."""
    return version_number()
