"""Process-wide native engine state.

``sqlite3_initialize`` runs when the first holder acquires the engine and
``sqlite3_shutdown`` when the last one releases it. Connections acquire on a
successful open and release on close.
"""

import logging
import threading

from .errors import InternalError
from .native import SQLITE_OK, errstr, load_library

logger = logging.getLogger(__name__)


class Engine:
    def __init__(self):
        self._lock = threading.Lock()
        self._holders = 0

    @property
    def holders(self):
        return self._holders

    @property
    def initialized(self):
        return self._holders > 0

    def acquire(self):
        lib = load_library()
        with self._lock:
            if self._holders == 0:
                rc = lib.sqlite3_initialize()
                if rc != SQLITE_OK:
                    raise InternalError(f"Can't initialize sqlite engine: {errstr(rc)}", rc)
                logger.debug("sqlite %s initialized", version())
            self._holders += 1
            return self._holders

    def release(self):
        lib = load_library()
        with self._lock:
            if self._holders == 0:
                logger.warning("Engine released more times than acquired")
                return True
            self._holders -= 1
            if self._holders > 0:
                return True
            rc = lib.sqlite3_shutdown()
            if rc != SQLITE_OK:
                logger.warning("sqlite shutdown failed: %s (code=%d)", errstr(rc), rc)
                return False
            logger.debug("sqlite engine shut down")
            return True


engine = Engine()


def version():
    return load_library().sqlite3_libversion().decode("ascii")


def version_number():
    return load_library().sqlite3_libversion_number()
