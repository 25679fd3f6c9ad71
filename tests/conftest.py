import pytest
import sqlitewrap
from sqlitewrap.native import load_library

PERSON_DDL = """
    CREATE TABLE person (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        first_name TEXT COLLATE NOCASE,
        second_name TEXT COLLATE NOCASE,
        last_name TEXT COLLATE NOCASE,
        age INTEGER,
        cof DOUBLE,
        data BLOB
    )"""


@pytest.fixture(scope="session")
def native():
    try:
        return load_library()
    except sqlitewrap.InterfaceError as e:
        pytest.skip(f"sqlite3 native library unavailable: {e}")


@pytest.fixture
def db_path(native, tmp_path):
    return str(tmp_path / "test.db")


@pytest.fixture
def person_ddl():
    return PERSON_DDL


@pytest.fixture
def memdb(native):
    db = sqlitewrap.Connection().in_memory()
    assert db.create([PERSON_DDL])
    yield db
    db.close()
