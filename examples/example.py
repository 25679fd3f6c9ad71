"""Example: the person table, end to end.

Uses the system libsqlite3; point SQLITEWRAP_NATIVE_LIB at another build to
override it:
    SQLITEWRAP_NATIVE_LIB=/path/to/libsqlite3.so python example.py
"""

import logging
import os
import tempfile

import sqlitewrap
from sqlitewrap import Connection, Store

CREATE_PERSON = """
    CREATE TABLE person (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        first_name TEXT COLLATE NOCASE,
        second_name TEXT COLLATE NOCASE,
        last_name TEXT COLLATE NOCASE,
        age INTEGER,
        cof DOUBLE,
        data BLOB
    )"""


def main():
    logging.basicConfig(level=logging.INFO)
    print(f"sqlite3: {sqlitewrap.sqlite_version()} ({sqlitewrap.sqlite_version_number()})")

    db_path = os.path.join(tempfile.gettempdir(), "sqlitewrap_example.db")

    with Connection().file(db_path) as db:
        if not db.create([CREATE_PERSON]):
            raise SystemExit(f"create failed: {db.last_error}")

        rowid = db.insert(
            "INSERT INTO person (first_name, second_name, last_name, age, cof, data) VALUES (?, ?, ?, ?, ?, ?)",
            Store().add("Ahsoka").add("Fulcrum").add("Tano").add(102).add(3.1415).add(bytes([1, 2, 255, 5, 170])),
        )
        print(f"inserted rowid={rowid}")

        db.update(
            "UPDATE person SET second_name = ? WHERE id = ?",
            Store().add("Snips").add(rowid),
        )

        rows = db.select("SELECT * FROM person WHERE id = ?", Store().add(rowid)) or []
        for row in rows:
            print(row.to_dict())

        # Zero matches come back as None, not as an empty list.
        print("no match:", db.select("SELECT * FROM person WHERE age > ?", Store().add(1000)))

    # Reopen read-only; writes are now refused and reported through last_error.
    with Connection(db_path) as db:
        db.open(read_only=True)
        if db.insert("INSERT INTO person (first_name) VALUES (?)", Store().add("Rex")) is None:
            print(f"read-only insert refused: {db.last_error.message}")

    os.remove(db_path)


if __name__ == "__main__":
    main()
