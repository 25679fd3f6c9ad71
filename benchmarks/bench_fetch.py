"""Insert/select timings for sqlitewrap against the stdlib sqlite3 module."""

import argparse
import os
import sqlite3
import tempfile
import time

import sqlitewrap
from sqlitewrap import Connection, Store


def bench_stdlib(db_path, count):
    data = [(i, f"value_{i}", float(i)) for i in range(count)]
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("CREATE TABLE bench (id INTEGER, val TEXT, f REAL)")

        start_time = time.perf_counter()
        with conn:
            for row in data:
                conn.execute("INSERT INTO bench VALUES (?, ?, ?)", row)
        insert_s = time.perf_counter() - start_time

        start_time = time.perf_counter()
        rows = conn.execute("SELECT * FROM bench").fetchall()
        select_s = time.perf_counter() - start_time
        assert len(rows) == count
    finally:
        # Closed before sqlitewrap runs: its last close shuts the engine down.
        conn.close()
    return insert_s, select_s


def bench_wrapper(db_path, count, cache_size):
    db = Connection(db_path).reuse_prepared(cache_size)
    assert db.create(["CREATE TABLE bench (id INTEGER, val TEXT, f REAL)"])
    try:
        start_time = time.perf_counter()
        db.exec("BEGIN")
        for i in range(count):
            db.insert("INSERT INTO bench VALUES (?, ?, ?)", Store().add(i).add(f"value_{i}").add(float(i)))
        db.exec("COMMIT")
        insert_s = time.perf_counter() - start_time

        start_time = time.perf_counter()
        rows = db.select("SELECT * FROM bench")
        select_s = time.perf_counter() - start_time
        assert len(rows) == count
    finally:
        db.close()
    return insert_s, select_s


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--rows", type=int, default=100000)
    parser.add_argument("--cache-size", type=int, default=16, help="prepared statement cache (0 disables)")
    args = parser.parse_args()

    print(f"sqlite3 {sqlitewrap.sqlite_version()}, {args.rows} rows")
    with tempfile.TemporaryDirectory() as tmp:
        results = {
            "stdlib sqlite3": bench_stdlib(os.path.join(tmp, "stdlib.db"), args.rows),
            f"sqlitewrap (cache={args.cache_size})": bench_wrapper(
                os.path.join(tmp, "wrap.db"), args.rows, args.cache_size
            ),
        }

    for name, (insert_s, select_s) in results.items():
        print(f"{name:28} insert {insert_s:8.4f}s   select {select_s:8.4f}s")


if __name__ == "__main__":
    main()
