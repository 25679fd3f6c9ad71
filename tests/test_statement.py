import pytest
import sqlitewrap
from sqlitewrap import NULL, StatementState, StepResult, Store, Type, Value


def test_positional_binding_order(memdb):
    with memdb.prepare("SELECT ? AS a, ? AS b, ? AS c") as stmt:
        stmt.bind(Store().add(1).add("two").add(b"\x03"))
        assert stmt.step() is StepResult.ROW
        row = stmt.fetch_row()
    assert row == {"a": Value.int64(1), "b": Value.text("two"), "c": Value.blob(b"\x03")}


def test_binding_mixed_types_in_reverse(memdb):
    with memdb.prepare("SELECT ?3 AS third, ?1 AS first") as stmt:
        stmt.bind(Store.of("x", 2.5, 7))
        rows = stmt.fetch_result()
    assert rows[0]["first"] == Value.text("x")
    assert rows[0]["third"] == Value.int64(7)


def test_native_null_decodes_as_absent(memdb):
    with memdb.prepare("SELECT ? AS bound_null, NULL AS literal_null, 0 AS zero") as stmt:
        stmt.bind(Store().add(NULL))
        assert stmt.step() is StepResult.ROW
        row = stmt.fetch_row()

    assert "bound_null" in row and row["bound_null"] is None
    assert row.is_null("literal_null")
    assert not row.is_null("zero")
    assert Value.null() not in row.values()
    assert row.get_int("bound_null") is None


def test_typed_row_getters(memdb):
    with memdb.prepare("SELECT 1 AS i, 2.5 AS f, 'x' AS t, x'00ff' AS b") as stmt:
        row = stmt.fetch_result()[0]
    assert row.get_int("i") == 1
    assert row.get_float("f") == 2.5
    assert row.get_text("t") == "x"
    assert row.get_bytes("b") == b"\x00\xff"
    assert row.to_dict() == {"i": 1, "f": 2.5, "t": "x", "b": b"\x00\xff"}
    with pytest.raises(sqlitewrap.TypeMismatchError):
        row.get_int("t")
    with pytest.raises(KeyError):
        row["missing"]


def test_column_introspection(memdb):
    with memdb.prepare("SELECT id, first_name AS name, cof FROM person") as stmt:
        assert stmt.column_count == 3
        assert stmt.column_names() == ["id", "name", "cof"]
        assert stmt.column_name(1) == "name"
        with pytest.raises(IndexError):
            stmt.column_name(3)


def test_column_type_after_step(memdb):
    with memdb.prepare("SELECT 1, 1.5, 'a', x'01', NULL") as stmt:
        assert stmt.step() is StepResult.ROW
        types = [stmt.column_type(i) for i in range(stmt.column_count)]
    assert types == [Type.INT64, Type.FLOAT64, Type.TEXT, Type.BLOB, Type.NULL]


def test_parameter_introspection(memdb):
    with memdb.prepare("SELECT :first, :second, :first") as stmt:
        assert stmt.parameter_count == 2
        assert stmt.parameter_index(":second") == 2
        assert stmt.parameter_index(":nope") is None


def test_reset_then_rebind(memdb):
    memdb.exec("CREATE TABLE t (x INTEGER)")
    with memdb.prepare("INSERT INTO t (x) VALUES (?)") as stmt:
        stmt.bind(Store().add(1))
        assert stmt.state is StatementState.BOUND
        assert stmt.step() is StepResult.DONE
        assert stmt.state is StatementState.EXHAUSTED

        stmt.reset()
        assert stmt.state is StatementState.PREPARED
        stmt.bind(Store().add(2))
        assert stmt.step() is StepResult.DONE

    rows = memdb.select("SELECT x FROM t ORDER BY x")
    assert [r.get_int("x") for r in rows] == [1, 2]


def test_reset_clears_bindings(memdb):
    with memdb.prepare("SELECT ? AS v") as stmt:
        stmt.bind(Store().add(5))
        assert stmt.fetch_result()[0]["v"] == Value.int64(5)
        stmt.reset()
        assert stmt.fetch_result()[0]["v"] is None


def test_fetch_result_empty_is_a_list(memdb):
    with memdb.prepare("SELECT * FROM person WHERE id = ?") as stmt:
        stmt.bind(Store().add(42))
        assert stmt.fetch_result() == []


def test_iterating_rows(memdb):
    with memdb.prepare("SELECT value AS v FROM (SELECT 1 AS value UNION ALL SELECT 2)") as stmt:
        assert [row.get_int("v") for row in stmt] == [1, 2]


def test_execute_discards_rows(memdb):
    with memdb.prepare("INSERT INTO person (first_name) VALUES (?)") as stmt:
        stmt.bind(Store().add("Rex"))
        stmt.execute()
    assert memdb.changes() == 1


def test_constraint_violation_while_stepping(memdb):
    memdb.exec("CREATE TABLE u (k TEXT UNIQUE)")
    memdb.exec("INSERT INTO u VALUES ('a')")
    with memdb.prepare("INSERT INTO u VALUES (?)") as stmt:
        stmt.bind(Store().add("a"))
        with pytest.raises(sqlitewrap.ConstraintError) as excinfo:
            stmt.fetch_result()
    assert isinstance(excinfo.value, sqlitewrap.IntegrityError)
    assert isinstance(excinfo.value, sqlitewrap.StepError)
    assert "UNIQUE" in excinfo.value.message


def test_step_error_is_reported_not_raised(memdb):
    memdb.exec("CREATE TABLE u (k TEXT NOT NULL)")
    with memdb.prepare("INSERT INTO u VALUES (?)") as stmt:
        stmt.bind(Store().add(None))
        assert stmt.step() is StepResult.ERROR
        assert (stmt.last_code & 0xFF) == 19


def test_prepare_error(memdb):
    with pytest.raises(sqlitewrap.PrepareError) as excinfo:
        memdb.prepare("SELEC 1")
    msg = str(excinfo.value)
    assert "Context:" in msg
    assert '"sql": "SELEC 1"' in msg
    assert excinfo.value.code == 1
    assert "syntax error" in excinfo.value.message


def test_prepare_nothing(memdb):
    with pytest.raises(sqlitewrap.PrepareError):
        memdb.prepare("-- just a comment")


def test_bind_wrong_count(memdb):
    with memdb.prepare("SELECT ?, ?") as stmt:
        with pytest.raises(sqlitewrap.BindError):
            stmt.bind(Store().add(1))
        with pytest.raises(sqlitewrap.BindError):
            stmt.bind(Store.of(1, 2, 3))


def test_bind_while_stepping_fails(memdb):
    with memdb.prepare("SELECT ? AS v") as stmt:
        stmt.bind(Store().add(1))
        assert stmt.step() is StepResult.ROW
        with pytest.raises(sqlitewrap.BindError) as excinfo:
            stmt.bind(Store().add(2))
    assert excinfo.value.position == 1
    assert excinfo.value.value == Value.int64(2)


def test_bind_unencodable_text(memdb):
    with memdb.prepare("SELECT ?") as stmt:
        with pytest.raises(sqlitewrap.BindError):
            stmt.bind(Store().add("\ud800"))


def test_store_consumed_by_bind(memdb):
    store = Store().add(1)
    with memdb.prepare("SELECT ? AS v") as stmt:
        stmt.bind(store)
    assert store.consumed
    with pytest.raises(sqlitewrap.InterfaceError):
        store.add(2)

    # A consumed store can still be bound to another statement, unchanged.
    with memdb.prepare("SELECT ? AS w") as other:
        other.bind(store)
        assert other.fetch_result()[0]["w"] == Value.int64(1)
    assert len(store) == 1


def test_bind_plain_sequence(memdb):
    with memdb.prepare("SELECT ? AS a, ? AS b") as stmt:
        stmt.bind(["x", 1])
        row = stmt.fetch_result()[0]
    assert row.to_dict() == {"a": "x", "b": 1}


def test_fetch_row_needs_a_row(memdb):
    with memdb.prepare("SELECT 1") as stmt:
        with pytest.raises(sqlitewrap.InterfaceError):
            stmt.fetch_row()


def test_text_and_blob_edge_values(memdb):
    blob = bytes(range(256))
    with memdb.prepare("SELECT ? AS t, ? AS e, ? AS b, ? AS eb") as stmt:
        stmt.bind(Store.of("a\x00b", "", blob, b""))
        row = stmt.fetch_result()[0]
    assert row.get_text("t") == "a\x00b"
    assert row.get_text("e") == ""
    assert row.get_bytes("b") == blob
    assert row.get_bytes("eb") == b""


def test_finalize(memdb):
    baseline = memdb.live_statements
    stmt = memdb.prepare("SELECT 1")
    assert memdb.live_statements == baseline + 1
    stmt.finalize()
    stmt.finalize()
    assert stmt.finalized
    assert stmt.state is StatementState.FINALIZED
    assert memdb.live_statements == baseline
    with pytest.raises(sqlitewrap.InterfaceError):
        stmt.step()
    with pytest.raises(sqlitewrap.InterfaceError):
        stmt.reset()


def test_context_manager_finalizes_on_error(memdb):
    with pytest.raises(RuntimeError):
        with memdb.prepare("SELECT 1") as stmt:
            raise RuntimeError("boom")
    assert stmt.finalized


def test_step_after_done_does_not_rerun(memdb):
    memdb.exec("CREATE TABLE t (x INTEGER)")
    with memdb.prepare("INSERT INTO t (x) VALUES (?)") as stmt:
        stmt.bind(Store().add(1))
        assert stmt.step() is StepResult.DONE
        assert stmt.step() is StepResult.DONE
        assert stmt.step() is StepResult.DONE
        assert stmt.state is StatementState.EXHAUSTED
    assert memdb.select("SELECT count(*) AS n FROM t")[0].get_int("n") == 1


def test_step_after_error_repeats_error(memdb):
    memdb.exec("CREATE TABLE u (k TEXT NOT NULL)")
    with memdb.prepare("INSERT INTO u VALUES (?)") as stmt:
        stmt.bind(Store().add(None))
        assert stmt.step() is StepResult.ERROR
        assert stmt.step() is StepResult.ERROR
        stmt.reset()
        stmt.bind(Store().add("ok"))
        assert stmt.step() is StepResult.DONE
    assert memdb.select("SELECT k FROM u")[0].get_text("k") == "ok"


def test_fetch_result_twice_needs_reset(memdb):
    with memdb.prepare("SELECT 1 AS v") as stmt:
        assert len(stmt.fetch_result()) == 1
        assert stmt.fetch_result() == []
        stmt.reset()
        assert len(stmt.fetch_result()) == 1


def test_error_context_renders_params(memdb):
    big = bytes(range(40))
    with memdb.prepare("SELECT ?, ?") as stmt:
        with pytest.raises(sqlitewrap.BindError) as excinfo:
            stmt.bind(Store.of(b"\x01\x02", big, "x" * 300))
    msg = str(excinfo.value)
    assert "x'0102'" in msg
    assert "(40 bytes)" in msg
    assert bytes(range(32)).hex() in msg
    assert big.hex() not in msg
    assert "x" * 201 not in msg
