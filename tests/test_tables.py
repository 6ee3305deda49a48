import pytest
from sqlalchemy import create_engine

from polar4_api.errors import BackendFault, LoadError
from polar4_api.ingest import ingest_into_database
from polar4_api.models import PostcodeRecord
from polar4_api.state import LoadState, ServiceState
from polar4_api.tables import InMemoryTable, SqlTable


def test_in_memory_exact_match_only():
    table = InMemoryTable({"AB101AA": PostcodeRecord("AB101AA", "AB10 1AA", 2)})
    assert table.get("AB101AA") == PostcodeRecord("AB101AA", "AB10 1AA", 2)
    assert table.get("AB101A") is None
    assert table.get("AB101AAX") is None
    assert table.get("ab101aa") is None


def test_in_memory_is_a_snapshot():
    source = {"AB101AA": PostcodeRecord("AB101AA", "AB10 1AA", 2)}
    table = InMemoryTable(source)
    source["AB101AB"] = PostcodeRecord("AB101AB", "AB10 1AB", 3)
    assert "AB101AB" not in table
    with pytest.raises(TypeError):
        table._records["X"] = None


def test_sql_table_lookup(tmp_path, sample_csv):
    engine = create_engine(f"sqlite:///{tmp_path / 'polar4.db'}")
    ingest_into_database(sample_csv, engine)

    table = SqlTable(engine)
    assert table.get("AB101AA") == PostcodeRecord("AB101AA", "AB10 1AA", 2)
    assert table.get("ZZ999ZZ") is None


def test_sql_table_fault_becomes_backend_fault(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    with pytest.raises(BackendFault):
        SqlTable(engine).get("AB101AA")


def test_state_loading_to_ready():
    state = ServiceState()
    assert state.state is LoadState.LOADING
    assert state.table is None
    assert state.postcodes_loaded == 0

    table = InMemoryTable({"AB101AA": PostcodeRecord("AB101AA", "AB10 1AA", 2)})
    state.load(lambda: table)
    assert state.ready
    assert state.table is table
    assert state.postcodes_loaded == 1


def test_state_failure_is_terminal():
    def broken():
        raise LoadError("CSV file not found: missing.csv")

    state = ServiceState()
    with pytest.raises(LoadError):
        state.load(broken)
    assert state.state is LoadState.FAILED
    assert state.table is None
    assert "missing.csv" in state.error

    with pytest.raises(RuntimeError):
        state.load(lambda: InMemoryTable({}))
