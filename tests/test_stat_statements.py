import pytest

from pgstat_exporter.core import Instance, ValueType
from pgstat_exporter.stat_statements import (
    PG_STAT_STATEMENTS_NEW_QUERY,
    PG_STAT_STATEMENTS_QUERY,
    PGStatStatementsCollector,
)


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection

    def execute(self, sql):
        self.connection.executed.append(sql)

    def fetchall(self):
        return self.connection.rows

    def close(self):
        self.connection.closed += 1


class FakeConnection:
    def __init__(self, rows):
        self.rows = rows
        self.executed = []
        self.closed = 0

    def cursor(self):
        return FakeCursor(self)


def collect(rows, version):
    connection = FakeConnection(rows)
    instance = Instance(connection, version)
    metrics = list(PGStatStatementsCollector().update(instance))
    return connection, metrics


POSTGRES_LABELS = {"user": "postgres", "datname": "postgres", "queryid": "1500"}


def test_old_server_uses_total_time_query():
    connection, metrics = collect([("postgres", "postgres", 1500, 5, 0.4, 100, 0.1, 0.2)], "12.0.0")
    assert connection.executed == [PG_STAT_STATEMENTS_QUERY]
    assert [(m.labels, m.value_type, m.value) for m in metrics] == [
        (POSTGRES_LABELS, ValueType.COUNTER, 5),
        (POSTGRES_LABELS, ValueType.COUNTER, 0.4),
        (POSTGRES_LABELS, ValueType.COUNTER, 100),
        (POSTGRES_LABELS, ValueType.COUNTER, 0.1),
        (POSTGRES_LABELS, ValueType.COUNTER, 0.2),
    ]


def test_new_server_uses_total_exec_time_query():
    connection, metrics = collect([("postgres", "postgres", 1500, 5, 0.4, 100, 0.1, 0.2)], "13.3.7")
    assert connection.executed == [PG_STAT_STATEMENTS_NEW_QUERY]
    assert [(m.labels, m.value_type, m.value) for m in metrics] == [
        (POSTGRES_LABELS, ValueType.COUNTER, 5),
        (POSTGRES_LABELS, ValueType.COUNTER, 0.4),
        (POSTGRES_LABELS, ValueType.COUNTER, 100),
        (POSTGRES_LABELS, ValueType.COUNTER, 0.1),
        (POSTGRES_LABELS, ValueType.COUNTER, 0.2),
    ]


def test_null_values_become_unknown_and_zero():
    connection, metrics = collect([(None,) * 8], "13.3.7")
    assert connection.executed == [PG_STAT_STATEMENTS_NEW_QUERY]
    unknown = {"user": "unknown", "datname": "unknown", "queryid": "unknown"}
    assert [(m.labels, m.value_type, m.value) for m in metrics] == [
        (unknown, ValueType.COUNTER, 0),
    ] * 5


def test_metric_names():
    _, metrics = collect([("postgres", "postgres", 1500, 5, 0.4, 100, 0.1, 0.2)], "13.0.0")
    assert [m.name for m in metrics] == [
        "pg_stat_statements_calls_total",
        "pg_stat_statements_seconds_total",
        "pg_stat_statements_rows_total",
        "pg_stat_statements_block_read_seconds_total",
        "pg_stat_statements_block_write_seconds_total",
    ]


def test_version_boundary_selects_new_query():
    connection, _ = collect([], "13.0.0")
    assert connection.executed == [PG_STAT_STATEMENTS_NEW_QUERY]


def test_no_rows_yields_nothing():
    _, metrics = collect([], "12.0.0")
    assert metrics == []


def test_wrong_row_width_raises():
    with pytest.raises(ValueError):
        collect([("postgres", "postgres", 1500)], "12.0.0")