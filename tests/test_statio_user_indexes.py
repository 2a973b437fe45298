import pytest

from pgstat_exporter.core import Instance, ValueType
from pgstat_exporter.statio_user_indexes import (
    STATIO_USER_INDEXES_QUERY,
    PGStatioUserIndexesCollector,
)


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self.rows = []

    def execute(self, sql):
        if not self.connection.expectations:
            raise AssertionError(f"unexpected query: {sql!r}")
        expected, rows = self.connection.expectations.pop(0)
        if sql != expected:
            raise AssertionError(f"query {sql!r} does not match {expected!r}")
        self.rows = rows

    def fetchall(self):
        return self.rows

    def close(self):
        pass


class FakeConnection:
    def __init__(self, *expectations):
        self.expectations = list(expectations)

    def cursor(self):
        return FakeCursor(self)


def _collect(rows):
    connection = FakeConnection((STATIO_USER_INDEXES_QUERY, rows))
    metrics = list(PGStatioUserIndexesCollector().update(Instance(connection)))
    assert connection.expectations == []
    return metrics


def test_collects_index_counters():
    metrics = _collect([("public", "pgtest_accounts", "pgtest_accounts_pkey", 8, 9)])
    labels = {
        "schemaname": "public",
        "relname": "pgtest_accounts",
        "indexrelname": "pgtest_accounts_pkey",
    }
    assert [(m.labels, m.value_type, m.value) for m in metrics] == [
        (labels, ValueType.COUNTER, 8),
        (labels, ValueType.COUNTER, 9),
    ]


def test_null_values_become_unknown_and_zero():
    metrics = _collect([(None, None, None, None, None)])
    labels = {"schemaname": "unknown", "relname": "unknown", "indexrelname": "unknown"}
    assert [(m.labels, m.value_type, m.value) for m in metrics] == [
        (labels, ValueType.COUNTER, 0),
        (labels, ValueType.COUNTER, 0),
    ]


def test_metric_names():
    metrics = _collect([("s", "r", "i", 1, 2)])
    assert [m.name for m in metrics] == [
        "pg_statio_user_indexes_idx_blks_read_total",
        "pg_statio_user_indexes_idx_blks_hit_total",
    ]


def test_multiple_rows_keep_order():
    metrics = _collect([("s", "r", "a", 1, 2), ("s", "r", "b", 3, 4)])
    assert [(m.labels["indexrelname"], m.value) for m in metrics] == [
        ("a", 1.0),
        ("a", 2.0),
        ("b", 3.0),
        ("b", 4.0),
    ]


def test_wrong_column_count_raises():
    connection = FakeConnection((STATIO_USER_INDEXES_QUERY, [("s", "r", "i", 1)]))
    with pytest.raises(ValueError):
        list(PGStatioUserIndexesCollector().update(Instance(connection)))