from datetime import datetime, timedelta, timezone

import pytest
import semver

from pgstat_exporter.core import (
    WAL_QUERY,
    XLOG_LOCATION_QUERY,
    Desc,
    Instance,
    PGWALCollector,
    PGXlogLocationCollector,
    ValueType,
    build_fq_name,
    unix_seconds,
)


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self._rows = []

    def execute(self, sql):
        self.conn.executed.append(sql)
        self._rows = self.conn.results.pop(0)

    def fetchall(self):
        return list(self._rows)

    def close(self):
        self.conn.closed += 1


class FakeConnection:
    def __init__(self, *results):
        self.results = list(results)
        self.executed = []
        self.closed = 0

    def cursor(self):
        return FakeCursor(self)


def summary(metric):
    return metric.labels, metric.value_type, metric.value


@pytest.mark.parametrize(
    "parts, expected",
    [
        (("pg", "wal", "segments"), "pg_wal_segments"),
        (("pg", "", "up"), "pg_up"),
        (("", "", "up"), "up"),
        (("pg", "wal", ""), ""),
    ],
)
def test_build_fq_name(parts, expected):
    assert build_fq_name(*parts) == expected


def test_unix_seconds():
    stamp = datetime(2023, 5, 25, 17, 10, 42, 811320, tzinfo=timezone(timedelta(hours=-7)))
    assert unix_seconds(stamp) == 1685059842
    assert unix_seconds(datetime(2023, 6, 2)) == 1685664000
    assert unix_seconds(None) == 0.0


def test_desc_metric_label_mismatch():
    desc = Desc("pg_x", "help", ("a", "b"))
    with pytest.raises(ValueError):
        desc.metric(ValueType.GAUGE, 1, "only-one")


def test_desc_metric_labels():
    desc = Desc("pg_x", "help", ("a", "b"))
    metric = desc.metric(ValueType.COUNTER, 3, "x", "y")
    assert summary(metric) == ({"a": "x", "b": "y"}, ValueType.COUNTER, 3.0)
    assert metric.name == "pg_x"


def test_query_row_without_rows():
    conn = FakeConnection([])
    with pytest.raises(LookupError):
        Instance(conn).query_row("SELECT 1")
    assert conn.closed == 1


def test_instance_version_from_string():
    assert Instance(FakeConnection(), "13.3.7").version == semver.Version(13, 3, 7)


def test_pg_wal_collector():
    conn = FakeConnection([(47, 788529152)])
    metrics = list(PGWALCollector().update(Instance(conn)))
    assert [summary(m) for m in metrics] == [
        ({}, ValueType.GAUGE, 47),
        ({}, ValueType.GAUGE, 788529152),
    ]
    assert conn.executed == [WAL_QUERY]
    assert metrics[0].name == "pg_wal_segments"
    assert metrics[1].name == "pg_wal_size_bytes"


def test_pg_wal_collector_null_size():
    conn = FakeConnection([(0, None)])
    with pytest.raises(ValueError):
        list(PGWALCollector().update(Instance(conn)))


def test_pg_xlog_location_collector():
    conn = FakeConnection([(53401,)])
    metrics = list(PGXlogLocationCollector().update(Instance(conn)))
    assert [summary(m) for m in metrics] == [({}, ValueType.GAUGE, 53401)]
    assert conn.executed == [XLOG_LOCATION_QUERY]


def test_pg_xlog_location_skipped_on_new_versions():
    conn = FakeConnection([(53401,)])
    metrics = list(PGXlogLocationCollector().update(Instance(conn, "10.0.0")))
    assert metrics == []
    assert conn.executed == []