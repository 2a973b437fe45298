from datetime import datetime, timedelta, timezone

import pytest

from pgstat_exporter.bgwriter import STAT_BGWRITER_QUERY, PGStatBGWriterCollector
from pgstat_exporter.core import Instance, ValueType


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
        pass


class FakeConnection:
    def __init__(self, *results):
        self.results = list(results)
        self.executed = []

    def cursor(self):
        return FakeCursor(self)


def summary(metric):
    return metric.labels, metric.value_type, metric.value


def test_pg_stat_bgwriter_collector():
    reset = datetime(2023, 5, 25, 17, 10, 42, 811320, tzinfo=timezone(timedelta(hours=-7)))
    row = (354, 4945, 289097744, 1242257, 3275602074, 89320867, 450139, 2034563757, 0,
           2725688749, reset)
    conn = FakeConnection([row])
    metrics = list(PGStatBGWriterCollector().update(Instance(conn)))
    expected = [354, 4945, 289097744, 1242257, 3275602074, 89320867, 450139, 2034563757, 0,
                2725688749, 1685059842]
    assert [summary(m) for m in metrics] == [({}, ValueType.COUNTER, v) for v in expected]
    assert conn.executed == [STAT_BGWRITER_QUERY]
    assert metrics[0].name == "pg_stat_bgwriter_checkpoints_timed_total"
    assert metrics[-1].name == "pg_stat_bgwriter_stats_reset_total"


def test_pg_stat_bgwriter_collector_null_values():
    conn = FakeConnection([(None,) * 11])
    metrics = list(PGStatBGWriterCollector().update(Instance(conn)))
    assert [summary(m) for m in metrics] == [({}, ValueType.COUNTER, 0)] * 11


def test_pg_stat_bgwriter_collector_no_row():
    conn = FakeConnection([])
    with pytest.raises(LookupError):
        list(PGStatBGWriterCollector().update(Instance(conn)))