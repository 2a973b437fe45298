"""Per-table statistics collector (pg_stat_user_tables)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from .core import NAMESPACE, Desc, Instance, Metric, ValueType, build_fq_name, unix_seconds

USER_TABLE_SUBSYSTEM = "stat_user_tables"

_LABELS = ("datname", "schemaname", "relname")


def _desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, USER_TABLE_SUBSYSTEM, name), help_text, _LABELS)


def _number(value: Any) -> float:
    return 0.0 if value is None else float(value)


@dataclass(frozen=True)
class _Column:
    desc: Desc
    value_type: ValueType
    convert: Callable[[Any], float] = _number


def _counter(name: str, help_text: str) -> _Column:
    return _Column(_desc(name, help_text), ValueType.COUNTER)


def _gauge(name: str, help_text: str) -> _Column:
    return _Column(_desc(name, help_text), ValueType.GAUGE)


def _timestamp(name: str, help_text: str) -> _Column:
    return _Column(_desc(name, help_text), ValueType.GAUGE, unix_seconds)


# One entry per value column, in the order of the query and of the emitted samples.
STAT_USER_TABLES_COLUMNS: tuple[_Column, ...] = (
    _counter("seq_scan", "Number of sequential scans initiated on this table"),
    _counter("seq_tup_read", "Number of live rows fetched by sequential scans"),
    _counter("idx_scan", "Number of index scans initiated on this table"),
    _counter("idx_tup_fetch", "Number of live rows fetched by index scans"),
    _counter("n_tup_ins", "Number of rows inserted"),
    _counter("n_tup_upd", "Number of rows updated"),
    _counter("n_tup_del", "Number of rows deleted"),
    _counter(
        "n_tup_hot_upd",
        "Number of rows HOT updated (i.e., with no separate index update required)",
    ),
    _gauge("n_live_tup", "Estimated number of live rows"),
    _gauge("n_dead_tup", "Estimated number of dead rows"),
    _gauge("n_mod_since_analyze", "Estimated number of rows changed since last analyze"),
    _timestamp(
        "last_vacuum",
        "Last time at which this table was manually vacuumed (not counting VACUUM FULL)",
    ),
    _timestamp(
        "last_autovacuum",
        "Last time at which this table was vacuumed by the autovacuum daemon",
    ),
    _timestamp("last_analyze", "Last time at which this table was manually analyzed"),
    _timestamp(
        "last_autoanalyze",
        "Last time at which this table was analyzed by the autovacuum daemon",
    ),
    _counter(
        "vacuum_count",
        "Number of times this table has been manually vacuumed (not counting VACUUM FULL)",
    ),
    _counter(
        "autovacuum_count",
        "Number of times this table has been vacuumed by the autovacuum daemon",
    ),
    _counter("analyze_count", "Number of times this table has been manually analyzed"),
    _counter(
        "autoanalyze_count",
        "Number of times this table has been analyzed by the autovacuum daemon",
    ),
    _gauge(
        "size_bytes",
        "Total disk space used by this table, in bytes, including all indexes and TOAST data",
    ),
)

STAT_USER_TABLES_QUERY = """SELECT
		current_database() datname,
		schemaname,
		relname,
		seq_scan,
		seq_tup_read,
		idx_scan,
		idx_tup_fetch,
		n_tup_ins,
		n_tup_upd,
		n_tup_del,
		n_tup_hot_upd,
		n_live_tup,
		n_dead_tup,
		n_mod_since_analyze,
		COALESCE(last_vacuum, '1970-01-01Z') as last_vacuum,
		COALESCE(last_autovacuum, '1970-01-01Z') as last_autovacuum,
		COALESCE(last_analyze, '1970-01-01Z') as last_analyze,
		COALESCE(last_autoanalyze, '1970-01-01Z') as last_autoanalyze,
		vacuum_count,
		autovacuum_count,
		analyze_count,
		autoanalyze_count,
		pg_total_relation_size(relid) as total_size
	FROM
		pg_stat_user_tables"""


def _label(value: Any) -> str:
    return "unknown" if value is None else str(value)


@dataclass
class PGStatUserTablesCollector:
    """Per-table counters; missing labels become "unknown", missing values 0."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def update(self, instance: Instance) -> Iterator[Metric]:
        width = len(_LABELS) + len(STAT_USER_TABLES_COLUMNS)
        for row in instance.query(STAT_USER_TABLES_QUERY):
            if len(row) != width:
                raise ValueError(
                    f"sql: expected {len(row)} destination arguments in Scan, not {width}"
                )
            labels = tuple(_label(value) for value in row[: len(_LABELS)])
            values = row[len(_LABELS):]
            for column, value in zip(STAT_USER_TABLES_COLUMNS, values):
                yield column.desc.metric(column.value_type, column.convert(value), *labels)