"""Per-statement execution statistics collector (pg_stat_statements)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

import semver

from .core import NAMESPACE, Desc, Instance, Metric, ValueType, build_fq_name

STAT_STATEMENTS_SUBSYSTEM = "stat_statements"

_LABELS = ("user", "datname", "queryid")


def _desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, STAT_STATEMENTS_SUBSYSTEM, name), help_text, _LABELS)


# One description per value column, in the order of the query and of the emitted samples.
STAT_STATEMENTS_DESCS = (
    _desc("calls_total", "Number of times executed"),
    _desc("seconds_total", "Total time spent in the statement, in seconds"),
    _desc("rows_total", "Total number of rows retrieved or affected by the statement"),
    _desc("block_read_seconds_total", "Total time the statement spent reading blocks, in seconds"),
    _desc("block_write_seconds_total", "Total time the statement spent writing blocks, in seconds"),
)


def _statements_query(time_column: str) -> str:
    """Build the top-statements query around the given total-time column."""
    source = "pg_stat_statements"
    selected = ", ".join(
        (
            "pg_get_userbyid(userid) as user",
            "pg_database.datname",
            f"{source}.queryid",
            f"{source}.calls as calls_total",
            f"{source}.{time_column} / 1000.0 as seconds_total",
            f"{source}.rows as rows_total",
            f"{source}.blk_read_time / 1000.0 as block_read_seconds_total",
            f"{source}.blk_write_time / 1000.0 as block_write_seconds_total",
        )
    )
    threshold = (
        f"SELECT percentile_cont(0.1) WITHIN GROUP (ORDER BY {time_column}) FROM {source}"
    )
    return (
        f"SELECT {selected} FROM {source} "
        f"JOIN pg_database ON pg_database.oid = {source}.dbid "
        f"WHERE {time_column} > ({threshold}) "
        "ORDER BY seconds_total DESC LIMIT 100;"
    )


# Servers before 13 call the column total_time; later ones total_exec_time.
PG_STAT_STATEMENTS_QUERY = _statements_query("total_time")
PG_STAT_STATEMENTS_NEW_QUERY = _statements_query("total_exec_time")

_NEW_QUERY_VERSION = semver.Version(13, 0, 0)


def _label(value: Any) -> str:
    return "unknown" if value is None else str(value)


def _number(value: Any) -> float:
    return 0.0 if value is None else float(value)


@dataclass
class PGStatStatementsCollector:
    """Top statements by time; missing labels become "unknown", missing values 0."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def update(self, instance: Instance) -> Iterator[Metric]:
        query = PG_STAT_STATEMENTS_QUERY
        if instance.version >= _NEW_QUERY_VERSION:
            query = PG_STAT_STATEMENTS_NEW_QUERY

        width = len(_LABELS) + len(STAT_STATEMENTS_DESCS)
        for row in instance.query(query):
            if len(row) != width:
                raise ValueError(
                    f"sql: expected {len(row)} destination arguments in Scan, not {width}"
                )
            labels = tuple(_label(value) for value in row[: len(_LABELS)])
            for desc, value in zip(STAT_STATEMENTS_DESCS, row[len(_LABELS):]):
                yield desc.metric(ValueType.COUNTER, _number(value), *labels)