"""Per-table I/O statistics collector (pg_statio_user_tables)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

from .core import NAMESPACE, Desc, Instance, Metric, ValueType, build_fq_name

STATIO_USER_TABLE_SUBSYSTEM = "statio_user_tables"

_LABELS = ("datname", "schemaname", "relname")


def _desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, STATIO_USER_TABLE_SUBSYSTEM, name), help_text, _LABELS)


# One description per value column, in the order of the query and of the emitted samples.
STATIO_USER_TABLES_DESCS = (
    _desc("heap_blocks_read", "Number of disk blocks read from this table"),
    _desc("heap_blocks_hit", "Number of buffer hits in this table"),
    _desc("idx_blocks_read", "Number of disk blocks read from all indexes on this table"),
    _desc("idx_blocks_hit", "Number of buffer hits in all indexes on this table"),
    _desc("toast_blocks_read", "Number of disk blocks read from this table's TOAST table (if any)"),
    _desc("toast_blocks_hit", "Number of buffer hits in this table's TOAST table (if any)"),
    _desc(
        "tidx_blocks_read",
        "Number of disk blocks read from this table's TOAST table indexes (if any)",
    ),
    _desc("tidx_blocks_hit", "Number of buffer hits in this table's TOAST table indexes (if any)"),
)

STATIO_USER_TABLES_QUERY = """SELECT
		current_database() datname,
		schemaname,
		relname,
		heap_blks_read,
		heap_blks_hit,
		idx_blks_read,
		idx_blks_hit,
		toast_blks_read,
		toast_blks_hit,
		tidx_blks_read,
		tidx_blks_hit
	FROM pg_statio_user_tables"""


def _label(value: Any) -> str:
    return "unknown" if value is None else str(value)


def _number(value: Any) -> float:
    return 0.0 if value is None else float(value)


@dataclass
class PGStatIOUserTablesCollector:
    """Per-table block I/O counters; missing labels become "unknown", missing values 0."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def update(self, instance: Instance) -> Iterator[Metric]:
        width = len(_LABELS) + len(STATIO_USER_TABLES_DESCS)
        for row in instance.query(STATIO_USER_TABLES_QUERY):
            if len(row) != width:
                raise ValueError(
                    f"sql: expected {len(row)} destination arguments in Scan, not {width}"
                )
            labels = tuple(_label(value) for value in row[: len(_LABELS)])
            for desc, value in zip(STATIO_USER_TABLES_DESCS, row[len(_LABELS):]):
                yield desc.metric(ValueType.COUNTER, _number(value), *labels)