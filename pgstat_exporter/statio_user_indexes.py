"""Per-index I/O statistics collector (pg_statio_user_indexes)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

from .core import NAMESPACE, Desc, Instance, Metric, ValueType, build_fq_name

STATIO_USER_INDEXES_SUBSYSTEM = "statio_user_indexes"

_LABELS = ("schemaname", "relname", "indexrelname")


def _desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, STATIO_USER_INDEXES_SUBSYSTEM, name), help_text, _LABELS)


# One description per value column, in the order of the query and of the emitted samples.
STATIO_USER_INDEXES_DESCS = (
    _desc("idx_blks_read_total", "Number of disk blocks read from this index"),
    _desc("idx_blks_hit_total", "Number of buffer hits in this index"),
)

STATIO_USER_INDEXES_QUERY = """
	SELECT
		schemaname,
		relname,
		indexrelname,
		idx_blks_read,
		idx_blks_hit
	FROM pg_statio_user_indexes
	"""


def _label(value: Any) -> str:
    return "unknown" if value is None else str(value)


def _number(value: Any) -> float:
    return 0.0 if value is None else float(value)


@dataclass
class PGStatioUserIndexesCollector:
    """Per-index block I/O counters; missing labels become "unknown", missing values 0."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def update(self, instance: Instance) -> Iterator[Metric]:
        width = len(_LABELS) + len(STATIO_USER_INDEXES_DESCS)
        for row in instance.query(STATIO_USER_INDEXES_QUERY):
            if len(row) != width:
                raise ValueError(
                    f"sql: expected {len(row)} destination arguments in Scan, not {width}"
                )
            labels = tuple(_label(value) for value in row[: len(_LABELS)])
            for desc, value in zip(STATIO_USER_INDEXES_DESCS, row[len(_LABELS):]):
                yield desc.metric(ValueType.COUNTER, _number(value), *labels)