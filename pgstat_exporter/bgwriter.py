"""Background writer statistics collector."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator

from .core import NAMESPACE, Desc, Instance, Metric, ValueType, build_fq_name, unix_seconds

BGWRITER_SUBSYSTEM = "stat_bgwriter"


def _desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, BGWRITER_SUBSYSTEM, name), help_text)


BGWRITER_DESCS = (
    _desc("checkpoints_timed_total", "Number of scheduled checkpoints that have been performed"),
    _desc("checkpoints_req_total", "Number of requested checkpoints that have been performed"),
    _desc(
        "checkpoint_write_time_total",
        "Total amount of time that has been spent in the portion of checkpoint processing "
        "where files are written to disk, in milliseconds",
    ),
    _desc(
        "checkpoint_sync_time_total",
        "Total amount of time that has been spent in the portion of checkpoint processing "
        "where files are synchronized to disk, in milliseconds",
    ),
    _desc("buffers_checkpoint_total", "Number of buffers written during checkpoints"),
    _desc("buffers_clean_total", "Number of buffers written by the background writer"),
    _desc(
        "maxwritten_clean_total",
        "Number of times the background writer stopped a cleaning scan because it had "
        "written too many buffers",
    ),
    _desc("buffers_backend_total", "Number of buffers written directly by a backend"),
    _desc(
        "buffers_backend_fsync_total",
        "Number of times a backend had to execute its own fsync call (normally the "
        "background writer handles those even when the backend does its own write)",
    ),
    _desc("buffers_alloc_total", "Number of buffers allocated"),
    _desc("stats_reset_total", "Time at which these statistics were last reset"),
)

STAT_BGWRITER_QUERY = """SELECT
		checkpoints_timed
		,checkpoints_req
		,checkpoint_write_time
		,checkpoint_sync_time
		,buffers_checkpoint
		,buffers_clean
		,maxwritten_clean
		,buffers_backend
		,buffers_backend_fsync
		,buffers_alloc
		,stats_reset
	FROM pg_stat_bgwriter;"""


@dataclass
class PGStatBGWriterCollector:
    """Counters from pg_stat_bgwriter; missing values are reported as 0."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def update(self, instance: Instance) -> Iterator[Metric]:
        *counters, stats_reset = instance.query_row(STAT_BGWRITER_QUERY)
        values = [0.0 if value is None else float(value) for value in counters]
        values.append(unix_seconds(stats_reset))
        for desc, value in zip(BGWRITER_DESCS, values):
            yield desc.metric(ValueType.COUNTER, value)