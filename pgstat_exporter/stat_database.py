"""Per-database statistics collector (pg_stat_database)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator

import semver

from .core import NAMESPACE, Desc, Instance, Metric, ValueType, build_fq_name, unix_seconds

STAT_DATABASE_SUBSYSTEM = "stat_database"

_LABELS = ("datid", "datname")


def _desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, STAT_DATABASE_SUBSYSTEM, name), help_text, _LABELS)


# Column name -> (description, value type), in the order the samples are emitted.
STAT_DATABASE_METRICS: dict[str, tuple[Desc, ValueType]] = {
    "numbackends": (
        _desc(
            "numbackends",
            "Number of backends currently connected to this database. This is the only column "
            "in this view that returns a value reflecting current state; all other columns "
            "return the accumulated values since the last reset.",
        ),
        ValueType.GAUGE,
    ),
    "xact_commit": (
        _desc("xact_commit", "Number of transactions in this database that have been committed"),
        ValueType.COUNTER,
    ),
    "xact_rollback": (
        _desc("xact_rollback", "Number of transactions in this database that have been rolled back"),
        ValueType.COUNTER,
    ),
    "blks_read": (
        _desc("blks_read", "Number of disk blocks read in this database"),
        ValueType.COUNTER,
    ),
    "blks_hit": (
        _desc(
            "blks_hit",
            "Number of times disk blocks were found already in the buffer cache, so that a read "
            "was not necessary (this only includes hits in the PostgreSQL buffer cache, not the "
            "operating system's file system cache)",
        ),
        ValueType.COUNTER,
    ),
    "tup_returned": (
        _desc("tup_returned", "Number of rows returned by queries in this database"),
        ValueType.COUNTER,
    ),
    "tup_fetched": (
        _desc("tup_fetched", "Number of rows fetched by queries in this database"),
        ValueType.COUNTER,
    ),
    "tup_inserted": (
        _desc("tup_inserted", "Number of rows inserted by queries in this database"),
        ValueType.COUNTER,
    ),
    "tup_updated": (
        _desc("tup_updated", "Number of rows updated by queries in this database"),
        ValueType.COUNTER,
    ),
    "tup_deleted": (
        _desc("tup_deleted", "Number of rows deleted by queries in this database"),
        ValueType.COUNTER,
    ),
    "conflicts": (
        _desc(
            "conflicts",
            "Number of queries canceled due to conflicts with recovery in this database. "
            "(Conflicts occur only on standby servers; see pg_stat_database_conflicts for "
            "details.)",
        ),
        ValueType.COUNTER,
    ),
    "temp_files": (
        _desc(
            "temp_files",
            "Number of temporary files created by queries in this database. All temporary "
            "files are counted, regardless of why the temporary file was created (e.g., sorting "
            "or hashing), and regardless of the log_temp_files setting.",
        ),
        ValueType.COUNTER,
    ),
    "temp_bytes": (
        _desc(
            "temp_bytes",
            "Total amount of data written to temporary files by queries in this database. All "
            "temporary files are counted, regardless of why the temporary file was created, and "
            "regardless of the log_temp_files setting.",
        ),
        ValueType.COUNTER,
    ),
    "deadlocks": (
        _desc("deadlocks", "Number of deadlocks detected in this database"),
        ValueType.COUNTER,
    ),
    "blk_read_time": (
        _desc(
            "blk_read_time",
            "Time spent reading data file blocks by backends in this database, in milliseconds",
        ),
        ValueType.COUNTER,
    ),
    "blk_write_time": (
        _desc(
            "blk_write_time",
            "Time spent writing data file blocks by backends in this database, in milliseconds",
        ),
        ValueType.COUNTER,
    ),
}

STATS_RESET_DESC = _desc("stats_reset", "Time at which these statistics were last reset")
ACTIVE_TIME_DESC = _desc(
    "active_time_seconds_total",
    "Time spent executing SQL statements in this database, in seconds",
)

STAT_DATABASE_COLUMNS = (
    "datid",
    "datname",
    *STAT_DATABASE_METRICS,
    "stats_reset",
)

_ACTIVE_TIME_VERSION = semver.Version(14, 0, 0)


def stat_database_query(columns: Iterable[str]) -> str:
    """The statement selecting *columns* from pg_stat_database."""
    return f"SELECT {','.join(columns)} FROM pg_stat_database;"


@dataclass
class PGStatDatabaseCollector:
    """Per-database counters; rows with a missing value are skipped."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def update(self, instance: Instance) -> Iterator[Metric]:
        active_time_available = instance.version >= _ACTIVE_TIME_VERSION
        columns = list(STAT_DATABASE_COLUMNS)
        if active_time_available:
            columns.append("active_time")
        required = [name for name in columns if name != "stats_reset"]

        for row in instance.query(stat_database_query(columns)):
            record = dict(zip(columns, row))
            missing = next((name for name in required if record.get(name) is None), None)
            if missing is not None:
                self.logger.debug("Skipping collecting metric because it has no %s", missing)
                continue

            if record["stats_reset"] is None:
                self.logger.debug("No metric for stats_reset, will collect 0 instead")
            stats_reset = unix_seconds(record["stats_reset"])

            labels = (str(record["datid"]), str(record["datname"]))
            for name, (desc, value_type) in STAT_DATABASE_METRICS.items():
                yield desc.metric(value_type, float(record[name]), *labels)
            yield STATS_RESET_DESC.metric(ValueType.COUNTER, stats_reset, *labels)
            if active_time_available:
                yield ACTIVE_TIME_DESC.metric(
                    ValueType.COUNTER, float(record["active_time"]) / 1000.0, *labels
                )