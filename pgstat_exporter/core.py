"""Metric primitives, the database instance wrapper and the WAL collectors."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Sequence

import semver

NAMESPACE = "pg"


class ValueType(enum.Enum):
    """Kind of a sample."""

    COUNTER = "counter"
    GAUGE = "gauge"


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts of a metric name with underscores."""
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


def unix_seconds(value: datetime | None) -> float:
    """Whole seconds since the epoch of a timestamp; 0 for a missing one.

    Naive timestamps are taken to be UTC.
    """
    if value is None:
        return 0.0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return float(math.floor(value.timestamp()))


@dataclass(frozen=True)
class Metric:
    """A single sample with its description and label values."""

    desc: Desc
    value_type: ValueType
    value: float
    labels: dict[str, str]

    @property
    def name(self) -> str:
        return self.desc.fq_name


@dataclass(frozen=True)
class Desc:
    """Description of a metric family: name, help text and label names."""

    fq_name: str
    help: str
    variable_labels: tuple[str, ...] = ()

    def metric(self, value_type: ValueType, value: float, *args: str) -> Metric:
        """Build a sample; the label values must match the label names."""
        if len(args) != len(self.variable_labels):
            raise ValueError(
                f"inconsistent label cardinality for {self.fq_name}: "
                f"expected {len(self.variable_labels)} label values but got {len(args)}"
            )
        return Metric(self, value_type, float(value), dict(zip(self.variable_labels, args)))


def _require(value: Any, kind: str) -> Any:
    if value is None:
        raise ValueError(f"converting NULL to {kind} is unsupported")
    return value


@dataclass
class Instance:
    """A database connection together with the server version."""

    connection: Any
    version: semver.Version = field(default_factory=lambda: semver.Version(0, 0, 0))

    def __post_init__(self) -> None:
        if isinstance(self.version, str):
            self.version = semver.Version.parse(self.version)

    def query(self, sql: str) -> list[Sequence[Any]]:
        """Run a statement and return all of its rows."""
        cursor = self.connection.cursor()
        try:
            cursor.execute(sql)
            return list(cursor.fetchall())
        finally:
            cursor.close()

    def query_row(self, sql: str) -> Sequence[Any]:
        """Run a statement and return its first row."""
        rows = self.query(sql)
        if not rows:
            raise LookupError("sql: no rows in result set")
        return rows[0]


WAL_SUBSYSTEM = "wal"

WAL_SEGMENTS = Desc(build_fq_name(NAMESPACE, WAL_SUBSYSTEM, "segments"), "Number of WAL segments")
WAL_SIZE = Desc(build_fq_name(NAMESPACE, WAL_SUBSYSTEM, "size_bytes"), "Total size of WAL segments")

WAL_QUERY = """
		SELECT
			COUNT(*) AS segments,
			SUM(size) AS size
		FROM pg_ls_waldir()
		WHERE name ~ '^[0-9A-F]{24}$'"""


@dataclass
class PGWALCollector:
    """Number and total size of WAL segments."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def update(self, instance: Instance) -> Iterator[Metric]:
        segments, size = instance.query_row(WAL_QUERY)
        yield WAL_SEGMENTS.metric(ValueType.GAUGE, _require(segments, "uint64"))
        yield WAL_SIZE.metric(ValueType.GAUGE, _require(size, "uint64"))


XLOG_LOCATION_SUBSYSTEM = "xlog_location"

XLOG_LOCATION_BYTES = Desc(
    build_fq_name(NAMESPACE, XLOG_LOCATION_SUBSYSTEM, "bytes"),
    "Postgres LSN (log sequence number) being generated on primary or replayed on "
    "replica (truncated to low 52 bits)",
)

XLOG_LOCATION_QUERY = """
	SELECT CASE
		WHEN pg_is_in_recovery() THEN (pg_last_xlog_replay_location() - '0/0') % (2^52)::bigint
		ELSE (pg_current_xlog_location() - '0/0') % (2^52)::bigint
	END AS bytes
	"""

_XLOG_LAST_VERSION = semver.Version(10, 0, 0)


@dataclass
class PGXlogLocationCollector:
    """Current or replayed xlog position on servers older than 10."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def update(self, instance: Instance) -> Iterator[Metric]:
        # xlog was renamed to WAL in PostgreSQL 10.
        if instance.version >= _XLOG_LAST_VERSION:
            self.logger.warning(
                "xlog_location collector is not available on PostgreSQL >= 10.0.0, skipping"
            )
            return
        for (value,) in instance.query(XLOG_LOCATION_QUERY):
            yield XLOG_LOCATION_BYTES.metric(ValueType.GAUGE, _require(value, "float64"))