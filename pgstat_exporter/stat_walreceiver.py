"""WAL receiver statistics collector (pg_stat_wal_receiver)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from .core import NAMESPACE, Desc, Instance, Metric, ValueType, build_fq_name

STAT_WAL_RECEIVER_SUBSYSTEM = "stat_wal_receiver"

LABEL_NAMES = ("upstream_host", "slot_name", "status")


def _desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, STAT_WAL_RECEIVER_SUBSYSTEM, name), help_text, LABEL_NAMES)


RECEIVE_START_LSN = _desc(
    "receive_start_lsn",
    "First write-ahead log location used when WAL receiver is started represented as a decimal",
)
RECEIVE_START_TLI = _desc(
    "receive_start_tli",
    "First timeline number used when WAL receiver is started",
)
FLUSHED_LSN = _desc(
    "flushed_lsn",
    "Last write-ahead log location already received and flushed to disk, the initial value of "
    "this field being the first log location used when WAL receiver is started represented as "
    "a decimal",
)
RECEIVED_TLI = _desc(
    "received_tli",
    "Timeline number of last write-ahead log location received and flushed to disk",
)
LAST_MSG_SEND_TIME = _desc(
    "last_msg_send_time",
    "Send time of last message received from origin WAL sender",
)
LAST_MSG_RECEIPT_TIME = _desc(
    "last_msg_receipt_time",
    "Send time of last message received from origin WAL sender",
)
LATEST_END_LSN = _desc(
    "latest_end_lsn",
    "Last write-ahead log location reported to origin WAL sender as integer",
)
LATEST_END_TIME = _desc(
    "latest_end_time",
    "Time of last write-ahead log location reported to origin WAL sender",
)
UPSTREAM_NODE = _desc("upstream_node", "Node ID of the upstream node")

PG_STAT_WAL_COLUMN_QUERY = """
	SELECT
		column_name
	FROM information_schema.columns
	WHERE
		table_name = 'pg_stat_wal_receiver' and
		column_name = 'flushed_lsn'
	"""

_FLUSHED_LSN_COLUMN = "(flushed_lsn - '0/0') % (2^52)::bigint as flushed_lsn,\n"

_WAL_RECEIVER_QUERY_TEMPLATE = """
	SELECT
		trim(both '''' from substring(conninfo from 'host=([^ ]*)')) as upstream_host,
		slot_name,
		status,
		(receive_start_lsn- '0/0') % (2^52)::bigint as receive_start_lsn,
		{flushed_lsn}
receive_start_tli,
		received_tli,
		extract(epoch from last_msg_send_time) as last_msg_send_time,
		extract(epoch from last_msg_receipt_time) as last_msg_receipt_time,
		(latest_end_lsn - '0/0') % (2^52)::bigint as latest_end_lsn,
		extract(epoch from latest_end_time) as latest_end_time,
		substring(slot_name from 'repmgr_slot_([0-9]*)') as upstream_node
	FROM pg_catalog.pg_stat_wal_receiver
	"""


def wal_receiver_query(has_flushed_lsn: bool) -> str:
    """The statement reading pg_stat_wal_receiver, with or without flushed_lsn."""
    return _WAL_RECEIVER_QUERY_TEMPLATE.format(
        flushed_lsn=_FLUSHED_LSN_COLUMN if has_flushed_lsn else ""
    )


def _integer(value: Any) -> float:
    return float(int(value))


def _real(value: Any) -> float:
    return float(value)


@dataclass(frozen=True)
class _Column:
    name: str
    desc: Desc
    value_type: ValueType
    convert: Callable[[Any], float]


_COLUMNS_BEFORE_FLUSHED = (
    _Column("receive_start_lsn", RECEIVE_START_LSN, ValueType.COUNTER, _integer),
    _Column("receive_start_tli", RECEIVE_START_TLI, ValueType.GAUGE, _integer),
)
_FLUSHED_COLUMN = _Column("flushed_lsn", FLUSHED_LSN, ValueType.COUNTER, _integer)
_COLUMNS_AFTER_FLUSHED = (
    _Column("received_tli", RECEIVED_TLI, ValueType.GAUGE, _integer),
    _Column("last_msg_send_time", LAST_MSG_SEND_TIME, ValueType.COUNTER, _real),
    _Column("last_msg_receipt_time", LAST_MSG_RECEIPT_TIME, ValueType.COUNTER, _real),
    _Column("latest_end_lsn", LATEST_END_LSN, ValueType.COUNTER, _integer),
    _Column("latest_end_time", LATEST_END_TIME, ValueType.COUNTER, _real),
    _Column("upstream_node", UPSTREAM_NODE, ValueType.GAUGE, _integer),
)

_LABEL_MESSAGES = {
    "upstream_host": "upstream host is null",
    "slot_name": "slotname host is null",
    "status": "status is null",
}


def _value_columns(has_flushed_lsn: bool) -> tuple[_Column, ...]:
    middle = (_FLUSHED_COLUMN,) if has_flushed_lsn else ()
    return _COLUMNS_BEFORE_FLUSHED + middle + _COLUMNS_AFTER_FLUSHED


@dataclass
class PGStatWalReceiverCollector:
    """WAL receiver positions and timings; rows with a missing value are skipped."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def update(self, instance: Instance) -> Iterator[Metric]:
        has_flushed_lsn = bool(instance.query(PG_STAT_WAL_COLUMN_QUERY))
        columns = _value_columns(has_flushed_lsn)
        width = len(LABEL_NAMES) + len(columns)

        for row in instance.query(wal_receiver_query(has_flushed_lsn)):
            if len(row) != width:
                raise ValueError(
                    f"sql: expected {len(row)} destination arguments in Scan, not {width}"
                )
            label_values = row[: len(LABEL_NAMES)]
            values = row[len(LABEL_NAMES):]

            missing_label = next(
                (name for name, value in zip(LABEL_NAMES, label_values) if value is None), None
            )
            if missing_label is not None:
                self.logger.debug(
                    "Skipping wal receiver stats because %s", _LABEL_MESSAGES[missing_label]
                )
                continue
            missing = next(
                (column.name for column, value in zip(columns, values) if value is None), None
            )
            if missing is not None:
                self.logger.debug("Skipping wal receiver stats because %s is null", missing)
                continue

            labels = tuple(str(value) for value in label_values)
            samples = [
                (column, column.convert(value)) for column, value in zip(columns, values)
            ]
            for column, value in samples:
                yield column.desc.metric(column.value_type, value, *labels)