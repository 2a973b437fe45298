# pgstat_exporter

Collectors that read PostgreSQL statistics views and turn each row into
Prometheus-style metrics. The package also has a loader for a YAML
configuration of authentication modules.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Connecting

`pgstat_exporter.core.Instance(connection, version)` wraps a DB-API
connection. The package uses only `cursor()`, `execute()`, `fetchall()` and
`close()` on it. `version` is the server version, given either as a
`semver.Version` or as a string such as `"14.0.0"`. If you leave it out, it
defaults to `0.0.0`.

- `Instance.query(sql)` returns all rows as a list.
- `Instance.query_row(sql)` returns the first row. It raises `LookupError`
  when there are no rows.

## Collectors

Each collector is a dataclass with an optional `logger` field. Its
`update(instance)` method is a generator that yields `Metric` objects in a
fixed order. A `Metric` holds:

- `desc`: a `Desc`, with `fq_name`, `help` and `variable_labels`
- `value_type`: `ValueType.COUNTER` or `ValueType.GAUGE`
- `value`: a float
- `labels`: a dict that maps each label name to its value

`Metric.name` is a shortcut for `desc.fq_name`.

| Module | Collector | Reads |
| --- | --- | --- |
| `pgstat_exporter.core` | `PGWALCollector` | `pg_ls_waldir()` |
| `pgstat_exporter.core` | `PGXlogLocationCollector` | xlog location (servers older than 10) |
| `pgstat_exporter.bgwriter` | `PGStatBGWriterCollector` | `pg_stat_bgwriter` |
| `pgstat_exporter.stat_database` | `PGStatDatabaseCollector` | `pg_stat_database` |
| `pgstat_exporter.stat_user_tables` | `PGStatUserTablesCollector` | `pg_stat_user_tables` |
| `pgstat_exporter.stat_statements` | `PGStatStatementsCollector` | `pg_stat_statements` |
| `pgstat_exporter.statio_user_tables` | `PGStatIOUserTablesCollector` | `pg_statio_user_tables` |
| `pgstat_exporter.statio_user_indexes` | `PGStatioUserIndexesCollector` | `pg_statio_user_indexes` |
| `pgstat_exporter.stat_walreceiver` | `PGStatWalReceiverCollector` | `pg_stat_wal_receiver` |

### Missing values and server versions

Collectors handle NULL values in different ways:

- `PGStatBGWriterCollector`, `PGStatUserTablesCollector`,
  `PGStatStatementsCollector`, `PGStatIOUserTablesCollector` and
  `PGStatioUserIndexesCollector` report a missing value as `0`. Where they
  have a missing label, they report it as `"unknown"`.
- `PGStatDatabaseCollector` skips any row with a missing value and logs the
  skip at debug level. The one exception is `stats_reset`, which is
  reported as `0` when missing. From server version 14 onward it also
  reports `active_time`, converted to seconds.
- `PGStatWalReceiverCollector` skips any row with a missing label or value.
  It first checks whether the server has a `flushed_lsn` column. It reports
  `flushed_lsn` only when that column exists.
  `wal_receiver_query(has_flushed_lsn)` returns the statement it runs.
- `PGStatStatementsCollector` uses `total_exec_time` from server version 13
  onward, and `total_time` before that.
- `PGXlogLocationCollector` logs a warning and yields nothing on server
  version 10 or later.
- `PGWALCollector` raises `ValueError` when the segment count or the size
  is NULL.

Timestamps are turned into whole seconds since the epoch by
`unix_seconds(value)`, which returns `0` for `None`. Naive datetimes are
taken as UTC.

### Metric names

Metric names are built with `build_fq_name("pg", subsystem, name)`. For
example, the WAL segment count is reported as `pg_wal_segments`.

`Desc.metric(value_type, value, *label_values)` raises `ValueError` when the
number of label values does not match the number of label names.

### Example

```python
from pgstat_exporter.core import Instance
from pgstat_exporter.stat_database import PGStatDatabaseCollector

instance = Instance(connection, "15.2.0")
for metric in PGStatDatabaseCollector().update(instance):
    print(metric.name, metric.labels, metric.value)
```

## Configuration

`pgstat_exporter.config.parse_config(text)` decodes a YAML document into a
`Config`. A `Config` has an `auth_modules` mapping of `AuthModule` objects.
Each `AuthModule` has:

- `type`
- `userpass`: a `UserPass` with `username` and `password`
- `options`: a string-to-string mapping

Unknown fields, wrongly typed values and an empty document raise
`ConfigError`. The error message lists each problem with its line number.

```yaml
auth_modules:
  first:
    type: userpass
    userpass:
      username: first
      password: password
    options:
      sslmode: disable
```

`ConfigHandler(config=None)` holds the configuration in use, and
`ConfigHandler.get_config()` returns it.

`ConfigHandler.reload_config(path)` reads a file and replaces the
configuration:

- On success, it sets `last_reload_successful` to `1.0` and records the
  time in `last_reload_success_timestamp`.
- If the file cannot be opened or parsed, it raises `ConfigError`, sets
  `last_reload_successful` to `0.0` and keeps the previous configuration.

## What this package does not do

This package is a library only. It has:

- no command-line program
- no HTTP server or `/metrics` endpoint
- no registry that enables or disables collectors, and no runner that calls
  several collectors together
- no code to open database connections; you supply the connection
- no code to build a connection string from an `AuthModule`

Applying the loaded authentication modules is up to the caller.