"""Collectors for PostgreSQL statistics views, producing Prometheus-style metrics, and a YAML auth-module config loader."""

__version__ = "0.1.0"