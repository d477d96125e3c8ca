"""Iceberg daemon: trust-level consensus and anti-abuse engine."""

__version__ = "0.2.0"
