"""Timing-wheel scheduling, a sharded concurrent map, snowflake IDs, FNV hashing and log rotation."""

__version__ = "0.1.0"