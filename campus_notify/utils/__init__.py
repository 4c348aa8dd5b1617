"""Utility functions for UTC time handling."""

from .timestamps import (
    cutoff_before,
    ensure_utc,
    format_timestamp,
    parse_iso_datetime,
    utc_now,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "format_timestamp",
    "parse_iso_datetime",
    "cutoff_before",
]
