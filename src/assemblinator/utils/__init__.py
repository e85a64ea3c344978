"""Utility helpers for Assemblinator."""

from .timezone import (
    get_configured_timezone,
    to_configured_timezone,
    format_datetime_long,
    format_datetime_short,
    parse_datetime,
)

__all__ = [
    "get_configured_timezone",
    "to_configured_timezone",
    "format_datetime_long",
    "format_datetime_short",
    "parse_datetime",
]
