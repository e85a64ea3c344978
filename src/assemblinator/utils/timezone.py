"""Timezone utilities for Assemblinator.

Timestamps are stored in UTC; condominium-facing renderings (reports,
CLI listings) use the timezone configured via the TIMEZONE env var.
"""

import os
from datetime import datetime
from typing import Optional

import pytz
from dateutil import parser as dateparser

MONTHS_PT_BR = (
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
)


def get_configured_timezone() -> pytz.timezone:
    """Get the configured timezone from TIMEZONE env var.

    Returns:
        pytz timezone object (defaults to UTC if not configured)
    """
    tz_name = os.getenv('TIMEZONE', 'UTC')
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        return pytz.UTC


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Return dt as an aware UTC datetime (naive values are assumed UTC).

    SQLite stores naive datetimes, so values read back need re-tagging.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def to_configured_timezone(dt: datetime, tz: Optional[pytz.timezone] = None) -> datetime:
    """Convert a datetime to the configured timezone.

    Args:
        dt: Datetime to convert (if naive, assumed to be UTC)
        tz: Target timezone (defaults to configured timezone)

    Returns:
        Datetime converted to target timezone
    """
    if tz is None:
        tz = get_configured_timezone()
    return ensure_utc(dt).astimezone(tz)


def format_datetime_long(dt: datetime, tz: Optional[pytz.timezone] = None) -> str:
    """Format a datetime as a long pt-BR date with time.

    Example: "19 de outubro de 2026 às 14:30"
    """
    local = to_configured_timezone(dt, tz)
    month = MONTHS_PT_BR[local.month - 1]
    return f"{local.day} de {month} de {local.year} às {local:%H:%M}"


def format_datetime_short(dt: datetime, tz: Optional[pytz.timezone] = None) -> str:
    """Format a datetime as a short pt-BR timestamp ("19/10/2026 14:30:05")."""
    local = to_configured_timezone(dt, tz)
    return local.strftime("%d/%m/%Y %H:%M:%S")


def parse_datetime(value: str, tz: Optional[pytz.timezone] = None) -> Optional[datetime]:
    """Parse a user-supplied date/time string into an aware UTC datetime.

    Naive inputs are interpreted in the configured timezone. Day-first
    parsing is used so "05/11/2026 19:00" means 5 November.

    Args:
        value: Date/time string (ISO format or dd/mm/yyyy hh:mm)
        tz: Timezone for naive inputs (defaults to configured timezone)

    Returns:
        Parsed UTC datetime or None if parsing fails
    """
    if not value:
        return None
    try:
        parsed = dateparser.parse(value, dayfirst='/' in value)
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed.tzinfo is None:
        if tz is None:
            tz = get_configured_timezone()
        parsed = tz.localize(parsed)
    return parsed.astimezone(pytz.UTC)
