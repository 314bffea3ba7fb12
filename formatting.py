"""
formatting.py
Currency and date display helpers shared by every page.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

import config


def currency(amount) -> str:
    """Always two decimals with the configured symbol, e.g. ₹1999.00."""
    try:
        value = float(amount or 0)
    except (TypeError, ValueError):
        value = 0.0
    return f"{config.CURRENCY_SYMBOL}{value:.2f}"


def _as_date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def date_display(value) -> str:
    """'2026-10-05' -> '5 Oct 2026'; unparseable input is returned unchanged."""
    d = _as_date(value)
    if d is None:
        return "" if value is None else str(value)
    return f"{d.day} {d.strftime('%b %Y')}"


def day_month(value) -> str:
    d = _as_date(value)
    return f"{d.day} {d.strftime('%b')}" if d else ""


def weekday(value) -> str:
    d = _as_date(value)
    return d.strftime("%A") if d else ""


def week_bounds(today: date) -> tuple[date, date]:
    """Monday and Saturday of the working week containing `today`."""
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=5)


def week_range_label(today: date) -> str:
    monday, saturday = week_bounds(today)
    if monday.year == saturday.year:
        return f"{day_month(monday)} - {date_display(saturday)}"
    return f"{date_display(monday)} - {date_display(saturday)}"


def month_label(today: date) -> str:
    return today.strftime("%B %Y")


def year_label(today: date) -> str:
    return str(today.year)
