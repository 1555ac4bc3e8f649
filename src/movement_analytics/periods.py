# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period helpers for Movement Analytics.

This module defines a Period value object and helpers to derive the date
window of an analytics call, either from caller-supplied bounds (validated
strictly) or from a trailing window of calendar months ending today.
"""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from .errors import ValidationError

DateLike = Union[str, date]


@dataclass(frozen=True)
class Period:
    """Represents an inclusive date window with a human-readable label."""

    start: date
    end: date
    label: str


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return datetime.today().date()


def parse_date(value: Optional[DateLike], field_name: str) -> date:
    """
    Parse a YYYY-MM-DD string (or pass a date through).

    Raises
    ------
    ValidationError
        If the value is missing or not a valid ISO date.
    """
    if value is None or value == "":
        raise ValidationError(f"Missing {field_name} date. Use format YYYY-MM-DD.")

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValidationError(
            f"Invalid {field_name} date: {value!r}. Use format YYYY-MM-DD."
        ) from exc


def period_from_bounds(start: Optional[DateLike], end: Optional[DateLike]) -> Period:
    """
    Build a validated Period from explicit bounds.

    Both bounds are required and ``start`` must not be after ``end``.
    """
    start_date = parse_date(start, "start")
    end_date = parse_date(end, "end")

    if end_date < start_date:
        raise ValidationError(
            "Invalid date range: the start date must be on or before the end date."
        )

    return Period(
        start=start_date,
        end=end_date,
        label=f"{start_date.isoformat()} → {end_date.isoformat()}",
    )


def coerce_period(value: Union[Period, tuple, dict, None]) -> Optional[Period]:
    """
    Accept the date-range shapes callers commonly pass.

    - ``None``                        → None (no date restriction)
    - ``Period``                      → re-validated
    - ``(start, end)``                → validated Period
    - ``{"start": ..., "end": ...}``  → validated Period
    """
    if value is None:
        return None
    if isinstance(value, Period):
        return period_from_bounds(value.start, value.end)
    if isinstance(value, dict):
        return period_from_bounds(value.get("start"), value.get("end"))
    if isinstance(value, tuple) and len(value) == 2:
        return period_from_bounds(value[0], value[1])
    raise ValidationError(
        "Invalid date range: expected (start, end) or {'start': ..., 'end': ...}."
    )


def shift_months(day: date, months: int) -> date:
    """Move ``day`` by a number of calendar months, clamping the day of month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def trailing_months(months: int, today: Optional[date] = None) -> Period:
    """
    Trailing window of ``months`` calendar months ending today (inclusive).

    For example, with months=3 and today=2024-05-31 the window is
    2024-02-29 → 2024-05-31.
    """
    if months <= 0:
        raise ValueError("The trailing window must span at least one month.")

    end = today or _today()
    start = shift_months(end, -months)
    label = "Último mes" if months == 1 else f"Últimos {months} meses"
    return Period(start=start, end=end, label=label)
