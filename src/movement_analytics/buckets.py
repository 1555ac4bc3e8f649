# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Time bucketing of movements for cash-flow analysis.

Bucket keys
-----------
- daily:   the movement date itself, "YYYY-MM-DD"
- weekly:  the Monday on or before the movement date, "YYYY-MM-DD"
           (a Sunday belongs to the week of the preceding Monday)
- monthly: "YYYY-MM"

All three formats are zero-padded, so sorting keys as strings sorts them
chronologically. ``group_by_interval`` returns buckets in ascending key order.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date, timedelta

from .models import Interval, Movement

MONTH_NAMES = (
    "Enero",
    "Febrero",
    "Marzo",
    "Abril",
    "Mayo",
    "Junio",
    "Julio",
    "Agosto",
    "Septiembre",
    "Octubre",
    "Noviembre",
    "Diciembre",
)

INTERVALS: tuple[Interval, ...] = ("daily", "weekly", "monthly")


def _check_interval(interval: str) -> None:
    if interval not in INTERVALS:
        raise ValueError(
            f"Unknown interval: {interval!r}. Expected one of {', '.join(INTERVALS)}."
        )


def bucket_key(day: date, interval: Interval) -> str:
    """Return the bucket key of ``day`` for the given interval."""
    _check_interval(interval)

    if interval == "daily":
        return day.isoformat()
    if interval == "weekly":
        # date.weekday(): Monday == 0 ... Sunday == 6
        monday = day - timedelta(days=day.weekday())
        return monday.isoformat()
    return f"{day.year:04d}-{day.month:02d}"


def group_by_interval(
    movements: Iterable[Movement], interval: Interval
) -> dict[str, list[Movement]]:
    """
    Group movements into time buckets.

    Returns
    -------
    dict[str, list[Movement]]
        Bucket key -> movements in that bucket, with keys in ascending order.
        Movements keep their input order inside each bucket.
    """
    groups: dict[str, list[Movement]] = defaultdict(list)
    for movement in movements:
        groups[bucket_key(movement.movement_date, interval)].append(movement)
    return {key: groups[key] for key in sorted(groups)}


def format_period_name(key: str, interval: Interval) -> str:
    """
    Render a human label for a bucket key.

    Examples
    --------
    - daily   "2024-03-15" -> "15 de Marzo 2024"
    - weekly  "2024-03-11" -> "Semana del 11 al 17 de Marzo 2024"
    - weekly  "2024-02-26" -> "Semana del 26 de Febrero al 3 de Marzo 2024"
    - monthly "2024-03"    -> "Marzo 2024"
    """
    _check_interval(interval)

    if interval == "daily":
        day = date.fromisoformat(key)
        return f"{day.day} de {MONTH_NAMES[day.month - 1]} {day.year}"

    if interval == "weekly":
        monday = date.fromisoformat(key)
        sunday = monday + timedelta(days=6)
        start_month = MONTH_NAMES[monday.month - 1]
        end_month = MONTH_NAMES[sunday.month - 1]
        if monday.month == sunday.month:
            return f"Semana del {monday.day} al {sunday.day} de {start_month} {monday.year}"
        if monday.year == sunday.year:
            return (
                f"Semana del {monday.day} de {start_month} "
                f"al {sunday.day} de {end_month} {monday.year}"
            )
        return (
            f"Semana del {monday.day} de {start_month} {monday.year} "
            f"al {sunday.day} de {end_month} {sunday.year}"
        )

    year, month = key.split("-")
    return f"{MONTH_NAMES[int(month) - 1]} {year}"
