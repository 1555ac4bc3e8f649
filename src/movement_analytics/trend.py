# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Cash-flow trend classification.

The classifier compares the average net flow of the first half of a
chronological series with the average of the second half. It is a relative
threshold heuristic, not a statistical test:

- improving: second mean > first mean * 1.1
- worsening: second mean < first mean * 0.9
- stable:    anything else
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .models import Trend

IMPROVING_FACTOR = 1.1
WORSENING_FACTOR = 0.9


@dataclass(frozen=True)
class TrendResult:
    trend: Trend
    first_mean: float
    second_mean: float


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def classify_trend(values: Sequence[float]) -> TrendResult:
    """
    Classify a chronological series of per-period net flows.

    The series is split at ``len(values) // 2``: the first half holds the
    indices before the split, the second half everything from it.

    Raises
    ------
    ValueError
        If fewer than two values are given.
    """
    if len(values) < 2:
        raise ValueError("At least two periods are required to classify a trend.")

    split = len(values) // 2
    first_mean = _mean(values[:split])
    second_mean = _mean(values[split:])

    if second_mean > first_mean * IMPROVING_FACTOR:
        trend: Trend = "improving"
    elif second_mean < first_mean * WORSENING_FACTOR:
        trend = "worsening"
    else:
        trend = "stable"

    return TrendResult(trend=trend, first_mean=first_mean, second_mean=second_mean)
