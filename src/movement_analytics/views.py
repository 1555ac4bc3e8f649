# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for Movement Analytics.

This module turns analytics summaries into pandas DataFrames that are easy to
print or export as CSV (for example from the CLI). It does not compute
anything: every number comes from the summary records built by
``analytics.py``; amounts are only rounded for display.

The main views are:

- totals:   one row with income, expenses, balance and counts,
- groups:   one row per group subtotal (with its share of the total),
- periods:  one row per cash-flow bucket,
- detail:   one row per recent movement.
- commitments: one row per client commitment (and one per currency).

``summary_views`` picks the views that make sense for a given summary.
"""

from collections.abc import Iterable
from typing import Optional

import pandas as pd

from .models import (
    CashflowTrendSummary,
    ClientCommitmentsSummary,
    ContactMovementsSummary,
    DateRangeSummary,
    FlowTotals,
    GroupSubtotal,
    MovementDetail,
    OrganizationBalanceSummary,
    ProjectFinancialSummary,
    RoleSpendingSummary,
)

TOTALS_COLUMNS = [
    "ingresos",
    "egresos",
    "balance",
    "total",
    "count",
    "ingresos_count",
    "egresos_count",
]
GROUP_COLUMNS = ["name", "total", "count", "share_pct"]
PERIOD_COLUMNS = [
    "key",
    "name",
    "ingresos",
    "egresos",
    "net_flow",
    "cumulative_balance",
    "count",
]
DETAIL_COLUMNS = [
    "movement_date",
    "type_name",
    "amount",
    "currency_code",
    "project_name",
    "category_name",
    "description",
]
COMMITMENT_VIEW_COLUMNS = [
    "client_name",
    "project_name",
    "unit",
    "currency_code",
    "committed",
    "paid",
    "remaining",
    "paid_pct",
    "payments_count",
]
CURRENCY_TOTALS_COLUMNS = [
    "currency_code",
    "committed",
    "paid",
    "remaining",
    "paid_pct",
    "count",
]


def totals_to_dataframe(totals: FlowTotals, decimals: int = 2) -> pd.DataFrame:
    """Return a one-row DataFrame with the totals of a summary."""
    row = {
        "ingresos": round(totals.ingresos, decimals),
        "egresos": round(totals.egresos, decimals),
        "balance": round(totals.balance, decimals),
        "total": round(totals.total, decimals),
        "count": totals.count,
        "ingresos_count": totals.ingresos_count,
        "egresos_count": totals.egresos_count,
    }
    return pd.DataFrame([row], columns=TOTALS_COLUMNS)


def groups_to_dataframe(
    groups: Iterable[GroupSubtotal], decimals: int = 2
) -> pd.DataFrame:
    """
    Convert group subtotals into a DataFrame.

    Rows keep the order of ``groups`` (largest subtotal first as produced by
    the aggregation functions). ``share_pct`` is each subtotal as a
    percentage of the sum of all groups, or NaN when that sum is zero.
    """
    groups = list(groups)
    if not groups:
        return pd.DataFrame(columns=GROUP_COLUMNS)

    grand_total = sum(g.total for g in groups)
    rows: list[dict[str, object]] = []
    for g in groups:
        share = float("nan") if grand_total == 0 else g.total / grand_total * 100.0
        rows.append(
            {
                "name": g.name,
                "total": round(g.total, decimals),
                "count": g.count,
                "share_pct": round(share, decimals),
            }
        )
    return pd.DataFrame(rows, columns=GROUP_COLUMNS)


def periods_to_dataframe(
    summary: CashflowTrendSummary, decimals: int = 2
) -> pd.DataFrame:
    """One row per time bucket, in chronological order."""
    rows = [
        {
            "key": p.key,
            "name": p.name,
            "ingresos": round(p.ingresos, decimals),
            "egresos": round(p.egresos, decimals),
            "net_flow": round(p.net_flow, decimals),
            "cumulative_balance": round(p.cumulative_balance, decimals),
            "count": p.count,
        }
        for p in summary.periods
    ]
    return pd.DataFrame(rows, columns=PERIOD_COLUMNS)


def detail_to_dataframe(
    detail: Optional[MovementDetail], decimals: int = 2
) -> pd.DataFrame:
    """One row per listed movement (most recent first)."""
    if detail is None or not detail.recent:
        return pd.DataFrame(columns=DETAIL_COLUMNS)

    rows = [
        {
            "movement_date": m.movement_date.isoformat(),
            "type_name": m.type_name,
            "amount": round(m.amount, decimals),
            "currency_code": m.currency_code,
            "project_name": m.project_name,
            "category_name": m.category_name,
            "description": m.description,
        }
        for m in detail.recent
    ]
    return pd.DataFrame(rows, columns=DETAIL_COLUMNS)


def commitments_to_dataframe(
    summary: ClientCommitmentsSummary, decimals: int = 2
) -> pd.DataFrame:
    """One row per client commitment, in the currency it is reported in."""
    rows = [
        {
            "client_name": c.client_name,
            "project_name": c.project_name,
            "unit": c.unit,
            "currency_code": c.currency.code,
            "committed": round(c.committed, decimals),
            "paid": round(c.paid, decimals),
            "remaining": round(c.remaining, decimals),
            "paid_pct": round(c.paid_pct, 1),
            "payments_count": c.payments_count,
        }
        for c in summary.commitments
    ]
    return pd.DataFrame(rows, columns=COMMITMENT_VIEW_COLUMNS)


def currency_totals_to_dataframe(
    summary: ClientCommitmentsSummary, decimals: int = 2
) -> pd.DataFrame:
    rows = [
        {
            "currency_code": t.currency.code,
            "committed": round(t.committed, decimals),
            "paid": round(t.paid, decimals),
            "remaining": round(t.remaining, decimals),
            "paid_pct": round(t.paid_pct, 1),
            "count": t.count,
        }
        for t in summary.by_currency
    ]
    return pd.DataFrame(rows, columns=CURRENCY_TOTALS_COLUMNS)


def summary_views(summary, decimals: int = 2) -> dict[str, pd.DataFrame]:
    """
    Return the tabular views relevant for ``summary``, keyed by view name.

    Negative outcomes have no tabular view: an empty dict is returned.
    """
    views: dict[str, pd.DataFrame] = {}

    if isinstance(summary, CashflowTrendSummary):
        views["periods"] = periods_to_dataframe(summary, decimals)
        return views

    if isinstance(summary, ClientCommitmentsSummary):
        views["commitments"] = commitments_to_dataframe(summary, decimals)
        views["by_currency"] = currency_totals_to_dataframe(summary, decimals)
        return views

    totals = getattr(summary, "totals", None)
    if totals is None:
        return views
    views["totals"] = totals_to_dataframe(totals, decimals)

    if isinstance(summary, RoleSpendingSummary):
        views["by_contact"] = groups_to_dataframe(summary.by_contact, decimals)
        if summary.by_project is not None:
            views["by_project"] = groups_to_dataframe(summary.by_project, decimals)
    elif isinstance(summary, DateRangeSummary) and summary.group_by:
        views[f"by_{summary.group_by}"] = groups_to_dataframe(summary.groups, decimals)
    elif isinstance(summary, ProjectFinancialSummary) and summary.top_expense_categories:
        views["top_expense_categories"] = groups_to_dataframe(
            summary.top_expense_categories, decimals
        )

    if isinstance(
        summary,
        (
            OrganizationBalanceSummary,
            ContactMovementsSummary,
            RoleSpendingSummary,
            DateRangeSummary,
        ),
    ) and summary.detail is not None:
        views["detail"] = detail_to_dataframe(summary.detail, decimals)

    return views
