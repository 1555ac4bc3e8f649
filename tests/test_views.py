import math
from datetime import date

from movement_analytics.models import (
    CashflowTrendSummary,
    ClientCommitmentsSummary,
    CommitmentProgress,
    CurrencyCommitmentTotals,
    CurrencyInEffect,
    DateRangeSummary,
    FlowTotals,
    GroupSubtotal,
    Movement,
    MovementDetail,
    NotFoundOutcome,
    PeriodFlow,
    RoleSpendingSummary,
)
from movement_analytics.periods import Period
from movement_analytics.views import (
    COMMITMENT_VIEW_COLUMNS,
    CURRENCY_TOTALS_COLUMNS,
    DETAIL_COLUMNS,
    GROUP_COLUMNS,
    detail_to_dataframe,
    groups_to_dataframe,
    periods_to_dataframe,
    summary_views,
    totals_to_dataframe,
)

ARS = CurrencyInEffect(code="ARS", symbol="$")
TOTALS = FlowTotals(
    total=1500.126,
    ingresos=1000.0,
    egresos=500.126,
    balance=499.874,
    count=3,
    ingresos_count=1,
    egresos_count=2,
)
JAN = Period(start=date(2024, 1, 1), end=date(2024, 1, 31), label="Enero")


def test_totals_to_dataframe_rounds_amounts() -> None:
    df = totals_to_dataframe(TOTALS)

    assert len(df) == 1
    assert df.loc[0, "egresos"] == 500.13
    assert df.loc[0, "count"] == 3


def test_groups_to_dataframe_keeps_order_and_shares() -> None:
    df = groups_to_dataframe(
        [
            GroupSubtotal(name="Casa B", total=750, count=1),
            GroupSubtotal(name="Casa A", total=250, count=3),
        ]
    )

    assert list(df.columns) == GROUP_COLUMNS
    assert df["name"].tolist() == ["Casa B", "Casa A"]
    assert df["share_pct"].tolist() == [75.0, 25.0]


def test_groups_to_dataframe_edge_cases() -> None:
    assert groups_to_dataframe([]).empty

    df = groups_to_dataframe([GroupSubtotal(name="x", total=0, count=1)])
    assert math.isnan(df.loc[0, "share_pct"])


def test_periods_to_dataframe() -> None:
    summary = CashflowTrendSummary(
        scope="organization",
        interval="monthly",
        period=JAN,
        default_window=False,
        periods=(
            PeriodFlow("2024-01", "Enero 2024", 10, 20, -10, -10, 2),
            PeriodFlow("2024-02", "Febrero 2024", 30, 0, 30, 20, 1),
        ),
        trend="improving",
        first_mean=-10,
        second_mean=30,
        average_flow=10,
        totals=TOTALS,
        currency=ARS,
    )

    df = periods_to_dataframe(summary)

    assert df["key"].tolist() == ["2024-01", "2024-02"]
    assert df["cumulative_balance"].tolist() == [-10, 20]
    assert list(summary_views(summary)) == ["periods"]


def test_detail_to_dataframe() -> None:
    detail = MovementDetail(
        recent=(
            Movement(
                amount=12.3456,
                movement_date=date(2024, 1, 5),
                type_name="Egreso",
                currency_code="ARS",
            ),
        ),
        omitted=0,
    )

    df = detail_to_dataframe(detail)

    assert list(df.columns) == DETAIL_COLUMNS
    assert df.loc[0, "movement_date"] == "2024-01-05"
    assert df.loc[0, "amount"] == 12.35
    assert detail_to_dataframe(None).empty


def test_summary_views_by_summary_kind() -> None:
    role = RoleSpendingSummary(
        role="partner",
        totals=TOTALS,
        currency=ARS,
        by_contact=(GroupSubtotal(name="Socio", total=10, count=1),),
    )
    assert list(summary_views(role)) == ["totals", "by_contact"]

    grouped = DateRangeSummary(
        period=JAN,
        totals=TOTALS,
        currency=ARS,
        group_by="wallet",
        groups=(GroupSubtotal(name="Banco", total=10, count=1),),
        detail=MovementDetail(recent=(), omitted=0),
    )
    assert list(summary_views(grouped)) == ["totals", "by_wallet", "detail"]

    assert summary_views(NotFoundOutcome(stage="movements")) == {}


def test_summary_views_for_commitments() -> None:
    progress = CommitmentProgress(
        client_name="Ana Gómez",
        project_name="Casa A",
        unit="UF 3",
        committed=3000.0,
        paid=1000.004,
        remaining=1999.996,
        paid_pct=33.33467,
        payments_count=2,
        currency=ARS,
    )
    summary = ClientCommitmentsSummary(
        commitments=(progress,),
        by_currency=(
            CurrencyCommitmentTotals(ARS, 3000.0, 1000.004, 1999.996, 33.33467, 1),
        ),
    )

    views = summary_views(summary)

    assert set(views) == {"commitments", "by_currency"}
    commitments = views["commitments"]
    assert list(commitments.columns) == COMMITMENT_VIEW_COLUMNS
    assert commitments.loc[0, "paid"] == 1000.0
    assert commitments.loc[0, "paid_pct"] == 33.3
    assert commitments.loc[0, "currency_code"] == "ARS"
    by_currency = views["by_currency"]
    assert list(by_currency.columns) == CURRENCY_TOTALS_COLUMNS
    assert by_currency.loc[0, "remaining"] == 2000.0
    assert by_currency.loc[0, "count"] == 1
