from datetime import date

import pytest

from movement_analytics.messages import (
    format_currency,
    format_date_range,
    format_movement_count,
    format_percent,
    render_outcome,
)
from movement_analytics.models import (
    CashflowTrendSummary,
    ClientCommitmentsSummary,
    CommitmentProgress,
    ConversionFailedOutcome,
    CurrencyAmbiguityOutcome,
    CurrencyCommitmentTotals,
    CurrencyInEffect,
    FlowTotals,
    GroupSubtotal,
    InsufficientDataOutcome,
    Movement,
    MovementDetail,
    NotFoundOutcome,
    OrganizationBalanceSummary,
    PeriodFlow,
    RoleSpendingSummary,
    UnexpectedErrorOutcome,
)
from movement_analytics.periods import Period

ARS = CurrencyInEffect(code="ARS", symbol="$")
Q1 = Period(start=date(2024, 1, 1), end=date(2024, 3, 31), label="Q1")


def make_totals(ingresos: float, egresos: float) -> FlowTotals:
    return FlowTotals(
        total=ingresos + egresos,
        ingresos=ingresos,
        egresos=egresos,
        balance=ingresos - egresos,
        count=2,
        ingresos_count=1,
        egresos_count=1,
    )


@pytest.mark.parametrize(
    "amount, symbol, code, expected",
    [
        (1234.56, "$", "ARS", "$1.234,56 ARS"),
        (1234567.891, "$", "ARS", "$1.234.567,89 ARS"),
        (0, "$", None, "$0,00"),
        (-50, "US$", "USD", "-US$50,00 USD"),
    ],
)
def test_format_currency(amount, symbol, code, expected) -> None:
    assert format_currency(amount, symbol, code) == expected


def test_format_date_range_and_counts() -> None:
    assert format_date_range(Q1) == "del 01/01/2024 al 31/03/2024"
    assert format_movement_count(1) == "1 movimiento"
    assert format_movement_count(0) == "0 movimientos"
    assert format_movement_count(12) == "12 movimientos"


def test_render_balance_summary() -> None:
    detail = MovementDetail(
        recent=(
            Movement(
                amount=400,
                movement_date=date(2024, 1, 20),
                type_name="Egreso",
                project_name="Casa A",
                description="Cemento",
            ),
        ),
        omitted=2,
    )
    summary = OrganizationBalanceSummary(
        totals=make_totals(1200, 400), currency=ARS, detail=detail
    )

    text = render_outcome(summary)

    assert "Ingresos: $1.200,00 ARS" in text
    assert "Egresos: $400,00 ARS" in text
    assert "Balance: $800,00 ARS" in text
    assert "20/01/2024 · Egreso · $400,00 ARS · Casa A · Cemento" in text
    assert "... y 2 movimientos más." in text


def test_render_converted_summary_mentions_original_currencies() -> None:
    summary = OrganizationBalanceSummary(
        totals=make_totals(11, 0),
        currency=CurrencyInEffect(code="USD", symbol="US$", converted_from=("ARS", "USD")),
    )

    assert "monedas originales: ARS, USD" in render_outcome(summary)


def test_render_role_summary_lists_breakdowns() -> None:
    summary = RoleSpendingSummary(
        role="personnel",
        totals=make_totals(0, 1200),
        currency=ARS,
        by_contact=(GroupSubtotal(name="Juan Pérez", total=1200, count=2),),
        by_project=(
            GroupSubtotal(name="Casa B", total=700, count=1),
            GroupSubtotal(name="Casa A", total=500, count=1),
        ),
    )

    text = render_outcome(summary)

    assert text.startswith("Gastos en personal:")
    assert "- Juan Pérez: $1.200,00 ARS (2 movimientos)" in text
    assert text.index("Casa B") < text.index("Casa A")


def test_render_trend_summary() -> None:
    summary = CashflowTrendSummary(
        scope="organization",
        interval="monthly",
        period=Period(start=date(2024, 2, 29), end=date(2024, 5, 31), label="Últimos 3 meses"),
        default_window=True,
        periods=(
            PeriodFlow("2024-04", "Abril 2024", 100, 50, 50, 50, 2),
            PeriodFlow("2024-05", "Mayo 2024", 300, 50, 250, 300, 2),
        ),
        trend="improving",
        first_mean=50,
        second_mean=250,
        average_flow=150,
        totals=make_totals(400, 100),
        currency=ARS,
    )

    text = render_outcome(summary)

    assert "(mensual, Últimos 3 meses)" in text
    assert "- Mayo 2024:" in text
    assert "Tendencia: mejorando." in text


def test_not_found_messages_differ_by_stage() -> None:
    contact = render_outcome(NotFoundOutcome(stage="contact", subject="Maria"))
    project = render_outcome(NotFoundOutcome(stage="project", subject="Maria"))

    assert contact != project
    assert '"Maria"' in contact
    assert "proyecto" in project


def test_not_found_with_period() -> None:
    text = render_outcome(NotFoundOutcome(stage="date", period=Q1))
    assert text == "No se encontraron movimientos del 01/01/2024 al 31/03/2024."


@pytest.mark.parametrize(
    "outcome, fragment",
    [
        (CurrencyAmbiguityOutcome(currencies=("ARS", "USD")), "(ARS, USD)"),
        (
            ConversionFailedOutcome(reason="no_reference_currency", target_currency="EUR"),
            "no hay movimientos en EUR",
        ),
        (
            ConversionFailedOutcome(reason="invalid_rate", target_currency="USD"),
            "tipo de cambio",
        ),
        (InsufficientDataOutcome(periods_found=1), "al menos dos períodos"),
        (UnexpectedErrorOutcome(operation="x", message="boom"), "Intentá nuevamente"),
    ],
)
def test_render_negative_outcomes(outcome, fragment) -> None:
    assert fragment in render_outcome(outcome)


def test_render_outcome_rejects_unknown_objects() -> None:
    with pytest.raises(TypeError):
        render_outcome("not an outcome")


USD = CurrencyInEffect(code="USD", symbol="US$")


def make_progress(name: str, committed: float, paid: float, currency=USD, **extra):
    fields = {
        "client_name": name,
        "project_name": "Casa A",
        "unit": None,
        "committed": committed,
        "paid": paid,
        "remaining": committed - paid,
        "paid_pct": paid / committed * 100,
        "payments_count": 2,
        "currency": currency,
    }
    fields.update(extra)
    return CommitmentProgress(**fields)


@pytest.mark.parametrize(
    "value, expected", [(42.5, "42,5%"), (0, "0,0%"), (100, "100,0%"), (33.333, "33,3%")]
)
def test_format_percent(value, expected) -> None:
    assert format_percent(value) == expected


def test_render_single_commitment() -> None:
    progress = make_progress("Ana Gómez", 10000, 2500, unit="UF 3", payments_count=1)
    summary = ClientCommitmentsSummary(
        commitments=(progress,),
        by_currency=(CurrencyCommitmentTotals(USD, 10000, 2500, 7500, 25, 1),),
        client_name="Ana",
    )

    text = render_outcome(summary)

    assert text.startswith('Ana Gómez en el proyecto "Casa A" (UF 3):')
    assert "Monto comprometido: US$10.000,00 USD" in text
    assert "Pagado a la fecha: US$2.500,00 USD (1 pago)" in text
    assert "Saldo pendiente: US$7.500,00 USD" in text
    assert "Avance de pago: 25,0% completado, falta pagar 75,0%." in text


def test_render_commitments_grouped_by_currency() -> None:
    summary = ClientCommitmentsSummary(
        commitments=(
            make_progress("Ana Gómez", 10000, 5000),
            make_progress("Bruno Díaz", 1000000, 250000, currency=ARS, unit="Lote 2"),
        ),
        by_currency=(
            CurrencyCommitmentTotals(USD, 10000, 5000, 5000, 50, 1),
            CurrencyCommitmentTotals(ARS, 1000000, 250000, 750000, 25, 1),
        ),
    )

    text = render_outcome(summary)
    lines = text.splitlines()

    assert lines[0] == "Compromisos de pago de clientes:"
    assert lines[1] == "USD: US$10.000,00 USD comprometidos, US$5.000,00 USD pagados (50,0%)"
    assert lines[2] == "- Ana Gómez: US$10.000,00 USD (US$5.000,00 USD pagado, 50,0%)"
    assert lines[3].startswith("ARS: $1.000.000,00 ARS comprometidos")
    assert lines[4] == "- Bruno Díaz (Lote 2): $1.000.000,00 ARS ($250.000,00 ARS pagado, 25,0%)"


@pytest.mark.parametrize(
    "outcome, expected",
    [
        (
            NotFoundOutcome(stage="project", subject="Casa Z", record="commitments"),
            'No se encontraron compromisos de clientes en el proyecto "Casa Z".',
        ),
        (
            NotFoundOutcome(stage="contact", subject="Carla", record="commitments"),
            'No se encontraron compromisos de "Carla".',
        ),
        (
            NotFoundOutcome(stage="currency", subject="EUR", record="commitments"),
            "No se encontraron compromisos de clientes en EUR.",
        ),
        (
            NotFoundOutcome(stage="commitments", record="commitments"),
            "No se encontraron compromisos de clientes en esta organización.",
        ),
    ],
)
def test_render_commitments_not_found(outcome, expected) -> None:
    assert render_outcome(outcome) == expected
