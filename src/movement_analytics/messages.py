# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Human-language rendering of analytics outcomes (Spanish).

The aggregation functions return structured records only. This module turns
each of them into the text shown to end users, for example by the CLI:

- ``format_currency(1234.56, "$", "ARS")`` -> ``"$1.234,56 ARS"``
- ``format_date_range(period)``           -> ``"del 01/01/2024 al 31/03/2024"``
- ``format_movement_count(3)``            -> ``"3 movimientos"``
- ``format_percent(42.5)``                -> ``"42,5%"``
- ``render_outcome(outcome)``             -> full message, one line per fact
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Optional

from .models import (
    CashflowTrendSummary,
    ClientCommitmentsSummary,
    ContactMovementsSummary,
    ConversionFailedOutcome,
    CurrencyAmbiguityOutcome,
    CurrencyInEffect,
    DateRangeSummary,
    FlowTotals,
    GroupSubtotal,
    InsufficientDataOutcome,
    MovementDetail,
    NotFoundOutcome,
    OrganizationBalanceSummary,
    Outcome,
    ProjectFinancialSummary,
    RoleSpendingSummary,
    UnexpectedErrorOutcome,
)
from .periods import Period

TREND_LABELS = {
    "improving": "mejorando",
    "stable": "estable",
    "worsening": "empeorando",
}

ROLE_LABELS = {
    "subcontractor": "subcontratistas",
    "personnel": "personal",
    "partner": "socios",
}

ROLE_COLUMN_LABELS = {
    "partner": "socio",
    "subcontract": "subcontrato",
    "subcontract_contact": "contacto de subcontrato",
    "personnel": "personal",
    "client": "cliente",
    "member": "miembro",
}

GROUP_BY_LABELS = {
    "project": "proyecto",
    "category": "categoría",
    "wallet": "billetera",
    "type": "tipo",
}

INTERVAL_LABELS = {
    "daily": "diario",
    "weekly": "semanal",
    "monthly": "mensual",
}


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_currency(amount: float, symbol: str = "$", code: Optional[str] = None) -> str:
    """
    Format an amount with "." as thousands separator and "," for decimals.

    Examples
    --------
    >>> format_currency(1234.56, "$", "ARS")
    '$1.234,56 ARS'
    >>> format_currency(-50, "US$")
    '-US$50,00'
    """
    sign = "-" if amount < 0 else ""
    digits = f"{abs(amount):,.2f}"
    digits = digits.replace(",", "_").replace(".", ",").replace("_", ".")
    text = f"{sign}{symbol}{digits}"
    return f"{text} {code}" if code else text


def format_date_range(period: Period) -> str:
    """Render a period as "del DD/MM/AAAA al DD/MM/AAAA"."""
    return f"del {period.start:%d/%m/%Y} al {period.end:%d/%m/%Y}"


def format_movement_count(count: int) -> str:
    return f"{count} movimiento" if count == 1 else f"{count} movimientos"


def format_percent(value: float) -> str:
    """Render a percentage with one decimal and a decimal comma ("42,5%")."""
    return f"{value:.1f}%".replace(".", ",")


def _money(amount: float, currency: CurrencyInEffect) -> str:
    return format_currency(amount, currency.symbol, currency.code)


def _currency_note(currency: CurrencyInEffect) -> list[str]:
    if not currency.converted_from:
        return []
    return [
        f"Montos convertidos a {currency.code} "
        f"(monedas originales: {', '.join(currency.converted_from)})."
    ]


def _totals_lines(totals: FlowTotals, currency: CurrencyInEffect) -> list[str]:
    return [
        f"Ingresos: {_money(totals.ingresos, currency)} "
        f"({format_movement_count(totals.ingresos_count)})",
        f"Egresos: {_money(totals.egresos, currency)} "
        f"({format_movement_count(totals.egresos_count)})",
        f"Balance: {_money(totals.balance, currency)}",
    ]


def _group_lines(
    groups: Iterable[GroupSubtotal], currency: CurrencyInEffect
) -> list[str]:
    return [
        f"- {g.name}: {_money(g.total, currency)} ({format_movement_count(g.count)})"
        for g in groups
    ]


def _detail_lines(detail: Optional[MovementDetail], currency: CurrencyInEffect) -> list[str]:
    if detail is None or not detail.recent:
        return []

    lines = ["Movimientos recientes:"]
    for m in detail.recent:
        parts = [f"{m.movement_date:%d/%m/%Y}", m.type_name or "Sin tipo", _money(m.amount, currency)]
        if m.project_name:
            parts.append(m.project_name)
        if m.category_name:
            parts.append(m.category_name)
        if m.description:
            parts.append(m.description)
        lines.append("- " + " · ".join(parts))
    if detail.omitted:
        lines.append(f"... y {format_movement_count(detail.omitted)} más.")
    return lines


def _period_suffix(period: Optional[Period]) -> str:
    return f" {format_date_range(period)}" if period else ""


# ---------------------------------------------------------------------------
# Negative outcomes
# ---------------------------------------------------------------------------


def _render_not_found(outcome: NotFoundOutcome) -> str:
    subject = outcome.subject or ""
    period = _period_suffix(outcome.period)

    if outcome.record == "commitments":
        return _render_commitments_not_found(outcome.stage, subject)

    if outcome.stage == "movements":
        return "No se encontraron movimientos para esta organización."
    if outcome.stage == "date":
        return f"No se encontraron movimientos{period}."
    if outcome.stage == "currency":
        return f"No se encontraron movimientos en {subject}{period}."
    if outcome.stage == "role":
        return f"No se encontraron movimientos asociados a ese rol{period}."
    if outcome.stage == "project":
        return f'No se encontraron movimientos del proyecto "{subject}"{period}.'
    if outcome.stage == "contact":
        return f'No se encontraron movimientos asociados a "{subject}"{period}.'
    return f"Ningún movimiento coincide con los filtros indicados ({subject}){period}."


def _render_commitments_not_found(stage: str, subject: str) -> str:
    if stage == "project":
        return f'No se encontraron compromisos de clientes en el proyecto "{subject}".'
    if stage == "contact":
        return f'No se encontraron compromisos de "{subject}".'
    if stage == "currency":
        return f"No se encontraron compromisos de clientes en {subject}."
    return "No se encontraron compromisos de clientes en esta organización."


def _render_ambiguity(outcome: CurrencyAmbiguityOutcome) -> str:
    return (
        f"Hay movimientos en varias monedas ({', '.join(outcome.currencies)}). "
        "Indicá una moneda o pedí la conversión a una de ellas."
    )


def _render_conversion_failed(outcome: ConversionFailedOutcome) -> str:
    if outcome.reason == "invalid_rate":
        cause = "hay movimientos sin un tipo de cambio válido"
    elif outcome.reason == "no_reference_currency":
        cause = (
            f"no hay movimientos en {outcome.target_currency} "
            "para tomar como referencia"
        )
    else:
        cause = outcome.message or "error de conversión"
    return f"No se pudo convertir a {outcome.target_currency}: {cause}."


def _render_insufficient(outcome: InsufficientDataOutcome) -> str:
    return (
        "Se necesitan al menos dos períodos con movimientos para analizar la "
        f"tendencia (se encontraron {outcome.periods_found})"
        f"{_period_suffix(outcome.period)}."
    )


def _render_unexpected(outcome: UnexpectedErrorOutcome) -> str:
    return "Ocurrió un error inesperado al procesar la consulta. Intentá nuevamente."


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


def _render_balance(summary: OrganizationBalanceSummary) -> str:
    lines = ["Balance de la organización:"]
    lines += _totals_lines(summary.totals, summary.currency)
    lines += _currency_note(summary.currency)
    lines += _detail_lines(summary.detail, summary.currency)
    return "\n".join(lines)


def _render_contact(summary: ContactMovementsSummary) -> str:
    header = f'Movimientos de "{summary.contact_name}"'
    if summary.project_name:
        header += f' en el proyecto "{summary.project_name}"'
    header += _period_suffix(summary.period) + ":"

    roles = ", ".join(ROLE_COLUMN_LABELS.get(r, r) for r in summary.matched_roles)
    lines = [header, f"Aparece como: {roles}."]
    lines += _totals_lines(summary.totals, summary.currency)
    lines += _currency_note(summary.currency)
    lines += _detail_lines(summary.detail, summary.currency)
    return "\n".join(lines)


def _render_role(summary: RoleSpendingSummary) -> str:
    header = f"Gastos en {ROLE_LABELS.get(summary.role, summary.role)}"
    if summary.project_name:
        header += f' del proyecto "{summary.project_name}"'
    header += _period_suffix(summary.period) + ":"

    lines = [
        header,
        f"Total: {_money(summary.totals.total, summary.currency)} "
        f"({format_movement_count(summary.totals.count)})",
    ]
    lines += _currency_note(summary.currency)
    if summary.by_contact:
        lines.append("Por contacto:")
        lines += _group_lines(summary.by_contact, summary.currency)
    if summary.by_project:
        lines.append("Por proyecto:")
        lines += _group_lines(summary.by_project, summary.currency)
    lines += _detail_lines(summary.detail, summary.currency)
    return "\n".join(lines)


def _render_date_range(summary: DateRangeSummary) -> str:
    lines = [f"Movimientos {format_date_range(summary.period)}:"]
    lines += _totals_lines(summary.totals, summary.currency)
    lines += _currency_note(summary.currency)
    if summary.group_by and summary.groups:
        lines.append(f"Por {GROUP_BY_LABELS[summary.group_by]}:")
        lines += _group_lines(summary.groups, summary.currency)
    lines += _detail_lines(summary.detail, summary.currency)
    return "\n".join(lines)


def _render_trend(summary: CashflowTrendSummary) -> str:
    if summary.scope == "project":
        header = f'Flujo de caja del proyecto "{summary.project_name}"'
    else:
        header = "Flujo de caja de la organización"
    window = (
        summary.period.label if summary.default_window else format_date_range(summary.period)
    )
    header += f" ({INTERVAL_LABELS[summary.interval]}, {window}):"

    lines = [header]
    for p in summary.periods:
        lines.append(
            f"- {p.name}: ingresos {_money(p.ingresos, summary.currency)}, "
            f"egresos {_money(p.egresos, summary.currency)}, "
            f"flujo neto {_money(p.net_flow, summary.currency)}, "
            f"acumulado {_money(p.cumulative_balance, summary.currency)}"
        )
    lines.append(
        f"Flujo promedio por período: {_money(summary.average_flow, summary.currency)}"
    )
    lines.append(f"Tendencia: {TREND_LABELS[summary.trend]}.")
    lines += _currency_note(summary.currency)
    return "\n".join(lines)


def _render_project(summary: ProjectFinancialSummary) -> str:
    lines = [f'Resumen financiero del proyecto "{summary.project_name}":']
    lines += _totals_lines(summary.totals, summary.currency)
    lines += _currency_note(summary.currency)
    if summary.top_expense_categories:
        lines.append("Principales categorías de egreso:")
        lines += _group_lines(summary.top_expense_categories, summary.currency)
    return "\n".join(lines)


def _render_commitments(summary: ClientCommitmentsSummary) -> str:
    if len(summary.commitments) == 1:
        c = summary.commitments[0]
        header = c.client_name
        if c.project_name:
            header += f' en el proyecto "{c.project_name}"'
        if c.unit:
            header += f" ({c.unit})"
        payments = "1 pago" if c.payments_count == 1 else f"{c.payments_count} pagos"
        lines = [
            header + ":",
            f"Monto comprometido: {_money(c.committed, c.currency)}",
            f"Pagado a la fecha: {_money(c.paid, c.currency)} ({payments})",
            f"Saldo pendiente: {_money(c.remaining, c.currency)}",
            f"Avance de pago: {format_percent(c.paid_pct)} completado, "
            f"falta pagar {format_percent(c.pending_pct)}.",
        ]
        lines += _currency_note(c.currency)
        return "\n".join(lines)

    header = "Compromisos de pago de clientes"
    if summary.project_name:
        header += f' en "{summary.project_name}"'
    lines = [header + ":"]
    for totals in summary.by_currency:
        lines.append(
            f"{totals.currency.code or 'Sin moneda'}: "
            f"{_money(totals.committed, totals.currency)} comprometidos, "
            f"{_money(totals.paid, totals.currency)} pagados "
            f"({format_percent(totals.paid_pct)})"
        )
        for c in summary.commitments:
            if c.currency.code != totals.currency.code:
                continue
            name = f"{c.client_name} ({c.unit})" if c.unit else c.client_name
            lines.append(
                f"- {name}: {_money(c.committed, c.currency)} "
                f"({_money(c.paid, c.currency)} pagado, {format_percent(c.paid_pct)})"
            )
    if summary.commitments:
        lines += _currency_note(summary.commitments[0].currency)
    return "\n".join(lines)


_RENDERERS: dict[type, Callable] = {
    NotFoundOutcome: _render_not_found,
    CurrencyAmbiguityOutcome: _render_ambiguity,
    ConversionFailedOutcome: _render_conversion_failed,
    InsufficientDataOutcome: _render_insufficient,
    UnexpectedErrorOutcome: _render_unexpected,
    OrganizationBalanceSummary: _render_balance,
    ContactMovementsSummary: _render_contact,
    RoleSpendingSummary: _render_role,
    DateRangeSummary: _render_date_range,
    CashflowTrendSummary: _render_trend,
    ProjectFinancialSummary: _render_project,
    ClientCommitmentsSummary: _render_commitments,
}


def render_outcome(outcome: Outcome) -> str:
    """
    Render any outcome returned by ``analytics`` as a Spanish message.

    Raises
    ------
    TypeError
        If ``outcome`` is not one of the outcome or summary records.
    """
    renderer = _RENDERERS.get(type(outcome))
    if renderer is None:
        raise TypeError(f"Cannot render object of type {type(outcome).__name__}.")
    return renderer(outcome)
