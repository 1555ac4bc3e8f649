# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Aggregation functions of Movement Analytics.

Each public function answers one kind of question about the movements of an
organization and returns either a summary dataclass or a negative outcome
(see ``models.py``). They all share the pipeline described in
``pipeline.py``:

    validate → one projected store query → ordered filter stages
             → currency check / conversion → aggregates → summary

Entry points
------------
- ``organization_balance``       income, expenses and balance of the organization
- ``contact_movements``          movements attributed to a named contact
- ``role_spending``              spending on subcontractors, personnel or partners
- ``date_range_movements``       filtered (and optionally grouped) date-range report
- ``cashflow_trend``             per-period cash flow and trend classification
- ``project_financial_summary``  all-time totals of one project
- ``client_commitments``         client payment commitments against actual payments

All functions take the ledger store first and the organization id second;
everything else is keyword-only. ``ValidationError`` is raised before the
store is queried and ``StoreError`` propagates unchanged. Nothing is cached
or retried: every call reads a fresh snapshot.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, replace
from operator import attrgetter
from typing import Optional, Sequence, Union

from .buckets import INTERVALS, format_period_name, group_by_interval
from .config import DEFAULT_SETTINGS, AnalyticsSettings
from .currency import convert, distinct_currencies, reference_rate
from .db import LedgerQuery, LedgerStore
from .errors import ConversionError, ValidationError
from .logging_setup import get_logger
from .models import (
    CashflowTrendSummary,
    ClientCommitmentsSummary,
    Commitment,
    CommitmentProgress,
    ContactMovementsSummary,
    ConversionFailedOutcome,
    CurrencyCommitmentTotals,
    CurrencyInEffect,
    DateRangeSummary,
    GroupBy,
    InsufficientDataOutcome,
    Interval,
    Movement,
    NotFoundOutcome,
    Outcome,
    OrganizationBalanceSummary,
    PeriodFlow,
    ProjectFinancialSummary,
    Role,
    RoleSpendingSummary,
    TrendScope,
)
from .periods import Period, coerce_period, trailing_months
from .pipeline import (
    CONTACT_ACCESSORS,
    CONTACT_COLUMNS,
    ROLE_COLUMNS,
    FilterStage,
    build_detail,
    compute_totals,
    contact_stage,
    currency_stage,
    empty_result_stage,
    fetch,
    matching_roles,
    outcome_boundary,
    project_stage,
    resolve_currency,
    run_stages,
    subtotals,
    validate_choice,
    validate_organization,
    validate_required_text,
)
from .projection import ConceptFields, ProjectionOptions, RoleFields, requested_fields
from .text import includes, matches
from .trend import classify_trend

logger = get_logger(__name__)

DateRangeArg = Union[Period, tuple, dict, None]

SPENDING_ROLES: tuple[Role, ...] = ("subcontractor", "personnel", "partner")
GROUP_BY_CHOICES: tuple[GroupBy, ...] = ("project", "category", "wallet", "type")
TREND_SCOPES: tuple[TrendScope, ...] = ("organization", "project")

GROUP_KEYS = {
    "project": (attrgetter("project_name"), "Sin proyecto"),
    "category": (attrgetter("category_name"), "Sin categoría"),
    "wallet": (attrgetter("wallet_name"), "Sin billetera"),
    "type": (attrgetter("type_name"), "Sin tipo"),
}


@dataclass(frozen=True)
class MovementFilters:
    """
    Optional multi-valued filters of ``date_range_movements``.

    Each non-empty list restricts the result; values inside one list are
    alternatives (OR), different lists combine with AND.

    Attributes
    ----------
    project_names:
        Accent/case-insensitive substrings of the project name.
    categories, wallets:
        Accent/case-insensitive category or wallet names.
    types:
        Movement types ("Ingreso", "Egreso"), case-insensitive.
    roles:
        Keep movements attributed to at least one of these roles
        (partner, subcontractor, personnel, client, member).
    """

    project_names: Sequence[str] = ()
    categories: Sequence[str] = ()
    wallets: Sequence[str] = ()
    types: Sequence[str] = ()
    roles: Sequence[str] = ()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _currency_code(currency: Optional[str]) -> Optional[str]:
    if currency is None or not currency.strip():
        return None
    return currency.strip().upper()


def _narrow(
    store: LedgerStore,
    query: LedgerQuery,
    stages: Sequence[FilterStage],
    period: Optional[Period] = None,
) -> Union[list[Movement], NotFoundOutcome]:
    """Fetch once, then run the filter stages."""
    movements = fetch(store, query)
    if not movements:
        stage = empty_result_stage(query)
        subject = query.currency_code if stage == "currency" else None
        return NotFoundOutcome(stage=stage, subject=subject, period=period)
    return run_stages(movements, stages, period=period)


def _base_stages(
    project_name: Optional[str] = None, currency: Optional[str] = None
) -> list[FilterStage]:
    stages: list[FilterStage] = []
    if project_name:
        stages.append(project_stage(project_name))
    if currency:
        stages.append(currency_stage(currency))
    return stages


def _explicit_filter_stages(filters: MovementFilters) -> list[FilterStage]:
    stages: list[FilterStage] = []

    if filters.categories:
        categories = tuple(filters.categories)
        stages.append(
            FilterStage(
                stage="filters",
                keep=lambda m: any(matches(m.category_name, c) for c in categories),
                subject=", ".join(categories),
            )
        )

    if filters.wallets:
        wallets = tuple(filters.wallets)
        stages.append(
            FilterStage(
                stage="filters",
                keep=lambda m: any(matches(m.wallet_name, w) for w in wallets),
                subject=", ".join(wallets),
            )
        )

    if filters.types:
        types = {t.lower() for t in filters.types}
        stages.append(
            FilterStage(
                stage="filters",
                keep=lambda m: (m.type_name or "").lower() in types,
                subject=", ".join(filters.types),
            )
        )

    if filters.roles:
        columns = tuple(ROLE_COLUMNS[r] for r in filters.roles)
        stages.append(
            FilterStage(
                stage="filters",
                keep=lambda m: any(getattr(m, c) is not None for c in columns),
                subject=", ".join(filters.roles),
            )
        )

    return stages


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


@outcome_boundary("organization_balance")
def organization_balance(
    store: LedgerStore,
    organization_id: str,
    *,
    currency: Optional[str] = None,
    convert_to: Optional[str] = None,
    include_detail: bool = False,
    settings: AnalyticsSettings = DEFAULT_SETTINGS,
) -> Outcome:
    """
    Income, expenses and balance of the whole organization.

    Parameters
    ----------
    currency:
        Only consider movements in this currency.
    convert_to:
        Convert every movement to this currency, using the rate of an
        in-scope movement already denominated in it.
    include_detail:
        Attach the most recent movements to the summary.
    """
    org = validate_organization(organization_id)
    code = _currency_code(currency)

    options = ProjectionOptions(
        currency=True,
        project=include_detail,
        description=include_detail,
        concepts=ConceptFields(type=True, category=include_detail),
    )
    query = LedgerQuery(
        organization_id=org, fields=requested_fields(options), currency_code=code
    )

    narrowed = _narrow(store, query, _base_stages(currency=code))
    if isinstance(narrowed, NotFoundOutcome):
        return narrowed

    resolved = resolve_currency(narrowed, convert_to, settings)
    if not isinstance(resolved, tuple):
        return resolved
    movements, currency_in_effect = resolved

    return OrganizationBalanceSummary(
        totals=compute_totals(movements),
        currency=currency_in_effect,
        detail=build_detail(movements, settings.recent_limit) if include_detail else None,
    )


@outcome_boundary("contact_movements")
def contact_movements(
    store: LedgerStore,
    organization_id: str,
    contact_name: str,
    *,
    project_name: Optional[str] = None,
    date_range: DateRangeArg = None,
    currency: Optional[str] = None,
    convert_to: Optional[str] = None,
    settings: AnalyticsSettings = DEFAULT_SETTINGS,
) -> Outcome:
    """
    Movements attributed to a contact, matched against every role column.

    The contact name is matched (accent and case-insensitive substring)
    against partner, subcontract, subcontract_contact, personnel, client and
    member; a movement is kept when any of them matches.
    """
    org = validate_organization(organization_id)
    name = validate_required_text(contact_name, "contact name")
    period = coerce_period(date_range)
    code = _currency_code(currency)

    options = ProjectionOptions(
        project=True,
        currency=True,
        description=True,
        concepts=ConceptFields(type=True, category=True),
        roles=RoleFields.all(),
    )
    query = LedgerQuery(
        organization_id=org,
        fields=requested_fields(options),
        start=period.start if period else None,
        end=period.end if period else None,
        currency_code=code,
    )

    stages = _base_stages(project_name=project_name)
    stages.append(contact_stage(name))
    stages.extend(_base_stages(currency=code))

    narrowed = _narrow(store, query, stages, period)
    if isinstance(narrowed, NotFoundOutcome):
        return narrowed

    matched: set[str] = set()
    for movement in narrowed:
        matched.update(matching_roles(movement, CONTACT_ACCESSORS, name))

    resolved = resolve_currency(narrowed, convert_to, settings)
    if not isinstance(resolved, tuple):
        return resolved
    movements, currency_in_effect = resolved

    return ContactMovementsSummary(
        contact_name=name,
        matched_roles=tuple(c for c in CONTACT_COLUMNS if c in matched),
        totals=compute_totals(movements),
        currency=currency_in_effect,
        detail=build_detail(movements, settings.recent_limit),
        project_name=project_name,
        period=period,
    )


@outcome_boundary("role_spending")
def role_spending(
    store: LedgerStore,
    organization_id: str,
    role: Role,
    *,
    project_name: Optional[str] = None,
    date_range: DateRangeArg = None,
    currency: Optional[str] = None,
    convert_to: Optional[str] = None,
    include_detail: bool = False,
    settings: AnalyticsSettings = DEFAULT_SETTINGS,
) -> Outcome:
    """
    Spending on one counterparty role (subcontractor, personnel or partner).

    The store only returns movements whose role column is set. The summary
    breaks the total down per counterparty and, when the movements span
    more than one project, per project.
    """
    org = validate_organization(organization_id)
    validate_choice(role, SPENDING_ROLES, "role")
    period = coerce_period(date_range)
    code = _currency_code(currency)
    column = ROLE_COLUMNS[role]

    options = ProjectionOptions(
        project=True,
        currency=True,
        description=include_detail,
        concepts=ConceptFields(type=True, category=include_detail),
        roles=RoleFields(
            partner=role == "partner",
            subcontract=role == "subcontractor",
            personnel=role == "personnel",
        ),
    )
    query = LedgerQuery(
        organization_id=org,
        fields=requested_fields(options),
        start=period.start if period else None,
        end=period.end if period else None,
        currency_code=code,
        not_null=(column,),
    )

    narrowed = _narrow(
        store, query, _base_stages(project_name=project_name, currency=code), period
    )
    if isinstance(narrowed, NotFoundOutcome):
        return narrowed

    resolved = resolve_currency(narrowed, convert_to, settings)
    if not isinstance(resolved, tuple):
        return resolved
    movements, currency_in_effect = resolved

    if role == "subcontractor":

        def contact_key(m: Movement) -> Optional[str]:
            return m.subcontract_contact or m.subcontract

    else:
        contact_key = attrgetter(column)

    projects = {m.project_name for m in movements}
    by_project = (
        subtotals(movements, attrgetter("project_name"), "Sin proyecto")
        if len(projects) > 1
        else None
    )

    return RoleSpendingSummary(
        role=role,
        totals=compute_totals(movements),
        currency=currency_in_effect,
        by_contact=subtotals(movements, contact_key, "Sin nombre"),
        by_project=by_project,
        project_name=project_name,
        period=period,
        detail=build_detail(movements, settings.recent_limit) if include_detail else None,
    )


@outcome_boundary("date_range_movements")
def date_range_movements(
    store: LedgerStore,
    organization_id: str,
    date_range: DateRangeArg,
    *,
    filters: Optional[MovementFilters] = None,
    group_by: Optional[GroupBy] = None,
    currency: Optional[str] = None,
    convert_to: Optional[str] = None,
    include_detail: bool = False,
    settings: AnalyticsSettings = DEFAULT_SETTINGS,
) -> Outcome:
    """
    Movements of a date range, with optional filters and grouping.

    With ``group_by`` the summary carries one subtotal per group, sorted by
    subtotal (largest first).
    """
    org = validate_organization(organization_id)
    period = coerce_period(date_range)
    if period is None:
        raise ValidationError("A date range is required.")
    if group_by is not None:
        validate_choice(group_by, GROUP_BY_CHOICES, "group_by")
    filters = filters or MovementFilters()
    for role in filters.roles:
        validate_choice(role, tuple(ROLE_COLUMNS), "role filter")
    code = _currency_code(currency)

    options = ProjectionOptions(
        project=True,
        currency=True,
        wallet=True,
        description=include_detail,
        indirect=True,
        general_cost=True,
        concepts=ConceptFields(type=True, category=True),
        roles=RoleFields.all(),
    )
    query = LedgerQuery(
        organization_id=org,
        fields=requested_fields(options),
        start=period.start,
        end=period.end,
        currency_code=code,
    )

    stages: list[FilterStage] = []
    if filters.project_names:
        project_names = tuple(filters.project_names)
        stages.append(
            FilterStage(
                stage="project",
                keep=lambda m: any(includes(m.project_name, p) for p in project_names),
                subject=", ".join(project_names),
            )
        )
    stages.extend(_explicit_filter_stages(filters))
    stages.extend(_base_stages(currency=code))

    narrowed = _narrow(store, query, stages, period)
    if isinstance(narrowed, NotFoundOutcome):
        return narrowed

    resolved = resolve_currency(narrowed, convert_to, settings)
    if not isinstance(resolved, tuple):
        return resolved
    movements, currency_in_effect = resolved

    groups = ()
    if group_by is not None:
        key, missing_label = GROUP_KEYS[group_by]
        groups = subtotals(movements, key, missing_label)

    return DateRangeSummary(
        period=period,
        totals=compute_totals(movements),
        currency=currency_in_effect,
        group_by=group_by,
        groups=groups,
        detail=build_detail(movements, settings.recent_limit) if include_detail else None,
    )


@outcome_boundary("cashflow_trend")
def cashflow_trend(
    store: LedgerStore,
    organization_id: str,
    *,
    scope: TrendScope = "organization",
    project_name: Optional[str] = None,
    interval: Interval = "monthly",
    date_range: DateRangeArg = None,
    currency: Optional[str] = None,
    convert_to: Optional[str] = None,
    settings: AnalyticsSettings = DEFAULT_SETTINGS,
) -> Outcome:
    """
    Cash flow per period and its trend.

    Movements are bucketed by day, week (Monday start) or month. For each
    bucket the summary reports income, expenses, net flow and the running
    balance. At least two populated buckets are needed to classify the
    trend; otherwise an ``InsufficientDataOutcome`` is returned.

    Without ``date_range`` the window is the trailing
    ``settings.trend_window_months`` calendar months ending today.
    """
    org = validate_organization(organization_id)
    validate_choice(scope, TREND_SCOPES, "scope")
    validate_choice(interval, INTERVALS, "interval")
    if scope == "project":
        project_name = validate_required_text(project_name, "project name")
    else:
        project_name = None
    code = _currency_code(currency)

    period = coerce_period(date_range)
    default_window = period is None
    if period is None:
        period = trailing_months(settings.trend_window_months)

    options = ProjectionOptions(
        project=scope == "project",
        currency=True,
        concepts=ConceptFields(type=True),
    )
    query = LedgerQuery(
        organization_id=org,
        fields=requested_fields(options),
        start=period.start,
        end=period.end,
        currency_code=code,
    )

    narrowed = _narrow(
        store, query, _base_stages(project_name=project_name, currency=code), period
    )
    if isinstance(narrowed, NotFoundOutcome):
        return narrowed

    resolved = resolve_currency(narrowed, convert_to, settings)
    if not isinstance(resolved, tuple):
        return resolved
    movements, currency_in_effect = resolved

    buckets = group_by_interval(movements, interval)
    if len(buckets) < 2:
        return InsufficientDataOutcome(periods_found=len(buckets), period=period)

    flows: list[PeriodFlow] = []
    cumulative = 0.0
    for key, bucket in buckets.items():
        totals = compute_totals(bucket)
        cumulative += totals.balance
        flows.append(
            PeriodFlow(
                key=key,
                name=format_period_name(key, interval),
                ingresos=totals.ingresos,
                egresos=totals.egresos,
                net_flow=totals.balance,
                cumulative_balance=cumulative,
                count=totals.count,
            )
        )

    net_flows = [f.net_flow for f in flows]
    result = classify_trend(net_flows)
    logger.debug(
        "Trend over %d %s periods: %s (%.2f -> %.2f)",
        len(flows),
        interval,
        result.trend,
        result.first_mean,
        result.second_mean,
    )

    return CashflowTrendSummary(
        scope=scope,
        interval=interval,
        period=period,
        default_window=default_window,
        periods=tuple(flows),
        trend=result.trend,
        first_mean=result.first_mean,
        second_mean=result.second_mean,
        average_flow=sum(net_flows) / len(net_flows),
        totals=compute_totals(movements),
        currency=currency_in_effect,
        project_name=(movements[0].project_name or project_name) if project_name else None,
    )


@outcome_boundary("project_financial_summary")
def project_financial_summary(
    store: LedgerStore,
    organization_id: str,
    project_name: str,
    *,
    currency: Optional[str] = None,
    convert_to: Optional[str] = None,
    include_breakdown: bool = False,
    settings: AnalyticsSettings = DEFAULT_SETTINGS,
) -> Outcome:
    """
    All-time income, expenses and balance of one project.

    With ``include_breakdown`` the summary also lists the three expense
    categories with the largest subtotal.
    """
    org = validate_organization(organization_id)
    name = validate_required_text(project_name, "project name")
    code = _currency_code(currency)

    options = ProjectionOptions(
        project=True,
        currency=True,
        concepts=ConceptFields(type=True, category=include_breakdown),
    )
    query = LedgerQuery(
        organization_id=org, fields=requested_fields(options), currency_code=code
    )

    narrowed = _narrow(store, query, _base_stages(project_name=name, currency=code))
    if isinstance(narrowed, NotFoundOutcome):
        return narrowed

    resolved = resolve_currency(narrowed, convert_to, settings)
    if not isinstance(resolved, tuple):
        return resolved
    movements, currency_in_effect = resolved

    top_categories = ()
    if include_breakdown:
        expenses = [m for m in movements if m.is_expense]
        top_categories = subtotals(
            expenses, attrgetter("category_name"), "Sin categoría"
        )[:3]

    return ProjectFinancialSummary(
        project_name=movements[0].project_name or name,
        totals=compute_totals(movements),
        currency=currency_in_effect,
        top_expense_categories=top_categories,
    )


# ---------------------------------------------------------------------------
# Client commitments
# ---------------------------------------------------------------------------


def _commitment_stages(
    project_name: Optional[str], client_name: Optional[str], currency: Optional[str]
) -> list[FilterStage]:
    stages: list[FilterStage] = []
    if project_name:
        stages.append(
            FilterStage(
                stage="project",
                keep=lambda c: includes(c.project_name, project_name),
                subject=project_name,
            )
        )
    if client_name:
        stages.append(
            FilterStage(
                stage="contact",
                keep=lambda c: includes(c.client_name, client_name),
                subject=client_name,
            )
        )
    if currency:
        stages.append(
            FilterStage(
                stage="currency",
                keep=lambda c: c.currency_code == currency,
                subject=currency,
            )
        )
    return stages


def _paid_towards(commitment: Commitment, payments: Sequence[Movement]) -> float:
    """Sum payments in the currency of ``commitment``."""
    paid = 0.0
    for payment in payments:
        if payment.currency_code == commitment.currency_code:
            paid += payment.amount
        else:
            paid += convert(
                payment.amount, payment.exchange_rate, commitment.exchange_rate
            )
    return paid


def _paid_pct(committed: float, paid: float) -> float:
    return paid / committed * 100.0 if committed > 0 else 0.0


def _totals_per_currency(
    progress: Sequence[CommitmentProgress],
) -> tuple[CurrencyCommitmentTotals, ...]:
    grouped: dict[Optional[str], list[CommitmentProgress]] = {}
    for item in progress:
        grouped.setdefault(item.currency.code, []).append(item)

    totals: list[CurrencyCommitmentTotals] = []
    for items in grouped.values():
        committed = sum(p.committed for p in items)
        paid = sum(p.paid for p in items)
        totals.append(
            CurrencyCommitmentTotals(
                currency=items[0].currency,
                committed=committed,
                paid=paid,
                remaining=committed - paid,
                paid_pct=_paid_pct(committed, paid),
                count=len(items),
            )
        )
    return tuple(totals)


@outcome_boundary("client_commitments")
def client_commitments(
    store: LedgerStore,
    organization_id: str,
    *,
    client_name: Optional[str] = None,
    project_name: Optional[str] = None,
    currency: Optional[str] = None,
    convert_to: Optional[str] = None,
    settings: AnalyticsSettings = DEFAULT_SETTINGS,
) -> Outcome:
    """
    What clients committed to pay, what they paid so far and what is left.

    Commitments are narrowed by project, then client (accent and
    case-insensitive substrings), then currency. Each payment is a movement
    whose ``commitment_id`` names the commitment it settles; payments in
    another currency are converted to the commitment currency with both
    recorded rates.

    Without ``convert_to`` amounts are only added up per currency. With it,
    the target rate comes from an in-scope commitment in that currency, or
    else from a payment in it.
    """
    org = validate_organization(organization_id)
    code = _currency_code(currency)
    target = _currency_code(convert_to)

    commitments = [
        Commitment.from_row(row) for _, row in store.fetch_commitments(org).iterrows()
    ]
    if not commitments:
        return NotFoundOutcome(stage="commitments", record="commitments")

    narrowed = run_stages(
        commitments, _commitment_stages(project_name, client_name, code)
    )
    if isinstance(narrowed, NotFoundOutcome):
        return replace(narrowed, record="commitments")

    query = LedgerQuery(
        organization_id=org,
        fields=requested_fields(ProjectionOptions(currency=True, commitment=True)),
        not_null=("commitment_id",),
    )
    payments_by_commitment: dict[str, list[Movement]] = defaultdict(list)
    payments = fetch(store, query)
    for payment in payments:
        payments_by_commitment[payment.commitment_id].append(payment)

    converted_from = distinct_currencies(narrowed) if target else ()
    progress: list[CommitmentProgress] = []
    try:
        reference = reference_rate([*narrowed, *payments], target) if target else None

        for commitment in narrowed:
            own_payments = payments_by_commitment.get(commitment.commitment_id, [])
            committed = commitment.committed_amount
            paid = _paid_towards(commitment, own_payments)
            currency_in_effect = CurrencyInEffect(
                code=commitment.currency_code,
                symbol=commitment.currency_symbol or settings.default_currency_symbol,
            )

            if reference is not None:
                if commitment.currency_code != reference.currency_code:
                    committed = convert(
                        committed, commitment.exchange_rate, reference.rate
                    )
                    paid = convert(paid, commitment.exchange_rate, reference.rate)
                currency_in_effect = CurrencyInEffect(
                    code=reference.currency_code,
                    symbol=reference.symbol or settings.default_currency_symbol,
                    converted_from=converted_from,
                )

            progress.append(
                CommitmentProgress(
                    client_name=commitment.client_name,
                    project_name=commitment.project_name,
                    unit=commitment.unit,
                    committed=committed,
                    paid=paid,
                    remaining=committed - paid,
                    paid_pct=_paid_pct(committed, paid),
                    payments_count=len(own_payments),
                    currency=currency_in_effect,
                )
            )
    except ConversionError as exc:
        failed_target = target or commitment.currency_code or ""
        logger.info("Commitment conversion to %s failed: %s", failed_target, exc)
        return ConversionFailedOutcome(
            reason=exc.reason, target_currency=failed_target, message=str(exc)
        )

    logger.debug(
        "Computed %d commitments against %d payments", len(progress), len(payments)
    )

    return ClientCommitmentsSummary(
        commitments=tuple(progress),
        by_currency=_totals_per_currency(progress),
        client_name=client_name,
        project_name=project_name,
        converted_from=converted_from,
    )
