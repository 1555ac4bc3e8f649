# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Typed records shared by the analytics engine.

This module defines:

- ``Movement``: one directional financial event read from the ledger store.
  It is a fixed record with explicit optional fields; columns that were not
  part of the query projection are simply ``None``.

- ``Commitment``: amount a client agreed to pay for a project.

- Negative outcomes returned by the aggregation functions:
    * ``NotFoundOutcome``           (a filter stage emptied the result set),
    * ``CurrencyAmbiguityOutcome``  (several currencies, no conversion target),
    * ``ConversionFailedOutcome``   (invalid rate / missing reference currency),
    * ``InsufficientDataOutcome``   (cash-flow trend with fewer than 2 periods),
    * ``UnexpectedErrorOutcome``    (anything else, logged at the boundary).

- Summaries returned on success, one per aggregation function, built from a
  handful of shared value objects (``FlowTotals``, ``CurrencyInEffect``,
  ``MovementDetail``, ``GroupSubtotal``, ``PeriodFlow``).

Human-language rendering of these records lives in ``messages.py`` and
tabular rendering in ``views.py``; nothing here formats text.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal, Optional, Union

import pandas as pd

from .periods import Period

Interval = Literal["daily", "weekly", "monthly"]
Role = Literal["subcontractor", "personnel", "partner"]
GroupBy = Literal["project", "category", "wallet", "type"]
TrendScope = Literal["organization", "project"]
Trend = Literal["improving", "stable", "worsening"]

NotFoundStage = Literal[
    "movements",
    "date",
    "currency",
    "role",
    "project",
    "contact",
    "filters",
    "commitments",
]
"""
Which step of the pipeline produced an empty result.

- "movements": the organization has no movements at all.
- "date":      nothing in the requested date range.
- "currency":  nothing in the requested currency.
- "role":      no movement attributed to the requested role.
- "project":   the project name did not match any movement.
- "contact":   the contact name did not match any role column.
- "filters":   the explicit category/wallet/type/role filters left nothing.
- "commitments": the organization has no client commitments at all.
"""

NotFoundRecord = Literal["movements", "commitments"]

INCOME_TYPE = "ingreso"
EXPENSE_TYPE = "egreso"


# ---------------------------------------------------------------------------
# Movement
# ---------------------------------------------------------------------------


def _clean(value: Any) -> Any:
    """Map pandas/SQL missing markers (None, NaN, NaT) to None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        # Non-scalar values are returned as-is.
        pass
    return value


def _to_date(value: Any) -> date:
    # pandas.Timestamp is a datetime subclass.
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _to_optional_str(value: Any) -> Optional[str]:
    value = _clean(value)
    if value is None:
        return None
    return str(value)


def _to_optional_float(value: Any) -> Optional[float]:
    value = _clean(value)
    if value is None:
        return None
    return float(value)


def _to_currency_code(value: Any) -> Optional[str]:
    value = _to_optional_str(value)
    if value is None or not value.strip():
        return None
    return value.strip().upper()


@dataclass(frozen=True)
class Movement:
    """
    One financial movement as seen by the analytics engine.

    ``amount`` is always positive; the direction comes from ``type_name``
    ("Ingreso" / "Egreso", compared case-insensitively). ``exchange_rate``
    is relative to an abstract base unit shared by all currencies of the
    organization and was recorded when the movement was written.
    """

    amount: float
    movement_date: date
    organization_id: Optional[str] = None

    type_name: Optional[str] = None
    category_name: Optional[str] = None
    subcategory_name: Optional[str] = None

    currency_code: Optional[str] = None
    currency_symbol: Optional[str] = None
    exchange_rate: Optional[float] = None

    wallet_name: Optional[str] = None
    project_name: Optional[str] = None
    description: Optional[str] = None

    # Role attributions
    partner: Optional[str] = None
    subcontract: Optional[str] = None
    subcontract_contact: Optional[str] = None
    personnel: Optional[str] = None
    client: Optional[str] = None
    member: Optional[str] = None

    indirect: Optional[str] = None
    general_cost: Optional[str] = None

    # Client commitment settled by this movement (payments only)
    commitment_id: Optional[str] = None

    @property
    def is_income(self) -> bool:
        return (self.type_name or "").lower() == INCOME_TYPE

    @property
    def is_expense(self) -> bool:
        return (self.type_name or "").lower() == EXPENSE_TYPE

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Movement":
        """Build a Movement from a flat ledger row (dict or pandas Series).

        Only ``amount`` and ``movement_date`` are required; every other
        column defaults to None when absent from the row. The currency code
        is upper-cased.
        """
        text_fields = (
            "organization_id",
            "type_name",
            "category_name",
            "subcategory_name",
            "currency_symbol",
            "wallet_name",
            "project_name",
            "description",
            "partner",
            "subcontract",
            "subcontract_contact",
            "personnel",
            "client",
            "member",
            "indirect",
            "general_cost",
            "commitment_id",
        )
        values: dict[str, Any] = {
            name: _to_optional_str(row.get(name)) for name in text_fields
        }
        return cls(
            amount=float(row["amount"]),
            movement_date=_to_date(row["movement_date"]),
            currency_code=_to_currency_code(row.get("currency_code")),
            exchange_rate=_to_optional_float(row.get("exchange_rate")),
            **values,
        )


@dataclass(frozen=True)
class Commitment:
    """
    Amount a client agreed to pay for a project (or one unit of it).

    The commitment is denominated in ``currency_code`` and carries the
    exchange rate recorded when it was agreed. Payments are movements whose
    ``commitment_id`` points back to it.
    """

    commitment_id: str
    client_name: str
    committed_amount: float
    project_name: Optional[str] = None
    unit: Optional[str] = None
    currency_code: Optional[str] = None
    currency_symbol: Optional[str] = None
    exchange_rate: Optional[float] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Commitment":
        return cls(
            commitment_id=str(row["commitment_id"]),
            client_name=str(row["client_name"]),
            committed_amount=float(row["committed_amount"]),
            project_name=_to_optional_str(row.get("project_name")),
            unit=_to_optional_str(row.get("unit")),
            currency_code=_to_currency_code(row.get("currency_code")),
            currency_symbol=_to_optional_str(row.get("currency_symbol")),
            exchange_rate=_to_optional_float(row.get("exchange_rate")),
        )


# ---------------------------------------------------------------------------
# Shared value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FlowTotals:
    """
    Sums of a set of movements.

    Attributes
    ----------
    total:
        Sum of every amount regardless of direction.
    ingresos, egresos:
        Sums of income and expense movements.
    balance:
        ``ingresos - egresos``.
    count, ingresos_count, egresos_count:
        Number of movements overall and per direction.
    """

    total: float
    ingresos: float
    egresos: float
    balance: float
    count: int
    ingresos_count: int
    egresos_count: int


@dataclass(frozen=True)
class CurrencyInEffect:
    """Currency the amounts of a summary are expressed in.

    ``converted_from`` lists the original currency codes when a conversion
    target was requested, and is empty otherwise.
    """

    code: Optional[str]
    symbol: str
    converted_from: tuple[str, ...] = ()


@dataclass(frozen=True)
class MovementDetail:
    """Most recent movements (date descending) and how many were left out."""

    recent: tuple[Movement, ...]
    omitted: int


@dataclass(frozen=True)
class GroupSubtotal:
    name: str
    total: float
    count: int


@dataclass(frozen=True)
class PeriodFlow:
    """Cash flow for one time bucket."""

    key: str
    name: str
    ingresos: float
    egresos: float
    net_flow: float
    cumulative_balance: float
    count: int


# ---------------------------------------------------------------------------
# Negative outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NotFoundOutcome:
    stage: NotFoundStage
    subject: Optional[str] = None
    period: Optional[Period] = None
    record: NotFoundRecord = "movements"


@dataclass(frozen=True)
class CurrencyAmbiguityOutcome:
    currencies: tuple[str, ...]


@dataclass(frozen=True)
class ConversionFailedOutcome:
    reason: str
    target_currency: str
    message: str = ""


@dataclass(frozen=True)
class InsufficientDataOutcome:
    periods_found: int
    period: Optional[Period] = None


@dataclass(frozen=True)
class UnexpectedErrorOutcome:
    operation: str
    message: str = ""


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrganizationBalanceSummary:
    totals: FlowTotals
    currency: CurrencyInEffect
    detail: Optional[MovementDetail] = None


@dataclass(frozen=True)
class ContactMovementsSummary:
    contact_name: str
    matched_roles: tuple[str, ...]
    totals: FlowTotals
    currency: CurrencyInEffect
    detail: MovementDetail
    project_name: Optional[str] = None
    period: Optional[Period] = None


@dataclass(frozen=True)
class RoleSpendingSummary:
    role: Role
    totals: FlowTotals
    currency: CurrencyInEffect
    by_contact: tuple[GroupSubtotal, ...] = ()
    by_project: Optional[tuple[GroupSubtotal, ...]] = None
    project_name: Optional[str] = None
    period: Optional[Period] = None
    detail: Optional[MovementDetail] = None


@dataclass(frozen=True)
class DateRangeSummary:
    period: Period
    totals: FlowTotals
    currency: CurrencyInEffect
    group_by: Optional[GroupBy] = None
    groups: tuple[GroupSubtotal, ...] = ()
    detail: Optional[MovementDetail] = None


@dataclass(frozen=True)
class CashflowTrendSummary:
    scope: TrendScope
    interval: Interval
    period: Period
    default_window: bool
    periods: tuple[PeriodFlow, ...]
    trend: Trend
    first_mean: float
    second_mean: float
    average_flow: float
    totals: FlowTotals
    currency: CurrencyInEffect
    project_name: Optional[str] = None


@dataclass(frozen=True)
class ProjectFinancialSummary:
    project_name: str
    totals: FlowTotals
    currency: CurrencyInEffect
    top_expense_categories: tuple[GroupSubtotal, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CommitmentProgress:
    """
    Payments received against one client commitment.

    Attributes
    ----------
    committed, paid, remaining:
        Agreed amount, sum of the payments and ``committed - paid``, all in
        ``currency``. ``remaining`` is negative when the client overpaid.
    paid_pct:
        ``paid`` as a percentage of ``committed`` (0 when nothing was
        committed).
    payments_count:
        Number of payment movements.
    """

    client_name: str
    project_name: Optional[str]
    unit: Optional[str]
    committed: float
    paid: float
    remaining: float
    paid_pct: float
    payments_count: int
    currency: CurrencyInEffect

    @property
    def pending_pct(self) -> float:
        return 100.0 - self.paid_pct


@dataclass(frozen=True)
class CurrencyCommitmentTotals:
    """Commitments of one currency added up."""

    currency: CurrencyInEffect
    committed: float
    paid: float
    remaining: float
    paid_pct: float
    count: int


@dataclass(frozen=True)
class ClientCommitmentsSummary:
    commitments: tuple[CommitmentProgress, ...]
    by_currency: tuple[CurrencyCommitmentTotals, ...]
    client_name: Optional[str] = None
    project_name: Optional[str] = None
    converted_from: tuple[str, ...] = ()


NegativeOutcome = Union[
    NotFoundOutcome,
    CurrencyAmbiguityOutcome,
    ConversionFailedOutcome,
    InsufficientDataOutcome,
    UnexpectedErrorOutcome,
]

Summary = Union[
    OrganizationBalanceSummary,
    ContactMovementsSummary,
    RoleSpendingSummary,
    DateRangeSummary,
    CashflowTrendSummary,
    ProjectFinancialSummary,
    ClientCommitmentsSummary,
]

Outcome = Union[NegativeOutcome, Summary]
