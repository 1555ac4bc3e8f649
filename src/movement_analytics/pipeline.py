# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Shared building blocks of the aggregation functions.

Every aggregation function in ``analytics.py`` follows the same skeleton:

1. validate arguments (``ValidationError`` before any store access),
2. issue one ``LedgerQuery`` to the store (``fetch``),
3. run an ordered list of in-memory ``FilterStage`` objects
   (project → contact/role → explicit filters → currency); the first stage
   that empties the set ends the call with a stage-specific
   ``NotFoundOutcome``,
4. check currency consistency or convert to a target currency
   (``resolve_currency``),
5. compute totals, subtotals and itemized detail.

The ``outcome_boundary`` decorator wraps each public function: validation and
store errors propagate, anything unexpected is logged and turned into an
``UnexpectedErrorOutcome``.
"""

from __future__ import annotations

import functools
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from operator import attrgetter
from typing import Optional, Union

from .config import AnalyticsSettings
from .currency import convert_movements, distinct_currencies
from .db import LedgerQuery, LedgerStore
from .errors import ConversionError, StoreError, ValidationError
from .logging_setup import get_logger
from .models import (
    ConversionFailedOutcome,
    CurrencyAmbiguityOutcome,
    CurrencyInEffect,
    FlowTotals,
    GroupSubtotal,
    Movement,
    MovementDetail,
    NotFoundOutcome,
    NotFoundStage,
    UnexpectedErrorOutcome,
)
from .periods import Period
from .text import includes

logger = get_logger(__name__)

MovementAccessor = Callable[[Movement], Optional[str]]

# Role name used by callers -> movement column holding the attribution.
ROLE_COLUMNS: dict[str, str] = {
    "partner": "partner",
    "subcontractor": "subcontract",
    "personnel": "personnel",
    "client": "client",
    "member": "member",
}

# Columns a contact name is matched against (OR across all of them).
CONTACT_COLUMNS: tuple[str, ...] = (
    "partner",
    "subcontract",
    "subcontract_contact",
    "personnel",
    "client",
    "member",
)

CONTACT_ACCESSORS: tuple[tuple[str, MovementAccessor], ...] = tuple(
    (column, attrgetter(column)) for column in CONTACT_COLUMNS
)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_organization(organization_id: Optional[str]) -> str:
    """Return the stripped organization id, or raise ValidationError."""
    if organization_id is None or not str(organization_id).strip():
        raise ValidationError("An organization id is required.")
    return str(organization_id).strip()


def validate_required_text(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"A {name} is required.")
    return str(value).strip()


def validate_choice(value: Optional[str], choices: Iterable[str], name: str) -> str:
    allowed = tuple(choices)
    if value not in allowed:
        raise ValidationError(
            f"Invalid {name}: {value!r}. Expected one of {', '.join(allowed)}."
        )
    return value


# ---------------------------------------------------------------------------
# Store access
# ---------------------------------------------------------------------------


def fetch(store: LedgerStore, query: LedgerQuery) -> list[Movement]:
    """Run the single store round-trip of a call and build Movement records."""
    df = store.fetch_movements(query)
    return [Movement.from_row(row) for _, row in df.iterrows()]


def empty_result_stage(query: LedgerQuery) -> NotFoundStage:
    """Name the native predicate that most likely emptied a store result."""
    if query.currency_code is not None:
        return "currency"
    if query.not_null:
        return "role"
    if query.start is not None or query.end is not None:
        return "date"
    return "movements"


# ---------------------------------------------------------------------------
# Filter stages
# ---------------------------------------------------------------------------


def matching_roles(
    movement: Movement,
    accessors: Sequence[tuple[str, MovementAccessor]],
    name: str,
) -> tuple[str, ...]:
    """Return the columns of ``movement`` whose value contains ``name``.

    Columns without a value never match, even for an empty name.
    """
    found = []
    for column, accessor in accessors:
        value = accessor(movement)
        if value and includes(value, name):
            found.append(column)
    return tuple(found)


def matches_any_role(
    movement: Movement,
    accessors: Sequence[tuple[str, MovementAccessor]],
    name: str,
) -> bool:
    return bool(matching_roles(movement, accessors, name))


@dataclass(frozen=True)
class FilterStage:
    """
    One in-memory narrowing step.

    Attributes
    ----------
    stage:
        Reported in the ``NotFoundOutcome`` when this step empties the set.
    keep:
        Predicate deciding which movements survive.
    subject:
        Optional value that was searched for (project name, contact...).
    """

    stage: NotFoundStage
    keep: Callable[[Movement], bool]
    subject: Optional[str] = None

    def apply(self, movements: Sequence[Movement]) -> list[Movement]:
        return [m for m in movements if self.keep(m)]


def project_stage(project_name: str) -> FilterStage:
    return FilterStage(
        stage="project",
        keep=lambda m: includes(m.project_name, project_name),
        subject=project_name,
    )


def contact_stage(contact_name: str) -> FilterStage:
    return FilterStage(
        stage="contact",
        keep=lambda m: matches_any_role(m, CONTACT_ACCESSORS, contact_name),
        subject=contact_name,
    )


def currency_stage(currency_code: str) -> FilterStage:
    target = currency_code.upper()
    return FilterStage(
        stage="currency",
        keep=lambda m: (m.currency_code or "").upper() == target,
        subject=target,
    )


def run_stages(
    movements: Sequence[Movement],
    stages: Iterable[FilterStage],
    period: Optional[Period] = None,
) -> Union[list[Movement], NotFoundOutcome]:
    """
    Apply ``stages`` in order.

    Returns the narrowed list, or the ``NotFoundOutcome`` of the first stage
    that left nothing. Later stages are not evaluated once the set is empty.
    """
    current = list(movements)
    for stage in stages:
        narrowed = stage.apply(current)
        logger.debug(
            "Stage %s kept %d of %d movements", stage.stage, len(narrowed), len(current)
        )
        if not narrowed:
            return NotFoundOutcome(stage=stage.stage, subject=stage.subject, period=period)
        current = narrowed
    return current


# ---------------------------------------------------------------------------
# Currency
# ---------------------------------------------------------------------------


def resolve_currency(
    movements: Sequence[Movement],
    convert_to: Optional[str],
    settings: AnalyticsSettings,
) -> Union[
    tuple[list[Movement], CurrencyInEffect],
    CurrencyAmbiguityOutcome,
    ConversionFailedOutcome,
]:
    """
    Make sure ``movements`` can be summed.

    Without ``convert_to``, more than one distinct currency yields a
    ``CurrencyAmbiguityOutcome`` listing all of them. With ``convert_to``,
    every movement is converted through the in-scope reference rate; a zero
    rate or a missing reference currency yields a ``ConversionFailedOutcome``.
    """
    currencies = distinct_currencies(movements)

    if convert_to:
        target = convert_to.strip().upper()
        try:
            converted, reference = convert_movements(movements, target)
        except ConversionError as exc:
            logger.info("Conversion to %s failed: %s", target, exc)
            return ConversionFailedOutcome(
                reason=exc.reason, target_currency=target, message=str(exc)
            )
        return converted, CurrencyInEffect(
            code=reference.currency_code,
            symbol=reference.symbol or settings.default_currency_symbol,
            converted_from=currencies,
        )

    if len(currencies) > 1:
        return CurrencyAmbiguityOutcome(currencies=currencies)

    # Movements without a code do not decide the reported currency.
    first = next((m for m in movements if m.currency_code), movements[0])
    return list(movements), CurrencyInEffect(
        code=currencies[0] if currencies else None,
        symbol=first.currency_symbol or settings.default_currency_symbol,
    )


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def compute_totals(movements: Iterable[Movement]) -> FlowTotals:
    """Sum movements overall and per direction (ingreso / egreso)."""
    total = ingresos = egresos = 0.0
    count = ingresos_count = egresos_count = 0
    for m in movements:
        total += m.amount
        count += 1
        if m.is_income:
            ingresos += m.amount
            ingresos_count += 1
        elif m.is_expense:
            egresos += m.amount
            egresos_count += 1
    return FlowTotals(
        total=total,
        ingresos=ingresos,
        egresos=egresos,
        balance=ingresos - egresos,
        count=count,
        ingresos_count=ingresos_count,
        egresos_count=egresos_count,
    )


def subtotals(
    movements: Iterable[Movement],
    key: MovementAccessor,
    missing_label: str,
) -> tuple[GroupSubtotal, ...]:
    """
    Group movements by ``key`` and sum their amounts.

    Groups are sorted by subtotal, largest first. Movements whose key is
    empty fall under ``missing_label``.
    """
    totals: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)
    for m in movements:
        name = key(m) or missing_label
        totals[name] += m.amount
        counts[name] += 1

    groups = [GroupSubtotal(name=n, total=totals[n], count=counts[n]) for n in totals]
    groups.sort(key=lambda g: g.total, reverse=True)
    return tuple(groups)


def build_detail(movements: Sequence[Movement], limit: int) -> MovementDetail:
    """Keep the ``limit`` most recent movements and count the rest."""
    ordered = sorted(movements, key=lambda m: m.movement_date, reverse=True)
    return MovementDetail(
        recent=tuple(ordered[:limit]),
        omitted=max(len(ordered) - limit, 0),
    )


# ---------------------------------------------------------------------------
# Error boundary
# ---------------------------------------------------------------------------


def outcome_boundary(operation: str) -> Callable:
    """
    Decorate an aggregation function with the engine's error policy.

    - ``ValidationError`` and ``StoreError`` propagate unchanged.
    - Any other exception is logged with its traceback and returned as an
      ``UnexpectedErrorOutcome`` so the caller can suggest trying again.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except (ValidationError, StoreError):
                raise
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unexpected error in %s", operation)
                return UnexpectedErrorOutcome(operation=operation, message=str(exc))

        return wrapper

    return decorator
