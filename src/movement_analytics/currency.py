# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Currency helpers: consistency checks and rate-based conversion.

Every movement stores the exchange rate of its currency against a shared
abstract base unit, recorded when the movement was written. Converting an
amount between two currencies therefore only needs both rates:

    converted = amount / from_rate * to_rate

No live rates are ever looked up. To convert a result set to a target
currency, the target rate is taken from a movement of the same result set
that is already denominated in that currency (the "reference" movement).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Optional

from .errors import InvalidRateError, NoReferenceCurrencyError
from .models import Movement


@dataclass(frozen=True)
class ReferenceRate:
    """Rate and display symbol of the conversion target currency."""

    currency_code: str
    rate: float
    symbol: Optional[str]


def convert(amount: float, from_rate: Optional[float], to_rate: Optional[float]) -> float:
    """
    Convert ``amount`` from a currency with ``from_rate`` to one with ``to_rate``.

    Raises
    ------
    InvalidRateError
        If either rate is missing or zero.
    """
    if not from_rate or not to_rate:
        raise InvalidRateError(
            f"Exchange rates must be non-zero (from={from_rate!r}, to={to_rate!r})."
        )
    if from_rate == to_rate:
        return amount
    return (amount / from_rate) * to_rate


def distinct_currencies(movements: Iterable[Movement]) -> tuple[str, ...]:
    """Return the sorted distinct upper-case currency codes, ignoring missing ones."""
    return tuple(
        sorted({m.currency_code.strip().upper() for m in movements if m.currency_code})
    )


def reference_rate(movements: Sequence[Movement], currency_code: str) -> ReferenceRate:
    """
    Find the conversion rate of ``currency_code`` within ``movements``.

    The first movement denominated in the target currency is used. Any
    record with ``currency_code``, ``currency_symbol`` and ``exchange_rate``
    attributes (a ``Commitment`` for instance) can serve as reference.

    Raises
    ------
    NoReferenceCurrencyError
        If no movement is denominated in the target currency.
    InvalidRateError
        If the reference movement carries no usable rate.
    """
    target = currency_code.upper()
    for movement in movements:
        if (movement.currency_code or "").upper() == target:
            if not movement.exchange_rate:
                raise InvalidRateError(
                    f"Reference movement in {target} has no valid exchange rate."
                )
            return ReferenceRate(
                currency_code=target,
                rate=movement.exchange_rate,
                symbol=movement.currency_symbol,
            )
    raise NoReferenceCurrencyError(target)


def convert_movements(
    movements: Sequence[Movement], currency_code: str
) -> tuple[list[Movement], ReferenceRate]:
    """
    Express every movement in ``currency_code``.

    Returns new Movement records (the input is left untouched) whose amount,
    currency code, symbol and rate are those of the target currency, plus
    the reference rate that was used.
    """
    reference = reference_rate(movements, currency_code)
    converted: list[Movement] = []
    for movement in movements:
        if (movement.currency_code or "").upper() == reference.currency_code:
            amount = movement.amount
        else:
            amount = convert(movement.amount, movement.exchange_rate, reference.rate)
        converted.append(
            replace(
                movement,
                amount=amount,
                currency_code=reference.currency_code,
                currency_symbol=reference.symbol,
                exchange_rate=reference.rate,
            )
        )
    return converted, reference
