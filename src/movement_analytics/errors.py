# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Exception types raised by Movement Analytics.

Only conditions that abort a call are exceptions. Normal negative results
(nothing found, ambiguous currencies, not enough periods) are returned as
outcome dataclasses from ``models.py``.

- ValidationError:
    missing or malformed arguments, raised before the ledger store is queried.
- ConversionError (InvalidRateError, NoReferenceCurrencyError):
    raised by ``currency.py``; the analytics boundary turns them into a
    ``ConversionFailedOutcome``.
- StoreError:
    the ledger store query itself failed. Propagated to the caller as is.
"""

from __future__ import annotations


class ValidationError(ValueError):
    """Invalid scope, date range or filter arguments."""


class ConversionError(ValueError):
    """Base class for currency conversion failures.

    Attributes
    ----------
    reason:
        Machine-readable condition that failed ("invalid_rate" or
        "no_reference_currency").
    """

    reason = "conversion_error"


class InvalidRateError(ConversionError):
    """An exchange rate is zero or missing."""

    reason = "invalid_rate"


class NoReferenceCurrencyError(ConversionError):
    """No in-scope movement is denominated in the requested target currency."""

    reason = "no_reference_currency"

    def __init__(self, currency_code: str) -> None:
        super().__init__(
            f"No movement in {currency_code!r} found to use as conversion reference."
        )
        self.currency_code = currency_code


class StoreError(RuntimeError):
    """The ledger store could not answer a query."""
