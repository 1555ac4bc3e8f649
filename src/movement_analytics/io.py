# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for Movement Analytics.

This module reads financial movements from a CSV file and normalizes them
into the flat structure expected by ``db.import_movements``.

Expected input format
---------------------

Column names are case-insensitive. Four columns are required:

    organization_id, movement_date, amount, type_name

   - ``organization_id``: organization the movement belongs to
   - ``movement_date``:   date of the movement (YYYY-MM-DD)
   - ``amount``:          strictly positive amount
   - ``type_name``:       "Ingreso" or "Egreso"

Every other column of the ``movements`` table (category_name, currency_code,
exchange_rate, project_name, partner, subcontract, ...) is optional and is
filled with missing values when absent.

Aliases
-------
A few shorter column names are accepted for convenience:

    date -> movement_date, type -> type_name, category -> category_name,
    currency -> currency_code, project -> project_name, wallet -> wallet_name

Client commitments
------------------
``read_commitments`` reads the amounts clients agreed to pay, one row per
commitment, with the required columns

    organization_id, commitment_id, client_name, committed_amount

and the optional columns project_name, unit, currency_code,
currency_symbol and exchange_rate (same aliases for project and currency,
plus client -> client_name and amount -> committed_amount).

Output schema
-------------
A pandas DataFrame with exactly the columns of ``db.MOVEMENT_COLUMNS`` (or
``db.COMMITMENT_COLUMNS``), in that order. Any other column present in the input file is ignored.

If the CSV structure or its values are invalid, a clear ValueError is raised.
"""

import os
from typing import Union

import pandas as pd

from .db import (
    COMMITMENT_COLUMNS,
    MOVEMENT_COLUMNS,
    REQUIRED_COMMITMENT_COLUMNS,
    REQUIRED_IMPORT_COLUMNS,
)

COLUMN_ALIASES: dict[str, str] = {
    "date": "movement_date",
    "type": "type_name",
    "category": "category_name",
    "currency": "currency_code",
    "project": "project_name",
    "wallet": "wallet_name",
}

COMMITMENT_ALIASES: dict[str, str] = {
    "client": "client_name",
    "project": "project_name",
    "currency": "currency_code",
    "amount": "committed_amount",
}


def _read_csv_columns(
    path: Union[str, "os.PathLike[str]"], aliases: dict[str, str]
) -> pd.DataFrame:
    """Read a CSV as text with lowercase column names and aliases applied."""
    # Read everything as text first; numeric columns are parsed explicitly.
    df = pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""])

    # Normalize column names to lowercase (to make the check case-insensitive)
    df.columns = [c.lower().strip() for c in df.columns]
    cols = set(df.columns)

    renames = {
        alias: target
        for alias, target in aliases.items()
        if alias in cols and target not in cols
    }
    if renames:
        df = df.rename(columns=renames)
    return df


def _parse_exchange_rate(d: pd.DataFrame) -> None:
    if "exchange_rate" not in d.columns:
        return
    raw_rates = d["exchange_rate"]
    d["exchange_rate"] = pd.to_numeric(raw_rates, errors="coerce")
    if (d["exchange_rate"].isna() & raw_rates.notna()).any():
        raise ValueError("Invalid numeric values in 'exchange_rate' column.")
    if (d["exchange_rate"] <= 0).any():
        raise ValueError("Values in 'exchange_rate' column must be strictly positive.")


def read_movements(path: Union[str, "os.PathLike[str]"]) -> pd.DataFrame:
    """
    Read movements from a CSV file and normalize them.

    Parameters
    ----------
    path:
        Path to the CSV file containing movements.

    Returns
    -------
    pandas.DataFrame
        One row per movement with the columns of ``db.MOVEMENT_COLUMNS``.
        ``movement_date`` is parsed to ``datetime.date``, ``amount`` and
        ``exchange_rate`` to float.

    Raises
    ------
    ValueError
        If a required column is missing, if a date cannot be parsed, or if an
        amount or exchange rate is not a strictly positive number.
    """
    df = _read_csv_columns(path, COLUMN_ALIASES)

    missing = REQUIRED_IMPORT_COLUMNS.difference(df.columns)
    if missing:
        raise ValueError(
            "Invalid movements structure. Missing required column(s): "
            f"{', '.join(sorted(missing))}.\n"
            "Expected at least: organization_id, movement_date, amount, type_name "
            "(column names are case-insensitive)."
        )

    d = df.copy()

    # Parse date strictly: invalid dates should fail loudly
    try:
        d["movement_date"] = pd.to_datetime(
            d["movement_date"], format="%Y-%m-%d", errors="raise"
        ).dt.date
    except Exception as exc:  # noqa: BLE001
        raise ValueError("Invalid values in 'movement_date' column.") from exc

    d["amount"] = pd.to_numeric(d["amount"], errors="coerce")
    if d["amount"].isna().any():
        raise ValueError("Invalid numeric values in 'amount' column.")
    if (d["amount"] <= 0).any():
        raise ValueError("Values in 'amount' column must be strictly positive.")

    _parse_exchange_rate(d)

    # Optional columns are created empty so the output schema is fixed.
    for column in MOVEMENT_COLUMNS:
        if column not in d.columns:
            d[column] = None

    return d[list(MOVEMENT_COLUMNS)].copy()


def read_commitments(path: Union[str, "os.PathLike[str]"]) -> pd.DataFrame:
    """
    Read client commitments from a CSV file and normalize them.

    Returns a DataFrame with the columns of ``db.COMMITMENT_COLUMNS``;
    ``committed_amount`` and ``exchange_rate`` are parsed to float.

    Raises
    ------
    ValueError
        If a required column is missing, if a committed amount is not a
        number or is negative, or if an exchange rate is not strictly
        positive.
    """
    df = _read_csv_columns(path, COMMITMENT_ALIASES)

    missing = REQUIRED_COMMITMENT_COLUMNS.difference(df.columns)
    if missing:
        raise ValueError(
            "Invalid commitments structure. Missing required column(s): "
            f"{', '.join(sorted(missing))}.\n"
            "Expected at least: organization_id, commitment_id, client_name, "
            "committed_amount (column names are case-insensitive)."
        )

    d = df.copy()

    d["committed_amount"] = pd.to_numeric(d["committed_amount"], errors="coerce")
    if d["committed_amount"].isna().any():
        raise ValueError("Invalid numeric values in 'committed_amount' column.")
    if (d["committed_amount"] < 0).any():
        raise ValueError("Values in 'committed_amount' column must not be negative.")

    _parse_exchange_rate(d)

    for column in COMMITMENT_COLUMNS:
        if column not in d.columns:
            d[column] = None

    return d[list(COMMITMENT_COLUMNS)].copy()
