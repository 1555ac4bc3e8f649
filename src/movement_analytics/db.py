# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Ledger store layer for Movement Analytics.

The analytics engine never owns financial data: it reads one snapshot of
movements per call from a *ledger store*. This module defines the boundary
of that collaborator and ships a SQLite implementation of it.

------------------------------------------------------------------------------
Store boundary
------------------------------------------------------------------------------

- ``LedgerQuery`` describes one read: the organization, the columns to return
  (see ``projection.py``) and the predicates the store can evaluate natively:
    * inclusive date bounds on ``movement_date``,
    * equality on ``currency_code``,
    * "column is not null" on role attribution columns.

- ``LedgerStore`` is the protocol the aggregation functions depend on:
  ``fetch_movements(query) -> pandas.DataFrame``. A store must return only
  the projected columns, one row per movement, and raise ``StoreError`` when
  the query cannot be answered. ``fetch_commitments(organization_id)``
  returns the client commitments of the organization. Reads never mutate
  the store.

------------------------------------------------------------------------------
Schema Overview (SQLite implementation)
------------------------------------------------------------------------------

1) import_batches
   One row per bulk import, recording where a set of movements came from.

   Columns:
   - id             INTEGER PRIMARY KEY AUTOINCREMENT
   - created_at     TEXT    NOT NULL (ISO datetime, UTC)
   - source_label   TEXT    NOT NULL  -- file path, connector name, etc.
   - rows_inserted  INTEGER NOT NULL

2) movements
   Flat, denormalized view of every movement of every organization.

   Columns:
   - id                  INTEGER PRIMARY KEY AUTOINCREMENT
   - organization_id     TEXT    NOT NULL
   - movement_date       TEXT    NOT NULL  -- ISO date "YYYY-MM-DD"
   - amount_cents        INTEGER NOT NULL  -- positive integer amount in cents
   - description         TEXT
   - type_name           TEXT              -- "Ingreso" | "Egreso"
   - category_name       TEXT
   - subcategory_name    TEXT
   - currency_code       TEXT
   - currency_symbol     TEXT
   - exchange_rate       REAL              -- > 0, relative to a shared base unit
   - wallet_name         TEXT
   - project_name        TEXT              -- NULL for organization-level movements
   - partner, subcontract, subcontract_contact, personnel, client, member,
     indirect, general_cost   TEXT        -- role / cost attributions
   - commitment_id       TEXT              -- client commitment a payment settles
   - import_batch_id     INTEGER           -- foreign key to import_batches.id

3) client_commitments
   Amount each client agreed to pay for a project (or one unit of it).

   Columns:
   - id                      INTEGER PRIMARY KEY AUTOINCREMENT
   - organization_id         TEXT    NOT NULL
   - commitment_id           TEXT    NOT NULL  -- unique per organization
   - client_name             TEXT    NOT NULL
   - project_name            TEXT
   - unit                    TEXT              -- e.g. "UF 3", "Lote 12"
   - committed_amount_cents  INTEGER NOT NULL  -- >= 0
   - currency_code           TEXT
   - currency_symbol         TEXT
   - exchange_rate           REAL              -- > 0
   - import_batch_id         INTEGER

------------------------------------------------------------------------------
SQLite Notes
------------------------------------------------------------------------------

- Amounts are stored as integer cents and exposed as floats.
- Foreign key enforcement is explicitly enabled.
- One connection is opened and closed per call; nothing is cached.
- Reads open the file read-only (``mode=ro``): they never create the file,
  its directory or the schema. Only ``init_database`` and the import
  functions write.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Protocol

import pandas as pd

from .errors import StoreError
from .logging_setup import get_logger
from .projection import BASE_FIELDS

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration for Movement Analytics.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


@dataclass(frozen=True)
class ImportStats:
    """
    Summary of a bulk import into the database.

    Attributes
    ----------
    batch_id:
        Identifier of the batch row in `import_batches`.
    rows_inserted:
        Number of rows inserted into `movements` or `client_commitments`.
    """

    batch_id: int
    rows_inserted: int


@dataclass(frozen=True)
class LedgerQuery:
    """
    One read request against a ledger store.

    Attributes
    ----------
    organization_id:
        Mandatory organization scope.
    fields:
        Columns to return, as produced by ``projection.requested_fields``.
    start, end:
        Optional inclusive bounds on ``movement_date``.
    currency_code:
        Optional equality filter on ``currency_code`` (compared upper-case).
    not_null:
        Columns that must be non-null (e.g. the role column of RoleSpending).
    """

    organization_id: str
    fields: tuple[str, ...] = BASE_FIELDS
    start: date | None = None
    end: date | None = None
    currency_code: str | None = None
    not_null: tuple[str, ...] = ()


class LedgerStore(Protocol):
    """Read-only source of movement rows."""

    def fetch_movements(self, query: LedgerQuery) -> pd.DataFrame:
        """Return the rows matching ``query`` with the projected columns."""
        ...

    def fetch_commitments(self, organization_id: str) -> pd.DataFrame:
        """Return the client commitments of an organization."""
        ...


# Column order of the `movements` table, excluding technical columns.
MOVEMENT_COLUMNS: tuple[str, ...] = (
    "organization_id",
    "movement_date",
    "amount",
    "description",
    "type_name",
    "category_name",
    "subcategory_name",
    "currency_code",
    "currency_symbol",
    "exchange_rate",
    "wallet_name",
    "project_name",
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

REQUIRED_IMPORT_COLUMNS: frozenset[str] = frozenset(
    {"organization_id", "movement_date", "amount", "type_name"}
)

# Column order of the `client_commitments` table, excluding technical columns.
COMMITMENT_COLUMNS: tuple[str, ...] = (
    "organization_id",
    "commitment_id",
    "client_name",
    "project_name",
    "unit",
    "committed_amount",
    "currency_code",
    "currency_symbol",
    "exchange_rate",
)

REQUIRED_COMMITMENT_COLUMNS: frozenset[str] = frozenset(
    {"organization_id", "commitment_id", "client_name", "committed_amount"}
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def _connect(cfg: DatabaseConfig, *, read_only: bool = False) -> sqlite3.Connection:
    """
    Open a SQLite connection with foreign keys enabled.

    With ``read_only`` the file is opened with ``mode=ro``: a missing file
    raises ``sqlite3.OperationalError`` instead of being created, and any
    write is refused.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    if read_only:
        uri = f"{Path(cfg.path).resolve().as_uri()}?mode=ro"
        conn = sqlite3.connect(uri, uri=True)
    else:
        conn = sqlite3.connect(cfg.path)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """
    Create tables and indexes if they do not exist yet.

    This function is idempotent and can be called multiple times safely.
    """
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS import_batches (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at    TEXT    NOT NULL,
            source_label  TEXT    NOT NULL,
            rows_inserted INTEGER NOT NULL DEFAULT 0
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS movements (
            id                  INTEGER PRIMARY KEY AUTOINCREMENT,
            organization_id     TEXT    NOT NULL,
            movement_date       TEXT    NOT NULL,  -- ISO date 'YYYY-MM-DD'
            amount_cents        INTEGER NOT NULL CHECK (amount_cents > 0),
            description         TEXT,
            type_name           TEXT,
            category_name       TEXT,
            subcategory_name    TEXT,
            currency_code       TEXT,
            currency_symbol     TEXT,
            exchange_rate       REAL CHECK (exchange_rate IS NULL OR exchange_rate > 0),
            wallet_name         TEXT,
            project_name        TEXT,
            partner             TEXT,
            subcontract         TEXT,
            subcontract_contact TEXT,
            personnel           TEXT,
            client              TEXT,
            member              TEXT,
            indirect            TEXT,
            general_cost        TEXT,
            commitment_id       TEXT,
            import_batch_id     INTEGER,

            FOREIGN KEY (import_batch_id) REFERENCES import_batches(id)
        );
        """
    )

    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_movements_org_date
            ON movements(organization_id, movement_date);
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS client_commitments (
            id                     INTEGER PRIMARY KEY AUTOINCREMENT,
            organization_id        TEXT    NOT NULL,
            commitment_id          TEXT    NOT NULL,
            client_name            TEXT    NOT NULL,
            project_name           TEXT,
            unit                   TEXT,
            committed_amount_cents INTEGER NOT NULL CHECK (committed_amount_cents >= 0),
            currency_code          TEXT,
            currency_symbol        TEXT,
            exchange_rate          REAL CHECK (exchange_rate IS NULL OR exchange_rate > 0),
            import_batch_id        INTEGER,

            UNIQUE (organization_id, commitment_id),
            FOREIGN KEY (import_batch_id) REFERENCES import_batches(id)
        );
        """
    )

    conn.commit()


def _ensure_dataframe_columns(
    df: pd.DataFrame, required: frozenset[str] = REQUIRED_IMPORT_COLUMNS
) -> None:
    """Validate that the DataFrame contains the required columns."""
    missing = required.difference(df.columns)
    if missing:
        cols = ", ".join(sorted(missing))
        msg = f"DataFrame is missing required column(s): {cols}"
        raise ValueError(msg)


def _to_iso_date(value) -> str:
    """Convert a date-like value to ISO 'YYYY-MM-DD' string."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, datetime):
        return value.date().isoformat()
    return date.fromisoformat(str(value)).isoformat()


def _now_utc_iso() -> str:
    """Return the current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _optional_text(value) -> str | None:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def _to_cents(value, index, column: str, *, allow_zero: bool = False) -> int:
    """
    Convert an amount to integer cents.

    Amounts are kept to two decimals. Raise ValueError when the rounded
    value is negative, or zero unless ``allow_zero``.
    """
    amount = float(value)
    cents = int(round(amount * 100))
    if cents < 0 or (cents == 0 and not allow_zero):
        bound = "at least 0" if allow_zero else "at least 0.01"
        raise ValueError(f"Row {index}: {column} must be {bound}, got {amount!r}.")
    return cents


def _optional_rate(row, index) -> float | None:
    raw_rate = row.get("exchange_rate")
    rate = None if raw_rate is None or pd.isna(raw_rate) else float(raw_rate)
    if rate is not None and not rate > 0:
        raise ValueError(f"Row {index}: exchange_rate must be positive, got {rate!r}.")
    return rate


def _optional_code(value) -> str | None:
    code = _optional_text(value)
    return code.upper() if code else None


def _select_expression(column: str) -> str:
    if column == "amount":
        return "amount_cents"
    if column == "committed_amount":
        return "committed_amount_cents"
    return column


def _insert_batch(
    cfg: DatabaseConfig,
    table: str,
    columns: tuple[str, ...],
    records: list[tuple],
    *,
    source_label: str,
    imported_at: datetime | None,
) -> ImportStats:
    """Insert ``records`` into ``table`` under one new import batch."""
    init_database(cfg)

    created_at = (
        imported_at.isoformat(timespec="seconds") if imported_at else _now_utc_iso()
    )

    conn = _connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO import_batches (created_at, source_label, rows_inserted)
            VALUES (?, ?, 0);
            """,
            (created_at, source_label),
        )
        batch_id = cur.lastrowid

        placeholders = ", ".join("?" for _ in range(len(columns) + 1))
        column_list = ", ".join(
            _select_expression(c) for c in (*columns, "import_batch_id")
        )
        cur.executemany(
            f"INSERT INTO {table} ({column_list}) VALUES ({placeholders});",
            [(*record, batch_id) for record in records],
        )

        cur.execute(
            "UPDATE import_batches SET rows_inserted = ? WHERE id = ?;",
            (len(records), batch_id),
        )
        conn.commit()
    finally:
        conn.close()

    return ImportStats(batch_id=batch_id, rows_inserted=len(records))


def _build_select(query: LedgerQuery) -> tuple[str, list[object]]:
    """Translate a LedgerQuery into a parameterized SELECT statement."""
    allowed = set(MOVEMENT_COLUMNS)
    for column in (*query.fields, *query.not_null):
        if column not in allowed:
            raise ValueError(f"Unknown movement column: {column!r}")

    where_clauses: list[str] = ["organization_id = ?"]
    params: list[object] = [query.organization_id]

    if query.start is not None:
        where_clauses.append("movement_date >= ?")
        params.append(query.start.isoformat())
    if query.end is not None:
        where_clauses.append("movement_date <= ?")
        params.append(query.end.isoformat())

    if query.currency_code is not None:
        where_clauses.append("UPPER(currency_code) = ?")
        params.append(query.currency_code.upper())

    for column in query.not_null:
        where_clauses.append(f"{column} IS NOT NULL")

    select_list = ", ".join(_select_expression(c) for c in query.fields)
    sql = f"""
        SELECT {select_list}
          FROM movements
         WHERE {' AND '.join(where_clauses)}
         ORDER BY movement_date, id;
    """
    return sql, params


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file (and its parent directory) if it does not exist.
    - Creates tables and indexes if they are missing.
    - This function is idempotent: calling it multiple times is safe.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    sqlite3.Error
        If schema creation fails.
    """
    cfg.path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(cfg)
    try:
        _create_schema_if_needed(conn)
    finally:
        conn.close()


def import_movements(
    df: pd.DataFrame,
    cfg: DatabaseConfig,
    *,
    source_label: str,
    imported_at: datetime | None = None,
) -> ImportStats:
    """
    Insert a batch of movements into the database.

    Parameters
    ----------
    df:
        Normalized movements (see ``io.read_movements``) with at least the
        columns organization_id, movement_date, amount and type_name. Every
        other column of ``MOVEMENT_COLUMNS`` is optional.
    cfg:
        Database configuration.
    source_label:
        Human-readable origin of the batch (file name, connector...).
    imported_at:
        Timestamp of the batch. Defaults to the current UTC time.

    Returns
    -------
    ImportStats
        Batch id and number of inserted rows.

    Raises
    ------
    ValueError
        If required columns are missing, if an amount is below one cent
        (amounts are stored with two decimals), or if an exchange rate is
        not strictly positive. Nothing is inserted in that case.
    sqlite3.Error
        If database operations fail.
    """
    _ensure_dataframe_columns(df)

    records: list[tuple] = []
    for index, row in df.iterrows():
        records.append(
            (
                str(row["organization_id"]),
                _to_iso_date(row["movement_date"]),
                _to_cents(row["amount"], index, "amount"),
                *(_optional_text(row.get(c)) for c in MOVEMENT_COLUMNS[3:7]),
                _optional_code(row.get("currency_code")),
                _optional_text(row.get("currency_symbol")),
                _optional_rate(row, index),
                *(_optional_text(row.get(c)) for c in MOVEMENT_COLUMNS[10:]),
            )
        )

    stats = _insert_batch(
        cfg,
        "movements",
        MOVEMENT_COLUMNS,
        records,
        source_label=source_label,
        imported_at=imported_at,
    )
    logger.info("Imported %d movements from %s", stats.rows_inserted, source_label)
    return stats


def import_commitments(
    df: pd.DataFrame,
    cfg: DatabaseConfig,
    *,
    source_label: str,
    imported_at: datetime | None = None,
) -> ImportStats:
    """
    Insert a batch of client commitments into the database.

    ``df`` needs the columns organization_id, commitment_id, client_name and
    committed_amount (see ``io.read_commitments``); the other columns of
    ``COMMITMENT_COLUMNS`` are optional.

    Raises
    ------
    ValueError
        If required columns are missing, if a committed amount is negative,
        or if an exchange rate is not strictly positive.
    sqlite3.Error
        If database operations fail, including a ``commitment_id`` already
        stored for the same organization.
    """
    _ensure_dataframe_columns(df, REQUIRED_COMMITMENT_COLUMNS)

    records: list[tuple] = []
    for index, row in df.iterrows():
        records.append(
            (
                str(row["organization_id"]),
                str(row["commitment_id"]).strip(),
                str(row["client_name"]).strip(),
                _optional_text(row.get("project_name")),
                _optional_text(row.get("unit")),
                _to_cents(
                    row["committed_amount"], index, "committed_amount", allow_zero=True
                ),
                _optional_code(row.get("currency_code")),
                _optional_text(row.get("currency_symbol")),
                _optional_rate(row, index),
            )
        )

    stats = _insert_batch(
        cfg,
        "client_commitments",
        COMMITMENT_COLUMNS,
        records,
        source_label=source_label,
        imported_at=imported_at,
    )
    logger.info("Imported %d commitments from %s", stats.rows_inserted, source_label)
    return stats


def has_movements(cfg: DatabaseConfig, organization_id: str | None = None) -> bool:
    """
    Return True if the database contains at least one movement.

    When ``organization_id`` is given, only that organization is considered.
    A database file that does not exist yet holds no movements.
    """
    if not Path(cfg.path).exists():
        return False

    conn = _connect(cfg, read_only=True)
    try:
        cur = conn.cursor()
        if organization_id is None:
            cur.execute("SELECT 1 FROM movements LIMIT 1;")
        else:
            cur.execute(
                "SELECT 1 FROM movements WHERE organization_id = ? LIMIT 1;",
                (organization_id,),
            )
        return cur.fetchone() is not None
    finally:
        conn.close()


def fetch_movements(cfg: DatabaseConfig, query: LedgerQuery) -> pd.DataFrame:
    """
    Run ``query`` against the SQLite database, read-only.

    Returns
    -------
    pandas.DataFrame
        One row per movement, with exactly the columns of ``query.fields``
        (in that order). ``amount`` is reconstructed from integer cents and
        ``movement_date`` is returned as a ``datetime.date``. An empty
        DataFrame with the same columns is returned when nothing matches.
    """
    sql, params = _build_select(query)

    conn = _connect(cfg, read_only=True)
    try:
        cur = conn.cursor()
        cur.execute(sql, params)
        rows = cur.fetchall()
    finally:
        conn.close()

    columns = list(query.fields)
    if not rows:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(rows, columns=columns)
    df["amount"] = df["amount"].astype(float) / 100.0
    df["movement_date"] = pd.to_datetime(df["movement_date"], format="%Y-%m-%d").dt.date
    return df


def fetch_commitments(cfg: DatabaseConfig, organization_id: str) -> pd.DataFrame:
    """
    Return the client commitments of ``organization_id``, read-only.

    Columns are those of ``COMMITMENT_COLUMNS``, in insertion order, with
    ``committed_amount`` reconstructed from integer cents.
    """
    select_list = ", ".join(_select_expression(c) for c in COMMITMENT_COLUMNS)

    conn = _connect(cfg, read_only=True)
    try:
        cur = conn.cursor()
        cur.execute(
            f"""
            SELECT {select_list}
              FROM client_commitments
             WHERE organization_id = ?
             ORDER BY id;
            """,
            (organization_id,),
        )
        rows = cur.fetchall()
    finally:
        conn.close()

    columns = list(COMMITMENT_COLUMNS)
    if not rows:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(rows, columns=columns)
    df["committed_amount"] = df["committed_amount"].astype(float) / 100.0
    return df


class SQLiteLedgerStore:
    """
    Ledger store backed by the SQLite database described in this module.

    Queries open the database read-only. A missing database file and any
    ``sqlite3.Error`` raised while querying are reported as ``StoreError``.
    """

    def __init__(self, cfg: DatabaseConfig) -> None:
        self.cfg = cfg

    def _ensure_exists(self) -> None:
        if not Path(self.cfg.path).exists():
            raise StoreError(f"Ledger database not found: {self.cfg.path}")

    def fetch_movements(self, query: LedgerQuery) -> pd.DataFrame:
        self._ensure_exists()
        try:
            df = fetch_movements(self.cfg, query)
        except sqlite3.Error as exc:
            raise StoreError(f"Ledger query failed: {exc}") from exc

        logger.debug(
            "Fetched %d movements for organization %s (fields=%s)",
            len(df),
            query.organization_id,
            ",".join(query.fields),
        )
        return df

    def fetch_commitments(self, organization_id: str) -> pd.DataFrame:
        self._ensure_exists()
        try:
            df = fetch_commitments(self.cfg, organization_id)
        except sqlite3.Error as exc:
            raise StoreError(f"Commitments query failed: {exc}") from exc

        logger.debug(
            "Fetched %d commitments for organization %s", len(df), organization_id
        )
        return df
