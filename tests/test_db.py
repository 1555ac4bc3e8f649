import sqlite3
from datetime import date

import pandas as pd
import pytest

from movement_analytics.db import (
    COMMITMENT_COLUMNS,
    DatabaseConfig,
    LedgerQuery,
    SQLiteLedgerStore,
    fetch_movements,
    has_movements,
    import_commitments,
    import_movements,
    init_database,
)
from movement_analytics.errors import StoreError
from movement_analytics.projection import BASE_FIELDS


def make_tmp_db_cfg(tmp_path) -> DatabaseConfig:
    """Helper to build a DatabaseConfig pointing to a temporary SQLite file."""
    db_path = tmp_path / "test_db.sqlite"
    return DatabaseConfig(engine="sqlite", path=db_path)


def sample_movements() -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "organization_id": "org-1",
                "movement_date": "2024-01-10",
                "amount": 1234.56,
                "type_name": "Ingreso",
                "currency_code": "ars",
                "currency_symbol": "$",
                "exchange_rate": 1000.0,
                "project_name": "Casa A",
            },
            {
                "organization_id": "org-1",
                "movement_date": date(2024, 2, 1),
                "amount": 50,
                "type_name": "Egreso",
                "currency_code": "USD",
                "exchange_rate": 1.0,
                "personnel": "Juan Pérez",
            },
            {
                "organization_id": "org-2",
                "movement_date": "2024-01-15",
                "amount": 10,
                "type_name": "Egreso",
            },
        ]
    )


def test_init_database_creates_file_and_schema(tmp_path):
    """init_database should create the SQLite file and an empty schema."""
    cfg = make_tmp_db_cfg(tmp_path)

    assert not cfg.path.exists()
    init_database(cfg)
    assert cfg.path.exists()

    # A freshly initialized database should not contain any movements.
    assert has_movements(cfg) is False

    # Idempotent
    init_database(cfg)


def test_import_and_fetch_projected_columns(tmp_path):
    """Only the requested columns come back, with amounts and dates restored."""
    cfg = make_tmp_db_cfg(tmp_path)

    stats = import_movements(sample_movements(), cfg, source_label="unit-test")
    assert stats.rows_inserted == 3
    assert stats.batch_id >= 1

    fields = BASE_FIELDS + ("currency_code", "project_name")
    df = fetch_movements(cfg, LedgerQuery(organization_id="org-1", fields=fields))

    assert list(df.columns) == list(fields)
    assert len(df) == 2
    assert df.loc[0, "amount"] == pytest.approx(1234.56)
    assert df.loc[0, "movement_date"] == date(2024, 1, 10)
    # Currency codes are stored upper-case
    assert df.loc[0, "currency_code"] == "ARS"
    assert df.loc[0, "project_name"] == "Casa A"
    assert pd.isna(df.loc[1, "project_name"])


def test_has_movements_per_organization(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    import_movements(sample_movements(), cfg, source_label="unit-test")

    assert has_movements(cfg) is True
    assert has_movements(cfg, "org-2") is True
    assert has_movements(cfg, "org-3") is False


def test_fetch_applies_native_predicates(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    import_movements(sample_movements(), cfg, source_label="unit-test")

    by_date = fetch_movements(
        cfg,
        LedgerQuery(
            organization_id="org-1",
            start=date(2024, 1, 10),
            end=date(2024, 1, 31),
        ),
    )
    assert len(by_date) == 1

    by_currency = fetch_movements(
        cfg, LedgerQuery(organization_id="org-1", currency_code="usd")
    )
    assert by_currency["amount"].tolist() == [50.0]

    by_role = fetch_movements(
        cfg,
        LedgerQuery(
            organization_id="org-1",
            fields=BASE_FIELDS + ("personnel",),
            not_null=("personnel",),
        ),
    )
    assert by_role["personnel"].tolist() == ["Juan Pérez"]


def test_fetch_without_matches_returns_empty_frame(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    init_database(cfg)

    df = fetch_movements(cfg, LedgerQuery(organization_id="nobody"))

    assert df.empty
    assert list(df.columns) == list(BASE_FIELDS)


def test_fetch_rejects_unknown_columns(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    init_database(cfg)

    with pytest.raises(ValueError):
        fetch_movements(
            cfg, LedgerQuery(organization_id="o", fields=("amount; DROP TABLE x",))
        )


@pytest.mark.parametrize(
    "column, value",
    [("amount", 0), ("amount", -5), ("exchange_rate", 0.0)],
)
def test_import_rejects_non_positive_values(tmp_path, column, value):
    cfg = make_tmp_db_cfg(tmp_path)
    df = sample_movements()
    df.loc[1, column] = value

    with pytest.raises(ValueError):
        import_movements(df, cfg, source_label="bad")

    # Nothing was written
    assert has_movements(cfg) is False


def test_import_requires_columns(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    df = sample_movements().drop(columns=["type_name"])

    with pytest.raises(ValueError, match="type_name"):
        import_movements(df, cfg, source_label="bad")


def test_unsupported_engine_is_rejected(tmp_path):
    cfg = DatabaseConfig(engine="postgres", path=tmp_path / "x.db")

    with pytest.raises(ValueError):
        init_database(cfg)


def test_store_wraps_sqlite_errors(tmp_path):
    db_path = tmp_path / "corrupt.sqlite"
    db_path.write_bytes(b"this is definitely not a sqlite database file" * 100)
    store = SQLiteLedgerStore(DatabaseConfig(engine="sqlite", path=db_path))

    with pytest.raises(StoreError):
        store.fetch_movements(LedgerQuery(organization_id="org-1"))


def test_store_returns_rows(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    import_movements(sample_movements(), cfg, source_label="unit-test")

    df = SQLiteLedgerStore(cfg).fetch_movements(LedgerQuery(organization_id="org-2"))

    assert df["amount"].tolist() == [10.0]


def test_import_rejects_amount_below_one_cent(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    df = sample_movements()
    df.loc[0, "amount"] = 0.004

    with pytest.raises(ValueError, match="at least 0.01"):
        import_movements(df, cfg, source_label="bad")

    assert has_movements(cfg) is False


def test_store_read_never_creates_the_database(tmp_path):
    db_path = tmp_path / "nowhere" / "ledger.sqlite"
    cfg = DatabaseConfig(engine="sqlite", path=db_path)
    store = SQLiteLedgerStore(cfg)

    with pytest.raises(StoreError, match="not found"):
        store.fetch_movements(LedgerQuery(organization_id="org-1"))
    with pytest.raises(StoreError, match="not found"):
        store.fetch_commitments("org-1")
    assert has_movements(cfg) is False

    assert not db_path.exists()
    assert not db_path.parent.exists()


def test_store_read_never_creates_the_schema(tmp_path):
    db_path = tmp_path / "empty.sqlite"
    db_path.touch()
    store = SQLiteLedgerStore(DatabaseConfig(engine="sqlite", path=db_path))

    with pytest.raises(StoreError):
        store.fetch_movements(LedgerQuery(organization_id="org-1"))

    assert db_path.stat().st_size == 0


def sample_commitments() -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "organization_id": "org-1",
                "commitment_id": "c-1",
                "client_name": "Ana Gómez",
                "project_name": "Casa A",
                "unit": "UF 3",
                "committed_amount": 10000,
                "currency_code": "usd",
                "currency_symbol": "US$",
                "exchange_rate": 1.0,
            },
            {
                "organization_id": "org-2",
                "commitment_id": "c-1",
                "client_name": "Otro Cliente",
                "committed_amount": 0,
            },
        ]
    )


def test_import_and_fetch_commitments(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)

    stats = import_commitments(sample_commitments(), cfg, source_label="unit-test")
    assert stats.rows_inserted == 2

    df = SQLiteLedgerStore(cfg).fetch_commitments("org-1")

    assert list(df.columns) == list(COMMITMENT_COLUMNS)
    assert len(df) == 1
    assert df.loc[0, "committed_amount"] == pytest.approx(10000)
    assert df.loc[0, "currency_code"] == "USD"
    assert df.loc[0, "unit"] == "UF 3"


def test_import_commitments_validation(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)

    negative = sample_commitments()
    negative.loc[0, "committed_amount"] = -1
    with pytest.raises(ValueError, match="committed_amount"):
        import_commitments(negative, cfg, source_label="bad")

    with pytest.raises(ValueError, match="client_name"):
        import_commitments(
            sample_commitments().drop(columns=["client_name"]), cfg, source_label="bad"
        )

    import_commitments(sample_commitments(), cfg, source_label="first")
    with pytest.raises(sqlite3.IntegrityError):
        import_commitments(sample_commitments(), cfg, source_label="again")


def test_fetch_payments_by_commitment(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    df = sample_movements()
    df["commitment_id"] = ["c-1", None, None]
    import_movements(df, cfg, source_label="unit-test")

    payments = fetch_movements(
        cfg,
        LedgerQuery(
            organization_id="org-1",
            fields=BASE_FIELDS + ("commitment_id",),
            not_null=("commitment_id",),
        ),
    )

    assert payments["commitment_id"].tolist() == ["c-1"]
