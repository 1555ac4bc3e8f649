# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for Movement Analytics.

This module wires together the main building blocks of Movement Analytics:

- global configuration (database, analytics tunables, default organization),
- logging,
- movements import & ledger store access,
- aggregation functions,
- message rendering and tabular views.

The CLI is intentionally thin: it does not implement any financial logic
itself. It parses arguments, calls one aggregation function and prints the
rendered outcome (plus the tabular views for table-shaped results).


Configuration
-------------

By default, the CLI reads its configuration from a TOML file named
``movement_analytics_config.toml`` in the current working directory.
You can override this path using:

    --config PATH

The organization to analyze comes from ``--org`` or, when omitted, from the
``[organization] id`` key of the configuration file.

The logging level comes from ``--log-level``, then from the ``[logging]``
section, then from the ``MOVEMENT_ANALYTICS_LOG_LEVEL`` environment variable.


Subcommands
-----------

- ``import CSV_PATH``:
    Read movements from a CSV file (see ``io.read_movements``) and store them
    in the database.

        python -m movement_analytics.cli import data/movements.csv

- ``balance``:
    Income, expenses and balance of the organization.

        python -m movement_analytics.cli balance --convert-to USD --detail

- ``contact NAME``:
    Movements attributed to a contact in any role.

        python -m movement_analytics.cli contact "Juan Perez" --project "Casa A"

- ``role {subcontractor,personnel,partner}``:
    Spending on one counterparty role, per contact and per project.

        python -m movement_analytics.cli role subcontractor --from-date 2024-01-01 \
            --to-date 2024-06-30

- ``range START END``:
    Movements of a date range with optional filters and grouping.

        python -m movement_analytics.cli range 2024-01-01 2024-03-31 \
            --type Egreso --group-by category

- ``trend``:
    Per-period cash flow and trend classification.

        python -m movement_analytics.cli trend --interval weekly
        python -m movement_analytics.cli trend --project "Casa A"

- ``project NAME``:
    All-time financial summary of one project.

        python -m movement_analytics.cli project "Casa A" --breakdown

- ``import-commitments CSV_PATH``:
    Read client commitments from a CSV file (see ``io.read_commitments``)
    and store them in the database.

- ``commitments``:
    What each client committed to pay, what was paid and what is left.

        python -m movement_analytics.cli commitments --project "Casa A"

Every analysis subcommand accepts ``--currency CODE`` (only movements in that
currency) and ``--convert-to CODE`` (convert everything to that currency).
With ``--output DIR`` the tabular views are also written as CSV files.


End of module description.
"""

import argparse
from datetime import datetime
from pathlib import Path
from typing import Optional

from . import __version__
from .analytics import (
    GROUP_BY_CHOICES,
    SPENDING_ROLES,
    MovementFilters,
    cashflow_trend,
    client_commitments,
    contact_movements,
    date_range_movements,
    organization_balance,
    project_financial_summary,
    role_spending,
)
from .buckets import INTERVALS
from .config import AppConfig, load_app_config
from .db import (
    SQLiteLedgerStore,
    has_movements,
    import_commitments,
    import_movements,
    init_database,
)
from .errors import StoreError, ValidationError
from .io import read_commitments, read_movements
from .logging_setup import configure_logging, get_logger
from .messages import render_outcome
from .pipeline import ROLE_COLUMNS
from .views import summary_views

logger = get_logger(__name__)


def _add_currency_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--currency",
        help="Only consider movements in this currency code (e.g. ARS).",
    )
    parser.add_argument(
        "--convert-to",
        dest="convert_to",
        help=(
            "Convert every movement to this currency code, using the exchange "
            "rate of a movement already recorded in it."
        ),
    )


def _add_date_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--from-date",
        dest="from_date",
        help="Start of the date range (YYYY-MM-DD). Requires --to-date.",
    )
    parser.add_argument(
        "--to-date",
        dest="to_date",
        help="End of the date range (YYYY-MM-DD). Requires --from-date.",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="python -m movement_analytics.cli",
        description=(
            "Movement Analytics - Financial movement analytics engine. "
            "Answers balance, contact, role spending, date range, cash-flow "
            "trend, project and client commitment questions over an "
            "organization's movements."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of movement_analytics and exit.",
    )

    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. If omitted, "
            "'movement_analytics_config.toml' in the current directory is used."
        ),
    )

    ap.add_argument(
        "--org",
        dest="organization_id",
        help=(
            "Organization id to analyze. Overrides [organization] id from the "
            "configuration file."
        ),
    )

    ap.add_argument(
        "--log-level",
        dest="log_level",
        help="Logging level (DEBUG, INFO, WARNING...). Overrides [logging] level.",
    )

    ap.add_argument(
        "--output",
        dest="output_dir",
        help="Also write the tabular views of the result as CSV files in this directory.",
    )

    subparsers = ap.add_subparsers(dest="command", metavar="command")

    # import
    import_parser = subparsers.add_parser(
        "import", help="Import movements from a CSV file into the database."
    )
    import_parser.add_argument("csv_path", metavar="CSV_PATH")

    # balance
    balance_parser = subparsers.add_parser(
        "balance", help="Income, expenses and balance of the organization."
    )
    _add_currency_options(balance_parser)
    balance_parser.add_argument(
        "--detail", action="store_true", help="List the most recent movements."
    )

    # contact
    contact_parser = subparsers.add_parser(
        "contact", help="Movements attributed to a contact in any role."
    )
    contact_parser.add_argument("contact_name", metavar="NAME")
    contact_parser.add_argument("--project", dest="project_name")
    _add_date_options(contact_parser)
    _add_currency_options(contact_parser)

    # role
    role_parser = subparsers.add_parser(
        "role", help="Spending on subcontractors, personnel or partners."
    )
    role_parser.add_argument("role", choices=SPENDING_ROLES)
    role_parser.add_argument("--project", dest="project_name")
    _add_date_options(role_parser)
    _add_currency_options(role_parser)
    role_parser.add_argument(
        "--detail", action="store_true", help="List the most recent movements."
    )

    # range
    range_parser = subparsers.add_parser(
        "range", help="Movements of a date range, filtered and grouped."
    )
    range_parser.add_argument("start", metavar="START")
    range_parser.add_argument("end", metavar="END")
    range_parser.add_argument(
        "--project",
        dest="project_names",
        action="append",
        default=[],
        help="Project name (substring). Can be repeated.",
    )
    range_parser.add_argument(
        "--category", dest="categories", action="append", default=[]
    )
    range_parser.add_argument("--wallet", dest="wallets", action="append", default=[])
    range_parser.add_argument(
        "--type",
        dest="types",
        action="append",
        default=[],
        help="Movement type (Ingreso / Egreso). Can be repeated.",
    )
    range_parser.add_argument(
        "--role",
        dest="roles",
        action="append",
        default=[],
        choices=list(ROLE_COLUMNS),
        help="Keep movements attributed to this role. Can be repeated.",
    )
    range_parser.add_argument("--group-by", dest="group_by", choices=GROUP_BY_CHOICES)
    _add_currency_options(range_parser)
    range_parser.add_argument(
        "--detail", action="store_true", help="List the most recent movements."
    )

    # trend
    trend_parser = subparsers.add_parser(
        "trend", help="Per-period cash flow and trend."
    )
    trend_parser.add_argument(
        "--project",
        dest="project_name",
        help="Analyze one project instead of the whole organization.",
    )
    trend_parser.add_argument("--interval", choices=INTERVALS, default="monthly")
    _add_date_options(trend_parser)
    _add_currency_options(trend_parser)

    # project
    project_parser = subparsers.add_parser(
        "project", help="All-time financial summary of a project."
    )
    project_parser.add_argument("project_name", metavar="NAME")
    project_parser.add_argument(
        "--breakdown",
        action="store_true",
        help="Include the top 3 expense categories.",
    )
    _add_currency_options(project_parser)

    # import-commitments
    import_commitments_parser = subparsers.add_parser(
        "import-commitments",
        help="Import client commitments from a CSV file into the database.",
    )
    import_commitments_parser.add_argument("csv_path", metavar="CSV_PATH")

    # commitments
    commitments_parser = subparsers.add_parser(
        "commitments", help="Client commitments against the payments received."
    )
    commitments_parser.add_argument("--client", dest="client_name")
    commitments_parser.add_argument("--project", dest="project_name")
    _add_currency_options(commitments_parser)

    return ap


def _date_range_from_args(args: argparse.Namespace) -> Optional[tuple]:
    """Return (from_date, to_date) when either bound was given, else None."""
    if args.from_date is None and args.to_date is None:
        return None
    return (args.from_date, args.to_date)


def _handle_import(args: argparse.Namespace, config: AppConfig) -> None:
    csv_path = Path(args.csv_path)
    if not csv_path.is_file():
        raise SystemExit(f"CSV file for import not found: {csv_path}")

    print(f"Importing movements from {csv_path} into the database...")
    df_import = read_movements(csv_path)
    stats = import_movements(df_import, config.database, source_label=str(csv_path))
    print(f"Imported batch #{stats.batch_id}: {stats.rows_inserted} movements.")


def _handle_import_commitments(args: argparse.Namespace, config: AppConfig) -> None:
    csv_path = Path(args.csv_path)
    if not csv_path.is_file():
        raise SystemExit(f"CSV file for import not found: {csv_path}")

    print(f"Importing client commitments from {csv_path} into the database...")
    df_import = read_commitments(csv_path)
    stats = import_commitments(df_import, config.database, source_label=str(csv_path))
    print(f"Imported batch #{stats.batch_id}: {stats.rows_inserted} commitments.")


def _run_analysis(args: argparse.Namespace, config: AppConfig, organization_id: str):
    """Dispatch an analysis subcommand to its aggregation function."""
    store = SQLiteLedgerStore(config.database)
    settings = config.analytics
    currency_kwargs = {"currency": args.currency, "convert_to": args.convert_to}

    if args.command == "balance":
        return organization_balance(
            store,
            organization_id,
            include_detail=args.detail,
            settings=settings,
            **currency_kwargs,
        )

    if args.command == "contact":
        return contact_movements(
            store,
            organization_id,
            args.contact_name,
            project_name=args.project_name,
            date_range=_date_range_from_args(args),
            settings=settings,
            **currency_kwargs,
        )

    if args.command == "role":
        return role_spending(
            store,
            organization_id,
            args.role,
            project_name=args.project_name,
            date_range=_date_range_from_args(args),
            include_detail=args.detail,
            settings=settings,
            **currency_kwargs,
        )

    if args.command == "range":
        filters = MovementFilters(
            project_names=tuple(args.project_names),
            categories=tuple(args.categories),
            wallets=tuple(args.wallets),
            types=tuple(args.types),
            roles=tuple(args.roles),
        )
        return date_range_movements(
            store,
            organization_id,
            (args.start, args.end),
            filters=filters,
            group_by=args.group_by,
            include_detail=args.detail,
            settings=settings,
            **currency_kwargs,
        )

    if args.command == "trend":
        return cashflow_trend(
            store,
            organization_id,
            scope="project" if args.project_name else "organization",
            project_name=args.project_name,
            interval=args.interval,
            date_range=_date_range_from_args(args),
            settings=settings,
            **currency_kwargs,
        )

    if args.command == "commitments":
        return client_commitments(
            store,
            organization_id,
            client_name=args.client_name,
            project_name=args.project_name,
            settings=settings,
            **currency_kwargs,
        )

    return project_financial_summary(
        store,
        organization_id,
        args.project_name,
        include_breakdown=args.breakdown,
        settings=settings,
        **currency_kwargs,
    )


def _render(outcome, output_dir: Optional[str]) -> None:
    print(render_outcome(outcome))

    views = summary_views(outcome)
    for name, df in views.items():
        if df.empty or name == "totals":
            continue
        print()
        print(f"=== {name} ===")
        print(df.to_string(index=False))

    if output_dir and views:
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
        for name, df in views.items():
            path = out / f"{name}_{timestamp}.csv"
            df.to_csv(path, index=False)
            print(f"Wrote {path} ({len(df)} rows)")


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the Movement Analytics CLI.

    This function parses command-line arguments, loads the application
    configuration, configures logging, initializes the database and then
    either imports movements from a CSV file or runs one analysis and prints
    its rendered outcome.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"movement_analytics version {__version__}")
        return

    if args.command is None:
        parser.error("A command is required (import, balance, contact, role, ...).")

    # 1) Load application configuration (database, analytics, organization)
    config = load_app_config(args.config_path)

    # 2) Logging: CLI override, then config
    configure_logging(args.log_level or config.log_level)

    # 3) Initialize the database (create file and schema if needed)
    init_database(config.database)

    if args.command == "import":
        _handle_import(args, config)
        return
    if args.command == "import-commitments":
        _handle_import_commitments(args, config)
        return

    organization_id = args.organization_id or config.organization_id
    if not organization_id:
        parser.error(
            "No organization configured. Either set [organization] id in the "
            "configuration file or provide --org."
        )

    if not has_movements(config.database, organization_id):
        print(
            "Warning: no movements stored for this organization. Use the "
            "'import' command to load movements."
        )

    # 4) Run the analysis and render it
    try:
        outcome = _run_analysis(args, config, organization_id)
    except ValidationError as exc:
        parser.error(str(exc))
    except StoreError as exc:
        logger.error("Ledger store failure: %s", exc)
        raise SystemExit(f"Could not read movements: {exc}") from exc

    _render(outcome, args.output_dir)


if __name__ == "__main__":
    main()
