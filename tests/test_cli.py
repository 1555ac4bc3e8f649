import pytest

from movement_analytics import __version__
from movement_analytics.cli import main

CSV_CONTENT = (
    "organization_id,movement_date,amount,type_name,currency_code,currency_symbol,"
    "exchange_rate,category_name,project_name,personnel\n"
    "org-1,2024-01-10,1000,Ingreso,ARS,$,1000,Ventas,Casa A,\n"
    "org-1,2024-01-20,400,Egreso,ARS,$,1000,Materiales,Casa A,Juan Pérez\n"
    "org-1,2024-02-05,200,Ingreso,ARS,$,1000,Ventas,Casa B,\n"
)


@pytest.fixture
def workspace(tmp_path, capsys):
    """Config file, CSV file and an imported database for org-1."""
    config_path = tmp_path / "movement_analytics_config.toml"
    config_path.write_text(
        '[database]\npath = "db/movements.sqlite"\n\n'
        '[organization]\nid = "org-1"\n\n'
        '[logging]\nlevel = "WARNING"\n',
        encoding="utf-8",
    )
    csv_path = tmp_path / "movements.csv"
    csv_path.write_text(CSV_CONTENT, encoding="utf-8")

    main(["--config", str(config_path), "import", str(csv_path)])
    return config_path


def test_version(capsys) -> None:
    main(["--version"])
    assert f"movement_analytics version {__version__}" in capsys.readouterr().out


def test_import_reports_batch(workspace, capsys) -> None:
    out = capsys.readouterr().out
    assert "Imported batch #1: 3 movements." in out


def test_balance_command(workspace, capsys) -> None:
    capsys.readouterr()

    main(["--config", str(workspace), "balance"])

    out = capsys.readouterr().out
    assert "Balance: $800,00 ARS" in out


def test_range_command_prints_group_table(workspace, capsys) -> None:
    capsys.readouterr()

    main(
        [
            "--config",
            str(workspace),
            "range",
            "2024-01-01",
            "2024-02-29",
            "--group-by",
            "category",
        ]
    )

    out = capsys.readouterr().out
    assert "Por categoría:" in out
    assert "=== by_category ===" in out


def test_role_command_writes_csv_views(workspace, tmp_path, capsys) -> None:
    out_dir = tmp_path / "out"

    main(["--config", str(workspace), "--output", str(out_dir), "role", "personnel"])

    assert "Gastos en personal" in capsys.readouterr().out
    assert any(p.name.startswith("by_contact_") for p in out_dir.iterdir())


def test_contact_not_found_is_rendered(workspace, capsys) -> None:
    capsys.readouterr()

    main(["--config", str(workspace), "contact", "Maria"])

    assert 'asociados a "Maria"' in capsys.readouterr().out


def test_invalid_date_range_exits_with_usage_error(workspace) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["--config", str(workspace), "range", "2024-02-01", "2024-01-01"])
    assert exc_info.value.code == 2


def test_missing_organization_is_a_usage_error(tmp_path) -> None:
    config_path = tmp_path / "movement_analytics_config.toml"
    config_path.write_text("", encoding="utf-8")

    with pytest.raises(SystemExit):
        main(["--config", str(config_path), "balance"])


def test_import_commitments_and_report_progress(workspace, tmp_path, capsys) -> None:
    commitments_csv = tmp_path / "commitments.csv"
    commitments_csv.write_text(
        "organization_id,commitment_id,client_name,project_name,committed_amount,"
        "currency_code,currency_symbol,exchange_rate\n"
        "org-1,c-1,Ana Gómez,Casa A,10000,ARS,$,1000\n",
        encoding="utf-8",
    )
    payments_csv = tmp_path / "payments.csv"
    payments_csv.write_text(
        "organization_id,movement_date,amount,type_name,currency_code,currency_symbol,"
        "exchange_rate,project_name,commitment_id\n"
        "org-1,2024-03-01,1000,Ingreso,ARS,$,1000,Casa A,c-1\n",
        encoding="utf-8",
    )
    capsys.readouterr()

    main(["--config", str(workspace), "import-commitments", str(commitments_csv)])
    assert "Imported batch #2: 1 commitments." in capsys.readouterr().out

    main(["--config", str(workspace), "import", str(payments_csv)])
    capsys.readouterr()

    main(["--config", str(workspace), "commitments", "--client", "ana"])

    out = capsys.readouterr().out
    assert 'Ana Gómez en el proyecto "Casa A":' in out
    assert "Pagado a la fecha: $1.000,00 ARS (1 pago)" in out
    assert "Avance de pago: 10,0% completado, falta pagar 90,0%." in out


def test_commitments_command_without_commitments(workspace, capsys) -> None:
    capsys.readouterr()

    main(["--config", str(workspace), "commitments", "--project", "Casa A"])

    assert "No se encontraron compromisos de clientes" in capsys.readouterr().out
