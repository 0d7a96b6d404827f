from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
from typer.testing import CliRunner

from rate_comparison.catalog import decode_catalog
from rate_comparison.cli import app

HCBS = "HOME AND COMMUNITY BASED SERVICES"


def _write_inputs(tmp_path: Path, rate_frame: pd.DataFrame) -> tuple[Path, Path]:
    rates_path = tmp_path / "rates.csv"
    rate_frame.to_csv(rates_path, index=False)
    config_path = tmp_path / "config.yaml"
    config_path.write_text("{}", encoding="utf-8")
    return rates_path, config_path


def test_cli_help() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for command in ("build-catalog", "options", "latest", "averages"):
        assert command in result.stdout


def test_build_catalog_then_options(tmp_path: Path, rate_frame: pd.DataFrame) -> None:
    rates_path, config_path = _write_inputs(tmp_path, rate_frame)
    catalog_path = tmp_path / "out" / "catalog.json.gz"
    options_path = tmp_path / "out" / "options.json"
    runner = CliRunner()

    built = runner.invoke(
        app,
        ["build-catalog", "--rates", str(rates_path), "--out", str(catalog_path), "--config", str(config_path)],
    )
    assert built.exit_code == 0, built.output
    assert len(decode_catalog(catalog_path.read_bytes())) == 8

    listed = runner.invoke(
        app,
        [
            "options",
            "--catalog",
            str(catalog_path),
            "--select",
            f"service_category={HCBS}",
            "--select",
            "state=TX",
            "--out",
            str(options_path),
            "--config",
            str(config_path),
        ],
    )
    assert listed.exit_code == 0, listed.output

    payload = json.loads(options_path.read_text(encoding="utf-8"))
    assert payload["selections"]["state"] == "TX"
    assert [option["value"] for option in payload["options"]["service_code"]] == ["97153"]
    assert [option["value"] for option in payload["options"]["program"]] == ["-", "WAIVER"]


def test_options_rejects_malformed_select(tmp_path: Path, rate_frame: pd.DataFrame) -> None:
    rates_path, config_path = _write_inputs(tmp_path, rate_frame)
    catalog_path = tmp_path / "catalog.json.gz"
    runner = CliRunner()
    runner.invoke(
        app,
        ["build-catalog", "--rates", str(rates_path), "--out", str(catalog_path), "--config", str(config_path)],
    )

    result = runner.invoke(
        app,
        ["options", "--catalog", str(catalog_path), "--select", "state", "--config", str(config_path)],
    )

    assert result.exit_code != 0


def test_options_fails_on_corrupt_catalog(tmp_path: Path) -> None:
    catalog_path = tmp_path / "catalog.json.gz"
    catalog_path.write_bytes(b"garbage")
    config_path = tmp_path / "config.yaml"
    config_path.write_text("{}", encoding="utf-8")

    result = CliRunner().invoke(
        app,
        ["options", "--catalog", str(catalog_path), "--config", str(config_path)],
    )

    assert result.exit_code == 1


def test_latest_writes_reduced_table(tmp_path: Path, rate_frame: pd.DataFrame) -> None:
    rates_path, config_path = _write_inputs(tmp_path, rate_frame)
    out_path = tmp_path / "latest.csv"

    result = CliRunner().invoke(
        app,
        ["latest", "--rates", str(rates_path), "--out", str(out_path), "--config", str(config_path)],
    )

    assert result.exit_code == 0, result.output
    assert "1 rejected" in result.stdout
    latest = pd.read_csv(out_path, dtype=str, keep_default_na=False)
    assert len(latest) == 6


def test_averages_uses_config_rates_path(tmp_path: Path, rate_frame: pd.DataFrame) -> None:
    rates_path, _ = _write_inputs(tmp_path, rate_frame)
    config_path = tmp_path / "config.yaml"
    config_path.write_text("rates:\n  path: rates.csv\n", encoding="utf-8")
    out_path = tmp_path / "averages.csv"

    result = CliRunner().invoke(
        app,
        [
            "averages",
            "--service-category",
            HCBS,
            "--service-code",
            "97153",
            "--hourly",
            "--out",
            str(out_path),
            "--config",
            str(config_path),
        ],
    )

    assert result.exit_code == 0, result.output
    averages = pd.read_csv(out_path).set_index("state")
    assert averages.loc["TX", "average_rate"] == 64.0
    assert averages.loc["CA", "average_rate"] == 30.0
    assert averages.loc["TX", "non_numeric_count"] == 1


def test_averages_requires_rates(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("{}", encoding="utf-8")

    result = CliRunner().invoke(
        app,
        ["averages", "--service-category", HCBS, "--service-code", "97153", "--config", str(config_path)],
    )

    assert result.exit_code != 0
