from __future__ import annotations

import json
from pathlib import Path

import typer

from rate_comparison.catalog import encode_catalog
from rate_comparison.config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from rate_comparison.features.aggregates import build_state_averages, national_average
from rate_comparison.features.filtering import FilterSet
from rate_comparison.features.reduce import reduce_latest
from rate_comparison.io.read import load_rate_table, read_catalog_bytes
from rate_comparison.io.write import write_catalog, write_summary, write_table
from rate_comparison.logging import configure_logging
from rate_comparison.session import ExplorerSession

app = typer.Typer(no_args_is_help=True, add_completion=False)


def _load_app_config(config_path: Path) -> AppConfig:
    return load_config(config_path)


def _require_path(option: Path | None, configured: str | None, flag: str, setting: str) -> Path:
    if option is not None:
        return option
    if configured:
        return Path(configured)
    raise typer.BadParameter(f"Missing {flag}. Pass it or set {setting} in the config file.")


def _parse_select(pairs: list[str]) -> list[tuple[str, str | None]]:
    parsed = []
    for pair in pairs:
        dimension, separator, value = pair.partition("=")
        if not separator or not dimension.strip():
            raise typer.BadParameter(f"Expected dimension=value, got: {pair}")
        parsed.append((dimension.strip(), value.strip() or None))
    return parsed


@app.command("build-catalog")
def build_catalog(
    rates: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    out: Path = typer.Option(Path("out/catalog.json.gz"), resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Encode the distinct filter combinations of a rate table as a compressed catalog."""
    configure_logging()
    cfg = _load_app_config(config)
    rates_path = _require_path(rates, cfg.rates.path, "--rates", "rates.path")
    payload = encode_catalog(load_rate_table(rates_path))
    write_catalog(payload, out)
    typer.echo(f"Catalog written: {out} ({len(payload)} bytes)")


@app.command()
def options(
    catalog: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    select: list[str] = typer.Option(
        [],
        "--select",
        help="dimension=value, applied in order. Repeat for several dimensions.",
    ),
    out: Path | None = typer.Option(None, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Print the options still available for every filter dimension."""
    configure_logging()
    cfg = _load_app_config(config)
    catalog_path = _require_path(catalog, cfg.catalog.path, "--catalog", "catalog.path")

    session = ExplorerSession(cfg)
    if not session.load_catalog(read_catalog_bytes(catalog_path)):
        typer.echo(f"Catalog unavailable: {session.catalog_error}", err=True)
        raise typer.Exit(code=1)
    for dimension, value in _parse_select(select):
        try:
            session.select(dimension, value)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
    availability = session.commit()

    payload = {"selections": session.selections.to_dict(), "options": availability.to_dict()}
    if out is not None:
        write_summary(payload, out)
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def latest(
    rates: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    out: Path | None = typer.Option(None, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Reduce a rate table to the latest rate per attribute combination."""
    configure_logging()
    cfg = _load_app_config(config)
    rates_path = _require_path(rates, cfg.rates.path, "--rates", "rates.path")
    fmt = cfg.outputs.tables_format
    out = out or Path(f"out/latest_rates.{fmt}").resolve()

    frame = load_rate_table(rates_path)
    reduction = reduce_latest(frame)
    write_table(reduction.rates, out, fmt=fmt)
    typer.echo(
        f"Latest rates: {len(reduction.rates)} of {len(frame)} rows "
        f"({len(reduction.rejected)} rejected). Written to {out}"
    )


@app.command()
def averages(
    service_category: str = typer.Option(..., help="Service category to compare."),
    service_code: list[str] = typer.Option(..., help="Service code; repeat to combine codes."),
    rates: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    hourly: bool | None = typer.Option(
        None, "--hourly/--per-unit", help="Normalize rates to an hourly amount."
    ),
    out: Path | None = typer.Option(None, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Average the latest rates of one service per state."""
    configure_logging()
    cfg = _load_app_config(config)
    rates_path = _require_path(rates, cfg.rates.path, "--rates", "rates.path")
    aggregation = cfg.aggregation
    use_hourly = aggregation.rate_per_hour if hourly is None else hourly
    fmt = cfg.outputs.tables_format
    out = out or Path(f"out/state_averages.{fmt}").resolve()

    frame = load_rate_table(rates_path)
    filter_set = FilterSet(service_category=service_category, service_codes=tuple(service_code))
    result = build_state_averages(
        frame,
        filter_set,
        hourly=use_hourly,
        markers=aggregation.non_numeric_markers,
        minute_multipliers=aggregation.minute_multipliers,
    )
    write_table(result.table.round({"average_rate": aggregation.round_digits}), out, fmt=fmt)

    overall = national_average(
        frame,
        filter_set,
        hourly=use_hourly,
        markers=aggregation.non_numeric_markers,
        minute_multipliers=aggregation.minute_multipliers,
    )
    for warning in result.warnings:
        typer.echo(warning.message, err=True)
    national = "n/a" if overall is None else f"{overall:.{aggregation.round_digits}f}"
    typer.echo(
        f"State averages: {len(result.table)} states, national average {national}. Written to {out}"
    )
