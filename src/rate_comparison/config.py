from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from rate_comparison.dimensions import SECONDARY_DIMENSIONS, Dimension, parse_dimension

DEFAULT_NON_NUMERIC_MARKERS = [
    "manual",
    "cost-based",
    "billed",
    "charges",
    "negotiated",
    "varies",
    "n/a",
    "tbd",
    "contact",
    "call",
]
DEFAULT_MINUTE_MULTIPLIERS = {15: 4.0, 30: 2.0, 45: 4.0 / 3.0, 60: 1.0}


class CatalogConfig(BaseModel):
    path: str | None = None
    blank_option_dimensions: list[Dimension] = Field(
        default_factory=lambda: list(SECONDARY_DIMENSIONS)
    )

    @field_validator("blank_option_dimensions", mode="before")
    @classmethod
    def _parse_dimensions(cls, value: object) -> object:
        if isinstance(value, list):
            return [parse_dimension(item) for item in value]
        return value


class RatesConfig(BaseModel):
    path: str | None = None


class AggregationConfig(BaseModel):
    non_numeric_markers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_NON_NUMERIC_MARKERS)
    )
    minute_multipliers: dict[int, float] = Field(
        default_factory=lambda: dict(DEFAULT_MINUTE_MULTIPLIERS)
    )
    round_digits: int = Field(default=2, ge=0, le=6)
    rate_per_hour: bool = False


class TableConfig(BaseModel):
    items_per_page: int = Field(default=50, ge=1)
    items_per_state_page: int = Field(default=25, ge=1)


class OutputsConfig(BaseModel):
    tables_format: Literal["csv", "parquet"] = "csv"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    rates: RatesConfig = Field(default_factory=RatesConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    table: TableConfig = Field(default_factory=TableConfig)
    outputs: OutputsConfig = Field(default_factory=OutputsConfig)


DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def _resolve_optional_path(path_value: str | None, base_dir: Path) -> str | None:
    if not path_value:
        return None
    candidate = Path(path_value)
    if candidate.is_absolute():
        return str(candidate)
    return str((base_dir / candidate).resolve())


def load_config(path: Path) -> AppConfig:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    config = AppConfig.model_validate(data)
    base_dir = path.resolve().parent

    config.catalog.path = _resolve_optional_path(
        config.catalog.path or os.getenv("RATE_COMPARISON_CATALOG_PATH"),
        base_dir,
    )
    config.rates.path = _resolve_optional_path(
        config.rates.path or os.getenv("RATE_COMPARISON_RATES_PATH"),
        base_dir,
    )
    return config
