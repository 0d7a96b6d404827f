from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from rate_comparison.io.schema import normalize_rate_frame

LOGGER = logging.getLogger(__name__)


def load_rate_table(path: Path) -> pd.DataFrame:
    """Load a rate export (CSV, parquet or JSON records) into canonical columns."""
    if path.suffix == ".csv":
        # utf-8-sig strips BOM-prefixed headers commonly found in exported CSV files.
        df = pd.read_csv(path, encoding="utf-8-sig", dtype=str, keep_default_na=False)
    elif path.suffix == ".parquet":
        df = pd.read_parquet(path)
    elif path.suffix == ".json":
        df = pd.read_json(path, orient="records", dtype=False, convert_dates=False)
    else:
        raise ValueError(f"Unsupported rate table file type: {path.suffix}")

    normalized = normalize_rate_frame(df)
    LOGGER.info("Loaded %d rate rows from %s", len(normalized), path)
    return normalized


def read_catalog_bytes(path: Path) -> bytes:
    if not path.exists():
        raise ValueError(f"Catalog file not found: {path}")
    return path.read_bytes()
