from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd

TABLE_SUFFIXES = {".csv": "csv", ".parquet": "parquet", ".json": "json"}


def table_format(path: Path, fmt: str | None = None) -> str:
    if fmt:
        return fmt
    try:
        return TABLE_SUFFIXES[path.suffix]
    except KeyError as exc:
        raise ValueError(f"Cannot infer table format from suffix: {path.suffix}") from exc


def write_table(df: pd.DataFrame, path: Path, fmt: str | None = None) -> Path:
    """Write a rate table; the format follows ``fmt`` or else the file suffix."""
    resolved = table_format(path, fmt)
    path.parent.mkdir(parents=True, exist_ok=True)
    if resolved == "csv":
        df.to_csv(path, index=False)
    elif resolved == "parquet":
        df.to_parquet(path, index=False)
    elif resolved == "json":
        df.to_json(path, orient="records", indent=2)
    else:
        raise ValueError(f"Unsupported table format: {resolved}")
    return path


def write_catalog(payload: bytes, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload)
    return path


def write_summary(data: dict[str, Any], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, sort_keys=True, default=str), encoding="utf-8")
    return path
