"""Dictionary-encoded columnar catalog of known filter combinations.

Payload layout, gzip-compressed JSON::

    {"c": [column, ...],                # column order
     "m": {column: [value, ...], ...},  # per-column dictionary
     "v": [[code, ...], ...]}           # one code array per column, -1 = blank

Every code array has one entry per catalog row.
"""

from __future__ import annotations

import gzip
import json
import logging
import zlib
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np
import pandas as pd

from rate_comparison.errors import DecodeError, SchemaError
from rate_comparison.io.schema import CATALOG_COLUMNS, COLUMN_ALIASES, clean_text, rename_aliases

LOGGER = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
BLANK_CODE = -1


@dataclass(frozen=True)
class Catalog:
    frame: pd.DataFrame
    dictionaries: dict[str, tuple[str, ...]]

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self.frame.columns)

    def combinations(self) -> list[dict[str, str]]:
        return self.frame.astype(object).to_dict("records")


def _decompress(payload: bytes) -> bytes:
    if not payload.startswith(GZIP_MAGIC):
        raise DecodeError("catalog payload is not gzip-compressed", offset=0)
    try:
        return gzip.decompress(payload)
    except EOFError as exc:
        raise DecodeError("catalog payload is truncated", offset=len(payload)) from exc
    except (OSError, zlib.error) as exc:
        raise DecodeError(f"catalog payload failed to decompress: {exc}", offset=0) from exc


def _parse_document(raw: bytes) -> dict[str, Any]:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError("catalog payload is not valid UTF-8", offset=exc.start) from exc
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"catalog payload is not valid JSON: {exc.msg}", offset=exc.pos) from exc

    if not isinstance(document, dict):
        raise DecodeError("catalog payload must be a JSON object", offset=0)
    missing = [key for key in ("c", "m", "v") if key not in document]
    if missing:
        raise SchemaError(f"catalog payload missing keys: {', '.join(missing)}")
    if not isinstance(document["c"], list) or not all(isinstance(c, str) for c in document["c"]):
        raise DecodeError("catalog column list must be an array of strings", offset=0)
    if not isinstance(document["m"], dict):
        raise DecodeError("catalog dictionaries must be an object", offset=0)
    if not isinstance(document["v"], list):
        raise DecodeError("catalog values must be an array of arrays", offset=0)
    return document


def _resolve_column(
    column: str,
    dictionary: Any,
    codes: Any,
    expected_rows: int,
) -> tuple[pd.Categorical, tuple[str, ...]]:
    if not isinstance(dictionary, list) or not all(isinstance(v, str) for v in dictionary):
        raise DecodeError("dictionary must be an array of strings", dimension=column)
    if not isinstance(codes, list):
        raise DecodeError("code array must be an array of integers", dimension=column)
    if len(codes) != expected_rows:
        raise SchemaError(
            f"code array for '{column}' has {len(codes)} rows, expected {expected_rows}",
            dimension=column,
            expected=expected_rows,
            actual=len(codes),
        )

    try:
        values = np.asarray(codes) if codes else np.asarray([], dtype=np.int64)
    except (ValueError, OverflowError) as exc:
        raise DecodeError(f"code array is not a flat integer array: {exc}", dimension=column) from exc
    if values.ndim != 1 or values.dtype.kind not in "iu":
        raise DecodeError("code array must contain only integers", dimension=column)
    out_of_range = (values < BLANK_CODE) | (values >= len(dictionary))
    if out_of_range.any():
        row = int(np.flatnonzero(out_of_range)[0])
        raise DecodeError(
            f"code {int(values[row])} outside dictionary of size {len(dictionary)}",
            dimension=column,
            row=row,
        )

    try:
        resolved = pd.Categorical.from_codes(values, categories=pd.Index(dictionary, dtype=object))
    except ValueError as exc:
        raise DecodeError(f"dictionary cannot be resolved: {exc}", dimension=column) from exc
    if (values == BLANK_CODE).any():
        if "" not in resolved.categories:
            resolved = resolved.add_categories([""])
        resolved = resolved.fillna("")
    return resolved, tuple(dictionary)


def decode_catalog(payload: bytes) -> Catalog:
    """Decompress and dictionary-resolve a catalog payload into one row per combination."""
    document = _parse_document(_decompress(payload))
    columns: list[str] = document["c"]
    dictionaries: dict[str, Any] = document["m"]
    code_arrays: list[Any] = document["v"]

    if len(code_arrays) != len(columns):
        raise SchemaError(
            f"catalog has {len(columns)} columns but {len(code_arrays)} code arrays",
            expected=len(columns),
            actual=len(code_arrays),
        )
    missing_dictionaries = [column for column in columns if column not in dictionaries]
    if missing_dictionaries:
        raise SchemaError(
            f"catalog dictionaries missing for: {', '.join(missing_dictionaries)}",
            dimension=missing_dictionaries[0],
        )

    first = code_arrays[0] if code_arrays else []
    expected_rows = len(first) if isinstance(first, list) else 0
    resolved_columns: dict[str, pd.Categorical] = {}
    resolved_dictionaries: dict[str, tuple[str, ...]] = {}
    for column, codes in zip(columns, code_arrays):
        canonical = COLUMN_ALIASES.get(column, column)
        if canonical in resolved_columns:
            raise SchemaError(f"catalog column '{column}' duplicates '{canonical}'", dimension=column)
        resolved, dictionary = _resolve_column(column, dictionaries[column], codes, expected_rows)
        resolved_columns[canonical] = resolved
        resolved_dictionaries[canonical] = dictionary

    frame = pd.DataFrame(resolved_columns)
    LOGGER.info("Decoded catalog: %d rows across %d columns", len(frame), len(columns))
    return Catalog(frame=frame, dictionaries=resolved_dictionaries)


def encode_catalog(df: pd.DataFrame, columns: Sequence[str] | None = None) -> bytes:
    """Build a catalog payload from the distinct categorical projection of a rate table."""
    working = rename_aliases(df)
    selected = [
        column for column in (columns or CATALOG_COLUMNS) if column in working.columns
    ]
    if not selected:
        raise ValueError("No catalog columns present in rate table")

    projection = pd.DataFrame({column: clean_text(working[column]) for column in selected})
    if "state" in projection.columns:
        projection["state"] = projection["state"].str.upper()
    projection = projection.drop_duplicates().reset_index(drop=True)

    dictionaries: dict[str, list[str]] = {}
    code_arrays: list[list[int]] = []
    for column in selected:
        dictionary = sorted(value for value in projection[column].unique() if value)
        # get_indexer yields -1 for blanks, which never enter the dictionary
        codes = pd.Index(dictionary, dtype=object).get_indexer(projection[column])
        dictionaries[column] = dictionary
        code_arrays.append([int(code) for code in codes])

    document = {"c": selected, "m": dictionaries, "v": code_arrays}
    raw = json.dumps(document, separators=(",", ":")).encode("utf-8")
    LOGGER.info("Encoded catalog: %d rows across %d columns", len(projection), len(selected))
    return gzip.compress(raw, mtime=0)


def catalog_filter_values(catalog: Catalog) -> dict[str, list[str]]:
    """Sorted distinct non-blank values per catalog column."""
    values: dict[str, list[str]] = {}
    for column in catalog.columns:
        unique = catalog.frame[column].astype(object).unique()
        values[column] = sorted(str(value) for value in unique if value)
    return values
