"""Dropdown availability over the combination catalog.

Primary dimensions constrain one another. Secondary dimensions are only
constrained by primary selections, so picking a duration unit never hides a
modifier (and vice versa).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from rate_comparison.catalog import Catalog
from rate_comparison.dimensions import (
    BLANK,
    DEPENDENCY_CHAIN,
    MODIFIER_COLUMNS,
    MODIFIER_DETAIL_COLUMNS,
    PRIMARY_DIMENSIONS,
    SECONDARY_DIMENSIONS,
    Dimension,
    Selections,
)
from rate_comparison.preprocess.dates import parse_effective_date

LOGGER = logging.getLogger(__name__)

NUMERIC_CODE = re.compile(r"^\d+$")
NUMBER_LETTER_CODE = re.compile(r"^(\d+)[A-Z]$")
HCPCS_CODE = re.compile(r"^[A-Z]\d+$")


@dataclass(frozen=True)
class FilterOption:
    value: str
    label: str


@dataclass(frozen=True)
class FilterAvailability:
    values: dict[Dimension, tuple[str, ...]] = field(default_factory=dict)
    blanks: dict[Dimension, bool] = field(default_factory=dict)
    labels: dict[Dimension, dict[str, str]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> FilterAvailability:
        return cls(values={dimension: () for dimension in Dimension})

    def is_available(self, dimension: Dimension, value: str) -> bool:
        concrete = self.values.get(dimension, ())
        if value == BLANK:
            return bool(concrete) and self.blanks.get(dimension, False)
        return value in concrete

    def options(self, dimension: Dimension) -> list[FilterOption]:
        labels = self.labels.get(dimension, {})
        options = [
            FilterOption(value=value, label=labels.get(value, value))
            for value in self.values.get(dimension, ())
        ]
        if options and self.blanks.get(dimension, False):
            options.insert(0, FilterOption(value=BLANK, label=BLANK))
        return options

    def to_dict(self) -> dict[str, list[dict[str, str]]]:
        return {
            dimension.value: [
                {"value": option.value, "label": option.label}
                for option in self.options(dimension)
            ]
            for dimension in Dimension
        }


def service_code_sort_key(code: str) -> tuple[int, int, str]:
    """Numeric codes first, then number+letter, then HCPCS, then anything else."""
    if NUMERIC_CODE.match(code):
        return (1, int(code), code)
    number_letter = NUMBER_LETTER_CODE.match(code)
    if number_letter:
        return (2, int(number_letter.group(1)), code)
    if HCPCS_CODE.match(code):
        return (3, 0, code)
    return (4, 0, code)


def sort_options(dimension: Dimension, values: Iterable[str]) -> list[str]:
    if dimension is Dimension.service_code:
        return sorted(values, key=service_code_sort_key)
    return sorted(values)


def _text(frame: pd.DataFrame, column: str) -> pd.Series:
    if column not in frame.columns:
        return pd.Series("", index=frame.index, dtype=object)
    return frame[column].astype(str).str.strip()


def _modifier_frame(frame: pd.DataFrame) -> pd.DataFrame:
    return pd.DataFrame({column: _text(frame, column) for column in MODIFIER_COLUMNS})


def _matches(frame: pd.DataFrame, dimension: Dimension, value: str) -> np.ndarray:
    if dimension is Dimension.modifier:
        modifiers = _modifier_frame(frame)
        if value == BLANK:
            return (modifiers == "").all(axis=1).to_numpy()
        return (modifiers == value).any(axis=1).to_numpy()

    if dimension is Dimension.fee_schedule_date:
        wanted = parse_effective_date(value)
        parsed = _text(frame, dimension.column).map(parse_effective_date)
        return (parsed == wanted).to_numpy(dtype=bool) if wanted else np.zeros(len(frame), bool)

    column = _text(frame, dimension.column)
    if value == BLANK:
        return (column == "").to_numpy()
    if dimension is Dimension.state:
        return (column.str.upper() == value.strip().upper()).to_numpy()
    return (column == value.strip()).to_numpy()


def _primary_matches(frame: pd.DataFrame, selections: Selections) -> dict[Dimension, np.ndarray]:
    return {
        dimension: _matches(frame, dimension, value)
        for dimension, value in selections.active().items()
        if dimension.is_primary
    }


def _combine(
    size: int,
    matches: dict[Dimension, np.ndarray],
    exclude: Dimension | None = None,
) -> np.ndarray:
    mask = np.ones(size, dtype=bool)
    for dimension, matched in matches.items():
        if dimension is not exclude:
            mask &= matched
    return mask


def primary_mask(
    frame: pd.DataFrame,
    selections: Selections,
    exclude: Dimension | None = None,
) -> np.ndarray:
    return _combine(len(frame), _primary_matches(frame, selections), exclude=exclude)


def _distinct(frame: pd.DataFrame, mask: np.ndarray, dimension: Dimension) -> list[str]:
    survivors = frame.loc[mask]
    if dimension is Dimension.modifier:
        modifiers = _modifier_frame(survivors)
        values = set(pd.unique(modifiers.to_numpy().ravel()))
    else:
        values = set(_text(survivors, dimension.column).unique())
    values.discard("")
    return sort_options(dimension, values)


def _has_blank(frame: pd.DataFrame, mask: np.ndarray, dimension: Dimension) -> bool:
    survivors = frame.loc[mask]
    if survivors.empty:
        return False
    if dimension is Dimension.modifier:
        return bool((_modifier_frame(survivors) == "").all(axis=1).any())
    return bool((_text(survivors, dimension.column) == "").any())


def _secondary_constrained_mask(frame: pd.DataFrame, selections: Selections) -> np.ndarray:
    mask = primary_mask(frame, selections)
    for dimension in SECONDARY_DIMENSIONS:
        value = selections.get(dimension)
        if value is not None:
            mask &= _matches(frame, dimension, value)
    return mask


def fee_schedule_dates(catalog: Catalog, selections: Selections) -> list[str]:
    """Distinct effective dates of rows matching every current selection, ISO formatted."""
    frame = catalog.frame
    if "rate_effective_date" not in frame.columns:
        return []
    mask = _secondary_constrained_mask(frame, selections)
    parsed = _text(frame.loc[mask], "rate_effective_date").map(parse_effective_date)
    return sorted({value.isoformat() for value in parsed if value is not None})


def available_values(catalog: Catalog, selections: Selections, dimension: Dimension) -> list[str]:
    """Values of ``dimension`` still reachable under the current selections."""
    if dimension is Dimension.fee_schedule_date:
        return fee_schedule_dates(catalog, selections)
    exclude = dimension if dimension.is_primary else None
    mask = primary_mask(catalog.frame, selections, exclude=exclude)
    return _distinct(catalog.frame, mask, dimension)


def has_blank_entries(catalog: Catalog, selections: Selections, dimension: Dimension) -> bool:
    if dimension is Dimension.fee_schedule_date:
        return False
    exclude = dimension if dimension.is_primary else None
    mask = primary_mask(catalog.frame, selections, exclude=exclude)
    return _has_blank(catalog.frame, mask, dimension)


def is_legal(catalog: Catalog, selections: Selections, dimension: Dimension, value: str) -> bool:
    concrete = available_values(catalog, selections, dimension)
    if value == BLANK:
        # "-" is only offered next to concrete options
        return bool(concrete) and has_blank_entries(catalog, selections, dimension)
    return value in concrete


def modifier_labels(catalog: Catalog, codes: Sequence[str]) -> dict[str, str]:
    """``"<code> - <details>"`` using the first details text found for each code."""
    frame = catalog.frame
    details: dict[str, str] = {}
    for code_column, detail_column in zip(MODIFIER_COLUMNS, MODIFIER_DETAIL_COLUMNS):
        if code_column not in frame.columns or detail_column not in frame.columns:
            continue
        pairs = pd.DataFrame(
            {"code": _text(frame, code_column), "details": _text(frame, detail_column)}
        )
        pairs = pairs[(pairs["code"] != "") & (pairs["details"] != "")]
        for code, text in pairs.drop_duplicates(subset="code").itertuples(index=False):
            details.setdefault(code, text)
    return {code: f"{code} - {details[code]}" if code in details else code for code in codes}


def duration_unit_state_counts(catalog: Catalog, selections: Selections) -> dict[str, int]:
    """Number of distinct states offering each duration unit under the non-state primaries."""
    frame = catalog.frame
    mask = primary_mask(frame, selections, exclude=Dimension.state)
    survivors = pd.DataFrame(
        {
            "duration_unit": _text(frame.loc[mask], "duration_unit"),
            "state": _text(frame.loc[mask], "state").str.upper(),
        }
    )
    survivors = survivors[survivors["duration_unit"] != ""]
    counts = survivors.groupby("duration_unit")["state"].nunique()
    return {str(unit): int(count) for unit, count in counts.items()}


def resolve_availability(
    catalog: Catalog | None,
    selections: Selections,
    *,
    blank_option_dimensions: Sequence[Dimension] = SECONDARY_DIMENSIONS,
) -> FilterAvailability:
    """Compute every dimension's options in one pass over the catalog."""
    if catalog is None:
        return FilterAvailability.empty()

    frame = catalog.frame
    matches = _primary_matches(frame, selections)
    values: dict[Dimension, tuple[str, ...]] = {}
    blanks: dict[Dimension, bool] = {}

    for dimension in PRIMARY_DIMENSIONS:
        mask = _combine(len(frame), matches, exclude=dimension)
        values[dimension] = tuple(_distinct(frame, mask, dimension))
        blanks[dimension] = False

    shared_mask = _combine(len(frame), matches)
    for dimension in SECONDARY_DIMENSIONS:
        values[dimension] = tuple(_distinct(frame, shared_mask, dimension))
        blanks[dimension] = (
            dimension in blank_option_dimensions
            and bool(values[dimension])
            and _has_blank(frame, shared_mask, dimension)
        )

    values[Dimension.fee_schedule_date] = tuple(fee_schedule_dates(catalog, selections))
    blanks[Dimension.fee_schedule_date] = False

    unit_counts = duration_unit_state_counts(catalog, selections)
    labels = {
        Dimension.modifier: modifier_labels(catalog, values[Dimension.modifier]),
        Dimension.duration_unit: {
            unit: f"{unit} ({unit_counts.get(unit, 0)})" for unit in values[Dimension.duration_unit]
        },
    }
    LOGGER.debug(
        "Resolved availability over %d combinations (%d match primaries)",
        len(frame),
        int(shared_mask.sum()),
    )
    return FilterAvailability(values=values, blanks=blanks, labels=labels)


def apply_selection(
    catalog: Catalog | None,
    selections: Selections,
    dimension: Dimension,
    value: str | None,
) -> Selections:
    """Set ``dimension`` and clear forward-chain selections that became illegal.

    Once one downstream dimension is cleared, every dimension after it in the
    chain is cleared as well. Upstream selections are never touched.
    """
    updated = selections.with_value(dimension, value)
    if catalog is None:
        return updated

    if dimension in DEPENDENCY_CHAIN:
        cascading = False
        for downstream in DEPENDENCY_CHAIN[DEPENDENCY_CHAIN.index(dimension) + 1 :]:
            current = updated.get(downstream)
            if current is None:
                continue
            if cascading or not is_legal(catalog, updated, downstream, current):
                LOGGER.debug("Clearing %s=%r after %s changed", downstream.value, current, dimension.value)
                updated = updated.with_value(downstream, None)
                cascading = True

    if dimension is not Dimension.fee_schedule_date:
        fee_date = updated.get(Dimension.fee_schedule_date)
        if fee_date is not None and not is_legal(
            catalog, updated, Dimension.fee_schedule_date, fee_date
        ):
            updated = updated.with_value(Dimension.fee_schedule_date, None)
    return updated
