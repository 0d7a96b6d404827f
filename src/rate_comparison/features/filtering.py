from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

from rate_comparison.dimensions import (
    ALL_STATES,
    BLANK,
    MODIFIER_COLUMNS,
    SECONDARY_DIMENSIONS,
    Dimension,
    Selections,
)

BEHAVIORAL_HEALTH = "BEHAVIORAL HEALTH"


@dataclass(frozen=True)
class FilterSet:
    """One comparison row: required primary filters plus optional secondary ones.

    Secondary fields hold zero or more accepted values; ``"-"`` among them
    accepts rows where the field is empty. An empty tuple means the filter set
    has no opinion and a global refinement may apply instead.
    """

    service_category: str = ""
    states: tuple[str, ...] = ()
    service_codes: tuple[str, ...] = ()
    service_description: str = ""
    program: tuple[str, ...] = ()
    location_region: tuple[str, ...] = ()
    provider_type: tuple[str, ...] = ()
    duration_unit: tuple[str, ...] = ()
    modifier: tuple[str, ...] = ()

    @property
    def all_states(self) -> bool:
        return not self.states or ALL_STATES in self.states

    def secondary_values(self, dimension: Dimension) -> tuple[str, ...]:
        return tuple(value for value in getattr(self, dimension.value) if value)


@dataclass(frozen=True)
class Page:
    rows: pd.DataFrame
    page: int
    items_per_page: int
    total: int

    @property
    def page_count(self) -> int:
        if self.total == 0:
            return 1
        return math.ceil(self.total / self.items_per_page)


def service_category_matches(record_category: str, wanted: str) -> bool:
    record = str(record_category or "").strip().upper()
    target = str(wanted or "").strip().upper()
    if not record or not target:
        return False
    if record == target:
        return True
    return BEHAVIORAL_HEALTH in record and BEHAVIORAL_HEALTH in target


def _text(frame: pd.DataFrame, column: str) -> pd.Series:
    if column not in frame.columns:
        return pd.Series("", index=frame.index, dtype=object)
    return frame[column].astype(object).where(frame[column].notna(), "").astype(str).str.strip()


def service_category_mask(frame: pd.DataFrame, wanted: str) -> pd.Series:
    categories = _text(frame, "service_category")
    return categories.map(lambda value: service_category_matches(value, wanted)).astype(bool)


def secondary_mask(frame: pd.DataFrame, dimension: Dimension, values: Sequence[str]) -> pd.Series:
    """Rows accepted by any of ``values`` for a secondary dimension."""
    wanted = {str(value).strip() for value in values if str(value).strip()}
    mask = pd.Series(False, index=frame.index)
    if dimension is Dimension.modifier:
        modifiers = pd.DataFrame({column: _text(frame, column) for column in MODIFIER_COLUMNS})
        if BLANK in wanted:
            mask |= (modifiers == "").all(axis=1)
        concrete = wanted - {BLANK}
        if concrete:
            mask |= modifiers.isin(concrete).any(axis=1)
        return mask

    column = _text(frame, dimension.column)
    if BLANK in wanted:
        mask |= column == ""
    concrete = wanted - {BLANK}
    if concrete:
        mask |= column.isin(concrete)
    return mask


def filter_set_mask(
    frame: pd.DataFrame,
    filter_set: FilterSet,
    refinements: Selections | None = None,
) -> pd.Series:
    mask = pd.Series(True, index=frame.index)
    if filter_set.service_category:
        mask &= service_category_mask(frame, filter_set.service_category)
    if not filter_set.all_states:
        wanted_states = {state.strip().upper() for state in filter_set.states}
        mask &= _text(frame, "state").str.upper().isin(wanted_states)
    codes = {code.strip() for code in filter_set.service_codes if code.strip()}
    if codes:
        mask &= _text(frame, "service_code").isin(codes)
    if filter_set.service_description:
        mask &= _text(frame, "service_description") == filter_set.service_description.strip()

    for dimension in SECONDARY_DIMENSIONS:
        own = filter_set.secondary_values(dimension)
        if own:
            mask &= secondary_mask(frame, dimension, own)
            continue
        refinement = refinements.get(dimension) if refinements is not None else None
        if refinement is not None:
            mask &= secondary_mask(frame, dimension, [refinement])
    return mask


def filter_rates(
    frame: pd.DataFrame,
    filter_sets: Sequence[FilterSet],
    refinements: Selections | None = None,
) -> pd.DataFrame:
    """Rows accepted by at least one filter set, in input order."""
    if frame.empty or not filter_sets:
        return frame.iloc[0:0].copy()
    accepted = np.zeros(len(frame), dtype=bool)
    for filter_set in filter_sets:
        accepted |= filter_set_mask(frame, filter_set, refinements).to_numpy(dtype=bool)
    return frame.loc[accepted].reset_index(drop=True)


def group_by_state(frame: pd.DataFrame) -> dict[str, pd.DataFrame]:
    if frame.empty:
        return {}
    states = _text(frame, "state").str.upper()
    return {
        str(state): group.reset_index(drop=True)
        for state, group in frame.groupby(states, sort=True)
    }


def paginate(frame: pd.DataFrame, page: int = 1, items_per_page: int = 50) -> Page:
    if items_per_page < 1:
        raise ValueError("items_per_page must be at least 1")
    total = len(frame)
    page_count = max(1, math.ceil(total / items_per_page))
    current = min(max(page, 1), page_count)
    start = (current - 1) * items_per_page
    rows = frame.iloc[start : start + items_per_page].reset_index(drop=True)
    return Page(rows=rows, page=current, items_per_page=items_per_page, total=total)
