from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

import pandas as pd

from rate_comparison.dimensions import SECONDARY_DIMENSIONS, Dimension
from rate_comparison.features.filtering import secondary_mask, service_category_mask
from rate_comparison.io.schema import normalize_rate_frame
from rate_comparison.preprocess.dates import parse_effective_date

LOGGER = logging.getLogger(__name__)

DEFAULT_SORT = ("state:asc", "service_code:asc")


@dataclass(frozen=True)
class RateQuery:
    """Parameters of one rate fetch.

    ``state`` is a case-insensitive prefix; leave it empty for every state.
    Secondary fields accept several values (OR), ``"-"`` meaning blank.
    ``items_per_page=None`` returns the full matching set in one page.
    """

    service_category: str = ""
    state: str = ""
    service_codes: tuple[str, ...] = ()
    service_description: str = ""
    program: tuple[str, ...] = ()
    location_region: tuple[str, ...] = ()
    provider_type: tuple[str, ...] = ()
    duration_unit: tuple[str, ...] = ()
    modifier: tuple[str, ...] = ()
    fee_schedule_date: str = ""
    start_date: str = ""
    end_date: str = ""
    sort: tuple[str, ...] = ()
    page: int = 1
    items_per_page: int | None = 50


@dataclass(frozen=True)
class RatePage:
    rows: pd.DataFrame
    total_count: int
    page: int
    items_per_page: int | None
    query: RateQuery = field(default_factory=RateQuery)

    @property
    def page_count(self) -> int:
        if not self.items_per_page or self.total_count == 0:
            return 1
        return math.ceil(self.total_count / self.items_per_page)


class RateSource:
    """A queryable store of rate rows."""

    name: str = "base"

    def fetch(self, query: RateQuery) -> RatePage:
        raise NotImplementedError


def parse_sort(sort: Sequence[str]) -> tuple[list[str], list[bool]]:
    columns: list[str] = []
    ascending: list[bool] = []
    for part in sort:
        column, _, direction = part.partition(":")
        column = column.strip()
        if not column:
            continue
        columns.append("state" if column == "state_name" else column)
        ascending.append(direction.strip().lower() != "desc")
    return columns, ascending


def _date_bound(value: str, label: str) -> date:
    parsed = parse_effective_date(value)
    if parsed is None:
        raise ValueError(f"Unparseable {label}: {value}")
    return parsed


class FrameRateSource(RateSource):
    """Serves rate queries from an in-memory rate table."""

    name = "frame"

    def __init__(self, frame: pd.DataFrame):
        self.frame = normalize_rate_frame(frame)
        self._dates = self.frame["rate_effective_date"].map(parse_effective_date)

    def _mask(self, query: RateQuery) -> pd.Series:
        frame = self.frame
        mask = pd.Series(True, index=frame.index)
        if query.service_category:
            mask &= service_category_mask(frame, query.service_category)
        if query.state:
            mask &= frame["state"].str.startswith(query.state.strip().upper())
        codes = {code.strip() for code in query.service_codes if code.strip()}
        if codes:
            mask &= frame["service_code"].isin(codes)
        if query.service_description:
            mask &= frame["service_description"] == query.service_description.strip()

        for dimension in SECONDARY_DIMENSIONS:
            values = [value for value in getattr(query, dimension.value) if value]
            if values:
                mask &= secondary_mask(frame, dimension, values)

        if query.fee_schedule_date:
            wanted = _date_bound(query.fee_schedule_date, Dimension.fee_schedule_date.value)
            mask &= self._dates == wanted
        else:
            if query.start_date:
                start = _date_bound(query.start_date, "start_date")
                mask &= self._dates.map(lambda value: value is not None and value >= start).astype(bool)
            if query.end_date:
                end = _date_bound(query.end_date, "end_date")
                mask &= self._dates.map(lambda value: value is not None and value <= end).astype(bool)
        return mask

    def fetch(self, query: RateQuery) -> RatePage:
        matched = self.frame.loc[self._mask(query)]
        columns, ascending = parse_sort(query.sort or DEFAULT_SORT)
        unknown = [column for column in columns if column not in matched.columns]
        if unknown:
            raise ValueError(f"Unsupported sort column(s): {', '.join(unknown)}")
        if columns:
            matched = matched.sort_values(columns, ascending=ascending, kind="mergesort")

        total = len(matched)
        if query.items_per_page is None:
            rows = matched.reset_index(drop=True)
            page = 1
        else:
            if query.items_per_page < 1:
                raise ValueError("items_per_page must be at least 1")
            page = max(query.page, 1)
            start = (page - 1) * query.items_per_page
            rows = matched.iloc[start : start + query.items_per_page].reset_index(drop=True)
        LOGGER.debug("Rate query matched %d rows, returning %d", total, len(rows))
        return RatePage(
            rows=rows,
            total_count=total,
            page=page,
            items_per_page=query.items_per_page,
            query=query,
        )
