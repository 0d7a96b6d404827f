from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

from rate_comparison.config import DEFAULT_MINUTE_MULTIPLIERS, DEFAULT_NON_NUMERIC_MARKERS
from rate_comparison.errors import NonNumericRateWarning, RejectedRecord
from rate_comparison.features.filtering import FilterSet, filter_rates
from rate_comparison.features.reduce import reduce_latest
from rate_comparison.io.schema import categorical_keys, normalize_rate_frame
from rate_comparison.preprocess.dates import add_effective_date
from rate_comparison.records import RateRecord

LOGGER = logging.getLogger(__name__)

CURRENCY_NOISE = re.compile(r"[$€£,\s]")
MINUTE_UNIT = re.compile(r"\b(\d+)\s*-?\s*MIN(?:UTE)?S?\b")
HOUR_UNIT = re.compile(r"\b(?:HOUR|HOURS|HOURLY|HR)\b")

STATE_AVERAGE_COLUMNS = [
    "state",
    "average_rate",
    "rate_count",
    "min_rate",
    "max_rate",
    "non_numeric_count",
    "hourly_undefined_count",
]


@dataclass(frozen=True)
class RateStatistics:
    count: int
    minimum: float | None
    maximum: float | None
    mean: float | None
    excluded: int = 0


@dataclass(frozen=True)
class StateAverages:
    table: pd.DataFrame
    warnings: list[NonNumericRateWarning] = field(default_factory=list)
    rejected: list[RejectedRecord] = field(default_factory=list)

    def averages(self) -> dict[str, float]:
        valid = self.table.dropna(subset=["average_rate"])
        return {str(state): float(value) for state, value in zip(valid["state"], valid["average_rate"])}


def parse_rate(
    value: Any,
    markers: Sequence[str] = DEFAULT_NON_NUMERIC_MARKERS,
) -> float | None:
    """Parse a quoted rate into a float, or ``None`` when it is not a number.

    Currency symbols, thousands separators and whitespace are ignored. Any
    text carrying a non-numeric marker (``"Cost-Based"``, ``"N/A"``...) is
    rejected even when it also contains digits.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None

    text = str(value)
    lowered = text.lower()
    if any(marker in lowered for marker in markers):
        return None
    cleaned = CURRENCY_NOISE.sub("", text)
    if not cleaned:
        return None
    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return float(number)


def is_non_numeric_rate(value: Any, markers: Sequence[str] = DEFAULT_NON_NUMERIC_MARKERS) -> bool:
    return parse_rate(value, markers) is None


def hourly_multiplier(
    duration_unit: Any,
    minute_multipliers: Mapping[int, float] = DEFAULT_MINUTE_MULTIPLIERS,
) -> float | None:
    text = str(duration_unit or "").strip().upper()
    minutes = MINUTE_UNIT.search(text)
    if minutes:
        return minute_multipliers.get(int(minutes.group(1)))
    if HOUR_UNIT.search(text):
        return 1.0
    return None


def to_hourly(
    rate: float | None,
    duration_unit: Any,
    minute_multipliers: Mapping[int, float] = DEFAULT_MINUTE_MULTIPLIERS,
) -> float | None:
    if rate is None:
        return None
    multiplier = hourly_multiplier(duration_unit, minute_multipliers)
    if multiplier is None:
        return None
    return rate * multiplier


def summarize_rates(values: Iterable[float | None]) -> RateStatistics:
    numbers: list[float] = []
    excluded = 0
    for value in values:
        if value is None or (isinstance(value, float) and math.isnan(value)):
            excluded += 1
        else:
            numbers.append(float(value))
    if not numbers:
        return RateStatistics(count=0, minimum=None, maximum=None, mean=None, excluded=excluded)
    return RateStatistics(
        count=len(numbers),
        minimum=min(numbers),
        maximum=max(numbers),
        mean=sum(numbers) / len(numbers),
        excluded=excluded,
    )


def record_value(
    record: RateRecord,
    *,
    hourly: bool = False,
    markers: Sequence[str] = DEFAULT_NON_NUMERIC_MARKERS,
    minute_multipliers: Mapping[int, float] = DEFAULT_MINUTE_MULTIPLIERS,
) -> float | None:
    rate = parse_rate(record.rate, markers)
    if hourly:
        return to_hourly(rate, record.duration_unit, minute_multipliers)
    return rate


def non_numeric_warning(record: RateRecord) -> NonNumericRateWarning:
    return NonNumericRateWarning(
        state=record.state,
        service_code=record.service_code,
        rate=record.rate,
        categorical_key=record.categorical_key,
    )


def selection_statistics(
    records: Sequence[RateRecord],
    *,
    hourly: bool = False,
    markers: Sequence[str] = DEFAULT_NON_NUMERIC_MARKERS,
    minute_multipliers: Mapping[int, float] = DEFAULT_MINUTE_MULTIPLIERS,
) -> tuple[RateStatistics, list[NonNumericRateWarning]]:
    """Min, max and mean over exactly the given entries."""
    warnings = [non_numeric_warning(record) for record in records if is_non_numeric_rate(record.rate, markers)]
    stats = summarize_rates(
        record_value(record, hourly=hourly, markers=markers, minute_multipliers=minute_multipliers)
        for record in records
    )
    return stats, warnings


def _rate_values(
    frame: pd.DataFrame,
    *,
    hourly: bool,
    markers: Sequence[str],
    minute_multipliers: Mapping[int, float],
) -> tuple[pd.Series, pd.Series, pd.Series]:
    parsed = pd.to_numeric(frame["rate"].map(lambda value: parse_rate(value, markers)), errors="coerce")
    non_numeric = parsed.isna()
    if not hourly:
        return parsed, non_numeric, pd.Series(False, index=frame.index)
    multipliers = pd.to_numeric(
        frame["duration_unit"].map(lambda unit: hourly_multiplier(unit, minute_multipliers)),
        errors="coerce",
    )
    hourly_undefined = multipliers.isna() & ~non_numeric
    return parsed * multipliers, non_numeric, hourly_undefined


def build_state_averages(
    frame: pd.DataFrame,
    filter_set: FilterSet,
    *,
    hourly: bool = False,
    markers: Sequence[str] = DEFAULT_NON_NUMERIC_MARKERS,
    minute_multipliers: Mapping[int, float] = DEFAULT_MINUTE_MULTIPLIERS,
) -> StateAverages:
    """Per-state mean of the latest rate of every matching categorical key.

    Non-numeric rates never count toward the mean; each one is reported as a
    warning and counted per state.
    """
    reduction = reduce_latest(frame)
    survivors = filter_rates(reduction.rates, [filter_set])
    if survivors.empty:
        return StateAverages(
            table=pd.DataFrame(columns=STATE_AVERAGE_COLUMNS),
            rejected=reduction.rejected,
        )

    values, non_numeric, hourly_undefined = _rate_values(
        survivors, hourly=hourly, markers=markers, minute_multipliers=minute_multipliers
    )
    keys = categorical_keys(survivors)
    warnings = [
        NonNumericRateWarning(
            state=str(survivors.at[row, "state"]),
            service_code=str(survivors.at[row, "service_code"]),
            rate=str(survivors.at[row, "rate"]),
            categorical_key=str(keys.at[row]),
        )
        for row in survivors.index[non_numeric]
    ]
    if warnings:
        LOGGER.info("Excluded %d non-numeric rates from state averages", len(warnings))

    working = pd.DataFrame(
        {
            "state": survivors["state"],
            "value": values,
            "non_numeric": non_numeric.astype(int),
            "hourly_undefined": hourly_undefined.astype(int),
        }
    )
    table = (
        working.groupby("state", sort=True)
        .agg(
            average_rate=("value", "mean"),
            rate_count=("value", "count"),
            min_rate=("value", "min"),
            max_rate=("value", "max"),
            non_numeric_count=("non_numeric", "sum"),
            hourly_undefined_count=("hourly_undefined", "sum"),
        )
        .reset_index()
    )
    for column in ("rate_count", "non_numeric_count", "hourly_undefined_count"):
        table[column] = table[column].astype(int)
    return StateAverages(table=table[STATE_AVERAGE_COLUMNS], warnings=warnings, rejected=reduction.rejected)


def national_average(
    frame: pd.DataFrame,
    filter_set: FilterSet,
    *,
    hourly: bool = False,
    markers: Sequence[str] = DEFAULT_NON_NUMERIC_MARKERS,
    minute_multipliers: Mapping[int, float] = DEFAULT_MINUTE_MULTIPLIERS,
) -> float | None:
    """Mean of every positive latest rate for the filter set, across all states."""
    nationwide = FilterSet(
        service_category=filter_set.service_category,
        service_codes=filter_set.service_codes,
        service_description=filter_set.service_description,
        program=filter_set.program,
        location_region=filter_set.location_region,
        provider_type=filter_set.provider_type,
        duration_unit=filter_set.duration_unit,
        modifier=filter_set.modifier,
    )
    survivors = filter_rates(reduce_latest(frame).rates, [nationwide])
    if survivors.empty:
        return None
    values, _, _ = _rate_values(
        survivors, hourly=hourly, markers=markers, minute_multipliers=minute_multipliers
    )
    positive = values[values > 0]
    if positive.empty:
        return None
    return float(positive.mean())


def rate_history(
    frame: pd.DataFrame,
    categorical_key: str,
    *,
    markers: Sequence[str] = DEFAULT_NON_NUMERIC_MARKERS,
    minute_multipliers: Mapping[int, float] = DEFAULT_MINUTE_MULTIPLIERS,
) -> pd.DataFrame:
    """Every dated rate of one categorical key, oldest first."""
    columns = ["effective_date", "rate", "rate_value", "hourly_rate"]
    if frame.empty:
        return pd.DataFrame(columns=columns)
    working = add_effective_date(normalize_rate_frame(frame))
    working = working.loc[categorical_keys(working) == categorical_key]
    working = working.dropna(subset=["effective_ordinal"])
    if working.empty:
        return pd.DataFrame(columns=columns)

    working = working.sort_values("effective_ordinal", kind="mergesort")
    rate_values = working["rate"].map(lambda value: parse_rate(value, markers))
    hourly_rates = [
        to_hourly(rate, unit, minute_multipliers)
        for rate, unit in zip(rate_values, working["duration_unit"])
    ]
    history = pd.DataFrame(
        {
            "effective_date": working["effective_date"].tolist(),
            "rate": working["rate"].tolist(),
            "rate_value": pd.to_numeric(rate_values, errors="coerce").tolist(),
            "hourly_rate": pd.to_numeric(pd.Series(hourly_rates, dtype=object), errors="coerce").tolist(),
        }
    )
    return history[columns]
