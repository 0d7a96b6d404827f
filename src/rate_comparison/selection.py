"""Selected table entries and their projection into chart series."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Sequence

from rate_comparison.config import DEFAULT_MINUTE_MULTIPLIERS, DEFAULT_NON_NUMERIC_MARKERS
from rate_comparison.features.aggregates import record_value
from rate_comparison.records import RateRecord


class SortOrder(str, Enum):
    default = "default"
    asc = "asc"
    desc = "desc"


class PointSource(str, Enum):
    entry = "entry"
    average = "average"


def _state_key(state: str) -> str:
    return str(state).strip().upper()


class SelectionAccumulator:
    """Manual mode: per-state list of toggled entries, keyed by categorical key.

    Every change swaps in a new mapping, so snapshots taken through
    ``entries`` never change underneath the caller.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[RateRecord, ...]] = {}

    def __len__(self) -> int:
        return sum(len(records) for records in self._entries.values())

    @property
    def entries(self) -> dict[str, tuple[RateRecord, ...]]:
        return dict(self._entries)

    def is_selected(self, record: RateRecord) -> bool:
        key = record.categorical_key
        return any(item.categorical_key == key for item in self._entries.get(_state_key(record.state), ()))

    def toggle(self, record: RateRecord) -> bool:
        """Flip ``record`` in or out of its state's list; returns whether it is now selected."""
        state = _state_key(record.state)
        key = record.categorical_key
        current = self._entries.get(state, ())
        remaining = tuple(item for item in current if item.categorical_key != key)
        selected = len(remaining) == len(current)
        updated = remaining + (record,) if selected else remaining

        entries = dict(self._entries)
        if updated:
            entries[state] = updated
        else:
            entries.pop(state, None)
        self._entries = entries
        return selected

    def clear_state(self, state: str) -> None:
        entries = dict(self._entries)
        entries.pop(_state_key(state), None)
        self._entries = entries

    def clear(self) -> None:
        self._entries = {}

    def records(self) -> list[RateRecord]:
        return [record for records in self._entries.values() for record in records]


class AllStatesSelection:
    """All-states mode: at most one entry per state, overriding that state's average."""

    def __init__(self) -> None:
        self._overrides: dict[str, RateRecord] = {}

    @property
    def overrides(self) -> dict[str, RateRecord]:
        return dict(self._overrides)

    def selected(self, state: str) -> RateRecord | None:
        return self._overrides.get(_state_key(state))

    def toggle(self, record: RateRecord) -> bool:
        state = _state_key(record.state)
        overrides = dict(self._overrides)
        existing = overrides.get(state)
        if existing is not None and existing.categorical_key == record.categorical_key:
            del overrides[state]
            selected = False
        else:
            overrides[state] = record
            selected = True
        self._overrides = overrides
        return selected

    def clear(self) -> None:
        self._overrides = {}


@dataclass(frozen=True)
class ChartPoint:
    label: str
    state: str
    value: float | None
    source: PointSource
    record: RateRecord | None = None

    @property
    def display_value(self) -> float:
        return 0.0 if self.value is None else self.value


@dataclass(frozen=True)
class ChartSeries:
    points: tuple[ChartPoint, ...] = ()

    @property
    def categories(self) -> list[str]:
        return [point.label for point in self.points]

    @property
    def values(self) -> list[float]:
        return [point.display_value for point in self.points]

    def to_dict(self) -> dict[str, list]:
        return {
            "categories": self.categories,
            "values": self.values,
            "points": [
                {
                    "label": point.label,
                    "state": point.state,
                    "value": point.value,
                    "source": point.source.value,
                    "record": point.record.to_dict() if point.record else None,
                }
                for point in self.points
            ],
        }


def _round(value: float | None, digits: int) -> float | None:
    return None if value is None else round(value, digits)


def _entry_label(record: RateRecord) -> str:
    state = _state_key(record.state)
    details = [value for value in (*record.modifiers, record.program, record.location_region) if value]
    if not details:
        return state
    return f"{state} ({', '.join(details)})"


def order_points(points: Sequence[ChartPoint], order: SortOrder | str = SortOrder.default) -> tuple[ChartPoint, ...]:
    order = SortOrder(order)
    if order is SortOrder.default:
        return tuple(points)
    # Points without a value always trail.
    valued = [point for point in points if point.value is not None]
    missing = [point for point in points if point.value is None]
    valued.sort(key=lambda point: point.value, reverse=order is SortOrder.desc)
    return tuple(valued + missing)


def entry_series(
    entries: Mapping[str, Sequence[RateRecord]],
    *,
    hourly: bool = False,
    round_digits: int = 2,
    order: SortOrder | str = SortOrder.default,
    markers: Sequence[str] = DEFAULT_NON_NUMERIC_MARKERS,
    minute_multipliers: Mapping[int, float] = DEFAULT_MINUTE_MULTIPLIERS,
) -> ChartSeries:
    """One point per selected (state, entry) pair, in selection order unless sorted."""
    points = [
        ChartPoint(
            label=_entry_label(record),
            state=_state_key(state),
            value=_round(
                record_value(record, hourly=hourly, markers=markers, minute_multipliers=minute_multipliers),
                round_digits,
            ),
            source=PointSource.entry,
            record=record,
        )
        for state, records in entries.items()
        for record in records
    ]
    return ChartSeries(points=order_points(points, order))


def all_states_series(
    averages: Mapping[str, float],
    overrides: Mapping[str, RateRecord],
    *,
    hourly: bool = False,
    round_digits: int = 2,
    order: SortOrder | str = SortOrder.default,
    markers: Sequence[str] = DEFAULT_NON_NUMERIC_MARKERS,
    minute_multipliers: Mapping[int, float] = DEFAULT_MINUTE_MULTIPLIERS,
) -> ChartSeries:
    """One point per state: the selected entry when present, else the state average.

    ``averages`` must already be in the requested unit. States with no usable
    value are left out of the chart.
    """
    normalized_overrides = {_state_key(state): record for state, record in overrides.items()}
    normalized_averages = {_state_key(state): value for state, value in averages.items()}
    points = []
    for state in sorted(set(normalized_averages) | set(normalized_overrides)):
        record = normalized_overrides.get(state)
        if record is not None:
            value = record_value(record, hourly=hourly, markers=markers, minute_multipliers=minute_multipliers)
            source = PointSource.entry
        else:
            value = normalized_averages.get(state)
            source = PointSource.average
        if value is None or value != value:
            continue
        points.append(
            ChartPoint(
                label=state,
                state=state,
                value=round(float(value), round_digits),
                source=source,
                record=record,
            )
        )
    return ChartSeries(points=order_points(points, order))
