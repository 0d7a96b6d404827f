from __future__ import annotations

import pandas as pd
import pytest

from rate_comparison.records import RateRecord, records_from_frame
from rate_comparison.selection import (
    AllStatesSelection,
    PointSource,
    SelectionAccumulator,
    all_states_series,
    entry_series,
)


@pytest.fixture
def records(rate_frame: pd.DataFrame) -> list[RateRecord]:
    return records_from_frame(rate_frame)


def test_double_toggle_restores_entries(records: list[RateRecord]) -> None:
    accumulator = SelectionAccumulator()
    accumulator.toggle(records[1])
    before = accumulator.entries

    assert accumulator.toggle(records[2]) is True
    assert accumulator.toggle(records[2]) is False
    assert accumulator.entries == before


def test_emptying_a_state_removes_its_key(records: list[RateRecord]) -> None:
    accumulator = SelectionAccumulator()

    accumulator.toggle(records[4])
    assert list(accumulator.entries) == ["CA"]

    accumulator.toggle(records[4])
    assert accumulator.entries == {}
    assert len(accumulator) == 0


def test_entries_are_keyed_by_categorical_key(records: list[RateRecord]) -> None:
    accumulator = SelectionAccumulator()
    accumulator.toggle(records[0])

    # Same categorical key, later effective date: toggles the entry off.
    assert accumulator.is_selected(records[1])
    assert accumulator.toggle(records[1]) is False
    assert accumulator.entries == {}


def test_snapshots_do_not_change_after_later_toggles(records: list[RateRecord]) -> None:
    accumulator = SelectionAccumulator()
    accumulator.toggle(records[1])
    snapshot = accumulator.entries

    accumulator.toggle(records[2])
    accumulator.clear_state("tx")

    assert len(snapshot["TX"]) == 1
    assert accumulator.entries == {}


def test_all_states_override_toggles_and_replaces(records: list[RateRecord]) -> None:
    overrides = AllStatesSelection()

    assert overrides.toggle(records[1]) is True
    assert overrides.toggle(records[2]) is True
    assert overrides.selected("TX") == records[2]
    assert overrides.toggle(records[2]) is False
    assert overrides.overrides == {}


def test_entry_series_has_one_point_per_entry(records: list[RateRecord]) -> None:
    accumulator = SelectionAccumulator()
    for record in (records[1], records[3], records[4]):
        accumulator.toggle(record)

    series = entry_series(accumulator.entries)

    assert series.categories == ["TX (HN, WAIVER)", "TX", "CA (HN)"]
    assert series.values == [12.0, 0.0, 15.0]
    assert series.points[1].value is None
    assert series.points[1].record == records[3]


def test_entry_series_sorted_and_hourly(records: list[RateRecord]) -> None:
    accumulator = SelectionAccumulator()
    for record in (records[1], records[2], records[4]):
        accumulator.toggle(record)

    ascending = entry_series(accumulator.entries, hourly=True, order="asc")
    descending = entry_series(accumulator.entries, hourly=True, order="desc")

    assert ascending.values == [30.0, 48.0, 80.0]
    assert descending.values == [80.0, 48.0, 30.0]


def test_all_states_series_prefers_selected_entry(records: list[RateRecord]) -> None:
    series = all_states_series(
        {"TX": 16.0, "CA": 15.0, "FL": float("nan")},
        {"TX": records[2]},
        order="desc",
    )

    assert series.categories == ["TX", "CA"]
    assert series.values == [20.0, 15.0]
    assert [point.source for point in series.points] == [PointSource.entry, PointSource.average]


def test_chart_values_are_rounded() -> None:
    record = RateRecord(
        state="NY",
        service_category="HCBS",
        service_code="97153",
        rate="$10.005",
        rate_effective_date="2024-01-01",
    )
    accumulator = SelectionAccumulator()
    accumulator.toggle(record)

    series = entry_series(accumulator.entries, round_digits=1)

    assert series.values == [10.0]
    assert series.to_dict()["points"][0]["record"]["state"] == "NY"
