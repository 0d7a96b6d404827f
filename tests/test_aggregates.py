from __future__ import annotations

import pandas as pd
import pytest

from rate_comparison.features.aggregates import (
    build_state_averages,
    hourly_multiplier,
    is_non_numeric_rate,
    national_average,
    parse_rate,
    rate_history,
    selection_statistics,
    summarize_rates,
    to_hourly,
)
from rate_comparison.features.filtering import FilterSet
from rate_comparison.records import RateRecord, records_from_frame

HCBS = "HOME AND COMMUNITY BASED SERVICES"


def test_parse_rate_strips_currency_noise() -> None:
    assert parse_rate("$1,200.50") == pytest.approx(1200.5)
    assert parse_rate(" $ 10 ") == pytest.approx(10.0)
    assert parse_rate("€7.25") == pytest.approx(7.25)
    assert parse_rate(12) == pytest.approx(12.0)


def test_non_numeric_rates_never_parse() -> None:
    for value in ("Cost-Based", "Manual pricing", "N/A", "TBD", "call for rate", "", "abc", "NaN", "Infinity"):
        assert parse_rate(value) is None
        assert is_non_numeric_rate(value)
    assert parse_rate(None) is None
    assert parse_rate(float("nan")) is None


def test_hourly_multipliers() -> None:
    assert hourly_multiplier("15 MINUTES") == 4.0
    assert hourly_multiplier("30 Minutes") == 2.0
    assert hourly_multiplier("45 MINUTES") == pytest.approx(4 / 3)
    assert hourly_multiplier("60 MINUTES") == 1.0
    assert hourly_multiplier("PER HOUR") == 1.0
    assert hourly_multiplier("5 MINUTES") is None
    assert hourly_multiplier("DAILY") is None
    assert hourly_multiplier("") is None


def test_to_hourly_conversion() -> None:
    assert to_hourly(5.0, "15 MINUTES") == pytest.approx(20.0)
    assert to_hourly(5.0, "PER HOUR") == pytest.approx(5.0)
    assert to_hourly(5.0, "PER VISIT") is None
    assert to_hourly(None, "PER HOUR") is None


def test_state_average_excludes_and_flags_non_numeric() -> None:
    frame = pd.DataFrame(
        {
            "state": ["TX", "TX", "TX"],
            "service_category": ["HCBS", "HCBS", "HCBS"],
            "service_code": ["X", "X", "X"],
            "modifier_1": ["U1", "U2", "U3"],
            "rate": ["$10.00", "$20.00", "Cost-Based"],
            "rate_effective_date": ["2024-01-01", "2024-01-01", "2024-01-01"],
        }
    )

    result = build_state_averages(frame, FilterSet(service_category="HCBS", service_codes=("X",)))

    row = result.table.iloc[0]
    assert row["state"] == "TX"
    assert round(row["average_rate"], 2) == 15.00
    assert row["non_numeric_count"] == 1
    assert len(result.warnings) == 1
    assert result.warnings[0].rate == "Cost-Based"
    assert result.warnings[0].message.endswith("State: TX, Service Code: X")


def test_state_averages_use_latest_rates(rate_frame: pd.DataFrame) -> None:
    result = build_state_averages(rate_frame, FilterSet(service_category=HCBS, service_codes=("97153",)))

    assert result.averages() == {"CA": pytest.approx(15.0), "TX": pytest.approx(16.0)}
    assert result.table.set_index("state").loc["TX", "rate_count"] == 2
    assert len(result.rejected) == 1


def test_state_averages_hourly(rate_frame: pd.DataFrame) -> None:
    result = build_state_averages(
        rate_frame,
        FilterSet(service_category=HCBS, service_codes=("97153",)),
        hourly=True,
    )

    assert result.averages() == {"CA": pytest.approx(30.0), "TX": pytest.approx(64.0)}
    assert result.table.set_index("state").loc["TX", "hourly_undefined_count"] == 0


def test_state_averages_empty_when_nothing_matches(rate_frame: pd.DataFrame) -> None:
    result = build_state_averages(rate_frame, FilterSet(service_category="DENTAL"))

    assert result.table.empty
    assert result.averages() == {}


def test_national_average_spans_every_state(rate_frame: pd.DataFrame) -> None:
    only_tx = FilterSet(service_category=HCBS, states=("TX",), service_codes=("97153",))

    assert national_average(rate_frame, only_tx) == pytest.approx(47 / 3)
    assert national_average(rate_frame, FilterSet(service_category="DENTAL")) is None


def test_selection_statistics_over_selected_entries(rate_frame: pd.DataFrame) -> None:
    records = records_from_frame(rate_frame.iloc[1:4])

    stats, warnings = selection_statistics(records)
    hourly_stats, _ = selection_statistics(records, hourly=True)

    assert (stats.count, stats.minimum, stats.maximum) == (2, 12.0, 20.0)
    assert stats.mean == pytest.approx(16.0)
    assert stats.excluded == 1
    assert [warning.state for warning in warnings] == ["TX"]
    assert hourly_stats.mean == pytest.approx(64.0)


def test_unknown_unit_is_excluded_from_hourly_statistics() -> None:
    record = RateRecord(
        state="FL",
        service_category="BEHAVIORAL HEALTH",
        service_code="H2019",
        rate="$5.00",
        rate_effective_date="2024-01-01",
        duration_unit="DAILY",
    )

    stats, warnings = selection_statistics([record], hourly=True)

    assert stats.count == 0
    assert stats.mean is None
    assert warnings == []


def test_summarize_rates_ignores_missing_values() -> None:
    stats = summarize_rates([1.0, None, float("nan"), 3.0])

    assert stats.count == 2
    assert stats.mean == pytest.approx(2.0)
    assert stats.excluded == 2


def test_rate_history_is_date_ordered(rate_frame: pd.DataFrame) -> None:
    key = RateRecord.from_mapping(rate_frame.iloc[1].to_dict()).categorical_key
    shuffled = rate_frame.iloc[[1, 0, 2]]

    history = rate_history(shuffled, key)

    assert history["rate"].tolist() == ["$10.00", "$12.00"]
    assert history["rate_value"].tolist() == pytest.approx([10.0, 12.0])
    assert history["hourly_rate"].tolist() == pytest.approx([40.0, 48.0])
