from __future__ import annotations

import pandas as pd
import pytest

from rate_comparison.io.rate_source import FrameRateSource, RateQuery, RateSource, parse_sort


@pytest.fixture
def source(rate_frame: pd.DataFrame) -> FrameRateSource:
    return FrameRateSource(rate_frame)


def test_state_prefix_is_case_insensitive(source: FrameRateSource) -> None:
    page = source.fetch(RateQuery(state="t", items_per_page=None))

    assert page.total_count == 4
    assert set(page.rows["state"]) == {"TX"}


def test_blank_sentinel_and_multi_values(source: FrameRateSource) -> None:
    blank_program = source.fetch(RateQuery(state="TX", program=("-",)))
    units = source.fetch(RateQuery(duration_unit=("PER HOUR", "DAILY")))

    assert blank_program.rows["rate"].tolist() == ["Cost-Based"]
    assert units.total_count == 3


def test_modifier_checks_all_columns(source: FrameRateSource) -> None:
    page = source.fetch(RateQuery(modifier=("HN",)))
    blank = source.fetch(RateQuery(service_category="BEHAVIORAL HEALTH", modifier=("-",)))

    assert page.rows["state"].tolist() == ["CA", "TX", "TX"]
    assert blank.total_count == 2


def test_behavioral_health_category_spans_its_family(source: FrameRateSource) -> None:
    family = source.fetch(RateQuery(service_category="behavioral health", items_per_page=None))
    hcbs = source.fetch(RateQuery(service_category="HOME AND COMMUNITY BASED SERVICES", items_per_page=None))

    assert family.rows["duration_unit"].tolist() == ["15 MINUTES", "DAILY"]
    assert hcbs.total_count == 6


def test_fee_schedule_date_and_window(source: FrameRateSource) -> None:
    exact = source.fetch(RateQuery(fee_schedule_date="07/01/2023"))
    window = source.fetch(RateQuery(start_date="2023-01-01", end_date="2023-12-31"))
    open_start = source.fetch(RateQuery(start_date="2024-01-01"))

    assert exact.rows["service_code"].tolist() == ["97153", "97155"]
    assert window.total_count == 3
    assert open_start.total_count == 3


def test_default_sort_and_custom_sort(source: FrameRateSource) -> None:
    default = source.fetch(RateQuery(items_per_page=None))
    by_code = source.fetch(RateQuery(sort=("service_code:desc", "rate:asc"), items_per_page=None))

    assert default.rows["state"].tolist()[:2] == ["CA", "CA"]
    assert by_code.rows["service_code"].tolist()[:2] == ["H2019", "H2019"]
    assert by_code.rows["rate"].tolist()[:2] == ["$5.00", "$8.00"]


def test_pagination(source: FrameRateSource) -> None:
    page = source.fetch(RateQuery(page=3, items_per_page=3))

    assert page.total_count == 8
    assert page.page_count == 3
    assert len(page.rows) == 2


def test_invalid_queries_raise_value_error(source: FrameRateSource) -> None:
    with pytest.raises(ValueError, match="sort column"):
        source.fetch(RateQuery(sort=("price:asc",)))
    with pytest.raises(ValueError, match="start_date"):
        source.fetch(RateQuery(start_date="yesterday"))


def test_parse_sort_accepts_state_name_alias() -> None:
    assert parse_sort(["state_name:desc", "service_code"]) == (["state", "service_code"], [False, True])


def test_base_source_is_abstract() -> None:
    with pytest.raises(NotImplementedError):
        RateSource().fetch(RateQuery())
