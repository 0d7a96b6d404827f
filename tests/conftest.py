from __future__ import annotations

import pandas as pd
import pytest

from rate_comparison.catalog import Catalog, decode_catalog, encode_catalog
from rate_comparison.io.schema import normalize_rate_frame

HCBS = "HOME AND COMMUNITY BASED SERVICES"
ABA_DESCRIPTION = "Adaptive behavior treatment"


@pytest.fixture
def rate_frame() -> pd.DataFrame:
    """Eight raw rate rows across three states.

    Rows 0 and 1 are two dated versions of the same TX rate, row 4 carries its
    modifier in the second column and row 7 has an unparseable date.
    """
    return pd.DataFrame(
        [
            {
                "state": "TX",
                "service_category": HCBS,
                "service_code": "97153",
                "service_description": ABA_DESCRIPTION,
                "program": "WAIVER",
                "provider_type": "BCBA",
                "duration_unit": "15 MINUTES",
                "modifier_1": "HN",
                "modifier_1_details": "Bachelors level",
                "modifier_2": "",
                "rate": "$10.00",
                "rate_effective_date": "01/01/2023",
            },
            {
                "state": "TX",
                "service_category": HCBS,
                "service_code": "97153",
                "service_description": ABA_DESCRIPTION,
                "program": "WAIVER",
                "provider_type": "BCBA",
                "duration_unit": "15 MINUTES",
                "modifier_1": "HN",
                "modifier_1_details": "Bachelors level",
                "modifier_2": "",
                "rate": "$12.00",
                "rate_effective_date": "2024-01-01",
            },
            {
                "state": "TX",
                "service_category": HCBS,
                "service_code": "97153",
                "service_description": ABA_DESCRIPTION,
                "program": "WAIVER",
                "provider_type": "BCBA",
                "duration_unit": "15 MINUTES",
                "modifier_1": "HO",
                "modifier_1_details": "Masters level",
                "modifier_2": "",
                "rate": "$20.00",
                "rate_effective_date": "2024-01-01",
            },
            {
                "state": "TX",
                "service_category": HCBS,
                "service_code": "97153",
                "service_description": ABA_DESCRIPTION,
                "program": "",
                "provider_type": "",
                "duration_unit": "PER HOUR",
                "modifier_1": "",
                "modifier_1_details": "",
                "modifier_2": "",
                "rate": "Cost-Based",
                "rate_effective_date": "2024-01-01",
            },
            {
                "state": " ca ",
                "service_category": HCBS,
                "service_code": "97153",
                "service_description": ABA_DESCRIPTION,
                "program": "",
                "provider_type": "RBT",
                "duration_unit": "30 MINUTES",
                "modifier_1": "",
                "modifier_1_details": "",
                "modifier_2": "HN",
                "rate": "$15.00",
                "rate_effective_date": "2023-07-01",
            },
            {
                "state": "CA",
                "service_category": HCBS,
                "service_code": "97155",
                "service_description": "Protocol modification",
                "program": "",
                "provider_type": "BCBA",
                "duration_unit": "PER HOUR",
                "modifier_1": "",
                "modifier_1_details": "",
                "modifier_2": "",
                "rate": "$1,200.50",
                "rate_effective_date": "2023-07-01",
            },
            {
                "state": "FL",
                "service_category": "BEHAVIORAL HEALTH",
                "service_code": "H2019",
                "service_description": "Therapeutic behavioral services",
                "program": "",
                "provider_type": "",
                "duration_unit": "15 MINUTES",
                "modifier_1": "",
                "modifier_1_details": "",
                "modifier_2": "",
                "rate": "$8.00",
                "rate_effective_date": "03/15/2022",
            },
            {
                "state": "FL",
                "service_category": "BEHAVIORAL HEALTH AND/OR SUBSTANCE USE DISORDER SERVICES",
                "service_code": "H2019",
                "service_description": "Therapeutic behavioral services",
                "program": "",
                "provider_type": "",
                "duration_unit": "DAILY",
                "modifier_1": "",
                "modifier_1_details": "",
                "modifier_2": "",
                "rate": "$5.00",
                "rate_effective_date": "not a date",
            },
        ]
    )


@pytest.fixture
def catalog(rate_frame: pd.DataFrame) -> Catalog:
    return decode_catalog(encode_catalog(normalize_rate_frame(rate_frame)))
