from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import date
from typing import Any, Iterable, Mapping

import pandas as pd

from rate_comparison.io.schema import KEY_COLUMNS, RATE_COLUMNS, normalize_rate_frame
from rate_comparison.preprocess.dates import parse_effective_date


@dataclass(frozen=True)
class RateRecord:
    """One quoted rate for a combination of attributes at a point in time."""

    state: str
    service_category: str
    service_code: str
    rate: str
    rate_effective_date: str
    service_description: str = ""
    program: str = ""
    location_region: str = ""
    provider_type: str = ""
    duration_unit: str = ""
    modifier_1: str = ""
    modifier_1_details: str = ""
    modifier_2: str = ""
    modifier_2_details: str = ""
    modifier_3: str = ""
    modifier_3_details: str = ""
    modifier_4: str = ""
    modifier_4_details: str = ""

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> RateRecord:
        frame = normalize_rate_frame(pd.DataFrame([dict(mapping)]))
        return cls(**frame.iloc[0].to_dict())

    @property
    def categorical_key(self) -> str:
        return "|".join(str(getattr(self, column)) for column in KEY_COLUMNS)

    @property
    def effective_date(self) -> date | None:
        return parse_effective_date(self.rate_effective_date)

    @property
    def modifiers(self) -> tuple[str, ...]:
        return tuple(
            value
            for value in (self.modifier_1, self.modifier_2, self.modifier_3, self.modifier_4)
            if value
        )

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


_RECORD_FIELDS = tuple(field.name for field in fields(RateRecord))


def records_from_frame(df: pd.DataFrame) -> list[RateRecord]:
    if df.empty:
        return []
    missing = [column for column in RATE_COLUMNS if column not in df.columns]
    working = normalize_rate_frame(df) if missing else df
    rows = working.loc[:, list(_RECORD_FIELDS)].astype(str).to_dict("records")
    return [RateRecord(**row) for row in rows]


def frame_from_records(records: Iterable[RateRecord]) -> pd.DataFrame:
    rows = [record.to_dict() for record in records]
    if not rows:
        return pd.DataFrame(columns=list(RATE_COLUMNS))
    return normalize_rate_frame(pd.DataFrame(rows))
