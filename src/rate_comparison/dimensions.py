from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

BLANK = "-"
ALL_STATES = "ALL_STATES"


class Dimension(str, Enum):
    service_category = "service_category"
    state = "state"
    service_code = "service_code"
    service_description = "service_description"
    program = "program"
    location_region = "location_region"
    provider_type = "provider_type"
    duration_unit = "duration_unit"
    modifier = "modifier"
    fee_schedule_date = "fee_schedule_date"

    @property
    def is_primary(self) -> bool:
        return self in PRIMARY_DIMENSIONS

    @property
    def is_secondary(self) -> bool:
        return self in SECONDARY_DIMENSIONS

    @property
    def column(self) -> str:
        return DIMENSION_COLUMNS[self]


PRIMARY_DIMENSIONS: tuple[Dimension, ...] = (
    Dimension.service_category,
    Dimension.state,
    Dimension.service_code,
    Dimension.service_description,
)
SECONDARY_DIMENSIONS: tuple[Dimension, ...] = (
    Dimension.program,
    Dimension.location_region,
    Dimension.provider_type,
    Dimension.duration_unit,
    Dimension.modifier,
)
# Forward-only invalidation order; fee_schedule_date trails the chain.
DEPENDENCY_CHAIN: tuple[Dimension, ...] = PRIMARY_DIMENSIONS + SECONDARY_DIMENSIONS

MODIFIER_COLUMNS = ("modifier_1", "modifier_2", "modifier_3", "modifier_4")
MODIFIER_DETAIL_COLUMNS = tuple(f"{column}_details" for column in MODIFIER_COLUMNS)

DIMENSION_COLUMNS: dict[Dimension, str] = {
    Dimension.service_category: "service_category",
    Dimension.state: "state",
    Dimension.service_code: "service_code",
    Dimension.service_description: "service_description",
    Dimension.program: "program",
    Dimension.location_region: "location_region",
    Dimension.provider_type: "provider_type",
    Dimension.duration_unit: "duration_unit",
    Dimension.modifier: "modifier_1",
    Dimension.fee_schedule_date: "rate_effective_date",
}


def parse_dimension(name: str | Dimension) -> Dimension:
    if isinstance(name, Dimension):
        return name
    normalized = str(name).strip().lower()
    aliases = {"state_name": "state", "modifier_1": "modifier", "rate_effective_date": "fee_schedule_date"}
    normalized = aliases.get(normalized, normalized)
    try:
        return Dimension(normalized)
    except ValueError as exc:
        raise ValueError(f"Unknown filter dimension: {name}") from exc


def _clean_value(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


@dataclass(frozen=True)
class Selections:
    """Current single-value choice per dimension.

    A value is either a concrete option, ``None`` (unset) or ``BLANK`` meaning
    "rows where this dimension is empty". Instances are immutable; every change
    returns a new ``Selections``.
    """

    values: Mapping[Dimension, str | None] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str | Dimension, str | None]) -> Selections:
        return cls({parse_dimension(key): _clean_value(value) for key, value in mapping.items()})

    def get(self, dimension: Dimension) -> str | None:
        return self.values.get(dimension)

    def is_set(self, dimension: Dimension) -> bool:
        return self.get(dimension) is not None

    def with_value(self, dimension: Dimension, value: str | None) -> Selections:
        updated = dict(self.values)
        updated[dimension] = _clean_value(value)
        return Selections(updated)

    def cleared(self, dimensions: tuple[Dimension, ...] | list[Dimension]) -> Selections:
        updated = dict(self.values)
        for dimension in dimensions:
            updated[dimension] = None
        return Selections(updated)

    def active(self) -> dict[Dimension, str]:
        return {dimension: value for dimension, value in self.values.items() if value is not None}

    def to_dict(self) -> dict[str, str | None]:
        return {dimension.value: self.get(dimension) for dimension in Dimension}
