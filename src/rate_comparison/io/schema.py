from __future__ import annotations

import pandas as pd

# Ordered categorical fields; the joined values form the CategoricalKey.
KEY_COLUMNS: tuple[str, ...] = (
    "state",
    "service_category",
    "service_code",
    "service_description",
    "program",
    "location_region",
    "provider_type",
    "duration_unit",
    "modifier_1",
    "modifier_1_details",
    "modifier_2",
    "modifier_2_details",
    "modifier_3",
    "modifier_3_details",
    "modifier_4",
    "modifier_4_details",
)
RATE_COLUMNS: tuple[str, ...] = KEY_COLUMNS + ("rate", "rate_effective_date")
CATALOG_COLUMNS: tuple[str, ...] = KEY_COLUMNS + ("rate_effective_date",)
REQUIRED_COLUMNS = ["state", "service_category", "service_code", "rate", "rate_effective_date"]

COLUMN_ALIASES = {
    "state_name": "state",
    "modifier": "modifier_1",
    "modifier_details": "modifier_1_details",
    "fee_schedule_date": "rate_effective_date",
}


def rename_aliases(df: pd.DataFrame) -> pd.DataFrame:
    rename_map = {
        alias: canonical
        for alias, canonical in COLUMN_ALIASES.items()
        if alias in df.columns and canonical not in df.columns
    }
    return df.rename(columns=rename_map)


def clean_text(series: pd.Series) -> pd.Series:
    return series.astype(object).where(series.notna(), "").astype(str).str.strip()


def normalize_rate_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Rename source columns and clean values into the canonical rate layout."""
    working = rename_aliases(df)
    missing = [column for column in REQUIRED_COLUMNS if column not in working.columns]
    if missing:
        missing_str = ", ".join(missing)
        raise ValueError(f"Missing required rate columns: {missing_str}")

    normalized = pd.DataFrame(index=working.index)
    for column in RATE_COLUMNS:
        if column in working.columns:
            normalized[column] = clean_text(working[column])
        else:
            normalized[column] = ""
    normalized["state"] = normalized["state"].str.upper()
    return normalized.reset_index(drop=True)


def categorical_keys(df: pd.DataFrame) -> pd.Series:
    if df.empty:
        return pd.Series([], index=df.index, dtype=object)
    return df.loc[:, list(KEY_COLUMNS)].astype(str).agg("|".join, axis=1)
