from __future__ import annotations

import logging
from dataclasses import dataclass, field

import pandas as pd

from rate_comparison.errors import RejectedRecord
from rate_comparison.io.schema import RATE_COLUMNS, categorical_keys, normalize_rate_frame
from rate_comparison.preprocess.dates import add_effective_date

LOGGER = logging.getLogger(__name__)

UNPARSEABLE_DATE = "unparseable_date"


@dataclass(frozen=True)
class ReductionResult:
    rates: pd.DataFrame
    rejected: list[RejectedRecord] = field(default_factory=list)


def prepare_rate_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize a raw rate table and attach parsed dates plus the categorical key."""
    working = add_effective_date(normalize_rate_frame(df))
    working["categorical_key"] = categorical_keys(working)
    return working


def reduce_latest(df: pd.DataFrame) -> ReductionResult:
    """Keep the latest-effective row per categorical key.

    Ties on the effective date go to the row that appears last in the input.
    Rows whose date cannot be parsed are left out and returned as rejections.
    Survivors keep their relative input order, so reducing twice is a no-op.
    """
    if df.empty:
        return ReductionResult(rates=pd.DataFrame(columns=list(RATE_COLUMNS)))

    working = prepare_rate_frame(df)
    unparseable = working["effective_ordinal"].isna()
    rejected = [
        RejectedRecord(
            row=int(row),
            reason=UNPARSEABLE_DATE,
            categorical_key=str(working.at[row, "categorical_key"]),
            value=str(working.at[row, "rate_effective_date"]),
        )
        for row in working.index[unparseable]
    ]
    if rejected:
        LOGGER.warning("Skipped %d rate rows with unparseable effective dates", len(rejected))

    dated = working.loc[~unparseable]
    if dated.empty:
        return ReductionResult(rates=dated.loc[:, list(RATE_COLUMNS)], rejected=rejected)

    # idxmax returns the first maximum; walking in reverse makes the last row win.
    winners = (
        dated.iloc[::-1]
        .groupby("categorical_key", sort=False)["effective_ordinal"]
        .idxmax()
    )
    reduced = dated.loc[sorted(winners.tolist()), list(RATE_COLUMNS)].reset_index(drop=True)
    LOGGER.debug("Reduced %d rate rows to %d latest rows", len(dated), len(reduced))
    return ReductionResult(rates=reduced, rejected=rejected)
