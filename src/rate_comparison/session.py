"""One user's exploration state: selections, availability, fetched rates and chart picks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Mapping

import pandas as pd

from rate_comparison.catalog import Catalog, decode_catalog
from rate_comparison.config import AppConfig
from rate_comparison.dimensions import Dimension, Selections, parse_dimension
from rate_comparison.errors import (
    DecodeError,
    FetchError,
    NonNumericRateWarning,
    RateComparisonError,
    RejectedRecord,
    SchemaError,
)
from rate_comparison.features.aggregates import RateStatistics, selection_statistics
from rate_comparison.features.filtering import Page, group_by_state, paginate
from rate_comparison.features.reduce import reduce_latest
from rate_comparison.io.rate_source import RatePage, RateQuery, RateSource
from rate_comparison.io.schema import RATE_COLUMNS
from rate_comparison.records import RateRecord
from rate_comparison.resolver import FilterAvailability, apply_selection, resolve_availability
from rate_comparison.selection import (
    AllStatesSelection,
    ChartSeries,
    SelectionAccumulator,
    SortOrder,
    all_states_series,
    entry_series,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchTicket:
    generation: int
    query: RateQuery


class ExplorerSession:
    """Owns every piece of mutable state for one logical session.

    Selections cascade immediately, but option lists are only recomputed on
    ``commit`` so a burst of changes costs one pass over the catalog.
    """

    def __init__(self, config: AppConfig | None = None):
        self.config = config or AppConfig()
        self.catalog: Catalog | None = None
        self.catalog_error: RateComparisonError | None = None
        self.selections = Selections()
        self.availability = FilterAvailability.empty()
        self.entries = SelectionAccumulator()
        self.all_states = AllStatesSelection()
        self.rates: pd.DataFrame | None = None
        self.rejected: list[RejectedRecord] = []
        self._generation = 0
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def generation(self) -> int:
        return self._generation

    def load_catalog(self, payload: bytes) -> bool:
        """Decode a catalog; on failure keep running with no options available."""
        try:
            self.catalog = decode_catalog(payload)
            self.catalog_error = None
        except (DecodeError, SchemaError) as exc:
            LOGGER.error("Catalog unavailable: %s", exc)
            self.catalog = None
            self.catalog_error = exc
        self.commit()
        return self.catalog is not None

    def select(self, dimension: Dimension | str, value: str | None) -> Selections:
        dimension = parse_dimension(dimension)
        self.selections = apply_selection(self.catalog, self.selections, dimension, value)
        # Anything still in flight was asked for under the old selections.
        self._generation += 1
        self._pending = True
        return self.selections

    def commit(self) -> FilterAvailability:
        self.availability = resolve_availability(
            self.catalog,
            self.selections,
            blank_option_dimensions=self.config.catalog.blank_option_dimensions,
        )
        self._pending = False
        return self.availability

    def reset(self) -> None:
        self.selections = Selections()
        self.entries.clear()
        self.all_states.clear()
        self.rates = None
        self.rejected = []
        self._generation += 1
        self.commit()

    def begin_fetch(self, query: RateQuery) -> FetchTicket:
        self._generation += 1
        return FetchTicket(generation=self._generation, query=query)

    def accept_fetch(self, ticket: FetchTicket, page: RatePage) -> bool:
        """Store fetched rows unless a newer fetch or selection superseded them."""
        if ticket.generation != self._generation:
            LOGGER.warning(
                "Discarding stale rate fetch (generation %d, current %d)",
                ticket.generation,
                self._generation,
            )
            return False
        if len(page.rows) < page.total_count:
            raise ValueError(
                f"Refusing a partial rate page ({len(page.rows)} of {page.total_count} rows); "
                "reduction needs the full matching set"
            )
        reduction = reduce_latest(page.rows)
        self.rates = reduction.rates
        self.rejected = reduction.rejected
        return True

    def fetch(self, source: RateSource, query: RateQuery) -> RatePage:
        """Fetch the full matching set for ``query`` and keep its latest rates.

        Paging fields on ``query`` are dropped; use ``table_page`` or
        ``state_tables`` to page through the reduced rows.
        """
        query = replace(query, page=1, items_per_page=None)
        ticket = self.begin_fetch(query)
        try:
            page = source.fetch(query)
        except FetchError:
            raise
        except Exception as exc:
            raise FetchError(
                f"Rate source '{source.name}' failed: {exc}",
                query=query,
                original_error=exc,
                retryable=not isinstance(exc, ValueError),
            ) from exc
        self.accept_fetch(ticket, page)
        return page

    def toggle_entry(self, record: RateRecord) -> bool:
        return self.entries.toggle(record)

    def toggle_state_override(self, record: RateRecord) -> bool:
        return self.all_states.toggle(record)

    def statistics(self, hourly: bool | None = None) -> tuple[RateStatistics, list[NonNumericRateWarning]]:
        aggregation = self.config.aggregation
        return selection_statistics(
            self.entries.records(),
            hourly=aggregation.rate_per_hour if hourly is None else hourly,
            markers=aggregation.non_numeric_markers,
            minute_multipliers=aggregation.minute_multipliers,
        )

    def chart_series(
        self,
        averages: Mapping[str, float] | None = None,
        *,
        hourly: bool | None = None,
        order: SortOrder | str = SortOrder.default,
    ) -> ChartSeries:
        """Project the current picks into a chart; passing ``averages`` selects all-states mode."""
        aggregation = self.config.aggregation
        options = {
            "hourly": aggregation.rate_per_hour if hourly is None else hourly,
            "round_digits": aggregation.round_digits,
            "order": order,
            "markers": aggregation.non_numeric_markers,
            "minute_multipliers": aggregation.minute_multipliers,
        }
        if averages is not None:
            return all_states_series(averages, self.all_states.overrides, **options)
        return entry_series(self.entries.entries, **options)

    def rate_query(self) -> RateQuery:
        """Full-set rate query for the current selections."""
        selected = self.selections

        def _many(dimension: Dimension) -> tuple[str, ...]:
            value = selected.get(dimension)
            return (value,) if value is not None else ()

        return RateQuery(
            service_category=selected.get(Dimension.service_category) or "",
            state=selected.get(Dimension.state) or "",
            service_codes=_many(Dimension.service_code),
            service_description=selected.get(Dimension.service_description) or "",
            program=_many(Dimension.program),
            location_region=_many(Dimension.location_region),
            provider_type=_many(Dimension.provider_type),
            duration_unit=_many(Dimension.duration_unit),
            modifier=_many(Dimension.modifier),
            fee_schedule_date=selected.get(Dimension.fee_schedule_date) or "",
            items_per_page=None,
        )

    def table_page(self, page: int = 1) -> Page:
        rows = self.rates if self.rates is not None else pd.DataFrame(columns=RATE_COLUMNS)
        return paginate(rows, page, self.config.table.items_per_page)

    def state_tables(self, page: int = 1) -> dict[str, Page]:
        """Latest fetched rows split per state, one page of each."""
        if self.rates is None:
            return {}
        per_page = self.config.table.items_per_state_page
        return {state: paginate(rows, page, per_page) for state, rows in group_by_state(self.rates).items()}
