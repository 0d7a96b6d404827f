"""Error and data-quality types shared across the engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class RateComparisonError(Exception):
    """Base exception for the rate comparison engine."""


class DecodeError(RateComparisonError):
    """Raised when a catalog payload cannot be decompressed, parsed or resolved.

    Attributes:
        offset: Byte offset in the (decompressed) payload where decoding broke.
        dimension: Catalog dimension whose dictionary resolution failed.
        row: Row index of the failing code, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        offset: int | None = None,
        dimension: str | None = None,
        row: int | None = None,
    ):
        location = []
        if offset is not None:
            location.append(f"offset={offset}")
        if dimension is not None:
            location.append(f"dimension={dimension}")
        if row is not None:
            location.append(f"row={row}")
        super().__init__(f"{message} ({', '.join(location)})" if location else message)
        self.offset = offset
        self.dimension = dimension
        self.row = row


class SchemaError(RateComparisonError):
    """Raised when catalog arrays are truncated or do not line up with the column list."""

    def __init__(
        self,
        message: str,
        *,
        dimension: str | None = None,
        expected: int | None = None,
        actual: int | None = None,
    ):
        super().__init__(message)
        self.dimension = dimension
        self.expected = expected
        self.actual = actual


class FetchError(RateComparisonError):
    """Raised when a rate or catalog source fails.

    The engine never retries on its own; ``retryable`` tells the caller whether
    offering a retry affordance makes sense.
    """

    def __init__(
        self,
        message: str,
        *,
        query: Any = None,
        original_error: BaseException | None = None,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.query = query
        self.original_error = original_error
        self.retryable = retryable


NON_NUMERIC_RATE_MESSAGE = (
    "No numerical amounts are available for this selection. Alternative rate "
    "methodologies may include manual pricing, cost-based reimbursement, billed "
    "charges, or other mechanisms."
)


@dataclass(frozen=True)
class NonNumericRateWarning:
    """A rate that was excluded from statistics because it is not a number."""

    state: str
    service_code: str
    rate: str
    categorical_key: str

    @property
    def message(self) -> str:
        return f"{NON_NUMERIC_RATE_MESSAGE} State: {self.state}, Service Code: {self.service_code}"


@dataclass(frozen=True)
class RejectedRecord:
    """A rate row skipped by a batch step, with the reason it was skipped."""

    row: int
    reason: str
    categorical_key: str
    value: str
