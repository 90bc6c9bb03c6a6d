"""
flowstats.core - Core data structures, exceptions and argument checks
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Type

import numpy as np

logger = logging.getLogger(__name__)

MONTH_ABBR: Tuple[str, ...] = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

SECONDS_PER_DAY = 86400.0

# Statistic columns in StatRow order, before any percentile columns
BASIC_STATS: Tuple[str, ...] = ("Mean", "Median", "Maximum", "Minimum")


# =============================================================================
# EXCEPTIONS AND WARNING CATEGORIES
# =============================================================================


class FlowStatsError(ValueError):
    """Base class for configuration and input errors."""


class InvalidWaterYearStart(FlowStatsError):
    """Water-year start month is not an integer in 1..12."""


class InvalidPercentile(FlowStatsError):
    """A requested percentile is not strictly between 0 and 100."""


class InvalidRollDays(FlowStatsError):
    """Rolling window width is not a positive integer."""


class InvalidRollAlign(FlowStatsError):
    """Rolling window alignment is not one of right/left/center."""


class InvalidMonths(FlowStatsError):
    """A month selection contains values outside 1..12."""


class InvalidYearRange(FlowStatsError):
    """Year bounds or exclusion list are malformed."""


class InvalidPlottingPosition(FlowStatsError):
    """Plotting-position constant is outside [0, 1)."""


class UnknownDistribution(FlowStatsError):
    """Requested distribution family is not registered."""


class ConflictingLayoutRequest(FlowStatsError):
    """Both spread and transpose layouts were requested."""


class FlowDataError(FlowStatsError):
    """Input flow data is malformed (missing columns, duplicates, bad types)."""


class FlowStatsWarning(UserWarning):
    """Base category for non-fatal data diagnostics."""


class MissingValuesWarning(FlowStatsWarning):
    """Result contains null statistics because of missing or excluded data."""


class InsufficientData(FlowStatsWarning):
    """Frequency sample is smaller than the recommended minimum."""


class ZeroFlowWarning(FlowStatsWarning):
    """Non-positive values were removed from a distribution fit."""


# =============================================================================
# DIAGNOSTICS
# =============================================================================


@dataclass(frozen=True)
class Diagnostic:
    """A single non-fatal message raised during a computation."""

    category: Type[FlowStatsWarning]
    message: str

    def __str__(self) -> str:
        return f"{self.category.__name__}: {self.message}"


class Diagnostics:
    """
    Explicit collector for warnings produced by a call.

    Pass one instance into any public function to receive its warnings.
    Every record is also emitted through the ``logging`` logger of the
    module that produced it.

    Examples
    --------
    >>> diag = Diagnostics()
    >>> table = calc_annual_stats(flow_data, diagnostics=diag)
    >>> for record in diag:
    ...     print(record)
    """

    def __init__(self) -> None:
        self._records: List[Diagnostic] = []

    def warn(
        self,
        message: str,
        category: Type[FlowStatsWarning] = FlowStatsWarning,
        log: Optional[logging.Logger] = None,
    ) -> None:
        """Record *message* and log it at WARNING level."""
        (log or logger).warning(message)
        self._records.append(Diagnostic(category=category, message=message))

    def extend(self, other: "Diagnostics") -> None:
        self._records.extend(other.records)

    @property
    def records(self) -> List[Diagnostic]:
        return list(self._records)

    @property
    def messages(self) -> List[str]:
        return [r.message for r in self._records]

    def of_category(self, category: Type[FlowStatsWarning]) -> List[Diagnostic]:
        return [r for r in self._records if issubclass(r.category, category)]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"Diagnostics(n={len(self._records)})"


# =============================================================================
# CONFIGURATION TYPES
# =============================================================================


class RollAlign(Enum):
    """Alignment of a rolling window relative to the labelled day."""

    RIGHT = "right"  # trailing: window ends on the day
    LEFT = "left"  # leading: window starts on the day
    CENTER = "center"

    @classmethod
    def parse(cls, value: "str | RollAlign") -> "RollAlign":
        """Accept an enum member, its value, or a trailing/leading/centered alias."""
        if isinstance(value, cls):
            return value
        aliases = {"trailing": cls.RIGHT, "leading": cls.LEFT, "centered": cls.CENTER}
        if isinstance(value, str):
            key = value.strip().lower()
            if key in aliases:
                return aliases[key]
            for member in cls:
                if member.value == key:
                    return member
        raise InvalidRollAlign(
            f"roll_align must be one of 'right', 'left' or 'center', got {value!r}"
        )


@dataclass(frozen=True)
class ColumnMapping:
    """
    Names of the date, value and group columns in caller-supplied data.

    Resolved once at the pipeline entry point into the canonical internal
    columns ``date``, ``value`` and ``station``. The group column is
    optional; when it is absent from the data all rows form one group.
    """

    dates: str = "Date"
    values: str = "Value"
    groups: str = "STATION_NUMBER"


@dataclass(frozen=True)
class FittedDistribution:
    """Parameters of a distribution fitted to an annual-extremes sample."""

    family: str
    parameters: Dict[str, float]
    method: str
    n: int
    covariance: Optional[np.ndarray] = field(default=None, compare=False)
    low_confidence: bool = False

    @property
    def is_fitted(self) -> bool:
        return all(np.isfinite(v) for v in self.parameters.values())


@dataclass(frozen=True)
class FrequencyOptions:
    """Settings for fitting and quantile derivation."""

    distribution: str = "lp3"
    plotting_position: float = 0.0
    min_years: int = 10
    confidence: float = 0.90
    return_periods: Tuple[float, ...] = (2, 5, 10, 20, 50, 100)
    probabilities: Optional[Tuple[float, ...]] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.plotting_position < 1.0:
            raise InvalidPlottingPosition(
                f"plotting position constant must be in [0, 1), got {self.plotting_position}"
            )
        if not 0.0 < self.confidence < 1.0:
            raise FlowStatsError(f"confidence must be in (0, 1), got {self.confidence}")
        if any(t <= 1 for t in self.return_periods):
            raise FlowStatsError("return periods must be greater than 1 year")
        if self.probabilities is not None and any(
            not 0.0 < p < 1.0 for p in self.probabilities
        ):
            raise FlowStatsError("probabilities must be strictly between 0 and 1")


# =============================================================================
# ARGUMENT CHECKS
# =============================================================================


def check_water_year_start(water_year_start: int) -> int:
    if (
        isinstance(water_year_start, bool)
        or not isinstance(water_year_start, (int, np.integer))
        or not 1 <= int(water_year_start) <= 12
    ):
        raise InvalidWaterYearStart(
            "water_year_start must be an integer between 1 and 12 (Jan-Dec), "
            f"got {water_year_start!r}"
        )
    return int(water_year_start)


def check_percentiles(percentiles: Optional[Iterable[float]]) -> Tuple[float, ...]:
    """Validate percentiles; ``None`` or empty means no percentile columns."""
    if percentiles is None:
        return ()
    if np.isscalar(percentiles):
        percentiles = [percentiles]
    checked = []
    for p in percentiles:
        if isinstance(p, bool) or not isinstance(p, (int, float, np.integer, np.floating)):
            raise InvalidPercentile(f"percentiles must be numeric, got {p!r}")
        if not np.isfinite(p) or not 0 < p < 100:
            raise InvalidPercentile(f"percentiles must be > 0 and < 100, got {p!r}")
        checked.append(float(p))
    return tuple(checked)


def check_roll_days(roll_days: "int | Sequence[int]") -> Tuple[int, ...]:
    values = [roll_days] if np.isscalar(roll_days) else list(roll_days)
    if not values:
        raise InvalidRollDays("at least one roll_days value is required")
    for n in values:
        if isinstance(n, bool) or not isinstance(n, (int, np.integer)) or n < 1:
            raise InvalidRollDays(f"roll_days must be integers >= 1, got {n!r}")
    return tuple(int(n) for n in values)


def check_months(months: Optional[Iterable[int]]) -> Tuple[int, ...]:
    """Validate a month selection; ``None`` selects all twelve months."""
    if months is None:
        return tuple(range(1, 13))
    if np.isscalar(months):
        months = [months]
    selected = list(months)
    if not selected:
        raise InvalidMonths("months selection is empty")
    for m in selected:
        if isinstance(m, bool) or not isinstance(m, (int, np.integer)) or not 1 <= m <= 12:
            raise InvalidMonths(f"months must be integers between 1 and 12, got {m!r}")
    return tuple(int(m) for m in selected)


def check_years(
    start_year: Optional[int],
    end_year: Optional[int],
    exclude_years: Optional[Iterable[int]] = None,
) -> Tuple[Optional[int], Optional[int], Tuple[int, ...]]:
    for name, value in (("start_year", start_year), ("end_year", end_year)):
        if value is not None and (
            isinstance(value, bool) or not isinstance(value, (int, np.integer))
        ):
            raise InvalidYearRange(f"{name} must be an integer, got {value!r}")
    if start_year is not None and end_year is not None and start_year > end_year:
        raise InvalidYearRange("start_year must be less than or equal to end_year")
    excluded: Tuple[int, ...] = ()
    if exclude_years is not None:
        if np.isscalar(exclude_years):
            exclude_years = [exclude_years]
        for y in exclude_years:
            if isinstance(y, bool) or not isinstance(y, (int, np.integer)):
                raise InvalidYearRange(f"exclude_years must be integers, got {y!r}")
        excluded = tuple(int(y) for y in exclude_years)
    return start_year, end_year, excluded


def percentile_label(p: float) -> str:
    """Column label for a percentile, e.g. ``P10`` or ``P2.5``."""
    return f"P{p:g}"


def stat_columns(percentiles: Sequence[float]) -> List[str]:
    return list(BASIC_STATS) + [percentile_label(p) for p in percentiles]
