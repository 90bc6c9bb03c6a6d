"""
flowstats.stats - Grouped summary statistics of daily streamflow

Daily, monthly, annual and long-term statistics, statistics of cumulative
volume and yield, and data screening. Every public function takes raw daily
data plus keyword options, runs the normalise -> roll -> filter -> aggregate
pipeline and returns a long DataFrame (optionally reshaped).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from . import formatting
from .calendar import (
    analysis_prep,
    days_in_analysis_year,
    filter_complete_years,
    filter_months,
    filter_years,
    month_day_counts,
    month_levels,
    reference_days,
)
from .core import (
    MONTH_ABBR,
    ColumnMapping,
    Diagnostics,
    FlowStatsError,
    InvalidRollDays,
    MissingValuesWarning,
    RollAlign,
    check_months,
    check_percentiles,
    check_roll_days,
    check_water_year_start,
    check_years,
    stat_columns,
)
from .cumulative import (
    BasinArea,
    add_cumulative_volume,
    add_cumulative_yield,
    resolve_basin_areas,
)
from .rolling import add_rolling_means

logger = logging.getLogger(__name__)

LONG_TERM_LABEL = "Long-term"


@dataclass(frozen=True)
class _Request:
    """Validated options shared by the aggregators."""

    percentiles: Tuple[float, ...]
    roll_days: int
    roll_align: RollAlign
    water_year_start: int
    start_year: Optional[int]
    end_year: Optional[int]
    exclude_years: Tuple[int, ...]
    months: Tuple[int, ...]

    @property
    def month_names(self) -> List[str]:
        """Selected month abbreviations in analysis-year order."""
        selected = {MONTH_ABBR[m - 1] for m in self.months}
        return [m for m in month_levels(self.water_year_start) if m in selected]


def _validate(
    percentiles=None,
    roll_days=1,
    roll_align="right",
    water_year_start=1,
    start_year=None,
    end_year=None,
    exclude_years=None,
    months=None,
) -> _Request:
    widths = check_roll_days(roll_days)
    if len(widths) != 1:
        raise InvalidRollDays(f"only one roll_days value may be given here, got {list(widths)}")
    start_year, end_year, excluded = check_years(start_year, end_year, exclude_years)
    return _Request(
        percentiles=check_percentiles(percentiles),
        roll_days=widths[0],
        roll_align=RollAlign.parse(roll_align),
        water_year_start=check_water_year_start(water_year_start),
        start_year=start_year,
        end_year=end_year,
        exclude_years=excluded,
        months=check_months(months),
    )


def _prepare(
    data: pd.DataFrame,
    columns: ColumnMapping,
    request: _Request,
    drop_excluded: bool = True,
    complete_years: bool = False,
) -> Tuple[pd.DataFrame, bool, List[Hashable], List[int]]:
    """
    Normalise, roll and filter.

    Returns (frame, has_groups, station_order, years) where *years* is the
    requested analysis-year span: start_year..end_year, each end defaulting
    to the first or last year present for any station.
    """
    flow_data, has_groups = analysis_prep(data, columns, request.water_year_start)
    stations = list(pd.unique(flow_data["station"]))
    years = _year_span(flow_data["analysis_year"], request.start_year, request.end_year)

    flow_data = add_rolling_means(flow_data, request.roll_days, request.roll_align)
    flow_data = filter_years(
        flow_data,
        request.start_year,
        request.end_year,
        request.exclude_years if drop_excluded else (),
    )
    flow_data = filter_months(flow_data, request.months)
    if complete_years:
        flow_data = filter_complete_years(
            flow_data, "rolling_value", request.water_year_start, request.months
        )

    logger.debug(
        "Prepared %d daily rows for %d station(s), water_year_start=%d",
        len(flow_data),
        len(stations),
        request.water_year_start,
    )
    return flow_data, has_groups, stations, years


# =============================================================================
# AGGREGATION PRIMITIVES
# =============================================================================


def summarize_sample(
    values: Union[Sequence[float], np.ndarray, pd.Series],
    percentiles: Optional[Iterable[float]] = None,
    ignore_missing: bool = False,
) -> Dict[str, float]:
    """
    Mean, median, maximum, minimum and percentiles of one group of values.

    Parameters
    ----------
    values : array-like
        The group's values, missing as NaN.
    percentiles : iterable of float, optional
        Percentiles in (0, 100), computed with linear interpolation between
        order statistics.
    ignore_missing : bool
        If False, any missing value makes every statistic missing. If True,
        statistics use the present values.

    Returns
    -------
    dict
        ``{"Mean": ..., "Median": ..., "Maximum": ..., "Minimum": ..., "P10": ...}``.
        All values are NaN for an empty group.

    Examples
    --------
    >>> summarize_sample([1.0, 2.0, 3.0, 4.0], percentiles=[50])["P50"]
    2.5
    >>> summarize_sample([1.0, np.nan])["Mean"]
    nan
    """
    pct = check_percentiles(percentiles)
    labels = stat_columns(pct)

    arr = np.asarray(values, dtype=float)
    missing = np.isnan(arr)
    if arr.size == 0 or (missing.any() and not ignore_missing):
        return dict.fromkeys(labels, np.nan)

    present = arr[~missing]
    if present.size == 0:
        return dict.fromkeys(labels, np.nan)

    out = {
        "Mean": float(np.mean(present)),
        "Median": float(np.median(present)),
        "Maximum": float(np.max(present)),
        "Minimum": float(np.min(present)),
    }
    if pct:
        for label, q in zip(labels[len(out) :], np.percentile(present, pct)):
            out[label] = float(q)
    return out


def _aggregate(
    flow_data: pd.DataFrame,
    keys: List[str],
    value_column: str,
    percentiles: Tuple[float, ...],
    ignore_missing: bool,
    expected: Optional[List[tuple]] = None,
) -> pd.DataFrame:
    """
    Summarise *value_column* per group of *keys*.

    *expected* lists the key tuples of the output rows in order; groups not
    present in the data yield null statistics. Defaults to observed groups.
    """
    labels = stat_columns(percentiles)
    observed: Dict[tuple, Dict[str, float]] = {}
    for key, grp in flow_data.groupby(keys, sort=False, observed=True):
        key = key if isinstance(key, tuple) else (key,)
        observed[key] = summarize_sample(grp[value_column].to_numpy(), percentiles, ignore_missing)

    if expected is None:
        expected = list(observed)
    empty = dict.fromkeys(labels, np.nan)
    rows = [{**dict(zip(keys, key)), **observed.get(key, empty)} for key in expected]
    return pd.DataFrame(rows, columns=keys + labels)


def _year_span(
    analysis_years: pd.Series, start_year: Optional[int], end_year: Optional[int]
) -> List[int]:
    present = analysis_years.dropna()
    if present.empty and (start_year is None or end_year is None):
        return []
    first = start_year if start_year is not None else int(present.min())
    last = end_year if end_year is not None else int(present.max())
    return list(range(first, last + 1))


def _station_years(stations: List[Hashable], years: List[int]) -> List[Tuple[Hashable, int]]:
    """(station, year) pairs in station order then year order."""
    return [(s, y) for s in stations for y in years]


def _null_excluded(
    table: pd.DataFrame, excluded: Tuple[int, ...], labels: List[str]
) -> pd.DataFrame:
    if excluded:
        table.loc[table["analysis_year"].isin(list(excluded)), labels] = np.nan
    return table


def _month_categorical(values, water_year_start: int, extra: Sequence[str] = ()) -> pd.Categorical:
    return pd.Categorical(
        values, categories=month_levels(water_year_start) + list(extra), ordered=True
    )


def _id_columns(has_groups: bool, columns: ColumnMapping) -> List[str]:
    return [columns.groups] if has_groups else []


def _warn_missing(
    table: pd.DataFrame,
    labels: List[str],
    diagnostics: Diagnostics,
    ignore_missing: bool,
    years: Iterable[int],
) -> None:
    """Record a MissingValuesWarning if any statistic in *table* is null."""
    if table.empty:
        return
    null_rows = table[labels].isna().any(axis=1)
    if not null_rows.any():
        return

    years = sorted(set(int(y) for y in years))
    span = f"{years[0]}-{years[-1]}" if years else "the selected period"
    message = (
        f"{int(null_rows.sum())} of {len(table)} row(s) have missing statistics for "
        f"{span} (ignore_missing={ignore_missing})."
    )
    if not ignore_missing:
        message += (
            " Filter for complete years or months, or set ignore_missing=True to use"
            " the values present."
        )
    diagnostics.warn(message, MissingValuesWarning, log=logger)


# =============================================================================
# DAILY, MONTHLY, ANNUAL AND LONG-TERM STATISTICS
# =============================================================================


def calc_daily_stats(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    percentiles: Optional[Iterable[float]] = (5, 25, 75, 95),
    roll_days: int = 1,
    roll_align: str = "right",
    water_year_start: int = 1,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    exclude_years: Optional[Iterable[int]] = None,
    months: Optional[Iterable[int]] = None,
    complete_years: bool = False,
    ignore_missing: bool = False,
    transpose: bool = False,
    diagnostics: Optional[Diagnostics] = None,
) -> pd.DataFrame:
    """
    Statistics of each day of the analysis year across all years.

    Returns one row per station and day 1..365, labelled ``Date`` (e.g.
    ``Jan-01``) and ``DayofYear``. Day 366 of leap years is not summarised.
    Excluded years are removed before aggregation.

    Parameters
    ----------
    data : pd.DataFrame
        Daily data, see :class:`ColumnMapping`.
    percentiles : iterable of float
        Percentile columns to add.
    roll_days, roll_align
        Rolling mean applied before aggregation.
    water_year_start : int
        First month of the analysis year (1 = calendar year).
    start_year, end_year, exclude_years
        Analysis-year selection.
    months : iterable of int, optional
        Restrict to days in these months.
    complete_years : bool
        Use only years without missing days.
    ignore_missing : bool
        Compute statistics over present values instead of nulling groups
        with missing values.
    transpose : bool
        One row per statistic, one column per day.
    diagnostics : Diagnostics, optional
        Collector for warnings.
    """
    request = _validate(
        percentiles, roll_days, roll_align, water_year_start,
        start_year, end_year, exclude_years, months,
    )
    diagnostics = Diagnostics() if diagnostics is None else diagnostics
    formatting.check_layout(False, transpose)

    flow_data, has_groups, stations, _ = _prepare(
        data, columns, request, drop_excluded=True, complete_years=complete_years
    )
    flow_data = flow_data.loc[flow_data["analysis_doy"] <= 365]

    ref = reference_days(request.water_year_start)
    days = [i + 1 for i, m in enumerate(ref.month) if m in request.months]
    labels = dict(zip(range(1, 366), ref.strftime("%b-%d")))

    table = _aggregate(
        flow_data,
        ["station", "analysis_doy"],
        "rolling_value",
        request.percentiles,
        ignore_missing,
        expected=[(s, d) for s in stations for d in days],
    )
    table.insert(1, "Date", table["analysis_doy"].map(labels))
    table = table.rename(columns={"analysis_doy": "DayofYear"})

    stat_labels = stat_columns(request.percentiles)
    _warn_missing(table, stat_labels, diagnostics, ignore_missing, flow_data["analysis_year"])

    table = formatting.restore_group_column(table, has_groups, columns)
    if transpose:
        table = formatting.transpose(
            table.drop(columns="DayofYear"),
            key_column="Date",
            id_columns=_id_columns(has_groups, columns),
        )
    return table


def calc_monthly_stats(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    percentiles: Optional[Iterable[float]] = (10, 90),
    roll_days: int = 1,
    roll_align: str = "right",
    water_year_start: int = 1,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    exclude_years: Optional[Iterable[int]] = None,
    months: Optional[Iterable[int]] = None,
    ignore_missing: bool = False,
    spread: bool = False,
    transpose: bool = False,
    diagnostics: Optional[Diagnostics] = None,
) -> pd.DataFrame:
    """
    Statistics of each month of each year.

    Returns one row per station, year and month (``Year``, ``Month``). Rows
    for excluded years are kept with null statistics.

    With ``spread=True`` each month becomes a block of columns
    (``Jan_Mean``, ``Jan_Median``, ...) with one row per station-year. With
    ``transpose=True`` the spread table is turned so each year is a column.
    Both at once raise :class:`ConflictingLayoutRequest`.
    """
    request = _validate(
        percentiles, roll_days, roll_align, water_year_start,
        start_year, end_year, exclude_years, months,
    )
    formatting.check_layout(spread, transpose)
    diagnostics = Diagnostics() if diagnostics is None else diagnostics

    flow_data, has_groups, stations, years = _prepare(
        data, columns, request, drop_excluded=False
    )

    expected = [
        (s, y, m) for s, y in _station_years(stations, years) for m in request.month_names
    ]
    table = _aggregate(
        flow_data,
        ["station", "analysis_year", "month_name"],
        "rolling_value",
        request.percentiles,
        ignore_missing,
        expected=expected,
    )
    stat_labels = stat_columns(request.percentiles)
    table = _null_excluded(table, request.exclude_years, stat_labels)
    table["month_name"] = _month_categorical(table["month_name"], request.water_year_start)
    table = table.rename(columns={"analysis_year": "Year", "month_name": "Month"})

    _warn_missing(table, stat_labels, diagnostics, ignore_missing, table["Year"])

    table = formatting.restore_group_column(table, has_groups, columns)
    ids = _id_columns(has_groups, columns)
    if spread or transpose:
        table = formatting.spread(table, row_keys=ids + ["Year"], column_key="Month")
    if transpose:
        table = formatting.transpose(table, key_column="Year", id_columns=ids)
    return table


def calc_annual_stats(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    percentiles: Optional[Iterable[float]] = (10, 90),
    roll_days: int = 1,
    roll_align: str = "right",
    water_year_start: int = 1,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    exclude_years: Optional[Iterable[int]] = None,
    months: Optional[Iterable[int]] = None,
    ignore_missing: bool = False,
    transpose: bool = False,
    diagnostics: Optional[Diagnostics] = None,
) -> pd.DataFrame:
    """
    Statistics of each (water) year.

    Returns one row per station and year. Excluded years keep their row with
    null statistics, so the row count for a year range does not depend on
    the exclusion list.

    Examples
    --------
    >>> calc_annual_stats(flows, water_year_start=10, percentiles=[10, 90])
       Year  Mean  Median  Maximum  Minimum  P10  P90
    0  2001  ...
    """
    request = _validate(
        percentiles, roll_days, roll_align, water_year_start,
        start_year, end_year, exclude_years, months,
    )
    formatting.check_layout(False, transpose)
    diagnostics = Diagnostics() if diagnostics is None else diagnostics

    flow_data, has_groups, stations, years = _prepare(
        data, columns, request, drop_excluded=False
    )

    table = _aggregate(
        flow_data,
        ["station", "analysis_year"],
        "rolling_value",
        request.percentiles,
        ignore_missing,
        expected=_station_years(stations, years),
    )
    stat_labels = stat_columns(request.percentiles)
    table = _null_excluded(table, request.exclude_years, stat_labels)
    table = table.rename(columns={"analysis_year": "Year"})

    _warn_missing(table, stat_labels, diagnostics, ignore_missing, table["Year"])

    table = formatting.restore_group_column(table, has_groups, columns)
    if transpose:
        table = formatting.transpose(
            table, key_column="Year", id_columns=_id_columns(has_groups, columns)
        )
    return table


def calc_longterm_stats(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    percentiles: Optional[Iterable[float]] = (10, 90),
    roll_days: int = 1,
    roll_align: str = "right",
    water_year_start: int = 1,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    exclude_years: Optional[Iterable[int]] = None,
    months: Optional[Iterable[int]] = None,
    complete_years: bool = False,
    include_longterm: bool = True,
    custom_months: Optional[Iterable[int]] = None,
    custom_months_label: str = "Custom-Months",
    ignore_missing: bool = False,
    transpose: bool = False,
    diagnostics: Optional[Diagnostics] = None,
) -> pd.DataFrame:
    """
    Statistics of each month over all years, plus the whole record.

    Returns one row per station and month, then a ``Long-term`` row over
    all selected days and, if *custom_months* is given, one row over those
    months labelled *custom_months_label*. Excluded years are removed before
    aggregation.
    """
    request = _validate(
        percentiles, roll_days, roll_align, water_year_start,
        start_year, end_year, exclude_years, months,
    )
    formatting.check_layout(False, transpose)
    custom = check_months(custom_months) if custom_months is not None else None
    if custom is not None and custom_months_label in month_levels(1) + [LONG_TERM_LABEL]:
        raise FlowStatsError(
            f"custom_months_label {custom_months_label!r} collides with a month or long-term label"
        )
    diagnostics = Diagnostics() if diagnostics is None else diagnostics

    flow_data, has_groups, stations, _ = _prepare(
        data, columns, request, drop_excluded=True, complete_years=complete_years
    )

    table = _aggregate(
        flow_data,
        ["station", "month_name"],
        "rolling_value",
        request.percentiles,
        ignore_missing,
        expected=[(s, m) for s in stations for m in request.month_names],
    )

    extra_rows = []
    if include_longterm:
        extra_rows.append((LONG_TERM_LABEL, flow_data))
    if custom is not None:
        extra_rows.append((custom_months_label, flow_data.loc[flow_data["month"].isin(custom)]))

    for label, subset in extra_rows:
        summary = _aggregate(
            subset,
            ["station"],
            "rolling_value",
            request.percentiles,
            ignore_missing,
            expected=[(s,) for s in stations],
        )
        summary.insert(1, "month_name", label)
        table = pd.concat([table, summary], ignore_index=True)

    extra_labels = [label for label, _ in extra_rows]
    table["month_name"] = _month_categorical(
        table["month_name"], request.water_year_start, extra_labels
    )
    order = {s: i for i, s in enumerate(stations)}
    table = table.assign(_order=table["station"].map(order))
    table = table.sort_values(["_order", "month_name"], kind="mergesort").drop(columns="_order")
    table = table.rename(columns={"month_name": "Month"})

    stat_labels = stat_columns(request.percentiles)
    _warn_missing(table, stat_labels, diagnostics, ignore_missing, flow_data["analysis_year"])

    table = formatting.restore_group_column(table, has_groups, columns)
    if transpose:
        table = formatting.transpose(
            table, key_column="Month", id_columns=_id_columns(has_groups, columns)
        )
    return table


# =============================================================================
# CUMULATIVE STATISTICS
# =============================================================================


def _prepare_cumulative(
    data: pd.DataFrame,
    columns: ColumnMapping,
    request: _Request,
    use_yield: bool,
    basin_area: BasinArea,
    diagnostics: Diagnostics,
    drop_excluded: bool = True,
    complete_only: bool = False,
) -> Tuple[pd.DataFrame, bool, List[Hashable], str]:
    flow_data, has_groups = analysis_prep(data, columns, request.water_year_start)
    stations = list(pd.unique(flow_data["station"]))

    if use_yield:
        areas = resolve_basin_areas(flow_data, basin_area)
        unknown = [s for s in stations if areas[flow_data["station"] == s].isna().all()]
        if unknown:
            which = f"station(s) {unknown}" if has_groups else "the data"
            diagnostics.warn(
                f"No basin area for {which}; yield statistics are missing.",
                MissingValuesWarning,
                log=logger,
            )
        flow_data = add_cumulative_yield(flow_data, basin_area)
        daily, running = "daily_yield", "cumulative_yield"
    else:
        flow_data = add_cumulative_volume(flow_data)
        daily, running = "daily_volume", "cumulative_volume"

    flow_data = filter_years(
        flow_data,
        request.start_year,
        request.end_year,
        request.exclude_years if drop_excluded else (),
    )
    if complete_only:
        flow_data = filter_complete_years(flow_data, daily, request.water_year_start)
    return flow_data, has_groups, stations, running


def calc_daily_cumulative_stats(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    percentiles: Optional[Iterable[float]] = (5, 25, 75, 95),
    use_yield: bool = False,
    basin_area: BasinArea = None,
    water_year_start: int = 1,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    exclude_years: Optional[Iterable[int]] = None,
    complete_years: bool = False,
    ignore_missing: bool = True,
    transpose: bool = False,
    diagnostics: Optional[Diagnostics] = None,
) -> pd.DataFrame:
    """
    Statistics of the running annual total on each day of the analysis year.

    Volumes are in cubic metres; with ``use_yield=True`` runoff depth in mm
    over *basin_area* (sq. km). A missing day leaves the running total
    missing for the rest of that year, so by default those days are left out
    of each day's sample (``ignore_missing=True``). ``complete_years=True``
    drops every year with a missing day first.
    """
    request = _validate(
        percentiles, 1, "right", water_year_start, start_year, end_year, exclude_years
    )
    formatting.check_layout(False, transpose)
    diagnostics = Diagnostics() if diagnostics is None else diagnostics

    flow_data, has_groups, stations, running = _prepare_cumulative(
        data, columns, request, use_yield, basin_area, diagnostics,
        complete_only=complete_years,
    )
    flow_data = flow_data.loc[flow_data["analysis_doy"] <= 365]

    labels = dict(zip(range(1, 366), reference_days(request.water_year_start).strftime("%b-%d")))
    table = _aggregate(
        flow_data,
        ["station", "analysis_doy"],
        running,
        request.percentiles,
        ignore_missing,
        expected=[(s, d) for s in stations for d in range(1, 366)],
    )
    table.insert(1, "Date", table["analysis_doy"].map(labels))
    table = table.rename(columns={"analysis_doy": "DayofYear"})

    _warn_missing(
        table, stat_columns(request.percentiles), diagnostics, ignore_missing,
        flow_data["analysis_year"],
    )
    table = formatting.restore_group_column(table, has_groups, columns)
    if transpose:
        table = formatting.transpose(
            table.drop(columns="DayofYear"),
            key_column="Date",
            id_columns=_id_columns(has_groups, columns),
        )
    return table


def calc_monthly_cumulative_stats(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    percentiles: Optional[Iterable[float]] = (5, 25, 75, 95),
    use_yield: bool = False,
    basin_area: BasinArea = None,
    water_year_start: int = 1,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    exclude_years: Optional[Iterable[int]] = None,
    complete_years: bool = False,
    ignore_missing: bool = True,
    transpose: bool = False,
    diagnostics: Optional[Diagnostics] = None,
) -> pd.DataFrame:
    """
    Statistics of the running annual total at the end of each month.

    One row per station and month. The month-end total of a year is missing
    if any day up to the end of that month is missing; *ignore_missing* and
    *complete_years* behave as in :func:`calc_daily_cumulative_stats`. With
    ``transpose=True`` each month becomes a column.
    """
    request = _validate(
        percentiles, 1, "right", water_year_start, start_year, end_year, exclude_years
    )
    formatting.check_layout(False, transpose)
    diagnostics = Diagnostics() if diagnostics is None else diagnostics

    flow_data, has_groups, stations, running = _prepare_cumulative(
        data, columns, request, use_yield, basin_area, diagnostics,
        complete_only=complete_years,
    )

    # last day of each month, missing if the running total is missing there
    month_end = (
        flow_data.sort_values("date", kind="mergesort")
        .groupby(["station", "analysis_year", "month_name"], sort=False, observed=True)
        .tail(1)
    )
    names = month_levels(request.water_year_start)
    table = _aggregate(
        month_end,
        ["station", "month_name"],
        running,
        request.percentiles,
        ignore_missing,
        expected=[(s, m) for s in stations for m in names],
    )
    table["month_name"] = _month_categorical(table["month_name"], request.water_year_start)
    table = table.rename(columns={"month_name": "Month"})

    _warn_missing(
        table, stat_columns(request.percentiles), diagnostics, ignore_missing,
        flow_data["analysis_year"],
    )
    table = formatting.restore_group_column(table, has_groups, columns)
    if transpose:
        table = formatting.transpose(
            table, key_column="Month", id_columns=_id_columns(has_groups, columns)
        )
    return table


def calc_annual_cumulative_stats(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    use_yield: bool = False,
    basin_area: BasinArea = None,
    water_year_start: int = 1,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    exclude_years: Optional[Iterable[int]] = None,
    ignore_missing: bool = False,
    diagnostics: Optional[Diagnostics] = None,
) -> pd.DataFrame:
    """
    Total volume (m3) or yield (mm) of each year.

    Returns one row per station and year with ``Total_Volume_m3`` or
    ``Total_Yield_mm``. Under the strict policy a year with any missing or
    unrecorded day has a null total; excluded years keep a null row.
    """
    request = _validate(None, 1, "right", water_year_start, start_year, end_year, exclude_years)
    diagnostics = Diagnostics() if diagnostics is None else diagnostics

    flow_data, has_groups, stations, running = _prepare_cumulative(
        data, columns, request, use_yield, basin_area, diagnostics,
        drop_excluded=False, complete_only=False,
    )
    daily = "daily_yield" if use_yield else "daily_volume"
    total = "Total_Yield_mm" if use_yield else "Total_Volume_m3"

    rows = []
    for (station, year), grp in flow_data.groupby(["station", "analysis_year"], sort=False):
        values = grp[daily]
        n_expected = days_in_analysis_year(int(year), request.water_year_start)
        if ignore_missing:
            value = values.sum(min_count=1)
        elif values.notna().sum() < n_expected:
            value = np.nan
        else:
            value = values.sum()
        rows.append({"station": station, "analysis_year": int(year), total: value})

    table = pd.DataFrame(rows, columns=["station", "analysis_year", total])
    table = _null_excluded(table, request.exclude_years, [total])
    table = table.rename(columns={"analysis_year": "Year"})

    _warn_missing(table, [total], diagnostics, ignore_missing, table["Year"])
    return formatting.restore_group_column(table, has_groups, columns)


# =============================================================================
# SCREENING
# =============================================================================


def screen_flow_data(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    roll_days: int = 1,
    roll_align: str = "right",
    water_year_start: int = 1,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    months: Optional[Iterable[int]] = None,
) -> pd.DataFrame:
    """
    Data availability and basic statistics per year.

    Returns one row per station and year with ``n_days`` (days in the
    analysis year within the selected months), ``n_Q`` (days with a value),
    ``n_missing_Q``, ``Minimum``, ``Maximum``, ``Mean``,
    ``StandardDeviation`` and ``{Mon}_missing_Q`` for each selected month.
    Statistics use the values present.
    """
    request = _validate(
        None, roll_days, roll_align, water_year_start, start_year, end_year, None, months
    )
    flow_data, has_groups, _, _ = _prepare(data, columns, request)

    rows = []
    for (station, year), grp in flow_data.groupby(["station", "analysis_year"], sort=False):
        year = int(year)
        values = grp["rolling_value"]
        present = values.dropna()
        n_days = days_in_analysis_year(year, request.water_year_start, request.months)
        row = {
            "station": station,
            "Year": year,
            "n_days": n_days,
            "n_Q": int(present.size),
            "n_missing_Q": n_days - int(present.size),
            "Minimum": present.min() if present.size else np.nan,
            "Maximum": present.max() if present.size else np.nan,
            "Mean": present.mean() if present.size else np.nan,
            "StandardDeviation": present.std(ddof=1) if present.size > 1 else np.nan,
        }
        in_month = grp.loc[values.notna(), "month"].value_counts()
        expected = month_day_counts(year, request.water_year_start)
        for name in request.month_names:
            month = MONTH_ABBR.index(name) + 1
            row[f"{name}_missing_Q"] = expected[month] - int(in_month.get(month, 0))
        rows.append(row)

    base = ["station", "Year", "n_days", "n_Q", "n_missing_Q"]
    stats_cols = ["Minimum", "Maximum", "Mean", "StandardDeviation"]
    month_cols = [f"{name}_missing_Q" for name in request.month_names]
    table = pd.DataFrame(rows, columns=base + stats_cols + month_cols)
    return formatting.restore_group_column(table, has_groups, columns)
