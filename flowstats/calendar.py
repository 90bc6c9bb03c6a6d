"""
flowstats.calendar - Calendar normalisation and water-year arithmetic

Turns caller-supplied daily data into the canonical long frame used by every
other module: one row per station and calendar day, with gaps materialised
as missing values and calendar/water-year fields attached.
"""

from __future__ import annotations

import datetime as dt
import logging
from functools import lru_cache
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .core import (
    MONTH_ABBR,
    ColumnMapping,
    FlowDataError,
    check_water_year_start,
)

logger = logging.getLogger(__name__)

# Station label used internally when the caller's data has no group column
IMPLICIT_STATION = "__all__"

CANONICAL_COLUMNS: Tuple[str, ...] = ("station", "date", "value")


def month_levels(water_year_start: int = 1) -> List[str]:
    """Month abbreviations in analysis-year order, starting at the water-year month."""
    wys = check_water_year_start(water_year_start)
    return list(MONTH_ABBR[wys - 1 :]) + list(MONTH_ABBR[: wys - 1])


def water_year_of(date: dt.date, water_year_start: int = 10) -> int:
    """
    Water year of *date*, labelled by the calendar year in which it ends.

    >>> water_year_of(dt.date(1999, 11, 1), 10)
    2000
    >>> water_year_of(dt.date(2000, 1, 15), 10)
    2000
    """
    wys = check_water_year_start(water_year_start)
    if wys != 1 and date.month >= wys:
        return date.year + 1
    return date.year


def water_year_start_date(water_year: int, water_year_start: int = 10) -> dt.date:
    """First day of the given water year."""
    wys = check_water_year_start(water_year_start)
    return dt.date(water_year - 1 if wys != 1 else water_year, wys, 1)


@lru_cache(maxsize=4096)
def day_of_water_year(date: dt.date, water_year_start: int = 10) -> int:
    """Day of the water year (1 on the water-year start date)."""
    start = water_year_start_date(water_year_of(date, water_year_start), water_year_start)
    return (date - start).days + 1


def days_in_analysis_year(
    year: int, water_year_start: int = 1, months: Optional[Sequence[int]] = None
) -> int:
    """Number of days in an analysis year, optionally restricted to *months*."""
    start = pd.Timestamp(water_year_start_date(year, water_year_start))
    days = pd.date_range(start, start + pd.DateOffset(years=1) - pd.Timedelta(days=1), freq="D")
    if months is None:
        return len(days)
    return int(np.isin(days.month, list(months)).sum())


def month_day_counts(year: int, water_year_start: int = 1) -> Dict[int, int]:
    """Days in each calendar month of an analysis year, keyed by month number."""
    start = pd.Timestamp(water_year_start_date(year, water_year_start))
    days = pd.date_range(start, start + pd.DateOffset(years=1) - pd.Timedelta(days=1), freq="D")
    counts = pd.Series(1, index=days.month).groupby(level=0).sum()
    return {int(m): int(n) for m, n in counts.items()}


def reference_days(water_year_start: int = 1) -> pd.DatetimeIndex:
    """
    The 365 calendar days of a non-leap analysis year, in analysis-day order.

    Used to label day-of-year statistics (``Jan-01``, ``Oct-01``, ...).
    """
    start = pd.Timestamp(water_year_start_date(2002, water_year_start))
    return pd.date_range(start, periods=365, freq="D")


def format_columns(
    data: pd.DataFrame, columns: ColumnMapping = ColumnMapping()
) -> Tuple[pd.DataFrame, bool]:
    """
    Resolve caller column names into the canonical ``station/date/value`` frame.

    Parameters
    ----------
    data : pd.DataFrame
        Daily data with date, value and (optional) group columns.
    columns : ColumnMapping
        Names of those columns in *data*.

    Returns
    -------
    tuple
        (canonical_frame, has_groups) where *has_groups* tells whether the
        group column was present and should be restored on output.

    Raises
    ------
    FlowDataError
        If a required column is missing, a station label or date is missing,
        dates cannot be parsed, values are not numeric, or a (station, date)
        pair occurs twice.
    """
    if not isinstance(data, pd.DataFrame):
        raise FlowDataError(f"flow data must be a pandas DataFrame, got {type(data).__name__}")

    missing = [c for c in (columns.dates, columns.values) if c not in data.columns]
    if missing:
        raise FlowDataError(
            f"column(s) {missing} not found in data; identify the date and value "
            "columns with a ColumnMapping"
        )

    has_groups = columns.groups in data.columns
    if has_groups and data[columns.groups].isna().any():
        n_missing = int(data[columns.groups].isna().sum())
        raise FlowDataError(
            f"column {columns.groups!r} contains {n_missing} missing station label(s)"
        )

    try:
        dates = pd.to_datetime(data[columns.dates]).dt.normalize()
    except (TypeError, ValueError) as e:
        raise FlowDataError(f"column {columns.dates!r} does not contain dates: {e}") from e
    if dates.isna().any():
        raise FlowDataError(f"column {columns.dates!r} contains missing dates")

    try:
        values = pd.to_numeric(data[columns.values]).astype(float)
    except (TypeError, ValueError) as e:
        raise FlowDataError(
            f"column {columns.values!r} does not contain numeric values: {e}"
        ) from e

    flow_data = pd.DataFrame(
        {
            "station": data[columns.groups].values if has_groups else IMPLICIT_STATION,
            "date": dates.values,
            "value": values.values,
        }
    )

    dupes = flow_data.duplicated(["station", "date"])
    if dupes.any():
        first = flow_data.loc[dupes].iloc[0]
        raise FlowDataError(
            f"duplicate observation for station {first['station']!r} on {first['date']:%Y-%m-%d}"
        )

    return flow_data, has_groups


def fill_missing_dates(
    flow_data: pd.DataFrame, water_year_start: Optional[int] = None
) -> pd.DataFrame:
    """
    Materialise one row per station and calendar day.

    Without *water_year_start* the rows span each station's first to last
    date. With it, they span whole analysis years: from the start of the
    first year to the end of the last. Days absent from the input get a
    missing value. Stations keep their order of first appearance.
    """
    wys = None if water_year_start is None else check_water_year_start(water_year_start)

    frames = []
    for station, grp in flow_data.groupby("station", sort=False):
        grp = grp.set_index("date").sort_index()
        first, last = grp.index.min(), grp.index.max()
        if wys is not None:
            first = pd.Timestamp(water_year_start_date(water_year_of(first, wys), wys))
            last = pd.Timestamp(water_year_start_date(water_year_of(last, wys) + 1, wys))
            last -= pd.Timedelta(days=1)
        full = pd.date_range(first, last, freq="D", name="date")
        n_gaps = len(full) - len(grp)
        if n_gaps:
            logger.debug("Station %s: filled %d missing dates", station, n_gaps)
        grp = grp.reindex(full)
        grp["station"] = station
        frames.append(grp.reset_index())

    if not frames:
        return pd.DataFrame(columns=list(CANONICAL_COLUMNS))

    filled = pd.concat(frames, ignore_index=True)
    extra = [c for c in filled.columns if c not in CANONICAL_COLUMNS]
    return filled[list(CANONICAL_COLUMNS) + extra]


def add_date_variables(flow_data: pd.DataFrame, water_year_start: int = 1) -> pd.DataFrame:
    """
    Attach calendar and water-year fields.

    Adds ``year``, ``month``, ``month_name`` (ordered categorical in
    analysis-year order), ``day_of_year``, ``water_year``,
    ``water_day_of_year``, ``analysis_year`` and ``analysis_doy``. The
    analysis fields equal the water-year fields; with ``water_year_start=1``
    they equal the calendar fields.
    """
    wys = check_water_year_start(water_year_start)

    df = flow_data.copy()
    dates = pd.to_datetime(df["date"])

    df["year"] = dates.dt.year.astype(int)
    df["month"] = dates.dt.month.astype(int)
    df["month_name"] = pd.Categorical(
        [MONTH_ABBR[m - 1] for m in df["month"]], categories=month_levels(wys), ordered=True
    )
    df["day_of_year"] = dates.dt.dayofyear.astype(int)

    if df.empty:
        for col in ("water_year", "water_day_of_year", "analysis_year", "analysis_doy"):
            df[col] = pd.Series(dtype=int)
        return df

    if wys == 1:
        df["water_year"] = df["year"]
        start_year = df["water_year"]
    else:
        df["water_year"] = df["year"] + (df["month"] >= wys).astype(int)
        start_year = df["water_year"] - 1

    starts = pd.to_datetime(
        pd.DataFrame({"year": start_year, "month": wys, "day": 1}), errors="coerce"
    )
    df["water_day_of_year"] = (dates - starts).dt.days.astype(int) + 1

    df["analysis_year"] = df["water_year"]
    df["analysis_doy"] = df["water_day_of_year"]
    return df


def analysis_prep(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    water_year_start: int = 1,
) -> Tuple[pd.DataFrame, bool]:
    """Format columns, fill missing dates over whole analysis years and attach date variables."""
    check_water_year_start(water_year_start)
    flow_data, has_groups = format_columns(data, columns)
    flow_data = fill_missing_dates(flow_data, water_year_start)
    flow_data = add_date_variables(flow_data, water_year_start)
    return flow_data, has_groups


def filter_years(
    flow_data: pd.DataFrame,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    exclude_years: Sequence[int] = (),
) -> pd.DataFrame:
    """Keep analysis years within [start_year, end_year] and not excluded."""
    mask = pd.Series(True, index=flow_data.index)
    if start_year is not None:
        mask &= flow_data["analysis_year"] >= start_year
    if end_year is not None:
        mask &= flow_data["analysis_year"] <= end_year
    if exclude_years:
        mask &= ~flow_data["analysis_year"].isin(list(exclude_years))
    return flow_data.loc[mask]


def filter_months(flow_data: pd.DataFrame, months: Sequence[int]) -> pd.DataFrame:
    if len(months) == 12:
        return flow_data
    return flow_data.loc[flow_data["month"].isin(list(months))]


def filter_complete_years(
    flow_data: pd.DataFrame,
    value_column: str = "value",
    water_year_start: int = 1,
    months: Optional[Sequence[int]] = None,
) -> pd.DataFrame:
    """
    Drop station-years lacking a value for any day of the analysis year.

    With *months* given, only days in those months must be present.
    """
    counts = (
        flow_data.groupby(["station", "analysis_year"], sort=False)[value_column]
        .count()
        .reset_index(name="n_present")
    )
    counts["n_expected"] = [
        days_in_analysis_year(int(y), water_year_start, months) for y in counts["analysis_year"]
    ]
    complete = counts.loc[counts["n_present"] == counts["n_expected"], ["station", "analysis_year"]]

    n_dropped = len(counts) - len(complete)
    if n_dropped:
        logger.debug("Removed %d incomplete station-years", n_dropped)

    keys = pd.MultiIndex.from_frame(complete)
    row_keys = pd.MultiIndex.from_frame(flow_data[["station", "analysis_year"]])
    return flow_data.loc[row_keys.isin(keys)]
