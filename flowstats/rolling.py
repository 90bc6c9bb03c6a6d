"""
flowstats.rolling - N-day rolling means over normalised daily series
"""

from __future__ import annotations

import logging
from typing import Sequence, Union

import numpy as np
import pandas as pd

from .core import RollAlign, check_roll_days

logger = logging.getLogger(__name__)


def rolling_column_name(roll_days: int) -> str:
    """Column name used when several window widths are added at once."""
    return f"Q{roll_days}Day"


def rolling_mean(
    values: Union[pd.Series, np.ndarray, Sequence[float]],
    roll_days: int = 1,
    roll_align: Union[str, RollAlign] = "right",
) -> pd.Series:
    """
    Rolling mean of one ordered daily series.

    Parameters
    ----------
    values : array-like
        Consecutive daily values, missing days as NaN.
    roll_days : int
        Window width in days. ``1`` returns the series unchanged.
    roll_align : str or RollAlign
        ``'right'`` (trailing) averages the day and the ``n-1`` days before
        it; ``'left'`` (leading) the day and the ``n-1`` days after it;
        ``'center'`` places the day in the middle, with the extra day of an
        even window on the trailing side.

    Returns
    -------
    pd.Series
        Same length as *values*. A window that is incomplete at the series
        edge or contains a missing day yields NaN.
    """
    (n,) = check_roll_days(roll_days)
    align = RollAlign.parse(roll_align)

    series = values.copy() if isinstance(values, pd.Series) else pd.Series(values, dtype=float)
    series = series.astype(float)
    if n == 1:
        return series

    trailing = series.rolling(window=n, min_periods=n).mean()
    if align is RollAlign.RIGHT:
        return trailing
    if align is RollAlign.LEFT:
        return trailing.shift(-(n - 1))
    return trailing.shift(-((n - 1) // 2))


def add_rolling_means(
    flow_data: pd.DataFrame,
    roll_days: Union[int, Sequence[int]] = 1,
    roll_align: Union[str, RollAlign] = "right",
    value_column: str = "value",
) -> pd.DataFrame:
    """
    Add per-station rolling means to a normalised frame.

    A single width adds ``rolling_value``; a sequence of widths adds one
    ``Q{n}Day`` column per width. The frame must hold one row per day per
    station (see :func:`flowstats.calendar.fill_missing_dates`).
    """
    widths = check_roll_days(roll_days)
    align = RollAlign.parse(roll_align)

    df = flow_data.copy()
    grouped = df.sort_values("date", kind="mergesort").groupby("station", sort=False)[value_column]

    single = np.isscalar(roll_days)
    for n in widths:
        name = "rolling_value" if single else rolling_column_name(n)
        # transform output is indexed like df, so assignment realigns rows
        df[name] = grouped.transform(lambda s, n=n: rolling_mean(s, n, align))
        logger.debug("Added %d-day %s rolling mean as %s", n, align.value, name)

    return df
