"""Shared fixtures for flowstats tests."""

from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest


def _daily_frame(start, end, value=10.0, station=None):
    dates = pd.date_range(start, end, freq="D")
    if callable(value):
        values = np.asarray(value(dates), dtype=float)
    else:
        values = np.full(len(dates), float(value))
    df = pd.DataFrame({"Date": dates, "Value": values})
    if station is not None:
        df.insert(0, "STATION_NUMBER", station)
    return df


@pytest.fixture
def make_flows():
    """Factory for daily flow frames: ``make_flows(start, end, value, station)``.

    *value* is a constant or a function of the DatetimeIndex.
    """
    return _daily_frame


@pytest.fixture
def constant_flows():
    """Five complete calendar years (2001-2005) of a constant 10 m3/s."""
    return _daily_frame("2001-01-01", "2005-12-31", 10.0)


@pytest.fixture
def seasonal_flows():
    """Ten years of positive, seasonally varying daily flows with noise."""
    rng = np.random.default_rng(1234)

    def seasonal(dates):
        cycle = 20 + 15 * np.sin(2 * np.pi * (dates.dayofyear - 100) / 365.25)
        return cycle * rng.lognormal(0.0, 0.3, len(dates))

    return _daily_frame("2001-01-01", "2010-12-31", seasonal)


@pytest.fixture
def annual_levels():
    """Twenty years (1981-2000) of log-normal annual flow levels."""
    rng = np.random.default_rng(42)
    years = np.arange(1981, 2001)
    return dict(zip(years, 10 ** rng.normal(1.0, 0.2, years.size)))


@pytest.fixture
def stepped_flows(annual_levels):
    """Daily flows that hold each year's level from ``annual_levels`` all year."""
    return _daily_frame(
        "1981-01-01", "2000-12-31", lambda dates: [annual_levels[y] for y in dates.year]
    )
