"""Tests for flowstats.rolling."""

import numpy as np
import pandas as pd
import pytest

from flowstats.core import InvalidRollAlign, InvalidRollDays, RollAlign
from flowstats.rolling import add_rolling_means, rolling_mean


class TestRollingMean:
    def test_one_day_is_identity(self):
        values = pd.Series([3.0, np.nan, 5.0, 7.5])
        pd.testing.assert_series_equal(rolling_mean(values, 1), values)

    @pytest.mark.parametrize(
        "align, expected",
        [
            ("right", [np.nan, np.nan, 2.0, 3.0, 4.0]),
            ("left", [2.0, 3.0, 4.0, np.nan, np.nan]),
            ("center", [np.nan, 2.0, 3.0, 4.0, np.nan]),
        ],
    )
    def test_alignment(self, align, expected):
        result = rolling_mean([1.0, 2.0, 3.0, 4.0, 5.0], 3, align)
        np.testing.assert_allclose(result.to_numpy(), expected)

    def test_even_centered_window_leans_trailing(self):
        result = rolling_mean([1.0, 2.0, 3.0, 4.0, 5.0], 4, "center")
        np.testing.assert_allclose(result.to_numpy(), [np.nan, np.nan, 2.5, 3.5, np.nan])

    def test_missing_day_nulls_windows(self):
        result = rolling_mean([1.0, 2.0, np.nan, 4.0, 5.0, 6.0], 2)
        np.testing.assert_allclose(result.to_numpy(), [np.nan, 1.5, np.nan, np.nan, 4.5, 5.5])

    def test_aliases(self):
        assert RollAlign.parse("trailing") is RollAlign.RIGHT
        assert RollAlign.parse("Leading") is RollAlign.LEFT
        assert RollAlign.parse(RollAlign.CENTER) is RollAlign.CENTER

    def test_invalid_arguments(self):
        with pytest.raises(InvalidRollDays):
            rolling_mean([1.0, 2.0], 0)
        with pytest.raises(InvalidRollDays):
            rolling_mean([1.0, 2.0], 2.5)
        with pytest.raises(InvalidRollAlign):
            rolling_mean([1.0, 2.0], 2, "sideways")


class TestAddRollingMeans:
    @pytest.fixture
    def two_stations(self):
        dates = pd.date_range("2001-01-01", periods=4, freq="D")
        return pd.DataFrame(
            {
                "station": ["A"] * 4 + ["B"] * 4,
                "date": list(dates) * 2,
                "value": [1.0, 2.0, 3.0, 4.0, 10.0, 20.0, 30.0, 40.0],
            }
        )

    def test_windows_do_not_cross_stations(self, two_stations):
        df = add_rolling_means(two_stations, 2)
        b = df.loc[df["station"] == "B", "rolling_value"].to_numpy()
        np.testing.assert_allclose(b, [np.nan, 15.0, 25.0, 35.0])

    def test_several_widths(self, two_stations):
        df = add_rolling_means(two_stations, [1, 3])
        assert {"Q1Day", "Q3Day"} <= set(df.columns)
        a = df.loc[df["station"] == "A", "Q3Day"].to_numpy()
        np.testing.assert_allclose(a, [np.nan, np.nan, 2.0, 3.0])

    def test_unsorted_input_is_rolled_by_date(self, two_stations):
        shuffled = two_stations.iloc[[3, 1, 0, 2, 4, 5, 6, 7]]
        df = add_rolling_means(shuffled, 2)
        a = df.loc[df["station"] == "A"].sort_values("date")["rolling_value"].to_numpy()
        np.testing.assert_allclose(a, [np.nan, 1.5, 2.5, 3.5])
