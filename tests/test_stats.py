"""Tests for flowstats.stats."""

import numpy as np
import pandas as pd
import pytest

from flowstats.core import (
    MONTH_ABBR,
    ColumnMapping,
    ConflictingLayoutRequest,
    Diagnostics,
    FlowDataError,
    FlowStatsError,
    InvalidMonths,
    InvalidPercentile,
    InvalidRollDays,
    InvalidWaterYearStart,
    InvalidYearRange,
    MissingValuesWarning,
)
from flowstats.formatting import transpose
from flowstats.stats import (
    calc_annual_cumulative_stats,
    calc_annual_stats,
    calc_daily_cumulative_stats,
    calc_daily_stats,
    calc_longterm_stats,
    calc_monthly_cumulative_stats,
    calc_monthly_stats,
    screen_flow_data,
    summarize_sample,
)

STATS = ["Mean", "Median", "Maximum", "Minimum"]


def _drop_day(df, date):
    return df.loc[df["Date"] != pd.Timestamp(date)].reset_index(drop=True)


def _month_means(table):
    return table.assign(Month=table["Month"].astype(str)).set_index("Month")["Mean"]


class TestSummarizeSample:
    def test_percentiles_interpolate(self):
        result = summarize_sample([1.0, 2.0, 3.0, 4.0], percentiles=[25, 50])
        assert result["P50"] == pytest.approx(2.5)
        assert result["P25"] == pytest.approx(1.75)
        assert result["Median"] == pytest.approx(2.5)

    def test_missing_value_policy(self):
        strict = summarize_sample([1.0, np.nan, 3.0], percentiles=[50])
        assert all(np.isnan(v) for v in strict.values())
        lenient = summarize_sample([1.0, np.nan, 3.0], percentiles=[50], ignore_missing=True)
        assert lenient["Mean"] == pytest.approx(2.0)
        assert lenient["Minimum"] == 1.0

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_percentiles_monotonic(self, seed):
        rng = np.random.default_rng(seed)
        sample = rng.gamma(2.0, 3.0, size=rng.integers(2, 200))
        pct = [1, 5, 10, 25, 50, 75, 90, 95, 99]
        result = summarize_sample(sample, percentiles=pct)
        values = [result["Minimum"]] + [result[f"P{p}"] for p in pct] + [result["Maximum"]]
        assert all(a <= b for a, b in zip(values, values[1:]))

    def test_empty_group(self):
        result = summarize_sample([], percentiles=[10])
        assert list(result) == STATS + ["P10"]
        assert all(np.isnan(v) for v in result.values())

    @pytest.mark.parametrize("bad", [0, 100, -5, 150, "50"])
    def test_invalid_percentile(self, bad):
        with pytest.raises(InvalidPercentile):
            summarize_sample([1.0, 2.0], percentiles=[bad])


class TestAnnualStats:
    def test_constant_series(self, constant_flows):
        table = calc_annual_stats(constant_flows)
        assert list(table.columns) == ["Year"] + STATS + ["P10", "P90"]
        assert table["Year"].tolist() == [2001, 2002, 2003, 2004, 2005]
        np.testing.assert_allclose(table[STATS + ["P10", "P90"]].to_numpy(), 10.0)

    def test_one_missing_day_nulls_only_that_year(self, constant_flows):
        diag = Diagnostics()
        table = calc_annual_stats(_drop_day(constant_flows, "2003-03-15"), diagnostics=diag)
        missing = table.set_index("Year")[STATS].isna().all(axis=1)
        assert missing.to_dict() == {2001: False, 2002: False, 2003: True, 2004: False, 2005: False}
        assert diag.of_category(MissingValuesWarning)

    def test_ignore_missing(self, constant_flows):
        table = calc_annual_stats(_drop_day(constant_flows, "2003-03-15"), ignore_missing=True)
        assert table.loc[table["Year"] == 2003, "Mean"].iloc[0] == pytest.approx(10.0)

    def test_excluded_year_keeps_its_row(self, make_flows):
        flows = make_flows("1993-01-01", "1997-12-31", 10.0)
        full = calc_annual_stats(flows)
        excluded = calc_annual_stats(flows, exclude_years=[1995])
        assert len(excluded) == len(full) == 5
        row = excluded.loc[excluded["Year"] == 1995]
        assert row[STATS].isna().all(axis=None)
        assert excluded.loc[excluded["Year"] == 1994, "Mean"].iloc[0] == pytest.approx(10.0)

    def test_water_year_labels(self, make_flows):
        flows = make_flows("1999-10-01", "2001-09-30", 10.0)
        table = calc_annual_stats(flows, water_year_start=10)
        assert table["Year"].tolist() == [2000, 2001]
        assert table["Mean"].notna().all()

    def test_partial_year_is_null(self, make_flows):
        table = calc_annual_stats(make_flows("2001-06-01", "2002-12-31", 10.0))
        assert np.isnan(table.loc[table["Year"] == 2001, "Mean"].iloc[0])
        assert table.loc[table["Year"] == 2002, "Mean"].iloc[0] == pytest.approx(10.0)

    def test_year_range(self, constant_flows):
        table = calc_annual_stats(constant_flows, start_year=2002, end_year=2003)
        assert table["Year"].tolist() == [2002, 2003]

    def test_percentiles_are_ordered(self, seasonal_flows):
        table = calc_annual_stats(seasonal_flows, percentiles=[5, 25, 50, 75, 95])
        ordered = table[["Minimum", "P5", "P25", "P50", "P75", "P95", "Maximum"]].to_numpy()
        assert (np.diff(ordered, axis=1) >= 0).all()
        np.testing.assert_allclose(table["P50"], table["Median"])

    def test_rolling_mean_smooths_peaks(self, seasonal_flows):
        daily = calc_annual_stats(seasonal_flows, roll_days=1)
        weekly = calc_annual_stats(seasonal_flows, roll_days=7, ignore_missing=True)
        assert (weekly["Maximum"] <= daily["Maximum"]).all()
        # trailing window is incomplete for the first six days of the record
        assert np.isnan(calc_annual_stats(seasonal_flows, roll_days=7)["Mean"].iloc[0])

    def test_months_selection(self, seasonal_flows):
        summer = calc_annual_stats(seasonal_flows, months=[6, 7, 8])
        flows = seasonal_flows.set_index("Date")["Value"]
        jja = flows[flows.index.month.isin([6, 7, 8]) & (flows.index.year == 2004)]
        assert summer.loc[summer["Year"] == 2004, "Mean"].iloc[0] == pytest.approx(jja.mean())

    def test_multiple_stations(self, make_flows):
        data = pd.concat(
            [
                make_flows("2001-01-01", "2002-12-31", 5.0, station="B"),
                make_flows("2001-01-01", "2002-12-31", 7.0, station="A"),
            ]
        )
        table = calc_annual_stats(data)
        assert list(table.columns[:2]) == ["STATION_NUMBER", "Year"]
        assert table["STATION_NUMBER"].tolist() == ["B", "B", "A", "A"]
        assert table.loc[table["STATION_NUMBER"] == "A", "Mean"].tolist() == [7.0, 7.0]

    def test_station_outside_year_range_keeps_null_rows(self, make_flows):
        data = pd.concat(
            [
                make_flows("2001-01-01", "2005-12-31", 5.0, station="A"),
                make_flows("2008-01-01", "2009-12-31", 7.0, station="B"),
            ]
        )
        table = calc_annual_stats(data, start_year=2001, end_year=2005)
        assert table["STATION_NUMBER"].tolist() == ["A"] * 5 + ["B"] * 5
        assert table["Year"].tolist() == list(range(2001, 2006)) * 2
        assert table.loc[table["STATION_NUMBER"] == "B", "Mean"].isna().all()

        longterm = calc_longterm_stats(data, start_year=2001, end_year=2005)
        assert list(pd.unique(longterm["STATION_NUMBER"])) == ["A", "B"]

    def test_non_overlapping_stations_share_year_span(self, make_flows):
        data = pd.concat(
            [
                make_flows("2001-01-01", "2002-12-31", 5.0, station="A"),
                make_flows("2004-01-01", "2004-12-31", 7.0, station="B"),
            ]
        )
        table = calc_annual_stats(data)
        assert table["Year"].tolist() == [2001, 2002, 2003, 2004] * 2
        a = table.loc[table["STATION_NUMBER"] == "A", "Mean"].tolist()
        assert a[:2] == [5.0, 5.0] and np.isnan(a[2:]).all()
        assert table.loc[table["STATION_NUMBER"] == "B", "Mean"].tolist()[3] == 7.0

    def test_year_range_wider_than_record(self, constant_flows):
        table = calc_annual_stats(constant_flows, start_year=1999, end_year=2005)
        assert table["Year"].tolist() == list(range(1999, 2006))
        assert table["Mean"].iloc[:2].isna().all()
        assert (table["Mean"].iloc[2:] == 10.0).all()

    def test_missing_station_label_is_rejected(self, constant_flows):
        data = pd.concat(
            [
                constant_flows.assign(STATION_NUMBER="A"),
                constant_flows.assign(STATION_NUMBER=None),
            ],
            ignore_index=True,
        )
        with pytest.raises(FlowDataError, match="STATION_NUMBER"):
            calc_annual_stats(data)

    def test_custom_column_mapping(self, constant_flows):
        renamed = constant_flows.rename(columns={"Date": "day", "Value": "flow"})
        renamed.insert(0, "site", "X")
        columns = ColumnMapping(dates="day", values="flow", groups="site")
        table = calc_annual_stats(renamed, columns=columns)
        assert table.columns[0] == "site"
        assert len(table) == 5

    def test_transpose_round_trip(self, seasonal_flows):
        table = calc_annual_stats(seasonal_flows)
        wide = calc_annual_stats(seasonal_flows, transpose=True)
        assert wide["Statistic"].tolist() == STATS + ["P10", "P90"]
        assert list(wide.columns[1:]) == table["Year"].tolist()
        back = transpose(wide, key_column="Statistic", label="Year")
        pd.testing.assert_frame_equal(back, table, check_dtype=False)

    @pytest.mark.parametrize(
        "kwargs, error",
        [
            ({"water_year_start": 13}, InvalidWaterYearStart),
            ({"start_year": 2005, "end_year": 2001}, InvalidYearRange),
            ({"exclude_years": ["1995"]}, InvalidYearRange),
            ({"months": [0, 6]}, InvalidMonths),
            ({"roll_days": [1, 7]}, InvalidRollDays),
            ({"percentiles": [0]}, InvalidPercentile),
        ],
    )
    def test_invalid_arguments(self, constant_flows, kwargs, error):
        with pytest.raises(error):
            calc_annual_stats(constant_flows, **kwargs)


class TestMonthlyStats:
    def test_long_layout(self, constant_flows):
        table = calc_monthly_stats(constant_flows)
        assert len(table) == 5 * 12
        assert list(table.columns) == ["Year", "Month"] + STATS + ["P10", "P90"]
        assert table["Month"].astype(str).tolist()[:12] == list(MONTH_ABBR)
        np.testing.assert_allclose(table["Mean"], 10.0)

    def test_water_year_month_order(self, make_flows):
        table = calc_monthly_stats(make_flows("1999-10-01", "2001-09-30"), water_year_start=10)
        assert table["Month"].astype(str).tolist()[:3] == ["Oct", "Nov", "Dec"]
        assert table["Year"].tolist()[:3] == [2000, 2000, 2000]

    def test_months_selection(self, constant_flows):
        table = calc_monthly_stats(constant_flows, months=[6, 7, 8])
        assert len(table) == 15
        assert set(table["Month"].astype(str)) == {"Jun", "Jul", "Aug"}

    def test_missing_day_nulls_only_that_month(self, constant_flows):
        table = calc_monthly_stats(_drop_day(constant_flows, "2003-03-15"))
        null = table.loc[table["Mean"].isna(), ["Year", "Month"]]
        assert len(null) == 1
        assert null["Year"].iloc[0] == 2003
        assert str(null["Month"].iloc[0]) == "Mar"

    def test_excluded_year_rows_kept(self, constant_flows):
        table = calc_monthly_stats(constant_flows, exclude_years=[2002])
        assert len(table) == 60
        assert table.loc[table["Year"] == 2002, "Mean"].isna().all()

    def test_station_outside_year_range_keeps_null_rows(self, make_flows):
        data = pd.concat(
            [
                make_flows("2001-01-01", "2002-12-31", 5.0, station="A"),
                make_flows("2008-01-01", "2008-12-31", 7.0, station="B"),
            ]
        )
        table = calc_monthly_stats(data, start_year=2001, end_year=2002)
        assert len(table) == 2 * 2 * 12
        b_rows = table.loc[table["STATION_NUMBER"] == "B"]
        assert b_rows["Year"].unique().tolist() == [2001, 2002]
        assert b_rows["Mean"].isna().all()

    def test_spread(self, constant_flows):
        table = calc_monthly_stats(constant_flows, spread=True)
        assert len(table) == 5
        assert list(table.columns[:3]) == ["Year", "Jan_Mean", "Jan_Median"]
        assert "Dec_P90" in table.columns
        assert table.shape[1] == 1 + 12 * 6

    def test_transpose(self, constant_flows):
        table = calc_monthly_stats(constant_flows, transpose=True)
        assert list(table.columns) == ["Statistic", 2001, 2002, 2003, 2004, 2005]
        assert table["Statistic"].iloc[0] == "Jan_Mean"
        assert len(table) == 12 * 6

    def test_spread_and_transpose_conflict(self, constant_flows):
        with pytest.raises(ConflictingLayoutRequest):
            calc_monthly_stats(constant_flows, spread=True, transpose=True)


class TestDailyStats:
    def test_constant_series(self, constant_flows):
        table = calc_daily_stats(constant_flows)
        assert len(table) == 365
        assert list(table.columns[:2]) == ["Date", "DayofYear"]
        assert table["Date"].iloc[0] == "Jan-01"
        assert table["Date"].iloc[-1] == "Dec-31"
        assert table["DayofYear"].tolist() == list(range(1, 366))
        np.testing.assert_allclose(table[STATS + ["P5", "P95"]].to_numpy(), 10.0)

    def test_water_year_labels(self, constant_flows):
        table = calc_daily_stats(constant_flows, water_year_start=10, complete_years=True)
        assert table["Date"].iloc[0] == "Oct-01"
        assert table["Date"].iloc[92] == "Jan-01"
        np.testing.assert_allclose(table["Mean"], 10.0)

    def test_partial_years_null_every_day(self, constant_flows):
        # the padded water years 2001 and 2006 each miss part of the year
        table = calc_daily_stats(constant_flows, water_year_start=10)
        assert table["Mean"].isna().all()

    def test_excluded_year_is_left_out(self, make_flows):
        flows = make_flows("2001-01-01", "2003-12-31", lambda d: d.year - 2000.0)
        table = calc_daily_stats(flows, exclude_years=[2003])
        np.testing.assert_allclose(table["Mean"], 1.5)

    def test_months_selection(self, constant_flows):
        table = calc_daily_stats(constant_flows, months=[1])
        assert len(table) == 31
        assert table["Date"].iloc[-1] == "Jan-31"

    def test_transpose(self, constant_flows):
        table = calc_daily_stats(constant_flows, percentiles=None, transpose=True)
        assert table["Statistic"].tolist() == STATS
        assert list(table.columns[:3]) == ["Statistic", "Jan-01", "Jan-02"]
        assert table.shape[1] == 366


class TestLongtermStats:
    def test_months_then_longterm(self, constant_flows):
        table = calc_longterm_stats(constant_flows)
        assert table["Month"].astype(str).tolist() == list(MONTH_ABBR) + ["Long-term"]
        assert list(table.columns) == ["Month"] + STATS + ["P10", "P90"]
        np.testing.assert_allclose(table[STATS + ["P10", "P90"]].to_numpy(), 10.0)

    def test_custom_months(self, seasonal_flows):
        table = calc_longterm_stats(
            seasonal_flows, custom_months=[7, 8, 9], custom_months_label="Summer"
        )
        assert table["Month"].astype(str).tolist()[-2:] == ["Long-term", "Summer"]
        flows = seasonal_flows.set_index("Date")["Value"]
        summer = flows[flows.index.month.isin([7, 8, 9])]
        assert table["Mean"].iloc[-1] == pytest.approx(summer.mean())
        assert table["Mean"].iloc[-2] == pytest.approx(flows.mean())

    def test_without_longterm_row(self, constant_flows):
        table = calc_longterm_stats(constant_flows, include_longterm=False)
        assert len(table) == 12

    def test_label_collision(self, constant_flows):
        with pytest.raises(FlowStatsError):
            calc_longterm_stats(constant_flows, custom_months=[1], custom_months_label="Jan")

    def test_complete_years(self, make_flows):
        flows = make_flows("2001-06-01", "2003-12-31", lambda d: d.year - 2000.0)
        strict = calc_longterm_stats(flows)
        assert strict["Mean"].iloc[:5].isna().all()
        complete = calc_longterm_stats(flows, complete_years=True)
        assert complete["Mean"].iloc[-1] == pytest.approx(2.5)

    def test_multiple_stations_sorted(self, make_flows):
        data = pd.concat(
            [
                make_flows("2001-01-01", "2001-12-31", 2.0, station="S2"),
                make_flows("2001-01-01", "2001-12-31", 1.0, station="S1"),
            ]
        )
        table = calc_longterm_stats(data)
        assert len(table) == 26
        assert table["STATION_NUMBER"].iloc[0] == "S2"
        assert str(table["Month"].iloc[12]) == "Long-term"


class TestCumulativeStats:
    @pytest.fixture
    def unit_flows(self, make_flows):
        return make_flows("2001-01-01", "2003-12-31", 1.0)

    def test_annual_volume(self, unit_flows):
        table = calc_annual_cumulative_stats(unit_flows)
        assert list(table.columns) == ["Year", "Total_Volume_m3"]
        np.testing.assert_allclose(table["Total_Volume_m3"], 365 * 86400.0)

    def test_annual_yield(self, unit_flows):
        table = calc_annual_cumulative_stats(unit_flows, use_yield=True, basin_area=86.4)
        np.testing.assert_allclose(table["Total_Yield_mm"], 365.0)

    def test_yield_without_area_warns(self, unit_flows):
        diag = Diagnostics()
        table = calc_annual_cumulative_stats(unit_flows, use_yield=True, diagnostics=diag)
        assert table["Total_Yield_mm"].isna().all()
        assert any("basin area" in m for m in diag.messages)

    def test_annual_missing_policy(self, unit_flows):
        gappy = _drop_day(unit_flows, "2002-07-01")
        strict = calc_annual_cumulative_stats(gappy)
        assert np.isnan(strict.loc[strict["Year"] == 2002, "Total_Volume_m3"].iloc[0])
        lenient = calc_annual_cumulative_stats(gappy, ignore_missing=True)
        assert lenient.loc[lenient["Year"] == 2002, "Total_Volume_m3"].iloc[0] == pytest.approx(
            364 * 86400.0
        )

    def test_daily(self, unit_flows):
        table = calc_daily_cumulative_stats(unit_flows)
        assert len(table) == 365
        assert table["Mean"].iloc[0] == pytest.approx(86400.0)
        assert table["Mean"].iloc[-1] == pytest.approx(365 * 86400.0)

    def test_daily_skips_gappy_totals_by_default(self, unit_flows):
        gappy = _drop_day(unit_flows, "2002-07-01")
        table = calc_daily_cumulative_stats(gappy)
        assert table["Mean"].iloc[-1] == pytest.approx(365 * 86400.0)
        assert table["Mean"].iloc[0] == pytest.approx(86400.0)

    def test_daily_strict_missing_policy(self, unit_flows):
        gappy = _drop_day(unit_flows, "2002-07-01")
        diag = Diagnostics()
        table = calc_daily_cumulative_stats(gappy, ignore_missing=False, diagnostics=diag)
        by_date = table.set_index("Date")["Mean"]
        assert by_date["Jun-30"] == pytest.approx(181 * 86400.0)
        assert np.isnan(by_date["Jul-01"])
        assert np.isnan(by_date["Dec-31"])
        assert diag.of_category(MissingValuesWarning)

    def test_daily_complete_years(self, unit_flows):
        gappy = _drop_day(unit_flows, "2002-07-01")
        table = calc_daily_cumulative_stats(gappy, complete_years=True, ignore_missing=False)
        assert not table["Mean"].isna().any()
        assert table["Mean"].iloc[-1] == pytest.approx(365 * 86400.0)

    def test_daily_transpose(self, unit_flows):
        table = calc_daily_cumulative_stats(unit_flows, transpose=True)
        assert table["Statistic"].tolist()[:2] == ["Mean", "Median"]
        assert list(table.columns[1:3]) == ["Jan-01", "Jan-02"]
        assert table.shape[1] == 1 + 365

    def test_monthly_missing_policy(self, unit_flows):
        gappy = _drop_day(unit_flows, "2002-07-01")
        lenient = _month_means(calc_monthly_cumulative_stats(gappy))
        assert lenient["Dec"] == pytest.approx(365 * 86400.0)
        strict = _month_means(calc_monthly_cumulative_stats(gappy, ignore_missing=False))
        assert strict["Jun"] == pytest.approx(181 * 86400.0)
        assert np.isnan(strict["Jul"]) and np.isnan(strict["Dec"])
        complete = _month_means(
            calc_monthly_cumulative_stats(gappy, complete_years=True, ignore_missing=False)
        )
        assert complete["Dec"] == pytest.approx(365 * 86400.0)

    def test_monthly_transpose(self, unit_flows):
        table = calc_monthly_cumulative_stats(unit_flows, transpose=True)
        assert list(table.columns) == ["Statistic"] + list(MONTH_ABBR)
        assert table["Statistic"].tolist() == STATS + ["P5", "P25", "P75", "P95"]

    def test_monthly(self, unit_flows):
        table = calc_monthly_cumulative_stats(unit_flows, use_yield=True, basin_area=86.4)
        assert len(table) == 12
        by_month = table.assign(Month=table["Month"].astype(str)).set_index("Month")["Mean"]
        assert by_month["Jan"] == pytest.approx(31.0)
        assert by_month["Dec"] == pytest.approx(365.0)


class TestScreenFlowData:
    def test_counts(self, constant_flows):
        table = screen_flow_data(_drop_day(constant_flows, "2003-03-15"))
        row = table.set_index("Year").loc[2003]
        assert row["n_days"] == 365
        assert row["n_Q"] == 364
        assert row["n_missing_Q"] == 1
        assert row["Mar_missing_Q"] == 1
        assert row["Jan_missing_Q"] == 0
        assert table.set_index("Year").loc[2004, "n_days"] == 366

    def test_columns(self, constant_flows):
        table = screen_flow_data(constant_flows, months=[6, 7])
        assert list(table.columns) == [
            "Year", "n_days", "n_Q", "n_missing_Q",
            "Minimum", "Maximum", "Mean", "StandardDeviation",
            "Jun_missing_Q", "Jul_missing_Q",
        ]
        assert (table["n_days"] == 61).all()
        np.testing.assert_allclose(table["StandardDeviation"], 0.0)

    def test_partial_year_counts_missing_days(self, make_flows):
        table = screen_flow_data(make_flows("2001-06-01", "2001-12-31"))
        assert table["n_missing_Q"].iloc[0] == 151
        assert table["Jan_missing_Q"].iloc[0] == 31
