"""Tests for flowstats.cumulative."""

import numpy as np
import pandas as pd
import pytest

from flowstats.calendar import analysis_prep
from flowstats.core import FlowDataError
from flowstats.cumulative import (
    BasinAreaLookup,
    add_cumulative_volume,
    add_cumulative_yield,
    add_daily_volume,
    add_daily_yield,
    resolve_basin_areas,
)


@pytest.fixture
def unit_flows(make_flows):
    flow_data, _ = analysis_prep(make_flows("2001-01-01", "2002-12-31", 1.0))
    return flow_data


def _on(df, date, column):
    return df.loc[df["date"] == pd.Timestamp(date), column].iloc[0]


class TestVolume:
    def test_daily_volume(self, unit_flows):
        df = add_daily_volume(unit_flows)
        assert (df["daily_volume"] == 86400.0).all()

    def test_running_total_restarts_each_year(self, unit_flows):
        df = add_cumulative_volume(unit_flows)
        assert _on(df, "2001-12-31", "cumulative_volume") == pytest.approx(365 * 86400.0)
        assert _on(df, "2002-01-01", "cumulative_volume") == pytest.approx(86400.0)

    def test_missing_day_nulls_rest_of_year(self, unit_flows):
        gappy = unit_flows.copy()
        gappy.loc[gappy["date"] == pd.Timestamp("2001-06-01"), "value"] = np.nan
        df = add_cumulative_volume(gappy)
        assert _on(df, "2001-05-31", "cumulative_volume") == pytest.approx(151 * 86400.0)
        assert np.isnan(_on(df, "2001-06-02", "cumulative_volume"))
        assert np.isnan(_on(df, "2001-12-31", "cumulative_volume"))
        assert _on(df, "2002-01-01", "cumulative_volume") == pytest.approx(86400.0)

    def test_water_year_reset(self, make_flows):
        flows = make_flows("2000-10-01", "2002-09-30", 1.0)
        flow_data, _ = analysis_prep(flows, water_year_start=10)
        df = add_cumulative_volume(flow_data)
        assert _on(df, "2001-10-01", "cumulative_volume") == pytest.approx(86400.0)


class TestYield:
    def test_daily_yield_mm(self, unit_flows):
        df = add_daily_yield(unit_flows, basin_area=86.4)
        np.testing.assert_allclose(df["daily_yield"], 1.0)

    def test_cumulative_yield(self, unit_flows):
        df = add_cumulative_yield(unit_flows, basin_area=86.4)
        assert _on(df, "2001-12-31", "cumulative_yield") == pytest.approx(365.0)

    def test_unknown_area_is_null(self, unit_flows):
        df = add_daily_yield(unit_flows, basin_area={"other": 10.0})
        assert df["daily_yield"].isna().all()
        assert add_daily_yield(unit_flows)["daily_yield"].isna().all()

    def test_per_station_areas(self, make_flows):
        data = pd.concat(
            [
                make_flows("2001-01-01", "2001-01-31", 1.0, station="A"),
                make_flows("2001-01-01", "2001-01-31", 1.0, station="B"),
            ]
        )
        flow_data, _ = analysis_prep(data)
        areas = resolve_basin_areas(flow_data, {"A": 86.4, "B": 0.0})
        assert (areas[flow_data["station"] == "A"] == 86.4).all()
        assert areas[flow_data["station"] == "B"].isna().all()


class TestBasinAreaLookup:
    def test_get(self):
        lookup = BasinAreaLookup({"08NM116": 795.0, "bad": -1, "nan": float("nan")})
        assert lookup.get("08NM116") == 795.0
        assert lookup.get("bad") is None
        assert lookup.get("nan") is None
        assert lookup.get("missing") is None
        assert "08NM116" in lookup
        assert len(lookup) == 3

    def test_from_csv(self, tmp_path):
        path = tmp_path / "areas.csv"
        path.write_text("station,basin_area_sqkm\n03606500,205\n00012345,n/a\n")
        lookup = BasinAreaLookup.from_csv(path)
        assert lookup.get("03606500") == 205.0
        assert lookup.get("00012345") is None

    def test_from_csv_missing_column(self, tmp_path):
        path = tmp_path / "areas.csv"
        path.write_text("station,area\n1,2\n")
        with pytest.raises(FlowDataError, match="basin_area_sqkm"):
            BasinAreaLookup.from_csv(path)
