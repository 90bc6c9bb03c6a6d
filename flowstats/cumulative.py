"""
flowstats.cumulative - Daily volumes, runoff yield and running annual totals
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import numpy as np
import pandas as pd

from .core import SECONDS_PER_DAY, FlowDataError

logger = logging.getLogger(__name__)

# m3 of runoff over 1 km2 of basin -> mm of depth
M3_PER_KM2_TO_MM = 0.001


class BasinAreaLookup:
    """Map station identifiers to upstream drainage area (sq. km).

    Built from a mapping or from a CSV file with columns ``station`` and
    ``basin_area_sqkm``. Unknown stations and non-positive areas resolve to
    ``None`` rather than raising, so yield for those stations is null.

    Examples
    --------
    >>> areas = BasinAreaLookup({"08NM116": 795.0})
    >>> areas.get("08NM116")
    795.0
    >>> areas.get("08NM242") is None
    True
    """

    def __init__(self, areas: Optional[Mapping[str, float]] = None):
        self._areas: Dict[str, float] = {}
        for station, area in (areas or {}).items():
            self._areas[str(station)] = area

    @classmethod
    def from_csv(
        cls,
        path: Union[str, Path],
        station_column: str = "station",
        area_column: str = "basin_area_sqkm",
    ) -> "BasinAreaLookup":
        """Load areas from a CSV file."""
        df = pd.read_csv(path, dtype={station_column: str})
        missing = {station_column, area_column} - set(df.columns)
        if missing:
            raise FlowDataError(
                f"basin area file {path} is missing column(s) {sorted(missing)}"
            )
        areas = pd.to_numeric(df[area_column], errors="coerce")
        logger.info("Loaded %d basin areas from %s", len(df), path)
        return cls(dict(zip(df[station_column].str.strip(), areas)))

    def get(self, station) -> Optional[float]:
        """Return the area for *station*, or None if unknown or invalid."""
        area = self._areas.get(str(station))
        try:
            area = float(area)
        except (TypeError, ValueError):
            return None
        if not np.isfinite(area) or area <= 0:
            return None
        return area

    def __contains__(self, station) -> bool:
        return self.get(station) is not None

    def __len__(self) -> int:
        return len(self._areas)

    def __repr__(self) -> str:
        return f"BasinAreaLookup(n={len(self._areas)})"


BasinArea = Union[None, float, Mapping[str, float], BasinAreaLookup]


def resolve_basin_areas(flow_data: pd.DataFrame, basin_area: BasinArea) -> pd.Series:
    """
    Per-row basin area for *flow_data*, NaN where unknown.

    *basin_area* may be a single number applied to every station, a mapping
    of station to area, a :class:`BasinAreaLookup`, or None.
    """
    if basin_area is None:
        return pd.Series(np.nan, index=flow_data.index)

    if isinstance(basin_area, (int, float, np.integer, np.floating)) and not isinstance(
        basin_area, bool
    ):
        area = float(basin_area)
        return pd.Series(area if area > 0 else np.nan, index=flow_data.index)

    lookup = basin_area if isinstance(basin_area, BasinAreaLookup) else BasinAreaLookup(basin_area)
    per_station = {s: lookup.get(s) for s in flow_data["station"].unique()}
    unknown = [s for s, a in per_station.items() if a is None]
    if unknown:
        logger.debug("No basin area for station(s) %s; yield will be null", unknown)
    return flow_data["station"].map(per_station).astype(float)


def add_daily_volume(flow_data: pd.DataFrame, value_column: str = "value") -> pd.DataFrame:
    """Add ``daily_volume`` (m3) from mean daily discharge (m3/s)."""
    df = flow_data.copy()
    df["daily_volume"] = df[value_column] * SECONDS_PER_DAY
    return df


def add_cumulative_volume(flow_data: pd.DataFrame, value_column: str = "value") -> pd.DataFrame:
    """
    Add ``daily_volume`` and ``cumulative_volume`` columns.

    The running total restarts on the first day of each analysis year and
    stays missing from the first missing day until the end of that year.
    """
    df = add_daily_volume(flow_data, value_column)
    df["cumulative_volume"] = _running_total(df, "daily_volume")
    return df


def add_daily_yield(
    flow_data: pd.DataFrame, basin_area: BasinArea = None, value_column: str = "value"
) -> pd.DataFrame:
    """Add ``daily_yield`` (mm); null for stations without a known basin area."""
    df = add_daily_volume(flow_data, value_column)
    areas = resolve_basin_areas(df, basin_area)
    df["daily_yield"] = df["daily_volume"] * M3_PER_KM2_TO_MM / areas
    return df


def add_cumulative_yield(
    flow_data: pd.DataFrame, basin_area: BasinArea = None, value_column: str = "value"
) -> pd.DataFrame:
    """Add ``daily_yield`` and ``cumulative_yield`` (mm) running annual totals."""
    df = add_daily_yield(flow_data, basin_area, value_column)
    df["cumulative_yield"] = _running_total(df, "daily_yield")
    return df


def _running_total(df: pd.DataFrame, column: str) -> pd.Series:
    ordered = df.sort_values("date", kind="mergesort")
    return ordered.groupby(["station", "analysis_year"], sort=False)[column].transform(
        lambda s: s.cumsum(skipna=False)
    )
