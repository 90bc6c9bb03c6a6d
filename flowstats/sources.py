"""
flowstats.sources - Daily streamflow data sources
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from io import StringIO
from typing import ClassVar, Dict, Iterable, List, Optional, Union

import pandas as pd
import requests

from .core import ColumnMapping, FlowDataError

logger = logging.getLogger(__name__)

CFS_TO_CMS = 0.028316846592

StationNumbers = Union[str, Iterable[str]]


def _as_list(station_numbers: StationNumbers) -> List[str]:
    if isinstance(station_numbers, str):
        return [station_numbers]
    return [str(s) for s in station_numbers]


class DataSource(ABC):
    """A provider of daily flows in the ``STATION_NUMBER, Date, Value`` layout."""

    @abstractmethod
    def daily_flows(self, station_numbers: StationNumbers) -> pd.DataFrame:
        pass


class DataFrameSource(DataSource):
    """Serve daily flows from a caller-supplied DataFrame.

    Examples
    --------
    >>> source = DataFrameSource(all_flows)
    >>> source.daily_flows(["08NM116"])
    """

    def __init__(self, data: pd.DataFrame, columns: ColumnMapping = ColumnMapping()):
        required = (columns.groups, columns.dates, columns.values)
        missing = [c for c in required if c not in data.columns]
        if missing:
            raise FlowDataError(f"column(s) {missing} not found in data")
        self._data = data
        self._columns = columns

    def daily_flows(self, station_numbers: StationNumbers) -> pd.DataFrame:
        wanted = _as_list(station_numbers)
        c = self._columns
        stations = self._data[c.groups].astype(str)
        unknown = sorted(set(wanted) - set(stations))
        if unknown:
            raise FlowDataError(f"station(s) {unknown} not found in data")
        subset = self._data.loc[stations.isin(wanted), [c.groups, c.dates, c.values]]
        return subset.rename(
            columns={c.groups: "STATION_NUMBER", c.dates: "Date", c.values: "Value"}
        ).reset_index(drop=True)


def parse_rdb_daily(text: str, site_no: str, to_cms: bool = True) -> pd.DataFrame:
    """
    Parse an NWIS daily-values RDB response into ``STATION_NUMBER, Date, Value``.

    Provisional and qualified values are kept; unparseable values become
    missing. Discharge is converted from cfs to m3/s when *to_cms* is set.
    """
    lines = text.split("\n")
    data_lines = [line for line in lines if not line.startswith("#") and line.strip()]
    if len(data_lines) < 2:
        raise FlowDataError(f"No daily data found for site {site_no}")

    header_idx = 0
    for i, line in enumerate(data_lines):
        if "datetime" in line.lower():
            header_idx = i
            break

    # second line of an RDB table holds column widths/types
    df = pd.read_csv(
        StringIO("\n".join(data_lines[header_idx:])), sep="\t", skiprows=[1], dtype=str
    )

    date_cols = [c for c in df.columns if "datetime" in c.lower()]
    flow_cols = [c for c in df.columns if "00060" in c and not c.lower().endswith("_cd")]
    if not date_cols or not flow_cols:
        raise FlowDataError(f"Discharge column not found in NWIS response for site {site_no}")

    values = pd.to_numeric(df[flow_cols[0]], errors="coerce")
    if to_cms:
        values = values * CFS_TO_CMS

    return pd.DataFrame(
        {
            "STATION_NUMBER": site_no,
            "Date": pd.to_datetime(df[date_cols[0]]),
            "Value": values,
        }
    )


class NWISDailySource(DataSource):
    """Download mean daily discharge from the USGS NWIS daily-values service.

    Parameters
    ----------
    start_date, end_date : str, optional
        ``YYYY-MM-DD`` bounds; the full record by default.
    to_cms : bool
        Convert discharge from cfs to m3/s.
    timeout : float
        Request timeout in seconds.
    workers : int
        Parallel downloads when several stations are requested.
    """

    BASE_URL_DAILY: ClassVar[str] = "https://waterservices.usgs.gov/nwis/dv/"

    def __init__(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        to_cms: bool = True,
        timeout: float = 60,
        workers: int = 4,
        session: Optional[requests.Session] = None,
    ):
        self.start_date = start_date
        self.end_date = end_date
        self.to_cms = to_cms
        self.timeout = timeout
        self.workers = workers
        self._session = session

    def fetch_station(self, site_no: str) -> pd.DataFrame:
        """Download and parse one station's record."""
        site_no = str(site_no).zfill(8)
        params = {
            "format": "rdb",
            "sites": site_no,
            "parameterCd": "00060",
            "statCd": "00003",
        }
        if self.start_date:
            params["startDT"] = self.start_date
        if self.end_date:
            params["endDT"] = self.end_date

        get = self._session.get if self._session is not None else requests.get
        logger.info("Downloading daily values for %s", site_no)
        response = get(self.BASE_URL_DAILY, params=params, timeout=self.timeout)
        response.raise_for_status()
        return parse_rdb_daily(response.text, site_no, self.to_cms)

    def daily_flows(self, station_numbers: StationNumbers) -> pd.DataFrame:
        sites = _as_list(station_numbers)
        if len(sites) == 1:
            return self.fetch_station(sites[0])

        results: Dict[str, pd.DataFrame] = {}
        errors: Dict[str, str] = {}
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            future_to_site = {executor.submit(self.fetch_station, site): site for site in sites}
            for future in as_completed(future_to_site):
                site = future_to_site[future]
                try:
                    results[site] = future.result()
                except (requests.RequestException, FlowDataError) as e:
                    errors[site] = str(e)
                    logger.warning("Download failed for %s: %s", site, e)

        if not results:
            raise FlowDataError(f"no daily data retrieved for {sites}: {errors}")
        return pd.concat([results[s] for s in sites if s in results], ignore_index=True)


def flowdata_import(
    data: Optional[pd.DataFrame] = None,
    station_number: Optional[StationNumbers] = None,
    source: Optional[DataSource] = None,
    columns: ColumnMapping = ColumnMapping(),
) -> pd.DataFrame:
    """
    Single entry point for daily flow data.

    With *station_number*, flows come from *source* (a
    :class:`DataFrameSource` over *data* when *data* is given, otherwise
    :class:`NWISDailySource`). Without it, *data* is returned as given.

    Raises
    ------
    FlowDataError
        If neither *data* nor *station_number* is given.
    """
    if station_number is not None:
        if source is None:
            source = DataFrameSource(data, columns) if data is not None else NWISDailySource()
        return source.daily_flows(station_number)
    if data is None:
        raise FlowDataError("either data or station_number must be provided")
    return data
