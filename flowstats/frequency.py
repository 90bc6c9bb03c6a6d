"""
flowstats.frequency - Low-flow and high-flow frequency analysis

Extracts annual n-day extremes, assigns plotting positions, fits a
distribution family and derives return-period quantiles with standard
errors and confidence limits.

Two families are available:

* Log-Pearson Type III (``"lp3"``), method of moments on log10 flows
* Weibull (``"weibull"``), two-parameter maximum likelihood
"""

from __future__ import annotations

import dataclasses
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, Type, Union

import numpy as np
import pandas as pd
from scipy import stats
from scipy.special import ndtri

from .calendar import (
    analysis_prep,
    days_in_analysis_year,
    filter_months,
    filter_years,
)
from .core import (
    ColumnMapping,
    Diagnostics,
    FittedDistribution,
    FlowDataError,
    FrequencyOptions,
    InsufficientData,
    InvalidPlottingPosition,
    MissingValuesWarning,
    RollAlign,
    UnknownDistribution,
    ZeroFlowWarning,
    check_months,
    check_roll_days,
    check_water_year_start,
    check_years,
)
from .formatting import restore_group_column
from .rolling import add_rolling_means, rolling_column_name

logger = logging.getLogger(__name__)

EULER_GAMMA = 0.5772156649015329

PLOTTING_POSITION_CONSTANTS: Dict[str, float] = {
    "weibull": 0.0,
    "blom": 0.375,
    "cunnane": 0.4,
    "gringorten": 0.44,
    "hazen": 0.5,
}

# Probabilities (same sense as plotting positions) for fitted curves
CURVE_PROBABILITIES = np.array(
    [0.01, 0.02, 0.04, 0.05, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 0.95, 0.98, 0.99]
)


def measure_label(roll_days: int) -> str:
    return f"{roll_days}-Day"


# =============================================================================
# DISTRIBUTION FAMILIES
# =============================================================================


class DistributionFamily(ABC):
    """Abstract base class for distributions fitted to annual extremes.

    Probabilities passed to :meth:`quantile`, :meth:`standard_error` and
    :meth:`confidence_limits` are non-exceedance probabilities.
    """

    name: ClassVar[str]
    method: ClassVar[str]
    min_sample: ClassVar[int]

    def fit(self, sample: Union[Sequence[float], np.ndarray]) -> FittedDistribution:
        """
        Fit the family to a sample of positive values.

        Non-finite values are ignored. Below :attr:`min_sample` values the
        parameters are NaN.
        """
        arr = np.asarray(sample, dtype=float)
        arr = arr[np.isfinite(arr)]
        n = int(arr.size)
        if n < self.min_sample:
            logger.debug("%s needs at least %d values, got %d", self.name, self.min_sample, n)
            return self._unfitted(n)
        if np.any(arr <= 0):
            raise FlowDataError(f"{self.name} can only be fitted to positive values")

        parameters, covariance = self._estimate(arr)
        return FittedDistribution(
            family=self.name,
            parameters=parameters,
            method=self.method,
            n=n,
            covariance=covariance,
        )

    @abstractmethod
    def _estimate(self, sample: np.ndarray) -> Tuple[Dict[str, float], Optional[np.ndarray]]:
        pass

    @property
    @abstractmethod
    def parameter_names(self) -> Tuple[str, ...]:
        pass

    def _unfitted(self, n: int) -> FittedDistribution:
        return FittedDistribution(
            family=self.name,
            parameters=dict.fromkeys(self.parameter_names, np.nan),
            method=self.method,
            n=n,
        )

    @abstractmethod
    def quantile(self, fit: FittedDistribution, p) -> np.ndarray:
        pass

    @abstractmethod
    def standard_error(self, fit: FittedDistribution, p) -> np.ndarray:
        pass

    @abstractmethod
    def confidence_limits(
        self, fit: FittedDistribution, p, confidence: float = 0.90
    ) -> Tuple[np.ndarray, np.ndarray]:
        pass

    @abstractmethod
    def cdf(self, fit: FittedDistribution, x) -> np.ndarray:
        pass

    @staticmethod
    def _z(confidence: float) -> float:
        return float(ndtri(1 - (1 - confidence) / 2))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class LogPearson3(DistributionFamily):
    """Log-Pearson Type III fitted by the method of moments on log10 values.

    Parameters are the mean, standard deviation (ddof=1) and bias-corrected
    skew of the log10 sample.

    Examples
    --------
    >>> lp3 = LogPearson3()
    >>> fit = lp3.fit(annual_minima)
    >>> lp3.quantile(fit, 0.1)  # 10-year low flow
    """

    name = "lp3"
    method = "MOM"
    min_sample = 3

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        return ("mean", "std", "skew")

    def _estimate(self, sample: np.ndarray) -> Tuple[Dict[str, float], Optional[np.ndarray]]:
        log_flows = np.log10(sample)
        n = log_flows.size

        mean_log = float(np.mean(log_flows))
        std_log = float(np.std(log_flows, ddof=1))
        if std_log > 0:
            skew = n * np.sum((log_flows - mean_log) ** 3) / ((n - 1) * (n - 2) * std_log**3)
        else:
            skew = 0.0

        return {"mean": mean_log, "std": std_log, "skew": float(skew)}, None

    def _frequency_factor(self, fit: FittedDistribution, p) -> np.ndarray:
        return stats.pearson3.ppf(np.asarray(p, dtype=float), fit.parameters["skew"])

    def _log_quantile(self, fit: FittedDistribution, p) -> np.ndarray:
        K = self._frequency_factor(fit, p)
        return fit.parameters["mean"] + K * fit.parameters["std"]

    def _log_standard_error(self, fit: FittedDistribution, p) -> np.ndarray:
        n = fit.n
        K = self._frequency_factor(fit, p)
        G = fit.parameters["skew"]
        var_factor = 1 / n + K**2 * (1 + 0.75 * G**2) / (2 * (n - 1))
        return fit.parameters["std"] * np.sqrt(var_factor)

    def quantile(self, fit: FittedDistribution, p) -> np.ndarray:
        return 10 ** self._log_quantile(fit, p)

    def standard_error(self, fit: FittedDistribution, p) -> np.ndarray:
        """Standard error in flow units, ``Q * ln(10) * SE_log``."""
        return self.quantile(fit, p) * np.log(10) * self._log_standard_error(fit, p)

    def confidence_limits(
        self, fit: FittedDistribution, p, confidence: float = 0.90
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Symmetric limits in log10 space."""
        z = self._z(confidence)
        log_q = self._log_quantile(fit, p)
        se_log = self._log_standard_error(fit, p)
        return 10 ** (log_q - z * se_log), 10 ** (log_q + z * se_log)

    def cdf(self, fit: FittedDistribution, x) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            log_x = np.where(x > 0, np.log10(np.where(x > 0, x, 1.0)), -np.inf)
            std = fit.parameters["std"]
            if std > 0:
                z = (log_x - fit.parameters["mean"]) / std
                return stats.pearson3.cdf(z, fit.parameters["skew"])
            return np.where(log_x >= fit.parameters["mean"], 1.0, 0.0)


class Weibull(DistributionFamily):
    """Two-parameter Weibull fitted by maximum likelihood.

    The parameter covariance is the inverse of the Fisher information of the
    (shape, scale) pair; quantile standard errors follow by the delta method.
    """

    name = "weibull"
    method = "MLE"
    min_sample = 2

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        return ("shape", "scale")

    def _estimate(self, sample: np.ndarray) -> Tuple[Dict[str, float], Optional[np.ndarray]]:
        if np.ptp(sample) == 0:
            logger.debug("Weibull fit undefined for a constant sample")
            return dict.fromkeys(self.parameter_names, np.nan), None

        shape, _, scale = stats.weibull_min.fit(sample, floc=0)
        n = sample.size

        k, lam = float(shape), float(scale)
        info = np.array(
            [
                [((1 - EULER_GAMMA) ** 2 + np.pi**2 / 6) / k**2, (EULER_GAMMA - 1) / lam],
                [(EULER_GAMMA - 1) / lam, k**2 / lam**2],
            ]
        )
        covariance = np.linalg.inv(n * info)
        return {"shape": k, "scale": lam}, covariance

    def quantile(self, fit: FittedDistribution, p) -> np.ndarray:
        p = np.asarray(p, dtype=float)
        k, lam = fit.parameters["shape"], fit.parameters["scale"]
        return lam * (-np.log1p(-p)) ** (1 / k)

    def standard_error(self, fit: FittedDistribution, p) -> np.ndarray:
        p = np.asarray(p, dtype=float)
        if fit.covariance is None:
            return np.full(p.shape, np.nan)

        k, lam = fit.parameters["shape"], fit.parameters["scale"]
        y = -np.log1p(-p)
        q = lam * y ** (1 / k)
        dq_dk = -q * np.log(y) / k**2
        dq_dlam = q / lam

        cov = fit.covariance
        var = dq_dk**2 * cov[0, 0] + 2 * dq_dk * dq_dlam * cov[0, 1] + dq_dlam**2 * cov[1, 1]
        return np.sqrt(var)

    def confidence_limits(
        self, fit: FittedDistribution, p, confidence: float = 0.90
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Log-normal approximation around the quantile."""
        z = self._z(confidence)
        q = self.quantile(fit, p)
        se = self.standard_error(fit, p)
        with np.errstate(divide="ignore", invalid="ignore"):
            spread = np.exp(z * se / q)
        return q / spread, q * spread

    def cdf(self, fit: FittedDistribution, x) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        k, lam = fit.parameters["shape"], fit.parameters["scale"]
        return np.where(x > 0, -np.expm1(-(np.clip(x, 0, None) / lam) ** k), 0.0)


DISTRIBUTIONS: Dict[str, Type[DistributionFamily]] = {
    "lp3": LogPearson3,
    "weibull": Weibull,
}

_ALIASES = {"piii": "lp3", "log-pearson3": "lp3", "logpearson3": "lp3"}


def get_distribution(name: Union[str, DistributionFamily]) -> DistributionFamily:
    """Return a family instance by name (``"lp3"``, ``"weibull"``)."""
    if isinstance(name, DistributionFamily):
        return name
    key = str(name).strip().lower()
    key = _ALIASES.get(key, key)
    if key not in DISTRIBUTIONS:
        raise UnknownDistribution(
            f"unknown distribution {name!r}; choose one of {sorted(DISTRIBUTIONS)}"
        )
    return DISTRIBUTIONS[key]()


# =============================================================================
# ANNUAL EXTREMES AND PLOTTING POSITIONS
# =============================================================================


def compute_annual_extremes(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    roll_days: Union[int, Sequence[int]] = (1, 3, 7, 30),
    roll_align: str = "right",
    use_max: bool = False,
    water_year_start: int = 1,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    exclude_years: Optional[Iterable[int]] = None,
    months: Optional[Iterable[int]] = None,
    ignore_missing: bool = False,
    diagnostics: Optional[Diagnostics] = None,
) -> pd.DataFrame:
    """
    Annual minimum (or maximum) n-day rolling means.

    Rolling means are computed over the whole record, then restricted to
    *months*. A year with any missing rolling value in the selected months
    has a missing extreme unless *ignore_missing* is set.

    Returns
    -------
    pd.DataFrame
        Long table ``[group], Year, Measure, Value, Date`` where Measure is
        ``"{n}-Day"`` and Date is the day the extreme occurred (first day
        on ties).
    """
    widths = check_roll_days(roll_days)
    align = RollAlign.parse(roll_align)
    wys = check_water_year_start(water_year_start)
    start_year, end_year, excluded = check_years(start_year, end_year, exclude_years)
    months = check_months(months)
    diagnostics = Diagnostics() if diagnostics is None else diagnostics

    flow_data, has_groups = analysis_prep(data, columns, wys)
    flow_data = add_rolling_means(flow_data, list(widths), align)
    flow_data = filter_years(flow_data, start_year, end_year, excluded)
    flow_data = filter_months(flow_data, months)

    rows = []
    for (station, year), grp in flow_data.groupby(["station", "analysis_year"], sort=False):
        complete = len(grp) >= days_in_analysis_year(int(year), wys, months)
        for n in widths:
            values = grp[rolling_column_name(n)]
            value, date = np.nan, pd.NaT
            if ignore_missing or (complete and not values.isna().any()):
                present = values.dropna()
                if present.size:
                    idx = present.idxmax() if use_max else present.idxmin()
                    value, date = present[idx], grp.at[idx, "date"]
            rows.append(
                {
                    "station": station,
                    "Year": int(year),
                    "Measure": measure_label(n),
                    "Value": value,
                    "Date": date,
                }
            )

    table = pd.DataFrame(rows, columns=["station", "Year", "Measure", "Value", "Date"])
    table["Date"] = pd.to_datetime(table["Date"])

    station_rank = {s: i for i, s in enumerate(pd.unique(flow_data["station"]))}
    measure_rank = {measure_label(n): i for i, n in enumerate(widths)}
    table = (
        table.assign(
            _station=table["station"].map(station_rank), _measure=table["Measure"].map(measure_rank)
        )
        .sort_values(["_station", "_measure", "Year"], kind="mergesort")
        .drop(columns=["_station", "_measure"])
    )

    n_missing = int(table["Value"].isna().sum())
    if n_missing:
        diagnostics.warn(
            f"{n_missing} annual extreme(s) are missing because of missing or incomplete data "
            f"(ignore_missing={ignore_missing}); those years are left out of any fit.",
            MissingValuesWarning,
            log=logger,
        )

    return restore_group_column(table, has_groups, columns)


def plotting_positions(
    values: Union[Sequence[float], np.ndarray, pd.Series],
    years: Optional[Union[Sequence[int], np.ndarray, pd.Series]] = None,
    a: float = 0.0,
    use_max: bool = False,
) -> pd.DataFrame:
    """
    Empirical probabilities of an annual-extremes sample.

    ``P = (rank - a) / (n + 1 - 2a)``. Low flows are ranked ascending and P
    is a non-exceedance probability; high flows (``use_max=True``) are
    ranked descending and P is an exceedance probability. Ties are broken by
    value and then by year. Missing values are dropped.

    Parameters
    ----------
    values : array-like
        Annual extremes.
    years : array-like, optional
        Years of *values*; defaults to 1..n.
    a : float
        Plotting-position constant in [0, 1), see
        :data:`PLOTTING_POSITION_CONSTANTS`.
    use_max : bool
        Rank for high flows.

    Returns
    -------
    pd.DataFrame
        Columns ``Year, Value, Rank, Probability, Return Period``.
    """
    if not 0.0 <= a < 1.0:
        raise InvalidPlottingPosition(f"plotting position constant must be in [0, 1), got {a}")

    values = np.asarray(values, dtype=float)
    years = np.arange(1, values.size + 1) if years is None else np.asarray(years)
    if years.size != values.size:
        raise ValueError("values and years must have the same length")

    keep = ~np.isnan(values)
    df = pd.DataFrame({"Year": years[keep], "Value": values[keep]})
    df = df.assign(_key=-df["Value"] if use_max else df["Value"])
    df = df.sort_values(["_key", "Year"], kind="mergesort").drop(columns="_key")
    df = df.reset_index(drop=True)

    n = len(df)
    df["Rank"] = np.arange(1, n + 1)
    df["Probability"] = (df["Rank"] - a) / (n + 1 - 2 * a)
    df["Return Period"] = 1 / df["Probability"]
    return df


# =============================================================================
# FREQUENCY ANALYSIS
# =============================================================================


@dataclass
class FrequencyAnalysis:
    """Results of a frequency analysis of one station."""

    annual_extremes: pd.DataFrame
    plotting_positions: pd.DataFrame
    quantiles: pd.DataFrame
    fitted_curves: Dict[str, pd.DataFrame]
    fits: Dict[str, FittedDistribution]
    options: FrequencyOptions
    use_max: bool = False
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def measures(self) -> List[str]:
        return list(self.fits)

    def quantile(self, measure: str, return_period: float) -> float:
        """Look up one quantile, e.g. ``analysis.quantile("7-Day", 10)``."""
        rows = self.quantiles.loc[
            (self.quantiles["Measure"] == measure)
            & np.isclose(self.quantiles["Return Period"], return_period)
        ]
        if rows.empty:
            raise KeyError(f"no quantile for {measure} at return period {return_period}")
        return float(rows["Value"].iloc[0])


def _target_probabilities(options: FrequencyOptions) -> np.ndarray:
    """Probabilities in plotting-position sense (1/T)."""
    if options.probabilities is not None:
        return np.asarray(options.probabilities, dtype=float)
    return 1 / np.asarray(options.return_periods, dtype=float)


def compute_annual_frequencies(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    roll_days: Union[int, Sequence[int]] = (1, 3, 7, 30),
    roll_align: str = "right",
    use_max: bool = False,
    water_year_start: int = 1,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    exclude_years: Optional[Iterable[int]] = None,
    months: Optional[Iterable[int]] = None,
    ignore_missing: bool = False,
    distribution: str = "lp3",
    plotting_position: float = 0.0,
    min_years: int = 10,
    confidence: float = 0.90,
    return_periods: Sequence[float] = (2, 5, 10, 20, 50, 100),
    probabilities: Optional[Sequence[float]] = None,
    options: Optional[FrequencyOptions] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> FrequencyAnalysis:
    """
    Frequency analysis of annual n-day low (or high) flows for one station.

    Low-flow quantiles are at non-exceedance probability ``1/T``; high-flow
    quantiles (``use_max=True``) at ``1 - 1/T``. Samples smaller than
    *min_years* are still fitted but flagged ``low_confidence`` with an
    :class:`InsufficientData` diagnostic.

    Parameters
    ----------
    data : pd.DataFrame
        Daily data for a single station.
    distribution : str
        ``"lp3"`` or ``"weibull"``.
    plotting_position : float
        Constant ``a`` of the plotting-position formula.
    options : FrequencyOptions, optional
        Replaces the individual fitting arguments when given.

    Raises
    ------
    FlowDataError
        If *data* holds more than one station.

    Examples
    --------
    >>> analysis = compute_annual_frequencies(flows, roll_days=7)
    >>> analysis.quantile("7-Day", 10)  # 7Q10
    """
    if options is None:
        options = FrequencyOptions(
            distribution=distribution,
            plotting_position=plotting_position,
            min_years=min_years,
            confidence=confidence,
            return_periods=tuple(return_periods),
            probabilities=None if probabilities is None else tuple(probabilities),
        )
    family = get_distribution(options.distribution)
    diagnostics = Diagnostics() if diagnostics is None else diagnostics

    if columns.groups in data.columns and data[columns.groups].nunique(dropna=False) > 1:
        raise FlowDataError(
            "frequency analysis takes one station at a time; "
            "use compute_station_frequencies for several"
        )

    extremes = compute_annual_extremes(
        data,
        columns=columns,
        roll_days=roll_days,
        roll_align=roll_align,
        use_max=use_max,
        water_year_start=water_year_start,
        start_year=start_year,
        end_year=end_year,
        exclude_years=exclude_years,
        months=months,
        ignore_missing=ignore_missing,
        diagnostics=diagnostics,
    )

    target = _target_probabilities(options)
    fit_p = 1 - target if use_max else target

    positions, quantiles = [], []
    fits: Dict[str, FittedDistribution] = {}
    curves: Dict[str, pd.DataFrame] = {}

    for measure, grp in extremes.groupby("Measure", sort=False):
        sample = grp.dropna(subset=["Value"])
        positive = sample.loc[sample["Value"] > 0]
        if len(positive) < len(sample):
            diagnostics.warn(
                f"{measure}: {len(sample) - len(positive)} zero or negative value(s) "
                f"removed before fitting {family.name}.",
                ZeroFlowWarning,
                log=logger,
            )

        pp = plotting_positions(
            positive["Value"], positive["Year"], options.plotting_position, use_max
        )
        pp.insert(0, "Measure", measure)
        positions.append(pp)

        fit = family.fit(positive["Value"].to_numpy())
        if fit.n < options.min_years:
            diagnostics.warn(
                f"{measure}: only {fit.n} year(s) of data for fitting "
                f"(at least {options.min_years} recommended); results are low confidence.",
                InsufficientData,
                log=logger,
            )
            fit = dataclasses.replace(fit, low_confidence=True)
        fits[measure] = fit

        if fit.is_fitted:
            value = family.quantile(fit, fit_p)
            se = family.standard_error(fit, fit_p)
            lower, upper = family.confidence_limits(fit, fit_p, options.confidence)
            curve_p = 1 - CURVE_PROBABILITIES if use_max else CURVE_PROBABILITIES
            curve = family.quantile(fit, curve_p)
        else:
            value = se = lower = upper = np.full(target.shape, np.nan)
            curve = np.full(CURVE_PROBABILITIES.shape, np.nan)

        quantiles.append(
            pd.DataFrame(
                {
                    "Measure": measure,
                    "Return Period": 1 / target,
                    "Probability": target,
                    "Value": value,
                    "Standard Error": se,
                    "Lower": lower,
                    "Upper": upper,
                }
            )
        )
        curves[measure] = pd.DataFrame(
            {
                "Probability": CURVE_PROBABILITIES,
                "Return Period": 1 / CURVE_PROBABILITIES,
                "Value": curve,
            }
        )
        logger.debug("%s: fitted %s to %d values: %s", measure, family.name, fit.n, fit.parameters)

    pp_columns = ["Measure", "Year", "Value", "Rank", "Probability", "Return Period"]
    q_columns = [
        "Measure", "Return Period", "Probability", "Value", "Standard Error", "Lower", "Upper"
    ]
    return FrequencyAnalysis(
        annual_extremes=extremes,
        plotting_positions=(
            pd.concat(positions, ignore_index=True)
            if positions
            else pd.DataFrame(columns=pp_columns)
        ),
        quantiles=(
            pd.concat(quantiles, ignore_index=True)
            if quantiles
            else pd.DataFrame(columns=q_columns)
        ),
        fitted_curves=curves,
        fits=fits,
        options=options,
        use_max=use_max,
        diagnostics=diagnostics,
    )


def compute_station_frequencies(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    diagnostics: Optional[Diagnostics] = None,
    **kwargs,
) -> Dict[Hashable, FrequencyAnalysis]:
    """
    Run :func:`compute_annual_frequencies` for each station in *data*.

    Returns ``{station: FrequencyAnalysis}`` in order of first appearance.
    Data without a group column is analysed as a single unnamed station.
    """
    if columns.groups not in data.columns:
        single = compute_annual_frequencies(data, columns=columns, **kwargs)
        if diagnostics is not None:
            diagnostics.extend(single.diagnostics)
        return {None: single}

    results: Dict[Hashable, FrequencyAnalysis] = {}
    for station, station_data in data.groupby(columns.groups, sort=False):
        logger.info("Frequency analysis for station %s", station)
        results[station] = compute_annual_frequencies(station_data, columns=columns, **kwargs)
        if diagnostics is not None:
            diagnostics.extend(results[station].diagnostics)
    return results


def compute_frequency_quantile(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    roll_days: int = 7,
    return_period: float = 10,
    use_max: bool = False,
    diagnostics: Optional[Diagnostics] = None,
    **kwargs,
) -> float:
    """
    A single frequency quantile, e.g. the 7Q10 low flow.

    Keyword arguments are passed to :func:`compute_annual_frequencies`.
    """
    (n,) = check_roll_days(roll_days)
    analysis = compute_annual_frequencies(
        data,
        columns=columns,
        roll_days=[n],
        use_max=use_max,
        return_periods=(return_period,),
        diagnostics=diagnostics,
        **kwargs,
    )
    return analysis.quantile(measure_label(n), return_period)
