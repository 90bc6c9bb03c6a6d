"""
flowstats.plots - Figures for flow data, statistics and frequency analyses

Every function returns ``{name: Figure}`` with one figure per station, named
by :func:`flowstats.formatting.result_name`. Nothing is written to disk.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.dates import DateFormatter
from scipy.special import ndtri

from .calendar import IMPLICIT_STATION
from .core import BASIC_STATS, MONTH_ABBR, ColumnMapping, FlowDataError
from .formatting import result_name

logger = logging.getLogger(__name__)

STAT_STYLES = {
    "Mean": {"color": "steelblue", "linewidth": 2},
    "Median": {"color": "darkgreen", "linewidth": 1.5, "linestyle": "--"},
    "Maximum": {"color": "firebrick", "linewidth": 1, "alpha": 0.8},
    "Minimum": {"color": "goldenrod", "linewidth": 1, "alpha": 0.8},
}

MEASURE_COLORS = ["steelblue", "darkorange", "forestgreen", "firebrick", "purple", "saddlebrown"]


def apply_flowstats_style():
    """Apply standard plotting style."""
    plt.rcParams.update({
        "figure.dpi": 140,
        "figure.facecolor": "white",
        "axes.facecolor": "white",
        "axes.grid": True,
        "axes.grid.which": "both",
        "grid.alpha": 0.3,
        "font.size": 10,
    })


def _title(base: str, station) -> str:
    if station is None or station == IMPLICIT_STATION:
        return base
    return f"{base} - {station}"


def _stations(table: pd.DataFrame, group_column: str) -> List[Tuple[Optional[str], pd.DataFrame]]:
    if group_column in table.columns:
        return [(s, grp) for s, grp in table.groupby(group_column, sort=False)]
    return [(None, table)]


def plot_flow_data(
    data: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    log_scale: bool = False,
    figsize: Tuple[int, int] = (12, 5),
) -> Dict[str, plt.Figure]:
    """Daily flow time series, one figure per station (``{station}_Daily_Flows``)."""
    apply_flowstats_style()
    figures = {}
    for station, grp in _stations(data, columns.groups):
        grp = grp.assign(_date=pd.to_datetime(grp[columns.dates])).sort_values("_date")

        fig, ax = plt.subplots(figsize=figsize)
        ax.plot(grp["_date"], grp[columns.values], color="steelblue", linewidth=0.5, alpha=0.8)
        if log_scale:
            ax.set_yscale("log")
        ax.set_ylabel("Discharge (m$^3$/s)", fontsize=11)
        ax.set_xlabel("Date", fontsize=11)
        ax.set_title(_title("Daily Mean Streamflow", station), fontsize=12, fontweight="bold")
        ax.xaxis.set_major_formatter(DateFormatter("%Y"))
        plt.tight_layout()

        figures[result_name(station, "Daily_Flows")] = fig
    return figures


def plot_annual_stats(
    table: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    stats: Sequence[str] = BASIC_STATS,
    log_scale: bool = False,
    figsize: Tuple[int, int] = (10, 5),
) -> Dict[str, plt.Figure]:
    """Annual statistics by year (``{station}_Annual_Statistics``)."""
    apply_flowstats_style()
    figures = {}
    for station, grp in _stations(table, columns.groups):
        fig, ax = plt.subplots(figsize=figsize)
        for stat in stats:
            ax.plot(grp["Year"], grp[stat], marker="o", markersize=3, label=stat,
                    **STAT_STYLES.get(stat, {}))
        if log_scale:
            ax.set_yscale("log")
        ax.set_xlabel("Year", fontsize=11)
        ax.set_ylabel("Discharge (m$^3$/s)", fontsize=11)
        ax.set_title(_title("Annual Statistics", station), fontsize=12, fontweight="bold")
        ax.legend(loc="upper right", fontsize=9)
        plt.tight_layout()

        figures[result_name(station, "Annual_Statistics")] = fig
    return figures


def plot_longterm_stats(
    table: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    log_scale: bool = True,
    figsize: Tuple[int, int] = (10, 5),
) -> Dict[str, plt.Figure]:
    """
    Monthly long-term statistics with the percentile band shaded.

    Long-term and custom rows are drawn as horizontal reference lines.
    """
    apply_flowstats_style()
    figures = {}
    for station, grp in _stations(table, columns.groups):
        monthly = grp.loc[grp["Month"].astype(str).isin(MONTH_ABBR)]
        months = monthly["Month"].astype(str).tolist()
        x = np.arange(len(months))
        pct = [c for c in grp.columns if c.startswith("P") and c[1:].replace(".", "").isdigit()]

        fig, ax = plt.subplots(figsize=figsize)
        if len(pct) >= 2:
            ax.fill_between(x, monthly[pct[0]], monthly[pct[-1]], alpha=0.2, color="steelblue",
                            label=f"{pct[0]}-{pct[-1]}")
        for stat in BASIC_STATS:
            ax.plot(x, monthly[stat], label=stat, **STAT_STYLES[stat])

        longterm = grp.loc[grp["Month"].astype(str) == "Long-term"]
        if not longterm.empty:
            ax.axhline(float(longterm["Mean"].iloc[0]), color="gray", linestyle=":",
                       label="Long-term Mean")

        ax.set_xticks(x)
        ax.set_xticklabels(months)
        if log_scale:
            ax.set_yscale("log")
        ax.set_ylabel("Discharge (m$^3$/s)", fontsize=11)
        ax.set_title(_title("Long-term Monthly Statistics", station), fontsize=12,
                     fontweight="bold")
        ax.legend(loc="upper right", fontsize=9)
        plt.tight_layout()

        figures[result_name(station, "Long-term_Statistics")] = fig
    return figures


def plot_missing_dates(
    screening: pd.DataFrame,
    columns: ColumnMapping = ColumnMapping(),
    figsize: Tuple[int, int] = (10, 6),
) -> Dict[str, plt.Figure]:
    """Missing days per month and year from :func:`screen_flow_data`."""
    apply_flowstats_style()
    figures = {}
    for station, grp in _stations(screening, columns.groups):
        month_cols = [
            c for c in grp.columns if c.endswith("_missing_Q") and c.split("_")[0] in MONTH_ABBR
        ]
        if not month_cols:
            raise FlowDataError("screening table has no {Month}_missing_Q columns")
        counts = grp[month_cols].to_numpy(dtype=float)

        fig, ax = plt.subplots(figsize=figsize)
        image = ax.imshow(counts.T, aspect="auto", cmap="Reds", vmin=0, vmax=31,
                          interpolation="nearest")
        ax.set_yticks(np.arange(len(month_cols)))
        ax.set_yticklabels([c.split("_")[0] for c in month_cols])
        years = grp["Year"].tolist()
        step = max(1, len(years) // 15)
        ax.set_xticks(np.arange(0, len(years), step))
        ax.set_xticklabels([str(y) for y in years[::step]], rotation=45, ha="right")
        ax.grid(False)
        fig.colorbar(image, ax=ax, label="Missing days")
        ax.set_title(_title("Missing Dates", station), fontsize=12, fontweight="bold")
        plt.tight_layout()

        figures[result_name(station, "Missing_Dates")] = fig
    return figures


def plot_frequency_analysis(
    analysis,
    station: Optional[str] = None,
    show_confidence: bool = True,
    figsize: Tuple[int, int] = (10, 7),
) -> Dict[str, plt.Figure]:
    """
    Frequency curve of a :class:`FrequencyAnalysis`.

    Observed annual extremes are plotted at their plotting positions and
    fitted curves on a normal-probability axis, one colour per measure.

    Parameters
    ----------
    analysis : FrequencyAnalysis
        Output of :func:`compute_annual_frequencies`.
    station : str, optional
        Station identifier used in the title and figure name.
    show_confidence : bool
        Shade the confidence band of the fitted quantiles.
    figsize : tuple
        Figure size.

    Returns
    -------
    dict
        ``{"{station}_Frequency_Plot": Figure}``
    """
    apply_flowstats_style()

    def prob_to_x(p):
        return ndtri(np.asarray(p, dtype=float))

    fig, ax = plt.subplots(figsize=figsize)
    pp = analysis.plotting_positions
    for i, measure in enumerate(analysis.measures):
        color = MEASURE_COLORS[i % len(MEASURE_COLORS)]
        obs = pp.loc[pp["Measure"] == measure]
        ax.scatter(prob_to_x(obs["Probability"]), obs["Value"], s=30, c=color,
                   edgecolors="black", linewidth=0.4, zorder=5, label=f"{measure} observed")

        curve = analysis.fitted_curves[measure]
        ax.plot(prob_to_x(curve["Probability"]), curve["Value"], color=color, linewidth=2,
                label=f"{measure} {analysis.options.distribution.upper()} fit", zorder=4)

        if show_confidence:
            q = analysis.quantiles.loc[analysis.quantiles["Measure"] == measure]
            q = q.sort_values("Probability")
            ax.fill_between(prob_to_x(q["Probability"]), q["Lower"], q["Upper"], alpha=0.15,
                            color=color)

    ax.set_yscale("log")
    ax.set_ylabel("Discharge (m$^3$/s)", fontsize=11)
    kind = "Exceedance" if analysis.use_max else "Non-exceedance"
    ax.set_xlabel(f"{kind} Probability", fontsize=11)

    prob_ticks = [0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 0.8, 0.9, 0.95, 0.98, 0.99]
    ax.set_xticks(prob_to_x(prob_ticks))
    ax.set_xticklabels([f"{p:g}" for p in prob_ticks], fontsize=9)
    ax.set_xlim(prob_to_x(0.005), prob_to_x(0.995))

    flow_kind = "High" if analysis.use_max else "Low"
    ax.set_title(_title(f"{flow_kind} Flow Frequency Analysis", station), fontsize=12,
                 fontweight="bold")
    ax.legend(loc="upper left" if analysis.use_max else "lower right", fontsize=8)
    plt.tight_layout()

    return {result_name(station, "Frequency_Plot"): fig}


def plot_station_frequencies(
    analyses: Dict[str, object], **kwargs
) -> Dict[str, plt.Figure]:
    """Frequency plots for the output of :func:`compute_station_frequencies`."""
    figures = {}
    for station, analysis in analyses.items():
        figures.update(plot_frequency_analysis(analysis, station=station, **kwargs))
    return figures
