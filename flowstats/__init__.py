"""
flowstats - Python library for streamflow data analysis

Includes:
- Calendar and water-year normalisation of daily flow records
- N-day rolling means and cumulative volume / runoff yield
- Daily, monthly, annual and long-term summary statistics
- Data screening for missing values
- Low-flow and high-flow frequency analysis:
  - Log-Pearson Type III (method of moments)
  - Weibull (maximum likelihood)
- USGS NWIS daily-value download
"""

from .calendar import (
    add_date_variables,
    analysis_prep,
    day_of_water_year,
    fill_missing_dates,
    format_columns,
    month_levels,
    water_year_of,
)
from .core import (
    ColumnMapping,
    ConflictingLayoutRequest,
    Diagnostic,
    Diagnostics,
    FittedDistribution,
    FlowDataError,
    FlowStatsError,
    FlowStatsWarning,
    FrequencyOptions,
    InsufficientData,
    InvalidMonths,
    InvalidPercentile,
    InvalidPlottingPosition,
    InvalidRollAlign,
    InvalidRollDays,
    InvalidWaterYearStart,
    InvalidYearRange,
    MissingValuesWarning,
    RollAlign,
    UnknownDistribution,
    ZeroFlowWarning,
)
from .cumulative import (
    BasinAreaLookup,
    add_cumulative_volume,
    add_cumulative_yield,
    add_daily_volume,
    add_daily_yield,
)
from .formatting import format_table, result_name, split_by_station, spread, transpose
from .frequency import (
    DISTRIBUTIONS,
    PLOTTING_POSITION_CONSTANTS,
    DistributionFamily,
    FrequencyAnalysis,
    LogPearson3,
    Weibull,
    compute_annual_extremes,
    compute_annual_frequencies,
    compute_frequency_quantile,
    compute_station_frequencies,
    get_distribution,
    plotting_positions,
)
from .rolling import add_rolling_means, rolling_mean
from .sources import DataFrameSource, DataSource, NWISDailySource, flowdata_import
from .stats import (
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

__version__ = "1.0.0"
__all__ = [
    # Calendar
    "add_date_variables",
    "analysis_prep",
    "day_of_water_year",
    "fill_missing_dates",
    "format_columns",
    "month_levels",
    "water_year_of",
    # Core types
    "ColumnMapping",
    "Diagnostic",
    "Diagnostics",
    "FittedDistribution",
    "FrequencyOptions",
    "RollAlign",
    # Errors and warnings
    "ConflictingLayoutRequest",
    "FlowDataError",
    "FlowStatsError",
    "FlowStatsWarning",
    "InsufficientData",
    "InvalidMonths",
    "InvalidPercentile",
    "InvalidPlottingPosition",
    "InvalidRollAlign",
    "InvalidRollDays",
    "InvalidWaterYearStart",
    "InvalidYearRange",
    "MissingValuesWarning",
    "UnknownDistribution",
    "ZeroFlowWarning",
    # Rolling and cumulative
    "add_rolling_means",
    "rolling_mean",
    "BasinAreaLookup",
    "add_cumulative_volume",
    "add_cumulative_yield",
    "add_daily_volume",
    "add_daily_yield",
    # Statistics
    "calc_annual_cumulative_stats",
    "calc_annual_stats",
    "calc_daily_cumulative_stats",
    "calc_daily_stats",
    "calc_longterm_stats",
    "calc_monthly_cumulative_stats",
    "calc_monthly_stats",
    "screen_flow_data",
    "summarize_sample",
    # Frequency analysis
    "DISTRIBUTIONS",
    "PLOTTING_POSITION_CONSTANTS",
    "DistributionFamily",
    "FrequencyAnalysis",
    "LogPearson3",
    "Weibull",
    "compute_annual_extremes",
    "compute_annual_frequencies",
    "compute_frequency_quantile",
    "compute_station_frequencies",
    "get_distribution",
    "plotting_positions",
    # Formatting
    "format_table",
    "result_name",
    "split_by_station",
    "spread",
    "transpose",
    # Data sources
    "DataFrameSource",
    "DataSource",
    "NWISDailySource",
    "flowdata_import",
]
