"""
flowstats command-line interface.

Reads daily flows from a CSV file (``Date``, ``Value`` and optional
``STATION_NUMBER`` columns), prints the requested table as CSV on stdout
and any diagnostics on stderr.
"""

from __future__ import annotations

import logging
import sys
from typing import Callable, List, Optional, Tuple

import click
import pandas as pd

from .core import ColumnMapping, Diagnostics, FlowStatsError
from .frequency import PLOTTING_POSITION_CONSTANTS, compute_station_frequencies
from .stats import calc_annual_stats, calc_longterm_stats, calc_monthly_stats, screen_flow_data


def _int_list(ctx, param, value: Optional[str]) -> Optional[Tuple[int, ...]]:
    if value is None:
        return None
    try:
        return tuple(int(v) for v in value.split(",") if v.strip())
    except ValueError:
        raise click.BadParameter(f"expected comma-separated integers, got {value!r}") from None


def _float_list(ctx, param, value: Optional[str]) -> Optional[Tuple[float, ...]]:
    if value is None:
        return None
    try:
        return tuple(float(v) for v in value.split(",") if v.strip())
    except ValueError:
        raise click.BadParameter(f"expected comma-separated numbers, got {value!r}") from None


def _apply(options: List[Callable], func: Callable) -> Callable:
    for option in reversed(options):
        func = option(func)
    return func


def screen_options(func: Callable) -> Callable:
    """Input, calendar and selection options."""
    return _apply(
        [
            click.argument("csv_path", type=click.Path(exists=True, dir_okay=False)),
            click.option("--date-column", default="Date", show_default=True),
            click.option("--value-column", default="Value", show_default=True),
            click.option("--group-column", default="STATION_NUMBER", show_default=True),
            click.option("--water-year-start", type=click.IntRange(1, 12), default=1,
                         show_default=True),
            click.option("--start-year", type=int, default=None),
            click.option("--end-year", type=int, default=None),
            click.option("--months", callback=_int_list, default=None,
                         help="Comma-separated months, e.g. 6,7,8"),
            click.option("--roll-align", type=click.Choice(["right", "left", "center"]),
                         default="right", show_default=True),
        ],
        func,
    )


def common_options(func: Callable) -> Callable:
    """Options shared by every statistics command."""
    return screen_options(
        _apply(
            [
                click.option("--exclude-years", callback=_int_list, default=None,
                             help="Comma-separated years, e.g. 1995,1996"),
                click.option("--ignore-missing", is_flag=True, default=False),
            ],
            func,
        )
    )


def _read(csv_path: str, columns: ColumnMapping) -> pd.DataFrame:
    # station numbers keep their leading zeros
    header = pd.read_csv(csv_path, nrows=0).columns
    dtype = {columns.groups: str} if columns.groups in header else None
    return pd.read_csv(csv_path, dtype=dtype)


def _emit(table: pd.DataFrame, diagnostics: Diagnostics) -> None:
    click.echo(table.to_csv(index=False), nl=False)
    for record in diagnostics:
        click.echo(str(record), err=True)


def _run(func: Callable, csv_path: str, columns: ColumnMapping, **kwargs) -> None:
    diagnostics = Diagnostics()
    try:
        table = func(_read(csv_path, columns), columns=columns, diagnostics=diagnostics, **kwargs)
    except FlowStatsError as e:
        raise click.ClickException(str(e)) from e
    _emit(table, diagnostics)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log pipeline steps to stderr.")
def cli(verbose: bool) -> None:
    """flowstats - Streamflow statistics and frequency analysis."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        )


@cli.command()
@common_options
@click.option("--roll-days", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--percentiles", callback=_float_list, default="10,90", show_default=True)
@click.option("--transpose", is_flag=True, default=False)
def annual(csv_path, date_column, value_column, group_column, **kwargs) -> None:
    """Annual statistics per (water) year."""
    columns = ColumnMapping(dates=date_column, values=value_column, groups=group_column)
    _run(calc_annual_stats, csv_path, columns, **kwargs)


@cli.command()
@common_options
@click.option("--roll-days", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--percentiles", callback=_float_list, default="10,90", show_default=True)
@click.option("--spread", is_flag=True, default=False)
@click.option("--transpose", is_flag=True, default=False)
def monthly(csv_path, date_column, value_column, group_column, **kwargs) -> None:
    """Statistics of each month of each year."""
    columns = ColumnMapping(dates=date_column, values=value_column, groups=group_column)
    _run(calc_monthly_stats, csv_path, columns, **kwargs)


@cli.command()
@common_options
@click.option("--roll-days", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--percentiles", callback=_float_list, default="10,90", show_default=True)
@click.option("--complete-years", is_flag=True, default=False)
@click.option("--custom-months", callback=_int_list, default=None)
@click.option("--custom-months-label", default="Custom-Months", show_default=True)
@click.option("--transpose", is_flag=True, default=False)
def longterm(csv_path, date_column, value_column, group_column, **kwargs) -> None:
    """Monthly and long-term statistics over all years."""
    columns = ColumnMapping(dates=date_column, values=value_column, groups=group_column)
    _run(calc_longterm_stats, csv_path, columns, **kwargs)


@cli.command()
@screen_options
@click.option("--roll-days", type=click.IntRange(min=1), default=1, show_default=True)
def screen(csv_path, date_column, value_column, group_column, **kwargs) -> None:
    """Data availability and summary statistics per year."""
    columns = ColumnMapping(dates=date_column, values=value_column, groups=group_column)
    try:
        table = screen_flow_data(_read(csv_path, columns), columns=columns, **kwargs)
    except FlowStatsError as e:
        raise click.ClickException(str(e)) from e
    _emit(table, Diagnostics())


@cli.command()
@common_options
@click.option("--roll-days", callback=_int_list, default="1,3,7,30", show_default=True)
@click.option("--use-max", is_flag=True, default=False, help="High-flow analysis.")
@click.option("--distribution", type=click.Choice(["lp3", "weibull"]), default="lp3",
              show_default=True)
@click.option("--plotting-position", default="weibull", show_default=True,
              type=click.Choice(sorted(PLOTTING_POSITION_CONSTANTS)))
@click.option("--return-periods", callback=_float_list, default="2,5,10,20,50,100",
              show_default=True)
@click.option("--min-years", type=int, default=10, show_default=True)
@click.option("--confidence", type=click.FloatRange(0, 1, min_open=True, max_open=True),
              default=0.90, show_default=True)
def frequency(csv_path, date_column, value_column, group_column, plotting_position,
              **kwargs) -> None:
    """Frequency quantiles of annual n-day low (or high) flows."""
    columns = ColumnMapping(dates=date_column, values=value_column, groups=group_column)
    diagnostics = Diagnostics()
    try:
        analyses = compute_station_frequencies(
            _read(csv_path, columns),
            columns=columns,
            diagnostics=diagnostics,
            plotting_position=PLOTTING_POSITION_CONSTANTS[plotting_position],
            **kwargs,
        )
    except FlowStatsError as e:
        raise click.ClickException(str(e)) from e

    tables = []
    for station, analysis in analyses.items():
        table = analysis.quantiles
        if station is not None:
            table = table.assign(**{group_column: station})
            table = table[[group_column] + list(analysis.quantiles.columns)]
        tables.append(table)
    _emit(pd.concat(tables, ignore_index=True), diagnostics)


if __name__ == "__main__":
    cli()
