"""
flowstats.formatting - Reshape long statistics tables for writers and plots

The aggregators return long tables: key columns followed by statistic
columns. This module pivots them into the two wide layouts used downstream
and gives every result a deterministic name so that multi-station bundles
are a lookup rather than a re-derivation.
"""

from __future__ import annotations

import logging
from typing import Dict, Hashable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .calendar import IMPLICIT_STATION
from .core import ColumnMapping, ConflictingLayoutRequest

logger = logging.getLogger(__name__)


def check_layout(spread: bool, transpose: bool) -> None:
    """Reject requests for both wide layouts at once."""
    if spread and transpose:
        raise ConflictingLayoutRequest("Both spread and transpose arguments cannot be True.")


def ordered_values(series: pd.Series) -> List[Hashable]:
    """
    Distinct values of a period column in period order.

    Ordered categoricals follow their category order, numeric columns sort
    ascending, anything else keeps order of first appearance.
    """
    if isinstance(series.dtype, pd.CategoricalDtype):
        observed = set(series.dropna())
        return [c for c in series.cat.categories if c in observed]
    values = list(pd.unique(series.dropna()))
    if pd.api.types.is_numeric_dtype(series):
        return sorted(values)
    return values


def spread(
    table: pd.DataFrame,
    row_keys: Sequence[str],
    column_key: str,
    stat_columns: Optional[Sequence[str]] = None,
    sep: str = "_",
) -> pd.DataFrame:
    """
    Pivot a long table so each *column_key* value becomes a block of columns.

    Parameters
    ----------
    table : pd.DataFrame
        Long statistics table.
    row_keys : sequence of str
        Columns identifying one output row (e.g. station and year).
    column_key : str
        Period column whose values become column prefixes (e.g. ``Month``).
    stat_columns : sequence of str, optional
        Statistic columns to spread; defaults to every other column.
    sep : str
        Separator between period and statistic in column names.

    Returns
    -------
    pd.DataFrame
        One row per distinct *row_keys* combination, columns named
        ``"{period}{sep}{statistic}"`` in period order then statistic order.

    Examples
    --------
    >>> spread(monthly, row_keys=["Year"], column_key="Month").columns[:3].tolist()
    ['Year', 'Jan_Mean', 'Jan_Median']
    """
    row_keys = list(row_keys)
    if stat_columns is None:
        stat_columns = [c for c in table.columns if c not in row_keys + [column_key]]

    if row_keys:
        rows = table[row_keys].drop_duplicates().reset_index(drop=True)
    else:
        rows = pd.DataFrame(index=[0])

    blocks: Dict[str, np.ndarray] = {}
    for period in ordered_values(table[column_key]):
        sub = table.loc[table[column_key] == period]
        if row_keys:
            matched = rows.merge(sub[row_keys + list(stat_columns)], on=row_keys, how="left")
        else:
            matched = sub[list(stat_columns)].head(1).reset_index(drop=True).reindex(rows.index)
        for stat in stat_columns:
            blocks[f"{period}{sep}{stat}"] = matched[stat].to_numpy()

    wide = pd.concat([rows, pd.DataFrame(blocks, index=rows.index)], axis=1)
    return wide if row_keys else wide.reset_index(drop=True)


def transpose(
    table: pd.DataFrame,
    key_column: str,
    id_columns: Sequence[str] = (),
    label: str = "Statistic",
) -> pd.DataFrame:
    """
    Swap rows and columns: one row per statistic, one column per period.

    Transposing the result again with ``key_column=label, label=key_column``
    restores the original table.

    Parameters
    ----------
    table : pd.DataFrame
        Long statistics table.
    key_column : str
        Period column whose values become the new columns (e.g. ``Year``).
    id_columns : sequence of str
        Columns kept as row identifiers (e.g. the station column).
    label : str
        Name of the new column holding former column names.
    """
    id_columns = list(id_columns)
    stat_columns = [c for c in table.columns if c not in id_columns + [key_column]]
    keys = ordered_values(table[key_column])

    if id_columns:
        id_frame = table[id_columns].drop_duplicates()
        groups = [
            (dict(zip(id_columns, ids)), table.loc[(table[id_columns] == ids).all(axis=1)])
            for ids in id_frame.itertuples(index=False, name=None)
        ]
    else:
        groups = [({}, table)]

    rows = []
    for ids, sub in groups:
        indexed = sub.set_index(key_column)
        for stat in stat_columns:
            row = dict(ids)
            row[label] = stat
            for key in keys:
                row[key] = indexed[stat].get(key, np.nan)
            rows.append(row)

    return pd.DataFrame(rows, columns=id_columns + [label] + keys)


# Aliases so format_table's boolean flags can share the public names
_spread = spread
_transpose = transpose


def format_table(
    table: pd.DataFrame,
    period_column: str,
    id_columns: Sequence[str] = (),
    spread: bool = False,
    transpose: bool = False,
    row_keys: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Apply the requested layout to a long table (at most one of the two)."""
    check_layout(spread, transpose)
    if spread:
        keys = list(id_columns) if row_keys is None else list(row_keys)
        return _spread(table, row_keys=keys, column_key=period_column)
    if transpose:
        return _transpose(table, key_column=period_column, id_columns=id_columns)
    return table


def restore_group_column(
    table: pd.DataFrame, has_groups: bool, columns: ColumnMapping = ColumnMapping()
) -> pd.DataFrame:
    """Rename ``station`` back to the caller's group column, or drop the implicit group."""
    if has_groups:
        table = table.rename(columns={"station": columns.groups})
    else:
        table = table.drop(columns="station")
    return table.reset_index(drop=True)


def result_name(station: Optional[Hashable], kind: str) -> str:
    """
    Deterministic name for a per-station result, e.g. ``08NM116_Annual_Statistics``.

    An implicit single group is named by *kind* alone.
    """
    if station is None or station == IMPLICIT_STATION or station == "":
        return kind
    return f"{station}_{kind}"


def split_by_station(
    table: pd.DataFrame, kind: str, group_column: Optional[str] = None
) -> Dict[str, pd.DataFrame]:
    """Split a multi-station table into ``{result_name: table}``."""
    if group_column is None or group_column not in table.columns:
        return {kind: table}
    return {
        result_name(station, kind): grp.reset_index(drop=True)
        for station, grp in table.groupby(group_column, sort=False, observed=True)
    }
