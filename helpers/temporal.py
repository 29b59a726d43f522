# -*- coding: utf-8 -*-
"""
Temporal utilities for monthly time indexes.

Functions
---------
- ensure_monthly_index(series): Normalise a monthly series to a gap-free
  month-start DatetimeIndex, failing loudly on duplicates or holes.
- extend_monthly_index(index, periods): Append `periods` months after the
  last timestamp of a monthly index (used to carry regressors into the
  forecast horizon).
"""

from __future__ import annotations

from typing import Union

import pandas as pd


class MonthlyIndexError(ValueError):
    """Raised when a series cannot be expressed on a strictly increasing monthly grid."""
    pass


def _to_month_start(index: Union[pd.Index, pd.DatetimeIndex, pd.PeriodIndex]) -> pd.DatetimeIndex:
    """
    Convert a PeriodIndex or DatetimeIndex to month-start timestamps.

    - PeriodIndex is converted with how='start'.
    - Any timestamp inside a month maps to the first day of that month.
    """
    if isinstance(index, pd.PeriodIndex):
        return index.asfreq("M").to_timestamp(how="start")
    if not isinstance(index, pd.DatetimeIndex):
        try:
            index = pd.DatetimeIndex(pd.to_datetime(index))
        except Exception as e:
            raise TypeError(f"Index cannot be interpreted as dates: {e}") from e
    return index.to_period("M").to_timestamp(how="start")


def ensure_monthly_index(series: pd.Series) -> pd.Series:
    """
    Return a copy of `series` on a strictly increasing month-start index.

    Parameters
    ----------
    series : pd.Series
        Monthly observations indexed by dates (any day within the month) or
        monthly periods.

    Returns
    -------
    pd.Series
        Sorted copy with a DatetimeIndex of frequency 'MS'.

    Raises
    ------
    MonthlyIndexError
        If two observations fall in the same month or a month is missing.
    """
    if not isinstance(series, pd.Series):
        raise TypeError("series must be a pandas Series")

    out = series.copy()
    out.index = _to_month_start(out.index)
    out = out.sort_index()

    if out.index.has_duplicates:
        dups = out.index[out.index.duplicated()].strftime("%Y-%m").tolist()
        raise MonthlyIndexError(f"Duplicated months in series: {dups[:5]}")

    if len(out) > 1:
        full = pd.date_range(out.index[0], out.index[-1], freq="MS")
        if len(full) != len(out):
            missing = full.difference(out.index)
            raise MonthlyIndexError(
                f"Monthly series has gaps; first missing months: {missing[:5].strftime('%Y-%m').tolist()}"
            )

    out.index = pd.DatetimeIndex(out.index, freq="MS")
    return out


def extend_monthly_index(index: pd.DatetimeIndex, periods: int) -> pd.DatetimeIndex:
    """
    Extend a month-start index by `periods` months.

    Parameters
    ----------
    index : pd.DatetimeIndex
        Existing monthly index (month-start).
    periods : int
        Number of months to append (0 returns the index unchanged).

    Returns
    -------
    pd.DatetimeIndex
        Index of length len(index) + periods with frequency 'MS'.
    """
    if periods < 0:
        raise ValueError("periods must be non-negative")
    index = pd.DatetimeIndex(_to_month_start(index), freq="MS")
    if periods == 0:
        return index
    future = pd.date_range(index[-1] + pd.offsets.MonthBegin(1), periods=periods, freq="MS")
    return pd.DatetimeIndex(index.append(future), freq="MS")
