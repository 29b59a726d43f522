# ipi_forecaster_src/calendar_utils.py

"""
Calendar-effect regressors for monthly series.

The model layer treats this module as an opaque collaborator: it maps a
monthly index and a country code to a fixed set of named numeric columns.

Columns
-------
- working_days: trading-day contrast, working days minus 5/2 times
  non-working days (weekends and national holidays) in the month
- easter: share of the EASTER_WINDOW days before Easter Sunday falling in
  the month
- leap_year: 0.75 for February of leap years, -0.25 for other Februaries,
  0 otherwise
"""

from datetime import date, timedelta
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd
from dateutil.easter import easter

import logging

logger = logging.getLogger(__name__)

EASTER_WINDOW = 6

# (month, day) fixed-date national holidays
FIXED_HOLIDAYS: Dict[str, List[Tuple[int, int]]] = {
    "IT": [(1, 1), (1, 6), (4, 25), (5, 1), (6, 2), (8, 15), (11, 1), (12, 8), (12, 25), (12, 26)],
    "FR": [(1, 1), (5, 1), (5, 8), (7, 14), (8, 15), (11, 1), (11, 11), (12, 25)],
    "DE": [(1, 1), (5, 1), (10, 3), (12, 25), (12, 26)],
    "ES": [(1, 1), (1, 6), (5, 1), (8, 15), (10, 12), (11, 1), (12, 6), (12, 8), (12, 25)],
}

# Moving holidays as day offsets from Easter Sunday
EASTER_OFFSETS: Dict[str, List[int]] = {
    "IT": [1],             # Easter Monday
    "FR": [1, 39, 50],     # Easter Monday, Ascension, Whit Monday
    "DE": [-2, 1, 39, 50], # Good Friday, Easter Monday, Ascension, Whit Monday
    "ES": [-2],            # Good Friday
}

CALENDAR_COLUMNS = ["working_days", "easter", "leap_year"]


def _validate_country(country: str) -> str:
    code = (country or "").upper()
    if code not in FIXED_HOLIDAYS:
        raise ValueError(f"Unsupported country '{country}'. Must be one of: {sorted(FIXED_HOLIDAYS)}")
    return code


def national_holidays(years: range, country: str = "IT") -> List[date]:
    """
    List the national holidays (fixed and Easter-related) for the given years.

    Parameters
    ----------
    years : range
        Calendar years to cover
    country : str, default="IT"
        ISO country code, one of FIXED_HOLIDAYS

    Returns
    -------
    List[date]
        Sorted unique holiday dates
    """
    code = _validate_country(country)
    out = set()
    for year in years:
        for month, day in FIXED_HOLIDAYS[code]:
            out.add(date(year, month, day))
        sunday = easter(year)
        for offset in EASTER_OFFSETS[code]:
            out.add(sunday + timedelta(days=offset))
    return sorted(out)


def working_day_contrast(index: pd.DatetimeIndex, country: str = "IT") -> np.ndarray:
    """
    Trading-day contrast per month: working days - 5/2 * non-working days.

    Holidays falling on weekends are not counted twice.
    """
    starts = pd.DatetimeIndex(index).to_period("M").to_timestamp(how="start")
    ends = starts + pd.offsets.MonthBegin(1)
    years = range(int(starts.year.min()), int(starts.year.max()) + 1)
    holidays = np.array(national_holidays(years, country), dtype="datetime64[D]")

    start_days = starts.values.astype("datetime64[D]")
    end_days = ends.values.astype("datetime64[D]")
    working = np.busday_count(start_days, end_days, holidays=holidays).astype(float)
    total = (end_days - start_days).astype(int).astype(float)
    return working - 2.5 * (total - working)


def easter_effect(index: pd.DatetimeIndex, window: int = EASTER_WINDOW) -> np.ndarray:
    """
    Share of the `window` days preceding Easter Sunday that fall in each month.
    """
    starts = pd.DatetimeIndex(index).to_period("M").to_timestamp(how="start")
    out = np.zeros(len(starts), dtype=float)
    cache: Dict[int, List[Tuple[int, int]]] = {}
    for i, ts in enumerate(starts):
        if ts.month not in (3, 4):
            continue
        if ts.year not in cache:
            sunday = easter(ts.year)
            days = [sunday - timedelta(days=k) for k in range(1, window + 1)]
            cache[ts.year] = [(d.year, d.month) for d in days]
        out[i] = sum(1 for ym in cache[ts.year] if ym == (ts.year, ts.month)) / float(window)
    return out


def leap_year_effect(index: pd.DatetimeIndex) -> np.ndarray:
    """
    Leap-year regressor: 0.75 in leap Februaries, -0.25 in other Februaries.
    """
    idx = pd.DatetimeIndex(index)
    feb = idx.month == 2
    leap = idx.is_leap_year
    out = np.zeros(len(idx), dtype=float)
    out[feb & leap] = 0.75
    out[feb & ~leap] = -0.25
    return out


def calendar_effects(index: pd.DatetimeIndex, country: str = "IT") -> pd.DataFrame:
    """
    Build the calendar regressor block for a monthly index.

    Parameters
    ----------
    index : pd.DatetimeIndex
        Monthly index (past, or past plus forecast horizon)
    country : str, default="IT"
        Country whose national holidays define working days

    Returns
    -------
    pd.DataFrame
        Columns CALENDAR_COLUMNS, one row per entry of `index`
    """
    idx = pd.DatetimeIndex(index)
    if len(idx) == 0:
        return pd.DataFrame(columns=CALENDAR_COLUMNS, index=idx, dtype=float)

    frame = pd.DataFrame(
        {
            "working_days": working_day_contrast(idx, country),
            "easter": easter_effect(idx),
            "leap_year": leap_year_effect(idx),
        },
        index=idx,
    )
    logger.debug("Built calendar effects for %s: %d rows", country, len(frame))
    return frame
